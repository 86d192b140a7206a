"""Timer operation errors."""


class TimerError(Exception):
    """Invalid timer operation (negative duration, unknown state)."""

    pass


class SignatureError(TimerError):
    """
    Step-bound timer metadata lacks a duplicate-detection field.

    A create request whose metadata carries ``stepId`` must also carry
    ``source`` and ``matchIndex``.
    """

    pass
