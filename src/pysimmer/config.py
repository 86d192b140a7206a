"""Default values shared by the registry, the module and the interpreter.

Everything here can be overridden per instance through constructor
arguments or the ``TimerModule.with_*`` builder methods.
"""

DEFAULT_TIMER_NAME = "Timer"
"""Name given to a timer created without one."""

DEFAULT_DURATION = 60
"""Seconds used when a create request carries no (or a zero) duration."""

TICK_INTERVAL = 1.0
"""Seconds between two ticks of a running timer."""

AUTO_START_DELAY = 0.1
"""Delay before an auto-started timer starts, so consumers can render it first."""

CREATE_TIMEOUT = 3.0
"""Seconds a client waits for ``timer:created:response``."""

TIMERS_STORAGE_KEY = "recipe-viewer-timers"
"""Key holding the persisted timer array."""
