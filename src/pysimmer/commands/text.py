"""
Text utilities for timers: duration extraction, naming, formatting.

Durations are found with a unit-aware grammar covering hour, minute and
second phrasings ("5 min", "1 hr", "10-15 minutes"). A numeric range
counts as its upper bound; every match in a text is summed.

Names are derived from cooking context: the cooking verb closest to the
duration (a fixed priority list wins ties), and the ingredient closest to
that verb. "Stir the sauce (5 minutes)" -> "Stir sauce".
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pysimmer.config import DEFAULT_TIMER_NAME
from pysimmer.models import format_clock

COOKING_VERBS = (
    "bake", "boil", "simmer", "roast", "grill", "fry", "sauté", "steam",
    "cook", "heat", "mix", "stir", "blend", "whip", "knead", "rest",
    "marinate", "chill", "freeze", "thaw", "prepare", "microwave",
    "preheat", "broil", "sear", "toast", "caramelize", "reduce", "wait",
    "let", "allow", "cool", "stand", "set", "rise", "ferment", "proof",
    "season", "tenderize", "smoke", "cure", "pickle", "braise", "poach",
    "blanch", "infuse", "render", "melt", "dissolve", "steep", "strain",
    "cover", "turn", "flip", "fold", "sweat", "deglaze",
)  # fmt: skip

PRIORITY_VERBS = ("simmer", "bake", "roast", "boil", "cook", "wait", "let", "allow", "rest")

CONNECTING_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "if", "then", "until", "for",
        "with", "about", "to", "from", "by", "at", "in", "on", "off",
    }
)  # fmt: skip

INGREDIENTS = (
    # Proteins
    "chicken", "beef", "pork", "fish", "salmon", "tuna", "shrimp", "tofu", "lamb", "duck",
    "turkey", "sausage", "bacon", "ham", "steak", "ribs", "chops", "ground beef",
    "ground turkey", "ground pork", "meatballs", "tempeh", "seitan", "crab", "lobster",
    "scallops", "eggs",
    # Vegetables
    "onion", "garlic", "carrot", "celery", "potato", "tomato", "bell pepper", "jalapeno",
    "broccoli", "cauliflower", "spinach", "kale", "lettuce", "cabbage", "asparagus",
    "zucchini", "eggplant", "squash", "pumpkin", "cucumber", "mushroom", "corn", "peas",
    "green beans", "brussels sprouts", "artichoke", "leek", "shallot", "radish", "turnip",
    "beet",
    # Grains and starches
    "rice", "pasta", "noodles", "bread", "dough", "flour", "oats", "quinoa", "couscous",
    "barley", "farro", "bulgur", "polenta", "grits", "tortilla", "pita", "bagel",
    # Legumes
    "beans", "lentils", "chickpeas", "black beans", "kidney beans", "pinto beans",
    "navy beans", "lima beans", "edamame", "split peas",
    # Dairy
    "milk", "cream", "cheese", "butter", "yogurt", "sour cream", "buttermilk",
    "almond milk", "soy milk", "oat milk", "coconut milk",
    # Fruits
    "apple", "banana", "orange", "lemon", "lime", "berry", "berries", "strawberry",
    "blueberry", "raspberry", "blackberry", "cherry", "grape", "pear", "peach",
    "plum", "pineapple", "mango", "kiwi", "melon", "watermelon", "cantaloupe",
    # Herbs and spices
    "basil", "thyme", "rosemary", "oregano", "parsley", "cilantro", "mint", "dill",
    "sage", "bay leaf", "cumin", "coriander", "paprika", "turmeric", "ginger",
    # Sauces and condiments
    "sauce", "ketchup", "mustard", "mayonnaise", "vinegar", "oil", "olive oil",
    "salsa", "soy sauce", "marinara", "gravy", "dressing", "glaze",
    # Preparations
    "mixture", "batter", "stock", "broth", "soup", "stew", "casserole", "filling",
    "frosting", "icing", "syrup", "caramel", "roux", "crust", "seasoning",
    # Nuts and seeds
    "nuts", "almonds", "walnuts", "pecans", "cashews", "pistachios", "seeds",
    "sesame", "sunflower", "pumpkin seeds", "flax", "chia",
)  # fmt: skip

TIME_PATTERN = re.compile(
    r"(\d+(?:\s*-\s*\d+)?)\s*(hours?|hrs?|minutes?|mins?|seconds?|secs?)\b",
    re.IGNORECASE,
)

PARENTHESES_PATTERN = re.compile(r"\([^)]+\)")

WAIT_PATTERN = re.compile(
    r"\b(wait|let\s+rest|let\s+stand|allow\s+to\s+rest|allow\s+to\s+sit)\b",
    re.IGNORECASE,
)

CONTEXT_WINDOW = 200
"""Characters before a duration searched for naming context."""

INGREDIENT_LOOKAHEAD = 50
"""Characters after a duration searched for the verb's ingredient."""

_VERB_PATTERNS = {verb: re.compile(rf"\b{re.escape(verb)}\b", re.IGNORECASE) for verb in COOKING_VERBS}
_INGREDIENT_PATTERNS = {
    ingredient: re.compile(rf"\b{re.escape(ingredient)}\b", re.IGNORECASE)
    for ingredient in INGREDIENTS
}


@dataclass(frozen=True)
class DurationMatch:
    """One duration phrase found in text."""

    seconds: int
    start: int
    text: str


@dataclass(frozen=True)
class StepTimer:
    """
    A timer suggested by a parenthesised duration in a step.

    Attributes:
        duration: Seconds
        label: Generated display name
        source: "main" for the step description, "bullet" for a bullet point
        match_index: Offset of the parenthesis in its source text
        bullet_index: Bullet position, None for the main text
        original_text: The parenthesised phrase, e.g. "(10-15 minutes)"
    """

    duration: int
    label: str
    source: str
    match_index: int
    bullet_index: int | None = None
    original_text: str = ""


def _unit_seconds(unit: str) -> int:
    unit = unit.lower()
    if unit.startswith("h"):
        return 3600
    if unit.startswith("m"):
        return 60
    return 1


def _value(raw: str) -> int:
    # Ranges count as their upper bound
    parts = [int(part) for part in re.split(r"\s*-\s*", raw.strip()) if part]
    return parts[-1] if parts else 0


def _seconds(match: re.Match) -> int:
    return _value(match.group(1)) * _unit_seconds(match.group(2))


def _upper_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def extract_duration(text: str | None) -> int:
    """
    Total seconds mentioned in text, 0 if none.

    Example:
        extract_duration("simmer for 10-15 minutes")   # 900
        extract_duration("bake 1 hr then rest 10 min")  # 4200
    """
    if not text or not isinstance(text, str):
        return 0
    return sum(_seconds(match) for match in TIME_PATTERN.finditer(text))


def find_duration_match(text: str | None) -> DurationMatch | None:
    """First duration phrase in text with its offset."""
    if not text:
        return None
    for match in TIME_PATTERN.finditer(text):
        seconds = _seconds(match)
        if seconds > 0:
            return DurationMatch(seconds=seconds, start=match.start(), text=match.group(0))
    return None


def generate_timer_name(text: str | None, match_index: int, step_title: str | None = None) -> str:
    """
    Name a timer from the text around its duration.

    Args:
        text: Sentence or step text containing the duration
        match_index: Offset of the duration in text
        step_title: Returned when no cooking verb precedes the duration

    Returns:
        "Wait timer", "<Verb> <ingredient>", "<Verb> timer", or the fallback
    """
    fallback = step_title or DEFAULT_TIMER_NAME
    if not text or not isinstance(text, str):
        return fallback

    match_index = max(0, min(match_index, len(text)))
    context_start = max(0, match_index - CONTEXT_WINDOW)
    before = text[context_start:match_index].strip()
    after = text[match_index:].strip()
    context = re.sub(r"\s+", " ", re.sub(r"[.,()]", " ", f"{before} {after}")).lower().strip()

    if WAIT_PATTERN.search(before):
        return "Wait timer"

    found_verbs = [verb for verb, pattern in _VERB_PATTERNS.items() if pattern.search(before)]
    if not found_verbs:
        return fallback

    verb = next((v for v in PRIORITY_VERBS if v in found_verbs), None)
    lowered_before = before.lower()
    if verb is None:
        # Closest to the duration is the one starting last
        verb = max(found_verbs, key=lowered_before.rfind)

    found_ingredients: list[str] = []
    for ingredient, pattern in _INGREDIENT_PATTERNS.items():
        if not pattern.search(context):
            continue
        if any(ingredient in known or known in ingredient for known in found_ingredients):
            continue
        found_ingredients.append(ingredient)

    ingredient = None
    if found_ingredients:
        verb_index = lowered_before.rfind(verb)
        if verb_index != -1:
            verb_context = f"{before[verb_index:]} {after[:INGREDIENT_LOOKAHEAD]}".lower()
            positions = [
                (verb_context.find(candidate), candidate)
                for candidate in found_ingredients
                if verb_context.find(candidate) != -1
            ]
            if positions:
                ingredient = min(positions, key=lambda item: item[0])[1]
        if ingredient is None:
            ingredient = found_ingredients[0]

    if ingredient:
        return f"{_upper_first(verb)} {ingredient}"
    return f"{_upper_first(verb)} timer"


def create_timer_label(text: str | None) -> str:
    """
    Short label from free text: a cooking verb plus the two following
    words, else the first words of the text.
    """
    if not text or not isinstance(text, str):
        return DEFAULT_TIMER_NAME

    clean = re.sub(r"\s+", " ", re.sub(r"[^\w\s]", " ", text)).strip()
    if not clean:
        return DEFAULT_TIMER_NAME

    for pattern in _VERB_PATTERNS.values():
        match = pattern.search(clean)
        if match:
            phrase = " ".join(clean[match.start() :].split(" ")[:3])
            return _upper_first(phrase)

    words = clean.split(" ")
    if len(words) <= 4:
        return _upper_first(clean)
    return _upper_first(" ".join(words[:3]) + "...")


def _parenthesised_durations(text: str) -> list[tuple[int, str, int]]:
    results = []
    for match in PARENTHESES_PATTERN.finditer(text):
        content = match.group(0)[1:-1].strip()
        for time_match in TIME_PATTERN.finditer(content):
            seconds = _seconds(time_match)
            if seconds > 0:
                # First duration of the parenthesis only
                results.append((match.start(), match.group(0), seconds))
                break
    return results


def find_timers_in_step(step: Mapping[str, Any] | None) -> list[StepTimer]:
    """
    Timers suggested by a workflow step.

    Only durations in parentheses count, e.g. "Simmer the sauce
    (10-15 minutes)". The description (``description`` or ``mainStep``)
    is scanned first, then each string bullet in ``bullets``.
    """
    if not step:
        return []

    timers: list[StepTimer] = []
    title = step.get("title")

    description = step.get("description") or step.get("mainStep")
    if isinstance(description, str):
        for index, original, seconds in _parenthesised_durations(description):
            timers.append(
                StepTimer(
                    duration=seconds,
                    label=generate_timer_name(description, index, title),
                    source="main",
                    match_index=index,
                    original_text=original,
                )
            )

    bullets = step.get("bullets")
    if isinstance(bullets, list | tuple):
        for bullet_index, bullet in enumerate(bullets):
            if not isinstance(bullet, str):
                continue
            for index, original, seconds in _parenthesised_durations(bullet):
                timers.append(
                    StepTimer(
                        duration=seconds,
                        label=generate_timer_name(bullet, index, title),
                        source="bullet",
                        match_index=index,
                        bullet_index=bullet_index,
                        original_text=original,
                    )
                )
    return timers


def format_time_mmss(seconds: float | None) -> str:
    """Seconds as MM:SS; None gives "00:00"."""
    if seconds is None:
        return "00:00"
    return format_clock(math.floor(seconds))


def format_duration(seconds: int | None) -> str:
    """Human readable duration: "2 min 30 sec", "5 min", "45 sec"."""
    if seconds is None:
        return "0 seconds"
    minutes, rest = divmod(int(seconds), 60)
    if minutes > 0 and rest > 0:
        return f"{minutes} min {rest} sec"
    if minutes > 0:
        return f"{minutes} min"
    return f"{rest} sec"


def calculate_completion(total: float, remaining: float) -> int:
    """Completion percentage rounded to an integer in [0, 100]."""
    if total <= 0 or remaining < 0:
        return 0
    if remaining == 0:
        return 100
    percentage = (total - remaining) / total * 100
    return min(max(0, math.floor(percentage + 0.5)), 100)


def clean_transcript(text: str | None) -> str:
    """Trim, lowercase and collapse whitespace."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text.strip().lower())


def create_step_timer_key(step_id: Any, index: int) -> str:
    return f"step-{step_id}-timer-{index}"


def create_step_key(phase: str, step_index: int) -> str:
    """Key of a processed workflow step, e.g. ``cooking-step-3``."""
    return f"{phase}-step-{step_index}"
