"""Input validators for wizard steps.

Each factory returns a callable InputEvent -> value that raises ValidationFault
on malformed input. Choice steps also accept the value typed as text.
"""

import re
from typing import Callable

from tunebot.errors import ValidationFault
from wizard.graph import InputEvent, InputKind

Validator = Callable[[InputEvent], object]

_PAIR_SPLIT = re.compile(r"[\sx×,]+")


def choice_of(*values: str, message: str = "⚠️ Please pick one of the options.") -> Validator:
    allowed = {v.lower(): v for v in values}

    def validate(event: InputEvent) -> str:
        if event.kind not in (InputKind.CHOICE, InputKind.TEXT):
            raise ValidationFault(message)
        picked = allowed.get(event.payload.strip().lower())
        if picked is None:
            raise ValidationFault(message)
        return picked

    return validate


def yes_no(message: str = "⚠️ Please answer Yes or No.") -> Validator:
    pick = choice_of("yes", "no", "true", "false", message=message)

    def validate(event: InputEvent) -> bool:
        return pick(event) in ("yes", "true")

    return validate


def text(
    *,
    allow_empty: bool = False,
    message: str = "⚠️ This field cannot be empty. Try again.",
) -> Validator:
    """Free text, stripped."""

    def validate(event: InputEvent) -> str:
        if event.kind is not InputKind.TEXT:
            raise ValidationFault("⚠️ Please type your answer.")
        value = event.payload.strip()
        if not value and not allow_empty:
            raise ValidationFault(message)
        return value

    return validate


def _parse_int(raw: str) -> int | None:
    raw = raw.strip()
    if not re.fullmatch(r"[+-]?\d+", raw):
        return None
    return int(raw)


def non_negative_int(
    message: str = "⚠️ Invalid input. Please enter a non-negative number (e.g., 50 or 0).",
) -> Validator:
    def validate(event: InputEvent) -> int:
        if event.kind is not InputKind.TEXT:
            raise ValidationFault(message)
        value = _parse_int(event.payload)
        if value is None or value < 0:
            raise ValidationFault(message)
        return value

    return validate


def positive_int_pair(
    message: str = '⚠️ Invalid format. Please enter the viewport size as "width height" (e.g., "1280 720").',
) -> Validator:
    """Two positive integers, e.g. "1280 720" or "1280x720"."""

    def validate(event: InputEvent) -> tuple[int, int]:
        if event.kind is not InputKind.TEXT:
            raise ValidationFault(message)
        parts = [p for p in _PAIR_SPLIT.split(event.payload.strip()) if p]
        if len(parts) != 2:
            raise ValidationFault(message)
        width, height = (_parse_int(p) for p in parts)
        if width is None or height is None or width <= 0 or height <= 0:
            raise ValidationFault(message)
        return width, height

    return validate
