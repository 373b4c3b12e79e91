"""
Single place where user/order identifiers from requests, tokens and the
database are normalised and compared. JWT `sub` claims arrive as strings,
gateway webhooks echo order ids back as strings, the database hands out ints.
"""
from typing import Any

# Primary keys are 32-bit INTEGER columns; anything above cannot name a row.
MAX_ID = 2**31 - 1


def _in_range(value: int) -> int | None:
    return value if 0 < value <= MAX_ID else None


def canonical_id(value: Any) -> int | None:
    """Return the integer identity behind `value`, or None if it has none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return _in_range(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdigit():
            return _in_range(int(text))
    return None


def same_identity(left: Any, right: Any) -> bool:
    left_id = canonical_id(left)
    return left_id is not None and left_id == canonical_id(right)
