"""
Jhandi Munda - Input Validation Utilities

Validation for values that arrive from the server. All validators either
return normalized data or raise descriptive ValueError exceptions, which
pydantic surfaces as validation errors at the wire boundary.
"""

from typing import Sequence

DIE_FACES = 6
DICE_PER_ROUND = 6


def validate_dice_values(
    values: Sequence[int],
    count: int = DICE_PER_ROUND,
    faces: int = DIE_FACES,
) -> tuple[int, ...]:
    """
    Validate and normalize a declared round outcome.

    Args:
        values: Sequence of dice values to validate
        count: Exact number of dice expected
        faces: Highest face value on a die

    Returns:
        Validated values as a tuple

    Raises:
        ValueError: If validation fails
    """
    values_tuple = tuple(values)

    if len(values_tuple) != count:
        raise ValueError(f"Exactly {count} dice required, got {len(values_tuple)}.")

    for i, value in enumerate(values_tuple):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Die value at index {i} must be an integer, got {type(value).__name__}.")
        if not (1 <= value <= faces):
            raise ValueError(
                f"Die value at index {i} is {value}, must be between 1 and {faces}."
            )

    return values_tuple


def validate_round_dice(values: Sequence[int] | None) -> tuple[int, ...] | None:
    """
    Validate the dice of a snapshot round.

    ``None`` (no result yet) and an empty sequence (cancelled round) are
    both meaningful and passed through; anything else must be a full roll.
    """
    if values is None:
        return None
    if len(values) == 0:
        return ()
    return validate_dice_values(values)


def validate_timestamp(value: int, name: str = "timestamp") -> int:
    """
    Validate a server epoch-millisecond timestamp.

    Raises:
        ValueError: If the value is negative
    """
    if value < 0:
        raise ValueError(f"{name} cannot be negative, got {value}.")
    return value
