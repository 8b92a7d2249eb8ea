"""Estonian personal identification code (isikukood) checksum."""

from __future__ import annotations

PERSONAL_CODE_LENGTH = 11

_WEIGHTS_FIRST = (1, 2, 3, 4, 5, 6, 7, 8, 9, 1)
_WEIGHTS_SECOND = (3, 4, 5, 6, 7, 8, 9, 1, 2, 3)


def _weighted_mod11(digits: list[int], weights: tuple[int, ...]) -> int:
    return sum(d * w for d, w in zip(digits, weights)) % 11


def compute_check_digit(first_ten: str) -> int:
    """Compute the check digit for the first ten digits of a personal code."""
    digits = [int(c) for c in first_ten]
    check = _weighted_mod11(digits, _WEIGHTS_FIRST)
    if check == 10:
        check = _weighted_mod11(digits, _WEIGHTS_SECOND)
        if check == 10:
            check = 0
    return check


def validate_personal_code(code: str) -> bool:
    """Return True if ``code`` is 11 ASCII digits with a matching check digit."""
    if not isinstance(code, str) or len(code) != PERSONAL_CODE_LENGTH:
        return False
    # str.isdigit() also accepts non-ASCII digits
    if not all("0" <= c <= "9" for c in code):
        return False
    return int(code[10]) == compute_check_digit(code[:10])
