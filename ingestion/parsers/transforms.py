"""
Value transforms used by dataset field maps
"""

import math
from typing import Any, Optional, Union

Number = Union[int, float]


def clean_special_chars(value: Any, separator: str, join_separator: str = "") -> str:
    """
    Split on ``separator``, trim the parts and join them back.

    >>> clean_special_chars("B.M.W.", ".")
    'BMW'
    >>> clean_special_chars("Saloon / Sports", "/", "/")
    'Saloon/Sports'
    """
    if value is None:
        return ""
    return join_separator.join(part.strip() for part in str(value).split(separator))


def to_number(value: Any) -> Optional[Number]:
    """
    Coerce a cell value to a number.

    Thousands separators are removed; integral values come back as ``int``.
    Returns None for None/empty input and raises ValueError for text.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        number = value
    else:
        text = str(value).strip().replace(",", "")
        if text == "":
            return None
        number = float(text)

    if isinstance(number, float):
        if math.isnan(number):
            return None
        if number.is_integer():
            return int(number)
    return number


def zero_if_empty(value: Any) -> Number:
    """Empty cells count as zero"""
    number = to_number(value)
    return 0 if number is None else number


def make_name(value: Any) -> str:
    """Normalise a make: dots removed, upper case"""
    return clean_special_chars(value, ".").upper()


def vehicle_type_name(value: Any) -> str:
    """Collapse spacing around slashes (``"Saloon / Sports"`` -> ``"Saloon/Sports"``)"""
    return clean_special_chars(value, "/", "/")
