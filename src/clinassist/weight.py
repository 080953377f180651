# Patient weight parsing. Pure and stateless; wrong answers here become wrong doses, so the accepted
# grammar and ranges are kept deliberately narrow.

import re
from typing import List, Optional, Tuple

from .errors import InvalidFormatError, OutOfRangeError

LBS_PER_KG = 2.20462

POUND_SUFFIXES = ["pounds", "pound", "lbs", "lb", "#"]
KILOGRAM_SUFFIXES = ["kilograms", "kilogram", "kg"]

POUNDS_RANGE = (4.0, 400.0)
KILOGRAMS_RANGE = (2.0, 180.0)

# Bare numbers above this are read as pounds, at or below as kilograms.
BARE_NUMBER_POUNDS_THRESHOLD = 20.0

# Our own display form, "52.0 lbs (23.6 kg)", parses back through its leading pounds value.
_DISPLAY_FORM = re.compile(r"^([^()]+)\(([^()]*)\)$")
_NUMBER = re.compile(r"[0-9]+(?:\.[0-9]*)?|\.[0-9]+")


def parse(text: str) -> Tuple[float, str]:
    """
    Parse a weight string into kilograms and a display string.

    Accepted forms: "52#", "52 lbs", "52 pounds", "23.6 kg", "23.6 kilograms",
    or a bare number (pounds when > 20, otherwise kilograms).

    Returns:
        (kilograms, "<lbs> lbs (<kg> kg)") with one decimal place for both units.

    Raises:
        InvalidFormatError: empty input or an unparseable number.
        OutOfRangeError: pounds outside [4, 400] or kilograms outside [2, 180].
    """
    normalized = "".join((text or "").split()).lower()
    if not normalized:
        raise InvalidFormatError()

    display = _DISPLAY_FORM.match(normalized)
    if display:
        normalized = display.group(1)

    pounds = _value_with_suffix(normalized, POUND_SUFFIXES)
    if pounds is not None:
        return _from_pounds(pounds)

    kilograms = _value_with_suffix(normalized, KILOGRAM_SUFFIXES)
    if kilograms is not None:
        return _from_kilograms(kilograms)

    bare = _to_number(normalized)
    if bare is None:
        raise InvalidFormatError()
    if bare > BARE_NUMBER_POUNDS_THRESHOLD:
        return _from_pounds(bare)
    return _from_kilograms(bare)


def format_display(pounds: float, kilograms: float) -> str:
    return f"{pounds:.1f} lbs ({kilograms:.1f} kg)"


def _from_pounds(pounds: float) -> Tuple[float, str]:
    if not POUNDS_RANGE[0] <= pounds <= POUNDS_RANGE[1]:
        raise OutOfRangeError()
    kilograms = pounds / LBS_PER_KG
    return kilograms, format_display(pounds, kilograms)


def _from_kilograms(kilograms: float) -> Tuple[float, str]:
    if not KILOGRAMS_RANGE[0] <= kilograms <= KILOGRAMS_RANGE[1]:
        raise OutOfRangeError()
    return kilograms, format_display(kilograms * LBS_PER_KG, kilograms)


def _value_with_suffix(normalized: str, suffixes: List[str]) -> Optional[float]:
    # Longest suffix first so "lbs" is not read as "lb" followed by a stray "s".
    for suffix in suffixes:
        if normalized.endswith(suffix):
            value = _to_number(normalized[: -len(suffix)])
            if value is None:
                raise InvalidFormatError()
            return value
    return None


def _to_number(raw: str) -> Optional[float]:
    # Plain decimals only; float() alone would also take "1e1", "5_0", "nan" and "inf".
    if not _NUMBER.fullmatch(raw):
        return None
    return float(raw)
