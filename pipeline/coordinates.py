"""
GPS coordinate helpers.

Converts sexagesimal (degrees, minutes, seconds + hemisphere) descriptions
such as ``51 deg 30' 35.66" N`` into signed decimal degrees, and renders
piexif rational triples into that description form.
"""

import logging
import math
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Anything that is not a letter, digit or decimal point separates tokens
TOKEN_SEPARATOR = re.compile(r"[^0-9A-Za-z.]+")
DEGREE_MARKER = "deg"
HEMISPHERES = {"N", "S", "E", "W"}
NEGATIVE_HEMISPHERES = {"S", "W"}


@dataclass(frozen=True)
class DecimalCoordinate:
    """A WGS84 position in signed decimal degrees."""
    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lon}")


def _tokenize(dms: str) -> list[str]:
    tokens = []
    for token in TOKEN_SEPARATOR.split(dms.strip()):
        if not token:
            continue
        lowered = token.lower()
        if lowered == DEGREE_MARKER:
            continue
        # "51deg" written without a space
        if lowered.endswith(DEGREE_MARKER):
            token = token[:-len(DEGREE_MARKER)]
        tokens.append(token)
    return tokens


def _parse_number(token: str) -> float | None:
    try:
        value = float(token)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def dms_to_decimal(dms: str | None) -> float | None:
    """
    Convert a DMS description to decimal degrees.

    Args:
        dms: String like ``51 deg 30' 35.66" N``.

    Returns:
        Signed decimal degrees (negative for S and W), or None if the
        string is malformed.
    """
    if not isinstance(dms, str):
        return None

    tokens = _tokenize(dms)
    if len(tokens) != 4:
        logger.debug(f"Unexpected DMS token count in {dms!r}: {tokens}")
        return None

    degrees, minutes, seconds = (_parse_number(t) for t in tokens[:3])
    hemisphere = tokens[3].upper()

    if degrees is None or minutes is None or seconds is None:
        logger.debug(f"Non-numeric DMS component in {dms!r}")
        return None
    if hemisphere not in HEMISPHERES:
        logger.debug(f"Unknown hemisphere in {dms!r}: {hemisphere}")
        return None

    decimal = degrees + minutes / 60 + seconds / 3600

    if hemisphere in NEGATIVE_HEMISPHERES:
        decimal = -decimal

    return decimal


def _format_number(value: float) -> str:
    if value == int(value):
        return str(int(value))
    return f"{value:.6f}".rstrip("0").rstrip(".")


def format_dms(
    rationals: tuple | list | None,
    ref: bytes | str | None,
) -> str | None:
    """
    Render a piexif GPS rational triple as a DMS description.

    Args:
        rationals: ((deg_num, deg_den), (min_num, min_den), (sec_num, sec_den)).
        ref: Hemisphere reference, b"N" / "N" etc.

    Returns:
        Description string, or None if the rationals are unusable.
    """
    if not rationals:
        return None

    try:
        degrees, minutes, seconds = (num / den for num, den in rationals[:3])
    except (TypeError, ValueError, ZeroDivisionError):
        return None

    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    ref = (ref or "").strip().rstrip("\x00")

    description = (
        f"{_format_number(degrees)} deg {_format_number(minutes)}' "
        f"{_format_number(seconds)}\""
    )
    if ref:
        description = f"{description} {ref}"
    return description
