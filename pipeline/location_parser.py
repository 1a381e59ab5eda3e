"""
Free-text location hints.

Pulls a floor number and a zone letter out of what an inspector typed as the
location, e.g. "4F B區" -> floor "4", zone "B". This is a light pattern match;
the results are hints, not authoritative locations.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ZONE_MARKER = "區"

FLOOR_PATTERN = re.compile(r"(\d+)F", re.IGNORECASE)
ZONE_PATTERN = re.compile(rf"([A-Z]){ZONE_MARKER}", re.IGNORECASE)


@dataclass(frozen=True)
class LocationHint:
    """Structured hints parsed from a location description."""
    floor: str | None
    zone: str | None
    raw_description: str

    def to_dict(self) -> dict[str, str | None]:
        return {
            "floor": self.floor,
            "zone": self.zone,
            "rawDescription": self.raw_description,
        }


def parse_location_description(description: str | None) -> LocationHint:
    """
    Extract floor and zone hints from a location description.

    Args:
        description: Free text entered by the inspector.

    Returns:
        LocationHint with floor/zone set to None where nothing matched.
    """
    description = description or ""

    floor_match = FLOOR_PATTERN.search(description)
    zone_match = ZONE_PATTERN.search(description)

    hint = LocationHint(
        floor=floor_match.group(1) if floor_match else None,
        zone=zone_match.group(1).upper() if zone_match else None,
        raw_description=description,
    )
    logger.debug(f"Parsed location {description!r} -> floor={hint.floor}, zone={hint.zone}")
    return hint
