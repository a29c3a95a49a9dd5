"""Grouping of creations into map markers.

Creations saved at the same place would otherwise stack perfectly on top of
each other on the map, hiding all but one.  Grouping by a rounded coordinate
key gives one marker per place with a count badge, and the map page shows
the members of a group in a carousel.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_PRECISION = 4


def coordinate_key(latitude: float, longitude: float, precision: int = DEFAULT_PRECISION) -> str:
    """Round a position to ``precision`` decimals and join it into a key.

    ``-0.0`` is folded into ``0.0`` so that tiny negative values around
    Null Island share its marker.

    Examples:
        >>> coordinate_key(48.858370, 2.294481)
        '48.8584,2.2945'
    """
    lat = round(float(latitude), precision) + 0.0
    lng = round(float(longitude), precision) + 0.0
    return f"{lat:.{precision}f},{lng:.{precision}f}"


@dataclass
class MarkerGroup:
    """All creations that share one rounded position."""

    key: str
    latitude: float
    longitude: float
    creations: list[dict] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.creations)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "count": self.count,
            "creations": self.creations,
        }


def group_creations(creations: list[dict], precision: int = DEFAULT_PRECISION) -> list[MarkerGroup]:
    """Group creations by :func:`coordinate_key`.

    Groups appear in the order their first member appears in ``creations``,
    and members keep their relative order.  The marker is positioned at its
    first member.  Image payloads are dropped from the members.

    Args:
        creations: Creation dictionaries with ``latitude`` and ``longitude``.
        precision: Decimal places used for the grouping key.

    Returns:
        One :class:`MarkerGroup` per distinct key.
    """
    groups: dict[str, MarkerGroup] = {}

    for creation in creations:
        lat = float(creation["latitude"])
        lng = float(creation["longitude"])
        key = coordinate_key(lat, lng, precision)

        group = groups.get(key)
        if group is None:
            group = MarkerGroup(key=key, latitude=lat, longitude=lng)
            groups[key] = group

        member = {k: v for k, v in creation.items() if k != "image_url"}
        group.creations.append(member)

    return list(groups.values())


def creations_bounds(groups: list[MarkerGroup]) -> dict | None:
    """Return the south-west / north-east box enclosing every marker.

    Returns:
        ``{"south", "west", "north", "east"}`` or ``None`` when there are no
        markers to fit.
    """
    if not groups:
        return None

    lats = [g.latitude for g in groups]
    lngs = [g.longitude for g in groups]
    return {
        "south": min(lats),
        "west": min(lngs),
        "north": max(lats),
        "east": max(lngs),
    }
