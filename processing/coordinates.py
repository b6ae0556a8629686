"""
Position resolution for feed snapshots.

The feed reports either a live lat/lon pair or, when the live fix has aged
out, a nested "last known position" pair. A pair with a missing or exactly
zero component is treated as absent. As a consequence a genuine fix at
0 deg latitude or 0 deg longitude reads as "no position"; that is outside the
operating region and intentionally left as is.
"""

from typing import Optional, Tuple

from processing.models import GeoPoint, ObjectSnapshot


def _usable(point: Optional[GeoPoint]) -> bool:
    if point is None:
        return False
    if point.lat is None or point.lon is None:
        return False
    return point.lat != 0 and point.lon != 0


def resolve(snapshot: ObjectSnapshot) -> Tuple[float, float, bool]:
    """Return (lat, lon, has_fix), preferring the live pair."""
    for point in (snapshot.position, snapshot.last_position):
        if _usable(point):
            return point.lat, point.lon, True
    return 0.0, 0.0, False
