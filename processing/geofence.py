"""
Home-point geofencing for proximity ("overhead") alerts.

A geofence is a radius around a fixed reference point plus an altitude
ceiling. Distances are nautical miles on a spherical Earth.
"""

import math

from processing.models import Altitude, AltitudeKind

EARTH_RADIUS_NM = 3440.065


def haversine_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in nautical miles between two points in degrees."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # Rounding can push `a` a hair outside [0, 1] for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_NM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class Geofence:
    """Radius- and altitude-bounded zone around a fixed home point."""

    def __init__(self, home_lat: float, home_lon: float, radius_nm: float, altitude_ceiling_ft: float):
        self.home_lat = home_lat
        self.home_lon = home_lon
        self.radius_nm = radius_nm
        self.altitude_ceiling_ft = altitude_ceiling_ft

    def distance_nm(self, lat: float, lon: float) -> float:
        return haversine_nm(self.home_lat, self.home_lon, lat, lon)

    def within_radius(self, lat: float, lon: float) -> bool:
        return self.distance_nm(lat, lon) <= self.radius_nm

    def in_altitude_band(self, altitude: Altitude) -> bool:
        """True only for a numeric altitude in (0, ceiling]."""
        if altitude.kind is AltitudeKind.NUMERIC:
            return 0 < altitude.feet <= self.altitude_ceiling_ft
        if altitude.kind is AltitudeKind.GROUND:
            return False
        if altitude.kind is AltitudeKind.UNKNOWN:
            return False
        raise ValueError(f"Unhandled altitude kind: {altitude.kind}")

    def contains(self, lat: float, lon: float, altitude: Altitude) -> bool:
        return self.within_radius(lat, lon) and self.in_altitude_band(altitude)

    def __repr__(self) -> str:
        return (
            f"Geofence(home=({self.home_lat:.6f}, {self.home_lon:.6f}), "
            f"radius={self.radius_nm}nm, ceiling={self.altitude_ceiling_ft}ft)"
        )
