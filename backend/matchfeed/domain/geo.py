"""Great-circle distance helpers shared by discovery and fanout."""

from __future__ import annotations

import math
from typing import Optional

from matchfeed.domain.profiles import Coordinates

EARTH_RADIUS_MILES = 3959.0


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
	phi1, phi2 = math.radians(lat1), math.radians(lat2)
	dphi = math.radians(lat2 - lat1)
	dlambda = math.radians(lon2 - lon1)
	a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
	c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
	return EARTH_RADIUS_MILES * c


def distance_miles(a: Optional[Coordinates], b: Optional[Coordinates]) -> Optional[int]:
	"""Distance rounded to the nearest whole mile, or None when either side is unknown."""

	if a is None or b is None:
		return None
	# round-half-up, matching the client-side display
	return int(math.floor(haversine_miles(a.latitude, a.longitude, b.latitude, b.longitude) + 0.5))


def within_radius(a: Optional[Coordinates], b: Optional[Coordinates], radius_miles: float) -> bool:
	"""Permissive radius test: an unknown distance always passes."""

	distance = distance_miles(a, b)
	if distance is None:
		return True
	return distance <= radius_miles
