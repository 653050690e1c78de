"""
Smart Pack route sequencer. Nearest-neighbour walk anchored at the hospital.

Pure logic only:
- No FastAPI, no storage, no HTTP.
- Receives the stops of one bucket and the hub; returns them in driving order.

Inbound (to the hub): seed with the stop furthest from the hub, then always
go to the nearest remaining stop. Outbound (from the hub): start the walk at
the hub itself. Ties go to the first-encountered stop (np.argmin/np.argmax
return the first index). Stops without coordinates are appended after the
walk in input order so no booking drops off the route sheet.

Heuristic on purpose: O(n^2) per bucket, tens of stops, no exact TSP.
"""

import math
from typing import List, Sequence

import numpy as np

from staffcab.domain.geo import EARTH_RADIUS_M, is_finite_coordinates
from staffcab.domain.models import INBOUND, Coordinates, Stop


def haversine_m_from(origin: Coordinates, points: np.ndarray) -> np.ndarray:
    """
    Distances (m) from origin to each row of points, an (n, 2) array of
    (lat, lng) degrees. Same formula as domain.geo.haversine_m.
    """
    if len(points) == 0:
        return np.zeros(0, dtype=float)
    lat1 = math.radians(origin[0])
    lng1 = math.radians(origin[1])
    lat2 = np.radians(points[:, 0])
    lng2 = np.radians(points[:, 1])
    h = np.sin((lat2 - lat1) / 2) ** 2 + math.cos(lat1) * np.cos(lat2) * np.sin((lng2 - lng1) / 2) ** 2
    h = np.clip(h, 0.0, 1.0)
    return 2 * EARTH_RADIUS_M * np.arctan2(np.sqrt(h), np.sqrt(1 - h))


def _nearest_neighbour_order(coords: np.ndarray, start: Coordinates, seed: int | None) -> List[int]:
    """
    Greedy walk over the rows of coords. If seed is given it is placed first,
    otherwise the walk starts from the virtual position start.
    """
    n = len(coords)
    remaining = list(range(n))
    order: List[int] = []
    current = start
    if seed is not None:
        order.append(remaining.pop(seed))
        current = (float(coords[seed, 0]), float(coords[seed, 1]))

    while remaining:
        d = haversine_m_from(current, coords[remaining])
        k = int(np.argmin(d))
        nxt = remaining.pop(k)
        order.append(nxt)
        current = (float(coords[nxt, 0]), float(coords[nxt, 1]))
    return order


def sequence(stops: Sequence[Stop], direction: str, hub: Coordinates) -> List[Stop]:
    """Driving order for one bucket. Always a permutation of stops."""
    if len(stops) <= 1:
        return list(stops)

    located = [s for s in stops if is_finite_coordinates(s.coordinates)]
    unlocated = [s for s in stops if not is_finite_coordinates(s.coordinates)]
    if not located:
        return list(stops)

    coords = np.array([[float(s.coordinates[0]), float(s.coordinates[1])] for s in located], dtype=float)

    seed = None
    if direction == INBOUND:
        seed = int(np.argmax(haversine_m_from(hub, coords)))

    order = _nearest_neighbour_order(coords, hub, seed)
    return [located[i] for i in order] + unlocated
