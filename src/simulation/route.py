"""Waypoints, ITN route files and traversal along a route.

An ITN file holds one waypoint per line, fields separated by ``|``::

    0845453|4902352|Point 1 |0|
    0848501|4900249|Point 2 |0|

The first field is the longitude, the second the latitude, both scaled by
100000. Remaining fields (label, flag) are ignored.
"""
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

from .errors import IndexOutOfRange, RouteParseError

COORDINATE_SCALE = 100000.0
EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Coordinate:
    """A single WGS84 waypoint. No range validation is applied."""

    longitude: float
    latitude: float


Route = Sequence[Coordinate]


def parse_itn_line(line: str) -> Coordinate:
    parts = line.split("|")
    if len(parts) < 2:
        raise RouteParseError(f"expected at least two '|' separated fields, got {line!r}")
    try:
        longitude = float(parts[0]) / COORDINATE_SCALE
        latitude = float(parts[1]) / COORDINATE_SCALE
    except ValueError as exc:
        raise RouteParseError(f"non-numeric coordinate in {line!r}") from exc
    if not (math.isfinite(longitude) and math.isfinite(latitude)):
        raise RouteParseError(f"non-finite coordinate in {line!r}")
    return Coordinate(longitude, latitude)


def load_route(path: Union[str, Path]) -> List[Coordinate]:
    """Read an ITN file and return its waypoints in file order.

    Blank lines are skipped. Any unreadable file or malformed line raises
    RouteParseError.
    """
    path = Path(path)
    waypoints: List[Coordinate] = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    waypoints.append(parse_itn_line(line))
                except RouteParseError as exc:
                    raise RouteParseError(str(exc), path=path, line_number=line_number) from exc
    except OSError as exc:
        raise RouteParseError(f"cannot read route file: {exc.strerror}", path=path) from exc
    return waypoints


def list_route_files(directory: Union[str, Path]) -> List[Path]:
    """Return the ``*.itn`` files in ``directory`` sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == ".itn")


def at(route: Route, index: int) -> Coordinate:
    if not 0 <= index < len(route):
        raise IndexOutOfRange(f"waypoint index {index} outside route of length {len(route)}")
    return route[index]


def advance(index: int, route_length: int) -> int:
    """Next waypoint index. Past the last waypoint the route starts over."""
    if route_length <= 0:
        raise IndexOutOfRange("cannot advance along an empty route")
    return (index + 1) % route_length


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two waypoints in kilometres."""
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_phi = phi2 - phi1
    d_lambda = math.radians(b.longitude - a.longitude)
    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))
