"""Placeholder sensor values for a simulated vehicle."""
import random
from typing import Tuple

from . import config
from .route import Coordinate, haversine_km

IDLE_RPM = 800.0
# Upper speed (km/h) of gears 1..6; anything faster stays in 6th.
GEAR_TOP_SPEEDS = (15.0, 30.0, 50.0, 70.0, 95.0)
RPM_PER_KMH = (110.0, 75.0, 52.0, 40.0, 32.0, 26.0)


def gear_for_speed(speed_kmh: float) -> int:
    if speed_kmh <= 0:
        return 0
    for gear, top_speed in enumerate(GEAR_TOP_SPEEDS, start=1):
        if speed_kmh <= top_speed:
            return gear
    return len(GEAR_TOP_SPEEDS) + 1


def rpm_for(speed_kmh: float, gear: int) -> float:
    if gear <= 0:
        return IDLE_RPM
    return round(IDLE_RPM + speed_kmh * RPM_PER_KMH[gear - 1], 1)


def sample(
    previous: Coordinate,
    current: Coordinate,
    rng: random.Random,
    min_speed: float = config.MIN_SPEED_KMH,
    max_speed: float = config.MAX_SPEED_KMH,
) -> Tuple[float, int, float]:
    """Return (speed_kmh, gear, rpm) for a move from ``previous`` to ``current``."""
    if haversine_km(previous, current) == 0.0:
        speed = 0.0
    else:
        speed = round(rng.uniform(min_speed, max_speed), 2)
    gear = gear_for_speed(speed)
    return speed, gear, rpm_for(speed, gear)
