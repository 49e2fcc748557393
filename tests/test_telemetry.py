import random

import pytest

from simulation.route import Coordinate
from simulation.telemetry import IDLE_RPM, gear_for_speed, rpm_for, sample


@pytest.mark.parametrize(
    "speed, gear",
    [(0.0, 0), (5.0, 1), (15.0, 1), (29.9, 2), (45.0, 3), (70.0, 4), (90.0, 5), (130.0, 6)],
)
def test_gear_for_speed(speed, gear):
    assert gear_for_speed(speed) == gear


def test_rpm():
    assert rpm_for(0.0, 0) == IDLE_RPM
    assert rpm_for(50.0, 3) > rpm_for(50.0, 4) > IDLE_RPM


def test_sample_within_band():
    rng = random.Random(1)
    a, b = Coordinate(8.45453, 49.02352), Coordinate(8.48501, 49.00249)
    for _ in range(50):
        speed, gear, rpm = sample(a, b, rng, min_speed=40.0, max_speed=60.0)
        assert 40.0 <= speed <= 60.0
        assert gear == gear_for_speed(speed)
        assert rpm == rpm_for(speed, gear)


def test_sample_is_reproducible():
    a, b = Coordinate(8.45453, 49.02352), Coordinate(8.48501, 49.00249)
    assert sample(a, b, random.Random(3)) == sample(a, b, random.Random(3))
