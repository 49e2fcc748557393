import threading
import time

import pytest

from simulation.errors import PublishError
from simulation.protocol import parse_message
from simulation.route import Coordinate

SAMPLE_ITN = (
    "0845453|4902352|Point 1 |0|\n"
    "0848501|4900249|Point 2 |0|\n"
    "0849295|4899460|Point 3 |0|\n"
    "0849796|4897723|Point 4 |0|\n"
)


class RecordingChannel:
    """In-memory stand-in for the MQTT channel."""

    def __init__(self):
        self.published = []
        self.fail_topics = set()
        self.fail_next = 0
        self._lock = threading.Lock()

    def publish(self, topic, payload, qos=1, retain=False):
        with self._lock:
            if self.fail_next > 0 or topic in self.fail_topics:
                self.fail_next = max(0, self.fail_next - 1)
                raise PublishError(f"publish to {topic} failed: no connection")
            self.published.append((topic, payload, qos, retain))

    def messages(self, topic=None):
        with self._lock:
            records = list(self.published)
        return [parse_message(payload) for t, payload, _, _ in records if topic is None or t == topic]

    def wait_for(self, count, timeout=5.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with self._lock:
                if len(self.published) >= count:
                    return True
            time.sleep(0.005)
        return False


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def sample_route():
    return [
        Coordinate(8.45453, 49.02352),
        Coordinate(8.48501, 49.00249),
        Coordinate(8.49295, 48.99460),
        Coordinate(8.49796, 48.97723),
    ]


@pytest.fixture
def itn_file(tmp_path):
    path = tmp_path / "karlsruhe.itn"
    path.write_text(SAMPLE_ITN, encoding="utf-8")
    return path
