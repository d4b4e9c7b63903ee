import pytest

from pysqsmock.engine.service import QueueService


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(clock):
    return QueueService(region_name="local-us-east-1", clock=clock)


@pytest.fixture
def live_service():
    return QueueService(region_name="local-us-east-1")
