import pytest

from longform.app.services.metrics import MetricsState
from longform.app.services.store import MemoryStore
from longform.app.services.value_cache import ValueCache
from longform.app.services.youtube_client import YouTubeClient
from longform.tests.fakes import FakeSession, FakeYouTube


@pytest.fixture
def youtube():
    return FakeYouTube()


@pytest.fixture
def session(youtube):
    return FakeSession(youtube)


@pytest.fixture
def metrics():
    return MetricsState()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def cache(store, metrics):
    return ValueCache(store, metrics)


@pytest.fixture
def client(store, metrics, session):
    return YouTubeClient(store, metrics, api_key="test-key", session=session, retry_delay=0)
