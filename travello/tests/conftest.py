import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]  # repo root
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from travello.backend.app import create_app  # noqa: E402
from travello.llm.backends import KeywordReplyBackend  # noqa: E402
from travello.llm.generation import GenerationClient  # noqa: E402
from travello.memory.crud import MessageStore  # noqa: E402
from travello.utils.error_handler import RetryPolicy  # noqa: E402

USER_ID = "user-42"


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class ScriptedBackend:
    """Backend that replays ``outcomes``: exceptions are raised, strings returned."""

    name = "scripted"

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def generate(self, context, message):
        self.calls.append((list(context), message))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingStore(MessageStore):
    """In-memory store that remembers every append call."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.appended = []

    def append(self, turn):
        self.appended.append(turn)
        return super().append(turn)


@pytest.fixture
def store():
    store = MessageStore.from_url("sqlite://")
    yield store
    store.dispose()


@pytest.fixture
def recording_store():
    store = RecordingStore.from_url("sqlite://")
    yield store
    store.dispose()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def fast_policy():
    return RetryPolicy(max_attempts=3, base_delay=0.01, backoff=2.0, max_delay=0.1, jitter=0.0)


@pytest.fixture
def make_generation(fast_policy, fake_sleep):
    def _make(backend=None, **kwargs):
        kwargs.setdefault("timeout_seconds", 5.0)
        return GenerationClient(
            backend or KeywordReplyBackend(),
            fast_policy,
            sleep=fake_sleep,
            rng=lambda: 0.0,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_client(recording_store, make_generation):
    def _make(backend=None, headers=None):
        app = create_app(store=recording_store, generation=make_generation(backend))
        client = TestClient(app)
        client.headers.update({"X-User-Id": USER_ID} if headers is None else headers)
        return client

    return _make


@pytest.fixture
def client(make_client):
    return make_client()


def seed_raw_row(store, session_id, role, content, user_id=None, seq=1):
    """Insert a row the way another client of the chat table might."""
    import uuid

    from travello.memory.models import ChatMessage, utc_now

    with store._session_factory() as db:
        db.add(
            ChatMessage(
                id=str(uuid.uuid4()),
                session_id=session_id,
                user_id=user_id,
                role=role,
                content=content,
                seq=seq,
                timestamp=utc_now(),
            )
        )
        db.commit()
