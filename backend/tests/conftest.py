"""
Shared test fixtures and configuration.
"""

import json
import os
from datetime import datetime, timedelta, timezone

import httpx
import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", "/tmp/shopmind_test_data")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_API_REQUESTS", "false")

from shopmind.models import Identity, Message, Product, Session, SessionKey  # noqa: E402
from shopmind.storage import LocalStorage, SessionStore  # noqa: E402
from shopmind.sync import RemoteSessionClient  # noqa: E402

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "data"))


@pytest.fixture
def store(storage):
    return SessionStore(storage)


@pytest.fixture
def identity():
    return Identity(name="Ada Shopper", email="ada@example.com")


@pytest.fixture
def key(identity):
    return SessionKey(user_id=identity.email)


class FakeClock:
    """Deterministic clock advanced by tests."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


def make_product(category: str, product_id: str = "p1") -> Product:
    return Product(id=product_id, name=f"{category} item", category=category, price=10.0)


def make_message(content: str, sender: str = "user", products=None, message_id: str = None) -> Message:
    make_message.counter += 1
    return Message(
        id=message_id or f"m{make_message.counter}",
        content=content,
        sender=sender,
        timestamp=T0,
        products=products or [],
    )


make_message.counter = 0


def make_session(
    session_id: str,
    minutes: float = None,
    user_id: str = "ada@example.com",
    messages=None,
) -> Session:
    """Build a session folded from ``messages``; ended after ``minutes`` when given."""
    from shopmind.core.aggregator import rebuild_metadata

    messages = messages or []
    return Session(
        session_id=session_id,
        user_id=user_id,
        start_time=T0,
        end_time=T0 + timedelta(minutes=minutes) if minutes is not None else None,
        messages=messages,
        metadata=rebuild_metadata(messages),
    )


class FakeRemoteService:
    """
    In-memory stand-in for the remote session service, served through
    httpx.MockTransport. Flip the ``fail_*`` flags to simulate outages.
    """

    def __init__(self):
        self.sessions = {}
        self.calls = []
        self.fail_create = False
        self.fail_append = False
        self.fail_fetch = False
        self.malformed_fetch = False
        self.next_id = 0

    def client(self, token: str = "test-token") -> RemoteSessionClient:
        return RemoteSessionClient(
            base_url="http://remote.test/api",
            token=token,
            transport=httpx.MockTransport(self.handle),
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        self.calls.append((request.method, path))
        body = json.loads(request.content) if request.content else {}

        if request.method == "POST" and path == "/chat/sessions":
            if self.fail_create:
                return httpx.Response(503, text="unavailable")
            self.next_id += 1
            session_id = f"session_{self.next_id}"
            self.sessions[session_id] = {
                "sessionId": session_id,
                "userId": body["userId"],
                "startTime": T0.isoformat(),
                "messages": [],
            }
            return httpx.Response(200, json={"sessionId": session_id, "startTime": T0.isoformat()})

        if request.method == "POST" and path == "/chat/send":
            if self.fail_append:
                raise httpx.ConnectError("connection refused", request=request)
            session = self.sessions.get(body["sessionId"])
            if session is None:
                return httpx.Response(404, json={"detail": "not found"})
            session["messages"].append({
                "id": f"remote_{len(session['messages'])}",
                "content": body["message"],
                "sender": body["sender"],
                "timestamp": body["timestamp"],
                "products": body.get("products", []),
            })
            return httpx.Response(200, json={"success": True})

        if path.startswith("/chat/session/"):
            session_id = path.rsplit("/", 1)[-1]
            if request.method == "GET":
                if self.fail_fetch:
                    raise httpx.ConnectTimeout("timed out", request=request)
                if self.malformed_fetch:
                    return httpx.Response(200, json={"sessionId": session_id, "messages": "oops"})
                if session_id not in self.sessions:
                    return httpx.Response(404, json={"detail": "not found"})
                return httpx.Response(200, json=self.sessions[session_id])
            if request.method == "PUT":
                if session_id in self.sessions and body.get("endTime"):
                    self.sessions[session_id]["endTime"] = body["endTime"]
                return httpx.Response(200, json={"success": session_id in self.sessions})

        return httpx.Response(404, json={"detail": "unknown route"})


@pytest.fixture
def remote():
    return FakeRemoteService()
