import json
import socket
import threading

import pytest
import requests

from config import FlomoConfig
from flomo_client import FlomoClient

API_URL = "https://flomoapp.com/iwh/MTIz/abcdef/"

OK_BODY = {
    "code": 0,
    "message": "已记录",
    "memo": {
        "slug": "MTA2NTQ5",
        "creator_id": 42,
        "source": "incoming_webhook",
        "content": "<p>hello #work #todo</p>",
        "tags": ["work", "todo"],
        "updated_at": "2024-03-01 10:00:00",
        "created_at": "2024-03-01 10:00:00",
    },
}


def make_response(status=200, payload=None, raw=None):
    resp = requests.Response()
    resp.status_code = status
    resp._content = raw if raw is not None else json.dumps(payload).encode("utf-8")
    resp.encoding = "utf-8"
    resp.headers["Content-Type"] = "application/json"
    return resp


class FakeSession(requests.Session):
    """A real session whose network hop is replaced by the transport."""

    def __init__(self, transport):
        super().__init__()
        self.transport = transport

    def send(self, request, **kwargs):
        return self.transport.handle(self, request, **kwargs)

    def close(self):
        super().close()
        self.transport.closed.set()


class FakeTransport:
    def __init__(self):
        self.requests = []
        self.send_kwargs = []
        self.outcome = None
        self.closed = threading.Event()

    def reply(self, status=200, payload=None, raw=None):
        self.outcome = make_response(status, payload, raw)

    def fail(self, exc):
        self.outcome = exc

    def respond(self, fn):
        """Answer each request with ``fn(prepared_request)``."""
        self.outcome = fn

    def session(self):
        return FakeSession(self)

    def handle(self, session, request, **kwargs):
        self.requests.append(request)
        self.send_kwargs.append(kwargs)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        if callable(self.outcome):
            return self.outcome(request)
        return self.outcome


class StallingServer:
    """Real HTTP listener that reads one request and never answers it."""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.url = f"http://127.0.0.1:{self.sock.getsockname()[1]}/iwh/test/"
        self.request_seen = threading.Event()
        self.client_closed = threading.Event()
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        try:
            conn, _ = self.sock.accept()
        except OSError:
            return
        conn.settimeout(5)
        with conn:
            data = b""
            try:
                while b"\r\n\r\n" not in data:
                    chunk = conn.recv(4096)
                    if not chunk:
                        break
                    data += chunk
                self.request_seen.set()
                while conn.recv(4096):
                    pass
                self.client_closed.set()
            except socket.timeout:
                pass
            except OSError:
                self.client_closed.set()

    def close(self):
        self.sock.close()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("FLOMO_API_URL", "FLOMO_TIMEOUT", "FLOMO_VIEW_URL"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def config():
    return FlomoConfig(api_url=API_URL)


@pytest.fixture
def transport():
    t = FakeTransport()
    t.reply(200, OK_BODY)
    return t


@pytest.fixture
def client(config, transport):
    return FlomoClient(config, session_factory=transport.session)


@pytest.fixture
def stalling_server(monkeypatch):
    for name in ("HTTP_PROXY", "http_proxy", "HTTPS_PROXY", "https_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    server = StallingServer()
    yield server
    server.close()
