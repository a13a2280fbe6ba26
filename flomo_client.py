# flomo_client.py
import json
import logging
import socket
import threading
import time
import weakref
from typing import Any, Callable, List, Optional

import requests
from pydantic import BaseModel, Field, ValidationError, model_validator
from requests.adapters import HTTPAdapter
from urllib3 import PoolManager

from config import FlomoConfig
from errors import ContentValidationError, EncodingError, TransportError


# -----------------------------
# Response models
# -----------------------------
class _NullAsDefault(BaseModel):
    # flomo sends null for absent values; they take the field default
    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class Memo(_NullAsDefault):
    slug: str = ""
    creator_id: int = 0
    source: str = ""
    content: str = ""
    tags: List[str] = Field(default_factory=list)
    updated_at: str = ""
    created_at: str = ""


class FlomoResponse(_NullAsDefault):
    code: int = 0
    message: str = ""
    memo: Memo = Field(default_factory=Memo)


def memo_url(view_url: str, slug: str) -> str:
    return f"{view_url.rstrip('/')}/mine/?memo_id={slug}"


# -----------------------------
# Abortable transport
# -----------------------------
def _shutdown(conn) -> None:
    sock = getattr(conn, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        # already closed by the peer or by urllib3
        pass


class _TrackingPoolManager(PoolManager):
    """PoolManager that reports every connection its pools open."""

    def __init__(self, *args, on_connection: Callable[[Any], None], **kwargs):
        super().__init__(*args, **kwargs)
        self.on_connection = on_connection

    def _new_pool(self, scheme, host, port, request_context=None):
        pool = super()._new_pool(scheme, host, port, request_context=request_context)
        new_conn = pool._new_conn

        def _tracked_new_conn():
            conn = new_conn()
            self.on_connection(conn)
            return conn

        pool._new_conn = _tracked_new_conn
        return pool


class AbortableAdapter(HTTPAdapter):
    """
    HTTPAdapter whose ``close`` also breaks connections that are in use.

    A plain adapter only drops idle pooled connections, so a request blocked
    in another thread would keep waiting for its response or its timeout.
    Here the live sockets are shut down, which makes that request fail at
    once with a connection error. Connections opened after the abort are
    refused.
    """

    def __init__(self, *args, **kwargs):
        self._live = weakref.WeakSet()
        self._lock = threading.Lock()
        self._aborted = False
        super().__init__(*args, **kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        self._pool_connections = connections
        self._pool_maxsize = maxsize
        self._pool_block = block
        self.poolmanager = _TrackingPoolManager(
            num_pools=connections,
            maxsize=maxsize,
            block=block,
            on_connection=self._track,
            **pool_kwargs,
        )

    def _track(self, conn) -> None:
        with self._lock:
            if self._aborted:
                raise ConnectionAbortedError("request aborted")
            self._live.add(conn)

        # an abort can land between creating the connection and its socket
        connect = conn.connect

        def _connect():
            connect()
            with self._lock:
                aborted = self._aborted
            if aborted:
                _shutdown(conn)

        conn.connect = _connect

    def abort(self) -> None:
        with self._lock:
            self._aborted = True
            live = list(self._live)
        for conn in live:
            _shutdown(conn)

    def close(self) -> None:
        self.abort()
        super().close()


class AbortableSession(requests.Session):
    """Session that can be closed from another thread to cancel its request."""

    def __init__(self):
        super().__init__()
        self.mount("https://", AbortableAdapter())
        self.mount("http://", AbortableAdapter())


# -----------------------------
# Client
# -----------------------------
class FlomoClient:
    """
    Sends notes to the flomo incoming webhook.

    Holds only the configuration and a logger, so one instance can be shared
    by concurrent callers. Every call is a single POST: nothing is retried.
    """

    def __init__(
        self,
        config: FlomoConfig,
        logger: Optional[logging.Logger] = None,
        session_factory: Callable[[], requests.Session] = AbortableSession,
    ):
        self.config = config
        self.logger = logger or logging.getLogger("flomo.client")
        self.session_factory = session_factory

    @property
    def headers(self):
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.config.user_agent,
        }

    def write_note(self, content: str, session: Optional[requests.Session] = None) -> FlomoResponse:
        """
        Submit ``content`` as a new memo.

        ``session`` lets the caller own the connection: closing it from
        another thread aborts the pending request. Without one, a private
        session is opened for this call only.
        """
        started = time.monotonic()

        if not isinstance(content, str) or not content.strip():
            self.logger.error("Empty content provided")
            raise ContentValidationError("content cannot be empty")
        self.logger.info("Starting to send note (length: %d characters)", len(content))

        try:
            body = json.dumps({"content": content}, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            self.logger.error("Failed to marshal request body: %s", e)
            raise EncodingError(f"failed to marshal request body: {e}") from e
        self.logger.debug("Request body prepared (size: %d bytes)", len(body))

        if session is None:
            with self.session_factory() as own_session:
                resp = self._send(own_session, body)
        else:
            resp = self._send(session, body)

        self.logger.info("Note sent successfully (took %.3fs)", time.monotonic() - started)
        self.logger.info("Memo details - CreatedAt: %s, Tags: %s", resp.memo.created_at, resp.memo.tags)
        return resp

    def _send(self, session: requests.Session, body: bytes) -> FlomoResponse:
        url = self.config.api_url
        try:
            prepared = session.prepare_request(
                requests.Request("POST", url, data=body, headers=self.headers)
            )
        except (requests.RequestException, ValueError) as e:
            self.logger.error("Failed to create request: %s", e)
            raise EncodingError(f"failed to create request: {e}") from e

        self.logger.info("Sending request to %s", url)
        try:
            settings = session.merge_environment_settings(prepared.url, {}, None, None, None)
            response = session.send(prepared, timeout=self.config.timeout, **settings)
        except requests.Timeout as e:
            self.logger.error("Request timed out after %ss: %s", self.config.timeout, e)
            raise TransportError(f"request timed out after {self.config.timeout:g}s: {e}") from e
        except requests.RequestException as e:
            self.logger.error("Failed to send request: %s", e)
            raise TransportError(f"failed to send request: {e}") from e
        self.logger.info("Response received (status: %s)", response.status_code)

        # flomo puts its diagnostics in the body whatever the status
        try:
            resp = FlomoResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            self.logger.error("Failed to decode response (status %s): %s", response.status_code, e)
            raise EncodingError(f"failed to decode response (status {response.status_code}): {e}") from e

        if response.status_code != requests.codes.ok:
            self.logger.error("Request failed with status %d: %s", response.status_code, resp.message)
            raise TransportError(
                f"request failed with status {response.status_code}: {resp.message}",
                status_code=response.status_code,
                response=resp,
            )

        if not resp.memo.slug:
            self.logger.error("Service returned no memo (code %d): %s", resp.code, resp.message)
            raise TransportError(
                f"service returned no memo (code {resp.code}): {resp.message}",
                status_code=response.status_code,
                response=resp,
            )

        return resp
