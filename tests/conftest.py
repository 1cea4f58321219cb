"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment so settings never pick up a developer's .env file,
and provides an in-memory fake of the Dropbox HTTP API served through
``httpx.MockTransport``.
"""

import json
import os
import threading
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("STORAGE_PROVIDER", "dropbox")
os.environ.setdefault("STORAGE_ACCESS_TOKEN", "test-token-123")

from turnstore.adapters.rate_limit import CooldownRateLimiter  # noqa: E402
from turnstore.adapters.storage import DropboxStorageClient  # noqa: E402

TEST_TOKEN = "test-token-123"


def json_response(status_code: int, payload: Any) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


def error_response(status_code: int, error_summary: str, **error: Any) -> httpx.Response:
    return json_response(status_code, {"error_summary": error_summary, "error": error})


class FakeDropbox:
    """Minimal stand-in for the Dropbox files API.

    Stores files in memory keyed by full remote path, records every request,
    and lets tests queue canned responses that are returned before any
    routing happens.
    """

    def __init__(self) -> None:
        self.files: dict[str, tuple[bytes, datetime]] = {}
        self.requests: list[httpx.Request] = []
        self.queued: list[httpx.Response] = []
        self._clock = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def queue(self, response: httpx.Response) -> None:
        self.queued.append(response)

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _metadata(self, path: str) -> dict[str, Any]:
        _, modified = self.files[path]
        return {
            ".tag": "file",
            "name": path.rsplit("/", 1)[-1],
            "path_display": path,
            "server_modified": modified.strftime("%Y-%m-%dT%H:%M:%SZ"),
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
            if self.queued:
                return self.queued.pop(0)
            return self._route(request)

    def _route(self, request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.split("/2/", 1)[1]

        if endpoint == "files/upload":
            arg = json.loads(request.headers["Dropbox-API-Arg"])
            path = arg["path"]
            overwrite = arg.get("mode", {}).get(".tag") == "overwrite"
            if path in self.files and not overwrite:
                return error_response(409, "path/conflict/file/..", **{".tag": "path"})
            self.files[path] = (request.content, self._now())
            return json_response(200, self._metadata(path))

        if endpoint == "files/download":
            path = json.loads(request.headers["Dropbox-API-Arg"])["path"]
            if path not in self.files:
                return error_response(409, "path/not_found/..", **{".tag": "path"})
            return httpx.Response(200, content=self.files[path][0])

        if endpoint == "files/get_metadata":
            path = json.loads(request.content)["path"]
            if path not in self.files:
                return error_response(409, "path/not_found/...", **{".tag": "path"})
            return json_response(200, self._metadata(path))

        if endpoint == "files/delete_v2":
            path = json.loads(request.content)["path"]
            if path not in self.files:
                return error_response(409, "path_lookup/not_found/..", **{".tag": "path_lookup"})
            metadata = self._metadata(path)
            del self.files[path]
            return json_response(200, {"metadata": metadata})

        return httpx.Response(400, text=f"Unknown API function: {endpoint}")


@pytest.fixture
def fake_dropbox() -> FakeDropbox:
    return FakeDropbox()


@pytest.fixture
def limiter() -> CooldownRateLimiter:
    """Limiter whose countdown only advances through explicit tick() calls."""
    return CooldownRateLimiter(autostart_timer=False)


@pytest.fixture
def make_http_client():
    """Build httpx clients over MockTransport handlers; all are closed on teardown."""
    clients: list[httpx.Client] = []

    def factory(handler) -> httpx.Client:
        http_client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(http_client)
        return http_client

    yield factory
    for http_client in clients:
        http_client.close()


@pytest.fixture
def storage_client(fake_dropbox: FakeDropbox, limiter: CooldownRateLimiter, make_http_client):
    client = DropboxStorageClient(
        TEST_TOKEN,
        http_client=make_http_client(fake_dropbox),
        rate_limiter=limiter,
    )
    yield client
    client.close()
