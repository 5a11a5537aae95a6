from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

import pytest

from regsync.config.settings import Config
from regsync.models.reference import ImageReference


class FakeRegistryClient:
    """Records every call the operations make against the registry client."""

    def __init__(self, remote_images=(), local_images=(), tags=None, fail_on: Optional[str] = None):
        self.remote_images = set(remote_images)
        self.local_images = set(local_images)
        self.tags = tags or {}
        self.fail_on = fail_on
        self.calls: List[Tuple] = []

    def _record(self, *call):
        self.calls.append(call)
        if self.fail_on and call[0] == self.fail_on:
            from regsync.errors import TransportError
            raise TransportError(f"{call[0]} failed")

    def calls_to(self, name: str) -> List[Tuple]:
        return [call for call in self.calls if call[0] == name]

    def image_exists_at_remote(self, image, auth=None, deadline=None):
        self._record("image_exists_at_remote", image, auth)
        if ImageReference.parse(image).is_latest:
            return False
        return image in self.remote_images

    def image_exists_on_host(self, image, deadline=None):
        self._record("image_exists_on_host", image)
        return image in self.local_images

    def pull_and_wait(self, image, auth=None, deadline=None):
        self._record("pull_and_wait", image, auth)
        self.local_images.add(image)

    def tag(self, source, target):
        self._record("tag", source, target)

    def push_and_wait(self, image, auth=None, deadline=None):
        self._record("push_and_wait", image, auth)
        self.remote_images.add(image)

    def get_tags_for_repository(self, host, repository, deadline=None):
        self._record("get_tags_for_repository", host, repository)
        return self.tags.get(repository, [])


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None,
                 headers: Optional[Dict[str, str]] = None, reason: str = ""):
        self.status_code = status_code
        self.headers = headers or {}
        self.reason = reason
        self._body = body
        self.content = json.dumps(body).encode() if body is not None else b""

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeSession:
    def __init__(self, responses: List[FakeResponse], token_responses: List[FakeResponse] = ()):
        self.responses = list(responses)
        self.token_responses = list(token_responses)
        self.requests: List[Dict[str, Any]] = []
        self.token_requests: List[Dict[str, Any]] = []

    def request(self, method, url, headers=None, auth=None, timeout=None):
        self.requests.append({"method": method, "url": url, "headers": dict(headers or {}), "auth": auth})
        return self.responses.pop(0)

    def get(self, url, params=None, auth=None, timeout=None):
        self.token_requests.append({"url": url, "params": params, "auth": auth})
        return self.token_responses.pop(0)

    def post(self, url, data=None, timeout=None):
        self.token_requests.append({"url": url, "data": data})
        return self.token_responses.pop(0)


@pytest.fixture
def config(tmp_path, monkeypatch) -> Config:
    monkeypatch.setenv("REGSYNC_RETRY_DELAY", "0")
    monkeypatch.setenv("REGSYNC_RETRY_ATTEMPTS", "3")
    monkeypatch.setenv("REGSYNC_PROGRESS_STRIDE", "25")
    return Config(str(tmp_path))


@pytest.fixture
def fake_auth():
    def resolve(host, auth=None):
        return f"auth-for-{host or 'hub'}"
    return resolve
