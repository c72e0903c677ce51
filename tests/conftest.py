"""Shared fixtures for joinpatch tests."""

import base64
from unittest.mock import Mock

import msgpack
import pytest
import requests


LAN_ENTRY = [bytes([192, 168, 1, 50]), 7777]


def pack_payload(obj) -> str:
    """MessagePack + URL-safe unpadded base64, the way the host encodes."""
    data = msgpack.packb(obj, use_bin_type=True)
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def join_object(groups, token=12345, flags=0):
    return [groups, ["lobby", {"mode": 2}], None, token, "meta", flags]


class FakeClock:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    def __init__(self, text: str, status_code: int = 200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


@pytest.fixture
def make_payload():
    """Build a join payload string from connection groups."""
    def _make(groups=None, **kwargs):
        if groups is None:
            groups = [[LAN_ENTRY]]
        return pack_payload(join_object(groups, **kwargs))
    return _make


@pytest.fixture
def lan_payload(make_payload):
    """One group, one entry: 192.168.1.50:7777."""
    return make_payload()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_session():
    """
    Build a requests-like session from {url: body | FakeResponse | Exception}.

    Unlisted URLs raise ConnectionError.
    """
    def _make(responses):
        session = Mock()

        def get(url, timeout=None):
            outcome = responses.get(url, requests.ConnectionError(f"no route to {url}"))
            if isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, FakeResponse):
                return outcome
            return FakeResponse(outcome)

        session.get.side_effect = get
        return session
    return _make


@pytest.fixture
def fake_response():
    return FakeResponse
