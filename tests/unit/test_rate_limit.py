"""Unit tests for the rate-limit key function."""
from starlette.requests import Request

from booking_common.auth import create_access_token
from booking_common.rate_limit import client_key


def make_request(authorization: str = "") -> Request:
    headers = [(b"authorization", authorization.encode())] if authorization else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "client": ("10.0.0.5", 1234)})


def test_authenticated_callers_are_keyed_per_user():
    token = create_access_token({"user_id": 12, "role": "requester"})

    assert client_key(make_request(f"Bearer {token}")) == "user:12"


def test_anonymous_or_invalid_tokens_fall_back_to_ip():
    assert client_key(make_request()) == "10.0.0.5"
    assert client_key(make_request("Bearer garbage")) == "10.0.0.5"
