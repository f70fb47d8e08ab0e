from __future__ import annotations

from typing import Any

import pytest

from SimklAuth import (
    AuthError,
    AuthorizationCancelled,
    AuthorizationExpired,
    DeviceAuthorization,
    PinAuthenticator,
    PinRequestError,
)
from SimklConfig import SimklConfigStore
from SimklIO import SimklApiError

PENDING = {"result": "KO", "message": "Authorization pending"}


class FakeTransport:
    """Answers /oauth/pin with pin_response and status checks from a queue."""

    def __init__(self, pin_response: Any, statuses: list | None = None) -> None:
        self.pin_response = pin_response
        self.statuses = list(statuses or [])
        self.pin_calls: list[dict] = []
        self.status_calls: list[str] = []

    def request(self, method, path, params=None, body=None, authenticated=False, client_id=None):
        assert method == "GET"
        assert params == {"client_id": "client-123"}
        assert client_id == "client-123"
        if path == "/oauth/pin":
            self.pin_calls.append(params)
            if isinstance(self.pin_response, Exception):
                raise self.pin_response
            return self.pin_response
        self.status_calls.append(path)
        result = self.statuses.pop(0) if self.statuses else PENDING
        if isinstance(result, Exception):
            raise result
        return result


class CountingStore(SimklConfigStore):
    def __init__(self, path: str) -> None:
        super().__init__(path)
        self.token_writes = 0

    def setAccessToken(self, token: str) -> None:
        self.token_writes += 1
        super().setAccessToken(token)


def pin(expires_in: Any = 10, interval: Any = 2) -> dict:
    return {
        "result": "OK",
        "device_code": "DEVICE_CODE",
        "user_code": "ABCD1",
        "verification_url": "https://simkl.com/pin/",
        "expires_in": expires_in,
        "interval": interval,
    }


def approved(token: str = "secret-token") -> dict:
    return {"result": "OK", "access_token": token}


@pytest.fixture()
def counting_store(config_path) -> CountingStore:
    return CountingStore(str(config_path))


def make_auth(transport, store, clock, **kwargs) -> PinAuthenticator:
    return PinAuthenticator(transport, store, clock=clock, wait=clock.wait, **kwargs)


def test_success_on_fourth_poll(counting_store, clock) -> None:
    transport = FakeTransport(pin(10, 2), [PENDING, PENDING, PENDING, approved()])
    auth = make_auth(transport, counting_store, clock)

    assert auth.authenticate("client-123") == "secret-token"
    assert len(transport.status_calls) == 4
    assert transport.status_calls[0] == "/oauth/pin/ABCD1"
    assert auth.polls == 4
    assert counting_store.token_writes == 1
    assert counting_store.getAccessToken() == "secret-token"
    # one wait before every poll
    assert clock.waits == [2, 2, 2, 2]


def test_expires_after_two_polls(counting_store, clock) -> None:
    transport = FakeTransport(pin(3, 2))
    auth = make_auth(transport, counting_store, clock)

    with pytest.raises(AuthorizationExpired, match="timed out"):
        auth.authenticate("client-123")
    assert len(transport.status_calls) == 2
    assert counting_store.token_writes == 0
    assert counting_store.getAccessToken() is None


def test_cancel_between_first_and_second_poll(counting_store, clock) -> None:
    transport = FakeTransport(pin(10, 2))
    clock.cancel_on_wait = 2
    auth = make_auth(transport, counting_store, clock)

    with pytest.raises(AuthorizationCancelled):
        auth.authenticate("client-123")
    assert len(transport.status_calls) == 1
    assert counting_store.token_writes == 0


def test_cancel_event_stops_before_next_poll(counting_store, clock) -> None:
    transport = FakeTransport(pin(10, 2))
    auth = make_auth(transport, counting_store, clock, on_poll=lambda n, left: auth.cancel())

    with pytest.raises(AuthorizationCancelled):
        auth.authenticate("client-123")
    assert len(transport.status_calls) == 1
    assert auth.cancel_event.is_set()
    assert counting_store.getAccessToken() is None


def test_default_wait_observes_cancel_event(counting_store) -> None:
    transport = FakeTransport(pin(10, 2))
    auth = PinAuthenticator(transport, counting_store, on_code=lambda a: auth.cancel())

    with pytest.raises(AuthorizationCancelled):
        auth.authenticate("client-123")
    assert transport.status_calls == []


def test_transient_errors_keep_polling(counting_store, clock) -> None:
    transport = FakeTransport(
        pin(30, 5),
        [SimklApiError(500, "Internal Server Error"), SimklApiError(None, "timed out"), "garbage", approved("t2")],
    )
    auth = make_auth(transport, counting_store, clock)

    assert auth.authenticate("client-123") == "t2"
    assert len(transport.status_calls) == 4
    assert counting_store.token_writes == 1


def test_transient_error_at_deadline_is_expiry(counting_store, clock) -> None:
    transport = FakeTransport(pin(2, 2), [SimklApiError(503, "Service Unavailable")])
    auth = make_auth(transport, counting_store, clock)

    with pytest.raises(AuthorizationExpired):
        auth.authenticate("client-123")
    assert len(transport.status_calls) == 1


def test_ok_without_token_is_still_pending(counting_store, clock) -> None:
    transport = FakeTransport(pin(10, 5), [{"result": "OK"}, approved()])
    auth = make_auth(transport, counting_store, clock)

    assert auth.authenticate("client-123") == "secret-token"
    assert len(transport.status_calls) == 2


def test_pin_request_failure(counting_store, clock) -> None:
    transport = FakeTransport(SimklApiError(None, "Connection refused"))
    auth = make_auth(transport, counting_store, clock)

    with pytest.raises(PinRequestError, match="Connection refused"):
        auth.authenticate("client-123")
    assert transport.status_calls == []
    assert clock.waits == []


@pytest.mark.parametrize(
    "response",
    [
        {"result": "OK", "verification_url": "https://simkl.com/pin/", "expires_in": 900},
        {"result": "OK", "user_code": "ABCD1", "expires_in": 900},
        pin(expires_in=0),
        pin(expires_in="soon"),
        None,
        ["not", "a", "dict"],
    ],
)
def test_malformed_pin_response(counting_store, clock, response) -> None:
    transport = FakeTransport(response)
    auth = make_auth(transport, counting_store, clock)

    with pytest.raises(PinRequestError):
        auth.authenticate("client-123")
    assert transport.status_calls == []


def test_on_code_receives_authorization(counting_store, clock) -> None:
    seen: list[DeviceAuthorization] = []
    transport = FakeTransport(pin(900, 5), [approved()])
    auth = make_auth(transport, counting_store, clock, on_code=seen.append)

    auth.authenticate("client-123")
    assert len(seen) == 1
    authorization = seen[0]
    assert authorization.user_code == "ABCD1"
    assert authorization.verification_url == "https://simkl.com/pin/"
    assert authorization.expires_in == 900
    assert authorization.expires_at == 900
    assert authorization.interval == 5
    assert authorization.device_code == "DEVICE_CODE"


def test_on_poll_reports_remaining_time(counting_store, clock) -> None:
    polls: list[tuple] = []
    transport = FakeTransport(pin(10, 2), [PENDING, approved()])
    auth = make_auth(transport, counting_store, clock, on_poll=lambda n, left: polls.append((n, left)))

    auth.authenticate("client-123")
    assert polls == [(1, 8), (2, 6)]


def test_interval_has_a_floor(counting_store, clock) -> None:
    transport = FakeTransport(pin(10, 0.1), [approved()])
    auth = make_auth(transport, counting_store, clock, min_interval=1.0)

    auth.authenticate("client-123")
    assert clock.waits == [1.0]


def test_missing_interval_uses_default(counting_store, clock) -> None:
    response = pin(60)
    del response["interval"]
    transport = FakeTransport(response, [approved()])
    auth = make_auth(transport, counting_store, clock, default_interval=5.0)

    auth.authenticate("client-123")
    assert clock.waits == [5.0]


def test_clock_past_deadline_before_polling(counting_store, clock) -> None:
    transport = FakeTransport(pin(10, 2))

    def stall(authorization: DeviceAuthorization) -> None:
        clock.now += 60

    auth = make_auth(transport, counting_store, clock, on_code=stall)
    with pytest.raises(AuthorizationExpired):
        auth.authenticate("client-123")
    assert transport.status_calls == []


def test_not_reentrant(counting_store, clock) -> None:
    transport = FakeTransport(pin(10, 2), [approved()])
    auth = make_auth(transport, counting_store, clock)

    auth.is_authenticating.acquire()
    try:
        with pytest.raises(AuthError, match="already been started"):
            auth.authenticate("client-123")
    finally:
        auth.is_authenticating.release()
    assert transport.pin_calls == []

    # lock is free again after a finished attempt
    assert auth.authenticate("client-123") == "secret-token"


def test_new_attempt_after_cancel(counting_store, clock) -> None:
    transport = FakeTransport(pin(10, 2), [PENDING, approved()])
    clock.cancel_on_wait = 2
    auth = make_auth(transport, counting_store, clock, on_poll=lambda n, left: auth.cancel())

    with pytest.raises(AuthorizationCancelled):
        auth.authenticate("client-123")
    assert auth.cancel_event.is_set()

    clock.cancel_on_wait = None
    auth.on_poll = None
    assert auth.authenticate("client-123") == "secret-token"
    assert counting_store.token_writes == 1
