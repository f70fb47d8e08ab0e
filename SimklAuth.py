"""
SimklAuth module: PIN (device code) authorization against Simkl.

Flow:
1. GET /oauth/pin asks for a user code and a verification URL
2. The code is handed to the caller for display
3. GET /oauth/pin/<user_code> is polled until the user approves it, the code
   expires or the caller cancels

The access token is written to the config store once, after a successful poll.
"""

from typing import Callable, NamedTuple, Optional

import logging
import threading
import time

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    wait_fixed,
)

import config
from SimklConfig import SimklConfigStore
from SimklIO import SimklApiError

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base class for PIN authorization failures."""


class PinRequestError(AuthError):
    """The initial PIN request failed. The whole attempt has to be restarted."""


class AuthorizationExpired(AuthError):
    """The user code expired before the user approved it."""


class AuthorizationCancelled(AuthError):
    """The caller stopped the attempt before it finished."""


class TransientPollError(AuthError):
    """A single status check failed. Polling carries on."""


# What the first PIN response tells us about this attempt
class DeviceAuthorization(NamedTuple):
    user_code: str
    verification_url: str
    expires_at: float
    interval: float
    expires_in: int
    device_code: Optional[str] = None


class PinAuthenticator(object):
    """
    Drives one PIN authorization attempt at a time.

    Args:
        transport: Object with a SimklIO-compatible request() method
        store: Config store the access token is written to
        on_code: Called with the DeviceAuthorization once the code is known
        on_poll: Called with (poll number, seconds left) before each status check
        clock: Time source used for both the deadline and the checks
        cancel_event: Setting this event stops the attempt at the next wait
        wait: Waits up to N seconds, returns True when cancelled.
            Defaults to cancel_event.wait
        min_interval: Lower bound for the poll interval reported by the server
    """

    def __init__(
        self,
        transport,
        store: SimklConfigStore,
        on_code: Optional[Callable[[DeviceAuthorization], None]] = None,
        on_poll: Optional[Callable[[int, float], None]] = None,
        clock: Optional[Callable[[], float]] = None,
        cancel_event: Optional[threading.Event] = None,
        wait: Optional[Callable[[float], bool]] = None,
        min_interval: Optional[float] = None,
        default_interval: Optional[float] = None,
    ):
        self.transport = transport
        self.store = store
        self.on_code = on_code
        self.on_poll = on_poll
        self.clock = clock or time.monotonic
        self.cancel_event = cancel_event or threading.Event()
        self._wait = wait or self.cancel_event.wait
        self.min_interval = (
            min_interval if min_interval is not None else getattr(config, "SIMKL_PIN_MIN_INTERVAL", 1.0)
        )
        self.default_interval = (
            default_interval if default_interval is not None else getattr(config, "SIMKL_PIN_DEFAULT_INTERVAL", 5.0)
        )
        self.polls = 0
        self.is_authenticating = threading.Lock()

    def cancel(self) -> None:
        """Ask a running attempt to stop. Call from another thread, not from a signal handler."""
        self.cancel_event.set()

    def authenticate(self, client_id: str) -> str:
        """
        Run the whole PIN flow and store the resulting access token.

        Returns:
            The access token

        Raises:
            PinRequestError: The PIN could not be requested
            AuthorizationExpired: The code expired without being approved
            AuthorizationCancelled: cancel() was called first
        """
        if not self.is_authenticating.acquire(blocking=False):
            raise AuthError("Authentication has already been started")
        try:
            self.polls = 0
            self.cancel_event.clear()
            authorization = self.requestCode(client_id)
            if self.on_code is not None:
                self.on_code(authorization)
            token = self._pollForToken(client_id, authorization)
            self.store.setAccessToken(token)
            logging.info(f"Simkl authorization succeeded after {self.polls} poll(s); token stored")
            return token
        finally:
            self.is_authenticating.release()

    def requestCode(self, client_id: str) -> DeviceAuthorization:
        """Ask Simkl for a new user code."""
        try:
            data = self.transport.request(
                "GET", "/oauth/pin", params={"client_id": client_id}, client_id=client_id
            )
        except SimklApiError as e:
            raise PinRequestError(f"Failed to get PIN: {e}") from e

        if not isinstance(data, dict) or not data.get("user_code") or not data.get("verification_url"):
            raise PinRequestError(f"Failed to get PIN: unexpected response {data!r}")

        try:
            expires_in = int(data.get("expires_in") or 0)
            interval = float(data.get("interval") or self.default_interval)
        except (TypeError, ValueError) as e:
            raise PinRequestError(f"Failed to get PIN: unexpected response {data!r}") from e
        if expires_in <= 0:
            raise PinRequestError(f"Failed to get PIN: invalid expires_in {data.get('expires_in')!r}")

        authorization = DeviceAuthorization(
            user_code=str(data["user_code"]),
            verification_url=str(data["verification_url"]),
            expires_at=self.clock() + expires_in,
            interval=interval,
            expires_in=expires_in,
            device_code=data.get("device_code"),
        )
        logging.debug(
            f"PIN {authorization.user_code} issued, expires in {expires_in}s, poll every {interval}s"
        )
        return authorization

    def _sleep(self, seconds: float) -> None:
        if self._wait(seconds):
            logging.info("PIN authorization cancelled")
            raise AuthorizationCancelled("Authorization cancelled.")

    def _expired(self, retry_state) -> None:
        logging.info(f"PIN authorization expired after {retry_state.attempt_number} poll(s)")
        raise AuthorizationExpired("Authorization timed out. Please try again.")

    def _checkPin(self, client_id: str, authorization: DeviceAuthorization) -> Optional[str]:
        """One status check. Returns the token, or None while still pending."""
        if self.cancel_event.is_set():
            raise AuthorizationCancelled("Authorization cancelled.")

        self.polls += 1
        if self.on_poll is not None:
            self.on_poll(self.polls, max(0.0, authorization.expires_at - self.clock()))

        try:
            data = self.transport.request(
                "GET",
                f"/oauth/pin/{authorization.user_code}",
                params={"client_id": client_id},
                client_id=client_id,
            )
        except SimklApiError as e:
            raise TransientPollError(f"PIN status check failed: {e}") from e

        if not isinstance(data, dict):
            raise TransientPollError(f"PIN status check returned {data!r}")
        if data.get("result") == "OK" and data.get("access_token"):
            return data["access_token"]
        logging.debug(f"PIN {authorization.user_code} not approved yet: {data.get('message') or data.get('result')}")
        return None

    def _pollForToken(self, client_id: str, authorization: DeviceAuthorization) -> str:
        interval = max(authorization.interval, self.min_interval)
        deadline = authorization.expires_at

        if self.clock() >= deadline:
            raise AuthorizationExpired("Authorization timed out. Please try again.")
        # Wait before the first check as well; the user cannot have approved yet
        self._sleep(interval)

        retrying = Retrying(
            sleep=self._sleep,
            wait=wait_fixed(interval),
            stop=lambda retry_state: self.clock() >= deadline,
            retry=retry_if_result(lambda token: token is None) | retry_if_exception_type(TransientPollError),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            retry_error_callback=self._expired,
        )
        return retrying(self._checkPin, client_id, authorization)
