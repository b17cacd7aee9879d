"""
Request gate applied to every outgoing ZEFIX API request.

decorate_request() attaches Basic-Auth credentials when they are configured
and spaces requests issued through one client at least min_interval_ms apart.
The spacing is tracked by a ThrottleState owned by that client, so two
clients throttle independently.

Usage:
    state = ThrottleState()
    prepared = session.prepare_request(requests.Request("GET", url))
    prepared = decorate_request(prepared, auth, ThrottleConfig(1000), state)
    session.send(prepared)
"""

import logging
import sys
import threading
import time
from typing import Callable, Optional

import requests
from requests.structures import CaseInsensitiveDict

from zefix_config import ThrottleConfig, ZefixAuth
from zefix_exceptions import (
    ZefixConfigurationError,
    ZefixEnvironmentError,
    ZefixRequestCancelled,
)

try:
    import base64
except ImportError:  # pragma: no cover
    # base64 needs the binascii extension, which lives in lib-dynload on
    # distro and container CPython builds and is absent from some minimal images
    base64 = None

logger = logging.getLogger(__name__)

# How often a queued caller re-checks its cancel event
LOCK_POLL_SECONDS = 0.05


def to_base64(text: str) -> str:
    """
    Encode the UTF-8 bytes of text as standard base64.

    Raises:
        ZefixEnvironmentError: If the interpreter has no base64 codec
    """
    if base64 is None:
        raise ZefixEnvironmentError("No base64 encoding available in this environment")
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def basic_auth_header(auth: Optional[ZefixAuth]) -> Optional[str]:
    """Authorization header value for auth, or None if credentials are incomplete."""
    if auth is None or not auth.is_complete:
        return None
    return f"Basic {to_base64(f'{auth.username}:{auth.password}')}"


def ensure_server_environment() -> None:
    """
    Refuse to run inside a browser.

    The ZEFIX API does not allow cross-origin calls, so a client running in
    Pyodide/PyScript with a page (window and document) cannot work.

    Raises:
        ZefixConfigurationError: If both js.window and js.document are present
    """
    if sys.platform != "emscripten":
        return
    try:
        import js
    except ImportError:
        return
    if hasattr(js, "window") and hasattr(js, "document"):
        raise ZefixConfigurationError(
            "ZEFIX API Client Error: This client is for server-side use only. "
            "It cannot be used in browsers due to CORS restrictions on the ZEFIX API. "
            "Please make API calls from your backend server."
        )


class ThrottleState:
    """Time of the last request dispatched through one client."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Initialize an empty throttle state ("never dispatched").

        Args:
            clock: Monotonic clock returning seconds
        """
        self.clock = clock
        self.last_request_time: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def has_dispatched(self) -> bool:
        return self.last_request_time is not None

    def wait_for_slot(
        self,
        min_interval_ms: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> float:
        """
        Block until min_interval_ms has passed since the last dispatch, then claim the slot.

        Reading the last dispatch time, waiting and recording the new time
        happen under one lock, so concurrent callers are spaced out too.

        Args:
            min_interval_ms: Minimum spacing between dispatches
            cancel_event: Optional event that aborts the wait when set

        Returns:
            Seconds spent waiting

        Raises:
            ZefixRequestCancelled: If cancel_event is set before the slot is claimed
        """
        interval = min_interval_ms / 1000.0
        self._acquire(cancel_event)
        try:
            remaining = 0.0
            if self.last_request_time is not None:
                remaining = interval - (self.clock() - self.last_request_time)

            if remaining > 0:
                logger.debug(f"Throttling request for {remaining * 1000:.0f} ms")
                if cancel_event is None:
                    time.sleep(remaining)
                elif cancel_event.wait(remaining):
                    raise ZefixRequestCancelled("Request cancelled while waiting for throttle slot")

            if cancel_event is not None and cancel_event.is_set():
                raise ZefixRequestCancelled("Request cancelled before dispatch")

            # Recorded after the wait, so the next caller waits a full interval
            self.last_request_time = self.clock()
            return max(remaining, 0.0)
        finally:
            self._lock.release()

    def _acquire(self, cancel_event: Optional[threading.Event]) -> None:
        """
        Take the lock, giving up if cancel_event is set while queued behind another caller.

        Raises:
            ZefixRequestCancelled: If cancel_event is set before the lock is taken
        """
        if cancel_event is None:
            self._lock.acquire()
            return
        while not self._lock.acquire(timeout=LOCK_POLL_SECONDS):
            if cancel_event.is_set():
                raise ZefixRequestCancelled("Request cancelled while queued for throttle slot")


def decorate_request(
    request: requests.PreparedRequest,
    auth: Optional[ZefixAuth],
    throttle: Optional[ThrottleConfig],
    state: ThrottleState,
    cancel_event: Optional[threading.Event] = None,
) -> requests.PreparedRequest:
    """
    Apply auth and throttling to a prepared request.

    Args:
        request: Prepared request, left unmodified
        auth: Credentials; the header is only set when both fields are non-empty
        throttle: Minimum interval between dispatches, or None
        state: Throttle state of the issuing client
        cancel_event: Optional event that aborts a pending throttle wait

    Returns:
        A copy of request ready to be sent

    Raises:
        ZefixRequestCancelled: If cancel_event fires during the throttle wait
    """
    decorated = request.copy()
    if decorated.headers is None:
        decorated.headers = CaseInsensitiveDict()

    header = basic_auth_header(auth)
    if header is not None:
        decorated.headers["Authorization"] = header

    if throttle is not None and throttle.enabled:
        state.wait_for_slot(throttle.min_interval_ms, cancel_event)

    return decorated
