"""Human-in-the-loop rendezvous for login walls and CAPTCHAs."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable

from .constants import STOP_POLL_SECONDS
from .errors import HandoffBusyError, HandoffCancelledError, HandoffNotPendingError, StopRequested
from .ports import PageHandle


LOGGER = logging.getLogger(__name__)


class HandoffPurpose(str, Enum):
    """What the human is asked to do."""

    LOGIN = "login"
    CAPTCHA = "captcha"


class _Ticket:
    __slots__ = ("page", "html", "error", "done")

    def __init__(self, page: PageHandle) -> None:
        self.page = page
        self.html: str | None = None
        self.error: BaseException | None = None
        self.done = False


class HumanHandoffGate:
    """Single-slot rendezvous between a crawl thread and a human operator.

    - `wait_for_human` blocks the calling thread, with no timeout, until
      `signal` delivers HTML or `cancel` rejects the wait.
    - Only one wait may be outstanding; a second one raises `HandoffBusyError`.
    - The gate resets as soon as a wait is resolved, so it can be reused for
      the next source.
    """

    def __init__(self, purpose: HandoffPurpose) -> None:
        self.purpose = purpose
        self._cond = threading.Condition()
        self._ticket: _Ticket | None = None

    @property
    def is_waiting(self) -> bool:
        with self._cond:
            return self._ticket is not None

    def wait_for_human(
        self,
        page_handle: PageHandle,
        *,
        should_stop: Callable[[], bool] | None = None,
    ) -> str:
        """Block until a human signals completion; return the captured HTML.

        `should_stop` is polled while waiting; when it returns True the wait is
        abandoned with `StopRequested`.
        """

        with self._cond:
            if self._ticket is not None:
                raise HandoffBusyError(f"A {self.purpose.value} wait is already pending")
            ticket = _Ticket(page_handle)
            self._ticket = ticket
            self._cond.notify_all()

            LOGGER.info("Waiting for human %s", self.purpose.value)
            try:
                while not ticket.done:
                    if should_stop is not None and should_stop():
                        ticket.error = StopRequested()
                        break
                    self._cond.wait(timeout=STOP_POLL_SECONDS)
            finally:
                if self._ticket is ticket:
                    self._ticket = None

        if ticket.error is not None:
            raise ticket.error
        return ticket.html or ""

    def wait_until_pending(self, timeout: float | None = None) -> bool:
        """Block until some thread is waiting on the gate (used by operator surfaces/tests)."""

        with self._cond:
            return self._cond.wait_for(lambda: self._ticket is not None, timeout=timeout)

    def signal(self, html: str | None = None) -> str:
        """Resolve the pending wait.

        When `html` is omitted it is captured from the registered page handle.
        Raises `HandoffNotPendingError` when nothing is waiting.
        """

        with self._cond:
            ticket = self._ticket
        if ticket is None:
            raise HandoffNotPendingError(f"No {self.purpose.value} wait in progress")

        if html is None:
            html = ticket.page.page_source()

        with self._cond:
            if self._ticket is not ticket:
                raise HandoffNotPendingError(f"No {self.purpose.value} wait in progress")
            ticket.html = html
            ticket.done = True
            self._ticket = None
            self._cond.notify_all()
        return html

    def cancel(self, error: BaseException | None = None) -> bool:
        """Reject the pending wait with `error`; return False if nothing was pending."""

        with self._cond:
            ticket = self._ticket
            if ticket is None:
                return False
            ticket.error = error or HandoffCancelledError(f"{self.purpose.value.capitalize()} wait cancelled")
            ticket.done = True
            self._ticket = None
            self._cond.notify_all()
        return True


__all__ = ["HandoffPurpose", "HumanHandoffGate"]
