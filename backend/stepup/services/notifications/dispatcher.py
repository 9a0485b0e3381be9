"""Bounded, fire-and-forget delivery of OTP codes."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from stepup.core.logger import mask_identity
from stepup.services._shared.ports.notifier import Notifier, PurposeContext

log = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Hand code deliveries to a bounded worker pool.

    ``submit`` never blocks on the transport and never raises into the
    caller: the challenge is already stored and can be resent, so a failed or
    dropped delivery is only logged.

    :param notifier: Transport adapter doing the actual delivery.
    :param max_workers: Worker threads.
    :param queue_capacity: Deliveries allowed to wait for a worker; beyond
        that new deliveries are dropped.
    """

    def __init__(
        self,
        notifier: Notifier,
        *,
        max_workers: int = 2,
        queue_capacity: int = 100,
    ) -> None:
        if max_workers <= 0 or queue_capacity < 0:
            raise ValueError("max_workers must be positive and queue_capacity non-negative")
        self.notifier = notifier
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="otp-notify"
        )
        self._slots = threading.BoundedSemaphore(max_workers + queue_capacity)

    def submit(self, identity: str, code: str, context: PurposeContext) -> bool:
        """
        Queue a delivery.

        :returns: ``True`` if queued, ``False`` if dropped (pool saturated or shut down).
        """
        masked = mask_identity(identity)
        if not self._slots.acquire(blocking=False):
            log.error("otp.delivery_dropped reason=queue_full identity=%s", masked)
            return False
        try:
            future = self._executor.submit(self._deliver, identity, code, context)
        except RuntimeError:
            # executor already shut down
            self._slots.release()
            log.error("otp.delivery_dropped reason=shutdown identity=%s", masked)
            return False
        future.add_done_callback(self._release)
        return True

    def _release(self, _future: Future[None]) -> None:
        self._slots.release()

    def _deliver(self, identity: str, code: str, context: PurposeContext) -> None:
        masked = mask_identity(identity)
        try:
            self.notifier.send(identity, code, context)
        except Exception:
            log.exception(
                "otp.delivery_failed identity=%s purpose=%s",
                masked,
                context.purpose,
                extra={"identity": masked, "purpose": context.purpose},
            )
            return
        log.info("otp.delivered identity=%s purpose=%s", masked, context.purpose)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting deliveries; optionally wait for queued ones."""
        self._executor.shutdown(wait=wait)
