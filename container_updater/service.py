"""
Replacement service.

Runs orchestrations off the event loop under the request-wide deadline,
optionally serializing runs that target the same container name, and records
metrics for every attempt.
"""

import asyncio
import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from container_updater.errors import (
    InternalError,
    ReplacementFailedError,
    UpdaterTimeoutError,
)
from container_updater.metrics import UpdaterMetrics
from container_updater.models import ReplacementOutcome, ReplacementRequest
from container_updater.orchestrator import ReplacementOrchestrator

logger = logging.getLogger(__name__)

# Outcome label for runs that end in InternalError
INTERNAL_OUTCOME = "internal"


class NameLocks:
    """
    One lock per container name.

    A name's lock exists only while some run holds or waits on it, so names
    that are requested once (or never exist) do not accumulate.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, name: str) -> Iterator[None]:
        """Block until ``name`` is free, then hold it for the body of the with block."""
        with self._guard:
            lock = self._locks.setdefault(name, threading.Lock())
            self._users[name] = self._users.get(name, 0) + 1
            contended = self._users[name] > 1

        if contended:
            logger.info(f"Waiting for running replacement of {name}")
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[name] -= 1
                if not self._users[name]:
                    del self._users[name]
                    del self._locks[name]


class ReplacementService:
    """Executes replacement requests for the HTTP front door."""

    def __init__(
        self,
        orchestrator: ReplacementOrchestrator,
        metrics: UpdaterMetrics,
        timeout_seconds: int,
        serialize_same_name: bool = True,
    ) -> None:
        """
        Initialize replacement service.

        Args:
            orchestrator: Orchestrator that performs the replacement
            metrics: Metrics to record attempts in
            timeout_seconds: Deadline for one replacement
            serialize_same_name: Hold a per-name lock for the whole sequence
        """
        self.orchestrator = orchestrator
        self.metrics = metrics
        self.timeout_seconds = timeout_seconds
        self.name_locks: Optional[NameLocks] = NameLocks() if serialize_same_name else None

    async def replace(self, request: ReplacementRequest) -> ReplacementOutcome:
        """
        Replace a container, raising if the run did not succeed.

        On deadline expiry a run that already started keeps running to
        completion; only the caller stops waiting for it. A run that has not
        started yet (queued behind the same name, or in the executor queue)
        is dropped.

        Raises:
            UpdaterTimeoutError: If the deadline expired
            ReplacementFailedError: If the run ended in a failure outcome
            InternalError: If the container's snapshot was unusable
        """
        abandoned = threading.Event()
        loop = asyncio.get_event_loop()
        future = loop.run_in_executor(None, self._run, request, abandoned)

        try:
            outcome = await asyncio.wait_for(asyncio.shield(future), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            abandoned.set()
            self.metrics.observe_timeout()
            logger.error(
                f"Replacement of {request.container_name} exceeded {self.timeout_seconds}s; "
                f"abandoning it"
            )
            raise UpdaterTimeoutError(self.timeout_seconds) from e

        if outcome is None:
            # Only possible once abandoned is set, which happens after the deadline
            raise UpdaterTimeoutError(self.timeout_seconds)
        if not outcome.success:
            raise ReplacementFailedError(request.container_name, outcome.label, outcome.cause)
        return outcome

    def _run(
        self, request: ReplacementRequest, abandoned: threading.Event
    ) -> Optional[ReplacementOutcome]:
        if self.name_locks is None:
            return self._run_unless_abandoned(request, abandoned)

        with self.name_locks.hold(request.container_name):
            return self._run_unless_abandoned(request, abandoned)

    def _run_unless_abandoned(
        self, request: ReplacementRequest, abandoned: threading.Event
    ) -> Optional[ReplacementOutcome]:
        if abandoned.is_set():
            logger.warning(
                f"Dropping replacement of {request.container_name} with {request.target_image}: "
                f"the caller's deadline passed before it could start"
            )
            return None
        return self._run_measured(request)

    def _run_measured(self, request: ReplacementRequest) -> ReplacementOutcome:
        self.metrics.in_flight.inc()
        start = time.monotonic()
        try:
            outcome = self.orchestrator.replace(request)
        except InternalError:
            self.metrics.observe_attempt(INTERNAL_OUTCOME, time.monotonic() - start)
            raise
        finally:
            self.metrics.in_flight.dec()
        self.metrics.observe_outcome(outcome, time.monotonic() - start)
        return outcome
