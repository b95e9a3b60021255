"""Bounded pool for running merge jobs concurrently."""

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor

from ..domain.models import AssetInfo, FinalAsset, OwnerContext
from .merge_orchestrator import MergeOrchestrator

logger = logging.getLogger(__name__)


class MergeWorkerPool:
    """Runs merge jobs on a fixed number of worker threads.

    Each worker drives one ffmpeg subprocess at a time, so the pool size is
    the ceiling on concurrent media processing for this process. Jobs run on
    the pool's default orchestrator unless one is passed to ``submit``, which
    lets request-scoped orchestrators (own database session) share the pool.
    """

    def __init__(
        self,
        orchestrator: MergeOrchestrator | None = None,
        max_concurrent_merges: int = 2,
    ):
        if max_concurrent_merges < 1:
            raise ValueError("max_concurrent_merges must be at least 1")
        self.orchestrator = orchestrator
        self.max_concurrent_merges = max_concurrent_merges
        self.executor = ThreadPoolExecutor(
            max_workers=max_concurrent_merges, thread_name_prefix="merge"
        )
        self._cancel_events: set[threading.Event] = set()
        self._lock = threading.Lock()
        self._shutdown = False
        logger.info(f"Merge worker pool started with {max_concurrent_merges} workers")

    def submit(
        self,
        clips: Sequence,
        owner: OwnerContext,
        asset_info: AssetInfo | None = None,
        cancel_event: threading.Event | None = None,
        orchestrator: MergeOrchestrator | None = None,
    ) -> Future[FinalAsset]:
        """Queue a merge job; the future resolves to the FinalAsset."""
        orchestrator = orchestrator or self.orchestrator
        if orchestrator is None:
            raise ValueError("No merge orchestrator configured for this job")

        event = cancel_event or threading.Event()
        with self._lock:
            if self._shutdown:
                raise RuntimeError("Merge worker pool is shut down")
            self._cancel_events.add(event)

        future = self.executor.submit(
            orchestrator.merge_clips, clips, owner, asset_info, event
        )
        future.add_done_callback(lambda _: self._forget(event))
        return future

    def shutdown(self, wait: bool = True, cancel_running: bool = False) -> None:
        """Stop accepting jobs, optionally cancelling the ones in flight."""
        with self._lock:
            self._shutdown = True
            events = list(self._cancel_events)

        if cancel_running:
            logger.info(f"Cancelling {len(events)} running merge jobs")
            for event in events:
                event.set()

        self.executor.shutdown(wait=wait, cancel_futures=cancel_running)
        logger.info("Merge worker pool stopped")

    def _forget(self, event: threading.Event) -> None:
        with self._lock:
            self._cancel_events.discard(event)
