"""Concurrent worker that feeds task envelopes through the handler."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field

from bioscfg.errors import AssetLookupError, BiosCfgError, InvalidParametersError
from bioscfg.handler import HandleResult, TaskHandler
from bioscfg.models import GenericTask

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WorkerRunSummary:
    """Aggregate worker counters for CLI reporting."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    retry_requested: int = 0
    invalid: int = 0
    skipped: int = 0
    ack_uncertain: int = 0
    results: list[HandleResult] = field(default_factory=list)


class BiosCfgWorker:
    """Run envelopes through a ``TaskHandler`` with bounded concurrency.

    One envelope never takes the worker down: every exception is classified
    and counted. Once a stop is requested, envelopes not yet started are left
    for redelivery and in-flight tasks stop at their next step boundary.
    """

    def __init__(
        self,
        *,
        handler: TaskHandler,
        concurrency: int = 1,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.handler = handler
        self.concurrency = max(1, concurrency)
        self.stop_event = stop_event or threading.Event()
        self._lock = threading.Lock()

    def run(self, envelopes: Iterable[GenericTask]) -> WorkerRunSummary:
        summary = WorkerRunSummary()
        with self._signal_handlers(), ThreadPoolExecutor(
            max_workers=self.concurrency,
            thread_name_prefix="bioscfg-task",
        ) as executor:
            futures = [
                executor.submit(self._process, envelope, summary) for envelope in envelopes
            ]
            for future in futures:
                future.result()

        logger.info(
            "Worker finished: processed=%s succeeded=%s failed=%s",
            summary.processed,
            summary.succeeded,
            summary.failed,
        )
        return summary

    def request_stop(self) -> None:
        self.stop_event.set()

    def _process(self, envelope: GenericTask, summary: WorkerRunSummary) -> None:
        if self.stop_event.is_set():
            logger.info("Stop requested, leaving task %s for redelivery", envelope.id)
            self._count(summary, retry_requested=1)
            return

        try:
            result = self.handler.handle(envelope)
        except InvalidParametersError as error:
            logger.error("Dropping task %s with invalid parameters: %s", envelope.id, error)
            self._count(summary, invalid=1)
            return
        except AssetLookupError as error:
            logger.warning(
                "Asset lookup failed for task %s, requesting redelivery: %s",
                envelope.id,
                error,
            )
            self._count(summary, retry_requested=1)
            return
        except BiosCfgError as error:
            logger.error("Task %s failed before running: %s", envelope.id, error)
            self._count(summary, processed=1, failed=1)
            return
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error while handling task %s", envelope.id)
            self._count(summary, processed=1, failed=1)
            return

        if result.skipped:
            self._count(summary, skipped=1, result=result)
            return
        self._count(
            summary,
            processed=1,
            succeeded=int(result.ok),
            failed=int(not result.ok),
            ack_uncertain=int(result.ack_uncertain),
            result=result,
        )

    def _count(
        self,
        summary: WorkerRunSummary,
        *,
        processed: int = 0,
        succeeded: int = 0,
        failed: int = 0,
        retry_requested: int = 0,
        invalid: int = 0,
        skipped: int = 0,
        ack_uncertain: int = 0,
        result: HandleResult | None = None,
    ) -> None:
        with self._lock:
            summary.processed += processed
            summary.succeeded += succeeded
            summary.failed += failed
            summary.retry_requested += retry_requested
            summary.invalid += invalid
            summary.skipped += skipped
            summary.ack_uncertain += ack_uncertain
            if result is not None:
                summary.results.append(result)

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if threading.current_thread() is not threading.main_thread():
            # Signal handlers can only be installed in main thread.
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            logger.warning("Received %s, stopping after current steps", signal.Signals(signum).name)
            self.request_stop()

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)
