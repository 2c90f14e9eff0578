"""
Batch runner: resolves many companies with a small worker pool.

Workers only resolve; they post ``(record, result, error)`` messages to an
outbox and the calling thread folds them into the records and the stats.
"""

import logging
import queue
import threading
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from sitefinder.core.exceptions import BatchAbortedError, SystemicError
from sitefinder.core.models import BatchStats, CompanyQuery, CompanyRecord, ResolutionResult


logger = logging.getLogger(__name__)

Message = Tuple[CompanyRecord, Optional[ResolutionResult], Optional[Exception]]


class Resolver(Protocol):
    def resolve(self, query: CompanyQuery, attempt: int = 0) -> ResolutionResult:
        ...


class BatchRunner:
    """
    Run the resolver over a batch of records with bounded concurrency.

    Cancellation is cooperative: ``stop()`` keeps workers from pulling new
    companies while the ones in flight finish.
    """

    def __init__(self, resolver: Resolver, workers: int = 3, company_delay: float = 0.4,
                 max_retries: int = 1):
        """
        Args:
            resolver: Object with ``resolve(query, attempt)``
            workers: Pool size (1-3)
            company_delay: Pause a worker takes after each company
            max_retries: Times a "Not Available" company is queued again
        """
        self.resolver = resolver
        self.workers = max(1, workers)
        self.company_delay = company_delay
        self.max_retries = max_retries
        self.stop_event = threading.Event()

    def stop(self) -> None:
        """Stop pulling new companies; in-flight ones still finish."""
        if not self.stop_event.is_set():
            logger.info("Stop requested, finishing in-flight companies")
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    def run(self, records: Sequence[CompanyRecord],
            on_result: Optional[Callable[[CompanyRecord], None]] = None) -> BatchStats:
        """Resolve every pending record.

        Args:
            records: Records to process; only those with status 'pending' run
            on_result: Called on the calling thread as each record completes

        Returns:
            Aggregated statistics

        Raises:
            BatchAbortedError: A worker hit a systemic failure
        """
        pending = [record for record in records if record.status == 'pending']
        stats = BatchStats(total=len(pending))
        if not pending:
            return stats

        work: "queue.Queue[Optional[CompanyRecord]]" = queue.Queue()
        outbox: "queue.Queue[Message]" = queue.Queue()
        for record in pending:
            work.put(record)

        threads = [
            threading.Thread(target=self._worker, args=(work, outbox),
                             name=f"resolver-{index}", daemon=True)
            for index in range(min(self.workers, len(pending)))
        ]
        for thread in threads:
            thread.start()
        logger.info(f"Processing {len(pending)} companies with {len(threads)} workers")

        failure: Optional[Exception] = None
        outstanding = len(pending)
        try:
            while outstanding and not self.stop_event.is_set():
                try:
                    message = outbox.get(timeout=0.2)
                except queue.Empty:
                    continue
                outstanding -= 1
                requeued, error = self._handle(message, work, stats, on_result, retry=True)
                outstanding += requeued
                failure = failure or error
        except KeyboardInterrupt:
            logger.warning("Interrupted, stopping batch")
            self.stop()
        except Exception:
            # Workers must not keep resolving companies nobody will record
            self.stop()
            raise
        finally:
            for _ in threads:
                work.put(None)
            for thread in threads:
                thread.join()

        # Results from companies that were in flight when the batch stopped
        while True:
            try:
                message = outbox.get_nowait()
            except queue.Empty:
                break
            _, error = self._handle(message, work, stats, on_result, retry=False)
            failure = failure or error

        stats.stopped = self.stop_event.is_set()
        logger.info(f"Batch finished: {stats.found} found, {stats.not_available} not available, "
                    f"{stats.processed}/{stats.total} processed")

        if failure is not None:
            raise BatchAbortedError(f"Batch aborted: {failure}", cause=failure)
        return stats

    def rerun_not_available(self, records: Sequence[CompanyRecord],
                            on_result: Optional[Callable[[CompanyRecord], None]] = None) -> BatchStats:
        """Reset every "Not Available" record and run those again."""
        targets: List[CompanyRecord] = [record for record in records
                                        if record.status == 'not_available']
        for record in targets:
            record.reset()
        logger.info(f"Re-running {len(targets)} companies without a website")
        return self.run(targets, on_result=on_result)

    def _worker(self, work: "queue.Queue", outbox: "queue.Queue") -> None:
        while not self.stop_event.is_set():
            record = work.get()
            if record is None:
                break
            if self.stop_event.is_set():
                work.put(record)
                break
            outbox.put(self._resolve_one(record))
            if self.company_delay > 0:
                self.stop_event.wait(self.company_delay)

    def _resolve_one(self, record: CompanyRecord) -> Message:
        try:
            query = record.to_query()
        except ValueError as e:
            logger.warning(f"Skipping record {record.id!r}: {e}")
            return record, ResolutionResult.not_available(), None

        try:
            return record, self.resolver.resolve(query, attempt=record.retries), None
        except SystemicError as e:
            logger.error(f"Systemic failure while resolving '{record.name}': {e}")
            self.stop()
            return record, None, e
        except Exception as e:
            logger.error(f"Error resolving '{record.name}': {e}", exc_info=True)
            return record, ResolutionResult.not_available(), None

    def _handle(self, message: Message, work: "queue.Queue", stats: BatchStats,
                on_result: Optional[Callable[[CompanyRecord], None]],
                retry: bool) -> Tuple[int, Optional[Exception]]:
        """Fold one message in. Returns (records queued again, systemic error)."""
        record, result, error = message
        if error is not None:
            return 0, error

        if (retry and not result.found and record.retries < self.max_retries
                and not self.stop_event.is_set()):
            record.retries += 1
            stats.retried += 1
            logger.info(f"No website for '{record.name}', retrying ({record.retries}/{self.max_retries})")
            work.put(record)
            return 1, None

        record.apply(result)
        stats.fold(result)
        if on_result is not None:
            on_result(record)
        return 0, None
