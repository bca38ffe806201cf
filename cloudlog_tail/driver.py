"""
The pipeline loop: wake-ups in, records out to Cloudlog, strictly in order.

Each record is resolved before the next one is attempted. A transient
failure is retried with exponential backoff and holds back every record read
after it; the loop only moves past a record once it is delivered, or
rejected by the server under the ``skip`` policy.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from .errors import AuthenticationError, DeliveryError, RecordRejectedError
from .splitter import Record
from .tailer import Tailer
from .uploader import Uploader, UploadResult
from .watcher import WakeupSource

logger = logging.getLogger(__name__)


@dataclass
class DeliveryAttempt:
    record: Record
    attempts: int = 0
    last_error: Optional[str] = None


@dataclass
class DeliveryStats:
    delivered: int = 0
    skipped: int = 0
    headers: int = 0
    bytes: int = 0
    retries: int = 0


@dataclass
class RetryPolicy:
    initial: float = 1.0
    maximum: float = 300.0
    factor: float = 2.0
    max_attempts: Optional[int] = None

    def delay(self, attempts: int) -> float:
        return min(self.maximum, self.initial * self.factor ** (attempts - 1))


@dataclass
class PipelineDriver:
    wakeups: WakeupSource
    tailer: Tailer
    uploader: Uploader
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    on_rejected: str = "skip"
    sleep: Callable[[float], None] = time.sleep
    stats: DeliveryStats = field(default_factory=DeliveryStats)

    def run(self) -> None:
        """Process wake-ups until an error stops the pipeline."""
        while True:
            if self.wakeups.wait():
                self.process_wakeup()

    def process_wakeup(self) -> int:
        records = self.tailer.on_wakeup()
        if records:
            logger.info("Change detected in log file: %d new records", len(records))
        delivered = 0
        for record in records:
            if self.deliver(record):
                delivered += 1
        return delivered

    def deliver(self, record: Record) -> bool:
        """
        Deliver one record, retrying transient failures.

        Returns True once the record is accepted, False if it was a header or
        was rejected and skipped. Raises DeliveryError when the pipeline has
        to stop.
        """
        if record.header:
            self.stats.headers += 1
            logger.debug("Skipping ADIF header (%d bytes)", len(record))
            return False

        attempt = DeliveryAttempt(record)
        while True:
            attempt.attempts += 1
            result = self.uploader.upload(record)
            if result.ok:
                self.stats.delivered += 1
                self.stats.bytes += len(record)
                logger.debug("Uploaded %d bytes of log data", len(record))
                return True

            attempt.last_error = result.reason
            if result.permanent:
                return self._rejected(attempt, result)

            if self.retry.max_attempts is not None and attempt.attempts >= self.retry.max_attempts:
                raise DeliveryError(
                    f"Giving up on record after {attempt.attempts} attempts: {attempt.last_error}"
                )

            delay = self.retry.delay(attempt.attempts)
            logger.warning(
                "Failed to upload log record (attempt %d): %s; retrying in %.1fs",
                attempt.attempts, result.reason, delay,
            )
            self.stats.retries += 1
            self.sleep(delay)

    def _rejected(self, attempt: DeliveryAttempt, result: UploadResult) -> bool:
        if result.auth_failed:
            raise AuthenticationError(f"Cloudlog refused the API key: {result.reason}")
        if self.on_rejected == "halt":
            raise RecordRejectedError(f"Cloudlog rejected log record: {result.reason}")

        self.stats.skipped += 1
        logger.error(
            "Cloudlog rejected log record, skipping it: %s\n%s",
            result.reason, attempt.record.raw.decode("utf-8", errors="replace"),
        )
        return False
