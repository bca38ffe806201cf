"""
Wake-up sources for the watched log file.

A wake-up means "the file may have changed since you last looked". Sources
hand them to the single pipeline loop through a depth-1 queue: a wake-up that
arrives while one is already pending is merged into it, so the loop always
catches up to end-of-file on its next read and nothing is lost.

Two backends share that hand-off:

- ``WatchdogWakeups`` uses the platform's native notification API through
  watchdog (inotify, FSEvents, ReadDirectoryChangesW, kqueue).
- ``PollingWakeups`` stats the file on a fixed interval, for filesystems
  where native notifications are not delivered (network mounts, WSL2 /mnt).

Neither backend interprets what changed. Deletion, replacement and
truncation are detected by the tailer on the read that follows the wake-up.
"""

import logging
import os
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Protocol

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import WatcherError

logger = logging.getLogger(__name__)

# How often a blocked wait() re-checks that the backend thread is alive
HEALTH_CHECK_INTERVAL = 1.0

RELEVANT_EVENTS = {"modified", "created", "deleted", "moved", "closed"}


class WakeupSource(Protocol):
    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until a wake-up is pending; False if ``timeout`` expired first."""
        ...


class WakeupQueue:
    """Coalescing hand-off between a notification thread and the pipeline loop."""

    def __init__(self, health_check: Callable[[], None]):
        self._queue = queue.Queue(maxsize=1)
        self._health_check = health_check

    def signal(self) -> None:
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass  # already pending

    def wait(self, timeout: Optional[float] = None) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            self._health_check()
            if deadline is None:
                step = HEALTH_CHECK_INTERVAL
            else:
                step = max(0.0, min(HEALTH_CHECK_INTERVAL, deadline - time.monotonic()))
            try:
                self._queue.get(timeout=step)
                return True
            except queue.Empty:
                if deadline is not None and time.monotonic() >= deadline:
                    return False


class _LogFileEventHandler(FileSystemEventHandler):
    def __init__(self, path: str, on_change: Callable[[], None]):
        self.path = path
        self.on_change = on_change

    def on_any_event(self, event):
        if event.is_directory or event.event_type not in RELEVANT_EVENTS:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(p and os.path.abspath(os.fsdecode(p)) == self.path for p in paths):
            logger.debug("Log file event: %s", event)
            self.on_change()


class WatchdogWakeups:
    """
    Native change notifications via watchdog.

    Watchdog watches directories, so the observer is scheduled on the log
    file's parent directory and events are filtered down to the file itself.
    That also lets deletion and rename of the file come through as events.
    """

    def __init__(self, path):
        self.path = os.path.abspath(path)
        self._wakeups = WakeupQueue(self._check_observer)
        self._observer = None

    def start(self) -> None:
        if self._observer is not None:
            raise RuntimeError("Wake-up source already started")
        self._wakeups.signal()
        observer = Observer()
        handler = _LogFileEventHandler(self.path, self._wakeups.signal)
        try:
            observer.schedule(handler, os.path.dirname(self.path), recursive=False)
            observer.start()
        except OSError as e:
            raise WatcherError(f"Unable to watch {self.path} for changes: {e}") from e
        self._observer = observer
        logger.info("Watching %s for changes", self.path)

    def stop(self) -> None:
        if self._observer is None:
            return
        observer, self._observer = self._observer, None
        observer.stop()
        observer.join(timeout=5)

    def _check_observer(self) -> None:
        if self._observer is not None and not self._observer.is_alive():
            raise WatcherError("File watcher thread died")

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._wakeups.wait(timeout)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.stop()


class PollingWakeups:
    """Stat the log file every ``interval`` seconds and wake on any difference."""

    def __init__(self, path, interval: float = 1.0):
        self.path = os.path.abspath(path)
        self.interval = interval
        self._wakeups = WakeupQueue(self._check_thread)
        self._stop = threading.Event()
        self._thread = None

    def _snapshot(self):
        try:
            st = os.stat(self.path)
        except OSError:
            return None
        return (st.st_ino, st.st_size, st.st_mtime_ns)

    def _run(self, last) -> None:
        while not self._stop.wait(self.interval):
            current = self._snapshot()
            if current != last:
                last = current
                self._wakeups.signal()

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("Wake-up source already started")
        self._wakeups.signal()
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._snapshot(),),
            name="cloudlog-tail-poller",
            daemon=True,
        )
        self._thread.start()
        logger.info("Polling %s for changes every %.1fs", self.path, self.interval)

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=self.interval + 5)
        self._thread = None

    def _check_thread(self) -> None:
        if self._thread is not None and not self._thread.is_alive():
            raise WatcherError("File polling thread died")

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._wakeups.wait(timeout)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.stop()


def start_wakeup_source(path, mode: str = "auto", poll_interval: float = 1.0) -> WakeupSource:
    """
    Create and start the wake-up source for ``path``.

    ``mode`` is ``native``, ``poll`` or ``auto``; ``auto`` tries native
    notifications first and falls back to polling if they cannot be set up.
    """
    if not Path(path).parent.is_dir():
        raise WatcherError(f"Directory of {path} does not exist")

    if mode in ("auto", "native"):
        source = WatchdogWakeups(path)
        try:
            source.start()
            return source
        except WatcherError:
            if mode == "native":
                raise
            logger.warning("Native file notifications unavailable, falling back to polling",
                           exc_info=True)

    source = PollingWakeups(path, interval=poll_interval)
    source.start()
    return source
