# Fakes and sample data shared by the test modules
from pathlib import Path

from cloudlog_tail.tailer import Tailer
from cloudlog_tail.uploader import UploadResult

ADIF_HEADER = b"ADIF export\n<ADIF_VER:5>3.1.0\n<PROGRAMID:6>WSJT-X\n<EOH>"


def qso(call, band="20M", mode="FT8", comment=None):
    """Build one ADIF QSO record the way WSJT-X writes them."""
    fields = [("CALL", call), ("BAND", band), ("MODE", mode), ("QSO_DATE", "20240115")]
    if comment is not None:
        fields.append(("COMMENT", comment))
    body = " ".join(f"<{name}:{len(value.encode())}>{value}" for name, value in fields)
    return f"{body} <EOR>".encode()


class WakeupsExhausted(Exception):
    pass


class FakeWakeups:
    def __init__(self, ticks=1, on_wait=None):
        self.ticks = ticks
        self.waits = 0
        self.on_wait = on_wait

    def start(self):
        pass

    def stop(self):
        pass

    def wait(self, timeout=None):
        self.waits += 1
        if self.on_wait is not None:
            self.on_wait(self.waits)
        if self.ticks <= 0:
            raise WakeupsExhausted()
        self.ticks -= 1
        return True


class RecordingUploader:
    def __init__(self, results=()):
        self.results = list(results)
        self.uploaded = []

    def upload(self, record):
        self.uploaded.append(record)
        if self.results:
            return self.results.pop(0)
        return UploadResult.success(status_code=201)


class LogFile:
    """An append-only log file plus the tailer reading it."""

    def __init__(self, path: Path):
        self.path = path
        self.path.write_bytes(b"")
        self.tailer = Tailer.open(path)

    def append(self, data: bytes):
        with self.path.open("ab") as f:
            f.write(data)
