"""
Incremental reader for the watched ADIF log.

The tailer owns the open file, the read offset and the bytes read but not
yet part of a complete record. Each wake-up reads everything between the
offset and end-of-file and returns the records completed by the new bytes.
"""

import logging
import os

from .errors import (
    FileRemovedError,
    FileReplacedError,
    LogFileError,
    StructuralReadError,
    TruncationError,
)
from .splitter import Record, split

logger = logging.getLogger(__name__)


class Tailer:
    CHUNK_SIZE = 256 * 1024
    # warn when this many bytes have been read without completing a record
    STALL_WARN_SIZE = 256 * 1024

    def __init__(self, file, path=None):
        self._file = file
        self.path = os.path.abspath(path if path is not None else file.name)
        st = os.fstat(file.fileno())
        self._identity = (st.st_dev, st.st_ino)
        self._offset = 0
        self._emitted = 0
        self._pending = b""
        self._stall_warned = False

    @classmethod
    def open(cls, path) -> "Tailer":
        try:
            file = open(path, "rb")
        except OSError as e:
            raise LogFileError(f"Failed to open log file {path}: {e}") from e
        return cls(file, path)

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def pending(self) -> bytes:
        return self._pending

    def close(self) -> None:
        self._file.close()

    def _check_file(self) -> int:
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            raise FileRemovedError(f"Log file {self.path} has been removed")
        except OSError as e:
            raise StructuralReadError(f"Unable to stat log file {self.path}: {e}") from e

        # st_ino is 0 on filesystems that don't report it
        if st.st_ino and (st.st_dev, st.st_ino) != self._identity:
            raise FileReplacedError(f"Log file {self.path} has been replaced by another file")

        size = os.fstat(self._file.fileno()).st_size
        if size < self._offset:
            raise TruncationError(
                f"Log file {self.path} shrank to {size} bytes, "
                f"{self._offset} bytes were already read"
            )
        return size

    def _read_to_end(self) -> bytes:
        data = bytearray()
        try:
            self._file.seek(self._offset)
            while True:
                chunk = self._file.read(self.CHUNK_SIZE)
                if not chunk:
                    break
                data += chunk
        except OSError as e:
            raise StructuralReadError(f"Failed to read from log file {self.path}: {e}") from e
        return bytes(data)

    def on_wakeup(self) -> list[Record]:
        """
        Read all bytes appended since the last call and split them into records.

        Returns the records completed by this read, in file order; bytes of an
        unfinished record stay pending until a later call completes them.

        Raises:
            TruncationError: the file is now shorter than what was read.
            FileRemovedError: the path no longer exists.
            FileReplacedError: the path now points at a different file.
        """
        size = self._check_file()
        if size == self._offset:
            return []

        data = self._read_to_end()
        if not data:
            return []

        records, self._pending = split(self._pending + data)
        self._offset += len(data)
        for record in records:
            self._emitted += len(record)
            if record.recovered:
                logger.warning(
                    "Record ending at offset %d declares a field running past its end-of-record "
                    "tag; cut it at that tag", self._emitted,
                )
        assert self._emitted + len(self._pending) == self._offset
        self._check_stall()

        logger.debug(
            "Read %d bytes (offset %d): %d complete records, %d bytes pending",
            len(data), self._offset, len(records), len(self._pending),
        )
        return records

    def _check_stall(self) -> None:
        if len(self._pending) <= self.STALL_WARN_SIZE:
            self._stall_warned = False
        elif not self._stall_warned:
            self._stall_warned = True
            logger.warning(
                "No complete record in the %d bytes read since offset %d; "
                "uploads are held until one completes",
                len(self._pending), self._emitted,
            )
