"""Tests for the incremental log reader."""

import logging
import os

import pytest

from cloudlog_tail.errors import (
    FileRemovedError,
    FileReplacedError,
    LogFileError,
    TruncationError,
)
from cloudlog_tail.splitter import Record
from cloudlog_tail.tailer import Tailer

from .helpers import ADIF_HEADER, qso


def test_existing_content_read_on_first_wakeup(tmp_path):
    path = tmp_path / "log.adi"
    path.write_bytes(ADIF_HEADER + b"\n" + qso("W1AW") + b"\n")
    tailer = Tailer.open(path)

    records = tailer.on_wakeup()

    assert [r.header for r in records] == [True, False]
    assert records[1].raw.strip() == qso("W1AW")
    assert tailer.offset == path.stat().st_size
    assert tailer.pending == b"\n"
    tailer.close()


def test_open_missing_file(tmp_path):
    with pytest.raises(LogFileError):
        Tailer.open(tmp_path / "missing.adi")


def test_spurious_wakeups_yield_nothing(log_file):
    log_file.append(qso("W1AW"))
    assert len(log_file.tailer.on_wakeup()) == 1

    assert log_file.tailer.on_wakeup() == []
    assert log_file.tailer.on_wakeup() == []


def test_partial_record_completed_by_later_write(log_file):
    record = qso("K1JT")
    log_file.append(record[:20])

    assert log_file.tailer.on_wakeup() == []
    assert log_file.tailer.pending == record[:20]

    log_file.append(record[20:])

    assert log_file.tailer.on_wakeup() == [Record(record)]
    assert log_file.tailer.pending == b""


def test_three_chunk_scenario(log_file):
    log_file.append(b"R1\n<e")
    assert log_file.tailer.on_wakeup() == []

    log_file.append(b"or>R2\n")
    assert log_file.tailer.on_wakeup() == [Record(b"R1\n<eor>")]
    assert log_file.tailer.pending == b"R2\n"

    log_file.append(b"<eor>")
    assert log_file.tailer.on_wakeup() == [Record(b"R2\n<eor>")]


def test_backlog_read_in_chunks(log_file):
    records = [qso(call) for call in ("W1AW", "K1JT", "DL1ABC", "JA1XYZ")]
    log_file.append(b"\n".join(records))
    log_file.tailer.CHUNK_SIZE = 7

    emitted = log_file.tailer.on_wakeup()

    assert [r.raw.strip() for r in emitted] == records
    assert log_file.tailer.offset == log_file.path.stat().st_size


def test_truncation_is_fatal(log_file):
    log_file.append(qso("W1AW") + qso("K1JT"))
    log_file.tailer.on_wakeup()

    log_file.path.write_bytes(qso("G4ABC"))

    with pytest.raises(TruncationError):
        log_file.tailer.on_wakeup()


def test_removed_file_is_fatal(log_file):
    log_file.append(qso("W1AW"))
    log_file.tailer.on_wakeup()

    log_file.path.unlink()

    with pytest.raises(FileRemovedError):
        log_file.tailer.on_wakeup()


def test_replaced_file_is_fatal(log_file, tmp_path):
    log_file.append(qso("W1AW"))
    log_file.tailer.on_wakeup()

    rotated = tmp_path / "new.adi"
    rotated.write_bytes(qso("W1AW") + qso("K1JT"))
    os.replace(rotated, log_file.path)

    with pytest.raises(FileReplacedError):
        log_file.tailer.on_wakeup()


def test_overlong_field_logged_and_recovered(log_file, caplog):
    overlong = b"<CALL:4>W1AW <COMMENT:900>hi <EOR>"
    log_file.append(overlong + b"\n")
    assert log_file.tailer.on_wakeup() == []

    log_file.append(qso("K1JT"))
    with caplog.at_level(logging.WARNING, logger="cloudlog_tail"):
        records = log_file.tailer.on_wakeup()

    assert [r.recovered for r in records] == [True, False]
    assert records[0].raw == overlong
    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert f"offset {len(overlong)}" in warnings[0]


def test_stalled_record_warned_once(log_file, caplog):
    log_file.tailer.STALL_WARN_SIZE = 16

    with caplog.at_level(logging.WARNING, logger="cloudlog_tail"):
        log_file.append(b"<CALL:4>W1AW <COMMENT:900>")
        log_file.tailer.on_wakeup()
        log_file.append(b"still going")
        log_file.tailer.on_wakeup()

    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "No complete record" in warnings[0]
