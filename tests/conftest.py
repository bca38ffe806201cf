"""
Pytest fixtures for cloudlog-tail tests.

Fakes and sample records live in tests/helpers.py; the fake Cloudlog API
used by the end-to-end tests lives in tests/fake_cloudlog.py.
"""

import logging

import pytest

from cloudlog_tail.logging_config import LOGGER_NAME

from .fake_cloudlog import FakeCloudlog, ServerThread
from .helpers import LogFile, RecordingUploader


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo setup_logging() so caplog keeps seeing package records."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def log_file(tmp_path):
    log = LogFile(tmp_path / "wsjtx_log.adi")
    yield log
    log.tailer.close()


@pytest.fixture
def uploader():
    return RecordingUploader()


@pytest.fixture
def key_file(tmp_path):
    path = tmp_path / "cloudlog.key"
    path.write_text("test-key\n")
    return path


@pytest.fixture
def cloudlog():
    fake = FakeCloudlog()
    server = ServerThread(fake.app)
    server.start()
    fake.base_url = server.base_url
    yield fake
    server.stop()
