"""
Command-line entry point: tail an ADIF log and push new QSOs to Cloudlog.

    cloudlog-tail https://log.example.org/cloudlog ~/.cloudlog-key 1 ~/wsjtx_log.adi
"""

import argparse
import logging
import signal
import sys

from . import __version__
from .config import AgentConfig, build_config, read_api_key
from .driver import PipelineDriver, RetryPolicy
from .errors import CloudlogTailError
from .logging_config import setup_logging
from .tailer import Tailer
from .uploader import Uploader
from .watcher import start_wakeup_source

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cloudlog-tail",
        description="Watch an ADIF log file and upload new records to Cloudlog",
    )
    parser.add_argument("base_url", help="Cloudlog base URL")
    parser.add_argument("key_file", help="File containing the Cloudlog API key")
    parser.add_argument("station_profile_id", help="Cloudlog station profile ID")
    parser.add_argument("log_file", help="ADIF log file to watch")
    parser.add_argument("--timeout", type=float, default=30.0,
                        help="HTTP request timeout in seconds (default: 30)")
    parser.add_argument("--retry-initial", type=float, default=1.0,
                        help="First retry delay after a failed upload (default: 1)")
    parser.add_argument("--retry-max", type=float, default=300.0,
                        help="Longest delay between retries (default: 300)")
    parser.add_argument("--max-attempts", type=int, default=None,
                        help="Exit after this many failed attempts on one record (default: retry forever)")
    parser.add_argument("--on-rejected", choices=["skip", "halt"], default="skip",
                        help="What to do when Cloudlog rejects a record (default: skip)")
    parser.add_argument("--watch", choices=["auto", "native", "poll"], default="auto",
                        dest="watch_mode", help="Change detection method (default: auto)")
    parser.add_argument("--poll-interval", type=float, default=1.0,
                        help="Seconds between checks in poll mode (default: 1)")
    parser.add_argument("--encoding", default="utf-8",
                        help="Character encoding of the log file (default: utf-8)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-format", default="plain", choices=["plain", "journal"],
                        help="Use 'journal' when running under systemd")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> AgentConfig:
    return build_config(
        base_url=args.base_url,
        key_file=args.key_file,
        station_profile_id=args.station_profile_id,
        log_file=args.log_file,
        timeout=args.timeout,
        retry_initial=args.retry_initial,
        retry_max=args.retry_max,
        max_attempts=args.max_attempts,
        on_rejected=args.on_rejected,
        watch_mode=args.watch_mode,
        poll_interval=args.poll_interval,
        encoding=args.encoding,
    )


def build_driver(config: AgentConfig, api_key: str, tailer: Tailer, wakeups,
                 session=None) -> PipelineDriver:
    uploader = Uploader(
        config.api_url,
        api_key,
        config.station_profile_id,
        timeout=config.timeout,
        session=session,
        encoding=config.encoding,
    )
    retry = RetryPolicy(
        initial=config.retry_initial,
        maximum=config.retry_max,
        max_attempts=config.max_attempts,
    )
    return PipelineDriver(wakeups, tailer, uploader, retry=retry, on_rejected=config.on_rejected)


def run(args: argparse.Namespace) -> int:
    try:
        config = config_from_args(args)
        api_key = read_api_key(config.key_file)
        tailer = Tailer.open(config.log_file)
    except CloudlogTailError as e:
        logger.critical("%s", e)
        return e.exit_code

    wakeups = None
    driver = None
    try:
        wakeups = start_wakeup_source(config.log_file, config.watch_mode, config.poll_interval)
        driver = build_driver(config, api_key, tailer, wakeups)
        logger.info("Uploading %s to %s (station profile %s)",
                    config.log_file, config.api_url, config.station_profile_id)
        driver.run()
    except CloudlogTailError as e:
        logger.critical("%s", e)
        return e.exit_code
    finally:
        if wakeups is not None:
            wakeups.stop()
        tailer.close()
        if driver is not None:
            s = driver.stats
            logger.info("Delivered %d records (%d bytes), skipped %d, retried %d times",
                        s.delivered, s.bytes, s.skipped, s.retries)
    return 0


def _handle_signal(signum, frame):
    logger.info("Received signal %s, shutting down", signum)
    sys.exit(0)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(level=args.log_level, fmt=args.log_format)
    signal.signal(signal.SIGTERM, _handle_signal)
    try:
        code = run(args)
    except KeyboardInterrupt:
        logger.info("Monitoring stopped")
        code = 0
    sys.exit(code)


if __name__ == "__main__":
    main()
