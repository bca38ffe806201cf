"""
Exception hierarchy for cloudlog-tail.

Every error carries the sysexits(3) code the agent exits with when the
error reaches the top level.
"""

EX_USAGE = 64
EX_DATAERR = 65
EX_NOINPUT = 66
EX_OSERR = 71
EX_IOERR = 74
EX_NOPERM = 77


class CloudlogTailError(Exception):
    exit_code = EX_IOERR


class ConfigError(CloudlogTailError):
    exit_code = EX_USAGE


class CredentialError(CloudlogTailError):
    exit_code = EX_NOINPUT


class LogFileError(CloudlogTailError):
    exit_code = EX_NOINPUT


class WatcherError(CloudlogTailError):
    exit_code = EX_OSERR


class StructuralReadError(CloudlogTailError):
    """The watched file no longer matches what has been read from it."""


class TruncationError(StructuralReadError):
    pass


class FileRemovedError(StructuralReadError):
    pass


class FileReplacedError(StructuralReadError):
    pass


class DeliveryError(CloudlogTailError):
    """A record could not be delivered and the pipeline has to stop."""


class AuthenticationError(DeliveryError):
    exit_code = EX_NOPERM


class RecordRejectedError(DeliveryError):
    exit_code = EX_DATAERR
