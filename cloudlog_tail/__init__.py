"""Forward new ADIF records from a growing log file to a Cloudlog instance."""

__version__ = "0.3.0"
