"""taskdigest - incremental status digests for externally tracked tasks."""

__version__ = "0.1.0"
