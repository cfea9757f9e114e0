"""iacctl: remote plan execution and artifact migration from the command line."""

__version__ = "0.1.0"
