"""filesearch - local filesystem metadata index."""

__version__ = "0.1.0"
