"""e18e ecosystem analyzer: ranks npm packages worth a modernization PR."""

__version__ = "0.1.0"
