"""Version information for carbonledger."""

__version__ = "1.0.0"
