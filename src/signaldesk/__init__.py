"""Order orchestration and scan tracking for the signal desk."""

__version__ = "0.1.0"
