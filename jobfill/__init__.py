"""Job-posting detection and application autofill pipeline."""

__version__ = "0.3.0"
