"""Classification, key wrapping and redact/encrypt/HMAC filtering of values and maps."""

__version__ = "0.1.0"