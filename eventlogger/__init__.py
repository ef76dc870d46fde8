"""Event pipeline building blocks: events, predicate filters and a rotating file sink."""

__version__ = "0.1.0"