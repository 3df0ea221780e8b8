"""Per-user CPU time accounting over a bounded observation window."""

__version__ = "0.1.0"
