"""stalectl - relocate stale files into per-owner backup directories."""

__version__ = "0.1.0"
