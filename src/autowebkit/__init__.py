"""AutoWebkit — declarative step scripts for a single embedded browser page."""

__version__ = "0.3.0"
