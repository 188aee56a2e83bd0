"""HLS/WebVTT rewriting proxy."""

__version__ = "0.1.0"
