"""Mediavault - upload staging, media promotion and PDF rendering."""

__version__ = "0.3.0"
