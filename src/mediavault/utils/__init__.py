"""Utility modules for mediavault."""
