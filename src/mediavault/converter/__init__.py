"""Document converters."""

from mediavault.converter.pdf import PdfConverter

__all__ = ["PdfConverter"]
