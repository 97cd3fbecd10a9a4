"""Template-based PDF rendering.

Document templates (DOCX) are stored like any other media, in the
``templates`` category. Filling a template with entity data is left to a
caller-supplied renderer; this module loads the template, hands it over and
converts the filled document to PDF.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from loguru import logger

from mediavault.config import MediavaultConfig
from mediavault.constants import TEMPLATES_CATEGORY
from mediavault.converter.pdf import PdfConverter
from mediavault.exceptions import InvalidPath, TemplateNotFound
from mediavault.storage import StoragePromoter


class DocumentRenderer(Protocol):
    """Fills a DOCX template and returns the resulting DOCX bytes."""

    def __call__(self, template: bytes) -> bytes: ...


class TemplateRenderer:
    """Loads stored templates and renders them to PDF."""

    def __init__(self, storage: StoragePromoter, converter: PdfConverter) -> None:
        self.storage = storage
        self.converter = converter

    @classmethod
    def from_config(cls, config: MediavaultConfig) -> TemplateRenderer:
        return cls(StoragePromoter.from_config(config), PdfConverter.from_config(config))

    def load_template(self, template_path: str | None) -> bytes:
        """Read a template from the templates category.

        Raises:
            TemplateNotFound: If the path is empty, outside the templates
                category or the file does not exist
        """
        if not template_path:
            raise TemplateNotFound("")
        try:
            path = self.storage.resolve(TEMPLATES_CATEGORY, template_path)
        except InvalidPath as e:
            raise TemplateNotFound(template_path) from e
        if not path.is_file():
            raise TemplateNotFound(template_path)
        return path.read_bytes()

    def render_pdf(
        self,
        template_path: str | None,
        renderer: DocumentRenderer,
        base_name: str | None = None,
    ) -> bytes:
        """Render a stored template through ``renderer`` and convert it to PDF.

        Args:
            template_path: Public path of the template, e.g.
                ``/uploads/templates/offer.docx``
            renderer: Callable filling the template
            base_name: Document title used for the converter's file names

        Returns:
            PDF bytes

        Raises:
            TemplateNotFound: If the template cannot be loaded
            ConversionFailed: If PDF conversion fails
        """
        template = self.load_template(template_path)
        document = renderer(template)
        logger.debug(f"Rendered template {template_path} ({len(document)} bytes)")
        return self.converter.convert(document, base_name)

    async def render_pdf_async(
        self,
        template_path: str | None,
        renderer: DocumentRenderer,
        base_name: str | None = None,
    ) -> bytes:
        return await asyncio.to_thread(
            self.render_pdf, template_path, renderer, base_name
        )


def render_pdf(
    template_path: str | None,
    renderer: DocumentRenderer,
    base_name: str | None = None,
    config: MediavaultConfig | None = None,
) -> bytes:
    """Convenience wrapper building a :class:`TemplateRenderer` from config."""
    return TemplateRenderer.from_config(config or MediavaultConfig()).render_pdf(
        template_path, renderer, base_name
    )
