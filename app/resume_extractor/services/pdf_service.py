"""
PDF processing service.

Text extraction uses pypdf; the OCR fallback renders the first page with
pdf2image (poppler) and encodes it for the vision model.
"""

import asyncio
import base64
import io
import logging
from fastapi import Request
from PIL import Image
from pypdf import PdfReader

logger = logging.getLogger(__name__)


class PDFConversionError(Exception):
    """Raised when PDF conversion fails."""

    pass


class ImageTooLargeError(PDFConversionError):
    """Raised when the rendered page exceeds the encoded-size ceiling."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(
            f"Image is too large ({size / 1024:.0f}KB base64). "
            "Please use a smaller PDF or ensure it's text-based."
        )


def _validate_pdf_bytes(pdf_bytes: bytes) -> None:
    if not pdf_bytes:
        raise PDFConversionError("Empty PDF file provided")

    if not pdf_bytes[:4] == b"%PDF":
        raise PDFConversionError(
            "Invalid PDF file: does not start with PDF header"
        )


class PDFService:
    """
    Service for PDF processing operations.

    Uses pypdf for the text layer and pdf2image (backed by poppler) to
    rasterize the first page when a resume has no usable text.
    """

    def __init__(
        self,
        dpi: int = 150,
        width: int = 1200,
        max_image_bytes: int = 4_000_000,
        text_timeout: float = 30.0,
    ):
        """
        Initialize the PDF service.

        Args:
            dpi: Resolution for PDF to image conversion.
            width: Target width in pixels of the rendered page (aspect ratio kept).
            max_image_bytes: Ceiling on the base64-encoded page image.
            text_timeout: Seconds allowed for text extraction before giving up.
        """
        self.dpi = dpi
        self.width = width
        self.max_image_bytes = max_image_bytes
        self.text_timeout = text_timeout

    @classmethod
    def from_settings(cls, settings) -> "PDFService":
        return cls(
            dpi=settings.render_dpi,
            width=settings.render_width,
            max_image_bytes=settings.max_image_base64_bytes,
            text_timeout=settings.text_extraction_timeout,
        )

    # -------------------------------------------------------------------------
    # Text extraction
    # -------------------------------------------------------------------------

    def read_text(self, file_bytes: bytes) -> str:
        """
        Extract the text layer of every page.

        Raises whatever pypdf raises; use ``extract_text`` for the
        never-failing variant.
        """
        reader = PdfReader(io.BytesIO(file_bytes))
        pages = [page.extract_text() or "" for page in reader.pages]
        return "\n".join(pages).strip()

    async def extract_text(self, file_bytes: bytes) -> str:
        """
        Extract plain text from a PDF, returning "" on any failure.

        The parse runs in a worker thread bounded by ``text_timeout``. On
        timeout the thread is abandoned and an empty string is returned so
        the caller falls back to OCR.

        Args:
            file_bytes: Raw PDF bytes.

        Returns:
            Trimmed text, or an empty string.
        """
        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(self.read_text, file_bytes),
                timeout=self.text_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Text extraction timed out after %.1fs, treating PDF as image-based",
                self.text_timeout,
            )
            return ""
        except Exception as e:
            logger.warning("Text extraction failed, treating PDF as image-based: %s", e)
            return ""

        logger.info("Extracted %d characters of text", len(text))
        return text

    def get_page_count(self, file_bytes: bytes) -> int:
        """
        Get the total number of pages in a PDF.

        Raises:
            PDFConversionError: If page count cannot be determined.
        """
        try:
            return len(PdfReader(io.BytesIO(file_bytes)).pages)
        except Exception as e:
            logger.error("Could not get page count: %s", e)
            raise PDFConversionError(f"Could not get page count: {e}") from e

    # -------------------------------------------------------------------------
    # Rasterization (OCR fallback)
    # -------------------------------------------------------------------------

    def convert_first_page(self, file_bytes: bytes) -> Image.Image:
        """
        Render only the first page of a PDF.

        Args:
            file_bytes: Raw PDF bytes.

        Returns:
            PIL Image of the first page, scaled to ``width`` pixels wide.

        Raises:
            PDFConversionError: If conversion fails for any reason.
        """
        try:
            # Import here to provide clear error if poppler bindings are missing
            from pdf2image import convert_from_bytes
            from pdf2image.exceptions import (
                PDFInfoNotInstalledError,
                PDFPageCountError,
                PDFSyntaxError,
            )
        except ImportError as e:
            logger.error("pdf2image not installed: %s", e)
            raise PDFConversionError(
                "pdf2image library not installed. Run: pip install pdf2image"
            ) from e

        _validate_pdf_bytes(file_bytes)

        try:
            logger.info(
                "Rendering first page for OCR (dpi=%d, width=%d)",
                self.dpi,
                self.width,
            )

            images = convert_from_bytes(
                file_bytes,
                dpi=self.dpi,
                fmt="png",
                first_page=1,
                last_page=1,
                size=(self.width, None),
            )

        except PDFInfoNotInstalledError as e:
            logger.error("Poppler not installed: %s", e)
            raise PDFConversionError(
                "Poppler not installed. Install poppler-utils: "
                "brew install poppler (macOS) or apt-get install poppler-utils (Linux)"
            ) from e

        except PDFPageCountError as e:
            logger.error("Could not get PDF page count: %s", e)
            raise PDFConversionError(
                f"Could not determine PDF page count: {e}"
            ) from e

        except PDFSyntaxError as e:
            logger.error("PDF syntax error: %s", e)
            raise PDFConversionError(f"Invalid or corrupted PDF file: {e}") from e

        except Exception as e:
            logger.exception("Unexpected error during PDF conversion")
            raise PDFConversionError(f"PDF conversion failed: {e}") from e

        if not images:
            raise PDFConversionError("Failed to extract images from PDF")
        return images[0]

    def image_to_bytes(self, image: Image.Image) -> bytes:
        """Convert a PIL Image to optimized PNG bytes."""
        buffer = io.BytesIO()
        image.save(buffer, format="PNG", optimize=True)
        return buffer.getvalue()

    def encode_image(self, image: Image.Image) -> str:
        """
        Encode a page image as a PNG data URL, enforcing the size ceiling.

        Raises:
            ImageTooLargeError: If the base64 payload exceeds ``max_image_bytes``.
        """
        encoded = base64.b64encode(self.image_to_bytes(image)).decode("ascii")
        if len(encoded) > self.max_image_bytes:
            logger.warning(
                "Rendered page is %d bytes base64, ceiling is %d",
                len(encoded),
                self.max_image_bytes,
            )
            raise ImageTooLargeError(len(encoded), self.max_image_bytes)
        return f"data:image/png;base64,{encoded}"

    def render_first_page(self, file_bytes: bytes) -> str:
        """
        Render page 1 and return it as a base64 PNG data URL.

        Later pages are never rendered.

        Raises:
            PDFConversionError: If rendering fails.
            ImageTooLargeError: If the encoded image exceeds the ceiling.
        """
        image = self.convert_first_page(file_bytes)
        return self.encode_image(image)


def get_pdf_service(request: Request) -> PDFService:
    """Return the PDFService created during application startup."""
    return request.app.state.pdf_service
