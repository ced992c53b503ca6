from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass

from pdfrw import PdfReader

from pagegen.errors import EmbeddingFailed, InvalidTemplate
from pagegen.services.font_registry import DEFAULT_FETCH_TIMEOUT_S, decode_data_url, fetch_bytes
from pagegen.services.pdf_document import Box, BoundingBox, Document, EmbeddedPdfPage, Page

IDENTITY_MATRIX = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbedPdfBox:
    media_box: Box
    bleed_box: Box
    trim_box: Box


@dataclass(frozen=True)
class EmbeddedPages:
    pages: list[EmbeddedPdfPage]
    boxes: list[EmbedPdfBox]

    def __iter__(self):
        return iter(zip(self.pages, self.boxes))

    def __len__(self) -> int:
        return len(self.pages)


def load_base_pdf_bytes(base_pdf: bytes | str, *, timeout: float = DEFAULT_FETCH_TIMEOUT_S) -> bytes:
    if isinstance(base_pdf, (bytes, bytearray, memoryview)):
        raw = bytes(base_pdf)
    else:
        s = str(base_pdf).strip()
        if s.startswith("http://") or s.startswith("https://"):
            raw = fetch_bytes(s, timeout=timeout)
        elif s.startswith("data:"):
            raw = decode_data_url(s)[0]
        else:
            try:
                raw = base64.b64decode(s, validate=True)
            except (binascii.Error, ValueError) as e:
                raise InvalidTemplate("INVALID_BASE_PDF: expected bytes, URL, data URL or base64") from e

    if not raw.startswith(b"%PDF-"):
        raise InvalidTemplate("INVALID_BASE_PDF: expected %PDF- header")
    return raw


def _box(arr) -> Box:
    if not arr or len(arr) != 4:
        raise EmbeddingFailed("PDF page box malformed")
    x0, y0, x1, y1 = (float(v) for v in arr)
    return Box(x=min(x0, x1), y=min(y0, y1), width=abs(x1 - x0), height=abs(y1 - y0))


def capture_page_boxes(page) -> EmbedPdfBox:
    media_arr = page.inheritable.MediaBox
    if media_arr is None:
        raise EmbeddingFailed("PDF MediaBox missing")
    media = _box(media_arr)
    crop_arr = page.inheritable.CropBox
    crop = _box(crop_arr) if crop_arr is not None else media
    bleed = _box(page.BleedBox) if page.BleedBox is not None else crop
    trim = _box(page.TrimBox) if page.TrimBox is not None else crop
    return EmbedPdfBox(media_box=media, bleed_box=bleed, trim_box=trim)


def bounding_box_from_media(media: Box) -> BoundingBox:
    return BoundingBox(left=media.x, bottom=media.y, right=media.x + media.width, top=media.y + media.height)


def get_embedded_pages_and_boxes(
    *,
    doc: Document,
    base_pdf: bytes | str,
    timeout: float = DEFAULT_FETCH_TIMEOUT_S,
) -> EmbeddedPages:
    raw = load_base_pdf_bytes(base_pdf, timeout=timeout)
    try:
        source = PdfReader(fdata=raw)
    except Exception as e:
        raise EmbeddingFailed("INVALID_BASE_PDF: unreadable") from e
    source_pages = list(source.pages or [])
    if not source_pages:
        raise InvalidTemplate("INVALID_BASE_PDF: no pages")

    boxes = [capture_page_boxes(p) for p in source_pages]
    bounding_boxes = [bounding_box_from_media(b.media_box) for b in boxes]
    matrices = [IDENTITY_MATRIX for _ in source_pages]

    pages = doc.embed_pages(source_pages, bounding_boxes, matrices)
    logger.info("BASE_PDF_LOADED", extra={"pages": len(pages), "bytes": len(raw)})
    return EmbeddedPages(pages=list(pages), boxes=boxes)


def draw_embedded_page(*, page: Page, embedded_page: EmbeddedPdfPage, embed_pdf_box: EmbedPdfBox) -> None:
    page.draw_page(embedded_page)
    # Drawing resets the host page boxes; put the source ones back.
    mb, bb, tb = embed_pdf_box.media_box, embed_pdf_box.bleed_box, embed_pdf_box.trim_box
    page.set_media_box(mb.x, mb.y, mb.width, mb.height)
    page.set_bleed_box(bb.x, bb.y, bb.width, bb.height)
    page.set_trim_box(tb.x, tb.y, tb.width, tb.height)
