from __future__ import annotations

import io
import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, Sequence

from fontTools.ttLib import TTFont as FTFont
from pdfrw import PdfArray, PdfReader, PdfWriter
from pdfrw.buildxobj import pagexobj
from pdfrw.toreportlab import makerl
from reportlab.lib.colors import Color
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont as RLTTFont
from reportlab.pdfgen.canvas import Canvas

from pagegen.errors import EmbeddingFailed
from pagegen.utils.hash import sha256_hex

logger = logging.getLogger(__name__)

PDF_CORE_FONTS: list[str] = [
    "Courier",
    "Courier-Bold",
    "Courier-Oblique",
    "Courier-BoldOblique",
    "Helvetica",
    "Helvetica-Bold",
    "Helvetica-Oblique",
    "Helvetica-BoldOblique",
    "Times-Roman",
    "Times-Bold",
    "Times-Italic",
    "Times-BoldItalic",
    "Symbol",
    "ZapfDingbats",
]

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8"


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    def as_rect(self) -> list[float]:
        return [self.x, self.y, self.x + self.width, self.y + self.height]


@dataclass(frozen=True)
class BoundingBox:
    left: float
    bottom: float
    right: float
    top: float


@dataclass(frozen=True)
class SetCharacterSpacing:
    spacing: float


class FontHandle(Protocol):
    def width_of_text_at_size(self, text: str, size: float) -> float: ...


class Page(Protocol):
    def draw_text(self, text: str, **options: Any) -> None: ...

    def draw_rectangle(self, **options: Any) -> None: ...

    def draw_image(self, image: Any, **options: Any) -> None: ...

    def draw_page(self, embedded_page: Any) -> None: ...

    def set_media_box(self, x: float, y: float, width: float, height: float) -> None: ...

    def set_bleed_box(self, x: float, y: float, width: float, height: float) -> None: ...

    def set_trim_box(self, x: float, y: float, width: float, height: float) -> None: ...

    def push_operators(self, *operators: Any) -> None: ...


class Document(Protocol):
    def add_page(self, width: float, height: float) -> Page: ...

    def embed_font(self, data: bytes, *, subset: bool = True, name: str | None = None) -> FontHandle: ...

    def embed_png(self, data: bytes) -> Any: ...

    def embed_jpg(self, data: bytes) -> Any: ...

    def embed_pages(
        self,
        pages: Sequence[Any],
        bounding_boxes: Sequence[BoundingBox],
        matrices: Sequence[tuple[float, float, float, float, float, float]],
    ) -> list[Any]: ...


@dataclass(frozen=True)
class ReportLabFont:
    name: str
    embedded: bool = True
    subset: bool = True

    def width_of_text_at_size(self, text: str, size: float) -> float:
        return float(pdfmetrics.stringWidth(text, self.name, size))


@dataclass(frozen=True)
class EmbeddedImage:
    reader: ImageReader
    width: float
    height: float


@dataclass(frozen=True)
class EmbeddedPdfPage:
    xobj: Any
    width: float
    height: float
    # (a, b, c, d, e, f)
    matrix: tuple[float, float, float, float, float, float] = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)


def core_font(name: str) -> ReportLabFont:
    if name not in PDF_CORE_FONTS:
        raise EmbeddingFailed(f"NOT_A_CORE_FONT: {name}")
    return ReportLabFont(name=name, embedded=False, subset=False)


def _font_suffix(data: bytes) -> str:
    head = bytes(data[:4])
    if head == b"wOFF":
        return "woff"
    if head == b"wOF2":
        return "woff2"
    if head == b"OTTO":
        return "otf"
    return "ttf"


class PdfPage:
    def __init__(self, canvas: Canvas, index: int, width: float, height: float) -> None:
        self._canvas = canvas
        self.index = index
        self.width = float(width)
        self.height = float(height)
        self.character_spacing = 0.0
        self.boxes: dict[str, Box] = {}

    def draw_text(
        self,
        text: str,
        *,
        x: float,
        y: float,
        size: float,
        font: ReportLabFont,
        color: Color | None = None,
        rotate: float = 0.0,
        line_height: float | None = None,
        max_width: float | None = None,
        word_breaks: list[str] | None = None,
    ) -> None:
        # Wrapping is done by the caller; max_width / word_breaks are accepted for
        # interface parity and never cause a line to be broken here.
        c = self._canvas
        c.saveState()
        c.translate(float(x), float(y))
        if rotate:
            c.rotate(float(rotate))
        text_obj = c.beginText()
        text_obj.setTextOrigin(0.0, 0.0)
        text_obj.setFont(font.name, float(size), leading=line_height)
        if self.character_spacing:
            text_obj.setCharSpace(self.character_spacing)
        text_obj.setFillColor(color if color is not None else Color(0, 0, 0))
        text_obj.textOut(text)
        c.drawText(text_obj)
        c.restoreState()

    def draw_rectangle(self, *, x: float, y: float, width: float, height: float, color: Color | None = None) -> None:
        c = self._canvas
        c.saveState()
        if color is not None:
            c.setFillColor(color)
        c.rect(float(x), float(y), float(width), float(height), stroke=0, fill=1)
        c.restoreState()

    def draw_image(self, image: EmbeddedImage, *, x: float, y: float, width: float, height: float, rotate: float = 0.0) -> None:
        c = self._canvas
        c.saveState()
        c.translate(float(x), float(y))
        if rotate:
            c.rotate(float(rotate))
        c.drawImage(image.reader, 0.0, 0.0, width=float(width), height=float(height), mask="auto")
        c.restoreState()

    def draw_page(self, embedded_page: EmbeddedPdfPage) -> None:
        c = self._canvas
        c.saveState()
        c.transform(*embedded_page.matrix)
        c.doForm(makerl(c, embedded_page.xobj))
        c.restoreState()

    def set_media_box(self, x: float, y: float, width: float, height: float) -> None:
        self.boxes["MediaBox"] = Box(float(x), float(y), float(width), float(height))
        self._canvas.setPageSize((float(x) + float(width), float(y) + float(height)))

    def set_bleed_box(self, x: float, y: float, width: float, height: float) -> None:
        self.boxes["BleedBox"] = Box(float(x), float(y), float(width), float(height))

    def set_trim_box(self, x: float, y: float, width: float, height: float) -> None:
        self.boxes["TrimBox"] = Box(float(x), float(y), float(width), float(height))

    def push_operators(self, *operators: Any) -> None:
        for op in operators:
            if isinstance(op, SetCharacterSpacing):
                self.character_spacing = float(op.spacing)
            else:
                raise TypeError(f"unsupported operator: {op!r}")


class PdfDocument:
    """In-memory PDF built with a reportlab canvas.

    Only the most recently added page can be drawn on. Page boxes set through
    ``PdfPage`` are written onto the finished file with pdfrw.
    """

    def __init__(self) -> None:
        self._buffer = io.BytesIO()
        self._canvas = Canvas(self._buffer, pageCompression=1)
        self._pages: list[PdfPage] = []
        self._fonts: dict[str, ReportLabFont] = {}
        self._saved: bytes | None = None

    @property
    def pages(self) -> list[PdfPage]:
        return list(self._pages)

    def set_metadata(self, *, author: str | None = None, creator: str | None = None, producer: str | None = None) -> None:
        if author:
            self._canvas.setAuthor(author)
        if creator:
            self._canvas.setCreator(creator)
        if producer:
            self._canvas.setProducer(producer)

    def add_page(self, width: float, height: float) -> PdfPage:
        if self._saved is not None:
            raise RuntimeError("document already saved")
        if self._pages:
            self._canvas.showPage()
        self._canvas.setPageSize((float(width), float(height)))
        page = PdfPage(self._canvas, len(self._pages), width, height)
        self._pages.append(page)
        return page

    def embed_font(self, data: bytes, *, subset: bool = True, name: str | None = None) -> ReportLabFont:
        raw = bytes(data)
        font_name = f"{name or 'font'}-{sha256_hex(raw)[:12]}"
        hit = self._fonts.get(font_name)
        if hit is not None:
            return hit
        if font_name in set(str(n) for n in pdfmetrics.getRegisteredFontNames()):
            handle = ReportLabFont(name=font_name, subset=subset)
            self._fonts[font_name] = handle
            return handle

        ext = _font_suffix(raw)
        with tempfile.TemporaryDirectory(prefix="pagegen_fonts_") as td:
            src_path = Path(td) / f"src.{ext}"
            src_path.write_bytes(raw)

            # reportlab embeds TrueType/OpenType only; WOFF/WOFF2 go through fontTools first.
            font_path: Path
            if ext in {"ttf", "otf"}:
                font_path = src_path
            else:
                try:
                    ft = FTFont(str(src_path), recalcBBoxes=False, recalcTimestamp=False)
                    out_path = Path(td) / "converted.ttf"
                    ft.flavor = None
                    ft.save(str(out_path))
                    font_path = out_path
                except Exception as e:
                    raise EmbeddingFailed(f"FONT_UNSUPPORTED_FORMAT: {name}") from e

            try:
                pdfmetrics.registerFont(RLTTFont(font_name, str(font_path)))
            except Exception as e:
                raise EmbeddingFailed(f"FONT_REGISTER_FAILED: {name}") from e

        handle = ReportLabFont(name=font_name, subset=subset)
        self._fonts[font_name] = handle
        logger.info("FONT_EMBEDDED", extra={"font_name": name, "registered_as": font_name, "subset": bool(subset)})
        return handle

    def _embed_image(self, data: bytes, signature: bytes, kind: str) -> EmbeddedImage:
        raw = bytes(data)
        if not raw.startswith(signature):
            raise EmbeddingFailed(f"INVALID_{kind}: bad signature")
        try:
            reader = ImageReader(io.BytesIO(raw))
            w, h = reader.getSize()
        except Exception as e:
            raise EmbeddingFailed(f"INVALID_{kind}: unreadable") from e
        return EmbeddedImage(reader=reader, width=float(w), height=float(h))

    def embed_png(self, data: bytes) -> EmbeddedImage:
        return self._embed_image(data, PNG_SIGNATURE, "PNG")

    def embed_jpg(self, data: bytes) -> EmbeddedImage:
        return self._embed_image(data, JPEG_SIGNATURE, "JPEG")

    def embed_pages(
        self,
        pages: Sequence[Any],
        bounding_boxes: Sequence[BoundingBox],
        matrices: Sequence[tuple[float, float, float, float, float, float]],
    ) -> list[EmbeddedPdfPage]:
        if not (len(pages) == len(bounding_boxes) == len(matrices)):
            raise EmbeddingFailed("EMBED_PAGES_LENGTH_MISMATCH")
        out: list[EmbeddedPdfPage] = []
        for page, bb, matrix in zip(pages, bounding_boxes, matrices):
            try:
                xobj = pagexobj(page)
            except Exception as e:
                raise EmbeddingFailed("EMBED_PAGE_FAILED") from e
            xobj.BBox = PdfArray([bb.left, bb.bottom, bb.right, bb.top])
            out.append(
                EmbeddedPdfPage(
                    xobj=xobj,
                    width=float(bb.right - bb.left),
                    height=float(bb.top - bb.bottom),
                    matrix=tuple(float(v) for v in matrix),
                )
            )
        return out

    def save(self) -> bytes:
        if self._saved is not None:
            return self._saved
        if not self._pages:
            raise RuntimeError("document has no pages")
        self._canvas.showPage()
        self._canvas.save()
        raw = self._buffer.getvalue()

        if any(p.boxes for p in self._pages):
            raw = _apply_page_boxes(raw, [p.boxes for p in self._pages])
        self._saved = raw
        return raw


def _apply_page_boxes(pdf_bytes: bytes, boxes: list[dict[str, Box]]) -> bytes:
    reader = PdfReader(fdata=pdf_bytes)
    for page, page_boxes in zip(reader.pages, boxes):
        for key, box in page_boxes.items():
            setattr(page, key, PdfArray(box.as_rect()))
    out = io.BytesIO()
    PdfWriter().write(out, reader)
    return out.getvalue()
