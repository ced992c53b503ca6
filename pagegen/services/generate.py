from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Mapping, Sequence

from pagegen.config import Settings
from pagegen.errors import InvalidTemplate
from pagegen.schemas import BlankPdf, FontSpec, Template
from pagegen.services.barcode import BARCODE_SCALE, select_raster_generator
from pagegen.services.cache import InputImageCache
from pagegen.services.embedded_pages import draw_embedded_page, get_embedded_pages_and_boxes
from pagegen.services.font_props import FittingFontSizeCalculator
from pagegen.services.font_registry import DEFAULT_FETCH_TIMEOUT_S, build_font_setting
from pagegen.services.pdf_document import PdfDocument
from pagegen.services.renderers import RenderContext, draw_input_by_template_schema
from pagegen.services.text_wrap import WrapMode
from pagegen.utils.units import mm_to_pt

CREATOR = "pagegen"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerateOptions:
    wrap_mode: WrapMode = "word"
    fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S
    barcode_scale: int = BARCODE_SCALE
    author: str = "pagegen"
    strict: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerateOptions":
        return cls(
            wrap_mode=settings.WRAP_MODE,
            fetch_timeout_s=settings.FONT_FETCH_TIMEOUT_S,
            barcode_scale=settings.BARCODE_SCALE,
            author=settings.DOCUMENT_AUTHOR,
            strict=settings.STRICT_VALIDATION,
        )


def _check_generate_args(template: Template, inputs: Sequence[Mapping[str, str]]) -> None:
    if not inputs:
        raise InvalidTemplate("inputs must contain at least one record")
    if not template.schemas:
        raise InvalidTemplate("template.schemas must contain at least one page")


def generate(
    *,
    template: Template,
    inputs: Sequence[Mapping[str, str]],
    font: Mapping[str, FontSpec] | None = None,
    options: GenerateOptions | None = None,
) -> bytes:
    """Render one copy of the template per input record and return the PDF bytes.

    Every record produces one output page per template page; the record's keys
    are drawn with the schema of the same name on that page. Image and barcode
    embeds are shared across the whole document.
    """
    options = options or GenerateOptions()
    _check_generate_args(template, inputs)
    started = time.monotonic()

    doc = PdfDocument()
    doc.set_metadata(author=options.author, creator=CREATOR, producer=CREATOR)

    ctx = RenderContext(
        doc=doc,
        font_setting=build_font_setting(doc=doc, fonts=font, timeout=options.fetch_timeout_s),
        image_cache=InputImageCache(),
        wrap_mode=options.wrap_mode,
        font_size_calculator=FittingFontSizeCalculator(wrap_mode=options.wrap_mode),
        raster_generator=select_raster_generator(scale=options.barcode_scale),
        strict=options.strict,
    )

    base_pdf = template.base_pdf
    if isinstance(base_pdf, BlankPdf):
        embedded = None
        page_sizes = [(mm_to_pt(base_pdf.width), mm_to_pt(base_pdf.height))] * len(template.schemas)
    else:
        embedded = get_embedded_pages_and_boxes(doc=doc, base_pdf=base_pdf, timeout=options.fetch_timeout_s)
        page_sizes = [(p.width, p.height) for p in embedded.pages]

    for record in inputs:
        for page_index, (page_width, page_height) in enumerate(page_sizes):
            page = doc.add_page(page_width, page_height)
            if embedded is not None:
                draw_embedded_page(
                    page=page,
                    embedded_page=embedded.pages[page_index],
                    embed_pdf_box=embedded.boxes[page_index],
                )
            page_schemas = template.schemas[page_index] if page_index < len(template.schemas) else {}
            for key, value in record.items():
                draw_input_by_template_schema(
                    input=value,
                    schema=page_schemas.get(key),
                    page=page,
                    page_height=page_height,
                    ctx=ctx,
                )

    pdf = doc.save()
    logger.info(
        "GENERATE_DONE",
        extra={
            "records": len(inputs),
            "pages": len(doc.pages),
            "cached_images": len(ctx.image_cache),
            "bytes": len(pdf),
            "elapsed_ms": int((time.monotonic() - started) * 1000),
        },
    )
    return pdf
