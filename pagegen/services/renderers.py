from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field

from pagegen.errors import BarcodeValidationFailed, UnsupportedSchemaType
from pagegen.schemas import BarcodeSchema, ImageSchema, TextSchema
from pagegen.services.barcode import (
    RasterGenerator,
    build_barcode_request,
    select_raster_generator,
    validate_barcode_input,
)
from pagegen.services.cache import InputImageCache, cache_key
from pagegen.services.font_props import DynamicFontSizeCalculator, content_width, resolve_font_props
from pagegen.services.font_registry import FontSetting, decode_data_url, resolve_font
from pagegen.services.geometry import resolve_box_and_rotation, resolve_box_origin, resolve_x, resolve_y
from pagegen.services.pdf_document import Document, Page, SetCharacterSpacing
from pagegen.services.text_wrap import WrapMode, layout_lines, line_offset, make_is_over
from pagegen.utils.color import hex_to_color

logger = logging.getLogger(__name__)

PNG_DATA_URL_PREFIX = "data:image/png;"


@dataclass
class RenderContext:
    """Everything shared by the elements of one render pass."""

    doc: Document
    font_setting: FontSetting
    image_cache: InputImageCache = field(default_factory=InputImageCache)
    wrap_mode: WrapMode = "word"
    font_size_calculator: DynamicFontSizeCalculator | None = None
    raster_generator: RasterGenerator | None = None
    # Raise on invalid barcodes and unknown schemas instead of skipping them.
    strict: bool = False

    def barcode_generator(self) -> RasterGenerator:
        if self.raster_generator is None:
            self.raster_generator = select_raster_generator()
        return self.raster_generator


def draw_background_color(*, schema: TextSchema, page: Page, page_height: float) -> None:
    color = hex_to_color(schema.background_color)
    if color is None:
        return
    x, y, box = resolve_box_origin(schema, page_height)
    page.draw_rectangle(x=x, y=y, width=box.width, height=box.height, color=color)


def draw_text_schema(*, input: str, schema: TextSchema, page: Page, page_height: float, ctx: RenderContext) -> None:
    font = resolve_font(ctx.font_setting, schema.font_name)

    draw_background_color(schema=schema, page=page, page_height=page_height)

    box = resolve_box_and_rotation(schema)
    props = resolve_font_props(input=input, font=font, schema=schema, calculator=ctx.font_size_calculator)

    page.push_operators(SetCharacterSpacing(props.character_spacing))

    is_over = make_is_over(font, props.size, props.character_spacing, box.width)
    first_line_y = resolve_y(schema.position.y, page_height, props.size)
    for line in layout_lines(input, is_over, ctx.wrap_mode):
        page.draw_text(
            line.text,
            x=resolve_x(schema.position.x, props.alignment, box.width, content_width(font, line.text, props)),
            y=first_line_y - line_offset(line, props.size, props.line_height),
            rotate=box.rotate,
            size=props.size,
            color=props.color,
            line_height=props.line_height * props.size,
            max_width=box.width,
            font=font,
            word_breaks=[""],
        )


def _embed_image_input(doc: Document, input: str):
    if input.startswith("data:"):
        raw, _mime = decode_data_url(input)
    else:
        raw = base64.b64decode(input)
    if input.startswith(PNG_DATA_URL_PREFIX):
        return doc.embed_png(raw)
    return doc.embed_jpg(raw)


def draw_image_schema(*, input: str, schema: ImageSchema, page: Page, page_height: float, ctx: RenderContext) -> None:
    x, y, box = resolve_box_origin(schema, page_height)
    image = ctx.image_cache.get_or_embed(
        cache_key(schema.type, input),
        lambda: _embed_image_input(ctx.doc, input),
    )
    page.draw_image(image, x=x, y=y, rotate=box.rotate, width=box.width, height=box.height)


def draw_barcode_schema(*, input: str, schema: BarcodeSchema, page: Page, page_height: float, ctx: RenderContext) -> None:
    request = build_barcode_request(schema, input)
    generator = ctx.barcode_generator()
    if not validate_barcode_input(schema.type, input) or not generator.supports(request):
        if ctx.strict:
            raise BarcodeValidationFailed(f"BARCODE_INPUT_INVALID: {schema.type}")
        logger.debug("BARCODE_INPUT_INVALID", extra={"barcode_type": schema.type})
        return

    x, y, box = resolve_box_origin(schema, page_height)
    image = ctx.image_cache.get_or_embed(
        cache_key(schema.type, input),
        lambda: ctx.doc.embed_png(generator.generate(request)),
    )
    page.draw_image(image, x=x, y=y, rotate=box.rotate, width=box.width, height=box.height)


def draw_input_by_template_schema(
    *,
    input: str | None,
    schema: TextSchema | ImageSchema | BarcodeSchema | None,
    page: Page,
    page_height: float,
    ctx: RenderContext,
) -> None:
    if not input or not schema:
        return

    match schema:
        case TextSchema():
            draw_text_schema(input=input, schema=schema, page=page, page_height=page_height, ctx=ctx)
        case ImageSchema():
            draw_image_schema(input=input, schema=schema, page=page, page_height=page_height, ctx=ctx)
        case BarcodeSchema():
            draw_barcode_schema(input=input, schema=schema, page=page, page_height=page_height, ctx=ctx)
        case _:
            if ctx.strict:
                raise UnsupportedSchemaType(f"UNSUPPORTED_SCHEMA_TYPE: {type(schema).__name__}")
            logger.debug("SCHEMA_TYPE_IGNORED", extra={"schema_type": type(schema).__name__})
