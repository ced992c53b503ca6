from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from reportlab.lib.colors import Color

from pagegen.schemas import (
    DEFAULT_ALIGNMENT,
    DEFAULT_CHARACTER_SPACING,
    DEFAULT_FONT_COLOR,
    DEFAULT_FONT_SIZE,
    DEFAULT_LINE_HEIGHT,
    Alignment,
    DynamicFontSize,
    TextSchema,
)
from pagegen.services.geometry import resolve_box_and_rotation
from pagegen.services.text_wrap import WrapMode, layout_lines, make_is_over, measure_text_width
from pagegen.utils.color import hex_to_color

DYNAMIC_FONT_SIZE_STEP = 0.25


@dataclass(frozen=True)
class FontProps:
    size: float
    color: Color | None
    alignment: Alignment
    line_height: float
    character_spacing: float


class DynamicFontSizeCalculator(Protocol):
    def calculate(self, *, schema: TextSchema, font, input: str, bounds: DynamicFontSize) -> float: ...


class FittingFontSizeCalculator:
    """Largest size <= ``bounds.max`` whose wrapped text fits the schema box.

    Sizes are tried downwards in fixed steps; when nothing fits,
    ``bounds.min`` is returned.
    """

    def __init__(self, step: float = DYNAMIC_FONT_SIZE_STEP, wrap_mode: WrapMode = "word") -> None:
        if step <= 0:
            raise ValueError("step must be > 0")
        self.step = float(step)
        self.wrap_mode = wrap_mode

    def fits(self, *, schema: TextSchema, font, input: str, size: float) -> bool:
        box = resolve_box_and_rotation(schema)
        character_spacing = schema.character_spacing if schema.character_spacing is not None else DEFAULT_CHARACTER_SPACING
        line_height = schema.line_height if schema.line_height is not None else DEFAULT_LINE_HEIGHT

        is_over = make_is_over(font, size, character_spacing, box.width)
        lines = layout_lines(input, is_over, self.wrap_mode)
        if not lines:
            return True
        if any(is_over(line.text) for line in lines):
            return False
        rows = max(line.stack_index for line in lines) + 1
        return rows * size * max(line_height, 1.0) <= box.height

    def calculate(self, *, schema: TextSchema, font, input: str, bounds: DynamicFontSize) -> float:
        low = float(bounds.min)
        size = float(bounds.max)
        while size >= low:
            if self.fits(schema=schema, font=font, input=input, size=size):
                return size
            size -= self.step
        return low


def resolve_font_props(
    *,
    input: str,
    font,
    schema: TextSchema,
    calculator: DynamicFontSizeCalculator | None = None,
) -> FontProps:
    if schema.dynamic_font_size is not None:
        calc = calculator or FittingFontSizeCalculator()
        size = calc.calculate(schema=schema, font=font, input=input, bounds=schema.dynamic_font_size)
    else:
        size = schema.font_size if schema.font_size is not None else DEFAULT_FONT_SIZE

    return FontProps(
        size=float(size),
        color=hex_to_color(schema.font_color or DEFAULT_FONT_COLOR),
        alignment=schema.alignment or DEFAULT_ALIGNMENT,
        line_height=schema.line_height if schema.line_height is not None else DEFAULT_LINE_HEIGHT,
        character_spacing=schema.character_spacing if schema.character_spacing is not None else DEFAULT_CHARACTER_SPACING,
    )


def content_width(font, text: str, props: FontProps) -> float:
    return measure_text_width(font, text, props.size, props.character_spacing)
