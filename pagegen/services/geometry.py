from __future__ import annotations

from dataclasses import dataclass

from pagegen.schemas import Alignment
from pagegen.utils.units import mm_to_pt


@dataclass(frozen=True)
class BoxSize:
    width: float
    height: float
    # Degrees, counter-clockwise about the draw origin.
    rotate: float


def resolve_box_and_rotation(schema) -> BoxSize:
    return BoxSize(
        width=mm_to_pt(schema.width),
        height=mm_to_pt(schema.height),
        rotate=float(schema.rotate or 0.0),
    )


def resolve_x(x_mm: float, alignment: Alignment, box_width_pt: float, content_width_pt: float) -> float:
    addition = 0.0
    if alignment == "center":
        addition = (box_width_pt - content_width_pt) / 2
    elif alignment == "right":
        addition = box_width_pt - content_width_pt
    return mm_to_pt(x_mm) + addition


def resolve_y(y_mm: float, page_height_pt: float, item_height_pt: float) -> float:
    # Top-down mm -> bottom-up pt, anchoring the bottom of an item of the given height.
    return page_height_pt - mm_to_pt(y_mm) - item_height_pt


def resolve_box_origin(schema, page_height_pt: float) -> tuple[float, float, BoxSize]:
    box = resolve_box_and_rotation(schema)
    x = resolve_x(schema.position.x, "left", box.width, box.width)
    y = resolve_y(schema.position.y, page_height_pt, box.height)
    return x, y, box
