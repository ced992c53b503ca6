from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Alignment = Literal["left", "center", "right"]

BarcodeType = Literal[
    "qrcode",
    "japanpost",
    "ean13",
    "ean8",
    "code39",
    "code128",
    "nw7",
    "itf14",
    "upca",
    "upce",
    "gs1datamatrix",
]

BARCODE_TYPES: tuple[str, ...] = BarcodeType.__args__

DEFAULT_FONT_SIZE = 13.0
DEFAULT_ALIGNMENT: Alignment = "left"
DEFAULT_LINE_HEIGHT = 1.0
DEFAULT_CHARACTER_SPACING = 0.0
DEFAULT_FONT_COLOR = "#000000"
DEFAULT_FONT_NAME = "Helvetica"


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Position(_Model):
    x: float
    y: float


class DynamicFontSize(_Model):
    min: float
    max: float


class _SchemaBase(_Model):
    position: Position
    width: float
    height: float
    rotate: float | None = None


class TextSchema(_SchemaBase):
    type: Literal["text"] = "text"
    font_name: str | None = None
    font_size: float | None = None
    dynamic_font_size: DynamicFontSize | None = None
    font_color: str | None = None
    background_color: str | None = None
    alignment: Alignment | None = None
    line_height: float | None = None
    character_spacing: float | None = None


class ImageSchema(_SchemaBase):
    type: Literal["image"] = "image"


class BarcodeSchema(_SchemaBase):
    type: BarcodeType
    background_color: str | None = None


Schema = Annotated[Union[TextSchema, ImageSchema, BarcodeSchema], Field(discriminator="type")]


class BlankPdf(_Model):
    width: float
    height: float


BasePdf = Union[BlankPdf, bytes, str]


class Template(_Model):
    base_pdf: BasePdf
    schemas: list[dict[str, Schema]]


class FontSpec(_Model):
    data: bytes | str | None = None
    fallback: bool = False
    subset: bool = True


class GenerateRequest(_Model):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    template: Template
    inputs: list[dict[str, str]]
    font: dict[str, FontSpec] | None = None
