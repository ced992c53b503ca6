from __future__ import annotations

import importlib.util
import io
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from qrcode.exceptions import DataOverflowError
from reportlab.graphics import renderPM
from reportlab.graphics.barcode import createBarcodeDrawing, getCodes
from reportlab.graphics.shapes import Drawing

from pagegen.errors import BarcodeGenerationFailed
from pagegen.schemas import BARCODE_TYPES
from pagegen.utils.color import hex_to_int, hex_to_rgb
from pagegen.utils.units import mm_to_pt

BARCODE_SCALE = 5

logger = logging.getLogger(__name__)

# generator symbology -> (reportlab widget name, linear symbology)
_REPORTLAB_CODES: dict[str, tuple[str, bool]] = {
    "qrcode": ("QR", False),
    "ean13": ("EAN13", True),
    "ean8": ("EAN8", True),
    "code39": ("Standard39", True),
    "code128": ("Code128", True),
    "rationalizedCodabar": ("Codabar", True),
    "itf14": ("I2of5", True),
    "upca": ("UPCA", True),
    "gs1datamatrix": ("ECC200DataMatrix", False),
}


@dataclass(frozen=True)
class BarcodeRequest:
    symbology: str
    text: str
    # mm
    width: float
    height: float
    background_color: str | None = None


def to_generator_symbology(barcode_type: str) -> str:
    return "rationalizedCodabar" if barcode_type == "nw7" else barcode_type


def build_barcode_request(schema, input: str) -> BarcodeRequest:
    return BarcodeRequest(
        symbology=to_generator_symbology(schema.type),
        text=input,
        width=schema.width,
        height=schema.height,
        background_color=schema.background_color,
    )


# --- payload validation -----------------------------------------------------

_KANJI_KANA_RE = re.compile(r"[\u30a0-\u30ff\u3040-\u309f\u3005-\u3006\u30e0-\u9fcf]+")
_GS1_GTIN_RE = re.compile(r"\((01)\)(\d*)(\(|$)")


def _check_digit_ok(value: str, check_digit_pos: int) -> bool:
    # Only verified when the check digit is actually present.
    if len(value) != check_digit_pos:
        return True
    digits = re.sub(r"[^0-9]", "", value[:-1])
    total = 0
    odd = True
    for ch in reversed(digits):
        total += int(ch) * (3 if odd else 1)
        odd = not odd
    return str(10 - (total % 10))[-1] == value[-1]


def validate_barcode_input(barcode_type: str, input: str) -> bool:
    if not input or barcode_type not in BARCODE_TYPES:
        return False
    if barcode_type == "qrcode":
        return len(input) < 500
    if barcode_type == "japanpost":
        return re.fullmatch(r"(\d{7})(\d|[A-Z]|-)+", input) is not None
    if barcode_type == "ean13":
        return re.fullmatch(r"\d{12}|\d{13}", input) is not None and _check_digit_ok(input, 13)
    if barcode_type == "ean8":
        return re.fullmatch(r"\d{7}|\d{8}", input) is not None and _check_digit_ok(input, 8)
    if barcode_type == "code39":
        return re.fullmatch(r"(\d|[A-Z]|-|\.|\$|/|\+|%|\s)+", input) is not None
    if barcode_type == "code128":
        return _KANJI_KANA_RE.search(input) is None
    if barcode_type == "nw7":
        return re.fullmatch(r"[A-Da-d]([0-9\-.:/$+])+[A-Da-d]", input) is not None
    if barcode_type == "itf14":
        return re.fullmatch(r"\d{13}|\d{14}", input) is not None and _check_digit_ok(input, 14)
    if barcode_type == "upca":
        return re.fullmatch(r"\d{11}|\d{12}", input) is not None and _check_digit_ok(input, 12)
    if barcode_type == "upce":
        return re.fullmatch(r"\d{8}", input) is not None and _check_digit_ok(input, 8)
    if barcode_type == "gs1datamatrix":
        m = _GS1_GTIN_RE.search(input)
        return (
            m is not None
            and len(input) <= 52
            and len(m.group(2)) == 14
            and _check_digit_ok(m.group(2), 14)
        )
    return False


# --- rasterization ----------------------------------------------------------


def _widget_options(symbology: str, text: str) -> dict[str, Any]:
    # reportlab computes check digits itself; drop a supplied one.
    if symbology == "ean13" and len(text) == 13:
        return {"value": text[:12]}
    if symbology == "ean8" and len(text) == 8:
        return {"value": text[:7]}
    if symbology == "upca" and len(text) == 12:
        return {"value": text[:11]}
    if symbology == "itf14":
        return {"value": text, "checksum": 1 if len(text) == 13 else 0, "bearers": 3.0}
    if symbology == "code39":
        return {"value": text, "checksum": 0}
    if symbology == "rationalizedCodabar":
        return {"value": text.upper()}
    return {"value": text}


@lru_cache(maxsize=256)
def can_encode(symbology: str, text: str) -> bool:
    """Whether reportlab has a widget for ``symbology`` that accepts ``text``.

    Mirrors the checks ``createBarcodeDrawing`` runs: the widget is built from
    its known attributes and its own ``validate()`` decides.
    """
    code = _REPORTLAB_CODES.get(symbology)
    if code is None:
        return False
    widget_cls = getCodes()[code[0]]
    kw = {k: v for k, v in _widget_options(symbology, text).items() if k in widget_cls._attrMap}
    try:
        widget = widget_cls(**kw)
        if hasattr(widget, "validate"):
            widget.validate()
            return bool(widget.valid)
    except (ValueError, TypeError, AttributeError, KeyError, IndexError):
        return False
    return True


def build_barcode_drawing(request: BarcodeRequest) -> Drawing:
    code = _REPORTLAB_CODES.get(request.symbology)
    if code is None:
        raise BarcodeGenerationFailed(f"UNSUPPORTED_SYMBOLOGY: {request.symbology}")
    name, linear = code

    options = _widget_options(request.symbology, request.text)
    if linear:
        options["humanReadable"] = True
    try:
        return createBarcodeDrawing(
            name,
            width=mm_to_pt(request.width),
            height=mm_to_pt(request.height),
            **options,
        )
    except (ValueError, TypeError, AttributeError) as e:
        raise BarcodeGenerationFailed(f"BARCODE_DRAWING_FAILED: {request.symbology}") from e


class RasterGenerator(Protocol):
    def supports(self, request: BarcodeRequest) -> bool: ...

    def generate(self, request: BarcodeRequest) -> bytes: ...


class RenderPMGenerator:
    """PNG bytes from reportlab's barcode widgets rendered through renderPM."""

    def __init__(self, scale: int = BARCODE_SCALE) -> None:
        self.scale = int(scale)

    def supports(self, request: BarcodeRequest) -> bool:
        return can_encode(request.symbology, request.text)

    def generate(self, request: BarcodeRequest) -> bytes:
        drawing = build_barcode_drawing(request)
        try:
            return renderPM.drawToString(
                drawing,
                fmt="PNG",
                dpi=72 * self.scale,
                bg=hex_to_int(request.background_color),
            )
        except Exception as e:
            raise BarcodeGenerationFailed(f"BARCODE_RASTER_FAILED: {request.symbology}") from e


class QrImageGenerator:
    """QR codes only, drawn by the qrcode library onto a Pillow image.

    Used where renderPM has no backend to render with.
    """

    def __init__(self, scale: int = BARCODE_SCALE) -> None:
        self.scale = int(scale)

    def supports(self, request: BarcodeRequest) -> bool:
        return request.symbology == "qrcode"

    def generate(self, request: BarcodeRequest) -> bytes:
        if not self.supports(request):
            raise BarcodeGenerationFailed(f"UNSUPPORTED_SYMBOLOGY: {request.symbology}")
        r, g, b = hex_to_rgb(request.background_color) or (255, 255, 255)
        qr = qrcode.QRCode(
            error_correction=ERROR_CORRECT_M,
            box_size=self.scale,
            border=0,
        )
        try:
            qr.add_data(request.text)
            qr.make(fit=True)
        except (ValueError, DataOverflowError) as e:
            raise BarcodeGenerationFailed(f"BARCODE_DRAWING_FAILED: {request.symbology}") from e
        img = qr.make_image(fill_color="black", back_color=f"#{r:02x}{g:02x}{b:02x}")
        out = io.BytesIO()
        img.save(out, format="PNG")
        return out.getvalue()


def _renderpm_available() -> bool:
    try:
        return importlib.util.find_spec("rlPyCairo") is not None
    except (ImportError, ValueError):
        return False


def select_raster_generator(scale: int = BARCODE_SCALE) -> RasterGenerator:
    if _renderpm_available():
        generator: RasterGenerator = RenderPMGenerator(scale=scale)
    else:
        generator = QrImageGenerator(scale=scale)
        logger.warning("BARCODE_BACKEND_DEGRADED", extra={"reason": "rlPyCairo not installed", "symbologies": ["qrcode"]})
    logger.info("BARCODE_BACKEND_SELECTED", extra={"backend": type(generator).__name__, "scale": int(scale)})
    return generator
