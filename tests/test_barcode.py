"""
Barcode payload validation, symbology mapping and rasterization.
"""

# PIP3 modules
import pytest

# local repo modules
import pagegen.services.barcode
from pagegen.errors import BarcodeGenerationFailed
from pagegen.schemas import BARCODE_TYPES, BarcodeSchema, Position
from pagegen.services.barcode import (
    BarcodeRequest,
    QrImageGenerator,
    RenderPMGenerator,
    build_barcode_drawing,
    build_barcode_request,
    can_encode,
    select_raster_generator,
    to_generator_symbology,
    validate_barcode_input,
)


#============================================
@pytest.mark.parametrize(
    "barcode_type, payload, expected",
    [
        ("qrcode", "x" * 499, True),
        ("qrcode", "x" * 500, False),
        ("ean13", "4006381333931", True),
        ("ean13", "4006381333932", False),
        ("ean13", "400638133393", True),
        ("ean13", "12345", False),
        ("ean8", "96385074", True),
        ("ean8", "96385075", False),
        ("code39", "ABC-123", True),
        ("code39", "abc", False),
        ("code128", "Hello 123", True),
        ("code128", "テスト", False),
        ("nw7", "A0123B", True),
        ("nw7", "0123", False),
        ("japanpost", "1234567A-1", True),
        ("japanpost", "123", False),
        ("itf14", "1540014128876", True),
        ("upca", "03600029145", True),
        ("upce", "1234", False),
        ("gs1datamatrix", "(01)04006381333931", True),
        ("gs1datamatrix", "(01)123", False),
    ],
)
def test_validate_barcode_input(barcode_type: str, payload: str, expected: bool) -> None:
    """
    Payload rules per symbology.
    """
    assert validate_barcode_input(barcode_type, payload) is expected


#============================================
def test_validate_rejects_empty_and_unknown() -> None:
    """
    Empty payloads and unknown symbologies never validate.
    """
    assert validate_barcode_input("qrcode", "") is False
    assert validate_barcode_input("pdf417", "abc") is False


#============================================
def test_only_nw7_is_renamed() -> None:
    """
    nw7 maps to rationalizedCodabar; everything else passes through.
    """
    assert to_generator_symbology("nw7") == "rationalizedCodabar"
    for barcode_type in BARCODE_TYPES:
        if barcode_type != "nw7":
            assert to_generator_symbology(barcode_type) == barcode_type


#============================================
def test_request_is_built_fresh_from_schema() -> None:
    """
    The request carries the payload; the schema keeps its own type.
    """
    schema = BarcodeSchema(type="nw7", position=Position(x=0, y=0), width=30, height=15)
    request = build_barcode_request(schema, "A123B")
    assert request == BarcodeRequest(
        symbology="rationalizedCodabar",
        text="A123B",
        width=30,
        height=15,
        background_color=None,
    )
    assert schema.type == "nw7"
    with pytest.raises(Exception):
        request.text = "other"


#============================================
def test_unsupported_symbology_fails_generation() -> None:
    """
    Symbologies without a reportlab widget cannot be drawn.
    """
    with pytest.raises(BarcodeGenerationFailed):
        build_barcode_drawing(BarcodeRequest(symbology="japanpost", text="1234567", width=40, height=10))


#============================================
@pytest.mark.parametrize(
    "symbology, payload, expected",
    [
        ("code128", "Hello 123", True),
        ("code128", "café", False),
        ("qrcode", "https://example.com/ticket/42", True),
        ("ean13", "4006381333931", True),
        ("rationalizedCodabar", "A0123B", True),
        ("upce", "01234565", False),
        ("japanpost", "1234567A-1", False),
    ],
)
def test_can_encode_follows_the_widget(symbology: str, payload: str, expected: bool) -> None:
    """
    Payloads are encodable only when a widget exists and accepts the value.
    """
    assert can_encode(symbology, payload) is expected


#============================================
@pytest.mark.parametrize(
    "barcode_type, payload",
    [("code128", "café"), ("upce", "01234565"), ("japanpost", "1234567A-1")],
)
def test_rule_valid_payload_the_backend_cannot_draw(barcode_type: str, payload: str) -> None:
    """
    These pass the payload rules but the renderPM backend refuses them.
    """
    assert validate_barcode_input(barcode_type, payload) is True
    request = BarcodeRequest(symbology=to_generator_symbology(barcode_type), text=payload, width=30, height=10)
    assert RenderPMGenerator().supports(request) is False


#============================================
def test_qr_image_generator_produces_png() -> None:
    """
    The qrcode backend draws QR codes only.
    """
    generator = QrImageGenerator(scale=2)
    request = BarcodeRequest(symbology="qrcode", text="hello", width=20, height=20, background_color="#ffeecc")
    png = generator.generate(request)
    assert png.startswith(b"\x89PNG\r\n\x1a\n")

    linear = BarcodeRequest(symbology="code128", text="ABC123", width=40, height=15)
    assert generator.supports(request) is True
    assert generator.supports(linear) is False
    with pytest.raises(BarcodeGenerationFailed):
        generator.generate(linear)


#============================================
def test_renderpm_generator_produces_png() -> None:
    """
    renderPM rasterizes linear and 2D barcodes when its cairo backend is present.
    """
    pytest.importorskip("rlPyCairo")
    generator = RenderPMGenerator(scale=2)
    for request in (
        BarcodeRequest(symbology="code128", text="ABC123", width=40, height=15),
        BarcodeRequest(symbology="qrcode", text="hello", width=20, height=20, background_color="#eeeeee"),
    ):
        assert generator.supports(request)
        assert generator.generate(request).startswith(b"\x89PNG\r\n\x1a\n")


#============================================
@pytest.mark.parametrize("available, expected", [(True, RenderPMGenerator), (False, QrImageGenerator)])
def test_backend_selection(monkeypatch, available: bool, expected: type) -> None:
    """
    renderPM is used when its backend is installed, the qrcode backend otherwise.
    """
    monkeypatch.setattr(pagegen.services.barcode, "_renderpm_available", lambda: available)
    generator = select_raster_generator(scale=3)
    assert isinstance(generator, expected)
    assert generator.scale == 3
