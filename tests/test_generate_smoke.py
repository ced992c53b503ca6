"""
End-to-end generation through the reportlab/pdfrw document backend.
"""

# Standard Library
import base64
import io
import os

# PIP3 modules
import PIL.Image
import fontTools.ttLib
import pdfrw
import pytest
import reportlab

# local repo modules
from pagegen.errors import InvalidTemplate
from pagegen.schemas import BarcodeSchema, BlankPdf, FontSpec, ImageSchema, Position, Template, TextSchema
from pagegen.services.generate import GenerateOptions, generate
from pagegen.services.pdf_document import PdfDocument, core_font
from pagegen.utils.units import mm_to_pt
from test_embedded_pages import make_pdf

VERA_TTF = os.path.join(os.path.dirname(reportlab.__file__), "fonts", "Vera.ttf")
VERA_BOLD_TTF = os.path.join(os.path.dirname(reportlab.__file__), "fonts", "VeraBd.ttf")


#============================================
def png_data_url(color: tuple[int, int, int] = (200, 30, 30)) -> str:
    """
    Build a tiny PNG data URL.
    """
    buf = io.BytesIO()
    PIL.Image.new("RGB", (4, 4), color).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


#============================================
def _template(base_pdf) -> Template:
    return Template(
        base_pdf=base_pdf,
        schemas=[
            {
                "name": TextSchema(
                    position=Position(x=10, y=10),
                    width=80,
                    height=20,
                    font_size=12,
                    alignment="center",
                    background_color="#eeeeee",
                ),
                "photo": ImageSchema(position=Position(x=10, y=40), width=20, height=20, rotate=10),
            }
        ],
    )


#============================================
def test_core_font_measures_text() -> None:
    """
    Standard PDF fonts measure without any font bytes.
    """
    helvetica = core_font("Helvetica")
    assert helvetica.width_of_text_at_size("", 12) == 0.0
    assert helvetica.width_of_text_at_size("WW", 12) > helvetica.width_of_text_at_size("ii", 12)


#============================================
def test_generate_on_blank_pages() -> None:
    """
    One page per input record, sized from the blank template in mm.
    """
    photo = png_data_url()
    pdf = generate(
        template=_template(BlankPdf(width=100, height=80)),
        inputs=[
            {"name": "Hello wrapped world, this line is long enough to wrap", "photo": photo},
            {"name": "Second\nrecord", "photo": photo},
        ],
    )
    assert pdf.startswith(b"%PDF-")

    reader = pdfrw.PdfReader(fdata=pdf)
    assert len(reader.pages) == 2
    media = [float(v) for v in reader.pages[0].MediaBox]
    assert media[2] == pytest.approx(mm_to_pt(100), abs=0.01)
    assert media[3] == pytest.approx(mm_to_pt(80), abs=0.01)


#============================================
def test_generate_on_base_pdf_keeps_page_boxes() -> None:
    """
    Output pages take their size and boxes from the base PDF.
    """
    base = make_pdf([(300, 200)])
    pdf = generate(
        template=_template(base),
        inputs=[{"name": "On a base page"}],
        font={"Times-Roman": FontSpec(fallback=True)},
        options=GenerateOptions(wrap_mode="char"),
    )
    reader = pdfrw.PdfReader(fdata=pdf)
    assert len(reader.pages) == 1
    page = reader.pages[0]
    assert [float(v) for v in page.MediaBox] == [0.0, 0.0, 300.0, 200.0]
    assert [float(v) for v in page.TrimBox] == [0.0, 0.0, 300.0, 200.0]
    assert [float(v) for v in page.BleedBox] == [0.0, 0.0, 300.0, 200.0]


#============================================
def test_generate_requires_inputs() -> None:
    """
    An empty input list is a template error.
    """
    with pytest.raises(InvalidTemplate):
        generate(template=_template(BlankPdf(width=100, height=80)), inputs=[])


#============================================
def test_generate_rejects_font_without_data() -> None:
    """
    Only standard PDF fonts may omit their font bytes.
    """
    with pytest.raises(InvalidTemplate):
        generate(
            template=_template(BlankPdf(width=100, height=80)),
            inputs=[{"name": "x"}],
            font={"NotACoreFont": FontSpec(fallback=True)},
        )


#============================================
def test_document_rejects_bad_image_bytes() -> None:
    """
    Image bytes must carry the right signature.
    """
    doc = PdfDocument()
    with pytest.raises(RuntimeError):
        doc.embed_png(b"GIF89a")
    with pytest.raises(RuntimeError):
        doc.embed_jpg(b"\x89PNG\r\n\x1a\n")


#============================================
def _read(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


#============================================
def test_generate_embeds_truetype_fonts() -> None:
    """
    TrueType font bytes are embedded and used by name, with the fallback for the rest.
    """
    template = Template(
        base_pdf=BlankPdf(width=100, height=60),
        schemas=[
            {
                "title": TextSchema(position=Position(x=5, y=5), width=90, height=10, font_name="VeraBold"),
                "body": TextSchema(position=Position(x=5, y=20), width=90, height=30),
            }
        ],
    )
    pdf = generate(
        template=template,
        inputs=[{"title": "Bold title", "body": "Regular body text"}],
        font={
            "Vera": FontSpec(data=_read(VERA_TTF), fallback=True),
            "VeraBold": FontSpec(data=base64.b64encode(_read(VERA_BOLD_TTF)).decode("ascii")),
        },
    )
    assert pdf.startswith(b"%PDF-")
    assert pdf.count(b"/FontFile2") == 2


#============================================
def test_woff_font_is_converted_before_embedding() -> None:
    """
    WOFF data goes through fontTools and registers as a TrueType font.
    """
    font = fontTools.ttLib.TTFont(VERA_TTF)
    font.flavor = "woff"
    buf = io.BytesIO()
    font.save(buf)
    woff = buf.getvalue()
    assert woff[:4] == b"wOFF"

    doc = PdfDocument()
    handle = doc.embed_font(woff, name="VeraWoff")
    assert handle.name.startswith("VeraWoff-")
    assert handle.width_of_text_at_size("Hello", 12) > 0
    page = doc.add_page(200, 100)
    page.draw_text("Hello", x=10, y=50, size=12, font=handle)
    assert b"/FontFile2" in doc.save()


#============================================
def test_barcodes_the_backend_cannot_draw_do_not_abort_the_document() -> None:
    """
    Payloads that pass the rules but cannot be drawn are skipped; the PDF still renders.
    """
    template = Template(
        base_pdf=BlankPdf(width=100, height=60),
        schemas=[
            {
                "c128": BarcodeSchema(type="code128", position=Position(x=5, y=5), width=40, height=15),
                "upce": BarcodeSchema(type="upce", position=Position(x=5, y=25), width=40, height=15),
                "post": BarcodeSchema(type="japanpost", position=Position(x=50, y=5), width=40, height=10),
                "name": TextSchema(position=Position(x=50, y=30), width=40, height=10),
            }
        ],
    )
    pdf = generate(
        template=template,
        inputs=[{"c128": "café", "upce": "01234565", "post": "1234567A-1", "name": "still here"}],
    )
    assert len(pdfrw.PdfReader(fdata=pdf).pages) == 1
