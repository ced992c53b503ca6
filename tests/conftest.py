"""
Pytest configuration: local imports and in-memory drawing collaborators.
"""

# Standard Library
import os
import sys

# PIP3 modules
import pytest

#============================================


def _ensure_repo_on_path() -> None:
    """
    Ensure the repository root is on sys.path.
    """
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


_ensure_repo_on_path()
os.environ.setdefault("INTERNAL_API_KEY", "test-key")

# local repo modules
from pagegen.schemas import FontSpec
from pagegen.services.font_registry import FontSetting
from pagegen.services.renderers import RenderContext


#============================================
class FixedWidthFont:
    """
    Font whose glyphs are all `char_width` points wide, at any size.
    """

    def __init__(self, char_width: float = 4.0):
        self.char_width = char_width

    def width_of_text_at_size(self, text: str, size: float) -> float:
        return self.char_width * len(text)


#============================================
class ScaledFont:
    """
    Font whose glyphs are `em_ratio * size` points wide.
    """

    def __init__(self, em_ratio: float = 0.5):
        self.em_ratio = em_ratio

    def width_of_text_at_size(self, text: str, size: float) -> float:
        return self.em_ratio * size * len(text)


#============================================
class RecordingPage:
    """
    Page that records every call made against it.
    """

    def __init__(self):
        self.calls = []

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))

    def draw_text(self, text, **options):
        self._record("draw_text", text, **options)

    def draw_rectangle(self, **options):
        self._record("draw_rectangle", **options)

    def draw_image(self, image, **options):
        self._record("draw_image", image, **options)

    def draw_page(self, embedded_page):
        self._record("draw_page", embedded_page)

    def set_media_box(self, x, y, width, height):
        self._record("set_media_box", x, y, width, height)

    def set_bleed_box(self, x, y, width, height):
        self._record("set_bleed_box", x, y, width, height)

    def set_trim_box(self, x, y, width, height):
        self._record("set_trim_box", x, y, width, height)

    def push_operators(self, *operators):
        self._record("push_operators", *operators)

    def named(self, name: str) -> list:
        return [c for c in self.calls if c[0] == name]


#============================================
class EmbeddedStub:
    """
    Stand-in for an embedded page handle.
    """

    def __init__(self, width: float, height: float):
        self.width = width
        self.height = height


#============================================
class RecordingDocument:
    """
    Document that hands out string handles and counts embed calls.
    """

    def __init__(self):
        self.png_embeds = []
        self.jpg_embeds = []
        self.embed_pages_calls = []

    def add_page(self, width, height):
        return RecordingPage()

    def embed_font(self, data, *, subset=True, name=None):
        return FixedWidthFont()

    def embed_png(self, data):
        self.png_embeds.append(bytes(data))
        return f"png-{len(self.png_embeds)}"

    def embed_jpg(self, data):
        self.jpg_embeds.append(bytes(data))
        return f"jpg-{len(self.jpg_embeds)}"

    def embed_pages(self, pages, bounding_boxes, matrices):
        self.embed_pages_calls.append((list(pages), list(bounding_boxes), list(matrices)))
        return [EmbeddedStub(bb.right - bb.left, bb.top - bb.bottom) for bb in bounding_boxes]


#============================================
class RecordingRasterGenerator:
    """
    Barcode raster generator that records requests and returns a tiny PNG header.
    """

    def __init__(self, supported=None):
        self.supported = supported
        self.requests = []

    def supports(self, request):
        return self.supported is None or request.symbology in self.supported

    def generate(self, request):
        self.requests.append(request)
        return b"\x89PNG\r\n\x1a\n" + request.text.encode("utf-8")


#============================================
@pytest.fixture
def font() -> FixedWidthFont:
    return FixedWidthFont()


#============================================
@pytest.fixture
def page() -> RecordingPage:
    return RecordingPage()


#============================================
@pytest.fixture
def document() -> RecordingDocument:
    return RecordingDocument()


#============================================
@pytest.fixture
def raster_generator() -> RecordingRasterGenerator:
    return RecordingRasterGenerator()


#============================================
@pytest.fixture
def render_ctx(document, font, raster_generator) -> RenderContext:
    font_setting = FontSetting(
        fonts={"Fixed": FontSpec(fallback=True)},
        handles={"Fixed": font},
        fallback_font_name="Fixed",
    )
    return RenderContext(doc=document, font_setting=font_setting, raster_generator=raster_generator)
