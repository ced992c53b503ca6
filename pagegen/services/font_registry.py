from __future__ import annotations

import base64
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Mapping

import requests

from pagegen.errors import EmbeddingFailed, FontFetchTimeout, FontResolutionFailed, InvalidTemplate
from pagegen.schemas import DEFAULT_FONT_NAME, FontSpec
from pagegen.services.pdf_document import PDF_CORE_FONTS, Document, FontHandle, core_font

DEFAULT_FETCH_TIMEOUT_S = 10.0
MAX_FONT_WORKERS = 8

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FontSetting:
    fonts: Mapping[str, FontSpec]
    handles: Mapping[str, FontHandle]
    fallback_font_name: str


def default_font() -> dict[str, FontSpec]:
    return {DEFAULT_FONT_NAME: FontSpec(fallback=True)}


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    s = str(data_url or "")
    if not s.startswith("data:"):
        raise ValueError("Invalid data_url")

    header, _, payload = s.partition(",")
    if not payload:
        raise ValueError("Invalid data_url")

    mime = header[5:].split(";")[0]
    if ";base64" in header:
        return base64.b64decode(payload.encode("ascii")), mime
    return payload.encode("utf-8"), mime


def fetch_bytes(url: str, *, timeout: float = DEFAULT_FETCH_TIMEOUT_S) -> bytes:
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.Timeout as e:
        raise FontFetchTimeout(f"FETCH_TIMEOUT: {url}") from e
    except requests.RequestException as e:
        raise EmbeddingFailed(f"FETCH_FAILED: {url}") from e
    return resp.content


def load_font_data(data: bytes | str, *, timeout: float = DEFAULT_FETCH_TIMEOUT_S) -> bytes:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    s = str(data).strip()
    if s.startswith("http://") or s.startswith("https://"):
        return fetch_bytes(s, timeout=timeout)
    if s.startswith("data:"):
        return decode_data_url(s)[0]
    try:
        return base64.b64decode(s, validate=True)
    except ValueError as e:
        raise InvalidTemplate("FONT_DATA_INVALID: expected bytes, URL, data URL or base64") from e


def get_fallback_font_name(fonts: Mapping[str, FontSpec]) -> str:
    if not fonts:
        raise InvalidTemplate("FONT_SETTING_EMPTY")
    fallbacks = [name for name, spec in fonts.items() if spec.fallback]
    if len(fallbacks) > 1:
        raise InvalidTemplate(f"FONT_SETTING_MULTIPLE_FALLBACKS: {', '.join(fallbacks)}")
    if fallbacks:
        return fallbacks[0]
    if len(fonts) == 1:
        return next(iter(fonts))
    raise InvalidTemplate("FONT_SETTING_NO_FALLBACK: mark exactly one font with fallback=true")


def _embed_one(doc: Document, name: str, spec: FontSpec, timeout: float) -> FontHandle:
    if spec.data is None:
        if name not in PDF_CORE_FONTS:
            raise InvalidTemplate(f"FONT_DATA_MISSING: {name}")
        return core_font(name)
    raw = load_font_data(spec.data, timeout=timeout)
    return doc.embed_font(raw, subset=spec.subset, name=name)


def build_font_setting(
    *,
    doc: Document,
    fonts: Mapping[str, FontSpec] | None = None,
    timeout: float = DEFAULT_FETCH_TIMEOUT_S,
) -> FontSetting:
    fonts = dict(fonts or default_font())
    fallback = get_fallback_font_name(fonts)

    names = list(fonts)
    # Fonts are embedded concurrently; each font's fetch-then-embed stays sequential.
    with ThreadPoolExecutor(max_workers=max(1, min(MAX_FONT_WORKERS, len(names)))) as pool:
        handles = list(pool.map(lambda n: _embed_one(doc, n, fonts[n], timeout), names))

    return FontSetting(fonts=fonts, handles=dict(zip(names, handles)), fallback_font_name=fallback)


def resolve_font(font_setting: FontSetting, font_name: str | None) -> FontHandle:
    requested = str(font_name or "").strip()
    if requested:
        hit = font_setting.handles.get(requested)
        if hit is not None:
            return hit
        logger.warning(
            "FONT_FAMILY_FALLBACK",
            extra={"requested_font_family": requested, "resolved_font_family": font_setting.fallback_font_name},
        )

    fallback = font_setting.handles.get(font_setting.fallback_font_name)
    if fallback is None:
        raise FontResolutionFailed(f"FONT_NOT_FOUND: {requested or font_setting.fallback_font_name}")
    return fallback

