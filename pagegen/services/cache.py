from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable

from pagegen.utils.hash import sha256_hex

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]


def cache_key(schema_type: str, raw_input: str) -> CacheKey:
    return str(schema_type), str(raw_input)


class InputImageCache:
    """Embedded image handles keyed by ``(schema type, raw input)``.

    Entries live until the cache is dropped. Only successful embeds are stored;
    a concurrent request for a key that is already being embedded waits for
    that result instead of embedding again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[CacheKey, Any] = {}
        self._inflight: dict[CacheKey, Future] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_or_embed(self, key: CacheKey, embed: Callable[[], Any]) -> Any:
        with self._lock:
            hit = self._entries.get(key)
            if hit is not None:
                return hit
            pending = self._inflight.get(key)
            if pending is None:
                pending = Future()
                self._inflight[key] = pending
                owner = True
            else:
                owner = False

        if not owner:
            return pending.result()

        logger.info("IMAGE_CACHE_MISS", extra={"schema_type": key[0], "input_sha256": sha256_hex(key[1])})
        try:
            handle = embed()
        except BaseException as e:
            with self._lock:
                self._inflight.pop(key, None)
            pending.set_exception(e)
            raise

        with self._lock:
            if handle is not None:
                self._entries[key] = handle
            self._inflight.pop(key, None)
        pending.set_result(handle)
        return handle
