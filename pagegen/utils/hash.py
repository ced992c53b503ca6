import hashlib
from typing import Union


def sha256_hex(data: Union[bytes, bytearray, memoryview, str]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    h = hashlib.sha256()
    h.update(bytes(data))
    return h.hexdigest()
