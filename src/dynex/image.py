## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# In-memory module image.  Layout, all integers big-endian:
#
#   b'DXIM' | u16 format version | blob bytecode tag | blob module name | blob metadata (JSON)
#   | blob marshalled code object | 32-byte SHA-256 of everything before it
#
# where each blob is a u32 length followed by that many bytes.
#

import json
import struct
import marshal
import hashlib
import threading
import importlib.util
from types import CodeType
from dataclasses import dataclass

from .errors import LoadError


MAGIC = b'DXIM'
FORMAT_VERSION = 1
DIGEST_SIZE = hashlib.sha256().digest_size


@dataclass(frozen=True)
class ImageContents:
    module_name: str
    references: tuple[str, ...]
    exports: dict
    code: CodeType


def _blob(data: bytes) -> bytes:
    return struct.pack('>I', len(data)) + data


def pack_image(module_name: str, references, exports: dict, code: CodeType) -> bytes:
    metadata = json.dumps({'references': list(references), 'exports': exports}, sort_keys=True).encode('utf-8')
    body = b''.join([MAGIC, struct.pack('>H', FORMAT_VERSION), _blob(importlib.util.MAGIC_NUMBER),
                     _blob(module_name.encode('utf-8')), _blob(metadata), _blob(marshal.dumps(code))])
    return body + hashlib.sha256(body).digest()


def unpack_image(data: bytes) -> ImageContents:
    """Validate and decode image bytes, raising `LoadError` for anything not produced by `pack_image`."""
    if len(data) < len(MAGIC) + 2 + DIGEST_SIZE or not data.startswith(MAGIC):
        raise LoadError("Image is truncated or is not a dynex module image.")
    body, digest = data[:-DIGEST_SIZE], data[-DIGEST_SIZE:]
    if hashlib.sha256(body).digest() != digest:
        raise LoadError("Image failed its integrity check; the bytes were modified or truncated.")

    (version,) = struct.unpack_from('>H', body, len(MAGIC))
    if version != FORMAT_VERSION:
        raise LoadError(f"Image format version {version} is not supported (expected {FORMAT_VERSION}).")

    offset, blobs = len(MAGIC) + 2, []
    for _ in range(4):
        if offset + 4 > len(body): raise LoadError("Image is truncated.")
        (size,) = struct.unpack_from('>I', body, offset)
        offset += 4
        if offset + size > len(body): raise LoadError("Image is truncated.")
        blobs.append(body[offset:offset + size])
        offset += size
    if offset != len(body):
        raise LoadError("Image has trailing data.")

    tag, name, metadata, payload = blobs
    if tag != importlib.util.MAGIC_NUMBER:
        raise LoadError("Image was emitted by an incompatible Python interpreter.")
    try:
        meta = json.loads(metadata.decode('utf-8'))
        code = marshal.loads(payload)
    except (ValueError, EOFError, TypeError) as exc:
        raise LoadError(f"Image payload is corrupt: {exc}") from exc
    if not isinstance(code, CodeType):
        raise LoadError("Image payload is not a code object.")
    return ImageContents(name.decode('utf-8'), tuple(meta['references']), meta['exports'], code)


class EmittedModuleImage:
    """Bytes of an emitted module, handed over to a loader exactly once."""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._consumed = False
        self._lock = threading.Lock()

    @property
    def data(self) -> bytes:
        return self._data

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self) -> bytes:
        with self._lock:
            if self._consumed:
                raise LoadError("Image was already loaded; each image may be consumed only once.")
            self._consumed = True
            return self._data

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        state = "consumed" if self._consumed else f"{len(self._data)} bytes"
        return f"<EmittedModuleImage {state}>"
