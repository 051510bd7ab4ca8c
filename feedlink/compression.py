"""Gzip payload codec."""

from __future__ import annotations

import gzip
import zlib

from .exceptions import CompressionError


class GzipCodec:
    """Compress outbound text and expand inbound binary frames."""

    def __init__(self, compresslevel: int = 6, encoding: str = "utf-8") -> None:
        self.compresslevel = compresslevel
        self.encoding = encoding

    def compress(self, text: str) -> bytes:
        try:
            return gzip.compress(text.encode(self.encoding), self.compresslevel)
        except (UnicodeEncodeError, zlib.error) as exc:
            raise CompressionError(f"compress failed: {exc}") from exc

    def decompress(self, data: bytes) -> str:
        try:
            return gzip.decompress(data).decode(self.encoding)
        except (OSError, EOFError, zlib.error, UnicodeDecodeError) as exc:
            raise CompressionError(f"decompress failed: {exc}") from exc
