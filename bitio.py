"""
Bit-granular reading and writing over binary streams.

Both classes work MSB-first: the first bit written is the high bit of the
first output byte. The reader signals end of data by returning None, never
by raising, so callers can tell "stream exhausted" from a real value.
"""

from __future__ import annotations

from typing import BinaryIO, Optional

CHUNK_SIZE = 64 * 1024


class BitInputStream:
    def __init__(self, stream: BinaryIO, owns_stream: bool = False):
        self._stream = stream
        self._owns = owns_stream
        self._chunk = b""
        self._pos = 0
        self._acc = 0      # bits buffered from the stream, not yet handed out
        self._nbits = 0
        self.bits_read = 0

    @classmethod
    def open(cls, path) -> "BitInputStream":
        return cls(open(path, "rb"), owns_stream=True)

    def _next_byte(self) -> Optional[int]:
        if self._pos >= len(self._chunk):
            self._chunk = self._stream.read(CHUNK_SIZE)
            self._pos = 0
            if not self._chunk:
                return None
        b = self._chunk[self._pos]
        self._pos += 1
        return b

    def read_bits(self, n: int) -> Optional[int]:
        """Next n bits as an unsigned int, or None once the stream runs dry."""
        while self._nbits < n:
            b = self._next_byte()
            if b is None:
                return None
            self._acc = (self._acc << 8) | b
            self._nbits += 8
        self._nbits -= n
        value = (self._acc >> self._nbits) & ((1 << n) - 1)
        self._acc &= (1 << self._nbits) - 1
        self.bits_read += n
        return value

    def reset(self) -> None:
        """Rewind to the first bit. The underlying stream must be seekable."""
        self._stream.seek(0)
        self._chunk = b""
        self._pos = 0
        self._acc = 0
        self._nbits = 0
        self.bits_read = 0

    def close(self) -> None:
        if self._owns:
            self._stream.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class BitOutputStream:
    def __init__(self, stream: BinaryIO, owns_stream: bool = False):
        self._stream = stream
        self._owns = owns_stream
        self._out = bytearray()
        self._acc = 0
        self._nbits = 0  # pending bits in _acc (0..7 between calls)
        self._closed = False
        self.bits_written = 0

    @classmethod
    def open(cls, path) -> "BitOutputStream":
        return cls(open(path, "wb"), owns_stream=True)

    def write_bits(self, n: int, value: int) -> None:
        """Append the low n bits of value."""
        if self._closed:
            raise ValueError("write to closed BitOutputStream")
        if n <= 0:
            return
        self._acc = (self._acc << n) | (value & ((1 << n) - 1))
        self._nbits += n
        while self._nbits >= 8:
            self._nbits -= 8
            self._out.append((self._acc >> self._nbits) & 0xFF)
        self._acc &= (1 << self._nbits) - 1
        self.bits_written += n
        if len(self._out) >= CHUNK_SIZE:
            self._stream.write(bytes(self._out))
            self._out.clear()

    def close(self) -> None:
        """Zero-pad the last partial byte, flush, and release the stream."""
        if self._closed:
            return
        if self._nbits > 0:
            self._out.append((self._acc << (8 - self._nbits)) & 0xFF)
            self._acc = 0
            self._nbits = 0
        if self._out:
            self._stream.write(bytes(self._out))
            self._out.clear()
        self._stream.flush()
        self._closed = True
        if self._owns:
            self._stream.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
