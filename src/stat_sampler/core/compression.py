"""
Packet codecs for compressed trace streams.

Each packet is a ``<HI`` header (codec tag, payload length) followed by the
compressed payload, so a reader picks the codec per packet.
"""

import struct
from functools import partial
from typing import Callable, Dict, Iterator, NamedTuple

import lz4.frame
import zstandard as zstd

PACKET_HEADER = struct.Struct("<HI")

LZ4_LEVEL = 1
ZSTD_LEVEL = 3


class PacketCodec(NamedTuple):
    tag: int
    name: str
    compress: Callable[[bytes], bytes]
    decompress: Callable[[bytes], bytes]

    def pack(self, records: bytes) -> bytes:
        """Compress ``records`` into one framed packet."""
        payload = self.compress(records)
        return PACKET_HEADER.pack(self.tag, len(payload)) + payload


def _passthrough(data: bytes) -> bytes:
    return data


def _zstd_compress(data: bytes) -> bytes:
    # ZstdCompressor is not safe to share between threads
    return zstd.ZstdCompressor(level=ZSTD_LEVEL).compress(data)


def _zstd_decompress(data: bytes) -> bytes:
    return zstd.ZstdDecompressor().decompress(data)


CODECS: Dict[str, PacketCodec] = {
    codec.name: codec
    for codec in (
        PacketCodec(0, "none", _passthrough, _passthrough),
        PacketCodec(
            1,
            "lz4",
            partial(lz4.frame.compress, compression_level=LZ4_LEVEL),
            lz4.frame.decompress,
        ),
        PacketCodec(2, "zstd", _zstd_compress, _zstd_decompress),
    )
}
_BY_TAG: Dict[int, PacketCodec] = {codec.tag: codec for codec in CODECS.values()}


def get_codec(name: str) -> PacketCodec:
    if name not in CODECS:
        raise ValueError(f"Unsupported compression: {name}")
    return CODECS[name]


def unpack_packets(data: bytes) -> Iterator[bytes]:
    """Yield the decompressed payload of every packet in ``data``."""
    offset = 0
    while offset < len(data):
        if len(data) - offset < PACKET_HEADER.size:
            raise ValueError(f"Truncated packet header at offset {offset}")
        tag, length = PACKET_HEADER.unpack_from(data, offset)
        offset += PACKET_HEADER.size
        codec = _BY_TAG.get(tag)
        if codec is None:
            raise ValueError(f"Unknown compression tag {tag} at offset {offset}")
        payload = data[offset : offset + length]
        if len(payload) != length:
            raise ValueError(f"Packet at offset {offset} is truncated")
        offset += length
        yield codec.decompress(payload)
