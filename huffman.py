"""
Huffman compression of arbitrary byte streams.

Container layout (bit-packed, MSB first):
  magic(32) | tree header | payload codes | PSEUDO_EOF code | zero padding

The tree header is a pre-order walk: 0 = internal node (left then right
follow), 1 = leaf followed by its 9-bit symbol value. Nothing carries a
length; the header ends when the tree is complete and the payload ends at
the PSEUDO_EOF leaf.
"""

from __future__ import annotations

import heapq
import io
import itertools
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from bitio import BitInputStream, BitOutputStream

BITS_PER_WORD = 8
BITS_PER_INT = 32
ALPH_SIZE = 1 << BITS_PER_WORD
PSEUDO_EOF = ALPH_SIZE
LEAF_VALUE_BITS = BITS_PER_WORD + 1
PLACEHOLDER = PSEUDO_EOF + 1  # sibling for a lone leaf, never matches real data
HUFF_NUMBER = 0xFACE8200
HUFF_TREE = HUFF_NUMBER | 1

DEBUG_LOW = 1
DEBUG_HIGH = 4

PHASE_HEADER = "header validation"
PHASE_TREE = "tree parse"
PHASE_CODES = "code generation"
PHASE_PAYLOAD = "payload decode"

CodeTable = Dict[int, Tuple[int, int]]  # symbol -> (code value, code length)


class HuffmanError(ValueError):
    """Data-integrity failure; `phase` names the step that hit it."""

    def __init__(self, phase: str, detail: str):
        super().__init__(f"{phase}: {detail}")
        self.phase = phase
        self.detail = detail


class HeaderError(HuffmanError):
    pass


class TruncatedStreamError(HuffmanError):
    pass


class MalformedStructureError(HuffmanError):
    pass


class HuffmanNode: # Node for Huffman tree
    def __init__(self, symbol, weight, left=None, right=None, order=0):
        self.symbol = symbol    # 0..256 for leaves, None for internal nodes
        self.weight = weight
        self.left = left
        self.right = right
        self.order = order      # creation sequence, breaks weight ties

    @property
    def is_leaf(self) -> bool:
        return self.symbol is not None

    def __lt__(self, other):
        return (self.weight, self.order) < (other.weight, other.order) # lighter first, then older


@dataclass
class CompressionStats:
    original_bytes: int
    compressed_bytes: int
    header_bits: int
    payload_bits: int
    unique_symbols: int
    bits_read: int
    bits_written: int

    @property
    def ratio(self) -> float:
        return self.compressed_bytes / max(1, self.original_bytes)


def _debug(msg: str) -> None:
    print(msg, file=sys.stderr)


def _code_str(value: int, length: int) -> str:
    return format(value, f"0{length}b")


# Pass 1

def read_for_counts(bit_in: BitInputStream) -> List[int]:
    """Tally every 8-bit word; PSEUDO_EOF always ends up with a count of 1."""
    counts = [0] * (ALPH_SIZE + 1)
    value = bit_in.read_bits(BITS_PER_WORD)
    while value is not None:
        counts[value] += 1
        value = bit_in.read_bits(BITS_PER_WORD)
    counts[PSEUDO_EOF] = 1
    return counts


def make_tree_from_counts(counts: Sequence[int]) -> HuffmanNode:
    """
    Merge the two lightest nodes until one remains. Leaves are created in
    symbol order and merged nodes after them, so equal weights always
    resolve the same way and the output is byte-reproducible.
    """
    order = itertools.count()
    priority_queue = [HuffmanNode(symbol, count, order=next(order))
                      for symbol, count in enumerate(counts) if count > 0]
    if not priority_queue:
        raise ValueError("cannot build a tree without any nonzero count")
    if len(priority_queue) == 1:
        # lone leaf would get an empty code, pair it with a dummy
        priority_queue.append(HuffmanNode(PLACEHOLDER, 0, order=next(order)))
    heapq.heapify(priority_queue)

    while len(priority_queue) > 1:
        left = heapq.heappop(priority_queue)
        right = heapq.heappop(priority_queue)
        merged = HuffmanNode(None, left.weight + right.weight, left, right, order=next(order))
        heapq.heappush(priority_queue, merged)

    return priority_queue[0]


def make_codings_from_tree(root: HuffmanNode) -> CodeTable:
    codings: CodeTable = {}
    stack = [(root, 0, 0)]
    while stack:
        node, value, length = stack.pop()
        if node.is_leaf:
            if length == 0:
                raise MalformedStructureError(PHASE_CODES, "tree is a bare leaf, its code would be empty")
            codings[node.symbol] = (value, length)
            continue
        if node.right is not None:
            stack.append((node.right, (value << 1) | 1, length + 1))
        if node.left is not None:
            stack.append((node.left, value << 1, length + 1))
    return codings


def leaf_symbols(root: HuffmanNode) -> List[int]:
    """Leaf symbols in left-to-right order."""
    symbols = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_leaf:
            symbols.append(node.symbol)
            continue
        stack.extend(child for child in (node.right, node.left) if child is not None)
    return symbols


# Tree header

def write_header(root: HuffmanNode, bit_out: BitOutputStream) -> None:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_leaf:
            bit_out.write_bits(1, 1)
            bit_out.write_bits(LEAF_VALUE_BITS, node.symbol)
            continue
        if node.left is None or node.right is None:
            raise MalformedStructureError(PHASE_TREE, "internal node is missing a child")
        bit_out.write_bits(1, 0)
        stack.append(node.right)
        stack.append(node.left)


def read_tree_header(bit_in: BitInputStream) -> HuffmanNode:
    """Rebuild the tree from its pre-order bits. Weights are left at 0."""
    root: Optional[HuffmanNode] = None
    pending: List[HuffmanNode] = []  # internal nodes still waiting for a child
    while True:
        bit = bit_in.read_bits(1)
        if bit is None:
            raise TruncatedStreamError(PHASE_TREE, "input ended inside the tree header")
        if bit == 0:
            node = HuffmanNode(None, 0)
        else:
            value = bit_in.read_bits(LEAF_VALUE_BITS)
            if value is None:
                raise TruncatedStreamError(PHASE_TREE, "input ended inside a leaf value")
            node = HuffmanNode(value, 0)

        if pending:
            parent = pending[-1]
            if parent.left is None:
                parent.left = node
            else:
                parent.right = node
                pending.pop()
        else:
            root = node

        if not node.is_leaf:
            pending.append(node)
        if not pending:
            return root


# Pass 2 / payload

def write_compressed_bits(codings: CodeTable, bit_in: BitInputStream, bit_out: BitOutputStream) -> None:
    value = bit_in.read_bits(BITS_PER_WORD)
    while value is not None:
        code, length = codings[value]
        bit_out.write_bits(length, code)
        value = bit_in.read_bits(BITS_PER_WORD)
    code, length = codings[PSEUDO_EOF]
    bit_out.write_bits(length, code)


def read_compressed_bits(root: HuffmanNode, bit_in: BitInputStream, bit_out: BitOutputStream) -> int:
    """Walk the tree bit by bit until PSEUDO_EOF. Returns the words written."""
    written = 0
    current = root
    while True:
        bit = bit_in.read_bits(1)
        if bit is None:
            raise TruncatedStreamError(PHASE_PAYLOAD, "bad input, no PSEUDO_EOF before end of data")
        current = current.left if bit == 0 else current.right
        if current is None:
            raise MalformedStructureError(PHASE_PAYLOAD, "code leads to a missing child")
        if not current.is_leaf:
            continue
        if current.symbol == PSEUDO_EOF:
            return written
        if current.symbol >= ALPH_SIZE:
            raise MalformedStructureError(PHASE_PAYLOAD, f"leaf holds non-byte symbol {current.symbol}")
        bit_out.write_bits(BITS_PER_WORD, current.symbol)
        written += 1
        current = root # start again after reaching leaf


# Drivers

def compress(bit_in: BitInputStream, bit_out: BitOutputStream, debug: int = 0) -> CompressionStats:
    """
    Two passes over bit_in (it must support reset()); bit_out is closed,
    and so padded and flushed, on success.
    """
    counts = read_for_counts(bit_in)
    root = make_tree_from_counts(counts)
    codings = make_codings_from_tree(root)

    bit_out.write_bits(BITS_PER_INT, HUFF_TREE)
    write_header(root, bit_out)
    header_bits = bit_out.bits_written - BITS_PER_INT

    bit_in.reset()
    write_compressed_bits(codings, bit_in, bit_out)

    original = sum(counts[:ALPH_SIZE])
    stats = CompressionStats(
        original_bytes=original,
        compressed_bytes=(bit_out.bits_written + 7) // 8,
        header_bits=header_bits,
        payload_bits=bit_out.bits_written - BITS_PER_INT - header_bits,
        unique_symbols=sum(1 for c in counts[:ALPH_SIZE] if c > 0),
        bits_read=bit_in.bits_read,
        bits_written=bit_out.bits_written,
    )
    if debug >= DEBUG_HIGH:
        for symbol in sorted(codings):
            code, length = codings[symbol]
            weight = counts[symbol] if symbol <= PSEUDO_EOF else 0
            _debug(f"[compress] code {symbol}: {_code_str(code, length)} (count {weight})")
    if debug >= DEBUG_LOW:
        _debug(f"[compress] header bits={stats.header_bits}, payload bits={stats.payload_bits}")
        _debug(f"[compress] read {stats.bits_read} bits, wrote {stats.bits_written} bits")
    bit_out.close()
    return stats


def decompress(bit_in: BitInputStream, bit_out: BitOutputStream, debug: int = 0) -> CompressionStats:
    bits = bit_in.read_bits(BITS_PER_INT)
    if bits is None:
        raise HeaderError(PHASE_HEADER, "input shorter than the magic number")
    if bits != HUFF_TREE:
        raise HeaderError(PHASE_HEADER, f"illegal header starts with {bits:#010x}")

    root = read_tree_header(bit_in)
    header_bits = bit_in.bits_read - BITS_PER_INT
    symbols = leaf_symbols(root)
    if debug >= DEBUG_HIGH:
        _debug(f"[decompress] tree has {len(symbols)} leaves")

    written = read_compressed_bits(root, bit_in, bit_out)

    stats = CompressionStats(
        original_bytes=written,
        compressed_bytes=(bit_in.bits_read + 7) // 8,
        header_bits=header_bits,
        payload_bits=bit_in.bits_read - BITS_PER_INT - header_bits,
        unique_symbols=sum(1 for s in symbols if s < ALPH_SIZE),
        bits_read=bit_in.bits_read,
        bits_written=bit_out.bits_written,
    )
    if debug >= DEBUG_LOW:
        _debug(f"[decompress] header bits={stats.header_bits}, payload bits={stats.payload_bits}")
        _debug(f"[decompress] read {stats.bits_read} bits, wrote {stats.bits_written} bits")
    bit_out.close()
    return stats


def compress_bytes(data: bytes, debug: int = 0) -> bytes:
    sink = io.BytesIO()
    compress(BitInputStream(io.BytesIO(data)), BitOutputStream(sink), debug)
    return sink.getvalue()


def decompress_bytes(data: bytes, debug: int = 0) -> bytes:
    sink = io.BytesIO()
    decompress(BitInputStream(io.BytesIO(data)), BitOutputStream(sink), debug)
    return sink.getvalue()


def compress_file(src, dst, debug: int = 0) -> CompressionStats:
    with BitInputStream.open(src) as bit_in, BitOutputStream.open(dst) as bit_out:
        return compress(bit_in, bit_out, debug)


def decompress_file(src, dst, debug: int = 0) -> CompressionStats:
    with BitInputStream.open(src) as bit_in, BitOutputStream.open(dst) as bit_out:
        return decompress(bit_in, bit_out, debug)
