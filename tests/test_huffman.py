import io
import random

import pytest

import huffman as huff
from bitio import BitInputStream, BitOutputStream


def _counts(data: bytes):
    return huff.read_for_counts(BitInputStream(io.BytesIO(data)))


def _serialize(root) -> bytes:
    sink = io.BytesIO()
    out = BitOutputStream(sink)
    huff.write_header(root, out)
    out.close()
    return sink.getvalue()


def _is_prefix_free(codings) -> bool:
    codes = [format(v, f"0{n}b") for v, n in codings.values()]
    return not any(a != b and b.startswith(a) for a in codes for b in codes)


# Frequency counting

def test_counts_tally_bytes_and_add_one_pseudo_eof():
    counts = _counts(b"AAAB")
    assert len(counts) == huff.ALPH_SIZE + 1
    assert counts[65] == 3
    assert counts[66] == 1
    assert counts[huff.PSEUDO_EOF] == 1
    assert sum(counts) == 5


def test_counts_for_empty_input_only_have_pseudo_eof():
    counts = _counts(b"")
    assert counts[huff.PSEUDO_EOF] == 1
    assert sum(counts) == 1


# Tree and code table

def test_scenario_tree_gives_most_frequent_byte_shortest_code():
    root = huff.make_tree_from_counts(_counts(bytes([65, 65, 65, 66])))
    assert root.weight == 5
    codings = huff.make_codings_from_tree(root)
    assert set(codings) == {65, 66, huff.PSEUDO_EOF}
    assert codings[65][1] == 1
    assert _is_prefix_free(codings)


def test_internal_weight_is_sum_of_children():
    root = huff.make_tree_from_counts(_counts(b"abracadabra"))
    stack = [root]
    while stack:
        node = stack.pop()
        if not node.is_leaf:
            assert node.weight == node.left.weight + node.right.weight
            stack += [node.left, node.right]


def test_equal_weights_break_ties_by_symbol_then_age():
    counts = [0] * (huff.ALPH_SIZE + 1)
    counts[10] = 1
    counts[20] = 1
    counts[huff.PSEUDO_EOF] = 1
    codings = huff.make_codings_from_tree(huff.make_tree_from_counts(counts))
    assert codings == {
        huff.PSEUDO_EOF: (0b0, 1),
        10: (0b10, 2),
        20: (0b11, 2),
    }


def test_lone_pseudo_eof_gets_placeholder_sibling():
    root = huff.make_tree_from_counts(_counts(b""))
    assert not root.is_leaf
    assert root.left.symbol == huff.PLACEHOLDER
    assert root.right.symbol == huff.PSEUDO_EOF
    codings = huff.make_codings_from_tree(root)
    assert codings[huff.PSEUDO_EOF] == (1, 1)


def test_single_repeated_byte_gets_one_bit_code():
    codings = huff.make_codings_from_tree(huff.make_tree_from_counts(_counts(b"z" * 1000)))
    assert codings[ord("z")][1] == 1
    assert codings[huff.PSEUDO_EOF][1] == 1


def test_tree_needs_a_nonzero_count():
    with pytest.raises(ValueError):
        huff.make_tree_from_counts([0] * (huff.ALPH_SIZE + 1))


def test_bare_leaf_has_no_code():
    with pytest.raises(huff.MalformedStructureError):
        huff.make_codings_from_tree(huff.HuffmanNode(65, 1))


def test_codes_are_prefix_free_for_random_data():
    rng = random.Random(7)
    data = bytes(rng.randrange(0, 40) for _ in range(5000))
    codings = huff.make_codings_from_tree(huff.make_tree_from_counts(_counts(data)))
    assert all(length >= 1 for _, length in codings.values())
    assert _is_prefix_free(codings)


# Header codec

def test_header_round_trip_keeps_every_leaf_at_its_path():
    rng = random.Random(3)
    data = bytes(rng.randrange(0, 256) for _ in range(4000))
    root = huff.make_tree_from_counts(_counts(data))
    rebuilt = huff.read_tree_header(BitInputStream(io.BytesIO(_serialize(root))))
    assert huff.make_codings_from_tree(rebuilt) == huff.make_codings_from_tree(root)
    assert huff.leaf_symbols(rebuilt) == huff.leaf_symbols(root)


def test_header_size_is_one_bit_per_node_plus_leaf_values():
    root = huff.make_tree_from_counts(_counts(b"hello world"))
    leaves = len(huff.leaf_symbols(root))
    sink = io.BytesIO()
    out = BitOutputStream(sink)
    huff.write_header(root, out)
    assert out.bits_written == (leaves - 1) + leaves * (1 + huff.LEAF_VALUE_BITS)


def test_header_truncated_inside_leaf_value():
    root = huff.make_tree_from_counts(_counts(b"AAAB"))
    header = _serialize(root)
    with pytest.raises(huff.TruncatedStreamError) as exc:
        huff.read_tree_header(BitInputStream(io.BytesIO(header[:2])))
    assert exc.value.phase == huff.PHASE_TREE


def test_header_truncated_before_first_bit():
    with pytest.raises(huff.TruncatedStreamError):
        huff.read_tree_header(BitInputStream(io.BytesIO(b"")))


def test_write_header_rejects_internal_node_missing_child():
    broken = huff.HuffmanNode(None, 0, left=huff.HuffmanNode(65, 1))
    with pytest.raises(huff.MalformedStructureError):
        huff.write_header(broken, BitOutputStream(io.BytesIO()))


# Round trips

@pytest.mark.parametrize("data", [
    b"",
    b"A",
    b"AB",
    bytes([65, 65, 65, 66]),
    b"A" * 10240,
    bytes(range(256)),
    b"This is a test" * 100,
])
def test_round_trip(data):
    assert huff.decompress_bytes(huff.compress_bytes(data)) == data


def test_round_trip_random_10kb():
    rng = random.Random(11)
    data = bytes(rng.getrandbits(8) for _ in range(10 * 1024))
    assert huff.decompress_bytes(huff.compress_bytes(data)) == data


def test_small_random_inputs():
    rng = random.Random(5)
    for n in (1, 2, 3, 17):
        data = bytes(rng.getrandbits(8) for _ in range(n))
        assert huff.decompress_bytes(huff.compress_bytes(data)) == data


def test_output_is_reproducible():
    data = b"the quick brown fox jumps over the lazy dog" * 20
    assert huff.compress_bytes(data) == huff.compress_bytes(data)


def test_container_starts_with_magic():
    packed = huff.compress_bytes(b"abc")
    assert int.from_bytes(packed[:4], "big") == huff.HUFF_TREE


def test_repetitive_input_shrinks():
    data = b"A" * 10000
    assert len(huff.compress_bytes(data)) < len(data) // 6


def test_bits_after_pseudo_eof_are_ignored():
    data = b"trailing garbage"
    assert huff.decompress_bytes(huff.compress_bytes(data) + b"\xff\xff\x00") == data


# Errors

def test_corrupted_magic_raises_header_error():
    packed = bytearray(huff.compress_bytes(b"Hello World" * 50))
    packed[0] ^= 0xFF
    with pytest.raises(huff.HeaderError) as exc:
        huff.decompress_bytes(bytes(packed))
    assert exc.value.phase == huff.PHASE_HEADER


def test_wrong_magic_is_rejected_before_tree_parse():
    # an all-zero body would otherwise parse as an endless run of internal nodes
    with pytest.raises(huff.HeaderError):
        huff.decompress_bytes(b"\x00" * 4 + b"\x00" * 64)


def test_input_shorter_than_magic_raises_header_error():
    with pytest.raises(huff.HeaderError):
        huff.decompress_bytes(b"\xfa\xce")


def test_truncated_payload_raises():
    packed = huff.compress_bytes(b"This is a test" * 100)
    with pytest.raises(huff.TruncatedStreamError) as exc:
        huff.decompress_bytes(packed[:-3])
    assert exc.value.phase == huff.PHASE_PAYLOAD


def test_truncated_header_raises():
    packed = huff.compress_bytes(bytes(range(256)))
    with pytest.raises(huff.TruncatedStreamError) as exc:
        huff.decompress_bytes(packed[:6])
    assert exc.value.phase == huff.PHASE_TREE


def test_errors_are_value_errors():
    assert issubclass(huff.HuffmanError, ValueError)
    for cls in (huff.HeaderError, huff.TruncatedStreamError, huff.MalformedStructureError):
        assert issubclass(cls, huff.HuffmanError)


def test_missing_child_during_decode_is_malformed():
    broken = huff.HuffmanNode(None, 0, left=huff.HuffmanNode(65, 1))
    with pytest.raises(huff.MalformedStructureError):
        huff.read_compressed_bits(broken, BitInputStream(io.BytesIO(b"\x80")), BitOutputStream(io.BytesIO()))


def test_bare_leaf_header_is_malformed():
    sink = io.BytesIO()
    out = BitOutputStream(sink)
    out.write_bits(huff.BITS_PER_INT, huff.HUFF_TREE)
    out.write_bits(1, 1)
    out.write_bits(huff.LEAF_VALUE_BITS, 65)
    out.close()
    with pytest.raises(huff.MalformedStructureError):
        huff.decompress_bytes(sink.getvalue())


def test_placeholder_leaf_in_payload_is_malformed():
    root = huff.make_tree_from_counts(_counts(b""))
    sink = io.BytesIO()
    out = BitOutputStream(sink)
    out.write_bits(huff.BITS_PER_INT, huff.HUFF_TREE)
    huff.write_header(root, out)
    out.write_bits(1, 0)  # left child is the placeholder
    out.close()
    with pytest.raises(huff.MalformedStructureError):
        huff.decompress_bytes(sink.getvalue())


# Drivers, stats and diagnostics

def test_compress_reports_stats():
    data = b"mississippi" * 10
    sink = io.BytesIO()
    stats = huff.compress(BitInputStream(io.BytesIO(data)), BitOutputStream(sink))
    assert stats.original_bytes == len(data)
    assert stats.compressed_bytes == len(sink.getvalue())
    assert stats.unique_symbols == 4
    assert stats.bits_read == 8 * len(data)
    assert stats.bits_written == huff.BITS_PER_INT + stats.header_bits + stats.payload_bits
    assert stats.ratio < 1.0


def test_decompress_reports_stats():
    data = b"mississippi" * 10
    packed = huff.compress_bytes(data)
    stats = huff.decompress(BitInputStream(io.BytesIO(packed)), BitOutputStream(io.BytesIO()))
    assert stats.original_bytes == len(data)
    assert stats.bits_written == 8 * len(data)
    assert stats.unique_symbols == 4


def test_file_round_trip(tmp_path):
    src = tmp_path / "in.bin"
    packed = tmp_path / "in.bin.hf"
    restored = tmp_path / "out.bin"
    src.write_bytes(bytes(range(256)) * 4 + b"\x00" * 500)
    huff.compress_file(src, packed)
    huff.decompress_file(packed, restored)
    assert restored.read_bytes() == src.read_bytes()


def test_debug_levels_print_to_stderr(capsys):
    huff.compress_bytes(b"abc", debug=huff.DEBUG_LOW)
    err = capsys.readouterr().err
    assert "[compress] header bits=" in err
    assert "code 256:" not in err

    huff.compress_bytes(b"abc", debug=huff.DEBUG_HIGH)
    assert "code 256:" in capsys.readouterr().err


def test_no_output_without_debug(capsys):
    huff.decompress_bytes(huff.compress_bytes(b"quiet"))
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == ""
