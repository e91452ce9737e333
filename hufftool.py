"""
Command-line front end for the Huffman codec.

How to run:
  python hufftool.py compress notes.txt              # writes notes.txt.hf
  python hufftool.py decompress notes.txt.hf out.txt
  python hufftool.py compress big.bin big.hf --debug 1 --force
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import huffman as huff

SUFFIX = ".hf"


def default_output(src: Path, command: str) -> Path:
    if command == "compress":
        return src.with_name(src.name + SUFFIX)
    if src.suffix == SUFFIX:
        return src.with_suffix("")
    return src.with_name(src.name + ".out")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="hufftool", description="Huffman compress / decompress files")
    sub = ap.add_subparsers(dest="command", required=True)
    for name, help_text in (("compress", "compress INPUT into a .hf container"),
                            ("decompress", "restore the original bytes from a .hf container")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("input", type=str, help="source file")
        p.add_argument("output", type=str, nargs="?", default=None,
                       help=f"destination file (default: derived from INPUT and '{SUFFIX}')")
        p.add_argument("--debug", type=int, default=0,
                       help=f"diagnostics on stderr: {huff.DEBUG_LOW}=summary, {huff.DEBUG_HIGH}=code table")
        p.add_argument("--quiet", action="store_true", help="do not print the result line")
        p.add_argument("--force", action="store_true", help="overwrite OUTPUT if it exists")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    src = Path(args.input)
    dst = Path(args.output) if args.output else default_output(src, args.command)
    if dst.exists() and not args.force:
        print(f"error: {dst} exists (use --force to overwrite)", file=sys.stderr)
        return 1
    if dst.resolve() == src.resolve():
        print("error: input and output are the same file", file=sys.stderr)
        return 1

    run = huff.compress_file if args.command == "compress" else huff.decompress_file
    try:
        stats = run(src, dst, debug=args.debug)
    except huff.HuffmanError as e:
        print(f"error: {src}: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        if args.command == "compress":
            print(f"[compress] wrote {dst}: {stats.original_bytes} -> {stats.compressed_bytes} bytes "
                  f"(ratio {stats.ratio:.3f}, {stats.unique_symbols} distinct bytes)")
        else:
            print(f"[decompress] wrote {dst}: {stats.original_bytes} bytes")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
