"""
Benchmark: Huffman container codec vs zlib baseline

Runs repeated compress/decompress experiments over synthetic datasets and
records ratio, timing and header overhead.

Outputs (in --outdir):
  - metrics.csv     (raw row per run per configuration)
  - summary.csv     (grouped mean/stdev)
  - *.png           (charts)

How to run:
  python experiments.py --outdir results --runs 5
  python experiments.py --outdir results --runs 3 --exp1_size_kb 256 --exp2_max_kb 1024
  python experiments.py --outdir results --exp1_generators uniform256,zipf128,english_like --no_exp2
"""

from __future__ import annotations

import argparse
import csv
import io
import random
import statistics
import time
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import matplotlib.pyplot as plt

import huffman as huff
from bitio import BitInputStream, BitOutputStream

PIPELINES = ("huffman", "zlib")


# Utilities

def now_ns() -> int:
    return time.perf_counter_ns()

def ns_to_ms(ns: int) -> float:
    return ns / 1_000_000.0

def safe_mkdir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


# Synthetic dataset generators

def _sample_cdf(rng: random.Random, weights: List[float], size: int) -> List[int]:
    total = sum(weights)
    cdf = []
    acc = 0.0
    for w in weights:
        acc += w / total
        cdf.append(acc)

    out = []
    for _ in range(size):
        r = rng.random()
        lo, hi = 0, len(cdf) - 1
        while lo < hi:
            mid = (lo + hi) // 2
            if r <= cdf[mid]:
                hi = mid
            else:
                lo = mid + 1
        out.append(lo)
    return out

def gen_uniform(size: int, alphabet: int = 256, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    return bytes(rng.randrange(0, alphabet) for _ in range(size))

def gen_repetitive(size: int, dominant: int = ord('A'), dom_frac: float = 0.90, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    other_symbols = [i for i in range(256) if i != dominant]
    out = bytearray()
    for _ in range(size):
        if rng.random() < dom_frac:
            out.append(dominant)
        else:
            out.append(rng.choice(other_symbols))
    return bytes(out)

def gen_zipf_like(size: int, alphabet: int = 128, s: float = 1.2, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    weights = [1.0 / ((i + 1) ** s) for i in range(alphabet)]
    return bytes(_sample_cdf(rng, weights, size))

def gen_english_like(size: int, seed: int = 0) -> bytes:
    rng = random.Random(seed)
    chars = (
        " etaoinshrdlcumwfgypbvkjxq"
        "ETAOINSHRDLCUMWFGYPBVKJXQ"
        "\n"
    )
    weights = []
    for ch in chars:
        if ch == ' ':
            weights.append(13.0)
        elif ch == '\n':
            weights.append(1.5)
        elif ch.lower() in "etaoinshrdlu":
            weights.append(6.0)
        elif ch.lower() in "cmfwgypbvk":
            weights.append(2.5)
        else:
            weights.append(1.2)
    return bytes(ord(chars[i]) for i in _sample_cdf(rng, weights, size))

def gen_all_bytes(size: int, seed: int = 0) -> bytes:
    start = seed % 256
    return bytes((start + i) % 256 for i in range(size))

GENERATOR_REGISTRY: Dict[str, Callable[[int, int], bytes]] = {
    "uniform256": lambda size, seed: gen_uniform(size, alphabet=256, seed=seed),
    "uniform128": lambda size, seed: gen_uniform(size, alphabet=128, seed=seed),
    "zipf128": lambda size, seed: gen_zipf_like(size, alphabet=128, s=1.2, seed=seed),
    "zipf64": lambda size, seed: gen_zipf_like(size, alphabet=64, s=1.2, seed=seed),
    "repetitive90": lambda size, seed: gen_repetitive(size, dominant=ord('A'), dom_frac=0.90, seed=seed),
    "repetitive99": lambda size, seed: gen_repetitive(size, dominant=ord('A'), dom_frac=0.99, seed=seed),
    "english_like": lambda size, seed: gen_english_like(size, seed=seed),
    "all_bytes": lambda size, seed: gen_all_bytes(size, seed=seed),
    "single_byte": lambda size, seed: bytes([seed % 256]) * size,
}

def generate_dataset(name: str, size_bytes: int, seed: int) -> bytes:
    fn = GENERATOR_REGISTRY.get(name)
    if fn is None:
        raise ValueError(f"unknown dataset generator {name!r}")
    return fn(size_bytes, seed)


# Experiment runner

@dataclass
class MetricRow:
    exp_name: str
    dataset_name: str
    file_size_bytes: int
    run_id: int
    pipeline: str  # "huffman" or "zlib"
    unique_symbols: int

    build_ms: float
    encode_ms: float
    decode_ms: float
    total_ms: float

    compressed_bytes: int
    header_bits: int
    compression_ratio: float
    correctness_ok: int  # 1 or 0


def _huffman_timed(data: bytes) -> Tuple[bytes, bytes, int, float, float, float]:
    """
    Same container as huff.compress, split so tree building and payload
    encoding are timed separately.
    """
    src = BitInputStream(io.BytesIO(data))
    sink = io.BytesIO()
    bit_out = BitOutputStream(sink)

    t0 = now_ns()
    counts = huff.read_for_counts(src)
    root = huff.make_tree_from_counts(counts)
    codings = huff.make_codings_from_tree(root)
    t1 = now_ns()

    bit_out.write_bits(huff.BITS_PER_INT, huff.HUFF_TREE)
    huff.write_header(root, bit_out)
    header_bits = bit_out.bits_written - huff.BITS_PER_INT
    src.reset()
    huff.write_compressed_bits(codings, src, bit_out)
    bit_out.close()
    t2 = now_ns()

    packed = sink.getvalue()
    decoded = huff.decompress_bytes(packed)
    t3 = now_ns()
    return packed, decoded, header_bits, ns_to_ms(t1 - t0), ns_to_ms(t2 - t1), ns_to_ms(t3 - t2)


def run_one(data: bytes, pipeline: str) -> MetricRow:
    if pipeline == "huffman":
        packed, decoded, header_bits, build_ms, encode_ms, decode_ms = _huffman_timed(data)
    elif pipeline == "zlib":
        t0 = now_ns()
        packed = zlib.compress(data, 9)
        t1 = now_ns()
        decoded = zlib.decompress(packed)
        t2 = now_ns()
        header_bits, build_ms = 0, 0.0
        encode_ms, decode_ms = ns_to_ms(t1 - t0), ns_to_ms(t2 - t1)
    else:
        raise ValueError("pipeline must be 'huffman' or 'zlib'")

    return MetricRow(
        exp_name="",
        dataset_name="",
        file_size_bytes=len(data),
        run_id=0,
        pipeline=pipeline,
        unique_symbols=len(set(data)),
        build_ms=build_ms,
        encode_ms=encode_ms,
        decode_ms=decode_ms,
        total_ms=build_ms + encode_ms + decode_ms,
        compressed_bytes=len(packed),
        header_bits=header_bits,
        compression_ratio=len(packed) / max(1, len(data)),
        correctness_ok=1 if decoded == data else 0,
    )


def write_csv(path: Path, rows: List[MetricRow]) -> None:
    fields = list(MetricRow.__dataclass_fields__.keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=fields)
        w.writeheader()
        for r in rows:
            w.writerow({k: getattr(r, k) for k in fields})


def mean_stdev(vals: List[float]) -> Tuple[float, float]:
    if len(vals) == 1:
        return vals[0], 0.0
    return statistics.mean(vals), statistics.stdev(vals)


def group_summary(rows: List[MetricRow], out_path: Path) -> None:
    """
    Group by exp_name, dataset_name, file_size_bytes, pipeline and compute mean/stdev
    """
    key_to: Dict[Tuple[str, str, int, str], List[MetricRow]] = {}
    for r in rows:
        key = (r.exp_name, r.dataset_name, r.file_size_bytes, r.pipeline)
        key_to.setdefault(key, []).append(r)

    measured = ["compression_ratio", "encode_ms", "decode_ms", "build_ms", "total_ms", "header_bits"]
    summary_fields = ["exp_name", "dataset_name", "file_size_bytes", "pipeline", "n_runs"]
    for m in measured:
        summary_fields += [f"{m}_mean", f"{m}_stdev"]
    summary_fields.append("correctness_ok_rate")

    with out_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=summary_fields)
        w.writeheader()
        for key, items in sorted(key_to.items()):
            exp_name, dataset_name, size_b, pipeline = key
            out = {
                "exp_name": exp_name,
                "dataset_name": dataset_name,
                "file_size_bytes": size_b,
                "pipeline": pipeline,
                "n_runs": len(items),
                "correctness_ok_rate": sum(x.correctness_ok for x in items) / len(items),
            }
            for m in measured:
                out[f"{m}_mean"], out[f"{m}_stdev"] = mean_stdev([getattr(x, m) for x in items])
            w.writerow(out)


# Plotting

def _line_chart(x, series: Dict[str, List[float]], *, xticks: Optional[List[str]], xlabel: str,
                ylabel: str, title: str, path: Path) -> None:
    plt.figure()
    for label, y in series.items():
        plt.plot(x, y, marker="o", label=label)
    if xticks is not None:
        plt.xticks(x, xticks, rotation=20, ha="right")
    if xlabel:
        plt.xlabel(xlabel)
    plt.ylabel(ylabel)
    plt.title(title)
    plt.legend()
    plt.tight_layout()
    plt.savefig(path, dpi=200)
    plt.close()


def plot_experiment_1(rows: List[MetricRow], outdir: Path) -> None:
    exp_rows = [r for r in rows if r.exp_name == "exp1_distribution"]
    if not exp_rows:
        return

    datasets = sorted(set(r.dataset_name for r in exp_rows))
    x = list(range(len(datasets)))

    def mean_for(dataset: str, pipeline: str, field: str) -> float:
        vals = [getattr(r, field) for r in exp_rows if r.dataset_name == dataset and r.pipeline == pipeline]
        return statistics.mean(vals) if vals else float("nan")

    for field, ylabel, stem in (
        ("compression_ratio", "Compressed Bytes / Original Bytes", "compression_ratio"),
        ("encode_ms", "Encode Time (ms)", "encode_time"),
        ("total_ms", "Total Time (ms) (build + encode + decode)", "total_time"),
    ):
        _line_chart(
            x, {p: [mean_for(d, p, field) for d in datasets] for p in PIPELINES},
            xticks=datasets, xlabel="", ylabel=ylabel,
            title=f"Experiment 1: {ylabel.split(' (')[0]} by Distribution",
            path=outdir / f"exp1_{stem}.png",
        )

    plt.figure()
    y = [mean_for(d, "huffman", "header_bits") / 8 for d in datasets]
    plt.bar(x, y)
    plt.xticks(x, datasets, rotation=20, ha="right")
    plt.ylabel("Tree Header (bytes)")
    plt.title("Experiment 1: Huffman Header Overhead")
    plt.tight_layout()
    plt.savefig(outdir / "exp1_header_overhead.png", dpi=200)
    plt.close()


def plot_experiment_2(rows: List[MetricRow], outdir: Path) -> None:
    exp_rows = [r for r in rows if r.exp_name == "exp2_size_scaling"]
    if not exp_rows:
        return

    for dist in sorted(set(r.dataset_name for r in exp_rows)):
        dist_rows = [r for r in exp_rows if r.dataset_name == dist]
        sizes = sorted(set(r.file_size_bytes for r in dist_rows))

        def mean_size(size: int, pipeline: str, field: str) -> float:
            vals = [getattr(r, field) for r in dist_rows if r.file_size_bytes == size and r.pipeline == pipeline]
            return statistics.mean(vals) if vals else float("nan")

        for field, ylabel, stem in (
            ("encode_ms", "Encode Time (ms)", "encode_time"),
            ("decode_ms", "Decode Time (ms)", "decode_time"),
            ("compression_ratio", "Compressed Bytes / Original Bytes", "compression_ratio"),
        ):
            _line_chart(
                sizes, {p: [mean_size(s, p, field) for s in sizes] for p in PIPELINES},
                xticks=None, xlabel="File Size (bytes)", ylabel=ylabel,
                title=f"Experiment 2: {ylabel.split(' (')[0]} vs Size ({dist})",
                path=outdir / f"exp2_{stem}_{dist}.png",
            )


# Main

def parse_csv_list(s: str) -> List[str]:
    return [x.strip() for x in s.split(",") if x.strip()]

def run_experiment(exp_name: str, configs: List[Tuple[str, int, int]], runs: int) -> List[MetricRow]:
    """configs: (generator name, size in bytes, base seed)"""
    rows: List[MetricRow] = []
    for gen_name, size_b, seed in configs:
        for run_id in range(1, runs + 1):
            data = generate_dataset(gen_name, size_b, seed + run_id)
            for pipeline in PIPELINES:
                row = run_one(data, pipeline)
                row.exp_name = exp_name
                row.dataset_name = gen_name
                row.run_id = run_id
                rows.append(row)
    return rows

def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--outdir", type=str, default="results", help="Output directory for CSV and plots")
    ap.add_argument("--runs", type=int, default=5, help="Repetitions per configuration (>=3 recommended for timing)")
    ap.add_argument("--seed", type=int, default=123, help="Base random seed")
    ap.add_argument("--no_plots", action="store_true", help="Write CSV only")

    # Experiment toggles
    ap.add_argument("--no_exp1", action="store_true", help="Disable experiment 1 (distribution)")
    ap.add_argument("--no_exp2", action="store_true", help="Disable experiment 2 (size scaling)")

    # Experiment 1 controls
    ap.add_argument("--exp1_size_kb", type=int, default=64, help="Experiment 1 fixed file size in KB")
    ap.add_argument("--exp1_generators", type=str, default="uniform256,zipf128,repetitive90,english_like,single_byte",
                    help="Comma-separated dataset generator names for experiment 1")

    # Experiment 2 controls
    ap.add_argument("--exp2_min_kb", type=int, default=1, help="Experiment 2 min size in KB (power-of-two growth)")
    ap.add_argument("--exp2_max_kb", type=int, default=256, help="Experiment 2 max size in KB (power-of-two growth)")
    ap.add_argument("--exp2_generators", type=str, default="uniform256,zipf128,repetitive90",
                    help="Comma-separated dataset generator names for experiment 2")

    args = ap.parse_args(argv)

    exp1_gens = parse_csv_list(args.exp1_generators)
    exp2_gens = parse_csv_list(args.exp2_generators)
    unknown = [g for g in exp1_gens + exp2_gens if g not in GENERATOR_REGISTRY]
    if unknown:
        ap.error(f"unknown generator(s): {', '.join(unknown)}; choose from {', '.join(GENERATOR_REGISTRY)}")

    outdir = Path(args.outdir)
    safe_mkdir(outdir)

    rows: List[MetricRow] = []

    # Experiment 1: distributions (fixed size)
    if not args.no_exp1:
        fixed_size = max(1, args.exp1_size_kb) * 1024
        rows += run_experiment("exp1_distribution", [(g, fixed_size, args.seed) for g in exp1_gens], args.runs)

    # Experiment 2: size scaling (powers of 2)
    if not args.no_exp2:
        sizes: List[int] = []
        s = max(1, args.exp2_min_kb) * 1024
        while s <= max(1, args.exp2_max_kb) * 1024:
            sizes.append(s)
            s *= 2
        configs = [(g, size_b, args.seed + 10_000 + size_b) for g in exp2_gens for size_b in sizes]
        rows += run_experiment("exp2_size_scaling", configs, args.runs)

    metrics_csv = outdir / "metrics.csv"
    summary_csv = outdir / "summary.csv"
    write_csv(metrics_csv, rows)
    group_summary(rows, summary_csv)

    if not args.no_plots:
        plot_experiment_1(rows, outdir)
        plot_experiment_2(rows, outdir)

    ok_rate = sum(r.correctness_ok for r in rows) / max(1, len(rows))
    print(f"Wrote {len(rows)} rows to {metrics_csv}")
    print(f"Wrote grouped summary to {summary_csv}")
    print(f"Correctness rate across all runs: {ok_rate:.3f}")
    if not args.no_plots:
        print("Charts saved in:", outdir.resolve())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
