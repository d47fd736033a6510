# benchmark.py
import os
import json
import sys
import time

import numpy as np

from cache import ADDRESS_BITS, Command, ConfigError, Op
from hierarchy import CacheHierarchy, HierarchyConfig
from tracefile import format_trace
from visualize import plot_miss_curve, plot_miss_rates, plot_traffic_breakdown

PATTERNS = ("sequential", "random", "mixed")


def load_config(path="config.json"):
    with open(path, "r") as f:
        return json.load(f)


class TraceGenerator:
    """
    Synthetic trace of block-aligned references over a working set.

    sequential walks the working set block by block and wraps, random
    picks blocks uniformly, mixed is 80% sequential with random jumps.
    """

    def __init__(self, bench_cfg, block_size):
        self.rng = np.random.default_rng(bench_cfg.get("random_seed", None))
        self.block_size = block_size
        self.working_set_kb = bench_cfg.get("working_set_kb", 64)
        self.num_blocks = max(1, (self.working_set_kb * 1024) // block_size)
        self.base_address = int(str(bench_cfg.get("base_address", "0")), 16)
        self.read_ratio = bench_cfg.get("read_ratio", 0.8)
        self.access_pattern = bench_cfg.get("access_pattern", "mixed")
        if self.access_pattern not in PATTERNS:
            raise ConfigError(f"unknown access pattern {self.access_pattern!r} (expected one of {', '.join(PATTERNS)})")
        if not 0.0 <= self.read_ratio <= 1.0:
            raise ConfigError("read_ratio must be between 0 and 1")
        if self.base_address + self.num_blocks * block_size > 1 << ADDRESS_BITS:
            raise ConfigError("working set does not fit in a 32-bit address space")
        self._seq_ptr = 0

    def _next_sequential(self):
        block = self._seq_ptr
        self._seq_ptr = (block + 1) % self.num_blocks
        return block

    def _generate_block(self):
        if self.access_pattern == "sequential":
            return self._next_sequential()
        elif self.access_pattern == "random":
            return int(self.rng.integers(0, self.num_blocks))
        else:  # mixed
            if self.rng.random() < 0.8:
                return self._next_sequential()
            return int(self.rng.integers(0, self.num_blocks))

    def generate(self, num_requests):
        commands = []
        for _ in range(num_requests):
            address = self.base_address + self._generate_block() * self.block_size
            op = Op.READ if self.rng.random() < self.read_ratio else Op.WRITE
            commands.append(Command(op, address))
        return commands


class BenchmarkRunner:
    def __init__(self, cfg):
        self.cfg = cfg
        self.config = HierarchyConfig.from_dict(cfg["hierarchy"])
        bench_cfg = cfg.get("benchmark", {})
        self.num_requests = bench_cfg.get("num_requests", 10000)
        self.generator = TraceGenerator(bench_cfg, self.config.block_size)
        self.commands = None
        self.hierarchy = None

    def run(self):
        self.commands = self.generator.generate(self.num_requests)
        self.hierarchy = CacheHierarchy(self.config, self.commands)

        l1 = self.hierarchy.l1
        missed = np.zeros(len(self.commands), dtype=np.int64)
        start = time.time()
        for number, command in enumerate(self.commands, start=1):
            before = l1.read_misses + l1.write_misses
            self.hierarchy.submit(command, number)
            missed[number - 1] = l1.read_misses + l1.write_misses - before
        end = time.time()

        positions = np.arange(1, len(missed) + 1)
        miss_curve = np.cumsum(missed) / positions if len(missed) else np.zeros(0)

        summary = self.hierarchy.summary()
        summary.update({
            "total_requests": len(self.commands),
            "duration_s": end - start,
            "throughput_ops_per_sec": len(self.commands) / (end - start) if (end - start) > 0 else 0,
        })
        return summary, miss_curve

    def save_results(self, summary, out_cfg):
        results_dir = out_cfg.get("results_dir", "results")
        os.makedirs(results_dir, exist_ok=True)
        path = os.path.join(results_dir, out_cfg.get("results_file", "results.json"))
        with open(path, "w") as f:
            json.dump({"config": self.config.to_dict(), "summary": summary}, f, indent=2)
        return path

    def save_trace(self, out_cfg):
        """Write the generated trace in the simulator's input format."""
        name = out_cfg.get("trace_file")
        if not name or self.commands is None:
            return None
        results_dir = out_cfg.get("results_dir", "results")
        os.makedirs(results_dir, exist_ok=True)
        path = os.path.join(results_dir, name)
        with open(path, "w") as f:
            f.write(format_trace(self.commands))
        return path


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    path = argv[0] if argv else "config.json"
    try:
        cfg = load_config(path)
        runner = BenchmarkRunner(cfg)
    except (OSError, ValueError, KeyError) as e:
        print(f"error: {path}: {e}", file=sys.stderr)
        return 1

    out_cfg = cfg.get("output", {})
    print("Starting benchmark with config:", cfg.get("benchmark", {}))
    summary, miss_curve = runner.run()
    results_path = runner.save_results(summary, out_cfg)
    print("Benchmark Summary:", summary)
    print("Results saved to:", results_path)
    trace_path = runner.save_trace(out_cfg)
    if trace_path:
        print("Trace saved to:", trace_path)

    results_dir = out_cfg.get("results_dir", "results")
    plot_miss_rates(summary, out_cfg.get("miss_rate_plot", os.path.join(results_dir, "miss_rates.png")))
    plot_traffic_breakdown(summary, out_cfg.get("traffic_plot", os.path.join(results_dir, "memory_traffic.png")))
    plot_miss_curve(miss_curve, out_cfg.get("miss_curve_plot", os.path.join(results_dir, "miss_curve.png")))
    print(f"Plots saved in {results_dir}/")
    return 0


if __name__ == "__main__":
    sys.exit(main())
