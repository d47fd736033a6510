import json
import os
import tempfile
import unittest

import matplotlib
matplotlib.use("Agg")

from benchmark import BenchmarkRunner, TraceGenerator, load_config, main
from cache import ConfigError, Op
from visualize import plot_miss_curve, plot_miss_rates, plot_traffic_breakdown


def make_cfg(**bench):
    bench_cfg = {"num_requests": 500, "read_ratio": 0.7, "access_pattern": "mixed",
                 "working_set_kb": 4, "random_seed": 3}
    bench_cfg.update(bench)
    return {
        "hierarchy": {"block_size": 16, "l1_size": 256, "l1_assoc": 2,
                      "l2_size": 1024, "l2_assoc": 4, "replacement_policy": 0,
                      "inclusion_property": 0},
        "benchmark": bench_cfg,
    }


class TestTraceGenerator(unittest.TestCase):

    def test_seeded_runs_repeat(self):
        cfg = make_cfg()["benchmark"]
        first = TraceGenerator(cfg, 16).generate(200)
        second = TraceGenerator(cfg, 16).generate(200)
        self.assertEqual(first, second)

    def test_sequential_wraps_working_set(self):
        gen = TraceGenerator({"access_pattern": "sequential", "working_set_kb": 1,
                              "read_ratio": 1.0, "base_address": "1000"}, 64)
        commands = gen.generate(20)
        addresses = [c.address for c in commands]
        self.assertEqual(addresses[:16], [0x1000 + 64 * i for i in range(16)])
        self.assertEqual(addresses[16], 0x1000)
        self.assertTrue(all(c.op == Op.READ for c in commands))

    def test_random_stays_in_working_set(self):
        gen = TraceGenerator({"access_pattern": "random", "working_set_kb": 2, "random_seed": 1}, 32)
        for c in gen.generate(300):
            self.assertLess(c.address, 2048)
            self.assertEqual(c.address % 32, 0)

    def test_rejects_bad_settings(self):
        with self.assertRaises(ConfigError):
            TraceGenerator({"access_pattern": "zigzag"}, 16)
        with self.assertRaises(ConfigError):
            TraceGenerator({"read_ratio": 1.5}, 16)
        with self.assertRaises(ConfigError):
            TraceGenerator({"base_address": "ffffff00", "working_set_kb": 1}, 16)


class TestBenchmarkRunner(unittest.TestCase):

    def setUp(self):
        self.runner = BenchmarkRunner(make_cfg())
        self.summary, self.curve = self.runner.run()

    def test_summary(self):
        s = self.summary
        self.assertEqual(s["total_requests"], 500)
        self.assertEqual(s["l1_reads"] + s["l1_writes"], 500)
        self.assertGreater(s["l1_read_misses"] + s["l1_write_misses"], 0)

    def test_miss_curve(self):
        self.assertEqual(len(self.curve), 500)
        self.assertTrue(((self.curve >= 0) & (self.curve <= 1)).all())
        self.assertEqual(self.curve[0], 1.0)  # cold start
        self.assertAlmostEqual(self.curve[-1], self.summary["l1_miss_rate"], places=5)

    def test_save_results_and_trace(self):
        with tempfile.TemporaryDirectory() as d:
            out_cfg = {"results_dir": d, "results_file": "r.json", "trace_file": "t.txt"}
            path = self.runner.save_results(self.summary, out_cfg)
            with open(path) as f:
                saved = json.load(f)
            self.assertEqual(saved["summary"]["memory_traffic"], self.summary["memory_traffic"])
            self.assertEqual(saved["config"]["l2_assoc"], 4)
            trace_path = self.runner.save_trace(out_cfg)
            with open(trace_path) as f:
                self.assertEqual(len(f.read().splitlines()), 500)


class TestPlots(unittest.TestCase):

    SUMMARY = {"l1_miss_rate": 0.25, "l2_miss_rate": 0.5, "memory_traffic": 12,
               "traffic_misses": 8, "traffic_writebacks": 4, "traffic_invalidation_writebacks": 0}

    def test_plots_written(self):
        with tempfile.TemporaryDirectory() as d:
            paths = [os.path.join(d, "plots", name) for name in ("rates.png", "traffic.png", "curve.png")]
            plot_miss_rates(self.SUMMARY, paths[0])
            plot_traffic_breakdown(self.SUMMARY, paths[1])
            plot_miss_curve([1.0, 0.5, 0.33, 0.25], paths[2])
            for p in paths:
                self.assertTrue(os.path.getsize(p) > 0)

    def test_traffic_plot_without_traffic(self):
        empty = dict(self.SUMMARY, memory_traffic=0, traffic_misses=0, traffic_writebacks=0)
        with tempfile.TemporaryDirectory() as d:
            path = os.path.join(d, "traffic.png")
            plot_traffic_breakdown(empty, path)
            self.assertTrue(os.path.exists(path))


class TestMain(unittest.TestCase):

    def test_runs_from_config_file(self):
        with tempfile.TemporaryDirectory() as d:
            cfg = make_cfg(num_requests=100)
            cfg["output"] = {"results_dir": d,
                             "miss_rate_plot": os.path.join(d, "a.png"),
                             "traffic_plot": os.path.join(d, "b.png"),
                             "miss_curve_plot": os.path.join(d, "c.png")}
            path = os.path.join(d, "config.json")
            with open(path, "w") as f:
                json.dump(cfg, f)
            self.assertEqual(load_config(path)["benchmark"]["num_requests"], 100)
            self.assertEqual(main([path]), 0)
            self.assertTrue(os.path.exists(os.path.join(d, "results.json")))
            self.assertTrue(os.path.exists(os.path.join(d, "c.png")))

    def test_missing_config(self):
        self.assertEqual(main([os.path.join(tempfile.gettempdir(), "no-such-config.json")]), 1)


if __name__ == "__main__":
    unittest.main()
