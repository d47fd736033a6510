# main.py
import argparse
import json
import os
import sys

from cache import ConfigError
from hierarchy import ARG_NAMES, CacheHierarchy, HierarchyConfig
from report import format_report, print_trace
from tracefile import TraceFormatError, read_trace
from visualize import plot_miss_rates, plot_traffic_breakdown


def build_parser():
    p = argparse.ArgumentParser(
        prog="sim_cache",
        description="Two-level write-back cache hierarchy simulator")
    p.add_argument("block_size", help="block size in bytes (shared by L1 and L2)")
    p.add_argument("l1_size", help="L1 size in bytes")
    p.add_argument("l1_assoc", help="L1 associativity")
    p.add_argument("l2_size", help="L2 size in bytes, 0 for no L2")
    p.add_argument("l2_assoc", help="L2 associativity")
    p.add_argument("replacement_policy", help="0 = LRU, 1 = FIFO, 2 = optimal")
    p.add_argument("inclusion_property", help="0 = non-inclusive, 1 = inclusive")
    p.add_argument("trace_file", help="trace with one '<r|w> <hex address>' per line")
    p.add_argument("--debug", action="store_true", help="print every cache event as it happens")
    p.add_argument("--results", metavar="PATH", help="also write the summary as JSON")
    p.add_argument("--plot-dir", metavar="DIR", help="write miss-rate and traffic charts here")
    return p


def save_summary(summary, config, path):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w") as f:
        json.dump({"config": config.to_dict(), "summary": summary}, f, indent=2)
    return path


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        config = HierarchyConfig.from_argv(getattr(args, name) for name in ARG_NAMES)
        commands = read_trace(args.trace_file)
    except (ConfigError, TraceFormatError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: cannot read trace file: {e}", file=sys.stderr)
        return 1

    observer = print_trace if args.debug else None
    hierarchy = CacheHierarchy(config, commands, observer=observer)
    for number, command in enumerate(commands, start=1):
        if args.debug:
            print("----------------------------------------")
            print(f"# {number} : {'write' if command.is_write else 'read'} {command.address:x}")
        hierarchy.submit(command, number)

    sys.stdout.write(format_report(hierarchy, args.trace_file))

    summary = hierarchy.summary()
    if args.results:
        print("Results saved to:", save_summary(summary, config, args.results))
    if args.plot_dir:
        plot_miss_rates(summary, os.path.join(args.plot_dir, "miss_rates.png"))
        plot_traffic_breakdown(summary, os.path.join(args.plot_dir, "memory_traffic.png"))
        print("Plots saved in", args.plot_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
