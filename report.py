# report.py
import sys


def format_rate(rate):
    return f"{rate:.6f}" if rate > 0 else "0"


def format_configuration(config, trace_file):
    return [
        "===== Simulator configuration =====",
        f"BLOCKSIZE:\t\t{config.block_size}",
        f"L1_SIZE:\t\t{config.l1_size}",
        f"L1_ASSOC:\t\t{config.l1_assoc}",
        f"L2_SIZE:\t\t{config.l2_size}",
        f"L2_ASSOC:\t\t{config.l2_assoc}",
        f"REPLACEMENT POLICY:\t{config.policy_name}",
        f"INCLUSION PROPERTY:\t{config.inclusion_name}",
        f"trace_file:\t\t{trace_file}",
    ]


def format_contents(level):
    """Final state of every set; invalidated lines are listed too."""
    lines = [f"===== {level.name} contents ====="]
    for i, ways in enumerate(level.contents()):
        cells = "".join(f"{tag:x} D\t" if dirty else f"{tag:x}\t" for tag, dirty, _ in ways)
        lines.append(f"Set\t{i}:\t{cells}")
    return lines


def format_results(summary):
    s = summary
    return [
        "===== Simulation results (raw) =====",
        f"a. number of L1 reads:\t\t\t{s['l1_reads']}",
        f"b. number of L1 read misses:\t\t{s['l1_read_misses']}",
        f"c. number of L1 writes:\t\t\t{s['l1_writes']}",
        f"d. number of L1 write misses:\t\t{s['l1_write_misses']}",
        f"e. L1 miss rate:\t\t\t{format_rate(s['l1_miss_rate'])}",
        f"f. number of L1 writebacks:\t\t{s['l1_writebacks']}",
        f"g. number of L2 reads:\t\t\t{s['l2_reads']}",
        f"h. number of L2 read misses:\t\t{s['l2_read_misses']}",
        f"i. number of L2 writes:\t\t\t{s['l2_writes']}",
        f"j. number of L2 write misses:\t\t{s['l2_write_misses']}",
        f"k. L2 miss rate:\t\t\t{format_rate(s['l2_miss_rate'])}",
        f"l. number of L2 writebacks:\t\t{s['l2_writebacks']}",
        f"m. total memory traffic:\t\t{s['memory_traffic']}",
    ]


def format_report(hierarchy, trace_file):
    lines = format_configuration(hierarchy.config, trace_file)
    for level in hierarchy.levels:
        if level.present:
            lines.extend(format_contents(level))
    lines.extend(format_results(hierarchy.summary()))
    return "\n".join(lines) + "\n"


def describe_event(event):
    """One debug line per engine event, or None for events with no line."""
    kind = event.kind
    if kind in ("read", "write"):
        return f"{event.level} {kind} : {event.address:x} (tag {event.tag:x}, index {event.index})"
    if kind in ("hit", "miss"):
        return f"{event.level} {kind}"
    if kind == "victim":
        if event.detail == "none":
            return f"{event.level} victim: none"
        return f"{event.level} victim: {event.address:x} (tag {event.tag:x}, index {event.index}, {event.detail})"
    if kind == "invalidate":
        line = f"{event.level} invalidated: {event.address:x} (tag {event.tag:x}, index {event.index}, {event.detail})"
        if event.detail == "dirty":
            line += f"\n{event.level} writeback to main memory directly"
        return line
    return None


def print_trace(event, stream=None):
    """Observer that prints the access trace as the engine runs."""
    line = describe_event(event)
    if line is not None:
        print(line, file=stream or sys.stdout)
