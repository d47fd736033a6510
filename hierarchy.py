# hierarchy.py
from dataclasses import dataclass, asdict

import numpy as np

from cache import AddressLayout, CacheLevel, ConfigError, Policy, compute_num_sets, is_power_of_two
from optimal import build_future_index

POLICY_NAMES = {Policy.LRU: "LRU", Policy.FIFO: "FIFO", Policy.OPTIMAL: "optimal"}
INCLUSION_NAMES = {0: "non-inclusive", 1: "inclusive"}

ARG_NAMES = ("block_size", "l1_size", "l1_assoc", "l2_size", "l2_assoc",
             "replacement_policy", "inclusion_property")


@dataclass
class HierarchyConfig:
    """
    Parameters of a two-level hierarchy.

    Attributes:
        block_size: line size in bytes, shared by both levels
        l1_size, l1_assoc: geometry of L1 (always present)
        l2_size, l2_assoc: geometry of L2; l2_size == 0 means no L2
        replacement_policy: 0 = LRU, 1 = FIFO, 2 = optimal
        inclusion_property: 0 = non-inclusive, 1 = inclusive
    """
    block_size: int
    l1_size: int
    l1_assoc: int
    l2_size: int = 0
    l2_assoc: int = 0
    replacement_policy: int = 0
    inclusion_property: int = 0

    def __post_init__(self):
        if not is_power_of_two(self.block_size):
            raise ConfigError(f"block size must be a positive power of 2, got {self.block_size}")
        if self.l1_size <= 0 or self.l1_assoc <= 0:
            raise ConfigError("L1 size and associativity must be positive")
        if self.l2_size < 0:
            raise ConfigError("L2 size must not be negative")
        if self.l2_size > 0 and self.l2_assoc <= 0:
            raise ConfigError("L2 associativity must be positive when L2 is present")
        if self.replacement_policy not in POLICY_NAMES:
            raise ConfigError(f"invalid replacement policy {self.replacement_policy} (expected 0, 1 or 2)")
        if self.inclusion_property not in INCLUSION_NAMES:
            raise ConfigError(f"invalid inclusion property {self.inclusion_property} (expected 0 or 1)")
        compute_num_sets(self.l1_size, self.l1_assoc, self.block_size)
        if self.has_l2:
            compute_num_sets(self.l2_size, self.l2_assoc, self.block_size)

    @classmethod
    def from_argv(cls, values):
        """Build from the seven numeric command-line arguments, in order."""
        values = list(values)
        if len(values) != len(ARG_NAMES):
            raise ConfigError(f"expected {len(ARG_NAMES)} numeric arguments, got {len(values)}")
        parsed = {}
        for name, text in zip(ARG_NAMES, values):
            try:
                parsed[name] = int(text)
            except (TypeError, ValueError):
                raise ConfigError(f"{name} must be an integer, got {text!r}") from None
        return cls(**parsed)

    @classmethod
    def from_dict(cls, d):
        missing = [k for k in ARG_NAMES[:3] if k not in d]
        if missing:
            raise ConfigError(f"hierarchy config is missing {', '.join(missing)}")
        return cls(**{k: int(d[k]) for k in ARG_NAMES if k in d})

    @property
    def has_l2(self):
        return self.l2_size > 0

    @property
    def policy(self):
        return Policy(self.replacement_policy)

    @property
    def policy_name(self):
        return POLICY_NAMES[self.policy]

    @property
    def inclusive(self):
        return self.inclusion_property == 1

    @property
    def inclusion_name(self):
        return INCLUSION_NAMES[self.inclusion_property]

    def layout(self, size, assoc):
        return AddressLayout.for_geometry(self.block_size, compute_num_sets(size, assoc, self.block_size))

    def to_dict(self):
        return asdict(self)


def miss_rate(misses, accesses):
    """Single-precision miss rate; 0 when nothing was accessed."""
    if accesses == 0:
        return 0.0
    return float(np.float32(misses) / np.float32(accesses))


class CacheHierarchy:
    """
    L1 backed by an optional L2, backed by main memory.

    The optimal policy needs the whole trace up front: pass it as `commands`
    so that each present level gets its own future access index.
    """

    def __init__(self, config: HierarchyConfig, commands=None, observer=None):
        self.config = config
        policy = config.policy

        l1_future = l2_future = None
        if policy is Policy.OPTIMAL:
            if commands is None:
                raise ValueError("the optimal policy needs the command trace in advance")
            commands = list(commands)
            l1_future = build_future_index(commands, config.layout(config.l1_size, config.l1_assoc))
            if config.has_l2:
                l2_future = build_future_index(commands, config.layout(config.l2_size, config.l2_assoc))

        self.l1 = CacheLevel("L1", config.block_size, config.l1_size, config.l1_assoc,
                             policy, config.inclusive, l1_future, observer)
        if config.has_l2:
            self.l2 = CacheLevel("L2", config.block_size, config.l2_size, config.l2_assoc,
                                 policy, config.inclusive, l2_future, observer)
            self.l1.outer = self.l2
            self.l2.inner = self.l1
        else:
            # no storage, never linked: L1 talks to main memory directly
            self.l2 = CacheLevel("L2", config.block_size, 0, 0, policy, config.inclusive)

        self.levels = [self.l1, self.l2]
        self.submitted = 0

    @property
    def has_l2(self):
        return self.l2.present

    def submit(self, command, sequence_number):
        """Feed one trace command; `sequence_number` is its 1-based trace position."""
        self.submitted += 1
        self.l1.access(command, sequence_number)

    def run(self, commands):
        for number, command in enumerate(commands, start=1):
            self.submit(command, number)
        return self.summary()

    def contents(self, level):
        return self.levels[level - 1].contents()

    def summary(self):
        l1, l2 = self.l1, self.l2
        l1_rate = miss_rate(l1.read_misses + l1.write_misses, l1.reads + l1.writes)

        if self.has_l2:
            l2_rate = miss_rate(l2.read_misses, l2.reads)
            l1_writebacks = l1.writebacks
            traffic_misses = l2.read_misses + l2.write_misses
            traffic_writebacks = l2.writebacks
            traffic_invalidations = l2.invalidation_writebacks
            if self.config.inclusive:
                traffic_invalidations += l1.invalidation_writebacks
        else:
            l2_rate = 0.0
            l1_writebacks = l1.writebacks + l1.invalidation_writebacks
            traffic_misses = l1.read_misses + l1.write_misses
            traffic_writebacks = l1.writebacks
            traffic_invalidations = l1.invalidation_writebacks

        return {
            "l1_reads": l1.reads,
            "l1_read_misses": l1.read_misses,
            "l1_writes": l1.writes,
            "l1_write_misses": l1.write_misses,
            "l1_miss_rate": l1_rate,
            "l1_writebacks": l1_writebacks,
            "l2_reads": l2.reads,
            "l2_read_misses": l2.read_misses,
            "l2_writes": l2.writes,
            "l2_write_misses": l2.write_misses,
            "l2_miss_rate": l2_rate,
            "l2_writebacks": l2.writebacks + l2.invalidation_writebacks,
            "memory_traffic": traffic_misses + traffic_writebacks + traffic_invalidations,
            "traffic_misses": traffic_misses,
            "traffic_writebacks": traffic_writebacks,
            "traffic_invalidation_writebacks": traffic_invalidations,
        }
