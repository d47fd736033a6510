# cache.py
import math
from collections import namedtuple
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, List, Optional, Tuple

ADDRESS_BITS = 32
NEVER = math.inf


class ConfigError(ValueError):
    """Raised when a cache level cannot be built from the given geometry."""


class Policy(IntEnum):
    LRU = 0
    FIFO = 1
    OPTIMAL = 2


class Op:
    READ = "r"
    WRITE = "w"


class Command(namedtuple("Command", ["op", "address"])):
    """One memory reference: op is Op.READ or Op.WRITE, address a 32-bit int."""
    __slots__ = ()

    @property
    def is_write(self):
        return self.op == Op.WRITE

    def __str__(self):
        return f"{self.op} {self.address:x}"


# ---------------------------------------------------------------------------
# Address decoding
# ---------------------------------------------------------------------------

def tag_of(address, tag_bits):
    """Top `tag_bits` bits of a 32-bit address."""
    if tag_bits <= 0:
        return 0
    return address >> (ADDRESS_BITS - tag_bits)


def index_of(address, tag_bits, index_bits):
    """The `index_bits` bits that follow the tag; 0 when there is no index."""
    if index_bits <= 0:
        return 0
    offset_bits = ADDRESS_BITS - tag_bits - index_bits
    return (address >> offset_bits) & ((1 << index_bits) - 1)


def offset_of(address, offset_bits):
    return address & ((1 << offset_bits) - 1)


def is_power_of_two(n):
    return n > 0 and (n & (n - 1)) == 0


def compute_num_sets(size, assoc, block_size):
    """
    Number of sets for a level, 0 for an absent level.
    Raises ConfigError when the geometry does not divide exactly.
    """
    if size == 0 or assoc == 0:
        return 0
    if size < 0 or assoc < 0:
        raise ConfigError(f"cache size and associativity must not be negative (size={size}, assoc={assoc})")
    if not is_power_of_two(block_size):
        raise ConfigError(f"block size must be a positive power of 2, got {block_size}")
    num_sets, remainder = divmod(size, assoc * block_size)
    if remainder or num_sets == 0:
        raise ConfigError(
            f"cache size {size} is not a multiple of assoc*block_size ({assoc}*{block_size})")
    if not is_power_of_two(num_sets):
        raise ConfigError(f"number of sets must be a power of 2, got {num_sets}")
    return num_sets


@dataclass(frozen=True)
class AddressLayout:
    """Tag/index/offset widths of one cache level."""
    offset_bits: int
    index_bits: int

    @classmethod
    def for_geometry(cls, block_size, num_sets):
        offset_bits = block_size.bit_length() - 1 if block_size > 0 else 0
        index_bits = num_sets.bit_length() - 1 if num_sets > 0 else 0
        return cls(offset_bits, index_bits)

    @property
    def tag_bits(self):
        return ADDRESS_BITS - self.offset_bits - self.index_bits

    def tag(self, address):
        return tag_of(address, self.tag_bits)

    def index(self, address):
        return index_of(address, self.tag_bits, self.index_bits)

    def offset(self, address):
        return offset_of(address, self.offset_bits)

    def split(self, address) -> Tuple[int, int, int]:
        return self.tag(address), self.index(address), self.offset(address)

    def join(self, tag, index, offset=0):
        return (tag << (self.index_bits + self.offset_bits)) | (index << self.offset_bits) | offset

    def block_address(self, address):
        return address & ~((1 << self.offset_bits) - 1)


# ---------------------------------------------------------------------------
# Blocks and replacement stamps
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LastTouch:
    time: int


@dataclass(frozen=True)
class InsertedAt:
    time: int


@dataclass(frozen=True)
class NextRef:
    time: float  # NEVER when the block is not referenced again


STAMP_TYPES = {Policy.LRU: LastTouch, Policy.FIFO: InsertedAt, Policy.OPTIMAL: NextRef}


@dataclass
class Block:
    """
    Metadata of one cache line. `address` is the full address of the
    reference that allocated the line; it is what gets written back or
    invalidated on eviction.
    """
    address: int
    tag: int
    stamp: object
    valid: bool = True
    dirty: bool = False


AccessEvent = namedtuple("AccessEvent", ["level", "kind", "address", "tag", "index", "time", "detail"])


# ---------------------------------------------------------------------------
# Cache level
# ---------------------------------------------------------------------------

class CacheLevel:
    """
    One write-back, write-allocate, set-associative cache level.

    Each set is a list of `assoc` slots. A slot holding None has never been
    used; a Block with valid=False has been evicted or invalidated and keeps
    its stale tag, which the match pass still looks at.
    """

    def __init__(self, name, block_size, size, assoc, policy=Policy.LRU,
                 inclusive=False, future=None, observer: Optional[Callable] = None):
        self.name = name
        self.block_size = block_size
        self.size = size
        self.assoc = assoc
        self.policy = Policy(policy)
        self.inclusive = inclusive
        self.observer = observer

        self.num_sets = compute_num_sets(size, assoc, block_size)
        self.layout = AddressLayout.for_geometry(block_size, self.num_sets)
        self.sets: List[List[Optional[Block]]] = [[None] * assoc for _ in range(self.num_sets)]

        if self.policy is Policy.OPTIMAL and self.num_sets and future is None:
            raise ValueError(f"{name}: optimal replacement needs a future access index")
        self.future = future

        self.outer: Optional["CacheLevel"] = None  # toward memory
        self.inner: Optional["CacheLevel"] = None  # toward the CPU

        self.reads = 0
        self.read_misses = 0
        self.writes = 0
        self.write_misses = 0
        self.writebacks = 0
        self.invalidation_writebacks = 0

    @property
    def present(self):
        return self.num_sets > 0

    def _emit(self, kind, address, tag=None, index=None, time=None, detail=""):
        if self.observer is not None:
            self.observer(AccessEvent(self.name, kind, self.layout.block_address(address),
                                      tag, index, time, detail))

    # -- policy stamps -----------------------------------------------------

    def _new_stamp(self, time):
        # an optimal line starts at `time`; the victim scan moves it forward
        return STAMP_TYPES[self.policy](time)

    def _take_next_reference(self, block, index):
        if self.policy is Policy.OPTIMAL:
            block.stamp = NextRef(self.future.pop_next(block.tag, index))

    def _touch(self, block, index, time):
        if self.policy is Policy.LRU:
            block.stamp = LastTouch(time)
        else:
            # FIFO keeps its insertion time
            self._take_next_reference(block, index)

    def _count_miss(self, is_write):
        if is_write:
            self.write_misses += 1
        else:
            self.read_misses += 1

    # -- access ------------------------------------------------------------

    def access(self, command, time):
        """Apply one read or write at logical time `time`."""
        is_write = command.is_write
        if is_write:
            self.writes += 1
        else:
            self.reads += 1

        address = command.address
        tag, index = self.layout.tag(address), self.layout.index(address)
        ways = self.sets[index]
        self._emit("write" if is_write else "read", address, tag, index, time)

        target = None
        for way, block in enumerate(ways):
            if block is None or block.tag != tag:
                continue
            if block.valid:
                self._touch(block, index, time)
                if is_write:
                    block.dirty = True
                self._emit("hit", address, tag, index, time)
                return
            # stale copy of the same line: reuse its slot
            target = way
            break

        self._emit("miss", address, tag, index, time)
        new_block = Block(address, tag, self._new_stamp(time), dirty=is_write)

        if target is None:
            for way, block in enumerate(ways):
                if block is None:
                    self._emit("victim", address, tag, index, time, "none")
                    self._count_miss(is_write)
                    self._take_next_reference(new_block, index)
                    if self.outer is not None:
                        self.outer.access(Command(Op.READ, address), time + 1)
                    ways[way] = new_block
                    return
            target = self._select_victim(ways, index, time)

        self._evict(ways, target, new_block, is_write, time)

    def _select_victim(self, ways, index, now):
        chosen, best = None, None
        optimal = self.policy is Policy.OPTIMAL
        for way, block in enumerate(ways):
            if optimal and block.stamp.time <= now:
                block.stamp = NextRef(self.future.next_reference(block.tag, index, now))
            if not block.valid:
                return way
            t = block.stamp.time
            if optimal:
                if t == NEVER:
                    return way
                if best is None or t > best:
                    chosen, best = way, t
            elif best is None or t < best:
                chosen, best = way, t
        return chosen

    def _evict(self, ways, way, new_block, is_write, time):
        victim = ways[way]
        if self.observer is not None:
            flags = ["dirty" if victim.dirty else "clean"]
            if not victim.valid:
                flags.append("invalid")
            self._emit("victim", victim.address, victim.tag, self.layout.index(victim.address),
                       time, ", ".join(flags))

        if victim.dirty:
            self.writebacks += 1

        if self.inclusive and victim.valid and self.inner is not None:
            self.inner.invalidate(victim.address)

        if self.outer is not None:
            if victim.dirty and victim.valid:
                time += 1
                self.outer.access(Command(Op.WRITE, victim.address), time)
                victim.dirty = False
            time += 1
            self.outer.access(Command(Op.READ, new_block.address), time)

        victim.valid = False
        victim.dirty = False
        self._count_miss(is_write)
        ways[way] = new_block

    # -- invalidation ------------------------------------------------------

    def invalidate(self, address):
        """
        Drop every copy of `address`'s line from this level. A dirty copy is
        written straight to main memory and counted as an invalidation
        writeback.
        """
        if not self.present:
            return
        tag, index = self.layout.tag(address), self.layout.index(address)
        for block in self.sets[index]:
            if block is None or block.tag != tag:
                continue
            detail = "dirty" if block.dirty else "clean"
            block.valid = False
            if block.dirty:
                self.invalidation_writebacks += 1
                block.dirty = False
            self._emit("invalidate", address, tag, index, detail=detail)

    # -- inspection --------------------------------------------------------

    def contents(self):
        """Per set, the (tag, dirty, valid) of every slot that has been used."""
        return [[(b.tag, b.dirty, b.valid) for b in ways if b is not None] for ways in self.sets]

    def find(self, address) -> Optional[Block]:
        """The valid block holding `address`'s line, if any."""
        if not self.present:
            return None
        tag, index = self.layout.tag(address), self.layout.index(address)
        for block in self.sets[index]:
            if block is not None and block.valid and block.tag == tag:
                return block
        return None

    def stats(self):
        return {
            "name": self.name,
            "size": self.size,
            "assoc": self.assoc,
            "block_size": self.block_size,
            "num_sets": self.num_sets,
            "reads": self.reads,
            "read_misses": self.read_misses,
            "writes": self.writes,
            "write_misses": self.write_misses,
            "writebacks": self.writebacks,
            "invalidation_writebacks": self.invalidation_writebacks,
        }
