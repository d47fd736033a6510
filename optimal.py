# optimal.py
from collections import deque

import numpy as np

from cache import ADDRESS_BITS, NEVER


class FutureAccessIndex:
    """
    For every (tag, index) line identity of one cache level, the queue of
    trace positions (1-based) at which that line is referenced.

    Queues are consumed while the simulation runs, so an index belongs to
    exactly one level and one run.
    """

    def __init__(self, queues=None):
        self._queues = queues if queues is not None else {}

    def __len__(self):
        return len(self._queues)

    def pending(self, tag, index):
        """Positions still queued for a line, oldest first."""
        return list(self._queues.get((tag, index), ()))

    def pop_next(self, tag, index):
        """Take the oldest queued position for a line, or NEVER."""
        queue = self._queues.get((tag, index))
        if not queue:
            return NEVER
        return queue.popleft()

    def next_reference(self, tag, index, now):
        """
        Pop the first queued position strictly after `now`, discarding the
        ones already passed. NEVER when the line is not referenced again.
        """
        queue = self._queues.get((tag, index))
        while queue and queue[0] <= now:
            queue.popleft()
        return self.pop_next(tag, index)


def decode_trace(commands, layout):
    """Vectorised tag and index of every command under `layout`."""
    addresses = np.fromiter((c.address for c in commands), dtype=np.uint64, count=len(commands))
    tag_shift = np.uint64(ADDRESS_BITS - layout.tag_bits)
    tags = addresses >> tag_shift
    if layout.index_bits:
        mask = np.uint64((1 << layout.index_bits) - 1)
        indices = (addresses >> np.uint64(layout.offset_bits)) & mask
    else:
        indices = np.zeros_like(addresses)
    return tags, indices


def build_future_index(commands, layout):
    commands = list(commands)
    tags, indices = decode_trace(commands, layout)
    queues = {}
    for position, key in enumerate(zip(tags.tolist(), indices.tolist()), start=1):
        queue = queues.get(key)
        if queue is None:
            queue = queues[key] = deque()
        queue.append(position)
    return FutureAccessIndex(queues)
