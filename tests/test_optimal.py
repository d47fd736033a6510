import unittest

from cache import AddressLayout, Command, NEVER, Op
from optimal import FutureAccessIndex, build_future_index, decode_trace


def trace(*pairs):
    return [Command(op, address) for op, address in pairs]


class TestFutureAccessIndex(unittest.TestCase):

    def setUp(self):
        # 16B lines, 4 sets: offset 4 bits, index 2 bits
        self.layout = AddressLayout.for_geometry(16, 4)
        self.commands = trace((Op.READ, 0x00), (Op.READ, 0x40), (Op.READ, 0x00),
                              (Op.WRITE, 0x1C), (Op.READ, 0x08))
        self.index = build_future_index(self.commands, self.layout)

    def test_positions_grouped_by_line(self):
        self.assertEqual(len(self.index), 3)
        self.assertEqual(self.index.pending(0, 0), [1, 3, 5])
        self.assertEqual(self.index.pending(1, 0), [2])
        self.assertEqual(self.index.pending(0, 1), [4])

    def test_next_reference_discards_passed_positions(self):
        self.assertEqual(self.index.next_reference(0, 0, 1), 3)
        self.assertEqual(self.index.pending(0, 0), [5])
        self.assertEqual(self.index.next_reference(0, 0, 4), 5)
        self.assertEqual(self.index.next_reference(0, 0, 5), NEVER)

    def test_all_passed_means_never(self):
        self.assertEqual(self.index.next_reference(0, 1, 4), NEVER)
        self.assertEqual(self.index.pending(0, 1), [])

    def test_unknown_line_is_never(self):
        self.assertEqual(self.index.pending(7, 3), [])
        self.assertEqual(self.index.next_reference(7, 3, 0), NEVER)
        self.assertEqual(self.index.pop_next(7, 3), NEVER)
        self.assertEqual(FutureAccessIndex().next_reference(0, 0, 0), NEVER)

    def test_pop_next_ignores_time(self):
        self.assertEqual(self.index.pop_next(0, 0), 1)
        self.assertEqual(self.index.pop_next(0, 0), 3)
        self.assertEqual(self.index.pending(0, 0), [5])
        self.assertEqual(self.index.pop_next(0, 1), 4)
        self.assertEqual(self.index.pop_next(0, 1), NEVER)

    def test_levels_see_different_identities(self):
        # with a single set the index bits move into the tag
        single = build_future_index(self.commands, AddressLayout.for_geometry(16, 1))
        self.assertEqual(single.pending(0, 0), [1, 3, 5])
        self.assertEqual(single.pending(4, 0), [2])
        self.assertEqual(single.pending(1, 0), [4])


class TestDecodeTrace(unittest.TestCase):

    def test_matches_scalar_decoding(self):
        addresses = [0, 0x10, 0x12345678, 0x7FFFFFFF, 0x80000000, 0xFFFFFFFF]
        commands = trace(*[(Op.READ, a) for a in addresses])
        for block_size, num_sets in [(16, 64), (32, 1), (1, 1), (64, 1024)]:
            layout = AddressLayout.for_geometry(block_size, num_sets)
            tags, indices = decode_trace(commands, layout)
            self.assertEqual(tags.tolist(), [layout.tag(a) for a in addresses])
            self.assertEqual(indices.tolist(), [layout.index(a) for a in addresses])

    def test_empty_trace(self):
        index = build_future_index([], AddressLayout.for_geometry(16, 4))
        self.assertEqual(len(index), 0)


if __name__ == "__main__":
    unittest.main()
