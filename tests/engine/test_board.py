from __future__ import annotations

import unittest

from ludo_warp.board import Board, create_board_layout
from ludo_warp.config import config
from ludo_warp.types import BoardSpaceType


class BoardLayoutTests(unittest.TestCase):
    def setUp(self) -> None:
        self.board = Board()

    def test_layout_size(self) -> None:
        layout = create_board_layout()
        self.assertEqual(
            len(layout),
            config.MAIN_CIRCUIT_SIZE + config.PLAYER_COUNT * config.HOME_PATH_SIZE,
        )
        positions = [s.position for s in layout]
        self.assertEqual(len(positions), len(set(positions)))

    def test_start_entries_are_owned(self) -> None:
        for pid, cell in config.START_ENTRIES.items():
            space = self.board.space_at(cell)
            self.assertIs(space.type, BoardSpaceType.START_ENTRY)
            self.assertEqual(space.owner_id, pid)
            self.assertEqual(self.board.start_entry(pid), cell)

    def test_warps_are_bidirectional(self) -> None:
        self.assertEqual(self.board.warp_target(4), 24)
        self.assertEqual(self.board.warp_target(24), 4)
        self.assertEqual(self.board.warp_target(14), 34)
        self.assertEqual(self.board.warp_target(34), 14)
        self.assertIsNone(self.board.warp_target(5))
        self.assertIsNone(self.board.warp_target(101))

    def test_go_again_cells(self) -> None:
        for cell in (0, 10, 20, 30):
            self.assertIs(self.board.space_type(cell), BoardSpaceType.GO_AGAIN)
        self.assertIs(self.board.space_type(11), BoardSpaceType.NORMAL)

    def test_home_paths(self) -> None:
        for pid in config.player_ids:
            for step in range(1, config.HOME_PATH_SIZE):
                space = self.board.space_at(100 * pid + step)
                self.assertIs(space.type, BoardSpaceType.HOME_PATH)
                self.assertEqual(space.owner_id, pid)
            last = self.board.space_at(100 * pid + config.HOME_PATH_SIZE)
            self.assertIs(last.type, BoardSpaceType.HOME)

    def test_circuit_bounds(self) -> None:
        self.assertTrue(self.board.is_circuit(0))
        self.assertTrue(self.board.is_circuit(39))
        self.assertFalse(self.board.is_circuit(40))
        self.assertFalse(self.board.is_circuit(-1))
        self.assertFalse(self.board.is_circuit(101))

    def test_space_serialization(self) -> None:
        warp = self.board.space_at(4).to_dict()
        self.assertEqual(warp, {"position": 4, "type": "WARP", "warpTarget": 24})
        entry = self.board.space_at(16).to_dict()
        self.assertEqual(entry["playerId"], 2)


if __name__ == "__main__":
    unittest.main()
