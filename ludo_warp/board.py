"""
Board layout for the warp variant.
Static description of the track: main circuit, home paths, warps, bonus cells.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .config import config
from .types import BoardSpaceType


@dataclass(frozen=True, slots=True)
class BoardSpace:
    position: int
    type: BoardSpaceType = BoardSpaceType.NORMAL
    owner_id: Optional[int] = None
    warp_target: Optional[int] = None

    def to_dict(self) -> dict:
        out = {"position": self.position, "type": self.type.value}
        if self.owner_id is not None:
            out["playerId"] = self.owner_id
        if self.warp_target is not None:
            out["warpTarget"] = self.warp_target
        return out


class Board:
    """
    Immutable track topology, built once per game.
    Knows nothing about pieces; the rules module queries it.
    """

    def __init__(self):
        self.circuit_size = config.MAIN_CIRCUIT_SIZE
        self.home_path_size = config.HOME_PATH_SIZE
        self.spaces: Dict[int, BoardSpace] = {
            space.position: space for space in create_board_layout()
        }

    def space_at(self, position: int) -> Optional[BoardSpace]:
        return self.spaces.get(position)

    def space_type(self, position: int) -> BoardSpaceType:
        space = self.spaces.get(position)
        return space.type if space else BoardSpaceType.NORMAL

    def start_entry(self, player_id: int) -> int:
        return config.START_ENTRIES[player_id]

    def home_entry(self, player_id: int) -> int:
        return config.HOME_ENTRIES[player_id]

    def home_cell(self, player_id: int, step: int) -> int:
        return config.home_cell(player_id, step)

    def is_circuit(self, position: int) -> bool:
        return 0 <= position < self.circuit_size

    def warp_target(self, position: int) -> Optional[int]:
        space = self.spaces.get(position)
        if space is None or space.type is not BoardSpaceType.WARP:
            return None
        return space.warp_target

    def layout(self) -> List[BoardSpace]:
        """All spaces, circuit first then home paths in player order."""
        return [self.spaces[k] for k in sorted(self.spaces)]

    def __str__(self) -> str:
        specials = [
            f"{s.position}:{s.type.value}"
            for s in self.layout()
            if s.type not in (BoardSpaceType.NORMAL, BoardSpaceType.HOME_PATH)
        ]
        return f"Board({', '.join(specials)})"


def create_board_layout() -> List[BoardSpace]:
    """Build the 40-cell circuit plus the four 4-cell home paths."""
    circuit: List[BoardSpace] = [
        BoardSpace(position=i) for i in range(config.MAIN_CIRCUIT_SIZE)
    ]

    for player_id, start in config.START_ENTRIES.items():
        circuit[start] = BoardSpace(
            position=start, type=BoardSpaceType.START_ENTRY, owner_id=player_id
        )

    # Warps are linked both ways: a <-> b
    for a, b in config.WARP_PAIRS:
        circuit[a] = BoardSpace(position=a, type=BoardSpaceType.WARP, warp_target=b)
        circuit[b] = BoardSpace(position=b, type=BoardSpaceType.WARP, warp_target=a)

    for pos in config.GO_AGAIN_CELLS:
        if circuit[pos].type is BoardSpaceType.NORMAL:
            circuit[pos] = BoardSpace(position=pos, type=BoardSpaceType.GO_AGAIN)

    home_paths: List[BoardSpace] = []
    for player_id in config.player_ids:
        for step in range(1, config.HOME_PATH_SIZE + 1):
            kind = (
                BoardSpaceType.HOME
                if step == config.HOME_PATH_SIZE
                else BoardSpaceType.HOME_PATH
            )
            home_paths.append(
                BoardSpace(
                    position=config.home_cell(player_id, step),
                    type=kind,
                    owner_id=player_id,
                )
            )

    return circuit + home_paths
