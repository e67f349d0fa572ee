from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from .config import config
from .types import PieceState


@dataclass(slots=True)
class Piece:
    """Lightweight piece model. Holds state only.

    Legality and side effects of moves live in the rules module. Position is
    ``-1`` while in start, ``0..39`` on the main circuit and
    ``100 * owner_id + step`` on the owner's home path.
    """

    id: int  # unique across the game (0..15)
    owner_id: int  # 1..4
    state: PieceState = PieceState.START
    position: int = config.START_SENTINEL

    @property
    def home_step(self) -> int:
        if self.state is not PieceState.HOME:
            return 0
        return self.position % config.HOME_PATH_BASE

    @property
    def on_circuit(self) -> bool:
        return self.state is PieceState.IN_PLAY

    def move_to(self, position: int, state: PieceState) -> None:
        self.position = position
        self.state = state

    def send_to_start(self) -> None:
        self.position = config.START_SENTINEL
        self.state = PieceState.START

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "playerId": self.owner_id,
            "state": self.state.value,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Piece":
        return cls(
            id=int(data["id"]),
            owner_id=int(data["playerId"]),
            state=PieceState(data["state"]),
            position=int(data["position"]),
        )

    def __str__(self) -> str:
        return f"Piece(P{self.owner_id}#{self.id}: {self.state.value} at {self.position})"
