from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config import config
from .piece import Piece
from .types import PieceState


@dataclass(slots=True)
class Player:
    id: int  # 1..4
    name: str
    color: str
    pieces: List[Piece] = field(default_factory=list)
    avatar_url: Optional[str] = None
    has_shield: bool = False
    is_computer: bool = False

    @classmethod
    def create(
        cls,
        player_id: int,
        name: Optional[str] = None,
        color: Optional[str] = None,
        *,
        is_computer: bool = False,
        avatar_url: Optional[str] = None,
    ) -> "Player":
        """Build a player with all pieces in start.

        Piece ids are unique across the game: player ``n`` owns
        ``(n - 1) * 4 .. (n - 1) * 4 + 3``.
        """
        base = (player_id - 1) * config.PIECES_PER_PLAYER
        pieces = [
            Piece(id=base + i, owner_id=player_id)
            for i in range(config.PIECES_PER_PLAYER)
        ]
        return cls(
            id=player_id,
            name=name or f"Player {player_id}",
            color=color or config.PLAYER_COLORS[player_id],
            pieces=pieces,
            avatar_url=avatar_url,
            is_computer=is_computer,
        )

    def has_finished(self) -> bool:
        return all(p.state is PieceState.HOME for p in self.pieces)

    def pieces_in_start(self) -> List[Piece]:
        return [p for p in self.pieces if p.state is PieceState.START]

    def get_piece(self, piece_id: int) -> Optional[Piece]:
        return next((p for p in self.pieces if p.id == piece_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "pieces": [p.to_dict() for p in self.pieces],
            "avatarUrl": self.avatar_url,
            "hasShield": self.has_shield,
            "isComputer": self.is_computer,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        player_id = int(data["id"])
        pieces_data = data.get("pieces")
        if pieces_data:
            pieces = [Piece.from_dict(p) for p in pieces_data]
        else:
            # Lobby entries may omit pieces; rebuild them in start
            pieces = cls.create(player_id).pieces
        return cls(
            id=player_id,
            name=data.get("name") or f"Player {player_id}",
            color=data.get("color") or config.PLAYER_COLORS.get(player_id, ""),
            pieces=pieces,
            avatar_url=data.get("avatarUrl"),
            has_shield=bool(data.get("hasShield", False)),
            is_computer=bool(data.get("isComputer", False)),
        )

    def __str__(self) -> str:
        return f"Player({self.id}, pieces: {[str(p) for p in self.pieces]})"
