from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Optional, Tuple, Union

from loguru import logger

if TYPE_CHECKING:
    from .piece import Piece


class PieceState(str, Enum):
    START = "START"
    IN_PLAY = "IN_PLAY"
    HOME = "HOME"


class GameState(str, Enum):
    LANDING = "LANDING"
    SETUP = "SETUP"
    PLAYING = "PLAYING"
    GAME_OVER = "GAME_OVER"


class SpecialAbility(str, Enum):
    SHIELD = "SHIELD"
    PLUS_ONE = "PLUS_ONE"
    BACK_FORTH = "BACK_FORTH"
    SWORD = "SWORD"
    GOLD_TOKEN = "GOLD_TOKEN"
    NONE = "NONE"


ABILITY_DIE_FACES: Tuple[SpecialAbility, ...] = (
    SpecialAbility.SHIELD,
    SpecialAbility.PLUS_ONE,
    SpecialAbility.BACK_FORTH,
    SpecialAbility.SWORD,
    SpecialAbility.GOLD_TOKEN,
    SpecialAbility.NONE,
)


class BoardSpaceType(str, Enum):
    NORMAL = "NORMAL"
    WARP = "WARP"
    GO_AGAIN = "GO_AGAIN"
    START_ENTRY = "START_ENTRY"
    HOME_PATH = "HOME_PATH"
    HOME = "HOME"


class ChangeOrigin(str, Enum):
    LOCAL = "local"  # committed by this process, must be published
    REMOTE = "remote"  # applied from a replicated snapshot
    RESET = "reset"


# --- Pending actions ---


@dataclass(frozen=True, slots=True)
class RollAction:
    type: ClassVar[str] = "roll"


@dataclass(frozen=True, slots=True)
class MoveAction:
    type: ClassVar[str] = "move"
    valid_moves: Tuple[int, ...] = ()
    selected_piece_id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class UseAbilityAction:
    type: ClassVar[str] = "use_ability"
    ability: SpecialAbility = SpecialAbility.SWORD


@dataclass(frozen=True, slots=True)
class ShieldDefenseAction:
    type: ClassVar[str] = "shield_defense"
    attacker_id: int = 0
    defender_id: int = 0
    position: int = -1


@dataclass(frozen=True, slots=True)
class InitializingAction:
    type: ClassVar[str] = "initializing"


@dataclass(frozen=True, slots=True)
class GameOverAction:
    type: ClassVar[str] = "game_over"


PendingAction = Union[
    RollAction,
    MoveAction,
    UseAbilityAction,
    ShieldDefenseAction,
    InitializingAction,
    GameOverAction,
]


def pending_action_to_dict(action: PendingAction) -> Dict[str, Any]:
    """Encode a pending action in the session document shape."""
    if isinstance(action, MoveAction):
        return {
            "type": action.type,
            "pieceId": action.selected_piece_id,
            "validMoves": list(action.valid_moves),
        }
    if isinstance(action, UseAbilityAction):
        return {"type": action.type, "ability": action.ability.value}
    if isinstance(action, ShieldDefenseAction):
        return {
            "type": action.type,
            "attackerId": action.attacker_id,
            "defenderId": action.defender_id,
            "position": action.position,
        }
    return {"type": action.type}


def pending_action_from_dict(data: Optional[Dict[str, Any]]) -> PendingAction:
    """Decode a pending action; ``None`` means the session is still initializing.

    Raises:
        ValueError: If the payload carries an unknown action type.
    """
    if data is None:
        return InitializingAction()
    if not isinstance(data, dict):
        raise ValueError(f"Pending action must be an object, got {data!r}")
    kind = data.get("type")
    if kind == RollAction.type:
        return RollAction()
    if kind == MoveAction.type:
        valid = data.get("validMoves") or []
        return MoveAction(
            valid_moves=tuple(int(v) for v in valid),
            selected_piece_id=data.get("pieceId"),
        )
    if kind == UseAbilityAction.type:
        return UseAbilityAction(ability=SpecialAbility(data["ability"]))
    if kind == ShieldDefenseAction.type:
        return ShieldDefenseAction(
            attacker_id=int(data["attackerId"]),
            defender_id=int(data["defenderId"]),
            position=int(data["position"]),
        )
    if kind == InitializingAction.type:
        return InitializingAction()
    if kind == GameOverAction.type:
        return GameOverAction()
    logger.warning(f"Unknown pending action type in payload: {data!r}")
    raise ValueError(f"Unknown pending action type: {kind!r}")


@dataclass(slots=True)
class MoveResult:
    """Outcome of a resolved move, as computed by the rules engine."""

    old_position: int
    new_position: int
    new_state: PieceState
    warped: bool = False
    landed_on_bonus: bool = False
    captured: Optional["Piece"] = None
    # Set instead of ``captured`` when the occupant's owner holds a shield
    shielded: Optional["Piece"] = field(default=None)

    @property
    def needs_shield_decision(self) -> bool:
        return self.shielded is not None
