"""
Turn controller for the warp variant.

``Engine`` owns the canonical game state and is the single entry point for
every mutation: human input, the autonomous player and remote snapshots all
go through the operations below. Each committed change is dispatched to
listeners as a ``StateChange`` carrying the patch of changed session fields.
"""

from __future__ import annotations

import copy
import functools
import random
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from . import rules
from .avatar import AvatarGenerator, NullAvatarGenerator, safe_generate
from .board import Board, BoardSpace
from .config import config
from .piece import Piece
from .player import Player
from .types import (
    ABILITY_DIE_FACES,
    ChangeOrigin,
    GameOverAction,
    GameState,
    InitializingAction,
    MoveAction,
    PendingAction,
    RollAction,
    ShieldDefenseAction,
    SpecialAbility,
    UseAbilityAction,
    pending_action_from_dict,
    pending_action_to_dict,
)

Dice = Tuple[int, int]  # (value used for moving, natural face rolled)

SESSION_FIELDS: Tuple[str, ...] = (
    "players",
    "gameState",
    "currentPlayerId",
    "dice",
    "ability",
    "pendingAction",
    "winners",
)
_FIELD_ATTRS: Dict[str, str] = {
    "players": "players",
    "gameState": "game_state",
    "currentPlayerId": "current_player_id",
    "dice": "dice",
    "ability": "ability",
    "pendingAction": "pending_action",
    "winners": "winners",
}


@dataclass(frozen=True, slots=True)
class GameSnapshot:
    """Read-only view handed to renderers, the AI and the sync layer."""

    game_state: GameState
    players: Tuple[Player, ...]
    current_player_id: int
    dice: Optional[Dice]
    ability: Optional[SpecialAbility]
    board: Tuple[BoardSpace, ...]
    winners: Tuple[int, ...]
    pending_action: PendingAction
    has_valid_moves: bool
    game_id: Optional[str] = None
    local_player_id: Optional[int] = None

    def player(self, player_id: int) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)


@dataclass(frozen=True, slots=True)
class StateChange:
    origin: ChangeOrigin
    patch: Dict[str, Any]
    snapshot: GameSnapshot


Listener = Callable[[StateChange], None]


def _locked(method):
    """Run an engine entry point under the engine lock."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.lock:
            return method(self, *args, **kwargs)

    return wrapper


class Engine:
    """
    Owns game state and enforces turn sequencing.

    Mutating operations return True when a transition was committed and
    False (leaving state untouched) for anything invalid: wrong state, wrong
    turn, a slot this process is not authoritative for, or an illegal move.
    """

    def __init__(
        self,
        board: Optional[Board] = None,
        rng: Optional[random.Random] = None,
        avatar_generator: Optional[AvatarGenerator] = None,
    ):
        self.board = board or Board()
        self.rng = rng or random.Random()
        self.avatar_generator = avatar_generator or NullAvatarGenerator()
        self._listeners: List[Listener] = []
        # Every entry point holds it; listeners run while it is held
        self.lock = threading.RLock()
        self.version = 0
        self._clear()

    def _clear(self) -> None:
        self.game_state = GameState.LANDING
        self.players: List[Player] = []
        self.current_player_id = 1
        self.dice: Optional[Dice] = None
        self.ability: Optional[SpecialAbility] = None
        self.winners: List[int] = []
        self.pending_action: PendingAction = InitializingAction()
        self.game_id: Optional[str] = None
        self.local_player_id: Optional[int] = None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _emit(self, fields: Iterable[str], origin: ChangeOrigin = ChangeOrigin.LOCAL) -> None:
        self.version += 1
        patch = {name: self._encode_field(name) for name in dict.fromkeys(fields)}
        change = StateChange(origin=origin, patch=patch, snapshot=self.snapshot())
        for listener in list(self._listeners):
            listener(change)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def current_player(self) -> Optional[Player]:
        return self.get_player(self.current_player_id)

    def get_player(self, player_id: int) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    def get_piece(self, piece_id: int) -> Optional[Piece]:
        for player in self.players:
            piece = player.get_piece(piece_id)
            if piece is not None:
                return piece
        return None

    def all_pieces(self) -> List[Piece]:
        return rules.all_pieces(self.players)

    def controls(self, player_id: int) -> bool:
        """Whether this process is the authority for a player slot.

        A local game (no local player) controls every slot. The host (slot 1)
        also drives the computer-controlled slots.
        """
        if self.local_player_id is None:
            return True
        if player_id == self.local_player_id:
            return True
        player = self.get_player(player_id)
        return self.local_player_id == 1 and player is not None and player.is_computer

    def is_legal_move(self, piece: Piece, delta: int) -> bool:
        return rules.is_legal_move(piece, delta, self.all_pieces(), self.board)

    def legal_moves(self) -> List[Tuple[int, int]]:
        """``(piece_id, delta)`` pairs the current player may play right now."""
        pending = self.pending_action
        player = self.current_player
        if self.game_state is not GameState.PLAYING or player is None:
            return []
        if not isinstance(pending, MoveAction):
            return []
        pieces = self.all_pieces()
        return [
            (piece.id, delta)
            for piece in player.pieces
            for delta in pending.valid_moves
            if rules.is_legal_move(piece, delta, pieces, self.board)
        ]

    @property
    def has_valid_moves(self) -> bool:
        return bool(self.legal_moves())

    def can_use_gold_token(self) -> bool:
        player = self.current_player
        if player is None or not player.pieces_in_start():
            return False
        entry = self.board.start_entry(player.id)
        return rules.piece_at(entry, self.all_pieces(), owner_id=player.id) is None

    def rankings(self) -> List[int]:
        """Finishers in order, then the unfinished players by id."""
        ordered = list(self.winners)
        ordered.extend(pid for pid in config.player_ids if pid not in ordered)
        return ordered

    def snapshot(self) -> GameSnapshot:
        return GameSnapshot(
            game_state=self.game_state,
            players=tuple(copy.deepcopy(self.players)),
            current_player_id=self.current_player_id,
            dice=self.dice,
            ability=self.ability,
            board=tuple(self.board.layout()),
            winners=tuple(self.winners),
            pending_action=self.pending_action,
            has_valid_moves=self.has_valid_moves,
            game_id=self.game_id,
            local_player_id=self.local_player_id,
        )

    def to_session(self) -> Dict[str, Any]:
        """Full session document for the remote store."""
        session = {name: self._encode_field(name) for name in SESSION_FIELDS}
        session["gameId"] = self.game_id
        return session

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @_locked
    def enter_setup(self) -> bool:
        if self.game_state is not GameState.LANDING:
            return False
        self.game_state = GameState.SETUP
        self._emit(["gameState"])
        return True

    @_locked
    def initialize_game(
        self,
        names: Optional[Mapping[int, str]] = None,
        colors: Optional[Mapping[int, str]] = None,
        is_computer: Optional[Mapping[int, bool]] = None,
        *,
        game_id: Optional[str] = None,
        local_player_id: Optional[int] = None,
        existing_players: Optional[Sequence[Player]] = None,
        starting_player_id: Optional[int] = None,
    ) -> GameSnapshot:
        """Create the four players and start play.

        Lobby players keep their name, color and avatar. Avatars are only
        generated for players without one; a failing generator leaves the
        avatar empty.
        """
        self.pending_action = InitializingAction()
        names = names or {}
        colors = colors or {}
        is_computer = is_computer or {}
        existing = {p.id: p for p in existing_players or []}

        players: List[Player] = []
        for pid in config.player_ids:
            lobby = existing.get(pid)
            color = (lobby.color if lobby else None) or colors.get(pid) or config.PLAYER_COLORS[pid]
            avatar = lobby.avatar_url if lobby else None
            if avatar is None:
                avatar = safe_generate(self.avatar_generator, color)
            players.append(
                Player.create(
                    pid,
                    name=(lobby.name if lobby else None) or names.get(pid),
                    color=color,
                    is_computer=bool(is_computer.get(pid, False)),
                    avatar_url=avatar,
                )
            )

        if starting_player_id not in config.player_ids:
            starting_player_id = self.rng.randint(1, config.PLAYER_COUNT)

        self.players = players
        self.game_id = game_id
        self.local_player_id = local_player_id
        self.current_player_id = starting_player_id
        self.dice = None
        self.ability = None
        self.winners = []
        self.pending_action = RollAction()
        self.game_state = GameState.PLAYING
        logger.info(
            f"Game initialized (id={game_id}, local={local_player_id}), "
            f"player {starting_player_id} starts"
        )
        self._emit(SESSION_FIELDS)
        return self.snapshot()

    @_locked
    def join_online_game(self, game_id: str, local_player_id: int) -> None:
        """Become a replica of a hosted session and wait for its snapshots."""
        self._clear()
        self.game_id = game_id
        self.local_player_id = local_player_id
        self.game_state = GameState.SETUP
        self.pending_action = InitializingAction()
        logger.info(f"Joined game {game_id} as player {local_player_id}")
        # Drops timers tied to the previous game; nothing to publish yet
        self._emit([], origin=ChangeOrigin.RESET)

    @_locked
    def reset(self) -> None:
        self._clear()
        logger.info("Game reset")
        self._emit([], origin=ChangeOrigin.RESET)

    # ------------------------------------------------------------------
    # Turn operations
    # ------------------------------------------------------------------
    def _can_act(self) -> bool:
        return self.game_state is GameState.PLAYING and self.controls(self.current_player_id)

    @_locked
    def roll(
        self,
        *,
        dice: Optional[int] = None,
        ability: Optional[SpecialAbility] = None,
    ) -> bool:
        """Roll the numbered die and the ability die.

        Args:
            dice: Forced numbered die face (1-6) instead of a random one.
            ability: Forced ability face instead of a random one.
        """
        if not self._can_act() or not isinstance(self.pending_action, RollAction):
            return False
        if dice is not None and not config.DICE_MIN <= dice <= config.DICE_MAX:
            return False
        if ability is not None and ability not in ABILITY_DIE_FACES:
            return False

        face = dice if dice is not None else self.rng.randint(config.DICE_MIN, config.DICE_MAX)
        face_ability = ability if ability is not None else self.rng.choice(ABILITY_DIE_FACES)

        self.dice = (face, face)
        self.ability = SpecialAbility(face_ability)
        self.current_player.has_shield = self.ability is SpecialAbility.SHIELD
        self.pending_action = MoveAction(valid_moves=(face,))
        logger.debug(f"Player {self.current_player_id} rolled {face} / {self.ability.value}")
        self._emit(["dice", "ability", "pendingAction", "players"])
        return True

    @_locked
    def select_piece(self, piece_id: int, delta: Optional[int] = None) -> bool:
        """Act on a piece: move it, or strike it with the sword.

        Args:
            piece_id: Piece to act on.
            delta: One of the active valid moves; defaults to the first legal one.
        """
        if not self._can_act():
            return False
        piece = self.get_piece(piece_id)
        if piece is None:
            return False

        pending = self.pending_action
        if isinstance(pending, MoveAction):
            return self._move_piece(piece, pending, delta)
        if isinstance(pending, UseAbilityAction) and pending.ability is SpecialAbility.SWORD:
            return self._strike(piece)
        return False

    def _move_piece(self, piece: Piece, pending: MoveAction, delta: Optional[int]) -> bool:
        if piece.owner_id != self.current_player_id:
            return False
        if delta is None:
            candidates = list(pending.valid_moves)
        elif delta in pending.valid_moves:
            candidates = [delta]
        else:
            return False

        result = None
        for candidate in candidates:
            result = rules.apply_move(piece, candidate, self.board, self.players)
            if result is not None:
                break
        if result is None:
            return False

        self.ability = None
        if result.needs_shield_decision:
            defender = result.shielded
            self.pending_action = ShieldDefenseAction(
                attacker_id=piece.owner_id,
                defender_id=defender.owner_id,
                position=piece.position,
            )
            logger.debug(f"Shield defense pending: {self.pending_action}")
            self._emit(["players", "ability", "pendingAction"])
            return True

        self._commit(bonus=result.landed_on_bonus, fields=["players", "ability"])
        return True

    def _strike(self, target: Piece) -> bool:
        if target.owner_id == self.current_player_id or self.dice is None:
            return False
        if rules.push_back(target, self.dice[0], self.all_pieces()) is None:
            return False
        logger.debug(f"Sword pushed {target} back by {self.dice[0]}")
        self.ability = None
        # The sword always ends the turn, even on a natural six
        self._commit(bonus=False, fields=["players", "ability"], allow_six=False)
        return True

    @_locked
    def use_ability(self, ability: SpecialAbility | str) -> bool:
        if not self._can_act() or self.dice is None:
            return False
        if not isinstance(self.pending_action, MoveAction):
            return False
        try:
            ability = SpecialAbility(ability)
        except ValueError:
            return False
        if self.ability is None or ability is not self.ability:
            return False

        value, natural = self.dice
        if ability is SpecialAbility.PLUS_ONE:
            self.dice = (value + 1, natural)
            self.pending_action = MoveAction(valid_moves=(value + 1,))
            fields = ["dice", "ability", "pendingAction"]
        elif ability is SpecialAbility.BACK_FORTH:
            self.pending_action = MoveAction(valid_moves=(value, -value))
            fields = ["ability", "pendingAction"]
        elif ability is SpecialAbility.GOLD_TOKEN:
            if not self.can_use_gold_token():
                return False
            piece = self.current_player.pieces_in_start()[0]
            rules.enter_from_start(piece, self.board, self.all_pieces())
            self.pending_action = MoveAction(valid_moves=(value,))
            fields = ["players", "ability", "pendingAction"]
        elif ability is SpecialAbility.SWORD:
            self.pending_action = UseAbilityAction(ability=SpecialAbility.SWORD)
            fields = ["ability", "pendingAction"]
        else:
            # Shield is applied at roll time; None has no effect
            return False

        logger.debug(f"Player {self.current_player_id} used {ability.value}")
        self.ability = None
        self._emit(fields)
        return True

    @_locked
    def cancel_ability(self) -> bool:
        """Discard the rolled ability, or back out of the sword sub-state."""
        if not self._can_act() or self.dice is None:
            return False
        pending = self.pending_action
        reseeded = MoveAction(valid_moves=(self.dice[0],))
        if isinstance(pending, MoveAction):
            if self.ability is None and pending == reseeded:
                return False
        elif not isinstance(pending, UseAbilityAction):
            return False
        self.ability = None
        self.pending_action = reseeded
        self._emit(["ability", "pendingAction"])
        return True

    @_locked
    def answer_shield(self, allow: bool, responder_id: Optional[int] = None) -> bool:
        """Resolve a pending shield defense.

        Args:
            allow: True to absorb the hit (attacker pushed back by the roll,
                or to start if that cell is taken), False to accept the
                capture. The shield is consumed either way.
            responder_id: Player answering; must be the named defender if given.
        """
        pending = self.pending_action
        if self.game_state is not GameState.PLAYING or not isinstance(pending, ShieldDefenseAction):
            return False
        if responder_id is not None and responder_id != pending.defender_id:
            return False
        if not self.controls(pending.defender_id):
            return False

        pieces = self.all_pieces()
        attacking = rules.piece_at(pending.position, pieces, owner_id=pending.attacker_id)
        defending = rules.piece_at(pending.position, pieces, owner_id=pending.defender_id)
        defender = self.get_player(pending.defender_id)
        if attacking is None or defending is None or defender is None:
            logger.warning(f"Inconsistent shield defense state: {pending}")
            return False

        defender.has_shield = False
        if allow:
            amount = self.dice[0] if self.dice else 0
            if rules.rebound(attacking, amount, pieces):
                logger.debug(f"Shield absorbed the hit, {attacking} pushed back")
            else:
                logger.debug(f"Shield absorbed the hit, {attacking} bounced to start")
        else:
            defending.send_to_start()
            logger.debug(f"Shield declined, {defending} captured")

        self._commit(bonus=False, fields=["players"])
        return True

    @_locked
    def skip(self) -> bool:
        """Pass a move phase that has no legal move."""
        if not self._can_act() or not isinstance(self.pending_action, MoveAction):
            return False
        if self.has_valid_moves:
            return False
        if self._earns_extra_roll(bonus=False):
            self.pending_action = RollAction()
            self._emit(["pendingAction"])
        else:
            self._advance_turn([])
        return True

    # ------------------------------------------------------------------
    # Turn bookkeeping
    # ------------------------------------------------------------------
    def _natural_six(self) -> bool:
        return self.dice is not None and self.dice[1] == config.BONUS_ROLL

    def _earns_extra_roll(self, bonus: bool, allow_six: bool = True) -> bool:
        if self.current_player_id in self.winners:
            return False
        return bonus or (allow_six and self._natural_six())

    def _commit(self, bonus: bool, fields: List[str], allow_six: bool = True) -> None:
        fields = list(fields)
        if self._record_winners():
            fields.append("winners")
        if len(self.winners) >= config.PLAYER_COUNT - 1:
            self._set_game_over()
            self._emit(fields + ["gameState", "pendingAction"])
            return
        if self._earns_extra_roll(bonus, allow_six):
            self.pending_action = RollAction()
            self._emit(fields + ["pendingAction"])
            return
        self._advance_turn(fields)

    def _record_winners(self) -> bool:
        changed = False
        for player in sorted(self.players, key=lambda p: p.id):
            if player.id not in self.winners and player.has_finished():
                self.winners.append(player.id)
                logger.info(f"Player {player.id} finished in place {len(self.winners)}")
                changed = True
        return changed

    def _next_player_id(self) -> int:
        finished = set(self.winners)
        next_id = self.current_player_id
        for _ in range(config.PLAYER_COUNT):
            next_id = next_id % config.PLAYER_COUNT + 1
            if next_id not in finished:
                break
        return next_id

    def _advance_turn(self, fields: List[str]) -> None:
        self.current_player_id = self._next_player_id()
        self.dice = None
        self.ability = None
        if len(self.winners) >= config.PLAYER_COUNT - 1:
            self._set_game_over()
        else:
            self.pending_action = RollAction()
        logger.debug(f"Turn passes to player {self.current_player_id}")
        self._emit(
            list(fields)
            + ["dice", "ability", "currentPlayerId", "pendingAction", "gameState"]
        )

    def _set_game_over(self) -> None:
        self.game_state = GameState.GAME_OVER
        self.pending_action = GameOverAction()
        logger.info(f"Game over, rankings: {self.rankings()}")

    # ------------------------------------------------------------------
    # Remote snapshots
    # ------------------------------------------------------------------
    def _encode_field(self, name: str) -> Any:
        if name == "players":
            return [p.to_dict() for p in self.players]
        if name == "gameState":
            return self.game_state.value
        if name == "currentPlayerId":
            return self.current_player_id
        if name == "dice":
            return list(self.dice) if self.dice is not None else None
        if name == "ability":
            return self.ability.value if self.ability is not None else None
        if name == "pendingAction":
            return pending_action_to_dict(self.pending_action)
        if name == "winners":
            return list(self.winners)
        raise KeyError(name)

    @staticmethod
    def _decode_field(name: str, value: Any) -> Any:
        if name == "players":
            return sorted((Player.from_dict(p) for p in value or []), key=lambda p: p.id)
        if name == "gameState":
            return GameState(value)
        if name == "currentPlayerId":
            return int(value)
        if name == "dice":
            if value is None:
                return None
            if not isinstance(value, (list, tuple)) or not 1 <= len(value) <= 2:
                raise ValueError(f"dice must hold one or two faces, got {value!r}")
            faces = [int(v) for v in value]
            # Older documents carry [value, 0]
            natural = faces[1] if len(faces) > 1 and faces[1] else faces[0]
            return (faces[0], natural)
        if name == "ability":
            return SpecialAbility(value) if value is not None else None
        if name == "pendingAction":
            return pending_action_from_dict(value)
        if name == "winners":
            return [int(v) for v in value or []]
        raise KeyError(name)

    @_locked
    def apply_patch(self, patch: Mapping[str, Any]) -> bool:
        """Overwrite local fields with those present in a remote payload.

        A present ``None`` clears nullable fields (dice, ability); absent
        fields are left as they are. Unknown keys (``gameId``,
        ``lastUpdate``) are ignored, malformed values are logged and skipped.
        """
        applied: List[str] = []
        for name in SESSION_FIELDS:
            if name not in patch:
                continue
            try:
                value = self._decode_field(name, patch[name])
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed remote field '{name}': {e}")
                continue
            setattr(self, _FIELD_ATTRS[name], value)
            applied.append(name)
        if applied:
            self._emit(applied, origin=ChangeOrigin.REMOTE)
        return bool(applied)
