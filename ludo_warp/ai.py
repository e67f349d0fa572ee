"""
Autonomous player for computer-controlled slots.

``HeuristicStrategy`` picks an action from the engine state with fixed
priorities; ``AutonomousPlayer`` listens to engine changes and plays that
action through the same public operations a human uses, after a pacing delay.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, ClassVar, Optional

from loguru import logger

from . import rules
from .config import config
from .game import Engine, StateChange
from .piece import Piece
from .player import Player
from .scheduler import Scheduler, ThreadingScheduler, TimerHandle
from .types import (
    ChangeOrigin,
    GameState,
    MoveAction,
    PieceState,
    RollAction,
    ShieldDefenseAction,
    SpecialAbility,
    UseAbilityAction,
)


@dataclass(frozen=True, slots=True)
class Decision:
    action: str  # roll | use_ability | cancel_ability | select | skip | answer_shield
    player_id: int
    piece_id: Optional[int] = None
    delta: Optional[int] = None
    ability: Optional[SpecialAbility] = None
    allow: Optional[bool] = None


@dataclass(slots=True)
class HeuristicStrategy:
    """Capture first, then leave start on a 1 or 6, else the first legal piece."""

    name: ClassVar[str] = "heuristic"

    def decide(self, engine: Engine, player_id: int) -> Optional[Decision]:
        pending = engine.pending_action
        if isinstance(pending, ShieldDefenseAction):
            if pending.defender_id != player_id:
                return None
            # Always keep the piece
            return Decision("answer_shield", player_id, allow=True)
        if player_id != engine.current_player_id:
            return None
        if isinstance(pending, RollAction):
            return Decision("roll", player_id)
        if isinstance(pending, UseAbilityAction):
            return Decision("cancel_ability", player_id)
        if isinstance(pending, MoveAction):
            return self._decide_move(engine, engine.get_player(player_id), pending)
        return None

    def _decide_move(
        self, engine: Engine, player: Player, pending: MoveAction
    ) -> Decision:
        if engine.ability is SpecialAbility.GOLD_TOKEN and engine.can_use_gold_token():
            return Decision("use_ability", player.id, ability=SpecialAbility.GOLD_TOKEN)

        if not engine.has_valid_moves:
            return Decision("skip", player.id)

        roll = pending.valid_moves[0]
        legal = [p for p in player.pieces if engine.is_legal_move(p, roll)]
        if not legal:
            piece_id, delta = engine.legal_moves()[0]
            return Decision("select", player.id, piece_id=piece_id, delta=delta)

        chosen = self._capturing_piece(engine, legal, roll)
        if chosen is None and roll in config.EXIT_ROLLS:
            chosen = next((p for p in legal if p.state is PieceState.START), None)
        if chosen is None:
            chosen = legal[0]
        return Decision("select", player.id, piece_id=chosen.id, delta=roll)

    @staticmethod
    def _capturing_piece(engine: Engine, legal: list[Piece], roll: int) -> Optional[Piece]:
        pieces = engine.all_pieces()
        for piece in legal:
            dest = rules.destination(piece, roll, engine.board)
            if dest is None or not engine.board.is_circuit(dest):
                continue
            final = rules.landing(dest, engine.board)
            if rules.piece_at(final, pieces, exclude=piece, not_owner_id=piece.owner_id):
                return piece
        return None


class AutonomousPlayer:
    """
    Drives computer slots of an engine.

    Only runs where the engine is the host (slot 1) or a local game. Every
    engine change cancels the pending timer and schedules the next action;
    a timer only acts if the engine has not changed since it was scheduled.
    """

    def __init__(
        self,
        engine: Engine,
        scheduler: Optional[Scheduler] = None,
        strategy: Optional[HeuristicStrategy] = None,
    ):
        self.engine = engine
        self.scheduler = scheduler or ThreadingScheduler()
        self.strategy = strategy or HeuristicStrategy()
        self._handle: Optional[TimerHandle] = None
        self._remove_listener: Optional[Callable[[], None]] = None

    @property
    def enabled(self) -> bool:
        return self.engine.local_player_id in (None, 1)

    def start(self) -> None:
        if self._remove_listener is None:
            self._remove_listener = self.engine.add_listener(self._on_change)
        self._schedule()

    def stop(self) -> None:
        self.cancel()
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _on_change(self, change: StateChange) -> None:
        self.cancel()
        if change.origin is ChangeOrigin.RESET:
            return
        self._schedule()

    def _actor(self) -> Optional[int]:
        engine = self.engine
        if not self.enabled or engine.game_state is not GameState.PLAYING:
            return None
        pending = engine.pending_action
        if isinstance(pending, ShieldDefenseAction):
            candidate = pending.defender_id
        elif isinstance(pending, (RollAction, MoveAction, UseAbilityAction)):
            candidate = engine.current_player_id
        else:
            return None
        player = engine.get_player(candidate)
        if player is None or not player.is_computer or not engine.controls(candidate):
            return None
        return candidate

    def _schedule(self) -> None:
        actor = self._actor()
        if actor is None:
            return
        pending = self.engine.pending_action
        if isinstance(pending, RollAction):
            delay = config.AI_ROLL_DELAY
        elif isinstance(pending, ShieldDefenseAction):
            delay = config.AI_DEFENSE_DELAY
        else:
            delay = config.AI_MOVE_DELAY
        version = self.engine.version
        self._handle = self.scheduler.call_later(delay, lambda: self._act(actor, version))

    def _act(self, player_id: int, version: int) -> None:
        # Timer threads race with input and remote snapshots; check and act
        # under the engine lock
        with self.engine.lock:
            if self.engine.version != version:
                return
            self._handle = None
            decision = self.strategy.decide(self.engine, player_id)
            if decision is None:
                return
            if not self.perform(decision):
                logger.warning(f"Computer player {player_id} could not perform {decision}")

    def perform(self, decision: Decision) -> bool:
        engine = self.engine
        if decision.action == "roll":
            return engine.roll()
        if decision.action == "use_ability":
            return engine.use_ability(decision.ability)
        if decision.action == "cancel_ability":
            return engine.cancel_ability()
        if decision.action == "select":
            return engine.select_piece(decision.piece_id, decision.delta)
        if decision.action == "skip":
            return engine.skip()
        if decision.action == "answer_shield":
            return engine.answer_shield(bool(decision.allow), decision.player_id)
        return False
