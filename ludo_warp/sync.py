"""
Session store and synchronization adapter.

The remote store is a key-value document per session code with merge-patch
updates and change subscriptions. ``SyncAdapter`` mirrors every local engine
change to the store and applies every delivered snapshot back to the engine;
last writer wins per top-level field.
"""

from __future__ import annotations

import copy
import random
import string
import time
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from loguru import logger

from .avatar import AvatarGenerator, safe_generate
from .config import config
from .exceptions import LobbyFullError, PublishError, SessionNotFoundError
from .game import Engine, StateChange
from .player import Player
from .types import ChangeOrigin, GameState

Session = Dict[str, Any]
SessionCallback = Callable[[Session], None]
Unsubscribe = Callable[[], None]


class SessionStore(Protocol):
    def create(self, host_player: Dict[str, Any]) -> str:
        ...

    def get(self, code: str) -> Optional[Session]:
        ...

    def join(self, code: str, player: Dict[str, Any]) -> bool:
        ...

    def subscribe(self, code: str, callback: SessionCallback) -> Unsubscribe:
        ...

    def update(self, code: str, partial: Session) -> None:
        ...


def generate_session_code(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    alphabet = string.ascii_uppercase + string.digits
    return "".join(rng.choices(alphabet, k=config.SESSION_CODE_LENGTH))


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class InMemorySessionStore:
    """Process-local store with the same contract as the remote one.

    Subscribers receive a full copy of the session on subscribe and after
    every change, including changes they wrote themselves.
    """

    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], int] = _now_ms
    _sessions: Dict[str, Session] = field(default_factory=dict, init=False, repr=False)
    _subscribers: Dict[str, List[SessionCallback]] = field(
        default_factory=dict, init=False, repr=False
    )
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)

    def _stamp(self, session: Session) -> None:
        previous = int(session.get("lastUpdate") or 0)
        session["lastUpdate"] = max(previous + 1, self.clock())

    def create(self, host_player: Dict[str, Any]) -> str:
        with self._lock:
            code = generate_session_code(self.rng)
            while code in self._sessions:
                code = generate_session_code(self.rng)
            session: Session = {
                "gameId": code,
                "players": [copy.deepcopy(host_player)],
                "gameState": GameState.SETUP.value,
                "currentPlayerId": 1,
                "dice": None,
                "ability": None,
                "pendingAction": None,
                "winners": [],
            }
            self._stamp(session)
            self._sessions[code] = session
        logger.info(f"Session {code} created")
        return code

    def get(self, code: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(code)
            return copy.deepcopy(session) if session is not None else None

    def join(self, code: str, player: Dict[str, Any]) -> bool:
        with self._lock:
            session = self._sessions.get(code)
            if session is None:
                return False
            players = list(session.get("players") or [])
            for idx, existing in enumerate(players):
                if existing.get("id") == player.get("id"):
                    players[idx] = copy.deepcopy(player)
                    break
            else:
                players.append(copy.deepcopy(player))
        self.update(code, {"players": players})
        return True

    def subscribe(self, code: str, callback: SessionCallback) -> Unsubscribe:
        with self._lock:
            self._subscribers.setdefault(code, []).append(callback)
            current = copy.deepcopy(self._sessions.get(code))
        if current is not None:
            callback(current)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(code, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def update(self, code: str, partial: Session) -> None:
        with self._lock:
            session = self._sessions.get(code)
            if session is None:
                raise SessionNotFoundError(f"Unknown session {code}")
            session.update(copy.deepcopy(partial))
            self._stamp(session)
            callbacks = list(self._subscribers.get(code, []))
            delivered = copy.deepcopy(session)
        for callback in callbacks:
            callback(copy.deepcopy(delivered))


# ----------------------------------------------------------------------
# Lobby helpers
# ----------------------------------------------------------------------
def host_game(
    store: SessionStore,
    name: Optional[str] = None,
    color: Optional[str] = None,
    avatar_generator: Optional[AvatarGenerator] = None,
) -> Tuple[str, Player]:
    """Create a session with the caller as player 1."""
    host = Player.create(1, name=name, color=color)
    host.avatar_url = safe_generate(avatar_generator, host.color)
    code = store.create(host.to_dict())
    return code, host


def join_game(
    store: SessionStore,
    code: str,
    name: Optional[str] = None,
    color: Optional[str] = None,
    avatar_generator: Optional[AvatarGenerator] = None,
) -> Player:
    """Take the lowest free slot of a hosted session.

    Raises:
        SessionNotFoundError: If no session has this code.
        LobbyFullError: If every slot is already taken.
    """
    code = (code or "").strip().upper()
    session = store.get(code)
    if session is None:
        raise SessionNotFoundError(f"Game {code!r} not found")

    taken = {int(p["id"]) for p in session.get("players") or []}
    free = [pid for pid in config.player_ids if pid not in taken]
    if not free:
        raise LobbyFullError(f"Game {code!r} is full")

    player = Player.create(free[0], name=name, color=color)
    player.avatar_url = safe_generate(avatar_generator, player.color)
    if not store.join(code, player.to_dict()):
        raise SessionNotFoundError(f"Game {code!r} not found")
    logger.info(f"Joined session {code} as player {player.id}")
    return player


def lobby_players(store: SessionStore, code: str) -> List[Player]:
    session = store.get(code)
    if session is None:
        raise SessionNotFoundError(f"Game {code!r} not found")
    return [Player.from_dict(p) for p in session.get("players") or []]


# ----------------------------------------------------------------------
# Adapter
# ----------------------------------------------------------------------
class SyncAdapter:
    """
    Mirrors an engine to a shared session.

    Local changes are published as merge-patches; delivered snapshots are
    applied with ``Engine.apply_patch``. Failed publishes are kept for an
    explicit ``retry_pending`` and never retried automatically.
    """

    def __init__(self, engine: Engine, store: SessionStore, game_id: str):
        self.engine = engine
        self.store = store
        self.game_id = game_id
        self.pending: List[Session] = []
        self._remove_listener: Optional[Callable[[], None]] = None
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def running(self) -> bool:
        return self._remove_listener is not None

    def start(self) -> None:
        if self.running:
            return
        self._remove_listener = self.engine.add_listener(self._on_engine_change)
        self._unsubscribe = self.store.subscribe(self.game_id, self._on_remote)

    def stop(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def publish(self, patch: Session) -> None:
        """Write a patch to the store.

        Raises:
            PublishError: If the store rejected or failed the write.
        """
        try:
            self.store.update(self.game_id, patch)
        except Exception as e:
            raise PublishError(f"Failed to publish to {self.game_id}: {e}") from e

    def retry_pending(self) -> int:
        """Publish patches that failed earlier, oldest first.

        Returns:
            int: Number of patches delivered; the rest stay queued.
        """
        sent = 0
        while self.pending:
            try:
                self.publish(self.pending[0])
            except PublishError as e:
                logger.warning(f"Retry failed: {e}")
                break
            self.pending.pop(0)
            sent += 1
        return sent

    def _on_engine_change(self, change: StateChange) -> None:
        if change.origin is not ChangeOrigin.LOCAL or not change.patch:
            return
        if self.pending:
            # Keep write order: newer patches wait behind failed ones
            self.pending.append(change.patch)
            return
        try:
            self.publish(change.patch)
        except PublishError as e:
            logger.warning(f"{e}; patch kept for retry")
            self.pending.append(change.patch)

    def _on_remote(self, session: Session) -> None:
        self.engine.apply_patch(session)
