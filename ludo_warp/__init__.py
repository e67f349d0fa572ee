from .ai import AutonomousPlayer, Decision, HeuristicStrategy
from .board import Board, BoardSpace
from .config import config
from .exceptions import LobbyFullError, LudoWarpError, PublishError, SessionNotFoundError
from .game import Engine, GameSnapshot, StateChange
from .piece import Piece
from .player import Player
from .scheduler import ManualScheduler, ThreadingScheduler
from .simulator import SimulationResult, run_simulation
from .sync import InMemorySessionStore, SyncAdapter, host_game, join_game
from .types import (
    BoardSpaceType,
    GameState,
    MoveResult,
    PieceState,
    SpecialAbility,
)

__all__ = [
    "config",
    "Board",
    "BoardSpace",
    "BoardSpaceType",
    "Piece",
    "Player",
    "Engine",
    "GameSnapshot",
    "StateChange",
    "GameState",
    "PieceState",
    "SpecialAbility",
    "MoveResult",
    "AutonomousPlayer",
    "Decision",
    "HeuristicStrategy",
    "ManualScheduler",
    "ThreadingScheduler",
    "InMemorySessionStore",
    "SyncAdapter",
    "host_game",
    "join_game",
    "SimulationResult",
    "run_simulation",
    "LudoWarpError",
    "SessionNotFoundError",
    "LobbyFullError",
    "PublishError",
]
