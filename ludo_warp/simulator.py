from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from .ai import AutonomousPlayer
from .config import config
from .game import Engine
from .scheduler import ManualScheduler
from .types import GameState, RollAction


@dataclass(slots=True)
class SimulationResult:
    seed: Optional[int]
    finished: bool
    turns: int
    actions: int
    winners: List[int] = field(default_factory=list)
    rankings: List[int] = field(default_factory=list)


def run_simulation(
    seed: Optional[int] = None,
    max_turns: Optional[int] = None,
    names: Optional[dict[int, str]] = None,
) -> SimulationResult:
    """
    Play one all-computer game to completion without delays.

    :param seed: Seed for dice, ability faces and the starting player.
    :param max_turns: Upper bound on rolls before giving up, defaults to ``config.MAX_TURNS``.
    :param names: Optional display names per player id.
    :return: Outcome of the game, ``finished`` is False when the bound was hit.
    """
    max_turns = max_turns or config.MAX_TURNS
    engine = Engine(rng=random.Random(seed))
    scheduler = ManualScheduler()
    driver = AutonomousPlayer(engine, scheduler=scheduler)
    driver.start()
    engine.initialize_game(
        names=names,
        is_computer={pid: True for pid in config.player_ids},
    )

    turns = 0
    actions = 0
    while engine.game_state is GameState.PLAYING and turns < max_turns:
        if isinstance(engine.pending_action, RollAction):
            turns += 1
        if not scheduler.run_next():
            logger.warning(f"Simulation stalled on {engine.pending_action}")
            break
        actions += 1
    driver.stop()

    finished = engine.game_state is GameState.GAME_OVER
    if not finished:
        logger.info(f"Simulation stopped after {turns} turns without a result")
    return SimulationResult(
        seed=seed,
        finished=finished,
        turns=turns,
        actions=actions,
        winners=list(engine.winners),
        rankings=engine.rankings(),
    )
