from __future__ import annotations

import random
import threading
import unittest

from ludo_warp.ai import AutonomousPlayer, Decision, HeuristicStrategy
from ludo_warp.game import Engine
from ludo_warp.scheduler import ManualScheduler
from ludo_warp.types import (
    MoveAction,
    PieceState,
    RollAction,
    ShieldDefenseAction,
    SpecialAbility,
)

NONE = SpecialAbility.NONE


def make_engine(**kwargs) -> Engine:
    engine = Engine(rng=random.Random(2))
    engine.initialize_game(starting_player_id=1, **kwargs)
    return engine


class HeuristicStrategyTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        self.strategy = HeuristicStrategy()
        self.p1 = self.engine.get_player(1)

    def test_rolls_when_asked(self) -> None:
        self.assertEqual(self.strategy.decide(self.engine, 1), Decision("roll", 1))
        self.assertIsNone(self.strategy.decide(self.engine, 2))

    def test_prefers_capture(self) -> None:
        self.p1.pieces[0].move_to(12, PieceState.IN_PLAY)
        self.p1.pieces[1].move_to(7, PieceState.IN_PLAY)
        self.engine.get_player(3).pieces[0].move_to(9, PieceState.IN_PLAY)
        self.engine.roll(dice=2, ability=NONE)
        decision = self.strategy.decide(self.engine, 1)
        self.assertEqual(decision.action, "select")
        self.assertEqual((decision.piece_id, decision.delta), (1, 2))

    def test_prefers_leaving_start_on_six(self) -> None:
        self.p1.pieces[0].move_to(12, PieceState.IN_PLAY)
        self.engine.roll(dice=6, ability=NONE)
        decision = self.strategy.decide(self.engine, 1)
        self.assertEqual(decision.piece_id, 1)

    def test_falls_back_to_first_legal_piece(self) -> None:
        self.p1.pieces[2].move_to(12, PieceState.IN_PLAY)
        self.engine.roll(dice=2, ability=NONE)
        decision = self.strategy.decide(self.engine, 1)
        self.assertEqual(decision.piece_id, 2)

    def test_skips_without_moves(self) -> None:
        self.engine.roll(dice=3, ability=NONE)
        self.assertEqual(self.strategy.decide(self.engine, 1), Decision("skip", 1))

    def test_uses_gold_token(self) -> None:
        self.engine.roll(dice=3, ability=SpecialAbility.GOLD_TOKEN)
        decision = self.strategy.decide(self.engine, 1)
        self.assertEqual(decision.action, "use_ability")
        self.assertIs(decision.ability, SpecialAbility.GOLD_TOKEN)

    def test_keeps_shielded_piece(self) -> None:
        self.p1.pieces[0].move_to(7, PieceState.IN_PLAY)
        self.engine.get_player(2).pieces[0].move_to(9, PieceState.IN_PLAY)
        self.engine.get_player(2).has_shield = True
        self.engine.roll(dice=2, ability=NONE)
        self.engine.select_piece(0)
        self.assertIsNone(self.strategy.decide(self.engine, 1))
        decision = self.strategy.decide(self.engine, 2)
        self.assertEqual((decision.action, decision.allow), ("answer_shield", True))


class AutonomousPlayerTests(unittest.TestCase):
    def test_plays_computer_turn(self) -> None:
        engine = make_engine(is_computer={1: True})
        scheduler = ManualScheduler()
        driver = AutonomousPlayer(engine, scheduler=scheduler)
        driver.start()
        self.assertEqual(scheduler.pending, 1)
        self.assertTrue(scheduler.run_next())
        self.assertIsInstance(engine.pending_action, MoveAction)
        self.assertEqual(scheduler.pending, 1)
        scheduler.run_pending(limit=200)
        self.assertEqual(engine.current_player_id, 2)
        self.assertIsInstance(engine.pending_action, RollAction)
        self.assertEqual(scheduler.pending, 0)

    def test_waits_for_humans(self) -> None:
        engine = make_engine(is_computer={2: True})
        scheduler = ManualScheduler()
        AutonomousPlayer(engine, scheduler=scheduler).start()
        self.assertEqual(scheduler.pending, 0)
        engine.roll(dice=3, ability=NONE)
        engine.skip()
        self.assertEqual(engine.current_player_id, 2)
        self.assertEqual(scheduler.pending, 1)

    def test_reset_cancels_timer(self) -> None:
        engine = make_engine(is_computer={1: True})
        scheduler = ManualScheduler()
        AutonomousPlayer(engine, scheduler=scheduler).start()
        engine.reset()
        self.assertEqual(scheduler.pending, 0)
        self.assertFalse(scheduler.run_next())

    def test_stale_timer_does_nothing(self) -> None:
        engine = make_engine(is_computer={1: True})
        scheduler = ManualScheduler()
        driver = AutonomousPlayer(engine, scheduler=scheduler)
        driver.start()
        driver.stop()
        engine.apply_patch({"currentPlayerId": 1})
        driver._act(1, engine.version - 1)
        self.assertIsInstance(engine.pending_action, RollAction)

    def test_timer_waits_for_engine_and_drops_stale_action(self) -> None:
        engine = make_engine(is_computer={1: True})
        scheduler = ManualScheduler()
        AutonomousPlayer(engine, scheduler=scheduler).start()
        with engine.lock:
            timer = threading.Thread(target=scheduler.run_next)
            timer.start()
            timer.join(timeout=0.2)
            self.assertTrue(timer.is_alive())
            # A remote snapshot lands while the timer waits
            engine.apply_patch({"currentPlayerId": 1, "winners": []})
        timer.join(timeout=5)
        self.assertFalse(timer.is_alive())
        self.assertIsNone(engine.dice)
        self.assertIsInstance(engine.pending_action, RollAction)
        self.assertEqual(scheduler.pending, 1)

    def test_replica_never_drives(self) -> None:
        engine = make_engine(is_computer={1: True}, local_player_id=2)
        scheduler = ManualScheduler()
        driver = AutonomousPlayer(engine, scheduler=scheduler)
        driver.start()
        self.assertFalse(driver.enabled)
        self.assertEqual(scheduler.pending, 0)

    def test_host_answers_for_computer_defender(self) -> None:
        engine = make_engine(is_computer={2: True}, local_player_id=1)
        scheduler = ManualScheduler()
        AutonomousPlayer(engine, scheduler=scheduler).start()
        attacker = engine.get_player(1).pieces[0]
        defender = engine.get_player(2).pieces[0]
        attacker.move_to(7, PieceState.IN_PLAY)
        defender.move_to(9, PieceState.IN_PLAY)
        engine.get_player(2).has_shield = True
        engine.roll(dice=2, ability=NONE)
        engine.select_piece(0)
        self.assertIsInstance(engine.pending_action, ShieldDefenseAction)
        self.assertEqual(scheduler.pending, 1)
        scheduler.run_next()
        self.assertEqual(attacker.position, 7)
        self.assertEqual(defender.position, 9)
        self.assertEqual(engine.current_player_id, 2)

    def test_stop_detaches(self) -> None:
        engine = make_engine(is_computer={1: True})
        scheduler = ManualScheduler()
        driver = AutonomousPlayer(engine, scheduler=scheduler)
        driver.start()
        driver.stop()
        self.assertEqual(scheduler.pending, 0)
        engine.roll(dice=3, ability=NONE)
        self.assertEqual(scheduler.pending, 0)


if __name__ == "__main__":
    unittest.main()
