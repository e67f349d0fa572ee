from __future__ import annotations

import random
import unittest

from ludo_warp.game import Engine
from ludo_warp.types import (
    PieceState,
    RollAction,
    ShieldDefenseAction,
    SpecialAbility,
)

NONE = SpecialAbility.NONE


class ShieldDefenseTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = Engine(rng=random.Random(0))
        self.engine.initialize_game(starting_player_id=1)
        self.p1 = self.engine.get_player(1)
        self.p2 = self.engine.get_player(2)
        self.attacker = self.p1.pieces[0]
        self.defender = self.p2.pieces[0]
        self.attacker.move_to(7, PieceState.IN_PLAY)
        self.defender.move_to(9, PieceState.IN_PLAY)
        self.p2.has_shield = True

    def _attack(self) -> None:
        self.engine.roll(dice=2, ability=NONE)
        self.assertTrue(self.engine.select_piece(self.attacker.id))

    def test_attack_opens_defense(self) -> None:
        self._attack()
        self.assertEqual(
            self.engine.pending_action,
            ShieldDefenseAction(attacker_id=1, defender_id=2, position=9),
        )
        self.assertEqual(self.attacker.position, 9)
        self.assertEqual(self.defender.position, 9)
        self.assertEqual(self.engine.current_player_id, 1)

    def test_allow_pushes_attacker_back(self) -> None:
        self._attack()
        self.assertTrue(self.engine.answer_shield(True, responder_id=2))
        self.assertEqual(self.attacker.position, 7)
        self.assertEqual(self.defender.position, 9)
        self.assertFalse(self.p2.has_shield)
        self.assertEqual(self.engine.current_player_id, 2)
        self.assertIsInstance(self.engine.pending_action, RollAction)

    def test_decline_accepts_capture(self) -> None:
        self._attack()
        self.assertTrue(self.engine.answer_shield(False))
        self.assertIs(self.defender.state, PieceState.START)
        self.assertEqual(self.attacker.position, 9)
        self.assertFalse(self.p2.has_shield)
        self.assertEqual(self.engine.current_player_id, 2)

    def test_wrong_responder_and_other_operations_rejected(self) -> None:
        self._attack()
        self.assertFalse(self.engine.answer_shield(True, responder_id=3))
        self.assertFalse(self.engine.roll())
        self.assertFalse(self.engine.skip())
        self.assertIsInstance(self.engine.pending_action, ShieldDefenseAction)

    def test_answer_without_defense_rejected(self) -> None:
        self.assertFalse(self.engine.answer_shield(True))

    def test_shield_absorbs_one_attack(self) -> None:
        self._attack()
        self.engine.answer_shield(True)
        # Hand the turn back to the attacker for a second attempt
        self.engine.current_player_id = 1
        self.engine.pending_action = RollAction()
        self._attack()
        self.assertIs(self.defender.state, PieceState.START)
        self.assertEqual(self.engine.current_player_id, 2)

    def test_six_keeps_turn_after_defense(self) -> None:
        self.attacker.move_to(21, PieceState.IN_PLAY)
        self.defender.move_to(27, PieceState.IN_PLAY)
        self.engine.roll(dice=6, ability=NONE)
        self.engine.select_piece(self.attacker.id)
        self.assertTrue(self.engine.answer_shield(True))
        self.assertEqual(self.attacker.position, 21)
        self.assertEqual(self.engine.current_player_id, 1)
        self.assertIsInstance(self.engine.pending_action, RollAction)

    def test_roll_resets_only_roller_shield(self) -> None:
        self.engine.roll(dice=4, ability=SpecialAbility.SHIELD)
        self.assertTrue(self.p1.has_shield)
        self.assertTrue(self.p2.has_shield)
        self.engine.select_piece(self.attacker.id)
        self.assertEqual(self.engine.current_player_id, 2)
        self.engine.roll(dice=3, ability=NONE)
        self.assertFalse(self.p2.has_shield)
        self.assertTrue(self.p1.has_shield)

    def test_rebound_onto_own_piece_goes_to_start(self) -> None:
        other = self.p1.pieces[1]
        self.attacker.move_to(2, PieceState.IN_PLAY)
        other.move_to(22, PieceState.IN_PLAY)
        self.defender.move_to(24, PieceState.IN_PLAY)
        self.engine.roll(dice=2, ability=NONE)
        # 2 + 2 lands on the warp at 4, which leads to the defender on 24
        self.assertTrue(self.engine.select_piece(self.attacker.id))
        self.assertEqual(self.engine.pending_action.position, 24)
        self.assertTrue(self.engine.answer_shield(True))
        self.assertIs(self.attacker.state, PieceState.START)
        self.assertEqual(self.attacker.position, -1)
        self.assertEqual(other.position, 22)
        self.assertEqual(self.defender.position, 24)

    def test_rebound_onto_opponent_goes_to_start(self) -> None:
        bystander = self.engine.get_player(3).pieces[0]
        bystander.move_to(6, PieceState.IN_PLAY)
        self.attacker.move_to(12, PieceState.IN_PLAY)
        self.engine.roll(dice=3, ability=SpecialAbility.BACK_FORTH)
        self.engine.use_ability(SpecialAbility.BACK_FORTH)
        self.assertTrue(self.engine.select_piece(self.attacker.id, -3))
        self.assertIsInstance(self.engine.pending_action, ShieldDefenseAction)
        self.assertTrue(self.engine.answer_shield(True))
        self.assertIs(self.attacker.state, PieceState.START)
        self.assertIs(bystander.state, PieceState.IN_PLAY)
        self.assertEqual(bystander.position, 6)

    def test_replica_answers_only_for_itself(self) -> None:
        engine = Engine(rng=random.Random(0))
        engine.initialize_game(starting_player_id=1, local_player_id=1)
        engine.get_player(1).pieces[0].move_to(7, PieceState.IN_PLAY)
        engine.get_player(2).pieces[0].move_to(9, PieceState.IN_PLAY)
        engine.get_player(2).has_shield = True
        engine.roll(dice=2, ability=NONE)
        engine.select_piece(0)
        self.assertFalse(engine.answer_shield(True))
        engine.local_player_id = 2
        self.assertTrue(engine.answer_shield(True))


if __name__ == "__main__":
    unittest.main()
