"""
Rules engine: move legality and move resolution.

Pure functions over pieces, players and the static board. Nothing here knows
about turn order, dice or synchronization; the turn controller in
``ludo_warp.game`` drives these helpers and commits their results.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from loguru import logger

from .board import Board
from .config import config
from .piece import Piece
from .player import Player
from .types import BoardSpaceType, MoveResult, PieceState

_default_board: Optional[Board] = None


def _board_or_default(board: Optional[Board]) -> Board:
    global _default_board
    if board is not None:
        return board
    if _default_board is None:
        _default_board = Board()
    return _default_board


def all_pieces(players: Iterable[Player]) -> List[Piece]:
    return [pc for pl in players for pc in pl.pieces]


def piece_at(
    position: int,
    pieces: Iterable[Piece],
    *,
    exclude: Optional[Piece] = None,
    owner_id: Optional[int] = None,
    not_owner_id: Optional[int] = None,
) -> Optional[Piece]:
    """First piece on ``position`` matching the owner filters."""
    for pc in pieces:
        if pc is exclude or pc.position != position:
            continue
        if pc.state is PieceState.START:
            continue
        if owner_id is not None and pc.owner_id != owner_id:
            continue
        if not_owner_id is not None and pc.owner_id == not_owner_id:
            continue
        return pc
    return None


def step_back(position: int, amount: int) -> int:
    size = config.MAIN_CIRCUIT_SIZE
    return (position - amount) % size


def destination(piece: Piece, delta: int, board: Optional[Board] = None) -> Optional[int]:
    """Cell a piece would reach before warp redirection, or None if impossible.

    Args:
        piece: The piece to move.
        delta: Signed move amount; negative values move backward on the circuit.
        board: Board layout, defaults to the standard layout.

    Returns:
        Optional[int]: Destination cell, or None when the move cannot happen.
    """
    board = _board_or_default(board)
    if delta == 0:
        return None

    if piece.state is PieceState.START:
        if delta not in config.EXIT_ROLLS:
            return None
        return board.start_entry(piece.owner_id)

    if piece.state is PieceState.HOME:
        if delta < 0:
            return None
        step = piece.home_step + delta
        if step > config.HOME_PATH_SIZE:
            return None
        return board.home_cell(piece.owner_id, step)

    # In play on the main circuit
    if delta < 0:
        return step_back(piece.position, -delta)

    dist = (board.home_entry(piece.owner_id) - piece.position) % board.circuit_size
    if delta > dist:
        excess = delta - dist
        if excess > config.HOME_PATH_SIZE:
            return None
        return board.home_cell(piece.owner_id, excess)
    return (piece.position + delta) % board.circuit_size


def landing(position: int, board: Optional[Board] = None) -> int:
    """Final cell after at most one warp hop."""
    board = _board_or_default(board)
    target = board.warp_target(position)
    return position if target is None else target


def is_legal_move(
    piece: Piece,
    delta: int,
    pieces: Sequence[Piece],
    board: Optional[Board] = None,
) -> bool:
    board = _board_or_default(board)
    dest = destination(piece, delta, board)
    if dest is None:
        return False

    if not board.is_circuit(dest):
        # Home paths are owner-exclusive, any occupant blocks
        return piece_at(dest, pieces, exclude=piece) is None

    final = landing(dest, board)
    own = piece_at(final, pieces, exclude=piece, owner_id=piece.owner_id)
    return own is None


def apply_move(
    piece: Piece,
    delta: int,
    board: Board,
    players: Sequence[Player],
) -> Optional[MoveResult]:
    """Resolve a move and mutate the affected pieces.

    Order of effects: position/state update, warp redirection (one hop),
    then capture of an opposing occupant. When the occupant's owner holds a
    shield nothing is captured; the result names the shielded piece so the
    caller can ask the defender.

    Returns:
        Optional[MoveResult]: None (and no mutation) if the move is illegal.
    """
    pieces = all_pieces(players)
    if not is_legal_move(piece, delta, pieces, board):
        return None

    dest = destination(piece, delta, board)
    old = piece.position

    if not board.is_circuit(dest):
        piece.move_to(dest, PieceState.HOME)
        logger.debug(f"{piece} moved {delta:+d} into home path")
        return MoveResult(old_position=old, new_position=dest, new_state=PieceState.HOME)

    piece.move_to(dest, PieceState.IN_PLAY)
    result = MoveResult(
        old_position=old,
        new_position=dest,
        new_state=PieceState.IN_PLAY,
        landed_on_bonus=board.space_type(dest) is BoardSpaceType.GO_AGAIN,
    )

    target = board.warp_target(dest)
    if target is not None:
        piece.position = target
        result.new_position = target
        result.warped = True
        logger.debug(f"{piece} warped {dest} -> {target}")

    defender = piece_at(
        piece.position, pieces, exclude=piece, not_owner_id=piece.owner_id
    )
    if defender is not None:
        owner = next(pl for pl in players if pl.id == defender.owner_id)
        if owner.has_shield:
            result.shielded = defender
            logger.debug(f"{piece} attacks shielded {defender}")
        else:
            defender.send_to_start()
            result.captured = defender
            logger.debug(f"{piece} captured {defender}")

    return result


def enter_from_start(
    piece: Piece, board: Board, pieces: Sequence[Piece]
) -> Optional[MoveResult]:
    """Place a start piece on its owner's start entry, capturing any enemy there.

    Used by the gold token; shields are not consulted.
    """
    if piece.state is not PieceState.START:
        return None
    entry = board.start_entry(piece.owner_id)
    if piece_at(entry, pieces, exclude=piece, owner_id=piece.owner_id):
        return None
    enemy = piece_at(entry, pieces, not_owner_id=piece.owner_id)
    if enemy is not None:
        enemy.send_to_start()
    old = piece.position
    piece.move_to(entry, PieceState.IN_PLAY)
    return MoveResult(
        old_position=old,
        new_position=entry,
        new_state=PieceState.IN_PLAY,
        captured=enemy,
    )


def can_push_back(piece: Piece, amount: int, pieces: Sequence[Piece]) -> bool:
    if piece.state is not PieceState.IN_PLAY or amount <= 0:
        return False
    dest = step_back(piece.position, amount)
    return piece_at(dest, pieces, exclude=piece, owner_id=piece.owner_id) is None


def rebound(piece: Piece, amount: int, pieces: Sequence[Piece]) -> bool:
    """Push back an attacker whose hit was absorbed by a shield.

    No warp or capture on the rebound cell. When any other piece holds that
    cell the attacker goes back to start instead, so a cell never ends up
    with two own pieces or two opponents.

    Returns:
        bool: False when the piece was sent to start.
    """
    dest = step_back(piece.position, amount)
    if amount <= 0 or piece_at(dest, pieces, exclude=piece) is not None:
        piece.send_to_start()
        return False
    piece.position = dest
    return True


def push_back(piece: Piece, amount: int, pieces: Sequence[Piece]) -> Optional[int]:
    """Move an in-play piece backward without warp or capture effects."""
    if not can_push_back(piece, amount, pieces):
        return None
    piece.position = step_back(piece.position, amount)
    return piece.position
