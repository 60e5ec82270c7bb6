"""Exhaustive minimax opponent for 3x3 tic-tac-toe."""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .game import (
    EMPTY,
    SIZE,
    Board,
    Grid,
    InvalidState,
    Mark,
    Move,
    Status,
    determine_outcome,
    other,
)

logger = logging.getLogger(__name__)

# Utility of a win before depth adjustment.
WIN_SCORE = 10


@dataclass
class MinimaxAI:
    """Computer player that searches the full game tree on every turn.

    Public surface:
      - MinimaxAI(player="O")
      - choose(board) -> (row, col)
      - score_moves(board) -> {(row, col): score}
      - pick(scores) -> (row, col)
    """

    player: Mark
    rng: random.Random = field(default_factory=random.Random, repr=False)

    @property
    def opponent(self) -> Mark:
        return other(self.player)

    # ---- public API ----

    def choose(self, board: Board) -> Move:
        """Pick the computer's move on ``board``."""
        return self.pick(self.score_moves(board))

    def pick(self, scores: Dict[Move, int]) -> Move:
        """Pick a move from ``scores`` given in row-major order.

        A strictly better score always replaces the current best; an equal
        score replaces it on a coin flip, so the pick among tied moves leans
        toward cells scanned later.
        """
        best_score = -math.inf
        best_move: Optional[Move] = None

        for move, score in scores.items():
            if score > best_score or (
                score == best_score and self.rng.random() >= 0.5
            ):
                best_score, best_move = score, move

        if best_move is None:
            raise InvalidState("No empty cell left for the computer to play")
        logger.debug("%s plays %s (score %s)", self.player, best_move, best_score)
        return best_move

    def score_moves(self, board: Board) -> Dict[Move, int]:
        """Score of every empty cell, keyed in row-major order."""
        grid = board.to_grid()
        return {
            (i, j): self._score_placement(grid, i, j)
            for i, j in board.empty_cells()
        }

    # ---- core search ----

    def evaluate(self, grid: Union[Board, Grid], depth: int = 0) -> Optional[int]:
        """Utility of a terminal position, or ``None`` while play continues."""
        outcome = determine_outcome(grid)
        if outcome.status is Status.TIE:
            return 0
        if outcome.status is Status.WIN:
            if outcome.winner == self.player:
                return WIN_SCORE - depth
            return -WIN_SCORE - depth
        return None

    def minimax(
        self, grid: Union[Board, List[List[Mark]]], depth: int, maximizing: bool
    ) -> int:
        if isinstance(grid, Board):
            grid = grid.to_grid()
        score = self.evaluate(grid, depth)
        if score is not None:
            return score

        mark = self.player if maximizing else self.opponent
        best = -math.inf if maximizing else math.inf
        for i in range(SIZE):
            for j in range(SIZE):
                if grid[i][j] != EMPTY:
                    continue
                grid[i][j] = mark
                try:
                    score = self.minimax(grid, depth + 1, not maximizing)
                finally:
                    grid[i][j] = EMPTY
                best = max(best, score) if maximizing else min(best, score)
        return int(best)

    def _score_placement(self, grid: List[List[Mark]], i: int, j: int) -> int:
        # The opponent replies next, hence minimizing.
        grid[i][j] = self.player
        try:
            return self.minimax(grid, 0, False)
        finally:
            grid[i][j] = EMPTY
