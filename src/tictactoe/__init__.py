"""Tic-tac-toe against an exhaustive minimax opponent, played in the browser."""

from .ai import MinimaxAI
from .game import Board, GameOutcome, determine_outcome
from .session import Session, advance_turn
from .ui import app

__all__ = [
    "Board",
    "GameOutcome",
    "MinimaxAI",
    "Session",
    "advance_turn",
    "app",
    "determine_outcome",
]
