"""Turn-based session state machine.

``advance_turn`` is pure: it takes the current :class:`Session` and an event
and returns the next session together with a list of effects. Effects are
instructions for the caller (show a message, render a mark, schedule the
computer's turn or a restart); the controller never sleeps or renders itself.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple, Union

from .ai import MinimaxAI
from .game import (
    O,
    X,
    Board,
    GameOutcome,
    IllegalMove,
    InvalidState,
    Mark,
    Status,
    determine_outcome,
)

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PLAYER_MOVED = "player_moved"
    COMPUTER_MOVED = "computer_moved"
    ENDED = "ended"


@dataclass(frozen=True)
class Timings:
    """Delays, in seconds, attached to scheduled effects."""

    think_delay: float = 0.75
    message_duration: float = 3.5
    restart_delay: float = 3.5


DEFAULT_TIMINGS = Timings()

COMPUTER_FIRST_MESSAGE = "I'll go first."
PLAYER_FIRST_MESSAGE = "You go first."
COMPUTER_WINS_MESSAGE = "I win!"
PLAYER_WINS_MESSAGE = "You win!"
TIE_MESSAGE = "It's a tie."


@dataclass(frozen=True)
class PlacedMark:
    mark: Mark
    row: int
    col: int
    by_computer: bool


@dataclass(frozen=True)
class Session:
    phase: Phase = Phase.NOT_STARTED
    board: Board = field(default_factory=Board.empty)
    player_mark: Optional[Mark] = None
    computer_mark: Optional[Mark] = None
    players_turn: bool = False
    outcome: GameOutcome = field(default_factory=GameOutcome.ongoing)
    move_log: Tuple[PlacedMark, ...] = ()

    @property
    def in_play(self) -> bool:
        return self.phase in (
            Phase.IN_PROGRESS,
            Phase.PLAYER_MOVED,
            Phase.COMPUTER_MOVED,
        )

    @property
    def computers_turn(self) -> bool:
        return self.in_play and not self.players_turn


# ---------- Events ----------


@dataclass(frozen=True)
class StartGame:
    pass


@dataclass(frozen=True)
class PlayerMove:
    row: int
    col: int


@dataclass(frozen=True)
class ComputerTurn:
    pass


@dataclass(frozen=True)
class Restart:
    pass


Event = Union[StartGame, PlayerMove, ComputerTurn, Restart]


# ---------- Effects ----------


@dataclass(frozen=True)
class ShowMessage:
    text: str
    # Seconds until the message should be cleared; None keeps it up.
    clear_after: Optional[float] = None


@dataclass(frozen=True)
class PlaceMark:
    row: int
    col: int
    mark: Mark


@dataclass(frozen=True)
class ScheduleComputerTurn:
    after: float


@dataclass(frozen=True)
class ScheduleRestart:
    after: float


Effect = Union[ShowMessage, PlaceMark, ScheduleComputerTurn, ScheduleRestart]


# ---------- Transitions ----------


def advance_turn(
    session: Session,
    event: Event,
    rng: Optional[random.Random] = None,
    timings: Optional[Timings] = None,
) -> Tuple[Session, List[Effect]]:
    """Apply ``event`` to ``session`` and return the new session and effects.

    ``rng`` drives both the starting coin flip and the computer's tie-breaks;
    pass a seeded ``random.Random`` for reproducible play.
    """
    rng = rng if rng is not None else random.Random()
    timings = timings or DEFAULT_TIMINGS

    if isinstance(event, StartGame):
        return _start(session, rng, timings)
    if isinstance(event, PlayerMove):
        return _player_move(session, event, timings)
    if isinstance(event, ComputerTurn):
        return _computer_turn(session, rng, timings)
    if isinstance(event, Restart):
        return _start(Session(), rng, timings)
    raise InvalidState(f"Unknown event {event!r}")


def _start(
    session: Session, rng: random.Random, timings: Timings
) -> Tuple[Session, List[Effect]]:
    if session.phase is not Phase.NOT_STARTED:
        raise InvalidState("Game already started")

    # The starting piece is always X.
    computer_first = rng.random() >= 0.5
    if computer_first:
        player_mark, computer_mark, text = O, X, COMPUTER_FIRST_MESSAGE
    else:
        player_mark, computer_mark, text = X, O, PLAYER_FIRST_MESSAGE

    started = Session(
        phase=Phase.IN_PROGRESS,
        player_mark=player_mark,
        computer_mark=computer_mark,
        players_turn=not computer_first,
    )
    effects: List[Effect] = [ShowMessage(text, clear_after=timings.message_duration)]
    if computer_first:
        effects.append(ScheduleComputerTurn(after=timings.think_delay))
    logger.info("Game started; computer plays %s", computer_mark)
    return started, effects


def _player_move(
    session: Session, event: PlayerMove, timings: Timings
) -> Tuple[Session, List[Effect]]:
    if not session.in_play:
        raise IllegalMove("No game in progress")
    if not session.players_turn:
        raise IllegalMove("It is not the player's turn")

    if session.player_mark is None:
        raise InvalidState("Session has no player mark")
    board = session.board.place(session.player_mark, event.row, event.col)
    placed = PlacedMark(session.player_mark, event.row, event.col, by_computer=False)
    effects: List[Effect] = [PlaceMark(event.row, event.col, session.player_mark)]

    next_session = replace(
        session,
        phase=Phase.PLAYER_MOVED,
        board=board,
        players_turn=False,
        move_log=session.move_log + (placed,),
    )
    outcome = determine_outcome(board)
    if outcome.is_terminal:
        return _end(next_session, outcome, effects, timings)

    effects.append(ScheduleComputerTurn(after=timings.think_delay))
    return next_session, effects


def _computer_turn(
    session: Session, rng: random.Random, timings: Timings
) -> Tuple[Session, List[Effect]]:
    if not session.computers_turn:
        raise InvalidState("Computer asked to move outside its turn")

    if session.computer_mark is None:
        raise InvalidState("Session has no computer mark")
    ai = MinimaxAI(player=session.computer_mark, rng=rng)
    row, col = ai.choose(session.board)
    board = session.board.place(session.computer_mark, row, col)
    placed = PlacedMark(session.computer_mark, row, col, by_computer=True)
    effects: List[Effect] = [PlaceMark(row, col, session.computer_mark)]

    next_session = replace(
        session,
        phase=Phase.COMPUTER_MOVED,
        board=board,
        players_turn=True,
        move_log=session.move_log + (placed,),
    )
    outcome = determine_outcome(board)
    if outcome.is_terminal:
        return _end(next_session, outcome, effects, timings)
    return next_session, effects


def _end(
    session: Session,
    outcome: GameOutcome,
    effects: List[Effect],
    timings: Timings,
) -> Tuple[Session, List[Effect]]:
    if outcome.status is Status.TIE:
        text = TIE_MESSAGE
    elif outcome.winner == session.computer_mark:
        text = COMPUTER_WINS_MESSAGE
    else:
        text = PLAYER_WINS_MESSAGE

    ended = replace(session, phase=Phase.ENDED, players_turn=False, outcome=outcome)
    effects = effects + [
        ShowMessage(text),
        ScheduleRestart(after=timings.restart_delay),
    ]
    logger.info("Game over: %s", text)
    return ended, effects

