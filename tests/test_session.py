"""Tests for the turn-based session state machine."""

import random

import pytest

from tictactoe.game import O, X, Board, GameOutcome, IllegalMove, InvalidState
from tictactoe.session import (
    COMPUTER_FIRST_MESSAGE,
    COMPUTER_WINS_MESSAGE,
    PLAYER_FIRST_MESSAGE,
    PLAYER_WINS_MESSAGE,
    TIE_MESSAGE,
    ComputerTurn,
    Phase,
    PlaceMark,
    PlayerMove,
    Restart,
    ScheduleComputerTurn,
    ScheduleRestart,
    Session,
    ShowMessage,
    StartGame,
    Timings,
    advance_turn,
)

TIMINGS = Timings(think_delay=0.5, message_duration=2.0, restart_delay=4.0)


class FixedRandom(random.Random):
    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


def _board(*rows: str) -> Board:
    return Board.from_rows([list(r) for r in rows])


def _mid_game(board: Board, players_turn: bool) -> Session:
    return Session(
        phase=Phase.COMPUTER_MOVED if players_turn else Phase.PLAYER_MOVED,
        board=board,
        player_mark=X,
        computer_mark=O,
        players_turn=players_turn,
    )


def test_computer_first_start():
    session, effects = advance_turn(Session(), StartGame(), FixedRandom(0.9), TIMINGS)

    assert session.phase is Phase.IN_PROGRESS
    assert session.computer_mark == X
    assert session.player_mark == O
    assert not session.players_turn
    assert effects == [
        ShowMessage(COMPUTER_FIRST_MESSAGE, clear_after=2.0),
        ScheduleComputerTurn(after=0.5),
    ]


def test_player_first_round_trip():
    rng = FixedRandom(0.1)
    session, effects = advance_turn(Session(), StartGame(), rng, TIMINGS)
    assert session.player_mark == X
    assert session.players_turn
    assert effects == [ShowMessage(PLAYER_FIRST_MESSAGE, clear_after=2.0)]

    session, effects = advance_turn(session, PlayerMove(1, 1), rng, TIMINGS)
    assert session.phase is Phase.PLAYER_MOVED
    assert session.board[1, 1] == X
    assert effects == [PlaceMark(1, 1, X), ScheduleComputerTurn(after=0.5)]

    session, effects = advance_turn(session, ComputerTurn(), rng, TIMINGS)
    assert session.phase is Phase.COMPUTER_MOVED
    assert session.players_turn
    # Corners tie for best; a coin that never lands keeps the first one.
    assert effects == [PlaceMark(0, 0, O)]
    assert [(p.mark, p.row, p.col, p.by_computer) for p in session.move_log] == [
        (X, 1, 1, False),
        (O, 0, 0, True),
    ]


def test_transitions_do_not_touch_input_session():
    start = Session()
    advance_turn(start, StartGame(), FixedRandom(0.1), TIMINGS)
    assert start.phase is Phase.NOT_STARTED
    assert start.board == Board.empty()


def test_player_win_ends_game():
    session = _mid_game(_board("XX-", "OO-", "---"), players_turn=True)

    ended, effects = advance_turn(session, PlayerMove(0, 2), FixedRandom(0.1), TIMINGS)

    assert ended.phase is Phase.ENDED
    assert ended.outcome == GameOutcome.win(X)
    assert not ended.players_turn
    assert effects == [
        PlaceMark(0, 2, X),
        ShowMessage(PLAYER_WINS_MESSAGE),
        ScheduleRestart(after=4.0),
    ]


def test_computer_win_ends_game():
    session = _mid_game(_board("XX-", "OO-", "X--"), players_turn=False)

    ended, effects = advance_turn(session, ComputerTurn(), FixedRandom(0.1), TIMINGS)

    assert ended.phase is Phase.ENDED
    assert ended.outcome == GameOutcome.win(O)
    assert effects[0] == PlaceMark(1, 2, O)
    assert ShowMessage(COMPUTER_WINS_MESSAGE) in effects


def test_full_board_is_tie():
    session = _mid_game(_board("XOX", "XOO", "OX-"), players_turn=True)

    ended, effects = advance_turn(session, PlayerMove(2, 2), FixedRandom(0.1), TIMINGS)

    assert ended.phase is Phase.ENDED
    assert ended.outcome == GameOutcome.tie()
    assert ShowMessage(TIE_MESSAGE) in effects


def test_restart_after_end():
    session = _mid_game(_board("XX-", "OO-", "---"), players_turn=True)
    ended, _ = advance_turn(session, PlayerMove(0, 2), FixedRandom(0.1), TIMINGS)

    restarted, effects = advance_turn(ended, Restart(), FixedRandom(0.1), TIMINGS)

    assert restarted.phase is Phase.IN_PROGRESS
    assert restarted.board == Board.empty()
    assert restarted.move_log == ()
    assert restarted.outcome == GameOutcome.ongoing()
    assert effects == [ShowMessage(PLAYER_FIRST_MESSAGE, clear_after=2.0)]


def test_illegal_player_moves_rejected():
    with pytest.raises(IllegalMove):
        advance_turn(Session(), PlayerMove(0, 0))

    waiting = _mid_game(_board("X--", "---", "---"), players_turn=False)
    with pytest.raises(IllegalMove):
        advance_turn(waiting, PlayerMove(1, 1))

    turn = _mid_game(_board("X--", "-O-", "---"), players_turn=True)
    with pytest.raises(IllegalMove):
        advance_turn(turn, PlayerMove(1, 1))


def test_out_of_order_events_rejected():
    players_turn = _mid_game(_board("X--", "-O-", "---"), players_turn=True)
    with pytest.raises(InvalidState):
        advance_turn(players_turn, ComputerTurn())

    with pytest.raises(InvalidState):
        advance_turn(players_turn, StartGame())

    with pytest.raises(InvalidState):
        advance_turn(players_turn, object())


def test_session_without_marks_is_invalid():
    unassigned = Session(phase=Phase.IN_PROGRESS, players_turn=True)
    with pytest.raises(InvalidState):
        advance_turn(unassigned, PlayerMove(0, 0))

    waiting = Session(phase=Phase.IN_PROGRESS, players_turn=False)
    with pytest.raises(InvalidState):
        advance_turn(waiting, ComputerTurn())
