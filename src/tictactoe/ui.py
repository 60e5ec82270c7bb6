"""FastAPI-powered web UI for playing tic-tac-toe against the minimax AI."""

from __future__ import annotations

import logging
import os
import random
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .ai import MinimaxAI
from .game import (
    EMPTY,
    O,
    X,
    Board,
    GameError,
    GameOutcome,
    determine_outcome,
)
from .session import (
    ComputerTurn,
    Effect,
    Event,
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

logger = logging.getLogger(__name__)


@dataclass
class GameSession:
    """Holder for a browser's game and the pending effects of its last turn."""

    state: Session = field(default_factory=Session)
    rng: random.Random = field(default_factory=random.Random, repr=False)
    message: str = ""
    message_expires: Optional[float] = None
    restart_at: Optional[float] = None
    ai_pending: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


SESSIONS: Dict[str, GameSession] = {}
app = FastAPI(title="Tic-Tac-Toe", description="Play tic-tac-toe against minimax")

TIMINGS = Timings()
# Seed for every new game's random source; unset means unseeded play.
SEED: Optional[int] = (
    int(os.environ["TICTACTOE_SEED"]) if os.environ.get("TICTACTOE_SEED") else None
)


class MoveRequest(BaseModel):
    """Request payload for a human move."""

    row: int = Field(ge=0, le=2)
    col: int = Field(ge=0, le=2)


class EvaluateRequest(BaseModel):
    """A board snapshot plus the computer's mark, scored statelessly."""

    model_config = ConfigDict(populate_by_name=True)

    board: List[List[str]]
    computer_mark: str = Field(alias="computerMark")

    @field_validator("computer_mark")
    @classmethod
    def ensure_player_mark(cls, value: str) -> str:
        if value not in (X, O):
            raise ValueError(f"computerMark must be {X!r} or {O!r}")
        return value

    @field_validator("board")
    @classmethod
    def normalize_empty_cells(cls, value: List[List[str]]) -> List[List[str]]:
        # The page renders empty cells as "", the engine reads them as EMPTY.
        return [[EMPTY if c in ("", " ") else c for c in row] for row in value]


# ---------- Session plumbing ----------


def _get_session(game_id: str) -> GameSession:
    try:
        return SESSIONS[game_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Game not found") from exc


def _apply_event(session: GameSession, event: Event) -> List[Effect]:
    """Advance ``session`` by ``event`` and execute the resulting effects.

    Must be called with ``session.lock`` held. Returns the effects so callers
    can schedule the computer's turn outside the lock.
    """
    try:
        state, effects = advance_turn(session.state, event, session.rng, TIMINGS)
    except GameError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    session.state = state
    now = time.monotonic()
    for effect in effects:
        if isinstance(effect, ShowMessage):
            session.message = effect.text
            session.message_expires = (
                None if effect.clear_after is None else now + effect.clear_after
            )
        elif isinstance(effect, ScheduleRestart):
            session.restart_at = now + effect.after
        elif isinstance(effect, ScheduleComputerTurn):
            session.ai_pending = True
        elif isinstance(effect, PlaceMark):
            logger.debug("Placed %s at (%d, %d)", effect.mark, effect.row, effect.col)
    return effects


def _restart_if_due(session: GameSession) -> List[Effect]:
    """Restart a finished game once its restart delay has elapsed."""

    if session.restart_at is None or time.monotonic() < session.restart_at:
        return []
    session.restart_at = None
    return _apply_event(session, Restart())


def _expire_message(session: GameSession) -> None:
    now = time.monotonic()
    if session.message_expires is not None and now >= session.message_expires:
        session.message = ""
        session.message_expires = None


def _computer_delay(effects: Iterable[Effect]) -> Optional[float]:
    for effect in effects:
        if isinstance(effect, ScheduleComputerTurn):
            return effect.after
    return None


def _run_computer_turn(game_id: str, delay: float) -> None:
    session = SESSIONS.get(game_id)
    if not session:
        return

    time.sleep(max(0.0, delay))

    with session.lock:
        try:
            if not session.state.computers_turn:
                return
            _apply_event(session, ComputerTurn())
        finally:
            session.ai_pending = False


def _schedule_computer_turn(
    game_id: str,
    effects: Iterable[Effect],
    background_tasks: Optional[BackgroundTasks],
) -> None:
    delay = _computer_delay(effects)
    if delay is not None and background_tasks is not None:
        background_tasks.add_task(_run_computer_turn, game_id, delay)


def _serialize_outcome(outcome: GameOutcome) -> Dict[str, object]:
    return {"status": outcome.status.value, "winner": outcome.winner}


def _serialize_board(board: Board) -> List[List[str]]:
    return [["" if c == EMPTY else c for c in row] for row in board.cells]


def _serialize_session(game_id: str, session: GameSession) -> Dict[str, object]:
    with session.lock:
        _expire_message(session)
        state = session.state
        move_log = [
            {
                "player": "computer" if placed.by_computer else "human",
                "mark": placed.mark,
                "row": placed.row,
                "col": placed.col,
            }
            for placed in state.move_log
        ]
        payload: Dict[str, object] = {
            "id": game_id,
            "phase": state.phase.value,
            "board": _serialize_board(state.board),
            "playerMark": state.player_mark,
            "computerMark": state.computer_mark,
            "playersTurn": state.players_turn,
            "outcome": _serialize_outcome(state.outcome),
            "message": session.message,
            "moveLog": move_log,
            "aiPending": session.ai_pending,
        }
        if move_log:
            payload["lastMove"] = move_log[-1]
        return payload


# ---------- Routes ----------


@app.post("/api/game")
def create_game(background_tasks: BackgroundTasks) -> Dict[str, object]:
    game_id = uuid.uuid4().hex
    session = GameSession(rng=random.Random(SEED))
    SESSIONS[game_id] = session
    with session.lock:
        effects = _apply_event(session, StartGame())
    _schedule_computer_turn(game_id, effects, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/api/game/{game_id}")
def get_game(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        effects = _restart_if_due(session)
    _schedule_computer_turn(game_id, effects, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/move")
def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        restart_effects = _restart_if_due(session)
        if restart_effects and not session.state.players_turn:
            # The new game opened with the computer; the click is dropped.
            effects = restart_effects
        else:
            if session.ai_pending:
                raise HTTPException(
                    status_code=400, detail="AI is completing its move"
                )
            effects = _apply_event(session, PlayerMove(request.row, request.col))
    _schedule_computer_turn(game_id, effects, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/restart")
def restart_game(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        session.restart_at = None
        session.ai_pending = False
        effects = _apply_event(session, Restart())
    _schedule_computer_turn(game_id, effects, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/evaluate")
def evaluate(request: EvaluateRequest) -> Dict[str, object]:
    """Score a board snapshot for the given computer mark without a session."""

    try:
        board = Board.from_rows(request.board)
    except GameError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    outcome = determine_outcome(board)
    payload: Dict[str, object] = {
        "outcome": _serialize_outcome(outcome),
        "move": None,
        "scores": [],
    }
    if outcome.is_terminal:
        return payload

    ai = MinimaxAI(player=request.computer_mark, rng=random.Random(SEED))
    scores = ai.score_moves(board)
    row, col = ai.pick(scores)
    payload["move"] = {"row": row, "col": col}
    payload["scores"] = [
        {"row": r, "col": c, "score": score} for (r, c), score in scores.items()
    ]
    return payload


@app.get("/", response_class=HTMLResponse)
def index() -> str:
    return HTML_PAGE


HTML_PAGE = """<!DOCTYPE html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <title>Tic-Tac-Toe</title>
    <style>
      :root {
        color-scheme: light;
        font-family: system-ui, -apple-system, BlinkMacSystemFont, \"Segoe UI\", sans-serif;
      }
      * {
        box-sizing: border-box;
      }
      body {
        margin: 0;
        min-height: 100vh;
        display: flex;
        justify-content: center;
        align-items: center;
        background: radial-gradient(circle at top, #f2f5ff, #dbe0ff 40%, #cfd8ff 70%);
        color: #13203a;
      }
      main {
        background: rgba(255, 255, 255, 0.92);
        border-radius: 18px;
        box-shadow: 0 20px 40px rgba(34, 47, 79, 0.16);
        padding: 2rem;
        text-align: center;
      }
      h1 {
        margin: 0 0 1rem;
        letter-spacing: 0.06em;
      }
      .typewriter {
        min-height: 1.6rem;
        margin-bottom: 1rem;
      }
      .typewriter > p {
        margin: 0;
        font-family: monospace;
        font-size: 1.1rem;
        white-space: nowrap;
        overflow: hidden;
        border-right: 0.12em solid #3a66ff;
        display: inline-block;
      }
      .board {
        display: grid;
        grid-template-columns: repeat(3, 96px);
        grid-template-rows: repeat(3, 96px);
        gap: 6px;
        margin: 0 auto 1.25rem;
        width: max-content;
      }
      .board.thinking {
        opacity: 0.75;
      }
      .cell {
        border-radius: 12px;
        background: rgba(226, 232, 255, 0.6);
        border: 1px solid rgba(58, 102, 255, 0.25);
        font-size: 3rem;
        font-weight: 700;
        display: flex;
        justify-content: center;
        align-items: center;
        cursor: pointer;
      }
      .cell__x {
        color: #3a66ff;
        cursor: default;
      }
      .cell__o {
        color: #ff5a7a;
        cursor: default;
      }
      button {
        font-size: 1rem;
        padding: 0.55rem 0.95rem;
        border-radius: 999px;
        border: 1px solid rgba(60, 70, 120, 0.25);
        background: white;
        cursor: pointer;
        font-family: inherit;
      }
    </style>
  </head>
  <body>
    <main>
      <h1>Tic-Tac-Toe</h1>
      <div class=\"typewriter\"><p id=\"message\"></p></div>
      <div class=\"board\" id=\"board\"></div>
      <button id=\"restart\" type=\"button\">Restart</button>
    </main>
    <script>
      const boardEl = document.getElementById('board');
      const messageEl = document.getElementById('message');
      const restartButton = document.getElementById('restart');
      let gameId = null;
      let gameState = null;
      let pollHandle = null;
      let isRequestPending = false;
      let typedMessage = '';
      let typeHandle = null;

      function typeMessage(message) {
        if (message === typedMessage) return;
        typedMessage = message;
        if (typeHandle) clearInterval(typeHandle);
        messageEl.textContent = '';
        let index = 0;
        typeHandle = setInterval(() => {
          if (index >= message.length) {
            clearInterval(typeHandle);
            typeHandle = null;
            return;
          }
          messageEl.textContent += message[index];
          index += 1;
        }, 45);
      }

      function renderBoard() {
        boardEl.innerHTML = '';
        boardEl.classList.toggle('thinking', Boolean(gameState?.aiPending));
        for (let row = 0; row < 3; row++) {
          for (let col = 0; col < 3; col++) {
            const cell = document.createElement('div');
            cell.className = 'cell';
            const mark = gameState ? gameState.board[row][col] : '';
            if (mark) {
              cell.classList.add(mark === 'X' ? 'cell__x' : 'cell__o');
              cell.textContent = mark;
            } else {
              cell.addEventListener('click', () => sendMove(row, col), { once: true });
            }
            boardEl.appendChild(cell);
          }
        }
      }

      function setState(data) {
        gameId = data.id;
        gameState = data;
        renderBoard();
        typeMessage(data.message || '');
        schedulePoll();
      }

      function schedulePoll() {
        if (pollHandle) return;
        const waiting = gameState && (gameState.aiPending || gameState.phase === 'ended' || gameState.message);
        if (!waiting) return;
        pollHandle = setTimeout(poll, 400);
      }

      async function poll() {
        pollHandle = null;
        if (!gameId) return;
        try {
          const response = await fetch(`/api/game/${gameId}`);
          if (response.ok) {
            setState(await response.json());
          }
        } catch (error) {
          console.error('Polling failed', error);
        }
      }

      async function post(url, body) {
        const response = await fetch(url, {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: body ? JSON.stringify(body) : undefined,
        });
        const payload = await response.json().catch(() => ({}));
        if (!response.ok) {
          throw new Error(payload?.detail || 'Request failed');
        }
        return payload;
      }

      async function startGame() {
        try {
          setState(await post('/api/game'));
        } catch (error) {
          typeMessage(error.message || 'Network error. Please try again.');
        }
      }

      async function sendMove(row, col) {
        if (!gameState || !gameState.playersTurn || isRequestPending) {
          renderBoard();
          return;
        }
        isRequestPending = true;
        try {
          setState(await post(`/api/game/${gameId}/move`, { row, col }));
        } catch (error) {
          typeMessage(error.message);
          renderBoard();
        } finally {
          isRequestPending = false;
        }
      }

      restartButton.addEventListener('click', async () => {
        if (!gameId) return startGame();
        try {
          setState(await post(`/api/game/${gameId}/restart`));
        } catch (error) {
          typeMessage(error.message);
        }
      });

      window.addEventListener('load', startGame);
    </script>
  </body>
</html>
"""
