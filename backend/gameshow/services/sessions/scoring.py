"""Scoring engine: timed answer admission, points and ranking."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass
from typing import List, Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from gameshow import db
from gameshow.models import Answer, GameSession, Player
from .quizzes import load_quiz
from .results import Reason, SessionNotFound, accepted, rejected
from .settings import SessionSettings
from .store import get_session, notify


@dataclass
class AnswerReceipt:
    player_id: str
    question_index: int
    is_correct: bool
    points: int
    elapsed: float
    total_score: int

    def to_dict(self):
        return asdict(self)


def points_for(base: int, elapsed: float, limit: float) -> int:
    """Points for a correct answer given ``elapsed`` seconds of a ``limit``.

    Full ``base`` at zero elapsed, half of it at the limit, never below
    ``max(1, base // 10)``. Non-increasing in ``elapsed``.
    """
    if base <= 0:
        return 0
    fraction = min(max(elapsed / float(limit), 0.0), 1.0) if limit else 1.0
    points = int(round(base * (1.0 - fraction / 2.0)))
    return max(points, max(1, base // 10))


def map_choice(choice, option_order: Optional[List[int]], num_options: int) -> Optional[frozenset]:
    """Translate displayed option indices back to quiz indices.

    Returns None for anything that is not one index or a non-empty list of
    in-range indices.
    """
    if isinstance(choice, bool):
        return None
    if isinstance(choice, int):
        choice = [choice]
    if not isinstance(choice, (list, tuple)) or not choice:
        return None
    picked = set()
    for idx in choice:
        if isinstance(idx, bool) or not isinstance(idx, int) or not 0 <= idx < num_options:
            return None
        picked.add(option_order[idx] if option_order else idx)
    return frozenset(picked)


def _closed_reason(session_id: str, question_index: int) -> Reason:
    gs = get_session(session_id)
    if gs.status == 'playing' and gs.current_question_index == question_index and gs.question_phase == 'closed':
        return Reason.TOO_LATE
    return Reason.WRONG_PHASE


def submit_answer(session_id: str, player_id: str, question_index: int, choice, submitted_at: float = None,
                  client_ref: Optional[str] = None):
    """Admit at most one answer per (player, question) while the question is open.

    ``submitted_at`` is server time; the HTTP layer never forwards a client
    clock. Admission is re-checked inside the write transaction so an answer
    racing the question closing cannot slip in afterwards. When ``client_ref``
    is given, only the client that joined as ``player_id`` may answer for it.
    """
    submitted_at = time.time() if submitted_at is None else float(submitted_at)
    try:
        gs = get_session(session_id)
    except SessionNotFound:
        return rejected(Reason.SESSION_NOT_FOUND)
    player = Player.query.filter_by(id=player_id, session_id=gs.id).first()
    if player is None:
        return rejected(Reason.PLAYER_NOT_FOUND)
    if client_ref is not None and player.client_ref != client_ref:
        return rejected(Reason.NOT_YOUR_PLAYER)

    if gs.status != 'playing' or question_index != gs.current_question_index:
        return rejected(Reason.WRONG_PHASE)
    if gs.question_phase != 'active':
        return rejected(Reason.TOO_LATE)
    elapsed = submitted_at - (gs.question_started_at or 0.0)
    if elapsed < 0:
        return rejected(Reason.WRONG_PHASE)

    quiz = load_quiz(gs.game_id)
    question = quiz.questions[gs.order()[question_index]]
    settings = SessionSettings.from_dict(gs.settings_dict())
    limit = quiz.time_limit_for(question, settings, int(current_app.config.get('QUESTION_DURATION_SEC', 60)))
    if elapsed > limit:
        return rejected(Reason.TOO_LATE)

    if Answer.query.filter_by(session_id=gs.id, player_id=player.id, question_index=question_index).first():
        return rejected(Reason.ALREADY_SUBMITTED)

    picked = map_choice(choice, gs.option_order(question_index), len(question.answers))
    if picked is None:
        return rejected(Reason.INVALID_CHOICE)
    is_correct = bool(question.correct) and picked == question.correct
    points = points_for(question.base_points, elapsed, limit) if is_correct else 0

    admitted = db.session.execute(
        update(GameSession)
        .where(
            GameSession.id == gs.id,
            GameSession.status == 'playing',
            GameSession.current_question_index == question_index,
            GameSession.question_phase == 'active',
        )
        .values(answers_received=GameSession.answers_received + 1)
        .execution_options(synchronize_session=False)
    )
    if admitted.rowcount == 0:
        db.session.rollback()
        return rejected(_closed_reason(gs.id, question_index))

    db.session.add(Answer(
        session_id=gs.id,
        player_id=player.id,
        question_index=question_index,
        choice=json.dumps(sorted(picked)),
        elapsed=elapsed,
        is_correct=is_correct,
        points=points,
        submitted_at=submitted_at,
    ))
    if points:
        db.session.execute(
            update(Player)
            .where(Player.id == player.id)
            .values(score=Player.score + points, score_reached_at=submitted_at)
            .execution_options(synchronize_session=False)
        )
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return rejected(Reason.ALREADY_SUBMITTED)

    player = db.session.get(Player, player.id, populate_existing=True)
    current_app.logger.info(
        f"[answer] session={gs.id} player={player.id} q={question_index} correct={is_correct} points={points} elapsed={elapsed:.2f}s"
    )
    notify(get_session(gs.id))
    return accepted(AnswerReceipt(
        player_id=player.id,
        question_index=question_index,
        is_correct=is_correct,
        points=points,
        elapsed=elapsed,
        total_score=player.score,
    ))


def rank_players(players) -> list:
    """Score desc, then who reached that score first, then join order."""
    return sorted(
        players,
        key=lambda p: (
            -(p.score or 0),
            p.score_reached_at if p.score_reached_at is not None else float('inf'),
            p.join_seq,
        ),
    )


def finalize_ranking(session_id: str) -> None:
    """Persist final ranks. Runs inside the ending transaction; no commit here."""
    players = Player.query.filter_by(session_id=session_id).all()
    for rank, player in enumerate(rank_players(players), start=1):
        player.final_rank = rank
        db.session.add(player)


def leaderboard(session_id: str):
    if db.session.get(GameSession, session_id) is None:
        return rejected(Reason.SESSION_NOT_FOUND)
    players = Player.query.filter_by(session_id=session_id).populate_existing().all()
    rows = []
    for rank, player in enumerate(rank_players(players), start=1):
        row = player.to_dict()
        row['rank'] = rank
        rows.append(row)
    return accepted(rows)
