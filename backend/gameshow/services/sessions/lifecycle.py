"""Session lifecycle: lobby -> playing -> ended, with a per-question sub-phase.

While playing, each question is ``active`` (accepting answers until
``phase_deadline``) and then ``closed`` (answers shown until the review
deadline, or skipped when ``show_answers_after`` is off). Only the host or
the server timer moves a session forward; nothing leaves ``ended``.
"""

import json
import random
import time
from datetime import datetime

from flask import current_app

from gameshow import db
from .quizzes import load_quiz
from .results import Reason, SessionNotFound, accepted, rejected
from .scheduler import schedule_phase_timer
from .scoring import finalize_ranking
from .settings import SessionSettings
from .store import conditional_update, get_session, notify, retry_on_conflict, update_session


def _fallback_limit() -> int:
    return int(current_app.config.get('QUESTION_DURATION_SEC', 60))


def _question_patch(quiz, settings, order, index, now) -> dict:
    question = quiz.questions[order[index]]
    limit = quiz.time_limit_for(question, settings, _fallback_limit())
    return {
        'current_question_index': index,
        'question_phase': 'active',
        'question_started_at': now,
        'phase_deadline': now + limit,
        'answers_received': 0,
    }


def _schedule(session_id: str) -> None:
    schedule_phase_timer(current_app._get_current_object(), session_id)


@retry_on_conflict
def start_game(session_id: str, requested_by: str, rng: random.Random = None):
    try:
        gs = get_session(session_id)
    except SessionNotFound:
        return rejected(Reason.SESSION_NOT_FOUND)
    if requested_by != gs.host_id:
        return rejected(Reason.NOT_HOST)
    if gs.status != 'lobby':
        return rejected(Reason.WRONG_PHASE)
    settings = SessionSettings.from_dict(gs.settings_dict())
    if gs.roster_count < settings.min_players:
        return rejected(Reason.NOT_ENOUGH_PLAYERS)
    quiz = load_quiz(gs.game_id)
    if not quiz.questions:
        return rejected(Reason.NO_QUESTIONS)

    rng = rng or random.Random()
    order = list(range(quiz.num_questions))
    if settings.randomize_questions:
        rng.shuffle(order)
    answer_orders = None
    if settings.randomize_answers:
        answer_orders = []
        for position in order:
            perm = list(range(len(quiz.questions[position].answers)))
            rng.shuffle(perm)
            answer_orders.append(perm)

    patch = {
        'status': 'playing',
        'started_at': datetime.utcnow(),
        'num_questions': quiz.num_questions,
        'question_order': json.dumps(order),
        'answer_orders': json.dumps(answer_orders) if answer_orders is not None else None,
    }
    patch.update(_question_patch(quiz, settings, order, 0, time.time()))
    gs = update_session(gs.id, patch, expected_status='lobby', expected_version=gs.version)
    current_app.logger.info(f"[start] session={gs.id} players={gs.roster_count} questions={gs.num_questions}")
    _schedule(gs.id)
    return accepted(gs)


def _next_question(gs, settings):
    next_index = gs.current_question_index + 1
    if next_index >= gs.num_questions:
        return _finish(gs, 'completed')
    quiz = load_quiz(gs.game_id)
    patch = _question_patch(quiz, settings, gs.order(), next_index, time.time())
    gs = update_session(gs.id, patch, expected_status='playing', expected_version=gs.version)
    current_app.logger.info(f"[next-question] session={gs.id} index={next_index}")
    _schedule(gs.id)
    return accepted(gs)


def _finish(gs, reason: str):
    conditional_update(
        gs.id,
        {
            'status': 'ended',
            'end_reason': reason,
            'live_pin': None,
            'question_phase': None,
            'phase_deadline': None,
            'ended_at': datetime.utcnow(),
        },
        expected_status=gs.status,
        expected_version=gs.version,
    )
    finalize_ranking(gs.id)
    db.session.commit()
    gs = get_session(gs.id)
    current_app.logger.info(f"[end] session={gs.id} reason={reason} pin={gs.pin} released")
    notify(gs)
    notify(gs, event='session_ended')
    return accepted(gs)


@retry_on_conflict
def close_question(session_id: str, expected_index: int = None):
    """Stop accepting answers for the current question.

    ``expected_index`` lets a timer that fired late notice the session has
    already moved on.
    """
    try:
        gs = get_session(session_id)
    except SessionNotFound:
        return rejected(Reason.SESSION_NOT_FOUND)
    if gs.status != 'playing' or gs.question_phase != 'active':
        return rejected(Reason.WRONG_PHASE)
    if expected_index is not None and gs.current_question_index != expected_index:
        return rejected(Reason.WRONG_PHASE)
    settings = SessionSettings.from_dict(gs.settings_dict())
    if not settings.show_answers_after:
        return _next_question(gs, settings)
    review = int(current_app.config.get('REVIEW_DURATION_SEC', 6))
    gs = update_session(
        gs.id,
        {'question_phase': 'closed', 'phase_deadline': time.time() + review},
        expected_status='playing',
        expected_version=gs.version,
    )
    current_app.logger.info(f"[close-question] session={gs.id} index={gs.current_question_index} answers={gs.answers_received}")
    _schedule(gs.id)
    return accepted(gs)


@retry_on_conflict
def advance_after_review(session_id: str, expected_index: int = None):
    try:
        gs = get_session(session_id)
    except SessionNotFound:
        return rejected(Reason.SESSION_NOT_FOUND)
    if gs.status != 'playing' or gs.question_phase != 'closed':
        return rejected(Reason.WRONG_PHASE)
    if expected_index is not None and gs.current_question_index != expected_index:
        return rejected(Reason.WRONG_PHASE)
    return _next_question(gs, SessionSettings.from_dict(gs.settings_dict()))


def advance(session_id: str, requested_by: str):
    """Host force-advance: close an open question, or move past a closed one."""
    try:
        gs = get_session(session_id)
    except SessionNotFound:
        return rejected(Reason.SESSION_NOT_FOUND)
    if requested_by != gs.host_id:
        return rejected(Reason.NOT_HOST)
    if gs.status != 'playing':
        return rejected(Reason.WRONG_PHASE)
    if gs.question_phase == 'active':
        return close_question(gs.id, gs.current_question_index)
    return advance_after_review(gs.id, gs.current_question_index)


@retry_on_conflict
def end_session(session_id: str, reason: str = 'completed'):
    """End a session and finalise scores. Ending an ended session is a no-op."""
    try:
        gs = get_session(session_id)
    except SessionNotFound:
        return rejected(Reason.SESSION_NOT_FOUND)
    if gs.status == 'ended':
        return accepted(gs)
    return _finish(gs, reason)


def abandon(session_id: str, requested_by: str):
    try:
        gs = get_session(session_id)
    except SessionNotFound:
        return rejected(Reason.SESSION_NOT_FOUND)
    if requested_by != gs.host_id:
        return rejected(Reason.NOT_HOST)
    return end_session(gs.id, 'abandoned')


@retry_on_conflict
def update_settings(session_id: str, requested_by: str, changes: dict):
    """Host edits settings while still in the lobby.

    Raises ValueError for invalid settings, like SessionSettings.from_dict.
    """
    try:
        gs = get_session(session_id)
    except SessionNotFound:
        return rejected(Reason.SESSION_NOT_FOUND)
    if requested_by != gs.host_id:
        return rejected(Reason.NOT_HOST)
    if gs.status != 'lobby':
        return rejected(Reason.GAME_ALREADY_STARTED)
    settings = SessionSettings.from_dict(changes, base=SessionSettings.from_dict(gs.settings_dict()))
    if settings.max_players < gs.roster_count:
        raise ValueError(f'max_players cannot be below the {gs.roster_count} players already joined')
    gs = update_session(
        gs.id,
        {'settings': json.dumps(settings.to_dict())},
        expected_status='lobby',
        expected_version=gs.version,
    )
    current_app.logger.info(f"[settings] session={gs.id} changed={sorted(changes)}")
    return accepted(gs)


def question_snapshot(gs) -> dict:
    """What clients may see of the current question; correct answers only once closed."""
    if gs.status != 'playing' or gs.question_phase is None:
        return None
    quiz = load_quiz(gs.game_id)
    settings = SessionSettings.from_dict(gs.settings_dict())
    question = quiz.questions[gs.order()[gs.current_question_index]]
    option_order = gs.option_order(gs.current_question_index) or list(range(len(question.answers)))
    snapshot = {
        'index': gs.current_question_index,
        'prompt': question.prompt,
        'answers': [question.answers[i] for i in option_order],
        'multiple': len(question.correct) > 1,
        'image_url': question.image_url,
        'points': question.points,
        'time_limit': quiz.time_limit_for(question, settings, _fallback_limit()),
        'started_at': gs.question_started_at,
        'deadline': gs.phase_deadline,
    }
    if gs.question_phase == 'closed' and settings.show_answers_after:
        snapshot['correct'] = sorted(option_order.index(i) for i in question.correct)
    return snapshot
