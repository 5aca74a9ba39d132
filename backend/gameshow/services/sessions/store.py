"""Session store: the single arbitration point for session mutations.

Every write is a conditional ``UPDATE`` guarded by the expected status
and/or version, so two clients racing on the same session can never both
apply a read-modify-write. Subscribers are told about changes through the
``/ws`` Socket.IO room of the session; those events are advisory only.
"""

import json
from functools import wraps

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from gameshow import db, socketio
from gameshow.models import GameSession
from .pins import PinAllocator
from .quizzes import load_quiz
from .results import AllocationExhausted, SessionConflict, SessionNotFound, StoreUnavailable


def session_room(session_id: str) -> str:
    return f"session:{session_id}"


def notify(gs: GameSession, event: str = 'session_update') -> None:
    payload = {
        'session_id': gs.id,
        'status': gs.status,
        'version': gs.version,
        'current_question_index': gs.current_question_index,
        'question_phase': gs.question_phase,
        'player_count': gs.roster_count,
    }
    socketio.emit(event, payload, to=session_room(gs.id), namespace='/ws')


def get_session(session_id: str) -> GameSession:
    """Fresh read of a session, bypassing whatever the identity map holds."""
    gs = db.session.get(GameSession, session_id, populate_existing=True)
    if gs is None:
        raise SessionNotFound(session_id)
    return gs


def create_session(game_id: str, host_id: str, settings, allocator: PinAllocator = None) -> GameSession:
    quiz = load_quiz(game_id)
    allocator = allocator or PinAllocator.from_config(current_app.config)
    for pin in allocator.candidates():
        gs = GameSession(
            pin=pin,
            live_pin=pin,
            status='lobby',
            host_id=host_id,
            game_id=quiz.id,
            num_questions=quiz.num_questions,
            current_question_index=0,
            settings=json.dumps(settings.to_dict()),
        )
        db.session.add(gs)
        try:
            db.session.commit()
        except IntegrityError:
            # Another session grabbed this PIN between the check and the insert
            db.session.rollback()
            current_app.logger.info(f"[pin-race] pin={pin}")
            continue
        current_app.logger.info(f"[session-create] session={gs.id} pin={pin} game={quiz.id} host={host_id}")
        notify(gs)
        return gs
    raise AllocationExhausted(f'no free PIN after {allocator.max_attempts} attempts')


def conditional_update(session_id: str, patch: dict, expected_status=None, expected_version=None, conditions=()) -> None:
    """Apply ``patch`` only if the guards still hold; bumps ``version``.

    Leaves the transaction open so callers can add related rows before
    committing. Raises SessionNotFound or SessionConflict on zero rows.
    """
    stmt = update(GameSession).where(GameSession.id == session_id)
    if expected_status is not None:
        if isinstance(expected_status, (tuple, list, set, frozenset)):
            stmt = stmt.where(GameSession.status.in_(list(expected_status)))
        else:
            stmt = stmt.where(GameSession.status == expected_status)
    if expected_version is not None:
        stmt = stmt.where(GameSession.version == expected_version)
    for condition in conditions:
        stmt = stmt.where(condition)
    values = dict(patch)
    values['version'] = GameSession.version + 1
    result = db.session.execute(stmt.values(**values).execution_options(synchronize_session=False))
    if result.rowcount == 0:
        db.session.rollback()
        get_session(session_id)
        raise SessionConflict(
            f"session={session_id} expected_status={expected_status} expected_version={expected_version}"
        )


def update_session(session_id: str, patch: dict, expected_status=None, expected_version=None, conditions=()) -> GameSession:
    conditional_update(session_id, patch, expected_status, expected_version, conditions)
    db.session.commit()
    gs = get_session(session_id)
    notify(gs)
    return gs


def retry_on_conflict(func):
    """Re-run ``func`` with a fresh read when it loses an optimistic race.

    After ``CONFLICT_RETRIES`` lost races the caller gets StoreUnavailable.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        attempts = int(current_app.config.get('CONFLICT_RETRIES', 3))
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except SessionConflict as exc:
                db.session.rollback()
                current_app.logger.info(f"[conflict] op={func.__name__} attempt={attempt} {exc}")
        raise StoreUnavailable(f"{func.__name__} lost {attempts} consecutive races")
    return wrapper
