from flask_socketio import join_room, leave_room, emit
from gameshow import socketio, db
from flask import current_app, request
from gameshow.models import GameSession
from typing import Dict, Any, Optional
import time


def handle_connect(auth=None):
    # Same identity the HTTP API reads from X-User-Id; clients may also pass it as connect auth
    user_id = auth.get('user_id') if isinstance(auth, dict) else None
    user_id = (user_id or request.headers.get('X-User-Id') or '').strip()
    if user_id:
        _sid_to_user[_get_sid()] = user_id
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # A host socket dropping out of a lobby gets a grace period to come back
    # before the lobby is abandoned; a game in progress keeps running on the
    # server timers either way
    sid = _get_sid()
    _sid_to_user.pop(sid, None)
    ctx = _sid_to_ctx.pop(sid, None)
    if not ctx:
        return
    session_id = ctx.get('session_id')
    if ctx.get('is_host') and session_id:
        if _release_host(session_id) > 0:
            return
        current_app.logger.info(f"[host-disconnect] session={session_id}")
        if current_app.config.get('TESTING'):
            _abandon_if_lobby(session_id)
            return
        _schedule_abandon_if_no_host(current_app._get_current_object(), session_id)


def handle_join_session(data):
    session_id = (data or {}).get('session_id')
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    room = f"session:{session_id}"
    join_room(room)
    # Host presence is decided from the connection's identity, never from the payload
    is_host = _is_session_host(session_id, _sid_to_user.get(_get_sid()))
    _sid_to_ctx[_get_sid()] = {'session_id': session_id, 'is_host': is_host}
    if is_host:
        _host_count[session_id] = _host_count.get(session_id, 0) + 1
        _cancel_scheduled_abandon(session_id)
    emit('joined', {'room': room, 'is_host': is_host})


def handle_leave_session(data):
    session_id = (data or {}).get('session_id')
    if not session_id:
        emit('error', {'message': 'session_id is required'})
        return
    room = f"session:{session_id}"
    leave_room(room)
    emit('left', {'room': room})
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx.get('is_host') and ctx.get('session_id') == session_id:
        ctx['is_host'] = False
        # Explicit quit by the last host: abandon the lobby right away
        if _release_host(session_id) == 0:
            current_app.logger.info(f"[host-leave] session={session_id}")
            _abandon_if_lobby(session_id)


def handle_ping(data):
    emit('pong', data or {})

# ---- Host presence helpers ----

_sid_to_user: Dict[str, str] = {}
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_host_count: Dict[str, int] = {}
_abandon_deadline: Dict[str, float] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore[attr-defined]


def _is_session_host(session_id: str, user_id: Optional[str]) -> bool:
    if not user_id:
        return False
    gs = db.session.get(GameSession, session_id)
    return gs is not None and gs.host_id == user_id


def _release_host(session_id: str) -> int:
    _host_count[session_id] = max(0, _host_count.get(session_id, 0) - 1)
    return _host_count[session_id]


def _abandon_if_lobby(session_id: str) -> None:
    from gameshow.services.sessions.lifecycle import end_session

    _host_count.pop(session_id, None)
    _abandon_deadline.pop(session_id, None)
    gs = db.session.get(GameSession, session_id, populate_existing=True)
    if gs is None or gs.status != 'lobby':
        return
    result = end_session(session_id, 'abandoned')
    current_app.logger.info(f"[host-gone] session={session_id} abandoned={result.ok}")


def _schedule_abandon_if_no_host(app, session_id: str) -> None:
    delay_sec = float(app.config.get('HOST_GRACE_SEC', 10))
    _abandon_deadline[session_id] = time.time() + delay_sec

    def _runner(sid: str, deadline: float):
        sleep_for = max(0.0, deadline - time.time())
        if sleep_for:
            time.sleep(sleep_for)
        if _host_count.get(sid, 0) == 0 and _abandon_deadline.get(sid) == deadline:
            with app.app_context():
                _abandon_if_lobby(sid)

    socketio.start_background_task(_runner, session_id, _abandon_deadline[session_id])


def _cancel_scheduled_abandon(session_id: str) -> None:
    _abandon_deadline.pop(session_id, None)


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('disconnect', handle_disconnect, namespace='/ws')
    socketio.on_event('join_session', handle_join_session, namespace='/ws')
    socketio.on_event('leave_session', handle_leave_session, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('disconnect', handle_disconnect, namespace='/')
        socketio.on_event('join_session', handle_join_session, namespace='/')
        socketio.on_event('leave_session', handle_leave_session, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
