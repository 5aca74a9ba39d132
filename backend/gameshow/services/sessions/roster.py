from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from gameshow import db
from gameshow.models import GameSession, Player
from .nicknames import NicknameGenerator
from .results import Reason, SessionConflict, SessionNotFound, accepted, rejected
from .settings import SessionSettings
from .store import conditional_update, get_session, notify, retry_on_conflict

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 20


def normalize_display_name(raw) -> Optional[str]:
    """Trimmed name, or None when it is missing or outside 3-20 characters."""
    if not isinstance(raw, str):
        return None
    name = raw.strip()
    if not (MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH):
        return None
    return name


def _taken_names(session_id: str) -> set:
    return {name for (name,) in db.session.query(Player.display_name).filter_by(session_id=session_id)}


@retry_on_conflict
def join(session_id: str, display_name=None, client_ref: Optional[str] = None, nicknames: NicknameGenerator = None):
    """Add a player to the roster.

    The roster check and the insert commit together with a version-guarded
    update of the session row, so a join that raced another join is retried
    against the fresh roster instead of overwriting it.
    """
    try:
        gs = get_session(session_id)
    except SessionNotFound:
        return rejected(Reason.SESSION_NOT_FOUND)
    settings = SessionSettings.from_dict(gs.settings_dict())

    if client_ref:
        existing = Player.query.filter_by(session_id=gs.id, client_ref=client_ref).first()
        if existing:
            return accepted(existing)

    if gs.status == 'ended':
        return rejected(Reason.NOT_JOINABLE)
    if gs.status == 'playing' and not settings.late_join:
        return rejected(Reason.GAME_ALREADY_STARTED)
    if client_ref and client_ref == gs.host_id and not settings.host_plays:
        return rejected(Reason.HOST_CANNOT_JOIN)

    taken = _taken_names(gs.id)
    if settings.nickname_generator:
        nicknames = nicknames or NicknameGenerator(max_attempts=int(current_app.config.get('NICKNAME_MAX_ATTEMPTS', 10)))
        name = nicknames.pick(taken)
    else:
        name = normalize_display_name(display_name)
        if name is None:
            return rejected(Reason.INVALID_NAME)
        if name in taken:
            return rejected(Reason.NAME_TAKEN)

    if gs.roster_count >= settings.max_players:
        return rejected(Reason.LOBBY_FULL)

    conditional_update(
        gs.id,
        {'roster_count': GameSession.roster_count + 1},
        expected_status=gs.status,
        expected_version=gs.version,
        conditions=[GameSession.roster_count < settings.max_players],
    )
    player = Player(
        session_id=gs.id,
        display_name=name,
        client_ref=client_ref,
        join_seq=gs.roster_count + 1,
    )
    db.session.add(player)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SessionConflict(f"session={gs.id} roster insert collided for name={name!r}")

    current_app.logger.info(f"[join] session={gs.id} player={player.id} name={name!r} seq={player.join_seq}")
    notify(get_session(gs.id))
    return accepted(player)


def rejoin(session_id: str, player_id: str, client_ref: Optional[str] = None):
    """Re-enter after a dropped connection; returns the existing player unchanged."""
    player = Player.query.filter_by(id=player_id, session_id=session_id).first()
    if player is None:
        if db.session.get(GameSession, session_id) is None:
            return rejected(Reason.SESSION_NOT_FOUND)
        return rejected(Reason.PLAYER_NOT_FOUND)
    if client_ref is not None and player.client_ref != client_ref:
        return rejected(Reason.NOT_YOUR_PLAYER)
    current_app.logger.info(f"[rejoin] session={session_id} player={player_id}")
    return accepted(player)
