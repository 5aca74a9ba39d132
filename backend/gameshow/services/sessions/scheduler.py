import time
from typing import Set, Tuple

from gameshow import db, socketio
from gameshow.models import GameSession


_scheduled_phase_keys: Set[Tuple[str, str, int]] = set()


def schedule_phase_timer(app, session_id: str) -> None:
    """Schedule the server-side deadline for the session's current phase.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single timer per (session_id, phase, question index)
    - active -> closed when answers time out; closed -> next question/ended
      when the review period is over
    - The worker re-checks phase and index before acting, so a host who
      advanced early simply turns the timer into a no-op
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    with app.app_context():
        gs = db.session.get(GameSession, session_id, populate_existing=True)
        if not gs or gs.status != 'playing' or not gs.question_phase or gs.phase_deadline is None:
            return
        phase = gs.question_phase
        index = int(gs.current_question_index)
        deadline = float(gs.phase_deadline)
        key = (gs.id, phase, index)

        if key in _scheduled_phase_keys:
            app.logger.info(f"[timer-skip] session={gs.id} phase={phase} index={index} already scheduled")
            return
        _scheduled_phase_keys.add(key)
        app.logger.info(f"[timer-set] session={gs.id} phase={phase} index={index} deadline={deadline}")

    def _worker(expected_phase: str, sid: str, expected_index: int, fire_at: float):
        delay = max(0.0, fire_at - time.time())
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
        if hb > 0:
            while delay > 0:
                step = min(hb, delay)
                time.sleep(step)
                delay = max(0.0, fire_at - time.time())
                app.logger.info(f"[timer-heartbeat] session={sid} phase={expected_phase} index={expected_index} remaining={delay:.1f}s")
        elif delay:
            time.sleep(delay)

        from .lifecycle import advance_after_review, close_question

        with app.app_context():
            _scheduled_phase_keys.discard((sid, expected_phase, expected_index))
            app.logger.info(f"[timer-fire] session={sid} phase={expected_phase} index={expected_index}")
            if expected_phase == 'active':
                result = close_question(sid, expected_index)
            else:
                result = advance_after_review(sid, expected_index)
            if not result.ok:
                app.logger.info(f"[timer-abort] session={sid} phase={expected_phase} index={expected_index} reason={result.reason.value}")

    if app.config.get('TESTING'):
        _worker(phase, session_id, index, deadline)
    else:
        socketio.start_background_task(_worker, phase, session_id, index, deadline)
