"""Join PINs: six digits, unique among live sessions, reusable once a session ends."""

from __future__ import annotations

import random
import re

from flask import current_app

from gameshow import db
from gameshow.models import GameSession
from .results import AllocationExhausted, Reason, accepted, rejected
from .settings import SessionSettings

PIN_SPACE = 1_000_000
_PIN_RE = re.compile(r'^\d{6}$')


class PinAllocator:
    def __init__(self, rng: random.Random = None, max_attempts: int = 20):
        self._rng = rng or random.SystemRandom()
        self.max_attempts = max_attempts

    @classmethod
    def from_config(cls, config, rng: random.Random = None) -> 'PinAllocator':
        return cls(rng=rng, max_attempts=int(config.get('PIN_MAX_ATTEMPTS', 20)))

    def sample(self) -> str:
        return f'{self._rng.randrange(PIN_SPACE):06d}'

    def is_live(self, pin: str) -> bool:
        return db.session.query(GameSession.id).filter_by(live_pin=pin).first() is not None

    def candidates(self):
        """Yield free-looking PINs; at most ``max_attempts`` samples in total.

        A yielded PIN can still be lost to a concurrent insert, which the
        unique ``live_pin`` column reports; callers just move to the next one.
        """
        for attempt in range(1, self.max_attempts + 1):
            pin = self.sample()
            if self.is_live(pin):
                current_app.logger.info(f"[pin-collision] pin={pin} attempt={attempt}")
                continue
            yield pin

    def allocate(self) -> str:
        for pin in self.candidates():
            return pin
        raise AllocationExhausted(f'no free PIN after {self.max_attempts} attempts')


def resolve_pin(pin: str):
    """Map a typed PIN to the live session it belongs to."""
    pin = (pin or '').strip()
    if not _PIN_RE.match(pin):
        return rejected(Reason.SESSION_NOT_FOUND)
    gs = GameSession.query.filter_by(live_pin=pin).first()
    if gs is None:
        return rejected(Reason.SESSION_NOT_FOUND)
    if gs.status == 'playing' and not SessionSettings.from_dict(gs.settings_dict()).late_join:
        return rejected(Reason.NOT_JOINABLE)
    return accepted(gs.id)
