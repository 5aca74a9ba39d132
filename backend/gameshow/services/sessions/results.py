"""Typed outcomes and failures for the session services.

Expected business conditions come back as a ``Result`` carrying a
``Reason``; only infrastructure failures are raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Reason(str, Enum):
    SESSION_NOT_FOUND = 'session_not_found'
    PLAYER_NOT_FOUND = 'player_not_found'
    NOT_JOINABLE = 'not_joinable'
    GAME_ALREADY_STARTED = 'game_already_started'
    INVALID_NAME = 'invalid_name'
    NAME_TAKEN = 'name_taken'
    LOBBY_FULL = 'lobby_full'
    HOST_CANNOT_JOIN = 'host_cannot_join'
    NOT_HOST = 'not_host'
    NOT_ENOUGH_PLAYERS = 'not_enough_players'
    NO_QUESTIONS = 'no_questions'
    WRONG_PHASE = 'wrong_phase'
    TOO_LATE = 'too_late'
    ALREADY_SUBMITTED = 'already_submitted'
    INVALID_CHOICE = 'invalid_choice'
    NOT_YOUR_PLAYER = 'not_your_player'


MESSAGES = {
    Reason.SESSION_NOT_FOUND: 'Game not found. Check the PIN and try again.',
    Reason.PLAYER_NOT_FOUND: 'You are not a player in this game.',
    Reason.NOT_JOINABLE: 'This game is no longer accepting players.',
    Reason.GAME_ALREADY_STARTED: 'Game already started.',
    Reason.INVALID_NAME: 'Display name must be between 3 and 20 characters.',
    Reason.NAME_TAKEN: 'Name already taken. Pick another one.',
    Reason.LOBBY_FULL: 'The lobby is full.',
    Reason.HOST_CANNOT_JOIN: 'The host is not playing in this game.',
    Reason.NOT_HOST: 'Only the host can do that.',
    Reason.NOT_ENOUGH_PLAYERS: 'Not enough players to start.',
    Reason.NO_QUESTIONS: 'This quiz has no questions.',
    Reason.WRONG_PHASE: 'That question is not open right now.',
    Reason.TOO_LATE: "Time's up for this question.",
    Reason.ALREADY_SUBMITTED: 'You already answered this question.',
    Reason.INVALID_CHOICE: 'Pick one of the listed answers.',
    Reason.NOT_YOUR_PLAYER: 'That player belongs to someone else.',
}

HTTP_STATUS = {
    Reason.SESSION_NOT_FOUND: 404,
    Reason.PLAYER_NOT_FOUND: 404,
    Reason.NOT_HOST: 403,
    Reason.HOST_CANNOT_JOIN: 403,
    Reason.INVALID_NAME: 400,
    Reason.INVALID_CHOICE: 400,
    Reason.NOT_YOUR_PLAYER: 403,
}


@dataclass(frozen=True)
class Result:
    value: Any = None
    reason: Optional[Reason] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @property
    def message(self) -> Optional[str]:
        return MESSAGES.get(self.reason) if self.reason else None

    @property
    def http_status(self) -> int:
        if self.reason is None:
            return 200
        return HTTP_STATUS.get(self.reason, 409)

    def to_error(self) -> dict:
        return {'error': self.message, 'reason': self.reason.value}


def accepted(value=None) -> Result:
    return Result(value=value)


def rejected(reason: Reason) -> Result:
    return Result(reason=reason)


class SessionNotFound(LookupError):
    pass


class QuizNotFound(LookupError):
    pass


class SessionConflict(Exception):
    """A conditional update lost the race; re-read and retry."""


class AllocationExhausted(Exception):
    """No free PIN within the attempt limit. Transient."""


class StoreUnavailable(Exception):
    """The session store cannot serve the request (fatal for the caller)."""
