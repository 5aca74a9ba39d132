from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Optional


@dataclass
class SessionSettings:
    """Host-chosen options for one session, stored as JSON on the row."""

    max_players: int = 30
    min_players: int = 1
    time_per_question: Optional[int] = None  # overrides per-question limits when set
    show_answers_after: bool = True
    nickname_generator: bool = False
    host_plays: bool = False
    randomize_questions: bool = False
    randomize_answers: bool = False
    late_join: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict], config=None, base: Optional['SessionSettings'] = None) -> 'SessionSettings':
        """Build settings from request data, layered over ``base`` or config defaults.

        Raises ValueError for unknown keys or values of the wrong type/range.
        """
        if base is not None:
            values = asdict(base)
        else:
            values = asdict(cls())
            if config is not None:
                values['max_players'] = int(config.get('MAX_PLAYERS', values['max_players']))
                values['min_players'] = int(config.get('MIN_PLAYERS', values['min_players']))

        if data is not None and not isinstance(data, dict):
            raise ValueError('settings must be an object')
        known = {f.name: f for f in fields(cls)}
        for key, raw in (data or {}).items():
            if key not in known:
                raise ValueError(f'Unknown setting: {key}')
            default = asdict(cls())[key]
            if isinstance(default, bool):
                if not isinstance(raw, bool):
                    raise ValueError(f'{key} must be true or false')
                values[key] = raw
            elif raw is None and key == 'time_per_question':
                values[key] = None
            else:
                if isinstance(raw, bool):
                    raise ValueError(f'{key} must be an integer')
                try:
                    values[key] = int(raw)
                except (TypeError, ValueError):
                    raise ValueError(f'{key} must be an integer')

        settings = cls(**values)
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.max_players < 1:
            raise ValueError('max_players must be at least 1')
        if self.min_players < 1:
            raise ValueError('min_players must be at least 1')
        if self.min_players > self.max_players:
            raise ValueError('min_players cannot exceed max_players')
        if self.time_per_question is not None and self.time_per_question < 1:
            raise ValueError('time_per_question must be at least 1 second')

    def to_dict(self) -> dict:
        return asdict(self)
