"""Adjective+noun nicknames for lobbies that hand out names."""

from __future__ import annotations

import random
from threading import Lock

ADJECTIVES = [
    "Brave", "Clever", "Cosmic", "Daring", "Eager", "Fancy", "Fuzzy", "Gentle",
    "Happy", "Jolly", "Lucky", "Mighty", "Nimble", "Quick", "Quiet", "Rapid",
    "Shiny", "Sneaky", "Sunny", "Swift", "Witty", "Zany", "Bold", "Calm",
]

NOUNS = [
    "Otter", "Falcon", "Panda", "Tiger", "Koala", "Badger", "Comet", "Dragon",
    "Gecko", "Llama", "Moose", "Narwhal", "Owl", "Penguin", "Rocket", "Walrus",
    "Yak", "Zebra", "Beaver", "Cactus", "Dolphin", "Ferret", "Heron", "Lynx",
]

MAX_NAME_LENGTH = 20


class NicknameGenerator:
    """Samples nicknames that avoid a given set of taken names."""

    def __init__(self, max_attempts: int = 10, rng: random.Random = None,
                 adjectives: list[str] = None, nouns: list[str] = None):
        self.max_attempts = max_attempts
        self._rng = rng or random.Random()
        self._adjectives = adjectives or ADJECTIVES
        self._nouns = nouns or NOUNS
        self._lock = Lock()

    def sample(self) -> str:
        with self._lock:
            return f"{self._rng.choice(self._adjectives)}{self._rng.choice(self._nouns)}"[:MAX_NAME_LENGTH]

    def pick(self, taken: set[str]) -> str:
        """Return a name not in ``taken``.

        Resamples up to ``max_attempts`` times, then numbers the last sample
        until it is free, which always terminates because ``taken`` is finite.
        """
        name = self.sample()
        for _ in range(self.max_attempts):
            if name not in taken:
                return name
            name = self.sample()
        return suffixed(name, taken)


def suffixed(base: str, taken: set[str]) -> str:
    n = 2
    while True:
        suffix = str(n)
        candidate = base[:MAX_NAME_LENGTH - len(suffix)] + suffix
        if candidate not in taken:
            return candidate
        n += 1
