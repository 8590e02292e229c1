"""
app/activitypub/cache.py

Cache em memória dos actors remotos já resolvidos, indexado pela URI do actor.

Não há lock: o processo roda num único event loop e as operações no dict
são síncronas. Duas resoluções concorrentes do mesmo actor simplesmente
gravam a mesma entrada, e a última escrita vence.
"""

import time
from dataclasses import dataclass
from typing import Callable

from app.activitypub.actor import RemoteActor


@dataclass(frozen=True)
class CacheEntry:
    actor: RemoteActor
    fetched_at: float


class RemoteActorCache:
    def __init__(self, ttl: float = 0, clock: Callable[[], float] = time.monotonic):
        # ttl == 0 → a entrada vale enquanto o processo existir
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, uri: str) -> RemoteActor | None:
        entry = self._entries.get(uri)
        if entry is None:
            return None
        if self.ttl and self.clock() - entry.fetched_at > self.ttl:
            del self._entries[uri]
            return None
        return entry.actor

    def put(self, uri: str, actor: RemoteActor) -> None:
        self._entries[uri] = CacheEntry(actor=actor, fetched_at=self.clock())

    def invalidate(self, uri: str) -> None:
        self._entries.pop(uri, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, uri: str) -> bool:
        return self.get(uri) is not None

    def __len__(self) -> int:
        return len(self._entries)
