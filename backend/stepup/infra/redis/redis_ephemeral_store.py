# comments in English; reST docstrings
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import cast

import redis  # type: ignore[import-untyped]

from stepup.services._shared.ports.ephemeral_store import DELETE, KEEP, EphemeralStore, Mutator, T

log = logging.getLogger(__name__)


@dataclass(slots=True)
class RedisEphemeralStore(EphemeralStore):
    """
    Redis-backed TTL store with optimistic-locking updates.

    :param r: A Redis client (already connected).
    :param max_retries: WATCH conflicts tolerated per :meth:`update` before giving up.
    """

    r: redis.Redis
    max_retries: int = 50

    # -------------------- helpers --------------------

    @staticmethod
    def _s(value: bytes | str | None) -> str | None:
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes | bytearray) else str(value)

    # -------------------- API ------------------------

    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.r.set(key, value, ex=ttl_seconds)

    def get(self, key: str) -> str | None:
        return self._s(self.r.get(key))

    def delete(self, key: str) -> None:
        self.r.delete(key)

    def exists(self, key: str) -> bool:
        return cast(int, self.r.exists(key)) == 1

    def remaining_ttl(self, key: str) -> int | None:
        ttl = cast(int, self.r.ttl(key))
        # -2: missing, -1: no expiry
        return ttl if ttl >= 0 else None

    def update(self, key: str, mutate: Mutator[T]) -> T:
        """
        Atomically apply ``mutate`` to ``key`` using WATCH/MULTI/EXEC.

        A replacement value is written with ``PX`` set to the key's remaining
        time-to-live read inside the watched section, so the absolute expiry
        never moves forward. On a concurrent modification the transaction is
        discarded and the whole read-decide-write is retried.
        """
        for _ in range(self.max_retries):
            try:
                with self.r.pipeline() as p:
                    p.watch(key)

                    # Immediate-mode reads while watching
                    current = self._s(p.get(key))
                    pttl = cast(int, p.pttl(key))

                    action, result = mutate(current)
                    if action is KEEP:
                        p.unwatch()
                        return result

                    p.multi()
                    if action is DELETE:
                        p.delete(key)
                    elif pttl > 0:
                        p.set(key, cast(str, action), px=pttl)
                    else:
                        # missing or persistent key: write without expiry change
                        p.set(key, cast(str, action), keepttl=True)
                    p.execute()
                    return result
            except redis.WatchError:
                # Concurrent modification detected; retry loop
                log.debug("ephemeral_store.update_conflict key=%s", key)
                continue
        raise RuntimeError(f"Gave up updating {key!r} after {self.max_retries} conflicts")
