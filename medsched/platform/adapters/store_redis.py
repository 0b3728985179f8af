from __future__ import annotations
import re
import json
import time
import uuid
import random
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable
from redis.exceptions import WatchError
from medsched.core.errors import InvalidIdentifier
from medsched.platform.ports.record_store import (
    RecordStorePort, apply_patch, check_collection, group_paths, matches, split_path, to_plain,
)

log = logging.getLogger("store.redis")

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"
_KEY_RE = re.compile(r"^[-0-9A-Za-z_]{20}$")


class PushKeyGenerator:
    """Realtime-database style ids: 8 timestamp chars + 12 random chars.

    Keys sort lexicographically in creation order; keys generated within the
    same millisecond increment the random part instead of re-rolling it.
    """

    def __init__(self, clock: Callable[[], float] = time.time, rng: random.Random | None = None):
        self._clock = clock
        self._rng = rng or random.SystemRandom()
        self._last_ts: int | None = None
        self._last_rand = [0] * 12

    def __call__(self) -> str:
        now = int(self._clock() * 1000)
        duplicate = now == self._last_ts
        self._last_ts = now

        ts_chars = []
        n = now
        for _ in range(8):
            ts_chars.append(PUSH_CHARS[n % 64])
            n //= 64
        stamp = "".join(reversed(ts_chars))

        if not duplicate:
            self._last_rand = [self._rng.randrange(64) for _ in range(12)]
        else:
            i = 11
            while i >= 0 and self._last_rand[i] == 63:
                self._last_rand[i] = 0
                i -= 1
            if i >= 0:
                self._last_rand[i] += 1
        return stamp + "".join(PUSH_CHARS[r] for r in self._last_rand)


class RedisRecordStore(RecordStorePort):
    """Document backend: one JSON value per record plus a set index per collection."""

    def __init__(self, redis, prefix: str = "medsched", keygen: Callable[[], str] | None = None,
                 lock_timeout: float = 5.0, lock_ttl: float = 30.0):
        if lock_ttl <= lock_timeout:
            raise ValueError("lock_ttl must be longer than lock_timeout")
        self.redis = redis
        self.prefix = prefix
        self.keygen = keygen or PushKeyGenerator()
        # how long to wait for a lock, and how long a held lock survives its holder
        self.lock_timeout = lock_timeout
        self.lock_ttl = lock_ttl

    def _key(self, collection: str, record_id: str) -> str:
        return f"{self.prefix}:{check_collection(collection)}:{record_id}"

    def _index(self, collection: str) -> str:
        return f"{self.prefix}:{check_collection(collection)}"

    @staticmethod
    def _check_id(record_id: str) -> str:
        if not isinstance(record_id, str) or not _KEY_RE.match(record_id):
            raise InvalidIdentifier(f"invalid id format: {record_id!r}")
        return record_id

    async def _transact(self, keys: list[str], mutate):
        """Optimistic read-modify-write over ``keys``; ``mutate`` returns writes or None to abort."""
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(*keys)
                    docs = []
                    for k in keys:
                        raw = await pipe.get(k)
                        docs.append(json.loads(raw) if raw else None)
                    writes = mutate(docs)
                    if writes is None:
                        return None
                    pipe.multi()
                    for k, doc in writes:
                        pipe.set(k, json.dumps(doc))
                    await pipe.execute()
                    return writes
                except WatchError:
                    log.debug(f"write conflict on {keys}, retrying")
                    continue

    async def list(self, collection: str, **where: Any) -> list[dict]:
        ids = sorted(await self.redis.smembers(self._index(collection)))
        if not ids:
            return []
        raws = await self.redis.mget([self._key(collection, i) for i in ids])
        wanted = {k: to_plain(v) for k, v in where.items()}
        docs = [json.loads(r) for r in raws if r]
        return [d for d in docs if all(d.get(k) == v for k, v in wanted.items())]

    async def get(self, collection: str, record_id: str) -> dict | None:
        raw = await self.redis.get(self._key(collection, self._check_id(record_id)))
        return json.loads(raw) if raw else None

    async def create(self, collection: str, data: dict) -> dict:
        record_id = self._check_id(data["id"]) if data.get("id") else self.keygen()
        doc = {**to_plain(data), "id": record_id}
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.set(self._key(collection, record_id), json.dumps(doc))
            pipe.sadd(self._index(collection), record_id)
            await pipe.execute()
        return doc

    async def update(self, collection: str, record_id: str, patch: dict) -> dict | None:
        key = self._key(collection, self._check_id(record_id))
        if any(split_path(p)[0] == "id" for p in patch):
            raise ValueError("cannot update field 'id'")

        def mutate(docs):
            if docs[0] is None:
                return None
            return [(key, apply_patch(docs[0], to_plain(patch)))]

        writes = await self._transact([key], mutate)
        return writes[0][1] if writes else None

    async def update_many(self, patches: dict[str, Any], expect: dict[str, Any] | None = None) -> bool:
        grouped = group_paths(patches)
        expected = group_paths(expect or {})
        for patch in grouped.values():
            if any(split_path(p)[0] == "id" for p in patch):
                raise ValueError("cannot update field 'id'")
        targets = list(dict.fromkeys([*grouped, *expected]))
        keys = [self._key(collection, self._check_id(record_id)) for collection, record_id in targets]

        def mutate(docs):
            if any(d is None for d in docs):
                return None
            if not all(matches(d, expected.get(t, {})) for t, d in zip(targets, docs)):
                log.info(f"update_many aborted: expected values changed on {keys}")
                return None
            return [
                (k, apply_patch(d, to_plain(grouped[t])))
                for t, k, d in zip(targets, keys, docs) if t in grouped
            ]

        return await self._transact(keys, mutate) is not None

    async def delete(self, collection: str, record_id: str) -> bool:
        self._check_id(record_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.delete(self._key(collection, record_id))
            pipe.srem(self._index(collection), record_id)
            removed, _ = await pipe.execute()
        return bool(removed)

    @asynccontextmanager
    async def locked(self, collection: str, record_id: str):
        lock_key = f"{self.prefix}:lock:{check_collection(collection)}:{record_id}"
        token = uuid.uuid4().hex
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.lock_timeout
        while not await self.redis.set(lock_key, token, nx=True, px=int(self.lock_ttl * 1000)):
            if loop.time() >= deadline:
                raise TimeoutError(f"could not lock {collection}/{record_id}")
            await asyncio.sleep(0.01)
        try:
            yield self
        finally:
            await self._unlock(lock_key, token)

    async def _unlock(self, lock_key: str, token: str):
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(lock_key)
                if await pipe.get(lock_key) == token:
                    pipe.multi()
                    pipe.delete(lock_key)
                    await pipe.execute()
            except WatchError:
                log.warning(f"lock {lock_key} changed hands before release")
