"""
Shared Valkey/Redis plumbing for the statement and view caches.

Every entry is written with the store's TTL. Reads that find an entry which
cannot be decoded delete it and report a miss; failed writes raise
``CacheWriteError``.
"""

import json
from typing import Any, Dict, List, Optional

import redis.asyncio as redis_async
from redis.exceptions import RedisError

from ..config import env
from ..config.valkey_registry import ValkeyDatabase, create_async_redis_client
from ..exceptions import CacheWriteError
from ..logger import cache_logger
from .codec import CorruptChunkError, decode_rows, encode_rows


class ChunkStore:
  """Base class for caches that keep a JSON meta record plus row pages."""

  def __init__(
    self,
    redis_client: Optional[redis_async.Redis] = None,
    ttl: Optional[int] = None,
    key_prefix: Optional[str] = None,
  ):
    """
    Args:
        redis_client: Async Redis client (created from the registry if None)
        ttl: Expiry in seconds applied to every write
        key_prefix: Namespace prepended to every key; empty for none
    """
    self._redis = redis_client
    self.ttl = ttl if ttl is not None else env.REDIS_CHUNK_TTL
    self.key_prefix = env.CACHE_KEY_PREFIX if key_prefix is None else key_prefix

  @property
  def redis(self) -> redis_async.Redis:
    """Get the async Redis client, creating it if needed."""
    if self._redis is None:
      self._redis = create_async_redis_client(ValkeyDatabase.REPORT_CACHE)
      cache_logger.info(f"Created Valkey/Redis client for {self.__class__.__name__}")
    return self._redis

  def _key(self, *parts: Any) -> str:
    key = ":".join(str(p) for p in parts)
    return f"{self.key_prefix}:{key}" if self.key_prefix else key

  async def _write_json(self, key: str, data: Dict[str, Any]) -> None:
    try:
      payload = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
      await self.redis.set(key, payload.encode("utf-8"), ex=self.ttl)
    except (TypeError, ValueError, RedisError) as e:
      raise CacheWriteError(key, str(e)) from e

  async def _read_json(self, key: str) -> Optional[Dict[str, Any]]:
    raw = await self.redis.get(key)
    if raw is None:
      return None
    try:
      text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
      data = json.loads(text)
    except ValueError as e:
      cache_logger.warning(f"Discarding unreadable meta entry {key}: {e}")
      await self.redis.delete(key)
      return None
    if not isinstance(data, dict):
      cache_logger.warning(f"Discarding meta entry {key}: not a JSON object")
      await self.redis.delete(key)
      return None
    return data

  async def _write_rows(self, key: str, rows: List[List[Any]]) -> None:
    try:
      payload = encode_rows(rows)
      await self.redis.set(key, payload, ex=self.ttl)
    except (TypeError, ValueError, RedisError) as e:
      raise CacheWriteError(key, str(e)) from e

  async def _read_rows(self, key: str) -> Optional[List[List[Any]]]:
    raw = await self.redis.get(key)
    if raw is None:
      return None
    try:
      return decode_rows(raw)
    except CorruptChunkError as e:
      cache_logger.warning(f"Discarding corrupt chunk {key}: {e}")
      await self.redis.delete(key)
      return None

  async def _delete(self, keys: List[str]) -> int:
    if not keys:
      return 0
    return await self.redis.delete(*keys)

  async def close(self) -> None:
    if self._redis is not None:
      await self._redis.aclose()
      self._redis = None
