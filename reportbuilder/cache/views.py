"""
Derived view cache.

A view is a sorted and/or filtered snapshot of a statement's base rows,
addressed by a signature of the request that produced it::

    {prefix}:{scope}:{statementId}:view:{signature}:meta
    {prefix}:{scope}:{statementId}:view:{signature}:chunk:{index}

View meta is only written once every page of the view is stored, so a view
with meta is always complete.
"""

import hashlib
import json
from typing import Any, List, Optional

import redis.asyncio as redis_async

from ..config import env
from ..config.constants import VIEW_SIGNATURE_LENGTH
from ..logger import cache_logger
from .base import ChunkStore
from .models import ViewMeta


def canonicalize_payload(payload: Optional[str]) -> str:
  """
  Re-serialize a JSON payload with sorted keys and no insignificant whitespace.

  Blank input canonicalizes to an empty string; text that is not valid JSON
  canonicalizes to its trimmed self.
  """
  if payload is None or not payload.strip():
    return ""
  try:
    parsed = json.loads(payload)
  except ValueError:
    return payload.strip()
  return json.dumps(parsed, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_signature(
  statement_id: str, sort_json: Optional[str], filter_json: Optional[str]
) -> str:
  """
  Deterministic digest of a (statement, sort, filter) combination.

  Example:
      >>> a = compute_signature("s1", '[{"colId":"a","sort":"asc"}]', None)
      >>> b = compute_signature("s1", '[{"sort":"asc", "colId":"a"}]', "")
      >>> a == b
      True
  """
  material = "|".join(
    [statement_id, canonicalize_payload(sort_json), canonicalize_payload(filter_json)]
  )
  digest = hashlib.sha256(material.encode("utf-8")).hexdigest()
  return digest[:VIEW_SIGNATURE_LENGTH]


class ViewCache(ChunkStore):
  """Stores view meta and view pages keyed by (scope, statement, signature)."""

  def __init__(
    self,
    redis_client: Optional[redis_async.Redis] = None,
    ttl: Optional[int] = None,
    key_prefix: Optional[str] = None,
  ):
    super().__init__(
      redis_client=redis_client,
      ttl=ttl if ttl is not None else env.REDIS_VIEW_TTL,
      key_prefix=key_prefix,
    )

  compute_signature = staticmethod(compute_signature)

  def meta_key(self, scope: str, statement_id: str, signature: str) -> str:
    return self._key(scope, statement_id, "view", signature, "meta")

  def chunk_key(self, scope: str, statement_id: str, signature: str, index: int) -> str:
    return self._key(scope, statement_id, "view", signature, "chunk", index)

  async def put_meta(
    self,
    scope: str,
    statement_id: str,
    signature: str,
    page_size: Optional[int] = None,
    row_count: Optional[int] = None,
    chunk_count: Optional[int] = None,
  ) -> ViewMeta:
    """Merge the given fields into the stored view meta and refresh its TTL."""
    existing = await self.get_meta(scope, statement_id, signature)
    meta = existing or ViewMeta(base_statement_id=statement_id, signature=signature)
    if page_size is not None:
      meta.page_size = page_size
    if row_count is not None:
      meta.row_count = row_count
    if chunk_count is not None:
      meta.chunk_count = chunk_count
    await self._write_json(self.meta_key(scope, statement_id, signature), meta.to_dict())
    return meta

  async def get_meta(
    self, scope: str, statement_id: str, signature: str
  ) -> Optional[ViewMeta]:
    data = await self._read_json(self.meta_key(scope, statement_id, signature))
    return ViewMeta.from_dict(data) if data is not None else None

  async def exists(self, scope: str, statement_id: str, signature: str) -> bool:
    return await self.get_meta(scope, statement_id, signature) is not None

  async def put_chunk(
    self,
    scope: str,
    statement_id: str,
    signature: str,
    index: int,
    rows: List[List[Any]],
  ) -> None:
    await self._write_rows(self.chunk_key(scope, statement_id, signature, index), rows)

  async def get_chunk(
    self, scope: str, statement_id: str, signature: str, index: int
  ) -> Optional[List[List[Any]]]:
    return await self._read_rows(self.chunk_key(scope, statement_id, signature, index))

  async def evict(
    self,
    scope: str,
    statement_id: str,
    signature: str,
    total_chunks: Optional[int] = None,
  ) -> int:
    """
    Delete a view's meta and its pages.

    Args:
        total_chunks: Page count to delete; read from the stored meta when None

    Returns:
        Number of keys deleted
    """
    if total_chunks is None:
      meta = await self.get_meta(scope, statement_id, signature)
      total_chunks = meta.chunk_count if meta and meta.chunk_count is not None else 1

    keys = [self.meta_key(scope, statement_id, signature)]
    keys.extend(
      self.chunk_key(scope, statement_id, signature, i) for i in range(total_chunks)
    )
    deleted = await self._delete(keys)
    cache_logger.info(f"Evicted view {signature} of statement {statement_id}: {deleted} key(s)")
    return deleted
