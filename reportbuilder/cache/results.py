"""
Base statement result cache.

Key layout (``{prefix}:`` omitted when the prefix is empty)::

    {prefix}:{scope}:{statementId}:meta
    {prefix}:{scope}:{statementId}:chunk:{index}

Pages are fixed-size slices of the statement's rows in upstream order,
numbered contiguously from zero.
"""

import math
from typing import Any, Dict, List, Optional

from ..logger import cache_logger
from ..upstream.models import is_terminal_state
from .base import ChunkStore
from .models import StatementMeta


def merge_statement_meta(
  existing: Optional[StatementMeta], update: StatementMeta
) -> StatementMeta:
  """
  Merge an update into the stored meta.

  Fields absent from the update keep their stored value, the row count never
  decreases and a terminal state is never replaced by a non-terminal one.
  """
  if existing is None:
    return update

  merged = StatementMeta(
    page_size=update.page_size if update.page_size is not None else existing.page_size,
    row_count=existing.row_count,
    columns=update.columns if update.columns is not None else existing.columns,
    schema=update.schema if update.schema is not None else existing.schema,
    state=existing.state,
  )

  if update.row_count is not None:
    if merged.row_count is None or update.row_count > merged.row_count:
      merged.row_count = update.row_count

  if update.state is not None:
    if not (is_terminal_state(existing.state) and not is_terminal_state(update.state)):
      merged.state = update.state

  return merged


class ResultCache(ChunkStore):
  """Stores statement meta and base pages."""

  def meta_key(self, scope: str, statement_id: str) -> str:
    return self._key(scope, statement_id, "meta")

  def chunk_key(self, scope: str, statement_id: str, index: int) -> str:
    return self._key(scope, statement_id, "chunk", index)

  async def put_meta(
    self,
    scope: str,
    statement_id: str,
    page_size: Optional[int] = None,
    row_count: Optional[int] = None,
    columns: Optional[List[str]] = None,
    schema: Optional[List[Dict[str, Any]]] = None,
    state: Optional[str] = None,
  ) -> StatementMeta:
    """
    Merge the given fields into the stored meta and refresh its TTL.

    Returns:
        The meta as written
    """
    update = StatementMeta(
      page_size=page_size,
      row_count=row_count,
      columns=columns,
      schema=schema,
      state=state,
    )
    merged = merge_statement_meta(await self.get_meta(scope, statement_id), update)
    await self._write_json(self.meta_key(scope, statement_id), merged.to_dict())
    return merged

  async def get_meta(self, scope: str, statement_id: str) -> Optional[StatementMeta]:
    data = await self._read_json(self.meta_key(scope, statement_id))
    return StatementMeta.from_dict(data) if data is not None else None

  async def put_chunk(
    self, scope: str, statement_id: str, index: int, rows: List[List[Any]]
  ) -> None:
    await self._write_rows(self.chunk_key(scope, statement_id, index), rows)

  async def get_chunk(
    self, scope: str, statement_id: str, index: int
  ) -> Optional[List[List[Any]]]:
    return await self._read_rows(self.chunk_key(scope, statement_id, index))

  async def evict(self, scope: str, statement_id: str) -> int:
    """
    Delete the statement's meta and every page it accounts for.

    The page count comes from the stored row count and page size. When the row
    count is unknown only page 0 is removed; any other pages expire with
    their TTL.

    Returns:
        Number of keys deleted
    """
    meta = await self.get_meta(scope, statement_id)
    chunk_count = 1
    if meta is not None and meta.row_count is not None and meta.page_size:
      chunk_count = math.ceil(meta.row_count / meta.page_size)

    keys = [self.meta_key(scope, statement_id)]
    keys.extend(self.chunk_key(scope, statement_id, i) for i in range(chunk_count))
    deleted = await self._delete(keys)
    cache_logger.info(
      f"Evicted statement {statement_id} in scope {scope}: "
      f"{deleted} key(s), {chunk_count} page(s) accounted"
    )
    return deleted
