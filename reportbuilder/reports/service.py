"""
Report statement orchestration.

Ties the statement client to the result and view caches:

- submission starts a background stream that re-slices upstream chunks into
  fixed-size cached pages
- row-range reads page from the base cache, waiting a bounded time for the
  first page that is not there yet
- sorted/filtered reads build a view once, cache it under its signature and
  page from it afterwards
"""

import asyncio
import math
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..cache import ResultCache, ViewCache, compute_signature
from ..cache.models import StatementMeta, ViewMeta
from ..config import env
from ..exceptions import InvalidRowRangeError
from ..grid import index_columns, matches, parse_models, sort_rows
from ..grid.models import ParsedModels
from ..logger import log_performance_metric, logger
from ..upstream import ChunkListener, StatementClient, StatementState
from .models import RowsPage, StatementSubmitted

ChunkReader = Callable[[int], Awaitable[Optional[List[List[Any]]]]]


class StatementPager(ChunkListener):
  """
  Writes a streaming statement into the result cache.

  Progress notifications are merged into the statement meta. Delivered rows
  are buffered and written as consecutive pages of exactly ``page_size``
  rows; the trailing partial page is written when the stream ends. A
  succeeded stream also records the delivered row count, so a statement
  whose engine never reported a total still ends with a known row count.
  """

  def __init__(
    self, results: ResultCache, scope: str, statement_id: str, page_size: int
  ):
    self.results = results
    self.scope = scope
    self.statement_id = statement_id
    self.page_size = page_size
    self.next_page = 0
    self.rows_written = 0
    self._pending: List[List[Any]] = []

  async def on_chunk(
    self,
    chunk_index: int,
    rows: List[List[Any]],
    total_rows: Optional[int],
    state: Optional[str],
  ) -> None:
    if total_rows is not None or state is not None:
      await self.results.put_meta(
        self.scope,
        self.statement_id,
        page_size=self.page_size,
        row_count=total_rows,
        state=state,
      )

    if chunk_index < 0 or not rows:
      return

    self._pending.extend(rows)
    while len(self._pending) >= self.page_size:
      page = self._pending[: self.page_size]
      del self._pending[: self.page_size]
      await self._write_page(page, chunk_index)

  async def on_stream_end(self, state: Optional[str]) -> None:
    if self._pending:
      page, self._pending = self._pending, []
      await self._write_page(page, None)
    if StatementState.parse(state) == StatementState.SUCCEEDED:
      await self.results.put_meta(
        self.scope, self.statement_id, row_count=self.rows_written, state=state
      )
    logger.debug(
      f"Statement {self.statement_id} paged into {self.next_page} page(s), state={state}"
    )

  async def _write_page(self, page: List[List[Any]], chunk_index: Optional[int]) -> None:
    index = self.next_page
    await self.results.put_chunk(self.scope, self.statement_id, index, page)
    self.next_page += 1
    self.rows_written += len(page)
    if index % 20 == 0:
      logger.debug(
        f"Stored base page {index} rows={len(page)} statement={self.statement_id} "
        f"(upstream chunk {chunk_index})"
      )


def _slice(buffer: List[List[Any]], offset: int, count: int) -> List[List[Any]]:
  if offset < 0 or offset >= len(buffer):
    return []
  return buffer[offset : offset + count]


class ReportService:
  """Submits report statements and answers row-range queries from the cache."""

  def __init__(
    self,
    client: StatementClient,
    results: ResultCache,
    views: ViewCache,
    page_size: Optional[int] = None,
    first_chunk_max_wait_ms: Optional[int] = None,
    first_chunk_poll_ms: Optional[int] = None,
    view_max_scan_pages: Optional[int] = None,
    view_build_log_every: Optional[int] = None,
    default_scope: Optional[str] = None,
  ):
    self.client = client
    self.results = results
    self.views = views

    self.page_size = page_size or env.CACHE_PAGE_SIZE
    wait_ms = (
      env.CACHE_FIRST_CHUNK_MAX_WAIT_MS
      if first_chunk_max_wait_ms is None
      else first_chunk_max_wait_ms
    )
    poll_ms = env.CACHE_FIRST_CHUNK_POLL_MS if first_chunk_poll_ms is None else first_chunk_poll_ms
    self.first_chunk_max_wait = max(0, wait_ms) / 1000.0
    self.first_chunk_poll = max(1, poll_ms) / 1000.0
    self.view_max_scan_pages = (
      env.VIEW_MAX_SCAN_PAGES if view_max_scan_pages is None else view_max_scan_pages
    )
    self.view_build_log_every = (
      env.VIEW_BUILD_LOG_EVERY if view_build_log_every is None else view_build_log_every
    )
    self.default_scope = default_scope or env.DEFAULT_SCOPE

  def _scope(self, scope: Optional[str]) -> str:
    return scope or self.default_scope

  # ---------------------------------------------------------------------------
  # Submission and meta
  # ---------------------------------------------------------------------------

  async def submit(self, sql: str, scope: Optional[str] = None) -> StatementSubmitted:
    """
    Submit a statement and start streaming its results into the cache.

    Returns as soon as the statement id and initial schema are known.

    Raises:
        StatementSubmissionError: If the engine returns no statement id
        StatementAPIError: If the engine rejects the submission
        CacheWriteError: If the initial meta cannot be stored
    """
    scope = self._scope(scope)
    statement_id = await self.client.submit(sql)
    schema = await self.client.get_schema(statement_id)

    await self.results.put_meta(
      scope,
      statement_id,
      page_size=self.page_size,
      columns=schema.column_names,
      schema=schema.column_meta,
      state=StatementState.PENDING.value,
    )

    pager = StatementPager(self.results, scope, statement_id, self.page_size)
    self.client.stream_chunks(statement_id, self.page_size, pager)

    logger.info(
      f"Submitted statement {statement_id} in scope {scope} "
      f"({len(schema.column_names)} columns, page size {self.page_size})"
    )
    return StatementSubmitted(statement_id=statement_id, page_size=self.page_size)

  async def get_statement_meta(
    self, statement_id: str, scope: Optional[str] = None
  ) -> Dict[str, Any]:
    meta = await self.results.get_meta(self._scope(scope), statement_id)
    if meta is None:
      return {"statementId": statement_id, "state": StatementState.PENDING.value}
    return {**meta.to_dict(), "statementId": statement_id}

  # ---------------------------------------------------------------------------
  # Row ranges
  # ---------------------------------------------------------------------------

  async def get_rows(
    self,
    statement_id: str,
    start_row: int,
    end_row: int,
    sort_json: Optional[str] = None,
    filter_json: Optional[str] = None,
    scope: Optional[str] = None,
  ) -> RowsPage:
    """
    Rows ``[start_row, end_row)`` of a statement, optionally sorted/filtered.

    Args:
        statement_id: Upstream statement id
        start_row: First row, inclusive
        end_row: Last row, exclusive
        sort_json: Grid sort payload; malformed payloads are ignored
        filter_json: Grid filter payload; malformed payloads are ignored
        scope: Cache namespace (defaults to the configured scope)

    Returns:
        RowsPage with the rows and the total row count when known

    Raises:
        InvalidRowRangeError: If start_row is negative
    """
    if start_row < 0:
      raise InvalidRowRangeError(start_row, end_row)

    scope = self._scope(scope)
    if sort_json is None and filter_json is None:
      return await self._get_base_rows(scope, statement_id, start_row, end_row)

    parsed = parse_models(sort_json, filter_json)
    if parsed.is_empty:
      return await self._get_base_rows(scope, statement_id, start_row, end_row)

    base_meta = await self.results.get_meta(scope, statement_id)
    if base_meta is None:
      return RowsPage()

    # Only columns the statement actually has take part in the view
    parsed = parse_models(sort_json, filter_json, allowed_column_ids=base_meta.columns)
    if parsed.is_empty:
      return await self._get_base_rows(scope, statement_id, start_row, end_row)

    signature = compute_signature(
      statement_id, parsed.canonical_sort_json, parsed.canonical_filter_json
    )

    view_meta = await self.views.get_meta(scope, statement_id, signature)
    if view_meta is None:
      view_meta = await self._build_view(scope, statement_id, signature, base_meta, parsed)
      if view_meta is None:
        return await self._get_base_rows(scope, statement_id, start_row, end_row)

    return await self._slice_view(scope, statement_id, view_meta, start_row, end_row)

  async def _get_base_rows(
    self, scope: str, statement_id: str, start_row: int, end_row: int
  ) -> RowsPage:
    meta = await self.results.get_meta(scope, statement_id)
    if meta is None:
      return RowsPage()

    page_size = meta.page_size or self.page_size
    if end_row <= start_row:
      return RowsPage(last_row=meta.row_count)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + self.first_chunk_max_wait

    async def read(index: int) -> Optional[List[List[Any]]]:
      chunk = await self.results.get_chunk(scope, statement_id, index)
      if chunk:
        return chunk
      # Pages past a known row count will never arrive
      if meta.row_count is not None and index * page_size >= meta.row_count:
        return None
      return await self._wait_for_chunk(scope, statement_id, index, deadline)

    rows = await self._collect(read, start_row, end_row, page_size)
    return RowsPage(rows=rows, last_row=meta.row_count)

  async def _wait_for_chunk(
    self, scope: str, statement_id: str, index: int, deadline: float
  ) -> Optional[List[List[Any]]]:
    loop = asyncio.get_running_loop()
    while loop.time() < deadline:
      await asyncio.sleep(min(self.first_chunk_poll, max(0.0, deadline - loop.time())))
      chunk = await self.results.get_chunk(scope, statement_id, index)
      if chunk:
        return chunk
    logger.debug(f"Timed out waiting for page {index} of statement {statement_id}")
    return None

  @staticmethod
  async def _collect(
    read: ChunkReader, start_row: int, end_row: int, page_size: int
  ) -> List[List[Any]]:
    """Read the pages covering the range in order, stopping at the first miss."""
    first_page = start_row // page_size
    last_page = max(first_page, (end_row - 1) // page_size)

    buffer: List[List[Any]] = []
    for index in range(first_page, last_page + 1):
      chunk = await read(index)
      if not chunk:
        break
      buffer.extend(chunk)

    return _slice(buffer, start_row - first_page * page_size, end_row - start_row)

  # ---------------------------------------------------------------------------
  # Views
  # ---------------------------------------------------------------------------

  async def _build_view(
    self,
    scope: str,
    statement_id: str,
    signature: str,
    base_meta: StatementMeta,
    parsed: ParsedModels,
  ) -> Optional[ViewMeta]:
    """
    Materialize a sorted/filtered view from the cached base pages.

    Only a complete base result is materialized: the row count must be known
    and every page it accounts for must be cached. Returns None otherwise,
    and the caller serves base rows instead, so a statement that is still
    streaming never leaves a partial view behind.
    """
    started = time.monotonic()
    page_size = base_meta.page_size or self.page_size
    row_count = base_meta.row_count
    column_index = index_columns(base_meta.columns or [])

    if row_count is not None:
      max_pages = math.ceil(row_count / page_size)
    else:
      max_pages = self.view_max_scan_pages

    matched: List[List[Any]] = []
    pages_read = 0
    for page_index in range(max_pages):
      chunk = await self.results.get_chunk(scope, statement_id, page_index)
      if not chunk:
        break
      pages_read += 1
      matched.extend(
        row for row in chunk if matches(row, parsed.filter_model, column_index)
      )
      if self.view_build_log_every > 0 and page_index % self.view_build_log_every == 0:
        logger.debug(
          f"View build scanning base page {page_index} (sig={signature}, statement={statement_id})"
        )

    if row_count is None:
      if pages_read >= self.view_max_scan_pages:
        logger.warning(
          f"View build hit scan cap ({self.view_max_scan_pages} pages) for statement "
          f"{statement_id}, sig={signature}. Falling back to base rows."
        )
      else:
        logger.debug(
          f"Row count of statement {statement_id} not known yet, "
          f"serving base rows for sig={signature}"
        )
      return None

    if pages_read < max_pages:
      logger.debug(
        f"Statement {statement_id} has {pages_read} of {max_pages} base page(s) cached, "
        f"serving base rows for sig={signature}"
      )
      return None

    sort_rows(matched, parsed.sort_model, column_index)

    total = len(matched)
    chunk_count = math.ceil(total / page_size)
    for index in range(chunk_count):
      page = matched[index * page_size : (index + 1) * page_size]
      await self.views.put_chunk(scope, statement_id, signature, index, page)

    # Meta last: a view with meta is always complete
    view_meta = await self.views.put_meta(
      scope,
      statement_id,
      signature,
      page_size=page_size,
      row_count=total,
      chunk_count=chunk_count,
    )

    elapsed_ms = (time.monotonic() - started) * 1000
    logger.info(
      f"View built for statement {statement_id} sig={signature}: "
      f"{total} rows in {chunk_count} page(s) from {pages_read} base page(s)"
    )
    log_performance_metric(
      logger,
      "view_build_ms",
      round(elapsed_ms, 2),
      unit="ms",
      component="reports",
      metadata={"statement_id": statement_id, "rows": total, "pages_scanned": pages_read},
    )
    return view_meta

  async def _slice_view(
    self,
    scope: str,
    statement_id: str,
    view_meta: ViewMeta,
    start_row: int,
    end_row: int,
  ) -> RowsPage:
    if end_row <= start_row:
      return RowsPage(last_row=view_meta.row_count)

    page_size = view_meta.page_size or self.page_size
    signature = view_meta.signature

    async def read(index: int) -> Optional[List[List[Any]]]:
      return await self.views.get_chunk(scope, statement_id, signature, index)

    rows = await self._collect(read, start_row, end_row, page_size)
    return RowsPage(rows=rows, last_row=view_meta.row_count)

  # ---------------------------------------------------------------------------
  # Eviction
  # ---------------------------------------------------------------------------

  async def evict(self, statement_id: str, scope: Optional[str] = None) -> int:
    """
    Remove a statement's base meta and pages.

    Views of the statement are left to expire with their TTL. They are no
    longer reachable in the meantime: a view is located through the base
    meta's columns, so sorted/filtered reads after eviction return an empty
    page like any unknown statement.

    Returns:
        Number of cache keys deleted
    """
    return await self.results.evict(self._scope(scope), statement_id)
