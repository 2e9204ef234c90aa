"""
Asynchronous Statement Client.

Submits SQL statements to the upstream engine, reads their schema and
streams result chunks to a listener from a supervised background task.
"""

import asyncio
import gzip
import json
import zlib
from typing import Any, Dict, List, Optional

import httpx

from ..config.constants import (
  GZIP_MAGIC,
  RESULT_DISPOSITION,
  RESULT_FORMAT,
  STATEMENTS_PATH,
)
from ..exceptions import StatementSubmissionError
from ..logger import log_error, upstream_logger as logger
from .base import BaseStatementClient
from .config import StatementClientConfig
from .exceptions import (
  StatementAPIError,
  StatementTimeoutError,
  StatementTransientError,
)
from .models import (
  META_ONLY_CHUNK,
  ChunkListener,
  SchemaInfo,
  StatementProgress,
  StatementState,
  is_terminal_state,
)


def _as_int(value: Any) -> Optional[int]:
  if isinstance(value, bool):
    return None
  if isinstance(value, (int, float)):
    return int(value)
  if isinstance(value, str):
    try:
      return int(value.strip())
    except ValueError:
      return None
  return None


def _as_dict(value: Any) -> Optional[Dict[str, Any]]:
  return value if isinstance(value, dict) else None


def extract_state(status: Optional[Dict[str, Any]]) -> Optional[str]:
  """Read the lifecycle state from ``status.state`` or a top-level ``state``."""
  if not status:
    return None
  nested = _as_dict(status.get("status"))
  if nested and isinstance(nested.get("state"), str):
    return nested["state"]
  state = status.get("state")
  return state if isinstance(state, str) else None


def extract_progress(status: Optional[Dict[str, Any]]) -> StatementProgress:
  manifest = _as_dict((status or {}).get("manifest")) or {}
  return StatementProgress(
    state=extract_state(status),
    total_rows=_as_int(manifest.get("total_row_count")),
    total_chunks=_as_int(manifest.get("total_chunk_count")),
  )


def extract_external_links(result: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
  """
  External link descriptors from a result block, ordered by chunk index.

  Descriptors without a chunk index take their list position.
  """
  if not result or not isinstance(result.get("external_links"), list):
    return []
  links = []
  for position, entry in enumerate(result["external_links"]):
    if not isinstance(entry, dict):
      continue
    url = entry.get("external_link")
    if not isinstance(url, str) or not url.strip():
      continue
    chunk_index = _as_int(entry.get("chunk_index"))
    links.append(
      {
        "chunk_index": chunk_index if chunk_index is not None else position,
        "external_link": url,
      }
    )
  return sorted(links, key=lambda link: link["chunk_index"])


def coerce_rows(payload: Any) -> List[List[Any]]:
  """
  Normalize a decoded row payload to a list of row arrays.

  Object rows are converted to arrays using the union of their keys in
  first-seen order; missing keys become null.
  """
  if not isinstance(payload, list) or not payload:
    return []

  keys: List[str] = []
  seen = set()
  for item in payload:
    if isinstance(item, dict):
      for key in item:
        if key not in seen:
          seen.add(key)
          keys.append(key)

  rows: List[List[Any]] = []
  for item in payload:
    if isinstance(item, list):
      rows.append(item)
    elif isinstance(item, dict):
      rows.append([item.get(key) for key in keys])
  return rows


class StatementClient(BaseStatementClient):
  """Asynchronous client for the upstream SQL statement engine."""

  def __init__(
    self,
    config: Optional[StatementClientConfig] = None,
    **kwargs,
  ):
    """
    Initialize the statement client.

    Args:
        config: Client configuration
        **kwargs: Additional config overrides
    """
    super().__init__(config, **kwargs)

    limits = httpx.Limits(
      max_connections=self.config.max_connections,
      max_keepalive_connections=self.config.max_keepalive_connections,
      keepalive_expiry=self.config.keepalive_expiry,
    )
    timeout = httpx.Timeout(
      self.config.read_timeout, connect=self.config.connect_timeout
    )

    self.client = httpx.AsyncClient(
      base_url=self.config.base_url,
      timeout=timeout,
      limits=limits,
      headers=self.config.headers,
      verify=self.config.verify_ssl,
    )

    # External links are pre-signed URLs; engine credentials are never sent there
    self.download_client = httpx.AsyncClient(
      timeout=timeout,
      limits=limits,
      verify=self.config.verify_ssl,
      follow_redirects=True,
    )

    self._tasks: Dict[str, asyncio.Task] = {}

  async def __aenter__(self):
    """Async context manager entry."""
    return self

  async def __aexit__(self, exc_type, exc_val, exc_tb):
    """Async context manager exit."""
    await self.close()

  async def close(self):
    """Stop any streams still running and close the HTTP clients."""
    tasks = list(self._tasks.values())
    for task in tasks:
      task.cancel()
    if tasks:
      await asyncio.gather(*tasks, return_exceptions=True)
    await self.client.aclose()
    await self.download_client.aclose()

  @property
  def active_streams(self) -> List[str]:
    return list(self._tasks)

  async def _execute_with_retry(self, func, *args, **kwargs):
    """
    Execute an async function with retry logic.

    Raises:
        StatementAPIError: If all retries fail
    """
    last_error = None

    for attempt in range(self.config.max_retries + 1):
      try:
        self._check_circuit_breaker()
        result = await func(*args, **kwargs)
        self._record_success()
        return result

      except (StatementAPIError, httpx.HTTPError) as e:
        last_error = e

        if isinstance(e, httpx.TimeoutException):
          last_error = StatementTimeoutError(f"Request timeout: {e}")
        elif isinstance(e, httpx.ConnectError):
          last_error = StatementTransientError(f"Connection error: {e}")
        elif isinstance(e, httpx.RequestError):
          last_error = StatementTransientError(f"Request error: {e}")

        if not self._should_retry(last_error, attempt):
          self._record_failure()
          raise last_error

        if attempt < self.config.max_retries:
          delay = self._calculate_retry_delay(attempt)
          logger.warning(
            f"Statement request failed (attempt {attempt + 1}/{self.config.max_retries + 1}), "
            f"retrying in {delay:.2f}s: {last_error}"
          )
          await asyncio.sleep(delay)

    self._record_failure()
    if last_error is None:
      raise RuntimeError("Retry logic failed without capturing an exception")
    raise last_error

  async def _request(
    self,
    method: str,
    path: str,
    json_data: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
  ) -> httpx.Response:
    """
    Make HTTP request with retry logic.

    Args:
        method: HTTP method
        path: API path relative to the engine host
        json_data: JSON body
        params: Query parameters

    Returns:
        Response object
    """
    request_kwargs: Dict[str, Any] = {
      "method": method,
      "url": path,
    }
    if json_data is not None:
      request_kwargs["json"] = json_data
    if params is not None:
      request_kwargs["params"] = params

    async def make_request():
      logger.debug(f"Making request: {method} {path}")
      response = await self.client.request(**request_kwargs)

      if response.status_code >= 400:
        try:
          error_data = response.json()
        except ValueError:
          error_data = {"detail": response.text}

        error = self._handle_response_error(response.status_code, error_data)
        logger.error(
          f"Statement engine returned {response.status_code} for {method} {path}: {error}"
        )
        raise error

      return response

    return await self._execute_with_retry(make_request)

  async def _request_json(
    self,
    method: str,
    path: str,
    json_data: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
  ) -> Dict[str, Any]:
    response = await self._request(method, path, json_data=json_data, params=params)
    if not response.content:
      return {}
    try:
      data = response.json()
    except ValueError:
      logger.warning(f"Non-JSON response body from {method} {path}")
      return {}
    return data if isinstance(data, dict) else {}

  # ---------------------------------------------------------------------------
  # Statement operations
  # ---------------------------------------------------------------------------

  async def submit(self, sql: str) -> str:
    """
    Submit a statement for asynchronous execution.

    Args:
        sql: Statement text

    Returns:
        The engine's statement id

    Raises:
        StatementSubmissionError: If the engine returns no statement id
        StatementAPIError: If the submission request fails
    """
    body = {
      "statement": sql,
      "warehouse_id": self.config.warehouse_id,
      "disposition": RESULT_DISPOSITION,
      "format": RESULT_FORMAT,
    }
    data = await self._request_json("POST", STATEMENTS_PATH, json_data=body)

    statement_id = data.get("statement_id")
    if not isinstance(statement_id, str) or not statement_id:
      raise StatementSubmissionError("engine did not return statement_id", sql=sql)

    logger.debug(
      f"Submitted statement id={statement_id} disposition={RESULT_DISPOSITION} format={RESULT_FORMAT}"
    )
    return statement_id

  async def fetch_status(self, statement_id: str) -> Dict[str, Any]:
    return await self._request_json("GET", f"{STATEMENTS_PATH}{statement_id}")

  async def get_schema(self, statement_id: str) -> SchemaInfo:
    """
    Column names and descriptors ordered by declared position.

    Reads the manifest schema, falling back to the result schema. Returns an
    empty SchemaInfo when neither is present.
    """
    status = await self.fetch_status(statement_id)
    manifest = _as_dict(status.get("manifest"))
    result = _as_dict(status.get("result"))

    schema = _as_dict(manifest.get("schema")) if manifest else None
    if schema is None and result:
      schema = _as_dict(result.get("schema"))
    if schema is None or not isinstance(schema.get("columns"), list):
      return SchemaInfo()

    columns = [c for c in schema["columns"] if isinstance(c, dict)]
    columns.sort(key=lambda c: _as_int(c.get("position")) or 0)
    names = [c["name"] for c in columns if isinstance(c.get("name"), str)]
    return SchemaInfo(column_names=names, column_meta=columns)

  async def fetch_chunk(
    self, statement_id: str, chunk_index: int, page_size: int
  ) -> List[List[Any]]:
    """
    Fetch one result chunk by index.

    The engine answers in several shapes; the first non-empty of
    ``chunk.rows``, ``chunk.data_array``, ``chunk.external_link``,
    ``data_array``, ``rows``, ``external_link`` and ``external_links`` wins.
    """
    data = await self._request_json(
      "GET",
      f"{STATEMENTS_PATH}{statement_id}/result/chunks/{chunk_index}",
      params={"row_limit": page_size, "format": RESULT_FORMAT},
    )

    rows: List[List[Any]] = []
    chunk = _as_dict(data.get("chunk"))
    if chunk:
      rows = coerce_rows(chunk.get("rows"))
      if not rows:
        rows = coerce_rows(chunk.get("data_array"))
      if not rows and isinstance(chunk.get("external_link"), str):
        rows = await self.download_external_link(chunk["external_link"], chunk_index)

    if not rows:
      rows = coerce_rows(data.get("data_array"))
    if not rows:
      rows = coerce_rows(data.get("rows"))
    if not rows and isinstance(data.get("external_link"), str):
      rows = await self.download_external_link(data["external_link"], chunk_index)
    if not rows:
      for link in extract_external_links(data):
        rows = await self.download_external_link(link["external_link"], chunk_index)
        if rows:
          break

    logger.debug(f"Fetched chunk endpoint chunk_index={chunk_index} rows={len(rows)}")
    return rows

  async def download_external_link(self, url: str, chunk_index: int) -> List[List[Any]]:
    """
    Download and decode an external link payload.

    Gzip payloads are detected by their magic bytes. Failures are logged and
    yield no rows.
    """
    try:
      response = await self.download_client.get(
        url, headers={"Accept": "application/json, text/plain"}
      )
      if response.status_code >= 400:
        logger.warning(
          f"External link returned {response.status_code} for chunk {chunk_index}"
        )
        return []

      payload = response.content
      if payload[:2] == GZIP_MAGIC:
        payload = gzip.decompress(payload)

      body = payload.decode("utf-8").strip()
      if not body.startswith("["):
        logger.warning(
          f"External link unexpected content for chunk {chunk_index}: {body[:40]!r}"
        )
        return []

      rows = coerce_rows(json.loads(body))
      logger.debug(f"Downloaded external link chunk={chunk_index} rows={len(rows)}")
      return rows

    except (httpx.HTTPError, OSError, EOFError, zlib.error, ValueError) as e:
      logger.error(f"Error downloading external link for chunk {chunk_index}: {e}")
      return []

  # ---------------------------------------------------------------------------
  # Streaming
  # ---------------------------------------------------------------------------

  def stream_chunks(
    self, statement_id: str, page_size: int, listener: ChunkListener
  ) -> asyncio.Task:
    """
    Start streaming a statement's results to ``listener`` in the background.

    Polls status until a terminal state, reporting every change in totals or
    state as a ``META_ONLY_CHUNK`` notification, then delivers the row data
    once. The task is tracked by statement id until it finishes; a second
    call while a stream is running returns the running task.

    Returns:
        The streaming task
    """
    existing = self._tasks.get(statement_id)
    if existing is not None and not existing.done():
      return existing

    task = asyncio.create_task(
      self._run_stream(statement_id, page_size, listener),
      name=f"statement-stream-{statement_id}",
    )
    self._tasks[statement_id] = task
    task.add_done_callback(lambda _: self._tasks.pop(statement_id, None))
    return task

  async def _run_stream(
    self, statement_id: str, page_size: int, listener: ChunkListener
  ) -> None:
    try:
      last_seen: Optional[StatementProgress] = None
      while True:
        status = await self.fetch_status(statement_id)
        if not status:
          logger.warning(f"Empty status for statement {statement_id}")
          await asyncio.sleep(self.config.poll_interval)
          continue

        progress = extract_progress(status)
        if last_seen is None or (progress.state, progress.total_rows) != (
          last_seen.state,
          last_seen.total_rows,
        ):
          await listener.on_chunk(
            META_ONLY_CHUNK, [], progress.total_rows, progress.state
          )
        last_seen = progress

        if is_terminal_state(progress.state):
          await self._deliver_results(statement_id, page_size, listener, status, progress)
          await listener.on_stream_end(progress.state)
          logger.info(f"Statement {statement_id} finished streaming: {progress.state}")
          return

        await asyncio.sleep(self.config.poll_interval)

    except asyncio.CancelledError:
      logger.warning(f"Streaming cancelled for statement {statement_id}")
      raise
    except Exception as e:
      log_error(
        logger,
        e,
        component="upstream",
        action="stream_chunks",
        error_category="upstream",
        statement_id=statement_id,
      )

  async def _deliver_results(
    self,
    statement_id: str,
    page_size: int,
    listener: ChunkListener,
    status: Dict[str, Any],
    progress: StatementProgress,
  ) -> None:
    if StatementState.parse(progress.state) != StatementState.SUCCEEDED:
      return

    links = extract_external_links(_as_dict(status.get("result")))
    if links:
      for link in links:
        chunk_index = link["chunk_index"]
        rows = await self.download_external_link(link["external_link"], chunk_index)
        if rows:
          await listener.on_chunk(chunk_index, rows, progress.total_rows, progress.state)
      return

    count = progress.total_chunks if progress.total_chunks and progress.total_chunks > 0 else 1
    for chunk_index in range(count):
      try:
        rows = await self.fetch_chunk(statement_id, chunk_index, page_size)
      except StatementAPIError as e:
        logger.error(
          f"Skipping chunk {chunk_index} of statement {statement_id}: {e}"
        )
        continue
      if rows:
        await listener.on_chunk(chunk_index, rows, progress.total_rows, progress.state)
