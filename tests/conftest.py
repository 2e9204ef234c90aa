import os

os.environ.setdefault("ENVIRONMENT", "test")

from typing import Any, Optional  # noqa: E402

import pytest  # noqa: E402

from reportbuilder.cache import ResultCache, ViewCache  # noqa: E402
from reportbuilder.reports import ReportService  # noqa: E402
from reportbuilder.upstream import ChunkListener, SchemaInfo  # noqa: E402


class InMemoryRedis:
  """Async stand-in for the parts of ``redis.asyncio.Redis`` the caches use."""

  def __init__(self):
    self.store: dict[str, bytes] = {}
    self.ttls: dict[str, Optional[int]] = {}
    self.fail_writes = False

  async def get(self, key: str) -> Optional[bytes]:
    return self.store.get(key)

  async def set(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
    if self.fail_writes:
      from redis.exceptions import ConnectionError

      raise ConnectionError("write refused")
    if isinstance(value, str):
      value = value.encode("utf-8")
    self.store[key] = value
    self.ttls[key] = ex
    return True

  async def delete(self, *keys: str) -> int:
    deleted = 0
    for key in keys:
      if key in self.store:
        del self.store[key]
        self.ttls.pop(key, None)
        deleted += 1
    return deleted

  async def aclose(self) -> None:
    return None


class ScriptedStatementClient:
  """
  Statement client double.

  ``submit`` hands out the configured statement id and ``stream_chunks``
  records the listener so a test can push progress and rows through it.
  """

  def __init__(self, statement_id: str = "stmt-1", columns: Optional[list[str]] = None):
    self.statement_id = statement_id
    self.columns = columns if columns is not None else ["id", "name", "amount"]
    self.submitted: list[str] = []
    self.listeners: dict[str, ChunkListener] = {}
    self.page_sizes: dict[str, int] = {}
    self.active_streams: list[str] = []
    self.closed = False

  async def submit(self, sql: str) -> str:
    self.submitted.append(sql)
    return self.statement_id

  async def get_schema(self, statement_id: str) -> SchemaInfo:
    return SchemaInfo(
      column_names=list(self.columns),
      column_meta=[
        {"name": name, "position": i, "type_name": "STRING"}
        for i, name in enumerate(self.columns)
      ],
    )

  def stream_chunks(self, statement_id: str, page_size: int, listener: ChunkListener):
    self.listeners[statement_id] = listener
    self.page_sizes[statement_id] = page_size
    return None

  async def close(self) -> None:
    self.closed = True


@pytest.fixture
def fake_redis():
  return InMemoryRedis()


@pytest.fixture
def result_cache(fake_redis):
  return ResultCache(redis_client=fake_redis, ttl=600, key_prefix="report")


@pytest.fixture
def view_cache(fake_redis):
  return ViewCache(redis_client=fake_redis, ttl=300, key_prefix="report")


@pytest.fixture
def statement_client():
  return ScriptedStatementClient()


@pytest.fixture
def report_service(statement_client, result_cache, view_cache):
  return make_service(result_cache, view_cache, client=statement_client)


def make_rows(count: int) -> list[list[Any]]:
  return [[i, f"name-{i}", i * 10] for i in range(count)]


def make_service(
  results: ResultCache,
  views: ViewCache,
  client: Optional[ScriptedStatementClient] = None,
  **overrides,
) -> ReportService:
  options = {
    "page_size": 500,
    "first_chunk_max_wait_ms": 200,
    "first_chunk_poll_ms": 10,
    "view_max_scan_pages": 50,
    "view_build_log_every": 10,
    "default_scope": "local",
  }
  options.update(overrides)
  return ReportService(
    client=client or ScriptedStatementClient(), results=results, views=views, **options
  )


async def load_statement(
  service: ReportService,
  rows: list[list[Any]],
  columns: Optional[list[str]] = None,
  total_rows: Optional[int] = -1,
  state: str = "SUCCEEDED",
  scope: Optional[str] = None,
  upstream_chunk_size: Optional[int] = None,
) -> str:
  """
  Submit a statement through ``service`` and stream ``rows`` into the cache.

  ``total_rows`` defaults to ``len(rows)``; pass None to leave the row count
  unknown.
  """
  client = service.client
  if columns is not None:
    client.columns = columns
  submitted = await service.submit("SELECT * FROM facts", scope=scope)
  listener = client.listeners[submitted.statement_id]

  count = len(rows) if total_rows == -1 else total_rows
  await listener.on_chunk(-1, [], None, "RUNNING")
  await listener.on_chunk(-1, [], count, state)

  size = upstream_chunk_size or max(len(rows), 1)
  for index, offset in enumerate(range(0, len(rows), size)):
    await listener.on_chunk(index, rows[offset : offset + size], count, state)
  await listener.on_stream_end(state)
  return submitted.statement_id
