import json
from unittest.mock import AsyncMock, Mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from reportbuilder.cache import ResultCache, StatementMeta, merge_statement_meta
from reportbuilder.exceptions import CacheWriteError


class TestMergeStatementMeta:
  def test_first_write_is_taken_as_is(self):
    update = StatementMeta(page_size=500, state="PENDING")

    assert merge_statement_meta(None, update) is update

  def test_absent_fields_keep_stored_values(self):
    existing = StatementMeta(
      page_size=500, row_count=10, columns=["a"], schema=[{"name": "a"}], state="RUNNING"
    )

    merged = merge_statement_meta(existing, StatementMeta(state="SUCCEEDED"))

    assert merged == StatementMeta(
      page_size=500,
      row_count=10,
      columns=["a"],
      schema=[{"name": "a"}],
      state="SUCCEEDED",
    )

  def test_row_count_never_decreases(self):
    existing = StatementMeta(row_count=1200)

    assert merge_statement_meta(existing, StatementMeta(row_count=800)).row_count == 1200
    assert merge_statement_meta(existing, StatementMeta(row_count=1500)).row_count == 1500

  @pytest.mark.parametrize("terminal", ["SUCCEEDED", "FAILED", "CANCELED", "CLOSED"])
  def test_terminal_state_is_sticky(self, terminal):
    existing = StatementMeta(state=terminal)

    assert merge_statement_meta(existing, StatementMeta(state="RUNNING")).state == terminal

  def test_terminal_state_may_replace_terminal_state(self):
    existing = StatementMeta(state="SUCCEEDED")

    assert merge_statement_meta(existing, StatementMeta(state="CLOSED")).state == "CLOSED"


class TestStatementMetaSerialization:
  def test_to_dict_uses_camel_case_and_omits_unknowns(self):
    meta = StatementMeta(page_size=500, columns=["id"], state="PENDING")

    assert meta.to_dict() == {"pageSize": 500, "columns": ["id"], "state": "PENDING"}

  def test_from_dict_tolerates_bad_types(self):
    meta = StatementMeta.from_dict(
      {"pageSize": "500", "rowCount": True, "columns": "id", "state": 3}
    )

    assert meta == StatementMeta(page_size=500)


@pytest.mark.unit
class TestResultCache:
  @pytest.mark.asyncio
  async def test_key_layout(self, result_cache):
    assert result_cache.meta_key("local", "s1") == "report:local:s1:meta"
    assert result_cache.chunk_key("local", "s1", 3) == "report:local:s1:chunk:3"

  @pytest.mark.asyncio
  async def test_empty_prefix_uses_bare_layout(self, fake_redis):
    cache = ResultCache(redis_client=fake_redis, ttl=60, key_prefix="")

    assert cache.meta_key("local", "s1") == "local:s1:meta"
    assert cache.chunk_key("local", "s1", 0) == "local:s1:chunk:0"

  @pytest.mark.asyncio
  async def test_put_meta_merges_and_applies_ttl(self, result_cache, fake_redis):
    await result_cache.put_meta("local", "s1", page_size=500, columns=["id"], state="PENDING")
    await result_cache.put_meta("local", "s1", row_count=1200, state="RUNNING")
    meta = await result_cache.put_meta("local", "s1", row_count=900, state="SUCCEEDED")

    assert meta == StatementMeta(
      page_size=500, row_count=1200, columns=["id"], state="SUCCEEDED"
    )
    stored = json.loads(fake_redis.store["report:local:s1:meta"])
    assert stored == {
      "pageSize": 500,
      "rowCount": 1200,
      "columns": ["id"],
      "state": "SUCCEEDED",
    }
    assert fake_redis.ttls["report:local:s1:meta"] == 600

  @pytest.mark.asyncio
  async def test_chunks_round_trip_with_ttl(self, result_cache, fake_redis):
    await result_cache.put_chunk("local", "s1", 0, [[1, "a"], [2, "b"]])

    assert await result_cache.get_chunk("local", "s1", 0) == [[1, "a"], [2, "b"]]
    assert await result_cache.get_chunk("local", "s1", 1) is None
    assert fake_redis.ttls["report:local:s1:chunk:0"] == 600

  @pytest.mark.asyncio
  async def test_scopes_are_isolated(self, result_cache):
    await result_cache.put_chunk("tenant-a", "s1", 0, [[1]])

    assert await result_cache.get_chunk("tenant-b", "s1", 0) is None
    assert await result_cache.get_meta("tenant-b", "s1") is None

  @pytest.mark.asyncio
  async def test_corrupt_chunk_is_deleted_and_reported_missing(
    self, result_cache, fake_redis
  ):
    fake_redis.store["report:local:s1:chunk:0"] = b"garbage"

    assert await result_cache.get_chunk("local", "s1", 0) is None
    assert "report:local:s1:chunk:0" not in fake_redis.store

  @pytest.mark.asyncio
  async def test_corrupt_meta_is_deleted_and_reported_missing(
    self, result_cache, fake_redis
  ):
    fake_redis.store["report:local:s1:meta"] = b"{broken"

    assert await result_cache.get_meta("local", "s1") is None
    assert "report:local:s1:meta" not in fake_redis.store

  @pytest.mark.asyncio
  async def test_non_object_meta_is_discarded(self, result_cache, fake_redis):
    fake_redis.store["report:local:s1:meta"] = b"[1,2]"

    assert await result_cache.get_meta("local", "s1") is None
    assert "report:local:s1:meta" not in fake_redis.store

  @pytest.mark.asyncio
  async def test_write_failure_raises_cache_write_error(self, result_cache, fake_redis):
    fake_redis.fail_writes = True

    with pytest.raises(CacheWriteError) as exc_info:
      await result_cache.put_chunk("local", "s1", 0, [[1]])

    assert exc_info.value.error_code == "CACHE_WRITE_FAILED"
    assert exc_info.value.details["key"] == "report:local:s1:chunk:0"

  @pytest.mark.asyncio
  async def test_unserializable_rows_raise_cache_write_error(self, result_cache):
    with pytest.raises(CacheWriteError):
      await result_cache.put_chunk("local", "s1", 0, [[object()]])

  @pytest.mark.asyncio
  async def test_read_errors_propagate(self):
    redis_client = Mock()
    redis_client.get = AsyncMock(side_effect=RedisConnectionError("down"))
    cache = ResultCache(redis_client=redis_client, ttl=60, key_prefix="report")

    with pytest.raises(RedisConnectionError):
      await cache.get_chunk("local", "s1", 0)

  @pytest.mark.asyncio
  async def test_evict_removes_meta_and_every_page(self, result_cache, fake_redis):
    await result_cache.put_meta("local", "s1", page_size=500, row_count=1200)
    for index in range(3):
      await result_cache.put_chunk("local", "s1", index, [[index]])

    deleted = await result_cache.evict("local", "s1")

    assert deleted == 4
    assert fake_redis.store == {}

  @pytest.mark.asyncio
  async def test_evict_with_unknown_row_count_removes_first_page_only(
    self, result_cache, fake_redis
  ):
    await result_cache.put_meta("local", "s1", page_size=500)
    await result_cache.put_chunk("local", "s1", 0, [[0]])
    await result_cache.put_chunk("local", "s1", 1, [[1]])

    deleted = await result_cache.evict("local", "s1")

    assert deleted == 2
    assert list(fake_redis.store) == ["report:local:s1:chunk:1"]

  @pytest.mark.asyncio
  async def test_evict_unknown_statement_is_noop(self, result_cache):
    assert await result_cache.evict("local", "missing") == 0

  @pytest.mark.asyncio
  async def test_close_releases_client(self, fake_redis):
    cache = ResultCache(redis_client=fake_redis, ttl=60)
    fake_redis.aclose = AsyncMock()

    await cache.close()

    fake_redis.aclose.assert_awaited_once()
