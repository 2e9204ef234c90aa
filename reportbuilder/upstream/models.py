"""
Statement engine data models.

Lifecycle states, schema information and the listener interface through
which a streaming statement reports progress and delivers row chunks.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

# Chunk index passed to listeners for progress notifications that carry no rows
META_ONLY_CHUNK = -1


class StatementState(str, Enum):
  """Statement lifecycle states reported by the engine."""

  PENDING = "PENDING"
  RUNNING = "RUNNING"
  SUCCEEDED = "SUCCEEDED"
  FAILED = "FAILED"
  CANCELED = "CANCELED"
  CLOSED = "CLOSED"

  @property
  def is_terminal(self) -> bool:
    return self in TERMINAL_STATES

  @classmethod
  def parse(cls, raw: Any) -> Optional["StatementState"]:
    if not isinstance(raw, str):
      return None
    try:
      return cls(raw.upper())
    except ValueError:
      return None


TERMINAL_STATES = frozenset(
  {
    StatementState.SUCCEEDED,
    StatementState.FAILED,
    StatementState.CANCELED,
    StatementState.CLOSED,
  }
)


def is_terminal_state(state: Optional[str]) -> bool:
  parsed = StatementState.parse(state)
  return parsed is not None and parsed.is_terminal


@dataclass
class SchemaInfo:
  """Ordered column names plus the raw column descriptors."""

  column_names: list[str] = field(default_factory=list)
  column_meta: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class StatementProgress:
  """Totals and state observed on one status poll."""

  state: Optional[str] = None
  total_rows: Optional[int] = None
  total_chunks: Optional[int] = None


class ChunkListener:
  """
  Receives progress and row data for one streaming statement.

  ``on_chunk`` is called with ``META_ONLY_CHUNK`` and no rows whenever the
  reported totals or state change, then once per non-empty upstream chunk
  with its index. ``on_stream_end`` is called once after the data phase.
  """

  async def on_chunk(
    self,
    chunk_index: int,
    rows: list[list[Any]],
    total_rows: Optional[int],
    state: Optional[str],
  ) -> None:
    raise NotImplementedError

  async def on_stream_end(self, state: Optional[str]) -> None:
    return None
