"""
Row chunk serialization.

Chunks are stored as gzip-compressed JSON arrays of row arrays. Decoding
raises ``CorruptChunkError`` for anything that does not round-trip to a list
of lists so callers can treat the entry as absent.
"""

import gzip
import json
import zlib
from typing import Any


class CorruptChunkError(ValueError):
  """Raised when a stored chunk cannot be decoded."""

  pass


def encode_rows(rows: list[list[Any]]) -> bytes:
  """
  Serialize rows to compressed bytes.

  Raises:
      TypeError: If a cell is not JSON-serializable
  """
  payload = json.dumps(rows, separators=(",", ":"), ensure_ascii=False)
  return gzip.compress(payload.encode("utf-8"))


def decode_rows(data: bytes) -> list[list[Any]]:
  """Inverse of ``encode_rows``."""
  try:
    rows = json.loads(gzip.decompress(data).decode("utf-8"))
  except (OSError, EOFError, zlib.error, ValueError) as e:
    raise CorruptChunkError(str(e)) from e

  if not isinstance(rows, list) or not all(isinstance(r, list) for r in rows):
    raise CorruptChunkError("chunk payload is not a list of rows")
  return rows
