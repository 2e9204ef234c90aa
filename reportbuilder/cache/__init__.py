"""Valkey/Redis caches for statement results and derived views."""

from .codec import CorruptChunkError, decode_rows, encode_rows
from .models import StatementMeta, ViewMeta
from .results import ResultCache, merge_statement_meta
from .views import ViewCache, canonicalize_payload, compute_signature

__all__ = [
  "CorruptChunkError",
  "ResultCache",
  "StatementMeta",
  "ViewCache",
  "ViewMeta",
  "canonicalize_payload",
  "compute_signature",
  "decode_rows",
  "encode_rows",
  "merge_statement_meta",
]
