"""
Grid sort/filter models and the in-memory evaluation engine used to build
derived views over cached statement results.
"""

from .filters import evaluate, index_columns, matches
from .models import (
  FilterDescriptor,
  FilterKind,
  FilterOperator,
  ParsedModels,
  SortModelEntry,
)
from .parser import parse_filter_model, parse_models, parse_sort_model
from .sorting import build_comparator, compare_cells, sort_rows

__all__ = [
  "FilterDescriptor",
  "FilterKind",
  "FilterOperator",
  "ParsedModels",
  "SortModelEntry",
  "build_comparator",
  "compare_cells",
  "evaluate",
  "index_columns",
  "matches",
  "parse_filter_model",
  "parse_models",
  "parse_sort_model",
  "sort_rows",
]
