"""Multi-key row ordering for derived views."""

from collections.abc import Callable, Sequence
from functools import cmp_to_key
from typing import Any

from .filters import ColumnIndex, resolve_column
from .models import SortModel
from .values import cell_text, compare_text, to_date, to_number

RowComparator = Callable[[Sequence[Any], Sequence[Any]], int]


def compare_cells(a: Any, b: Any) -> int:
  """
  Three-way comparison of two non-null cells.

  Numbers compare numerically when both sides coerce, then dates
  chronologically, then everything else as case-insensitive text.
  """
  na = to_number(a)
  nb = to_number(b)
  if na is not None and nb is not None:
    return (na > nb) - (na < nb)

  da = to_date(a)
  db = to_date(b)
  if da is not None and db is not None:
    return (da > db) - (da < db)

  return compare_text(cell_text(a), cell_text(b))


def _key_comparator(position: int, ascending: bool) -> RowComparator:
  def compare(r1: Sequence[Any], r2: Sequence[Any]) -> int:
    a = r1[position] if position < len(r1) else None
    b = r2[position] if position < len(r2) else None
    # Nulls sort last in both directions
    if a is None and b is None:
      return 0
    if a is None:
      return 1
    if b is None:
      return -1
    result = compare_cells(a, b)
    return result if ascending else -result

  return compare


def build_comparator(sort_model: SortModel, column_index: ColumnIndex) -> RowComparator:
  """
  Compose one comparator per sort key, applied in list order.

  Keys naming unknown columns are skipped. An empty model yields a comparator
  that treats every pair as equal.
  """
  comparators: list[RowComparator] = []
  for entry in sort_model:
    position = resolve_column(column_index, entry.col_id)
    if position is None or entry.direction is None:
      continue
    comparators.append(_key_comparator(position, entry.is_asc))

  def compare(r1: Sequence[Any], r2: Sequence[Any]) -> int:
    for comparator in comparators:
      result = comparator(r1, r2)
      if result != 0:
        return result
    return 0

  return compare


def sort_rows(
  rows: list[list[Any]], sort_model: SortModel, column_index: ColumnIndex
) -> None:
  """Stable in-place sort of ``rows`` by the sort model."""
  if not sort_model:
    return
  rows.sort(key=cmp_to_key(build_comparator(sort_model, column_index)))
