"""Cell value coercion shared by filtering, sorting and CSV export."""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

DATE_FORMAT = "%Y-%m-%d"


def cell_text(value: Any) -> str:
  """String form of a cell: empty for null, JSON spelling for booleans."""
  if value is None:
    return ""
  if isinstance(value, bool):
    return "true" if value else "false"
  return str(value)


def to_number(value: Any) -> Optional[Decimal]:
  """
  Coerce a cell or operand to a Decimal.

  Thousands separators are ignored. Returns None for null, blank, "null",
  booleans, non-finite values and anything that is not numeric.
  """
  if value is None or isinstance(value, bool):
    return None
  if isinstance(value, Decimal):
    return value if value.is_finite() else None
  if isinstance(value, int):
    return Decimal(value)

  text = str(value).replace(",", "").strip()
  if not text or text.lower() == "null":
    return None
  try:
    number = Decimal(text)
  except InvalidOperation:
    return None
  return number if number.is_finite() else None


def to_date(value: Any) -> Optional[date]:
  """
  Parse the first ten characters of a cell or operand as a ``YYYY-MM-DD`` date.

  Timestamps such as ``2024-01-05T10:30:00Z`` therefore compare by calendar
  day. Returns None when the value is missing or not a date.
  """
  if value is None:
    return None
  text = str(value).strip()
  if len(text) < 10 or text.lower() == "null":
    return None
  try:
    return datetime.strptime(text[:10], DATE_FORMAT).date()
  except ValueError:
    return None


def compare_text(left: str, right: str) -> int:
  """Case-insensitive three-way string comparison."""
  a = left.casefold()
  b = right.casefold()
  return (a > b) - (a < b)
