import gzip

import pytest

from reportbuilder.cache.codec import CorruptChunkError, decode_rows, encode_rows


class TestRowCodec:
  def test_encoded_rows_are_gzip_json(self):
    data = encode_rows([[1, "Acme"], [2, None]])

    assert data[:2] == b"\x1f\x8b"
    assert gzip.decompress(data) == b'[[1,"Acme"],[2,null]]'

  def test_non_ascii_text_survives(self):
    rows = [["Zürich", "東京"]]

    assert decode_rows(encode_rows(rows)) == rows

  def test_empty_page(self):
    assert decode_rows(encode_rows([])) == []

  def test_unserializable_cell_raises_type_error(self):
    with pytest.raises(TypeError):
      encode_rows([[object()]])

  @pytest.mark.parametrize(
    "payload",
    [
      b"not gzip at all",
      gzip.compress(b"{not json"),
      gzip.compress(b'{"rows": []}'),
      gzip.compress(b"[1, 2, 3]"),
      gzip.compress(b"[[1], 2]"),
      gzip.compress(b"\xff\xfe"),
      gzip.compress(b"[[1]]")[:-6],
    ],
  )
  def test_corrupt_payloads_raise(self, payload):
    with pytest.raises(CorruptChunkError):
      decode_rows(payload)

  def test_corrupt_chunk_error_is_value_error(self):
    assert issubclass(CorruptChunkError, ValueError)
