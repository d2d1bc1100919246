"""Tests for heritage_spine.core.jsonio and core.hashing."""

import pytest

from heritage_spine.core.errors import ParseError, PublishError
from heritage_spine.core.hashing import compute_hash, compute_json_hash
from heritage_spine.core.jsonio import (
    aread_json_file,
    awrite_json_file,
    read_json_file,
    safe_json_parse,
    write_json_file,
)


class TestJsonIO:
    def test_parse_error_names_context(self):
        with pytest.raises(ParseError, match="file: broken.json"):
            safe_json_parse("{not json", "file: broken.json")

    def test_missing_file(self, tmp_path):
        with pytest.raises(PublishError, match="File not found"):
            read_json_file(tmp_path / "absent.json")

    def test_write_creates_parents(self, tmp_path):
        path = write_json_file(tmp_path / "a" / "b" / "c.json", {"x": "é"})
        assert read_json_file(path) == {"x": "é"}
        assert "é" in path.read_text(encoding="utf-8")

    def test_compact_write(self, tmp_path):
        path = write_json_file(tmp_path / "c.json", {"a": [1, 2]}, indent=None)
        assert path.read_text() == '{"a": [1, 2]}'

    @pytest.mark.asyncio
    async def test_async_round_trip(self, tmp_path):
        await awrite_json_file(tmp_path / "d.json", [1, 2, 3])
        assert await aread_json_file(tmp_path / "d.json") == [1, 2, 3]


class TestHashing:
    def test_deterministic(self):
        assert compute_hash("en", "/asset/?slug=x") == compute_hash("en", "/asset/?slug=x")

    def test_order_matters(self):
        assert compute_hash("a", "b") != compute_hash("b", "a")

    def test_length(self):
        assert len(compute_hash("a", length=7)) == 7

    def test_json_hash_ignores_key_order(self):
        assert compute_json_hash({"a": 1, "b": 2}) == compute_json_hash({"b": 2, "a": 1})
