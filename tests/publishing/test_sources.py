"""Tests for business-data source matching."""

import pytest

from heritage_spine.core.config import PrebuildSource
from heritage_spine.core.errors import InvalidInputError
from heritage_spine.publishing.sources import (
    check_resource_file,
    expand_numbered,
    files_for_regex,
    match_source,
    source_files,
)


def touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text('{"business_data": {"resources": []}}')
    return path


class TestResourceFiles:
    def test_only_json(self):
        with pytest.raises(InvalidInputError):
            check_resource_file("prebuild/business_data/assets.xml")

    def test_expand_numbered_stops_at_gap(self, tmp_path):
        for i in (0, 1, 3):
            touch(tmp_path / f"assets-{i}.json")
        files = expand_numbered(tmp_path / "assets-%.json")
        assert [f.name for f in files] == ["assets-0.json", "assets-1.json"]

    def test_plain_file_is_itself(self, tmp_path):
        assert expand_numbered(tmp_path / "a.json") == [tmp_path / "a.json"]


class TestMatchSource:
    def test_first_match_wins(self):
        first = PrebuildSource(resources="assets", slugPrefix="a-")
        second = PrebuildSource(resources="assets-1", slugPrefix="b-")
        assert match_source([first, second], "prebuild/business_data/assets-1.json") is first

    def test_no_match(self):
        assert match_source([PrebuildSource(resources="people")], "assets.json") is None


class TestFilesForRegex:
    def test_matches_project_relative_paths(self, tmp_path):
        data = tmp_path / "prebuild" / "business_data"
        touch(data / "registries.json")
        touch(data / "nested" / "registries-extra.json")
        touch(data / "assets.json")
        found = files_for_regex(data, "prebuild/business_data/.*registries.*\\.json", tmp_path)
        assert [f.name for f in found] == ["registries.json", "registries-extra.json"]

    def test_pattern_outside_directory(self, tmp_path):
        data = tmp_path / "prebuild" / "business_data"
        touch(data / "a.json")
        assert files_for_regex(data, "elsewhere/a\\.json", tmp_path) == []

    def test_missing_directory(self, tmp_path):
        assert files_for_regex(tmp_path / "absent", "absent/x", tmp_path) == []


class TestSourceFiles:
    def test_dependencies_are_appended(self, tmp_path):
        data = tmp_path / "prebuild" / "business_data"
        assets = touch(data / "assets.json")
        touch(data / "registries.json")
        source = PrebuildSource(
            resources="assets\\.json",
            dependencies=["prebuild/business_data/registries\\.json"],
        )
        files, matched = source_files(assets, [source], data, tmp_path)
        assert matched is source
        assert [f.name for f in files] == ["assets.json", "registries.json"]

    def test_unmatched_file_has_no_source(self, tmp_path):
        assets = touch(tmp_path / "assets.json")
        files, matched = source_files(assets, [], tmp_path, tmp_path)
        assert matched is None
        assert [f.name for f in files] == ["assets.json"]
