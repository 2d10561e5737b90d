"""
Unit tests for the range config store.

Tests relaxed-JSON parsing, legacy migration, validation, overlap detection,
merge writes and the TTL read cache.
"""

import json

import pytest

from objid.core.config.models import Range, RangeConfig
from objid.core.config.store import (
    CONFIG_FILENAME,
    RangeConfigStore,
    find_overlaps,
    inspect_config,
    merge_documents,
    migrate_legacy_shape,
    parse_relaxed_json,
    validate_config,
)
from objid.core.errors import (
    ConfigInvalidError,
    ConfigWriteError,
    ErrorCode,
    FindingCode,
    NoRangesDefinedError,
)

# ==============================================================================
# Parsing Tests
# ==============================================================================


class TestParseRelaxedJson:
    """Test the comment- and trailing-comma-tolerant parser."""

    def test_plain_json(self):
        assert parse_relaxed_json('{"a": 1}') == {"a": 1}

    def test_line_and_block_comments(self):
        text = """
        {
            // ranges for the rating app
            "idRanges": [ /* first block */ {"from": 1, "to": 9} ]
        }
        """
        assert parse_relaxed_json(text) == {"idRanges": [{"from": 1, "to": 9}]}

    def test_trailing_commas(self):
        text = '{"idRanges": [{"from": 1, "to": 9,},], "objectNamePrefix": "RAT",}'
        assert parse_relaxed_json(text) == {
            "idRanges": [{"from": 1, "to": 9}],
            "objectNamePrefix": "RAT",
        }

    def test_comment_markers_inside_strings_are_kept(self):
        """Test that // and /* inside string values are not stripped."""
        text = '{"url": "https://example.com/a", "glob": "src/*.al", "note": "a,]"}'
        assert parse_relaxed_json(text) == {
            "url": "https://example.com/a",
            "glob": "src/*.al",
            "note": "a,]",
        }

    def test_invalid_json_raises_config_invalid(self, tmp_path):
        with pytest.raises(ConfigInvalidError) as exc_info:
            parse_relaxed_json("{ not json }", source=tmp_path / CONFIG_FILENAME)
        assert exc_info.value.code is ErrorCode.CONFIG_INVALID
        assert "Invalid JSON" in exc_info.value.message
        assert exc_info.value.context["path"].endswith(CONFIG_FILENAME)


# ==============================================================================
# Validation Tests
# ==============================================================================


class TestMigrateLegacyShape:
    """Test the idRanges-as-mapping migration."""

    def test_mapping_moves_to_object_ranges(self):
        legacy = {"idRanges": {"table": [{"from": 1, "to": 9}]}}
        document, migrated = migrate_legacy_shape(legacy)
        assert migrated is True
        assert document == {"idRanges": [], "objectRanges": {"table": [{"from": 1, "to": 9}]}}

    def test_not_migrated_when_object_ranges_present(self):
        document = {
            "idRanges": {"table": [{"from": 1, "to": 9}]},
            "objectRanges": {"page": [{"from": 5, "to": 6}]},
        }
        result, migrated = migrate_legacy_shape(document)
        assert migrated is False
        assert result == document

    def test_flat_list_untouched(self):
        document = {"idRanges": [{"from": 1, "to": 9}]}
        assert migrate_legacy_shape(document) == (document, False)

    def test_input_not_mutated(self):
        legacy = {"idRanges": {"table": [{"from": 1, "to": 9}]}}
        migrate_legacy_shape(legacy)
        assert legacy == {"idRanges": {"table": [{"from": 1, "to": 9}]}}


class TestValidateConfig:
    """Test document validation."""

    def test_accepts_flat_ranges(self):
        config = validate_config({"idRanges": [{"from": 50000, "to": 50099}]})
        assert config.ranges_for("table") == [Range(from_=50000, to=50099)]

    def test_accepts_typed_ranges(self):
        config = validate_config({"objectRanges": {"Table": [{"from": 1, "to": 9}]}})
        assert config.ranges_for("table") == [Range(from_=1, to=9)]
        assert config.ranges_for("page") == []

    def test_typed_ranges_win_over_flat(self):
        config = validate_config(
            {
                "idRanges": [{"from": 50000, "to": 50999}],
                "objectRanges": {"table": [{"from": 50100, "to": 50149}], "page": []},
            }
        )
        assert config.ranges_for("table") == [Range(from_=50100, to=50149)]
        # An empty typed list falls back to the flat list
        assert config.ranges_for("page") == [Range(from_=50000, to=50999)]

    def test_legacy_shape_is_migrated(self):
        config = validate_config({"idRanges": {"codeunit": [{"from": 7, "to": 8}]}})
        assert config.id_ranges == []
        assert config.ranges_for("codeunit") == [Range(from_=7, to=8)]

    @pytest.mark.parametrize(
        "document",
        [
            {},
            {"idRanges": []},
            {"objectRanges": {}},
            {"idRanges": [], "objectRanges": {"table": [], "page": []}},
        ],
    )
    def test_rejects_documents_without_ranges(self, document):
        with pytest.raises(NoRangesDefinedError) as exc_info:
            validate_config(document)
        assert exc_info.value.code is ErrorCode.NO_RANGES_DEFINED

    @pytest.mark.parametrize(
        "document",
        [
            [],
            "idRanges",
            {"idRanges": [{"from": 10, "to": 1}]},
            {"idRanges": [{"from": "1", "to": 9}]},
            {"idRanges": [{"from": 1}]},
            {"objectRanges": {"table": "1-9"}},
        ],
    )
    def test_rejects_malformed_documents(self, document):
        with pytest.raises(ConfigInvalidError):
            validate_config(document)

    def test_unknown_keys_preserved(self):
        config = validate_config({"idRanges": [{"from": 1, "to": 9}], "authKey": "abc"})
        assert config.to_document()["authKey"] == "abc"

    def test_metadata_fields(self):
        config = validate_config(
            {
                "idRanges": [{"from": 1, "to": 9}],
                "objectNamePrefix": "RAT ",
                "bcLicense": "license.bclicense",
                "appPoolId": "pool-1",
            }
        )
        assert config.object_name_prefix == "RAT "
        assert config.bc_license == "license.bclicense"
        assert config.app_pool_id == "pool-1"


class TestOverlaps:
    """Test overlap detection and the validation report."""

    def test_find_overlaps_per_scope(self):
        config = validate_config(
            {
                "idRanges": [{"from": 1, "to": 10}, {"from": 10, "to": 20}],
                "objectRanges": {"table": [{"from": 100, "to": 110}, {"from": 111, "to": 120}]},
            }
        )
        findings = find_overlaps(config)
        assert len(findings) == 1
        assert findings[0].code is FindingCode.RANGE_OVERLAP
        assert findings[0].details["path"] == "idRanges"

    def test_find_overlaps_for_type(self):
        config = validate_config(
            {"objectRanges": {"table": [{"from": 1, "to": 50}, {"from": 25, "to": 75}]}}
        )
        findings = find_overlaps(config, "TABLE")
        assert [f.details["path"] for f in findings] == ["objectRanges.table"]
        assert find_overlaps(config, "page") == []

    def test_inspect_config(self):
        config = validate_config(
            {
                "idRanges": [{"from": 1, "to": 10}, {"from": 5, "to": 20}],
                "objectRanges": {"page": []},
                "appPoolId": "pool-1",
            }
        )
        findings = inspect_config(config)
        by_path = {f.path: f.severity for f in findings}
        assert by_path == {
            "objectRanges.page": "warning",
            "idRanges": "warning",
            "appPoolId": "info",
        }


# ==============================================================================
# Store Tests
# ==============================================================================


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestRangeConfigStoreRead:
    """Test reading through the store."""

    def test_read(self, project_dir, config_store):
        config = config_store.read(project_dir)
        assert isinstance(config, RangeConfig)
        assert config.ranges_for("table") == [Range(from_=50100, to=50149)]

    def test_read_missing_config_returns_none(self, make_project, config_store):
        assert config_store.read(make_project()) is None

    def test_read_relaxed_file(self, make_project, config_store):
        project = make_project(
            config='{\n  // flat\n  "idRanges": [{"from": 1, "to": 9},],\n}\n'
        )
        assert config_store.read(project).ranges_for("table") == [Range(from_=1, to=9)]

    def test_read_invalid_file_raises(self, make_project, config_store):
        project = make_project(config="{ broken")
        with pytest.raises(ConfigInvalidError):
            config_store.read(project)

    def test_cache_serves_until_ttl_expires(self, project_dir):
        clock = FakeClock()
        store = RangeConfigStore(cache_ttl=60, clock=clock)
        first = store.read(project_dir)

        (project_dir / CONFIG_FILENAME).write_text(
            json.dumps({"idRanges": [{"from": 1, "to": 2}]})
        )
        clock.now += 30
        assert store.read(project_dir) is first

        clock.now += 31
        assert store.read(project_dir).ranges_for("table") == [Range(from_=1, to=2)]

    def test_cache_disabled_always_reads_disk(self, project_dir, config_store):
        config_store.read(project_dir)
        (project_dir / CONFIG_FILENAME).write_text(
            json.dumps({"idRanges": [{"from": 1, "to": 2}]})
        )
        assert config_store.read(project_dir).ranges_for("table") == [Range(from_=1, to=2)]

    def test_clear_cache(self, project_dir):
        store = RangeConfigStore(cache_ttl=3600)
        store.read(project_dir)
        (project_dir / CONFIG_FILENAME).write_text(
            json.dumps({"idRanges": [{"from": 1, "to": 2}]})
        )
        store.clear_cache(project_dir)
        assert store.read(project_dir).ranges_for("table") == [Range(from_=1, to=2)]

    def test_cache_key_normalizes_app_json_path(self, project_dir):
        clock = FakeClock()
        store = RangeConfigStore(cache_ttl=60, clock=clock)
        first = store.read(project_dir)
        assert store.read(project_dir / "app.json") is first


class TestRangeConfigStoreWrite:
    """Test merge and replace writes."""

    def test_merge_unions_map_keys_and_patch_wins(self, project_dir, config_store):
        """Test that merged map fields keep prior keys and take patched values."""
        config_store.write(
            project_dir,
            {
                "objectRanges": {
                    "page": [{"from": 50250, "to": 50299}],
                    "codeunit": [{"from": 50300, "to": 50349}],
                }
            },
        )

        config = config_store.read(project_dir)
        assert set(config.object_ranges) == {"table", "page", "codeunit"}
        assert config.object_ranges["table"] == [Range(from_=50100, to=50149)]
        assert config.object_ranges["page"] == [Range(from_=50250, to=50299)]
        assert config.id_ranges == [Range(from_=50000, to=50999)]

    def test_merge_list_fields_replace(self, project_dir, config_store):
        config_store.write(project_dir, {"idRanges": [{"from": 60000, "to": 60009}]})
        config = config_store.read(project_dir)
        assert config.id_ranges == [Range(from_=60000, to=60009)]

    def test_replace_discards_existing_fields(self, project_dir, config_store):
        config_store.write(
            project_dir, {"idRanges": [{"from": 1, "to": 9}]}, merge=False
        )
        document = json.loads((project_dir / CONFIG_FILENAME).read_text())
        assert document == {"idRanges": [{"from": 1, "to": 9}]}

    def test_write_creates_missing_file(self, make_project, config_store):
        project = make_project()
        config_store.write(project, {"objectRanges": {"Table": [{"from": 1, "to": 9}]}})

        text = (project / CONFIG_FILENAME).read_text()
        assert text.endswith("\n")
        assert json.loads(text) == {"objectRanges": {"table": [{"from": 1, "to": 9}]}}

    def test_write_rejects_result_without_ranges(self, make_project, config_store):
        project = make_project()
        with pytest.raises(NoRangesDefinedError):
            config_store.write(project, {"objectNamePrefix": "RAT"})
        assert not (project / CONFIG_FILENAME).exists()

    def test_write_rejects_malformed_patch(self, project_dir, config_store):
        before = (project_dir / CONFIG_FILENAME).read_text()
        with pytest.raises(ConfigInvalidError):
            config_store.write(project_dir, {"idRanges": [{"from": 9, "to": 1}]})
        assert (project_dir / CONFIG_FILENAME).read_text() == before

    def test_write_ignores_stale_cache(self, project_dir):
        """Test that a merge starts from the file on disk, not the cached copy."""
        store = RangeConfigStore(cache_ttl=3600)
        store.read(project_dir)

        (project_dir / CONFIG_FILENAME).write_text(
            json.dumps({"objectRanges": {"report": [{"from": 50400, "to": 50449}]}})
        )
        store.write(project_dir, {"objectRanges": {"page": [{"from": 50200, "to": 50249}]}})

        document = json.loads((project_dir / CONFIG_FILENAME).read_text())
        assert set(document["objectRanges"]) == {"report", "page"}
        assert "idRanges" not in document

    def test_write_refreshes_cache(self, project_dir):
        store = RangeConfigStore(cache_ttl=3600)
        store.read(project_dir)
        store.write(project_dir, {"idRanges": [{"from": 1, "to": 9}]})
        assert store.read(project_dir).id_ranges == [Range(from_=1, to=9)]

    def test_write_preserves_unknown_keys(self, make_project, config_store):
        project = make_project(config={"idRanges": [{"from": 1, "to": 9}], "authKey": "k"})
        config_store.write(project, {"objectNamePrefix": "RAT"})
        document = json.loads((project / CONFIG_FILENAME).read_text())
        assert document["authKey"] == "k"
        assert document["objectNamePrefix"] == "RAT"

    def test_write_failure_raises_config_write_error(self, project_dir, config_store):
        (project_dir / CONFIG_FILENAME).unlink()
        (project_dir / CONFIG_FILENAME).mkdir()
        with pytest.raises(ConfigWriteError):
            config_store.write(project_dir, {"idRanges": [{"from": 1, "to": 9}]}, merge=False)

    def test_merge_documents(self):
        merged = merge_documents(
            {"idRanges": [{"from": 1, "to": 9}], "objectRanges": {"table": [], "page": []}},
            {"idRanges": [], "objectRanges": {"page": [{"from": 5, "to": 6}]}},
        )
        assert merged == {
            "idRanges": [],
            "objectRanges": {"table": [], "page": [{"from": 5, "to": 6}]},
        }


class TestRangeConfigStoreValidate:
    """Test the validation report."""

    def test_valid(self, project_dir, config_store):
        report = config_store.validate(project_dir)
        assert report.exists and report.valid
        assert report.config is not None

    def test_missing(self, make_project, config_store):
        report = config_store.validate(make_project())
        assert report.exists is False
        assert report.valid is False
        assert report.findings[0].severity == "error"

    def test_invalid_is_reported_not_raised(self, make_project, config_store):
        report = config_store.validate(make_project(config={"idRanges": []}))
        assert report.exists is True
        assert report.valid is False
        assert "No ID ranges" in report.findings[0].message
