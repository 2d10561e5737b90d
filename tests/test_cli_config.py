"""
Tests for the config CLI commands.

Covers:
- config read (table and JSON, missing file)
- config write (merge, --replace, bad input)
- config validate (exit codes, findings)
"""

import json

import pytest
from typer.testing import CliRunner

from objid.cli import app
from objid.core.config.settings import Settings

runner = CliRunner()


@pytest.fixture
def obj(config_store, mock_allocator):
    return {"settings": Settings(), "config_store": config_store, "allocator": mock_allocator}


def invoke(args, obj):
    return runner.invoke(app, args, obj=obj)


# ==============================================================================
# config read
# ==============================================================================


class TestConfigRead:
    def test_read_json(self, project_dir, obj):
        result = invoke(["config", "read", str(project_dir), "--json"], obj)

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["idRanges"] == [{"from": 50000, "to": 50999}]
        assert data["objectRanges"]["page"] == [{"from": 50200, "to": 50249}]

    def test_read_table(self, project_dir, obj):
        result = invoke(["config", "read", str(project_dir)], obj)

        assert result.exit_code == 0
        assert "50100-50149" in result.output
        assert "all types" in result.output

    def test_read_missing_config(self, make_project, obj):
        project = make_project()

        result = invoke(["config", "read", str(project), "--json"], obj)

        assert result.exit_code == 0
        assert json.loads(result.output) is None

    def test_read_reports_overlaps(self, make_project, obj):
        project = make_project(
            config={"idRanges": [{"from": 1, "to": 10}, {"from": 5, "to": 20}]}
        )

        result = invoke(["config", "read", str(project)], obj)

        assert result.exit_code == 0
        assert "Warning:" in result.output

    def test_read_malformed_config(self, make_project, obj):
        project = make_project(config="{ not json")

        result = invoke(["config", "read", str(project), "--json"], obj)

        assert result.exit_code == 2
        assert json.loads(result.output)["error"]["code"] == "CONFIG_INVALID"


# ==============================================================================
# config write
# ==============================================================================


class TestConfigWrite:
    def test_write_merges_by_default(self, project_dir, obj):
        patch = json.dumps({"objectRanges": {"codeunit": [{"from": 50300, "to": 50309}]}})

        result = invoke(["config", "write", str(project_dir), patch], obj)

        assert result.exit_code == 0, result.output
        assert "Wrote" in result.output
        written = json.loads((project_dir / ".objidconfig").read_text())
        assert written["idRanges"] == [{"from": 50000, "to": 50999}]
        assert set(written["objectRanges"]) == {"table", "page", "codeunit"}

    def test_write_replace(self, project_dir, obj):
        patch = json.dumps({"idRanges": [{"from": 60000, "to": 60099}]})

        result = invoke(["config", "write", str(project_dir), patch, "--replace", "--json"], obj)

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"idRanges": [{"from": 60000, "to": 60099}]}
        written = json.loads((project_dir / ".objidconfig").read_text())
        assert "objectRanges" not in written

    def test_write_creates_file(self, make_project, obj):
        project = make_project()
        patch = json.dumps({"idRanges": [{"from": 50000, "to": 50099}]})

        result = invoke(["config", "write", str(project), patch], obj)

        assert result.exit_code == 0, result.output
        assert (project / ".objidconfig").exists()

    def test_write_invalid_json(self, project_dir, obj):
        result = invoke(["config", "write", str(project_dir), "{oops", "--json"], obj)

        assert result.exit_code == 2
        assert json.loads(result.output)["error"]["code"] == "INVALID_PARAMETER"

    def test_write_non_object(self, project_dir, obj):
        result = invoke(["config", "write", str(project_dir), "[1, 2]"], obj)

        assert result.exit_code == 2
        assert "must be a JSON object" in result.output

    def test_write_inverted_range_leaves_file_untouched(self, project_dir, obj):
        before = (project_dir / ".objidconfig").read_text()
        patch = json.dumps({"idRanges": [{"from": 20, "to": 10}]})

        result = invoke(["config", "write", str(project_dir), patch], obj)

        assert result.exit_code == 2
        assert (project_dir / ".objidconfig").read_text() == before


# ==============================================================================
# config validate
# ==============================================================================


class TestConfigValidate:
    def test_valid_config(self, project_dir, obj):
        result = invoke(["config", "validate", str(project_dir)], obj)

        assert result.exit_code == 0
        assert "valid" in result.output

    def test_missing_config_exits_2(self, make_project, obj):
        project = make_project()

        result = invoke(["config", "validate", str(project), "--json"], obj)

        assert result.exit_code == 2
        data = json.loads(result.output)
        assert data["exists"] is False
        assert data["valid"] is False

    def test_malformed_config_reports_error(self, make_project, obj):
        project = make_project(config='{"idRanges": [{"from": 9, "to": 1}]}')

        result = invoke(["config", "validate", str(project)], obj)

        assert result.exit_code == 2
        assert "invalid" in result.output
        assert "error" in result.output

    def test_empty_type_is_a_warning(self, make_project, obj):
        project = make_project(
            config={"idRanges": [{"from": 1, "to": 9}], "objectRanges": {"report": []}}
        )

        result = invoke(["config", "validate", str(project), "--json"], obj)

        assert result.exit_code == 0
        findings = json.loads(result.output)["findings"]
        assert [f["path"] for f in findings] == ["objectRanges.report"]
        assert findings[0]["severity"] == "warning"


# ==============================================================================
# Project env files
# ==============================================================================


class TestProjectEnv:
    """Settings come from the env files of the PROJECT argument, not cwd."""

    @pytest.fixture
    def clean_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        # Registered with monkeypatch so values loaded from .env are undone
        monkeypatch.setenv("OBJID_BACKEND_URL", "placeholder")
        monkeypatch.delenv("OBJID_BACKEND_URL")
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        (elsewhere / ".env").write_text("OBJID_BACKEND_URL=https://ids.cwd.example\n")
        monkeypatch.chdir(elsewhere)

    def test_project_env_is_loaded(self, clean_env, project_dir, config_store, mock_allocator):
        (project_dir / ".env").write_text("OBJID_BACKEND_URL=https://ids.project.example/\n")
        obj = {"config_store": config_store, "allocator": mock_allocator}

        result = invoke(["config", "read", str(project_dir), "--json"], obj)

        assert result.exit_code == 0, result.output
        assert obj["settings"].backend_url == "https://ids.project.example"

    def test_env_local_overrides_project_env(
        self, clean_env, project_dir, config_store, mock_allocator
    ):
        (project_dir / ".env").write_text("OBJID_BACKEND_URL=https://ids.project.example\n")
        (project_dir / ".env.local").write_text("OBJID_BACKEND_URL=https://ids.local.example\n")
        obj = {"config_store": config_store, "allocator": mock_allocator}

        result = invoke(["config", "validate", str(project_dir)], obj)

        assert result.exit_code == 0, result.output
        assert obj["settings"].backend_url == "https://ids.local.example"
