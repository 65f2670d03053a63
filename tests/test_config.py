"""Tests for build configuration loading and validation."""

from __future__ import annotations

from datetime import timedelta

import pytest
import yaml

from gcebake.config import (
    BuildConfig,
    load_config,
    parse_duration,
    render_image_name,
    validate_config,
)
from gcebake.errors import ConfigError


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------


class TestParseDuration:
    """Tests for parse_duration."""

    def test_minutes(self):
        assert parse_duration("5m") == timedelta(minutes=5)

    def test_compound(self):
        assert parse_duration("1h30m") == timedelta(hours=1, minutes=30)

    def test_milliseconds(self):
        assert parse_duration("1500ms") == timedelta(milliseconds=1500)

    def test_bare_number_is_seconds(self):
        assert parse_duration(90) == timedelta(seconds=90)
        assert parse_duration("90") == timedelta(seconds=90)

    def test_timedelta_passthrough(self):
        td = timedelta(seconds=3)
        assert parse_duration(td) is td

    @pytest.mark.parametrize("bad", ["", "5x", "m5", "5m junk", -1, True])
    def test_rejects_garbage(self, bad):
        with pytest.raises(ValueError):
            parse_duration(bad)

    @pytest.mark.parametrize("bad", [float("inf"), float("nan"), 1e20, 10 ** 20, "99999999999999h"])
    def test_rejects_unrepresentable(self, bad):
        with pytest.raises(ValueError):
            parse_duration(bad)


class TestRenderImageName:
    """Tests for the {{timestamp}} template."""

    def test_timestamp_expanded(self):
        assert render_image_name("web-{{timestamp}}", now=1700000000) == "web-1700000000"

    def test_spaces_inside_braces(self):
        assert render_image_name("web-{{ timestamp }}", now=42) == "web-42"

    def test_plain_name_unchanged(self):
        assert render_image_name("packer-1234") == "packer-1234"


# ---------------------------------------------------------------------------
# Defaults and validation
# ---------------------------------------------------------------------------


class TestDefaults:
    """Defaults applied when optional keys are absent."""

    def test_defaults(self, raw_config):
        for key in ("machine_type", "network", "image_name"):
            raw_config.pop(key)
        cfg = validate_config(raw_config)
        assert cfg.machine_type == "n1-standard-1"
        assert cfg.network == "default"
        assert cfg.ssh_username == "root"
        assert cfg.ssh_port == 22
        assert cfg.ssh_timeout == timedelta(minutes=5)
        assert cfg.state_timeout == timedelta(minutes=5)
        assert cfg.image_fallback_projects == ["debian-cloud"]
        assert cfg.update_gsutil is True
        assert cfg.debug is False
        assert cfg.image_name.startswith("gcebake-")
        assert cfg.image_name[len("gcebake-"):].isdigit()

    def test_timeouts_parsed(self, raw_config):
        raw_config.update(ssh_timeout="90s", state_timeout="10m")
        cfg = validate_config(raw_config)
        assert cfg.ssh_timeout == timedelta(seconds=90)
        assert cfg.state_timeout == timedelta(minutes=10)


class TestValidation:
    """Every problem is collected into one ConfigError."""

    def test_missing_required_fields_reported_together(self):
        with pytest.raises(ConfigError) as exc_info:
            validate_config({})
        errors = exc_info.value.errors
        for key in ("project_id", "zone", "source_image", "bucket_name"):
            assert f"a {key} must be specified" in errors
        assert "4 configuration errors" in str(exc_info.value)

    def test_mixed_problems_aggregated(self, raw_config):
        del raw_config["bucket_name"]
        raw_config["ssh_timeout"] = "soon"
        raw_config["image_name"] = "Bad_Name"
        with pytest.raises(ConfigError) as exc_info:
            validate_config(raw_config)
        text = "\n".join(exc_info.value.errors)
        assert "bucket_name" in text
        assert "ssh_timeout" in text
        assert "image_name" in text

    def test_infinite_timeout_aggregated(self, raw_config):
        raw_config["ssh_timeout"] = float("inf")
        raw_config["source_image"] = ""
        with pytest.raises(ConfigError) as exc_info:
            validate_config(raw_config)
        text = "\n".join(exc_info.value.errors)
        assert "ssh_timeout" in text
        assert "a source_image must be specified" in text

    def test_infinite_timeout_from_yaml(self, raw_config, tmp_path):
        path = tmp_path / "build.yaml"
        path.write_text(yaml.safe_dump(raw_config) + "state_timeout: .inf\n")
        with pytest.raises(ConfigError, match="state_timeout"):
            load_config(path)

    def test_unknown_key_rejected(self, raw_config):
        raw_config["machine_typ"] = "n1-standard-2"
        with pytest.raises(ConfigError, match="unknown configuration key"):
            validate_config(raw_config)

    def test_invalid_tag_rejected(self, raw_config):
        raw_config["tags"] = ["ok-tag", "Not OK"]
        with pytest.raises(ConfigError, match="Not OK"):
            validate_config(raw_config)

    def test_missing_account_file(self, raw_config, tmp_path):
        raw_config["account_file"] = str(tmp_path / "missing.json")
        with pytest.raises(ConfigError, match="account_file not found"):
            validate_config(raw_config)

    def test_existing_account_file_accepted(self, raw_config, tmp_path):
        key = tmp_path / "sa.json"
        key.write_text("{}")
        raw_config["account_file"] = str(key)
        assert validate_config(raw_config).account_file == key

    def test_single_error_message_is_plain(self, raw_config):
        del raw_config["zone"]
        with pytest.raises(ConfigError) as exc_info:
            validate_config(raw_config)
        assert str(exc_info.value) == "a zone must be specified"


class TestEnvironmentFallbacks:
    """project_id and zone can come from the gcloud environment."""

    def test_project_and_zone_from_env(self, raw_config, monkeypatch):
        del raw_config["project_id"]
        del raw_config["zone"]
        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "env-project")
        monkeypatch.setenv("CLOUDSDK_COMPUTE_ZONE", "europe-west1-b")
        cfg = validate_config(raw_config)
        assert cfg.project_id == "env-project"
        assert cfg.zone == "europe-west1-b"

    def test_file_wins_over_env(self, raw_config, monkeypatch):
        monkeypatch.setenv("GCLOUD_PROJECT", "env-project")
        assert validate_config(raw_config).project_id == "test-project"


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config."""

    def test_loads_yaml(self, raw_config, tmp_path):
        path = tmp_path / "build.yaml"
        raw_config["provisioners"] = ["apt-get update", "apt-get install -y nginx"]
        path.write_text(yaml.safe_dump(raw_config))
        cfg = load_config(path)
        assert isinstance(cfg, BuildConfig)
        assert cfg.image_name == "packer-1234"
        assert cfg.provisioners == ["apt-get update", "apt-get install -y nginx"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("project_id: [unclosed")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ConfigError, match="empty"):
            load_config(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)
