"""Unit tests for configuration loading and validation."""

import logging

import pytest
import structlog

from utils.config import load_config, validate_config
from utils.logging import add_service_name, clear_job_context, current_job_id, set_job_context, setup_logging


@pytest.mark.unit
class TestLoadConfig:
    def test_env_values(self, monkeypatch, tmp_path):
        monkeypatch.setenv("RUNPOD_API_KEY", "rp")
        monkeypatch.setenv("IMAGE_CONCURRENCY", "3")
        monkeypatch.setenv("RENDER_MODE", "REMOTE")
        monkeypatch.setenv("LOCAL_OUTPUT_FOLDER", str(tmp_path / "renders"))
        monkeypatch.setenv("LOG_JSON", "true")

        config = load_config()

        assert config["runpod_api_key"] == "rp"
        assert config["image_concurrency"] == 3
        assert config["render_mode"] == "remote"
        assert config["local_output_folder"] == str(tmp_path / "renders")
        assert config["log_json"] is True

    def test_relative_paths_resolved(self, monkeypatch):
        monkeypatch.setenv("ASSET_CACHE_DIR", "tmp/assets")

        config = load_config()

        assert config["asset_cache_dir"].endswith("tmp/assets")
        assert config["asset_cache_dir"] != "tmp/assets"


@pytest.mark.unit
class TestValidateConfig:
    def test_valid(self, sample_config):
        assert validate_config(sample_config) == []

    def test_missing_runpod_key(self, sample_config):
        sample_config["runpod_api_key"] = None
        assert "RUNPOD_API_KEY is required" in validate_config(sample_config)

    def test_render_only_skips_runpod_checks(self, sample_config):
        sample_config["runpod_api_key"] = None
        sample_config["runpod_t2i_endpoint_id"] = ""
        assert validate_config(sample_config, generation=False) == []
        assert len(validate_config(sample_config)) == 2

    def test_remote_needs_toolkit(self, sample_config):
        sample_config["render_mode"] = "remote"
        assert any("COMPOSE_TOOLKIT_URL" in e for e in validate_config(sample_config))

    def test_unknown_render_mode(self, sample_config):
        sample_config["render_mode"] = "cloud"
        assert any("RENDER_MODE" in e for e in validate_config(sample_config))

    def test_half_configured_storage(self, sample_config):
        sample_config["storage_access_key_id"] = "key"
        assert any("must be set together" in e for e in validate_config(sample_config))


@pytest.mark.unit
class TestJobContext:
    def test_job_fields_bound_until_cleared(self):
        set_job_context("job-9", route="mixed")
        try:
            assert current_job_id() == "job-9"
            assert structlog.contextvars.get_contextvars()["route"] == "mixed"
        finally:
            clear_job_context()

        assert current_job_id() is None

    def test_service_name_added(self):
        assert add_service_name(None, "info", {"event": "x"})["service"] == "shotreel-api"

    def test_setup_logging_installs_one_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging("DEBUG", json_output=True)
            assert len(root.handlers) == 1
            assert root.level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
