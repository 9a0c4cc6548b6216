"""Tests for the JSON config store."""

import json
import os
from pathlib import Path

import pytest

from reelvault.config import ConfigStore
from reelvault.config.store import (
    CONFIG_FILE_ENV,
    JWT_SECRET_KEY,
    SESSION_STORE_KEY,
)
from reelvault.domain.exceptions import ConfigurationError


class TestLoading:
    """Locating and reading the config file."""

    def test_missing_file_is_new_system(self, make_config):
        store = make_config(None)
        assert store.is_new_system()
        assert store.get_config_file() == ""

    def test_incomplete_file_is_new_system(self, make_config):
        store = make_config({"generated": "/tmp/generated"})
        assert store.is_new_system()
        assert store.get_config_file() != ""

    def test_complete_file_is_configured(self, make_config, configured_values):
        store = make_config(configured_values)
        assert not store.is_new_system()
        assert store.get_database_path() == configured_values["database"]

    def test_empty_file_loads_as_empty(self, tmp_path: Path, home_dir: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text("", encoding="utf-8")
        store = ConfigStore(config_file, home_dir=home_dir, env={})
        store.load()
        assert store.is_new_system()

    def test_invalid_json_raises(self, tmp_path: Path, home_dir: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json", encoding="utf-8")
        store = ConfigStore(config_file, home_dir=home_dir, env={})
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            store.load()

    def test_non_object_raises(self, tmp_path: Path, home_dir: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text("[1, 2]", encoding="utf-8")
        store = ConfigStore(config_file, home_dir=home_dir, env={})
        with pytest.raises(ConfigurationError, match="JSON object"):
            store.load()

    def test_env_selects_config_file(self, tmp_path: Path, home_dir: Path):
        config_file = tmp_path / "elsewhere.json"
        config_file.write_text("{}", encoding="utf-8")
        store = ConfigStore(home_dir=home_dir, env={CONFIG_FILE_ENV: str(config_file)})
        store.load()
        assert store.get_config_file() == str(config_file)
        assert store.file_env_set()

    def test_cwd_file_wins_over_home(self, isolated_cwd: Path, home_dir: Path):
        (isolated_cwd / "config.json").write_text("{}", encoding="utf-8")
        (home_dir / "config.json").write_text("{}", encoding="utf-8")
        store = ConfigStore(home_dir=home_dir, env={})
        store.load()
        assert Path(store.get_config_file()).parent == isolated_cwd

    def test_home_file_used_as_fallback(self, home_dir: Path):
        (home_dir / "config.json").write_text("{}", encoding="utf-8")
        store = ConfigStore(home_dir=home_dir, env={})
        store.load()
        assert store.get_config_file() == str(home_dir / "config.json")


class TestOverrides:
    """Environment variables win over file values."""

    def test_env_override_wins(self, make_config, configured_values):
        store = make_config(
            configured_values, env={"REELVAULT_DATABASE": "/override/db.sqlite"}
        )
        assert store.get_database_path() == "/override/db.sqlite"
        assert store.has_override("database")
        assert not store.has_override("generated")

    def test_dotted_key_maps_to_underscores(self, make_config):
        store = make_config({}, env={"REELVAULT_DLNA_DEFAULT_ENABLED": "true"})
        assert store.get_dlna_default_enabled()

    def test_overrides_are_not_written(self, make_config, configured_values, tmp_path):
        store = make_config(configured_values, env={"REELVAULT_LOG_LEVEL": "DEBUG"})
        store.set("username", "admin")
        store.write()
        written = json.loads((tmp_path / "config" / "config.json").read_text())
        assert "log_level" not in written
        assert written["username"] == "admin"

    def test_libraries_from_env_split_on_pathsep(self, make_config):
        store = make_config({}, env={"REELVAULT_LIBRARIES": os.pathsep.join(["/a", "/b"])})
        assert [lib.path for lib in store.get_libraries()] == ["/a", "/b"]


class TestWrite:
    """Persisting the config file."""

    def test_write_without_file_raises(self, make_config):
        store = make_config(None)
        with pytest.raises(ConfigurationError):
            store.write()

    def test_write_leaves_no_temp_file(self, make_config, configured_values, tmp_path):
        store = make_config(configured_values)
        store.write()
        assert not (tmp_path / "config" / "config.json.tmp").exists()

    def test_set_initial_config_generates_keys_once(self, make_config, configured_values):
        store = make_config(configured_values)
        store.set_initial_config()
        jwt_key = store.get(JWT_SECRET_KEY)
        session_key = store.get(SESSION_STORE_KEY)
        assert jwt_key and session_key and jwt_key != session_key

        store.set_initial_config()
        assert store.get(JWT_SECRET_KEY) == jwt_key

    def test_set_if_unset_keeps_first_value(self, make_config):
        store = make_config({"tripwire": ""})

        assert store.set_if_unset("tripwire", "4.4.4.4")
        assert not store.set_if_unset("tripwire", "8.8.8.8")
        assert store.get("tripwire") == "4.4.4.4"

    def test_set_if_unset_respects_override(self, make_config):
        store = make_config({}, env={"REELVAULT_TRIPWIRE": "1.2.3.4"})
        assert not store.set_if_unset("tripwire", "4.4.4.4")

    def test_finalize_setup_clears_new_system(self, make_config):
        store = make_config(None)
        store.finalize_setup()
        assert not store.is_new_system()


class TestValidation:
    """validate() and typed accessors."""

    def test_missing_required_keys(self, make_config):
        store = make_config({"generated": "/g"})
        with pytest.raises(ConfigurationError, match="database"):
            store.validate()

    def test_username_without_password(self, make_config, configured_values):
        store = make_config({**configured_values, "username": "admin"})
        with pytest.raises(ConfigurationError, match="username and password"):
            store.validate()
        assert not store.is_valid()

    def test_invalid_log_level(self, make_config, configured_values):
        store = make_config({**configured_values, "log_level": "chatty"})
        with pytest.raises(ConfigurationError, match="log level"):
            store.validate()

    def test_valid_config(self, make_config, configured_values):
        store = make_config({**configured_values, "username": "a", "password": "b"})
        store.validate()
        assert store.has_credentials()

    def test_plugin_and_scraper_paths_default_to_config_dir(
        self, make_config, configured_values, tmp_path
    ):
        store = make_config(configured_values)
        assert store.get_plugins_path() == str(tmp_path / "config" / "plugins")
        assert store.get_scrapers_path() == str(tmp_path / "config" / "scrapers")

    def test_libraries_accept_strings_and_objects(self, make_config):
        store = make_config(
            {"libraries": ["/media/a", {"path": "/media/b", "exclude_image": True}]}
        )
        libraries = store.get_libraries()
        assert libraries[0].path == "/media/a"
        assert libraries[1].exclude_image is True
        assert libraries[1].exclude_video is False
