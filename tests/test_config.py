"""
Unit tests for legacy_kms.config
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from legacy_kms.config import Config, _find_config_file, _load_yaml


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("KMS_"):
            monkeypatch.delenv(key, raising=False)


class TestDefaults:

    def test_builtin_defaults(self):
        cfg = Config()
        assert cfg.STORE_DIR == ".legacykms"
        assert cfg.STORAGE_KEY == "kms_prototype_data"
        assert cfg.QUOTA_BYTES == 5 * 1024 * 1024
        assert cfg.PREVIEW_CHARS == 500
        assert cfg.LOG_LEVEL == "WARNING"
        assert cfg.WATCH_DEBOUNCE == 0.5

    def test_quota_disabled_by_zero(self):
        assert Config({"quota_bytes": 0}).quota is None
        assert Config({"quota_bytes": 10}).quota == 10


class TestPriority:

    def test_yaml_overrides_defaults(self):
        cfg = Config({"store_dir": "/data/kms", "preview_chars": "200", "log_level": "debug"})
        assert cfg.STORE_DIR == "/data/kms"
        assert cfg.PREVIEW_CHARS == 200
        assert cfg.LOG_LEVEL == "DEBUG"

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("KMS_STORE_DIR", "/env/kms")
        monkeypatch.setenv("KMS_WATCH_DEBOUNCE", "2")
        cfg = Config({"store_dir": "/yaml/kms", "watch_debounce": 1})
        assert cfg.STORE_DIR == "/env/kms"
        assert cfg.WATCH_DEBOUNCE == 2.0


class TestConfigFile:

    def test_load_explicit_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("store_dir: /srv/kms\nquota_bytes: 1024\n", encoding="utf-8")
        cfg = Config.load(str(path))
        assert cfg.STORE_DIR == "/srv/kms"
        assert cfg.QUOTA_BYTES == 1024

    def test_explicit_path_missing(self, tmp_path):
        assert _find_config_file(str(tmp_path / "nope.yaml")) is None

    def test_found_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / ".legacykms.yaml").write_text("storage_key: other\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        with patch("legacy_kms.config.os.path.expanduser", return_value=str(tmp_path / "home")):
            assert Config.load().STORAGE_KEY == "other"

    def test_invalid_yaml_is_ignored(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("store_dir: [unclosed\n", encoding="utf-8")
        assert _load_yaml(str(path)) == {}

    def test_non_mapping_yaml_is_ignored(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        assert _load_yaml(str(path)) == {}
