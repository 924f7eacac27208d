"""Tests for configuration loading, env overrides and saving."""

import json
import os
import pytest
from unittest.mock import patch


class TestDefaults:
    def test_retriever_defaults(self):
        from panlo.common.config import RetrieverConfig
        cfg = RetrieverConfig()
        assert cfg.top_k == 30
        assert cfg.score_threshold == 0.10
        assert cfg.max_tokens == 1024
        assert cfg.chunk_size_bytes == 40960
        assert cfg.interpret_dates is False

    def test_llm_defaults(self):
        from panlo.common.config import LLMConfig
        cfg = LLMConfig()
        assert cfg.provider == "openai"
        assert cfg.openai_model == "gpt-4o-mini"

    def test_missing_file_gives_defaults(self, tmp_path):
        from panlo.common.config import load_config
        with patch("panlo.common.config.CONFIG_PATH", tmp_path / "absent.json"), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.embedding.model == "multilingual-e5-large"
        assert cfg.pinecone.index_name == "panlo-global"


class TestLoadConfig:
    def test_reads_sections(self, tmp_path):
        from panlo.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "pinecone": {"api_key": "pc-file", "index_name": "docs"},
            "llm": {"provider": "anthropic", "anthropic_api_key": "sk-ant"},
            "retriever": {"top_k": 12, "interpret_dates": True},
            "accounts": {"expired_notice": "Bye."},
            "env": "production",
        }))

        with patch("panlo.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert cfg.pinecone.api_key == "pc-file"
        assert cfg.pinecone.index_name == "docs"
        assert cfg.llm.provider == "anthropic"
        assert cfg.retriever.top_k == 12
        assert cfg.retriever.interpret_dates is True
        assert cfg.retriever.score_threshold == 0.10
        assert cfg.accounts.expired_notice == "Bye."
        assert cfg.env == "production"

    def test_malformed_file_logs_and_uses_defaults(self, tmp_path, caplog):
        import logging
        from panlo.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        with patch("panlo.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, {}, clear=True), \
             caplog.at_level(logging.WARNING, logger="panlo.common.config"):
            cfg = load_config()

        assert cfg.retriever.top_k == 30
        assert "Failed to load config file" in caplog.text

    def test_env_overrides(self, tmp_path):
        from panlo.common.config import load_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"retriever": {"top_k": 12}}))
        env = {
            "PINECONE_API_KEY": "pc-env",
            "PINECONE_INDEX": "env-index",
            "OPENAI_API_KEY": "sk-env",
            "PANLO_LLM_PROVIDER": "google",
            "GEMINI_API_KEY": "g-env",
            "PANLO_TOP_K": "7",
            "PANLO_SCORE_THRESHOLD": "0.25",
        }

        with patch("panlo.common.config.CONFIG_PATH", config_file), \
             patch.dict(os.environ, env, clear=True):
            cfg = load_config()

        assert cfg.pinecone.api_key == "pc-env"
        assert cfg.pinecone.index_name == "env-index"
        assert cfg.llm.openai_api_key == "sk-env"
        assert cfg.llm.google_api_key == "g-env"
        assert cfg.llm.provider == "google"
        assert cfg.retriever.top_k == 7
        assert cfg.retriever.score_threshold == 0.25


class TestSaveConfig:
    def test_save_omits_env_sourced_keys(self, tmp_path):
        from panlo.common.config import load_config, save_config
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"llm": {"anthropic_api_key": "sk-file"}}))

        env = {"OPENAI_API_KEY": "sk-env", "PINECONE_API_KEY": "pc-env"}
        with patch("panlo.common.config.CONFIG_PATH", config_file), \
             patch("panlo.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, env, clear=True):
            cfg = load_config()
            save_config(cfg)

        saved = json.loads(config_file.read_text())
        assert saved["llm"]["openai_api_key"] == ""
        assert saved["llm"]["anthropic_api_key"] == "sk-file"
        assert saved["pinecone"]["api_key"] == ""
        assert oct(config_file.stat().st_mode & 0o777) == "0o600"

    def test_round_trip_preserves_settings(self, tmp_path):
        from panlo.common.config import PanloConfig, load_config, save_config
        config_file = tmp_path / "config.json"
        cfg = PanloConfig()
        cfg.retriever.memory_window = 4
        cfg.server.port = 8123

        with patch("panlo.common.config.CONFIG_PATH", config_file), \
             patch("panlo.common.config.CONFIG_DIR", tmp_path), \
             patch.dict(os.environ, {}, clear=True):
            save_config(cfg)
            loaded = load_config()

        assert loaded.retriever.memory_window == 4
        assert loaded.server.port == 8123
