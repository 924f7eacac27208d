"""
Configuration Management for Panlo

Loads configuration from ~/.panlo/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger("panlo.common.config")

# Config lives under ~/.panlo
CONFIG_DIR = Path.home() / ".panlo"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"

DEFAULT_EXPIRED_NOTICE = (
    "Your free trial has expired. Please upgrade your plan to keep asking "
    "questions about your documents."
)


@dataclass
class PineconeConfig:
    """Vector index configuration"""
    api_key: str = ""
    index_name: str = "panlo-global"


@dataclass
class EmbeddingConfig:
    """Hosted embedding model configuration"""
    model: str = "multilingual-e5-large"


@dataclass
class LLMConfig:
    """Completion provider configuration"""
    provider: str = "openai"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"


@dataclass
class RetrieverConfig:
    """Retrieval and synthesis configuration"""
    top_k: int = 30
    score_threshold: float = 0.10
    max_tokens: int = 1024
    temperature: float = 0.3
    memory_window: int = 0  # 0 = render every interaction
    interpret_dates: bool = False
    chunk_size_bytes: int = 40960  # vector store metadata limit per record


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 3000
    allowed_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])


@dataclass
class AccountConfig:
    """Account gate configuration"""
    trial_days: int = 30
    expired_notice: str = DEFAULT_EXPIRED_NOTICE


@dataclass
class PanloConfig:
    """Main Panlo configuration"""
    pinecone: PineconeConfig = field(default_factory=PineconeConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    accounts: AccountConfig = field(default_factory=AccountConfig)
    env: str = "development"  # "development" or "production"
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_pinecone_config(data: dict) -> PineconeConfig:
    """Parse pinecone section from config dict"""
    pinecone_data = data.get("pinecone", {})
    return PineconeConfig(
        api_key=pinecone_data.get("api_key", ""),
        index_name=pinecone_data.get("index_name") or pinecone_data.get("index", "panlo-global"),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        model=embedding_data.get("model", "multilingual-e5-large"),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "openai"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash-exp"),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    return RetrieverConfig(
        top_k=retriever_data.get("top_k", 30),
        score_threshold=retriever_data.get("score_threshold", 0.10),
        max_tokens=retriever_data.get("max_tokens", 1024),
        temperature=retriever_data.get("temperature", 0.3),
        memory_window=retriever_data.get("memory_window", 0),
        interpret_dates=retriever_data.get("interpret_dates", False),
        chunk_size_bytes=retriever_data.get("chunk_size_bytes", 40960),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    defaults = ServerConfig()
    return ServerConfig(
        host=server_data.get("host", defaults.host),
        port=server_data.get("port", defaults.port),
        allowed_origins=server_data.get("allowed_origins", defaults.allowed_origins),
    )


def _parse_account_config(data: dict) -> AccountConfig:
    """Parse accounts section from config dict"""
    account_data = data.get("accounts", {})
    return AccountConfig(
        trial_days=account_data.get("trial_days", 30),
        expired_notice=account_data.get("expired_notice", DEFAULT_EXPIRED_NOTICE),
    )


def load_config() -> PanloConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.panlo/config.json)
    3. Default values
    """
    config = PanloConfig()

    # File values first
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.pinecone = _parse_pinecone_config(data)
            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.retriever = _parse_retriever_config(data)
            config.server = _parse_server_config(data)
            config.accounts = _parse_account_config(data)
            config.env = data.get("env", "development")
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    # Environment wins over the file
    if os.getenv("PINECONE_API_KEY"):
        config.pinecone.api_key = os.getenv("PINECONE_API_KEY")
        config._env_sourced_keys.add("pinecone_api_key")
    if os.getenv("PINECONE_INDEX"):
        config.pinecone.index_name = os.getenv("PINECONE_INDEX")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")

    if os.getenv("PANLO_TOP_K"):
        config.retriever.top_k = int(os.getenv("PANLO_TOP_K"))
    if os.getenv("PANLO_SCORE_THRESHOLD"):
        config.retriever.score_threshold = float(os.getenv("PANLO_SCORE_THRESHOLD"))
    if os.getenv("PANLO_PORT"):
        config.server.port = int(os.getenv("PANLO_PORT"))

    # Provider keys from the environment are remembered so save_config never persists them
    _env_llm_map = {
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "PANLO_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("PANLO_ENV"):
        config.env = os.getenv("PANLO_ENV")

    return config


def save_config(config: PanloConfig) -> None:
    """Save configuration to file.

    API keys that were sourced from environment variables are written as
    empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
    }
    for key in ("openai_api_key", "anthropic_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    data = {
        "pinecone": {
            "api_key": "" if "pinecone_api_key" in env_sourced else config.pinecone.api_key,
            "index_name": config.pinecone.index_name,
        },
        "embedding": {
            "model": config.embedding.model,
        },
        "llm": llm_section,
        "retriever": {
            "top_k": config.retriever.top_k,
            "score_threshold": config.retriever.score_threshold,
            "max_tokens": config.retriever.max_tokens,
            "temperature": config.retriever.temperature,
            "memory_window": config.retriever.memory_window,
            "interpret_dates": config.retriever.interpret_dates,
            "chunk_size_bytes": config.retriever.chunk_size_bytes,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
            "allowed_origins": config.server.allowed_origins,
        },
        "accounts": {
            "trial_days": config.accounts.trial_days,
            "expired_notice": config.accounts.expired_notice,
        },
        "env": config.env,
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Holds API keys
    CONFIG_PATH.chmod(0o600)


def ensure_directories() -> None:
    """Create the config and log directories"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
