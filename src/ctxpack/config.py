"""Configuration management for ctxpack."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from ctxpack.exceptions import ConfigError

CTXPACK_DIR = ".ctxpack"
CONFIG_FILE = "config.json"
STORE_FILE = "store.json"


class ChunkingConfig(BaseModel):
    """Chunker configuration."""

    chunk_size_tokens: int = 768
    chunk_overlap_tokens: int = 80
    mode: Literal["sentence", "token"] = "sentence"
    single_chunk_tokens: int = 1024  # Documents this small stay whole
    encoding: str | None = "cl100k_base"  # tiktoken encoding; None uses the length heuristic


class EmbeddingConfig(BaseModel):
    """Embedding provider configuration."""

    provider: str = "hashing"
    model: str = "text-embedding-3-small"
    dimension: int = 256  # Only used by the hashing provider
    api_key_env: str = ""
    base_url: str | None = None
    batch_size: int = 64

    @property
    def api_key(self) -> str | None:
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        env_map = {
            "openai": "OPENAI_API_KEY",
            "ollama": "OLLAMA_API_KEY",
        }
        env_var = env_map.get(self.provider, "")
        return os.environ.get(env_var) if env_var else None


class RetrievalConfig(BaseModel):
    """Search and assembly defaults."""

    k: int = 32
    num_ctx: int = 8192
    context_share: float = 0.45
    per_file_limit: int = 3
    prompt_reserve: int = 300
    safety_margin_pct: float = 0.05
    page_k: int = 24
    page_max_tokens: int = 2048
    query: str = (
        "what is this project, its core purpose, technical approach, "
        "and standout capability"
    )


class ReaderConfig(BaseModel):
    """Directory reader configuration."""

    exclude_patterns: list[str] = Field(
        default_factory=lambda: [
            "node_modules",
            "__pycache__",
            ".git",
            ".hg",
            ".svn",
            ".idea",
            ".vscode",
            ".ctxpack",
            "dist",
            "build",
            "out",
            "target",
            ".next",
            ".cache",
            ".venv",
            "venv",
            "env",
            "coverage",
            "logs",
            "*.min.js",
            "*.min.css",
            "*.map",
            "*.lock",
            "package-lock.json",
            "yarn.lock",
        ]
    )
    max_file_size_kb: int = 500


class ProjectConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    root_path: str = "."
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    reader: ReaderConfig = Field(default_factory=ReaderConfig)


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .ctxpack directory."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / CTXPACK_DIR).is_dir():
            return current
        current = current.parent
    if (current / CTXPACK_DIR).is_dir():
        return current
    return None


def get_ctxpack_dir(root: Path) -> Path:
    """Get the .ctxpack directory for a project root."""
    return root / CTXPACK_DIR


def get_store_path(root: Path) -> Path:
    """Path of the vector store snapshot for a project root."""
    return get_ctxpack_dir(root) / STORE_FILE


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .ctxpack/config.json."""
    config_path = get_ctxpack_dir(root) / CONFIG_FILE
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
            return ProjectConfig(**data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e
    return ProjectConfig(name=root.name, root_path=str(root))


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .ctxpack/config.json."""
    cp_dir = get_ctxpack_dir(root)
    cp_dir.mkdir(parents=True, exist_ok=True)
    config_path = cp_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(), indent=2))


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'embedding.provider')."""
    parts = key.split(".")
    data = config.model_dump()
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    try:
        return ProjectConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid value for {key}: {e}") from e
