"""
Configuration module for Mnemo.

Loads application settings from config.yaml and secrets from environment variables.
"""

import logging
import os
import contextvars
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Context variable for owner ID logging
owner_context = contextvars.ContextVar("owner_id", default=None)


class OwnerLogFilter(logging.Filter):
    """Filter to inject the current owner ID into log records."""
    def filter(self, record):
        owner_id = owner_context.get()
        if owner_id is not None:
            record.owner_info = f" [Owner {owner_id}]"
        else:
            record.owner_info = ""
        return True


# Config file: MNEMO_CONFIG if set, else config.yaml in the working directory
def _config_path() -> Path:
    return Path(os.getenv("MNEMO_CONFIG", "config.yaml"))


def _load_yaml_config() -> dict:
    """Load configuration from YAML file."""
    config_file = _config_path()
    if config_file.exists():
        with open(config_file) as f:
            return yaml.safe_load(f) or {}
    return {}


# Load YAML config once at module import
_yaml_config = _load_yaml_config()


def _get_yaml(section: str, key: str, default=None):
    """Get a value from the YAML config."""
    return _yaml_config.get(section, {}).get(key, default)


@dataclass
class OpenAIConfig:
    """OpenAI API configuration."""
    # Secret from .env
    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    # Setting from YAML
    model: str = field(default_factory=lambda: _get_yaml("llm", "openai_model", "gpt-4o-mini"))


@dataclass
class GoogleConfig:
    """Google Generative AI configuration."""
    # Secret from .env
    api_key: str = field(default_factory=lambda: os.getenv("GOOGLE_API_KEY", ""))
    # Setting from YAML
    model: str = field(default_factory=lambda: _get_yaml("llm", "google_model", "gemini-2.0-flash"))


@dataclass
class AppConfig:
    """Application settings from YAML."""
    # LLM provider used for replies and (optionally) entity extraction
    llm_provider: Literal["openai", "google"] = field(
        default_factory=lambda: _get_yaml("llm", "provider", "openai")
    )

    # Logging
    log_level: str = field(
        default_factory=lambda: _get_yaml("logging", "level", "INFO")
    )


@dataclass
class MemoryConfig:
    """Dual-store memory configuration."""
    record_store: Literal["sqlite", "postgres"] = field(
        default_factory=lambda: _get_yaml("memory", "record_store", "sqlite")
    )
    index_type: Literal["chroma", "pgvector"] = field(
        default_factory=lambda: _get_yaml("memory", "index_type", "chroma")
    )
    embedding_provider: Literal["openai", "google", "local"] = field(
        default_factory=lambda: _get_yaml("memory", "embedding_provider", "openai")
    )
    # Empty = provider default (text-embedding-3-small, text-embedding-004, all-MiniLM-L6-v2)
    embedding_model: str = field(
        default_factory=lambda: _get_yaml("memory", "embedding_model", "")
    )
    # Override embedding dimensions (pgvector indexes are limited to 2000)
    # None = use model's default dimensions
    embedding_dimensions: int | None = field(
        default_factory=lambda: _get_yaml("memory", "embedding_dimensions", None)
    )
    # Seconds before an embedding call counts as unavailable
    embedding_timeout: float = field(
        default_factory=lambda: _get_yaml("memory", "embedding_timeout", 15.0)
    )
    sqlite_path: str = field(
        default_factory=lambda: _get_yaml("memory", "sqlite_path", "mnemo.db")
    )
    chroma_path: str = field(
        default_factory=lambda: _get_yaml("memory", "chroma_path", "./memory_index")
    )
    collection_name: str = field(
        default_factory=lambda: _get_yaml("memory", "collection_name", "owner_memories")
    )
    # Secret from .env (contains credentials)
    postgres_url: str = field(default_factory=lambda: os.getenv("POSTGRES_URL", ""))
    default_limit: int = field(
        default_factory=lambda: _get_yaml("memory", "default_limit", 5)
    )
    max_limit: int = field(
        default_factory=lambda: _get_yaml("memory", "max_limit", 50)
    )
    min_score: float = field(
        default_factory=lambda: _get_yaml("memory", "min_score", 0.0)
    )


@dataclass
class EntityConfig:
    """Entity extraction configuration."""
    extractor: Literal["spacy", "llm", "regex", "none"] = field(
        default_factory=lambda: _get_yaml("entities", "extractor", "spacy")
    )
    spacy_model: str = field(
        default_factory=lambda: _get_yaml("entities", "spacy_model", "en_core_web_sm")
    )


@dataclass
class Config:
    """Main configuration container."""
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    google: GoogleConfig = field(default_factory=GoogleConfig)
    app: AppConfig = field(default_factory=AppConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    entities: EntityConfig = field(default_factory=EntityConfig)

    def setup_logging(self) -> logging.Logger:
        """Configure and return the application logger."""
        # Reset existing handlers to ensure clean configuration
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)

        logging.basicConfig(
            level=getattr(logging, self.app.log_level.upper()),
            format="%(asctime)s - %(name)s - %(levelname)s%(owner_info)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Add filter to the handler created by basicConfig
        for handler in logging.getLogger().handlers:
            handler.addFilter(OwnerLogFilter())

        return logging.getLogger("mnemo")

    def validate(self, require_llm: bool = False) -> list[str]:
        """
        Validate configuration and return list of missing/invalid settings.

        Args:
            require_llm: Also check the LLM provider (needed for chat and
                         LLM entity extraction).

        Returns:
            List of validation error messages, empty if all valid.
        """
        errors = []
        memory = self.memory

        if memory.embedding_provider == "openai" and not self.openai.api_key:
            errors.append("OPENAI_API_KEY is required when using OpenAI embeddings")
        elif memory.embedding_provider == "google" and not self.google.api_key:
            errors.append("GOOGLE_API_KEY is required when using Google embeddings")

        if memory.record_store == "postgres" or memory.index_type == "pgvector":
            if not memory.postgres_url:
                errors.append("POSTGRES_URL is required for the postgres record store or pgvector index")

        if memory.max_limit < 1:
            errors.append(f"memory.max_limit must be positive, got {memory.max_limit}")
        if not 1 <= memory.default_limit <= memory.max_limit:
            errors.append(
                f"memory.default_limit must be between 1 and max_limit ({memory.max_limit}), "
                f"got {memory.default_limit}"
            )
        if not 0.0 <= memory.min_score <= 1.0:
            errors.append(f"memory.min_score must be within [0, 1], got {memory.min_score}")

        if require_llm or self.entities.extractor == "llm":
            if self.app.llm_provider == "openai" and not self.openai.api_key:
                errors.append("OPENAI_API_KEY is required when using the OpenAI LLM provider")
            elif self.app.llm_provider == "google" and not self.google.api_key:
                errors.append("GOOGLE_API_KEY is required when using the Google LLM provider")

        return errors


# Global configuration instance
config = Config()
