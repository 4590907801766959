"""
Configuration management for JobTalk.

This module handles environment variables, API keys, and model configurations
using python-dotenv for explicit, project-scoped .env loading. No implicit loading occurs at import time.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from openai import AsyncOpenAI


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


@lru_cache(maxsize=32)
def load_config(env_path: Optional[str] = None, override: bool = False) -> None:
    """Explicitly load environment variables from the given .env file path.

    Notes:
    - This function does NOT perform implicit loading when env_path is None.
    - Callers should pass a project-scoped env path resolved via helpers in this module.
    """
    if env_path:
        load_dotenv(dotenv_path=env_path, override=override)


class Config:
    """Configuration settings for JobTalk."""

    @property
    def openai_api_key(self) -> str:
        """Get OpenAI API key from environment."""
        key = os.getenv("OPENAI_API_KEY")
        if not key:
            raise ConfigError("OPENAI_API_KEY not found in environment. Please set it in your environment or .env file.")
        return key

    @property
    def llm_model(self) -> str:
        """Get the LLM model name used for categorization (default: gpt-4o-mini)."""
        return os.getenv("LLM_MODEL", "gpt-4o-mini")

    @property
    def is_reasoning_model(self) -> bool:
        """Check if the configured model is a reasoning model (default: False)."""
        value = os.getenv("IS_REASONING_MODEL", "false").lower()
        return value in ("true", "1", "yes", "on")

    @property
    def asr_model(self) -> str:
        """Get the model name for ASR (default: whisper-1)."""
        return os.getenv("ASR_MODEL", "whisper-1")

    @property
    def openai_timeout(self) -> int:
        """Get OpenAI API timeout in seconds (default: 60)."""
        return int(os.getenv("OPENAI_TIMEOUT", "60"))

    @property
    def max_retries(self) -> int:
        """Get number of client-level retries for API calls (default: 0, one attempt per action)."""
        return int(os.getenv("MAX_RETRIES", "0"))

    @property
    def default_down_payment(self) -> float:
        """Get the default down payment percentage for proposals (default: 50)."""
        try:
            value = float(os.getenv("JT_DEFAULT_DOWN_PAYMENT", "50"))
        except ValueError:
            return 50.0
        return value if 0.0 <= value <= 100.0 else 50.0

    @property
    def default_terms(self) -> str:
        """Get the default proposal terms text."""
        return os.getenv("JT_DEFAULT_TERMS", "Standard contractor terms apply.")


# Global config instance
config = Config()

# --- Project-scoped environment helpers ---

DEFAULT_ENV_FILENAME = os.getenv("JT_ENV_FILENAME", ".env")
ENV_FILE_ENV_VARS = ("JT_ENV_FILE", "JOBTALK_ENV_FILE")
PROJECT_ROOT_ENV_VARS = ("JT_PROJECT_ROOT", "JOBTALK_PROJECT_ROOT")


def detect_project_root(start_dir: Optional[str] = None) -> Optional[Path]:
    """Detect project root by looking for a .jobtalk directory upwards from start_dir (or CWD)."""
    start = Path(start_dir) if start_dir else Path.cwd()
    for current in [start] + list(start.parents):
        if (current / ".jobtalk").exists():
            return current
    return None


def get_project_metadata_dir(project_root: Optional[str] = None) -> Path:
    """Return the .jobtalk directory for a given or detected project root."""
    root = Path(project_root) if project_root else (detect_project_root() or Path.cwd())
    return root / ".jobtalk"


def get_project_env_path(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME) -> Path:
    """Compute the path to the project-scoped environment file inside .jobtalk."""
    return get_project_metadata_dir(project_root) / filename


def load_project_env(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME, override: bool = False) -> Optional[str]:
    """
    Load a project-scoped environment file, if available.

    Load order (first match wins):
    1) Explicit env file path via JT_ENV_FILE or JOBTALK_ENV_FILE
    2) <project_root>/.jobtalk/<filename> (default: .env)
    3) <cwd>/.env

    Returns the path loaded, or None if nothing was loaded.
    """
    for var in ENV_FILE_ENV_VARS:
        explicit = os.getenv(var)
        if explicit and Path(explicit).is_file():
            load_config(explicit, override=override)
            return explicit

    if project_root is None:
        for var in PROJECT_ROOT_ENV_VARS:
            if os.getenv(var):
                project_root = os.getenv(var)
                break
    if project_root is None:
        detected = detect_project_root()
        project_root = str(detected) if detected else None

    if project_root:
        env_path = get_project_env_path(project_root, filename)
        if env_path.exists():
            load_config(str(env_path), override=override)
            return str(env_path)

    cwd_env = Path.cwd() / filename
    if cwd_env.is_file():
        load_config(str(cwd_env), override=override)
        return str(cwd_env)

    return None


@lru_cache(maxsize=1)
def get_client() -> AsyncOpenAI:
    """
    Get configured async OpenAI client with timeout and retry settings.

    Behavior:
    - If OPENAI_API_KEY is missing, attempts to load a project-scoped env:
      JT_ENV_FILE → <project>/.jobtalk/.env → ./.env

    Returns:
        AsyncOpenAI client instance

    Raises:
        ConfigError: If API key is not configured after project env lookup
    """
    if not os.getenv("OPENAI_API_KEY"):
        loaded_path = load_project_env()
        if not os.getenv("OPENAI_API_KEY"):
            where = loaded_path or f".jobtalk/{DEFAULT_ENV_FILENAME}"
            raise ConfigError(
                f"OPENAI_API_KEY not found in environment. Looked for project env at {where}. "
                f"Set it via environment, JT_ENV_FILE, or place it under .jobtalk/{DEFAULT_ENV_FILENAME}."
            )
    try:
        return AsyncOpenAI(
            api_key=config.openai_api_key,
            timeout=config.openai_timeout,
            max_retries=config.max_retries,
        )
    except Exception as e:
        raise ConfigError(f"Failed to create OpenAI client: {e}")


def validate_config() -> None:
    """
    Validate that all required configuration is present.

    Raises:
        ConfigError: If required configuration is missing
    """
    _ = get_client()
