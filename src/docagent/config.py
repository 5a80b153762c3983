# config.py
# Runtime settings and logging setup.
#
# Settings come from the environment (a .env file is honoured) and may be
# overridden by CLI flags in run.py.

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from rich.console import Console
from rich.logging import RichHandler

DEFAULT_MODEL = "anthropic/claude-3.5-haiku"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_CONFIG_DIR = Path("~/.docagent")
PROVIDER_CONFIG_FILE = "mcp.json"


class Settings(BaseModel):
    """Everything the task needs that is not specific to one package."""

    api_key: str | None = None
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    config_dir: Path = DEFAULT_CONFIG_DIR
    max_iterations: int = Field(default=25, ge=1)
    request_timeout: float = Field(default=90.0, gt=0)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        values: dict[str, str] = {}
        for field, variable in (
            ("api_key", "OPENROUTER_API_KEY"),
            ("model", "DOCAGENT_MODEL"),
            ("base_url", "DOCAGENT_BASE_URL"),
            ("config_dir", "DOCAGENT_CONFIG_DIR"),
            ("max_iterations", "DOCAGENT_MAX_ITERATIONS"),
            ("request_timeout", "DOCAGENT_REQUEST_TIMEOUT"),
            ("log_level", "DOCAGENT_LOG_LEVEL"),
        ):
            value = os.getenv(variable)
            if value:
                values[field] = value
        return cls.model_validate(values)

    @property
    def provider_config_path(self) -> Path:
        return self.config_dir.expanduser() / PROVIDER_CONFIG_FILE


def configure_logging(level: str | int = logging.WARNING) -> None:
    """Route all docagent logging to stderr through rich."""
    handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger = logging.getLogger("docagent")
    logger.handlers[:] = [handler]
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    logger.propagate = False

    # The HTTP clients are chatty at INFO.
    for name in ("httpx", "httpcore", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)
