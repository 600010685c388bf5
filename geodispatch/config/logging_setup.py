"""
Configurable logging setup for the dispatch API.

Loads the logging configuration from a YAML file.
"""
import logging
import logging.config
import re
from pathlib import Path

import yaml

# Query parameters that carry provider credentials
_SECRET_PARAM = re.compile(r"((?:key|access_token|apiKey)=)[^&\s'\"]+", re.IGNORECASE)


def redact(text: str) -> str:
    """Mask credential query values in a string."""
    return _SECRET_PARAM.sub(r"\1***", text)


class CredentialRedactionFilter(logging.Filter):
    """Masks provider credentials in URLs before a record is emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(config_path: str = None, default_level: int = logging.INFO):
    """
    Configure logging from a YAML file.

    Args:
        config_path: Path to the YAML configuration.
                     If None, uses geodispatch/config/logging_config.yaml
        default_level: Level used when the configuration cannot be loaded
    """
    if config_path is None:
        config_path = Path(__file__).parent / "logging_config.yaml"

    config_path = Path(config_path)

    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)

            logging.config.dictConfig(config)

            logger = logging.getLogger(__name__)
            logger.info(f"Logging configured from: {config_path}")

        except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
            _basic_config(default_level)
            logging.error(f"Error loading logging configuration: {e}")
            logging.warning("Using default logging configuration")
    else:
        _basic_config(default_level)
        logging.warning(f"Logging configuration not found: {config_path}")
        logging.info("Using default logging configuration")


def _basic_config(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    redaction = CredentialRedactionFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(redaction)
    logging.getLogger("httpx").setLevel(logging.WARNING)
