"""Entry point for the Gmail OAuth web server."""

from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv

from gmail_oauth.config import Settings
from gmail_oauth.utils.encryption import key_from_hex
from gmail_oauth.utils.errors import ValidationError


def configure_logging(level: str = "INFO") -> None:
    """Configure logging to stderr.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL); unknown
            names fall back to INFO.
    """
    log_level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    # Reduce noise from Google libraries
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)
    logging.getLogger("google.auth").setLevel(logging.WARNING)


def validate_environment(settings: Settings) -> bool:
    """Check that every required value is present and well formed.

    Returns:
        True if the server can start, False otherwise.
    """
    logger = logging.getLogger(__name__)

    missing = settings.missing()
    if missing:
        logger.error("Missing required environment variables: %s", ", ".join(missing))
        return False

    # TOKEN_ENCRYPTION_KEY must be 64 hex chars (256 bits)
    try:
        key_from_hex(settings.token_encryption_key or "")
    except ValidationError as e:
        logger.error("TOKEN_ENCRYPTION_KEY is invalid: %s", e.message)
        return False

    return True


def main() -> None:
    """Load configuration, validate it and serve the app with uvicorn."""
    load_dotenv()

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    if not validate_environment(settings):
        logger.error("Environment validation failed. Exiting.")
        sys.exit(1)

    import uvicorn

    from gmail_oauth.web.app import create_app

    logger.info("Starting Gmail OAuth server on %s:%d", settings.host, settings.port)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
