import json
import logging
import os
import sys
from logging.config import dictConfig

from aiohttp import web
from pydantic import ValidationError

logger = logging.getLogger(__name__)


def configure_logging() -> bool:
    """
    Configure logging before settings are loaded, so configuration errors are reported.

    Returns:
        True when a LOGGING_CONFIG_FILE was applied, in which case its levels are left alone
    """
    logging_config_file = os.getenv("LOGGING_CONFIG_FILE", "")

    if len(logging_config_file) > 0:
        with open(logging_config_file) as fl:
            dictConfig(json.load(fl))
        return True

    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(logging.INFO)
    return False


def invoke():
    has_logging_config = configure_logging()

    from edu.rit.csh.pings.app.config import Settings
    from edu.rit.csh.pings.app.server import start_web_server

    try:
        settings = Settings()  # type: ignore
    except ValidationError as e:
        logger.critical("Invalid configuration (is DATABASE_URL set?): %s", e)
        sys.exit(1)

    if settings.debug and not has_logging_config:
        logging.getLogger().setLevel(logging.DEBUG)

    # Pool creation happens during application startup, before the listener is bound.
    web.run_app(
        start_web_server(settings),
        host=settings.host,
        port=settings.port,
        access_log=None,
        print=None,
    )


if __name__ == "__main__":
    invoke()
