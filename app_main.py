"""Application entry point: serve the development quiz API."""

from __future__ import annotations

import asyncio

from quiz_client.constants.about import APP_NAME, APP_VERSION
from quiz_client.constants.network_constants import DEV_API_PREFIX, DEV_SERVER_HOST, DEV_SERVER_PORT
from quiz_client.core.quiz_manager import QuizManager
from quiz_client.server.dev_api_server import DevQuizBackend, start_dev_api_server
from quiz_client.utils.logging_config import configure_logging
from quiz_client.utils.settings import ClientSettings


async def _report_pending_attempts(settings: ClientSettings) -> int:
    async with QuizManager(settings) as manager:
        return len(manager.attempt_store.get_all_attempts())


def main() -> None:
    """Initialize logging, start the development API and keep it running."""
    logger = configure_logging()
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    settings = ClientSettings.from_env()
    pending = asyncio.run(_report_pending_attempts(settings))
    if pending:
        logger.info("%d unsubmitted attempt(s) stored in %s", pending, settings.storage_path)

    thread = start_dev_api_server(DevQuizBackend(), host=DEV_SERVER_HOST, port=DEV_SERVER_PORT)
    logger.info("Development API available at http://%s:%d%s", DEV_SERVER_HOST, DEV_SERVER_PORT, DEV_API_PREFIX)
    logger.info("Client configured for %s", settings.api_base_url)
    try:
        thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
