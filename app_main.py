"""Application entry point for the Crosspoint server."""

from __future__ import annotations

import sys

from crosspoint.core.config import load_settings
from crosspoint.core.errors import ConfigurationError
from crosspoint.core.quiz_bank import DEFAULT_QUIZ_BANK, QuizBank
from crosspoint.core.quiz_importer import QuizImportError, load_quiz_bank_from_file
from crosspoint.core.session_registry import build_session_registry
from crosspoint.server.api_server import run_api_server
from crosspoint.utils.logging_config import configure_logging


def main() -> None:
    """Initialize logging, validate settings, and serve the web app."""
    logger = configure_logging()
    logger.info("Starting Crosspoint...")

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        logger.error("%s", exc)
        sys.exit(2)

    quiz_bank: QuizBank = DEFAULT_QUIZ_BANK
    if settings.quiz_bank_path is not None:
        try:
            imported = load_quiz_bank_from_file(settings.quiz_bank_path)
        except (OSError, QuizImportError) as exc:
            logger.error("Could not load quiz bank from %s: %s", settings.quiz_bank_path, exc)
            sys.exit(2)
        quiz_bank = imported.bank
        logger.info("Loaded %d quiz categories from %s", len(quiz_bank), imported.source_path)

    registry = build_session_registry(settings, quiz_bank=quiz_bank)
    logger.info(
        "Serving namespace %s at http://%s:%d/", settings.namespace, settings.host, settings.port
    )
    run_api_server(registry, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
