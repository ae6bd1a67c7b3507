import logging
import sys


def setup_logging(level: int = logging.INFO) -> None:
    """Console logging for the gatekeeper service."""

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(
            '%(asctime)s | %(name)s | %(levelname)s | %(message)s',
            datefmt='%H:%M:%S'
        )
    )

    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # Silence noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    # Per-stage flight recorder lines are only useful when debugging a session
    logging.getLogger("gatekeeper.logging.flight_recorder").setLevel(logging.WARNING)
    logging.getLogger("gatekeeper").setLevel(level)


if __name__ == "__main__":
    setup_logging()
