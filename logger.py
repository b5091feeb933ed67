import os
import logging
from logging.handlers import RotatingFileHandler
from config import LOG_DIR, LOG_FILE, LOG_LEVEL

FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

def get_logger(name: str) -> logging.Logger:
    os.makedirs(LOG_DIR, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        handler = RotatingFileHandler(
            os.path.join(LOG_DIR, LOG_FILE),
            maxBytes=5 * 1024 * 1024,   # 5 MB
            backupCount=5,              # keep 5 logs
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(FORMAT))
        logger.addHandler(handler)

        # waitress/console output; file handler above is the durable copy
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(FORMAT))
        logger.addHandler(console)

    return logger
