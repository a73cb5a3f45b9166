import logging

import config


def setup_logger(name: str = "lecture_player",
                 log_file: str | None = None, level: int | str | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    level = level or getattr(config, "LOG_LEVEL", logging.INFO)
    logger.setLevel(level)

    if not logger.handlers:
        formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')

        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        log_file = log_file or getattr(config, "LOG_FILE", None)
        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
