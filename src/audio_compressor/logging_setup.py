import logging

from .settings import LoggingSettings


def setup_logging(config: LoggingSettings) -> logging.Logger:
    """
    Sets up the root logger based on the provided configuration.
    """
    logging.basicConfig(level=config.level, format=config.format)

    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.setFormatter(logging.Formatter(config.format))
        logging.getLogger().addHandler(file_handler)

    return logging.getLogger("audio_compressor")
