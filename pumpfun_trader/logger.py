import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import LoggingSettings, get_settings

QUIET_LOGGERS = ("aiohttp", "httpx", "httpcore", "asyncio")


class ApplicationLogger:
    def __init__(self, settings: LoggingSettings):
        self.settings = settings
        self.logger: Optional[logging.Logger] = None

    def setup(self) -> logging.Logger:
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, self.settings.level.value))

        root_logger.handlers.clear()

        file_formatter = logging.Formatter(
            self.settings.format,
            datefmt=self.settings.date_format
        )
        console_formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(message)s",
            datefmt="%H:%M:%S"
        )

        if self.settings.file_enabled:
            log_path = self.settings.file_path
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=self.settings.file_max_bytes,
                backupCount=self.settings.file_backup_count,
                encoding="utf-8"
            )
            file_handler.setFormatter(file_formatter)
            file_handler.setLevel(logging.DEBUG)
            root_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(console_formatter)
        console_handler.setLevel(getattr(logging, self.settings.level.value))
        root_logger.addHandler(console_handler)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        self.logger = logging.getLogger("pumpfun_trader")
        return self.logger


def setup_logging(settings: Optional[LoggingSettings] = None) -> logging.Logger:
    """Install stdout (and optionally rotating file) handlers on the root logger."""
    return ApplicationLogger(settings or get_settings().logging).setup()


__all__ = [
    "ApplicationLogger",
    "setup_logging",
]
