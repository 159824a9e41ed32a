"""
Logging configuration
"""
from typing import Iterable, Optional
import sys

from loguru import logger

from app.config import Settings, get_settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
REDACTED = "***"


def _redactor(secrets: Iterable[str]):
    """loguru patcher masking configured API keys in every message"""
    secrets = [s for s in secrets if s]

    def patch(record):
        for secret in secrets:
            if secret in record["message"]:
                record["message"] = record["message"].replace(secret, REDACTED)

    return patch


def setup_logger(settings: Optional[Settings] = None):
    """Configure logger from settings; safe to call again after settings change"""
    settings = settings or get_settings()
    logger.remove()
    logger.configure(patcher=_redactor([settings.klaviyo_api_key, settings.triple_whale_api_key]))

    logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=settings.log_level)

    if not settings.log_to_file:
        return logger

    logger.add(
        f"{settings.log_dir}/dashboard_{{time:YYYY-MM-DD}}.log",
        rotation="00:00",
        retention="30 days",
        compression="zip",
        level="INFO"
    )
    logger.add(
        f"{settings.log_dir}/errors_{{time:YYYY-MM-DD}}.log",
        rotation="00:00",
        retention="90 days",
        level="ERROR"
    )

    return logger


log = setup_logger()
