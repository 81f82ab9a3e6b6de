"""
Logging configuration

Sync runs log through sync_logger(), which binds shop_id and resource_kind so
every line of one run can be grepped out of the daily file.
"""
from loguru import logger
import sys
from shopsync.config import get_settings

settings = get_settings()

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - {extra[context]}<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {extra[context]}{message}"


def setup_logger():
    """Console always; daily sync and error files unless log_to_file is off"""
    logger.remove()
    logger.configure(extra={"context": ""})

    logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=settings.log_level)

    if settings.log_to_file:
        logger.add(
            f"{settings.log_dir}/shopsync_{{time:YYYY-MM-DD}}.log",
            format=FILE_FORMAT,
            rotation="00:00",
            retention="30 days",
            compression="zip",
            level="INFO",
        )
        # Shopee API and reconcile failures, kept longer for support requests
        logger.add(
            f"{settings.log_dir}/errors_{{time:YYYY-MM-DD}}.log",
            format=FILE_FORMAT,
            rotation="00:00",
            retention="90 days",
            level="ERROR",
        )

    return logger


def sync_logger(shop_id: int, resource_kind: str):
    """Logger whose lines are prefixed with [shop_id/resource_kind]"""
    return log.bind(shop_id=shop_id, resource_kind=resource_kind, context=f"[{shop_id}/{resource_kind}] ")


log = setup_logger()
