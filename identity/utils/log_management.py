# identity/utils/log_management.py
import os
import logging
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler


def setup_file_logging(
        logger: logging.Logger,
        log_dir: str = "/app/logs",
        max_bytes: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
        when: str = 'd',
        interval: int = 1
) -> None:
    """
    Attach rotating file handlers to a logger.

    Errors go to a size-rotated ``<service>_error.log``; everything at INFO
    and above goes to a time-rotated ``<service>.log``.

    Args:
        logger: Logger instance
        log_dir: Directory for log files
        max_bytes: Maximum size of the error log before rotation
        backup_count: Number of backup files to keep
        when: Time-based rotation unit ('d' for daily)
        interval: Rotation interval
    """
    os.makedirs(log_dir, exist_ok=True)

    service_name = getattr(logger, '_service_name', logger.name)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    error_handler = RotatingFileHandler(
        os.path.join(log_dir, f"{service_name}_error.log"),
        maxBytes=max_bytes,
        backupCount=backup_count
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)

    general_handler = TimedRotatingFileHandler(
        os.path.join(log_dir, f"{service_name}.log"),
        when=when,
        interval=interval,
        backupCount=backup_count
    )
    general_handler.setLevel(logging.INFO)
    general_handler.setFormatter(formatter)

    logger.addHandler(error_handler)
    logger.addHandler(general_handler)
