import json
import logging
import os
from logging.handlers import RotatingFileHandler

from config import Config

# Create logs directory if it doesn't exist
LOG_DIR = Config.LOG_DIR
if not os.path.exists(LOG_DIR):
    try:
        os.makedirs(LOG_DIR)
    except OSError:
        LOG_DIR = '.'  # Fall back to current directory

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class JsonFormatter(logging.Formatter):
    """Outputs log records as single-line JSON objects."""

    def format(self, record):
        log_entry = {
            "timestamp": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "filename": record.filename,
            "lineno": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def _rotating_handler(filename, level, max_bytes, backups, formatter):
    try:
        handler = RotatingFileHandler(
            os.path.join(LOG_DIR, filename),
            maxBytes=max_bytes,
            backupCount=backups
        )
    except OSError:
        return None
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(log_format=None):
    """Attach console, rotating file and error-only handlers to the root logger.

    Safe to call more than once; handlers are only attached the first time.
    """
    root_logger = logging.getLogger()
    if getattr(root_logger, '_service_master_configured', False):
        return logging.getLogger('service_master')

    log_format = (log_format or Config.LOG_FORMAT or 'text').lower()
    formatter = JsonFormatter() if log_format == 'json' else logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # Console handler (always enabled)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # 5MB main log, 2MB error-only log
    for handler in (
        _rotating_handler('service_master.log', logging.DEBUG, 5 * 1024 * 1024, 5, formatter),
        _rotating_handler('errors.log', logging.ERROR, 2 * 1024 * 1024, 3, formatter),
    ):
        if handler:
            root_logger.addHandler(handler)

    root_logger.setLevel(logging.DEBUG)
    root_logger._service_master_configured = True

    # Reduce noise from third-party libraries
    logging.getLogger('werkzeug').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    logger = logging.getLogger('service_master')
    logger.info("Service master logging initialized")
    return logger
