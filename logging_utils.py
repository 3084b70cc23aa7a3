import json
import logging
import sys


def configure_logging(level: str = "INFO"):
    """
    Plain message format; structured entries are emitted as JSON lines so
    Cloud Logging picks up the severity field.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def log_struct(severity: str, message: str, logger: logging.Logger = None, **fields):
    """
    Logs a JSON payload with a Cloud Logging severity.
    """
    logger = logger or logging.getLogger(__name__)
    log_data = {"severity": severity, "message": message}
    log_data.update(fields)
    level = getattr(logging, severity.upper(), logging.INFO)
    logger.log(level, json.dumps(log_data, ensure_ascii=False, default=str))
