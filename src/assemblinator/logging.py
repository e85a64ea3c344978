"""Privacy-safe logging configuration for Assemblinator.

By default, voter identifiers (UUIDs) and e-mail addresses are redacted.
Set LOG_SENSITIVE=true to enable full logging for debugging.

Ballot choices are never logged together with a voter identifier.
"""

import logging
import os
import re

import colorlog


def anonymize_voter(voter_id: str) -> str:
    """Anonymize a voter identifier to its first 4 characters.

    Args:
        voter_id: Full voter identifier (usually a UUID)

    Returns:
        First 4 characters followed by "..." (e.g., "a3f2...")
    """
    if not voter_id:
        return "none"
    return f"{voter_id[:4]}..."


def anonymize_email(email: str) -> str:
    """Anonymize an e-mail address, keeping only the domain.

    Args:
        email: Full e-mail address

    Returns:
        "***@" followed by the domain (e.g., "***@example.com")
    """
    if not email or "@" not in email:
        return "***"
    return f"***@{email.rsplit('@', 1)[1]}"


class PrivacyFilter(logging.Filter):
    """Logging filter that redacts sensitive data unless LOG_SENSITIVE=true.

    Redacts:
    - UUIDs (voter, assembly and agenda item ids)
    - E-mail addresses

    Never redacts (always visible):
    - Log levels, timestamps, module names
    - Statuses, counts and other operational data
    """

    UUID_PATTERN = re.compile(r'[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}')
    EMAIL_PATTERN = re.compile(r'[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}')

    def __init__(self, sensitive_logging: bool = False):
        super().__init__()
        self.sensitive_logging = sensitive_logging

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter log record, redacting sensitive data if needed."""
        if self.sensitive_logging:
            return True

        if hasattr(record, 'msg') and isinstance(record.msg, str):
            msg = record.msg
            msg = self.UUID_PATTERN.sub(lambda m: anonymize_voter(m.group(0)), msg)
            msg = self.EMAIL_PATTERN.sub(lambda m: anonymize_email(m.group(0)), msg)
            record.msg = msg

        return True


def setup_logging(
    level: str = None,
    sensitive: bool = None,
    suppress_noisy: bool = True
) -> None:
    """Configure logging with colorlog and privacy filters.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Default from LOG_LEVEL env or INFO.
        sensitive: Enable sensitive data logging. Default from LOG_SENSITIVE env or False.
        suppress_noisy: Suppress noisy library logs (urllib3, sqlalchemy, etc). Default True.
    """
    if level is None:
        level = os.getenv('LOG_LEVEL', 'INFO').upper()
    if sensitive is None:
        sensitive = os.getenv('LOG_SENSITIVE', 'false').lower() in ('true', '1', 'yes')

    handler = colorlog.StreamHandler()
    handler.setFormatter(colorlog.ColoredFormatter(
        '%(log_color)s%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))

    handler.addFilter(PrivacyFilter(sensitive_logging=sensitive))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level, logging.INFO))

    if suppress_noisy:
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('requests').setLevel(logging.WARNING)
        logging.getLogger('sseclient').setLevel(logging.WARNING)
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
        logging.getLogger('fpdf').setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured: level={level}, sensitive={sensitive}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
