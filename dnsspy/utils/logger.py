"""
Logging configuration for dnsspy
"""

import logging
import os
import sys


def setup_logging(level: str = None) -> logging.Logger:
    """
    Set up logging configuration for the CLI

    Log lines go to stderr; stdout carries the tailed records.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance
    """
    # Get log level from environment or use default
    if level is None:
        level = os.environ.get('LOG_LEVEL', 'WARNING').upper()

    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    # botocore is chatty at DEBUG
    if level != 'DEBUG':
        logging.getLogger('botocore').setLevel(logging.WARNING)

    logger = logging.getLogger('dnsspy')
    logger.setLevel(getattr(logging, level, logging.WARNING))

    return logger

