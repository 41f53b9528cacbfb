"""
Configuration defaults for dnsspy

Every default can be overridden through the environment, the CLI flags take
precedence over both.
"""

import os
from dataclasses import dataclass

DEFAULT_LOG_GROUP_NAME = '/ec2/dnsspy'
DEFAULT_RESOLVER_QUERY_LOG_NAME = 'ec2-dnsspy'
DEFAULT_RETENTION_DAYS = 1
DEFAULT_POLL_INTERVAL = 0.25
DEFAULT_OVERLAP_SECONDS = 2.0
DEFAULT_MAX_RETRIES = 3


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for one dnsspy run"""
    log_group_name: str = DEFAULT_LOG_GROUP_NAME
    resolver_query_log_name: str = DEFAULT_RESOLVER_QUERY_LOG_NAME
    retention_days: int = DEFAULT_RETENTION_DAYS
    poll_interval: float = DEFAULT_POLL_INTERVAL
    overlap_seconds: float = DEFAULT_OVERLAP_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    region: str = None

    @classmethod
    def from_env(cls, environ=None) -> 'Settings':
        """
        Build settings from environment variables

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings instance with defaults applied for unset variables
        """
        if environ is None:
            environ = os.environ

        return cls(
            log_group_name=environ.get('DNSSPY_LOG_GROUP_NAME', DEFAULT_LOG_GROUP_NAME),
            resolver_query_log_name=environ.get('DNSSPY_RESOLVER_QUERY_LOG_NAME', DEFAULT_RESOLVER_QUERY_LOG_NAME),
            retention_days=int(environ.get('DNSSPY_RETENTION_DAYS', str(DEFAULT_RETENTION_DAYS))),
            poll_interval=float(environ.get('DNSSPY_POLL_INTERVAL', str(DEFAULT_POLL_INTERVAL))),
            overlap_seconds=float(environ.get('DNSSPY_OVERLAP_SECONDS', str(DEFAULT_OVERLAP_SECONDS))),
            max_retries=int(environ.get('DNSSPY_MAX_RETRIES', str(DEFAULT_MAX_RETRIES))),
            region=environ.get('AWS_REGION'),
        )
