"""
Exception classes for dnsspy
"""


class DnsSpyError(Exception):
    """Base class for all dnsspy errors"""
    pass


class ValidationError(DnsSpyError):
    """Raised when a tail request is malformed (bad pattern, inverted time range)"""
    pass


class QueryError(DnsSpyError):
    """Base class for errors returned by the log query service"""

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.error_code = error_code


class TransientQueryError(QueryError):
    """Throttling or a retryable fault; the same query may be retried"""
    pass


class FatalQueryError(QueryError):
    """Errors that should not be retried (e.g., missing log group, access denied)"""
    pass


class ConsumerDisconnected(DnsSpyError):
    """Raised by an output sink when nobody is reading the stream anymore"""
    pass


class ProvisioningError(DnsSpyError):
    """Raised when the log group or resolver query log cannot be set up"""
    pass
