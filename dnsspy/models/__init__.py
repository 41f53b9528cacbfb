"""
Data model for tail sessions
"""

from .records import DNSQuery, QueryPage, RawRecord
from .request import TailRequest, to_epoch_ms

__all__ = ['DNSQuery', 'QueryPage', 'RawRecord', 'TailRequest', 'to_epoch_ms']
