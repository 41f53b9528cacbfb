"""
Log records returned by the query service and the DNS payload they carry
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawRecord:
    """One log event as returned by FilterLogEvents"""
    event_id: str
    timestamp: int
    message: str
    log_stream_name: Optional[str] = None
    ingestion_time: Optional[int] = None

    @classmethod
    def from_event(cls, event: Dict[str, Any]) -> 'RawRecord':
        """Convert a FilterLogEvents event dictionary"""
        return cls(
            event_id=event['eventId'],
            timestamp=int(event['timestamp']),
            message=event.get('message', ''),
            log_stream_name=event.get('logStreamName'),
            ingestion_time=event.get('ingestionTime'),
        )


@dataclass(frozen=True)
class QueryPage:
    """One page of a FilterLogEvents response"""
    records: List[RawRecord]
    next_token: Optional[str] = None


class DNSAnswer(BaseModel):
    rdata: str = Field(default='', alias='Rdata')
    type: str = Field(default='', alias='Type')
    dns_class: str = Field(default='', alias='Class')


class SourceIds(BaseModel):
    instance: str = ''


class DNSQuery(BaseModel):
    """
    Route53 Resolver query log entry

    Parsing record bodies is left to the consumer; the tail engine only ever
    looks at the raw message text.
    """
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    version: str = ''
    account_id: str = ''
    region: str = ''
    vpc_id: str = ''
    query_timestamp: str = ''
    query_name: str
    query_type: str = ''
    query_class: str = ''
    rcode: str = ''
    answers: List[DNSAnswer] = Field(default_factory=list)
    srcaddr: str = ''
    srcport: str = ''
    transport: str = ''
    srcids: SourceIds = Field(default_factory=SourceIds)

    @classmethod
    def from_message(cls, message: str) -> Optional['DNSQuery']:
        """
        Parse a record body into a DNSQuery

        Returns:
            DNSQuery, or None when the body is not a resolver query log entry
        """
        try:
            payload = json.loads(message)
        except (json.JSONDecodeError, TypeError):
            return None

        if not isinstance(payload, dict):
            return None

        try:
            return cls.model_validate(payload)
        except PydanticValidationError as e:
            logger.debug(f"Message is not a resolver query log entry: {e.error_count()} validation errors")
            return None
