"""
CloudWatch Logs query service used by the tail engine
"""

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, ConnectionClosedError, ReadTimeoutError
from botocore.exceptions import ConnectionError as BotoConnectionError

from dnsspy.errors import FatalQueryError, TransientQueryError
from dnsspy.models.records import QueryPage, RawRecord

logger = logging.getLogger(__name__)

# Error codes worth retrying with the same window and token
RETRYABLE_ERROR_CODES = {
    'ThrottlingException',
    'Throttling',
    'ServiceUnavailableException',
    'ServiceUnavailable',
    'RequestLimitExceeded',
    'InternalFailure',
    'LimitExceededException',
}


class CloudWatchLogsQueryClient:
    """
    Paginated, time-ranged FilterLogEvents queries against one region.

    Failures are translated at this boundary: throttling and transient faults
    raise TransientQueryError, everything else raises FatalQueryError.
    """

    def __init__(self, logs_client=None, region: str = None, page_limit: int = None, session=None):
        """
        Initialize the query client

        Args:
            logs_client: Existing boto3 'logs' client (created lazily if omitted)
            region: AWS region for the lazily created client
            page_limit: Maximum number of events per page (service default if omitted)
            session: boto3 Session for the lazily created client
        """
        self.region = region
        self.page_limit = page_limit
        self.session = session
        self._logs_client = logs_client

    @property
    def logs_client(self):
        """Lazy initialization of the CloudWatch Logs client"""
        if self._logs_client is None:
            if self.session is not None:
                self._logs_client = self.session.client('logs', region_name=self.region)
            else:
                self._logs_client = boto3.client('logs', region_name=self.region)
        return self._logs_client

    def query(
        self,
        source: str,
        stream_hint: Optional[str],
        range_start: int,
        range_end: Optional[int],
        next_token: Optional[str] = None,
        filter_pattern: Optional[str] = None,
    ) -> QueryPage:
        """
        Fetch one page of events in [range_start, range_end)

        Args:
            source: Log group name
            stream_hint: Log stream name prefix, or None for all streams
            range_start: Inclusive lower bound in epoch milliseconds
            range_end: Exclusive upper bound in epoch milliseconds, None for open-ended
            next_token: Continuation token from the previous page
            filter_pattern: CloudWatch filter pattern pushed down to the service

        Returns:
            QueryPage with records in service order and the next token, if any

        Raises:
            TransientQueryError: Throttling or a retryable fault
            FatalQueryError: Bad request, access denied, log group not found, missing credentials
        """
        params: Dict[str, Any] = {
            'logGroupName': source,
            'startTime': range_start,
        }
        if range_end is not None:
            params['endTime'] = range_end
        if stream_hint:
            params['logStreamNamePrefix'] = stream_hint
        if next_token:
            params['nextToken'] = next_token
        if filter_pattern:
            params['filterPattern'] = filter_pattern
        if self.page_limit:
            params['limit'] = self.page_limit

        try:
            response = self.logs_client.filter_log_events(**params)
        except ClientError as e:
            error_code = e.response['Error']['Code']
            message = e.response['Error'].get('Message', str(e))
            if error_code in RETRYABLE_ERROR_CODES:
                logger.warning(f"Retryable error querying log group {source}: {error_code}")
                raise TransientQueryError(f"{error_code}: {message}", error_code=error_code) from e
            logger.error(f"CloudWatch Logs API error querying log group {source}: {error_code}")
            raise FatalQueryError(f"{error_code}: {message}", error_code=error_code) from e
        except (BotoConnectionError, ConnectionClosedError, ReadTimeoutError) as e:
            # Endpoint, proxy and connect-timeout failures all derive from ConnectionError
            logger.warning(f"Connection error querying log group {source}: {str(e)}")
            raise TransientQueryError(f"Connection error: {str(e)}") from e
        except BotoCoreError as e:
            logger.error(f"botocore error querying log group {source}: {str(e)}")
            raise FatalQueryError(f"{type(e).__name__}: {str(e)}", error_code=type(e).__name__) from e

        records = [RawRecord.from_event(event) for event in response.get('events', [])]
        token = response.get('nextToken') or None
        logger.debug(f"Fetched {len(records)} events from {source} [{range_start}, {range_end}), more={token is not None}")
        return QueryPage(records=records, next_token=token)
