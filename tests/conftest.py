"""
Test configuration and fixtures for unit tests
"""
import json
import os
import sys
from datetime import datetime, timezone

import pytest
from moto import mock_aws

# Make the tests.utils helpers importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from dnsspy.models.request import to_epoch_ms

# Fixed session start used across engine tests
SESSION_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
SESSION_START_MS = to_epoch_ms(SESSION_START)


@pytest.fixture
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ['AWS_ACCESS_KEY_ID'] = 'testing'
    os.environ['AWS_SECRET_ACCESS_KEY'] = 'testing'
    os.environ['AWS_SECURITY_TOKEN'] = 'testing'
    os.environ['AWS_SESSION_TOKEN'] = 'testing'
    os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'


@pytest.fixture
def mock_aws_services(aws_credentials):
    """Mock all AWS services."""
    with mock_aws():
        yield


@pytest.fixture
def environment_variables():
    """Set up test environment variables."""
    test_env = {
        'DNSSPY_LOG_GROUP_NAME': '/test/dnsspy',
        'DNSSPY_RESOLVER_QUERY_LOG_NAME': 'test-dnsspy',
        'DNSSPY_POLL_INTERVAL': '0.01',
        'DNSSPY_MAX_RETRIES': '2',
        'AWS_REGION': 'us-east-1',
    }

    # Store original values
    original_env = {}
    for key, value in test_env.items():
        original_env[key] = os.environ.get(key)
        os.environ[key] = value

    yield test_env

    # Restore original values
    for key, value in original_env.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


@pytest.fixture
def session_start():
    return SESSION_START


@pytest.fixture
def session_start_ms():
    return SESSION_START_MS


@pytest.fixture
def sample_dns_query():
    """Route53 Resolver query log entry as delivered to CloudWatch Logs"""
    return {
        "version": "1.100000",
        "account_id": "123456789012",
        "region": "us-east-1",
        "vpc_id": "vpc-0abc1234def567890",
        "query_timestamp": "2024-01-01T12:00:05Z",
        "query_name": "example.com.",
        "query_type": "A",
        "query_class": "IN",
        "rcode": "NOERROR",
        "answers": [
            {"Rdata": "93.184.216.34", "Type": "A", "Class": "IN"}
        ],
        "srcaddr": "10.0.1.15",
        "srcport": "53422",
        "transport": "UDP",
        "srcids": {"instance": "i-0123456789abcdef0"}
    }


@pytest.fixture
def sample_dns_message(sample_dns_query):
    return json.dumps(sample_dns_query)
