"""
Unit tests for the dnsspy command line
"""
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from dnsspy.cli import build_parser, build_request, run
from dnsspy.config import Settings
from dnsspy.errors import ProvisioningError
from dnsspy.utils.output import header

INSTANCE_ID = 'i-0123456789abcdef0'


def mock_session(events=None, error=None) -> Mock:
    """boto3 Session whose logs client answers filter_log_events once"""
    logs = Mock()
    if error is not None:
        logs.filter_log_events.side_effect = error
    else:
        logs.filter_log_events.return_value = {'events': events or []}
    session = Mock()
    session.client.return_value = logs
    return session


class TestBuildRequest:
    """Test translation of arguments into a tail request."""

    def parse(self, *argv):
        settings = Settings()
        return build_request(build_parser(settings).parse_args(list(argv)), settings)

    def test_defaults(self):
        request = self.parse('-i', INSTANCE_ID)

        assert request.source == '/ec2/dnsspy'
        assert request.include_pattern == INSTANCE_ID
        assert request.exclude_pattern is None
        assert request.follow is True
        assert request.end_time is None
        assert request.poll_interval == 0.25

    def test_grep_overrides_instance_filter(self):
        request = self.parse('-i', INSTANCE_ID, '--grep', 'amazonaws', '--grep-v', 'NXDOMAIN')

        assert request.include_pattern == 'amazonaws'
        assert request.exclude_pattern == 'NXDOMAIN'

    def test_no_follow_and_stream(self):
        request = self.parse('-i', INSTANCE_ID, '--no-follow', '--stream', 'vpc-0abc', '-l', '/custom/group')

        assert request.follow is False
        assert request.stream_hint == 'vpc-0abc'
        assert request.source == '/custom/group'

    def test_instance_id_required(self):
        with pytest.raises(SystemExit):
            build_parser(Settings()).parse_args([])

    def test_invalid_output_format(self):
        with pytest.raises(SystemExit):
            build_parser(Settings()).parse_args(['-i', INSTANCE_ID, '-o', 'yaml'])


class TestRun:
    """Test the full command against a mocked AWS session."""

    def test_no_setup_prints_matching_rows(self, environment_variables, sample_dns_message, capsys):
        session = mock_session([
            {'eventId': 'e1', 'timestamp': 1000, 'message': sample_dns_message},
            {'eventId': 'e2', 'timestamp': 1001, 'message': 'noise from another instance'},
        ])

        exit_code = run(['-i', INSTANCE_ID, '--no-setup', '--no-follow', '--interval', '0.01'], session=session)

        assert exit_code == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == header()
        assert lines[1].split() == ['A', 'example.com.', '2024-01-01T12:00:05Z']
        assert len(lines) == 2
        kwargs = session.client.return_value.filter_log_events.call_args.kwargs
        assert kwargs['logGroupName'] == '/test/dnsspy'

    def test_json_output(self, environment_variables, sample_dns_message, capsys):
        session = mock_session([{'eventId': 'e1', 'timestamp': 1000, 'message': sample_dns_message}])

        exit_code = run(['-i', INSTANCE_ID, '--no-setup', '--no-follow', '-o', 'json'], session=session)

        assert exit_code == 0
        assert capsys.readouterr().out == sample_dns_message + '\n'

    @patch('dnsspy.cli.Provisioner')
    def test_setup_and_teardown(self, mock_provisioner_class, environment_variables):
        provisioner = mock_provisioner_class.return_value
        session = mock_session()

        exit_code = run(['-i', INSTANCE_ID, '--no-follow', '--rm'], session=session)

        assert exit_code == 0
        provisioner.setup.assert_called_once_with(INSTANCE_ID, '/test/dnsspy', 'test-dnsspy', 1)
        provisioner.teardown.assert_called_once_with(provisioner.setup.return_value)

    @patch('dnsspy.cli.Provisioner')
    def test_no_teardown_without_rm(self, mock_provisioner_class, environment_variables):
        provisioner = mock_provisioner_class.return_value

        exit_code = run(['-i', INSTANCE_ID, '--no-follow'], session=mock_session())

        assert exit_code == 0
        provisioner.setup.assert_called_once()
        provisioner.teardown.assert_not_called()

    @patch('dnsspy.cli.Provisioner')
    def test_setup_failure(self, mock_provisioner_class, environment_variables, capsys):
        mock_provisioner_class.return_value.setup.side_effect = ProvisioningError(
            f"Instance {INSTANCE_ID} is not active in a VPC")
        session = mock_session()

        exit_code = run(['-i', INSTANCE_ID, '--no-follow'], session=session)

        assert exit_code == 1
        assert 'Setup failed' in capsys.readouterr().err
        session.client.return_value.filter_log_events.assert_not_called()

    def test_setup_without_credentials(self, environment_variables, capsys):
        session = mock_session()
        session.client.return_value.describe_instances.side_effect = NoCredentialsError()

        exit_code = run(['-i', INSTANCE_ID, '--no-follow'], session=session)

        assert exit_code == 1
        assert 'Setup failed' in capsys.readouterr().err
        session.client.return_value.filter_log_events.assert_not_called()

    def test_tail_without_credentials(self, environment_variables, capsys):
        exit_code = run(['-i', INSTANCE_ID, '--no-setup', '--no-follow'],
                        session=mock_session(error=NoCredentialsError()))

        assert exit_code == 1
        assert 'Tail failed: NoCredentialsError' in capsys.readouterr().err

    def test_query_failure(self, environment_variables, capsys):
        error = ClientError(
            {'Error': {'Code': 'ResourceNotFoundException', 'Message': 'The specified log group does not exist.'}},
            'FilterLogEvents'
        )

        exit_code = run(['-i', INSTANCE_ID, '--no-setup', '--no-follow'], session=mock_session(error=error))

        assert exit_code == 1
        assert 'Tail failed' in capsys.readouterr().err

    def test_invalid_pattern(self, environment_variables, capsys):
        exit_code = run(['-i', INSTANCE_ID, '--no-setup', '--grep', '('], session=mock_session())

        assert exit_code == 1
        assert 'Invalid tail request' in capsys.readouterr().err
