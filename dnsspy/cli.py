#!/usr/bin/env python3
"""
Spy on DNS requests for your EC2 instances in (almost) real-time
"""

import argparse
import logging
import signal
import sys
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import boto3

from dnsspy.config import Settings
from dnsspy.errors import ConsumerDisconnected, FatalQueryError, ProvisioningError, ValidationError
from dnsspy.models.request import TailRequest
from dnsspy.services.provisioning import Provisioner
from dnsspy.services.query_client import CloudWatchLogsQueryClient
from dnsspy.tail.engine import TailEngine
from dnsspy.tail.rate_limiter import TickerRateLimiter
from dnsspy.utils.logger import setup_logging
from dnsspy.utils.output import OUTPUT_FORMATS, make_sink

logger = logging.getLogger(__name__)


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dnsspy',
        description='Spy on DNS requests for your EC2 instances in (almost) real-time'
    )
    parser.add_argument('-i', '--instance-id', required=True, help='EC2 Instance ID')
    parser.add_argument('-l', '--log-group-name', default=settings.log_group_name,
                        help=f'Cloudwatch log group name to log DNS requests (default: {settings.log_group_name})')
    parser.add_argument('-r', '--resolver-query-log-name', default=settings.resolver_query_log_name,
                        help=f'Name to give the Route53 Resolver query log (default: {settings.resolver_query_log_name})')
    parser.add_argument('-o', '--output', choices=OUTPUT_FORMATS, default='default',
                        help="Output format. 'default' or 'json'")
    parser.add_argument('--rm', action='store_true',
                        help='Remove the dnsspy AWS resources this run created when shutting down')
    parser.add_argument('--no-setup', action='store_true',
                        help='Assume the log group and resolver query log already exist')
    parser.add_argument('--since', type=float, default=0,
                        help='Start this many seconds in the past (default: now)')
    parser.add_argument('--no-follow', action='store_true',
                        help='Print what has been logged so far and exit')
    parser.add_argument('--stream', default=None, help='Only read log streams with this prefix')
    parser.add_argument('--grep', default=None,
                        help='Only show records matching this pattern (default: the instance ID)')
    parser.add_argument('--grep-v', default=None, help='Hide records matching this pattern')
    parser.add_argument('--push-down', action='store_true',
                        help='Also send a plain-text --grep pattern to CloudWatch as a filter pattern')
    parser.add_argument('--interval', type=float, default=settings.poll_interval,
                        help=f'Seconds between CloudWatch queries (default: {settings.poll_interval})')
    parser.add_argument('--region', default=settings.region, help='AWS region')
    parser.add_argument('--log-level', default=None, help='DEBUG, INFO, WARNING or ERROR (default: $LOG_LEVEL or WARNING)')
    return parser


def build_request(args: argparse.Namespace, settings: Settings) -> TailRequest:
    """
    Translate command-line arguments into a tail request

    Raises:
        ValidationError: If the resulting request is invalid
    """
    start_time = datetime.now(timezone.utc) - timedelta(seconds=args.since)
    include_pattern = args.grep if args.grep is not None else args.instance_id

    return TailRequest.create(
        source=args.log_group_name,
        stream_hint=args.stream,
        start_time=start_time,
        follow=not args.no_follow,
        include_pattern=include_pattern,
        exclude_pattern=args.grep_v,
        poll_interval=args.interval,
        overlap=settings.overlap_seconds,
        max_retries=settings.max_retries,
    )


def run(argv: Optional[List[str]] = None, session=None) -> int:
    """
    Set up query logging, tail it and optionally clean up

    Returns:
        Process exit code
    """
    settings = Settings.from_env()
    args = build_parser(settings).parse_args(argv)
    setup_logging(args.log_level.upper() if args.log_level else None)

    if session is None:
        session = boto3.Session(region_name=args.region)
    provisioner = Provisioner(session=session, region=args.region)

    try:
        request = build_request(args, settings)
    except ValidationError as e:
        print(str(e), file=sys.stderr)
        return 1

    resources = None
    if not args.no_setup:
        try:
            resources = provisioner.setup(
                args.instance_id,
                args.log_group_name,
                args.resolver_query_log_name,
                settings.retention_days,
            )
        except ProvisioningError as e:
            print(f"Setup failed: {str(e)}", file=sys.stderr)
            return 1

    query_client = CloudWatchLogsQueryClient(session=session, region=args.region)
    limiter = TickerRateLimiter(request.poll_interval)
    engine = TailEngine(request, query_client, limiter, push_down=args.push_down)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        engine.stop()

    previous_handlers = {
        signum: signal.signal(signum, handle_signal) for signum in (signal.SIGINT, signal.SIGTERM)
    }

    exit_code = 0
    try:
        engine.run(make_sink(args.output))
    except ConsumerDisconnected:
        logger.info("Output closed before the first record")
    except FatalQueryError as e:
        print(f"Tail failed: {str(e)}", file=sys.stderr)
        exit_code = 1
    finally:
        limiter.close()
        for signum, handler in previous_handlers.items():
            if handler is not None:
                signal.signal(signum, handler)
        if args.rm and resources is not None:
            try:
                provisioner.teardown(resources)
            except ProvisioningError as e:
                print(f"Teardown failed: {str(e)}", file=sys.stderr)
                exit_code = 1

    return exit_code


def main():
    """
    Main entry point for the dnsspy command
    """
    sys.exit(run())


if __name__ == '__main__':
    main()
