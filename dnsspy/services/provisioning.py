"""
Provisioning of the CloudWatch log group and Route53 Resolver query log that
feed the tail engine
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from dnsspy.config import DEFAULT_RETENTION_DAYS
from dnsspy.errors import ProvisioningError

logger = logging.getLogger(__name__)

NOT_FOUND_ERROR_CODES = {'ResourceNotFoundException', 'ResourceNotFound'}

# How long teardown waits for a query log association to finish deleting
DISASSOCIATION_TIMEOUT = 120.0
DISASSOCIATION_POLL_INTERVAL = 2.0


@dataclass(frozen=True)
class ProvisionedResources:
    """
    Everything teardown needs to undo setup

    The ``created_*`` flags record what setup created itself. Teardown only
    removes those; resources that already existed are left in place.
    """
    instance_id: str
    vpc_id: str
    log_group_name: str
    log_group_arn: str
    resolver_query_log_config_id: str
    created_log_group: bool = True
    created_query_log_config: bool = True
    created_association: bool = True


def _describe_error(error: Exception) -> str:
    if isinstance(error, ClientError):
        return error.response['Error']['Code']
    return f"{type(error).__name__}: {str(error)}"


class Provisioner:
    """
    Idempotent setup and teardown of DNS query logging for one VPC.

    Clients are created lazily from the session, or can be injected directly.
    """

    def __init__(self, session=None, region: str = None, ec2_client=None, logs_client=None, resolver_client=None,
                 wait_timeout: float = DISASSOCIATION_TIMEOUT, wait_interval: float = DISASSOCIATION_POLL_INTERVAL):
        """
        Initialize the provisioner

        Args:
            session: boto3 Session used to build clients (default session if omitted)
            region: AWS region for lazily created clients
            ec2_client: Optional pre-built EC2 client
            logs_client: Optional pre-built CloudWatch Logs client
            resolver_client: Optional pre-built Route53 Resolver client
            wait_timeout: Seconds teardown waits for a disassociation to complete
            wait_interval: Seconds between disassociation status checks
        """
        self.session = session
        self.region = region
        self.wait_timeout = wait_timeout
        self.wait_interval = wait_interval
        self._ec2 = ec2_client
        self._logs = logs_client
        self._resolver = resolver_client

    def _client(self, service: str):
        if self.session is not None:
            return self.session.client(service, region_name=self.region)
        return boto3.client(service, region_name=self.region)

    @property
    def ec2(self):
        if self._ec2 is None:
            self._ec2 = self._client('ec2')
        return self._ec2

    @property
    def logs(self):
        if self._logs is None:
            self._logs = self._client('logs')
        return self._logs

    @property
    def resolver(self):
        if self._resolver is None:
            self._resolver = self._client('route53resolver')
        return self._resolver

    def lookup_vpc_id(self, instance_id: str) -> str:
        """
        Find the VPC an EC2 instance runs in

        Raises:
            ProvisioningError: If the instance is unknown or not in a VPC
        """
        try:
            response = self.ec2.describe_instances(InstanceIds=[instance_id])
        except (ClientError, BotoCoreError) as e:
            raise ProvisioningError(f"Failed to describe instance {instance_id}: {_describe_error(e)}") from e

        reservations = response.get('Reservations', [])
        if not reservations or not reservations[0].get('Instances'):
            raise ProvisioningError(f"Instance {instance_id} is not active in a VPC")

        vpc_id = reservations[0]['Instances'][0].get('VpcId')
        if not vpc_id:
            raise ProvisioningError(f"Instance {instance_id} is not active in a VPC")
        return vpc_id

    def get_log_group_arn(self, name: str) -> Optional[str]:
        """Return the ARN of the log group called exactly ``name``, or None"""
        paginator = self.logs.get_paginator('describe_log_groups')
        for page in paginator.paginate(logGroupNamePrefix=name):
            for group in page.get('logGroups', []):
                if group['logGroupName'] == name:
                    arn = group.get('logGroupArn') or group['arn']
                    # describe_log_groups reports 'arn' with a trailing wildcard
                    if arn.endswith(':*'):
                        arn = arn[:-2]
                    return arn
        return None

    def ensure_log_group(self, name: str, retention_days: int = DEFAULT_RETENTION_DAYS) -> Tuple[str, bool]:
        """
        Create the log group with a retention policy unless it already exists

        Returns:
            Tuple of the log group ARN and whether it was created here
        """
        try:
            arn = self.get_log_group_arn(name)
            if arn is not None:
                logger.info(f"Log group {name} already exists")
                return arn, False

            logger.info(f"Creating log group: {name}")
            self.logs.create_log_group(logGroupName=name)
            self.logs.put_retention_policy(logGroupName=name, retentionInDays=retention_days)
            arn = self.get_log_group_arn(name)
        except (ClientError, BotoCoreError) as e:
            raise ProvisioningError(f"Failed to ensure log group {name}: {_describe_error(e)}") from e

        if arn is None:
            raise ProvisioningError(f"Log group {name} not found after creation")
        return arn, True

    def _find_query_log_config_id(self, name: str) -> Optional[str]:
        response = self.resolver.list_resolver_query_log_configs(
            Filters=[{'Name': 'Name', 'Values': [name]}]
        )
        configs = response.get('ResolverQueryLogConfigs', [])
        if len(configs) > 1:
            logger.warning(f"Found {len(configs)} resolver query log configs named {name}, using the first")
        if configs:
            return configs[0]['Id']
        return None

    def _list_associations(self, config_id: str, vpc_id: str) -> list:
        response = self.resolver.list_resolver_query_log_config_associations(
            Filters=[
                {'Name': 'ResolverQueryLogConfigId', 'Values': [config_id]},
                {'Name': 'ResourceId', 'Values': [vpc_id]},
            ]
        )
        return response.get('ResolverQueryLogConfigAssociations', [])

    def ensure_resolver_query_log(self, name: str, destination_arn: str, vpc_id: str) -> Tuple[str, bool, bool]:
        """
        Create the resolver query log config and associate it with the VPC, as needed

        Returns:
            Tuple of the config ID, whether the config was created here and
            whether the association was created here
        """
        config_created = False
        association_created = False
        try:
            config_id = self._find_query_log_config_id(name)
            if config_id is None:
                logger.info(f"Creating Route53 resolver query log {name} -> {destination_arn}")
                response = self.resolver.create_resolver_query_log_config(
                    Name=name,
                    DestinationArn=destination_arn,
                    CreatorRequestId=str(uuid.uuid4()),
                )
                config_id = response['ResolverQueryLogConfig']['Id']
                config_created = True
            else:
                logger.info(f"Resolver query log {name} already exists ({config_id})")

            if not self._list_associations(config_id, vpc_id):
                logger.info(f"Associating resolver query log {config_id} with {vpc_id}")
                self.resolver.associate_resolver_query_log_config(
                    ResolverQueryLogConfigId=config_id,
                    ResourceId=vpc_id,
                )
                association_created = True
        except (ClientError, BotoCoreError) as e:
            raise ProvisioningError(f"Failed to ensure resolver query log {name}: {_describe_error(e)}") from e

        return config_id, config_created, association_created

    def setup(self, instance_id: str, log_group_name: str, query_log_name: str,
              retention_days: int = DEFAULT_RETENTION_DAYS) -> ProvisionedResources:
        """
        Make DNS queries from the instance's VPC land in ``log_group_name``

        Returns:
            ProvisionedResources describing what is now in place
        """
        logger.info(f"Looking up VPC ID for {instance_id}")
        vpc_id = self.lookup_vpc_id(instance_id)

        logger.info(f"Ensuring CloudWatch log group {log_group_name}")
        log_group_arn, log_group_created = self.ensure_log_group(log_group_name, retention_days)

        logger.info(f"Ensuring Route53 resolver query log {query_log_name}")
        config_id, config_created, association_created = self.ensure_resolver_query_log(
            query_log_name, log_group_arn, vpc_id)

        return ProvisionedResources(
            instance_id=instance_id,
            vpc_id=vpc_id,
            log_group_name=log_group_name,
            log_group_arn=log_group_arn,
            resolver_query_log_config_id=config_id,
            created_log_group=log_group_created,
            created_query_log_config=config_created,
            created_association=association_created,
        )

    def wait_for_disassociation(self, config_id: str, vpc_id: str) -> None:
        """
        Block until no association of ``config_id`` with ``vpc_id`` is still deleting

        Raises:
            ProvisioningError: If the association is still deleting after ``wait_timeout``
        """
        deadline = time.monotonic() + self.wait_timeout
        while True:
            try:
                associations = self._list_associations(config_id, vpc_id)
            except (ClientError, BotoCoreError) as e:
                raise ProvisioningError(
                    f"Failed to check association of {config_id} with {vpc_id}: {_describe_error(e)}") from e

            deleting = [a for a in associations if a.get('Status') == 'DELETING']
            if not deleting:
                return
            if time.monotonic() >= deadline:
                raise ProvisioningError(
                    f"Association of {config_id} with {vpc_id} still deleting after {self.wait_timeout}s")
            logger.info(f"Waiting for {config_id} to be disassociated from {vpc_id}")
            time.sleep(self.wait_interval)

    def _teardown_step(self, description: str, step) -> None:
        try:
            logger.info(f"Teardown: {description}")
            step()
        except ClientError as e:
            if _describe_error(e) in NOT_FOUND_ERROR_CODES:
                logger.info(f"Teardown: nothing to {description}")
                return
            raise ProvisioningError(f"Failed to {description}: {_describe_error(e)}") from e
        except BotoCoreError as e:
            raise ProvisioningError(f"Failed to {description}: {_describe_error(e)}") from e

    def teardown(self, resources: ProvisionedResources) -> None:
        """
        Undo setup: remove the association, the resolver query log config and
        the log group, each only if setup created it

        Resources that are already gone are skipped.
        """
        config_id = resources.resolver_query_log_config_id
        vpc_id = resources.vpc_id

        if resources.created_association:
            self._teardown_step(
                f"disassociate resolver query log {config_id} from {vpc_id}",
                lambda: self.resolver.disassociate_resolver_query_log_config(
                    ResolverQueryLogConfigId=config_id, ResourceId=vpc_id))
        else:
            logger.info(f"Teardown: leaving existing association of {config_id} with {vpc_id}")

        if resources.created_query_log_config:
            # The config cannot be deleted while an association is still being removed
            self.wait_for_disassociation(config_id, vpc_id)
            self._teardown_step(
                f"delete resolver query log {config_id}",
                lambda: self.resolver.delete_resolver_query_log_config(ResolverQueryLogConfigId=config_id))
        else:
            logger.info(f"Teardown: leaving existing resolver query log {config_id}")

        if resources.created_log_group:
            self._teardown_step(
                f"delete log group {resources.log_group_name}",
                lambda: self.logs.delete_log_group(logGroupName=resources.log_group_name))
        else:
            logger.info(f"Teardown: leaving existing log group {resources.log_group_name}")
