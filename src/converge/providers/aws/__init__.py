"""AWS provider backed by boto3."""

from typing import Optional
import boto3
from ..base import Provider
from .compute import ComputeInstanceAdapter
from .database import DbSubnetGroupAdapter, ManagedDatabaseAdapter
from .network import (
    FirewallRuleAdapter,
    InternetGatewayAdapter,
    NetworkAdapter,
    RouteTableAdapter,
    SubnetAdapter,
)
from .ssm import ParameterAdapter, SecretAdapter

ADAPTER_CLASSES = (
    NetworkAdapter,
    InternetGatewayAdapter,
    SubnetAdapter,
    RouteTableAdapter,
    FirewallRuleAdapter,
    ParameterAdapter,
    SecretAdapter,
    DbSubnetGroupAdapter,
    ManagedDatabaseAdapter,
    ComputeInstanceAdapter,
)


class AwsProvider(Provider):
    """All AWS adapters sharing one boto3 session."""

    name = "aws"

    def __init__(self, region: str, profile: Optional[str] = None, session: Optional[boto3.Session] = None):
        self.region = region
        self.session = session or boto3.Session(region_name=region, profile_name=profile)
        super().__init__({cls.kind: cls(self.session) for cls in ADAPTER_CLASSES})


__all__ = ["AwsProvider", "ADAPTER_CLASSES"]
