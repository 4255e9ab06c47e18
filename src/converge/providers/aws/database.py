"""RDS adapters: DB subnet group and managed database instance."""

from typing import Any, Dict, Optional, Tuple
from ...utils.errors import ProviderError
from ..base import ReadyStatus
from .base import AwsAdapter, logger, tag_list, tags_from_list

# Desired attribute -> (create parameter, modify parameter or None)
DATABASE_PARAMETERS = {
    "engine": ("Engine", None),
    "engine_version": ("EngineVersion", "EngineVersion"),
    "instance_class": ("DBInstanceClass", "DBInstanceClass"),
    "allocated_storage": ("AllocatedStorage", "AllocatedStorage"),
    "max_allocated_storage": ("MaxAllocatedStorage", "MaxAllocatedStorage"),
    "master_username": ("MasterUsername", None),
    "db_name": ("DBName", None),
    "security_group_ids": ("VpcSecurityGroupIds", "VpcSecurityGroupIds"),
    "db_subnet_group_name": ("DBSubnetGroupName", None),
    "multi_az": ("MultiAZ", "MultiAZ"),
    "port": ("Port", None),
    "publicly_accessible": ("PubliclyAccessible", "PubliclyAccessible"),
}


class DbSubnetGroupAdapter(AwsAdapter):
    kind = "db_subnet_group"
    service = "rds"
    not_found_codes = ("DBSubnetGroupNotFoundFault",)

    def create(self, desired: Dict[str, Any], address: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
        name = desired["name"]
        response = self.call(
            "create_db_subnet_group",
            DBSubnetGroupName=name,
            DBSubnetGroupDescription=desired.get("description") or name,
            SubnetIds=list(desired["subnet_ids"]),
            Tags=tag_list(desired.get("tags")),
        )
        group = response["DBSubnetGroup"]
        logger.info(f"Created DB subnet group {name} for {address}")
        return name, self._observed(group)

    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        response = self.call_or_none("describe_db_subnet_groups", DBSubnetGroupName=identifier)
        if not response or not response.get("DBSubnetGroups"):
            return None
        return self._observed(response["DBSubnetGroups"][0])

    def update(self, identifier: str, desired: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = {"DBSubnetGroupName": identifier, "SubnetIds": list(desired["subnet_ids"])}
        if desired.get("description"):
            params["DBSubnetGroupDescription"] = desired["description"]
        group = self.call("modify_db_subnet_group", **params)["DBSubnetGroup"]
        observed = self._observed(group)
        sync_rds_tags(self, observed["arn"], desired.get("tags"), (previous or {}).get("tags"))
        return observed

    def delete(self, identifier: str) -> None:
        self.call_or_none("delete_db_subnet_group", DBSubnetGroupName=identifier)

    def _observed(self, group: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": group["DBSubnetGroupName"],
            "name": group["DBSubnetGroupName"],
            "arn": group.get("DBSubnetGroupArn"),
            "description": group.get("DBSubnetGroupDescription"),
            "subnet_ids": sorted(s["SubnetIdentifier"] for s in group.get("Subnets", [])),
        }


def sync_rds_tags(adapter: AwsAdapter, arn: str, desired: Optional[Dict[str, Any]],
                  previous: Optional[Dict[str, Any]]) -> None:
    desired = desired or {}
    previous = previous or {}
    removed = sorted(set(previous) - set(desired))
    if removed:
        adapter.call("remove_tags_from_resource", ResourceName=arn, TagKeys=removed)
    if desired and desired != previous:
        adapter.call("add_tags_to_resource", ResourceName=arn, Tags=tag_list(desired))


class ManagedDatabaseAdapter(AwsAdapter):
    """
    RDS instance.

    master_password_handle names a SecureString parameter; its value is
    fetched from SSM only for the create call and is never returned.
    """

    kind = "managed_database"
    service = "rds"
    not_found_codes = ("DBInstanceNotFound", "DBInstanceNotFoundFault")
    waiter_delay = 30

    def __init__(self, session):
        super().__init__(session)
        self._ssm = None

    @property
    def ssm(self):
        if self._ssm is None:
            self._ssm = self.session.client("ssm")
        return self._ssm

    def resolve_password(self, handle: str) -> str:
        response = self.call("get_parameter", client=self.ssm, Name=handle, WithDecryption=True)
        return response["Parameter"]["Value"]

    def create(self, desired: Dict[str, Any], address: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
        identifier = desired["identifier"]
        params: Dict[str, Any] = {
            "DBInstanceIdentifier": identifier,
            "MasterUserPassword": self.resolve_password(desired["master_password_handle"]),
            "Tags": tag_list(desired.get("tags")),
        }
        for attribute, (create_param, _) in DATABASE_PARAMETERS.items():
            if desired.get(attribute) is not None:
                params[create_param] = desired[attribute]
        instance = self.call("create_db_instance", **params)["DBInstance"]
        logger.info(f"Creating database {identifier} for {address}; provisioning continues asynchronously")
        return identifier, self._observed(instance)

    def wait_until_ready(self, identifier: str, timeout: float) -> ReadyStatus:
        with self.partial(identifier):
            return self.wait("db_instance_available", timeout, DBInstanceIdentifier=identifier)

    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        response = self.call_or_none("describe_db_instances", DBInstanceIdentifier=identifier)
        if not response or not response.get("DBInstances"):
            return None
        return self._observed(response["DBInstances"][0])

    def update(self, identifier: str, desired: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        previous = previous or {}
        params: Dict[str, Any] = {"DBInstanceIdentifier": identifier, "ApplyImmediately": True}
        for attribute, (_, modify_param) in DATABASE_PARAMETERS.items():
            if modify_param and desired.get(attribute) != previous.get(attribute) and desired.get(attribute) is not None:
                params[modify_param] = desired[attribute]
        if len(params) > 2:
            self.call("modify_db_instance", **params)
        observed = self.read(identifier)
        if observed is None:
            raise ProviderError(f"Database {identifier} disappeared during update", code="DBInstanceNotFound")
        if desired.get("tags") != previous.get("tags"):
            sync_rds_tags(self, observed["arn"], desired.get("tags"), previous.get("tags"))
        return observed

    def delete(self, identifier: str) -> None:
        response = self.call_or_none(
            "delete_db_instance",
            DBInstanceIdentifier=identifier,
            SkipFinalSnapshot=True,
            DeleteAutomatedBackups=True,
        )
        if response is None:
            return
        if self.wait("db_instance_deleted", 1800, DBInstanceIdentifier=identifier) is not ReadyStatus.READY:
            raise ProviderError(f"Database {identifier} was not deleted in time", transient=True, code="DeleteTimeout")

    def _observed(self, instance: Dict[str, Any]) -> Dict[str, Any]:
        endpoint = instance.get("Endpoint") or {}
        observed = {
            "id": instance["DBInstanceIdentifier"],
            "identifier": instance["DBInstanceIdentifier"],
            "arn": instance.get("DBInstanceArn"),
            "engine": instance.get("Engine"),
            "instance_class": instance.get("DBInstanceClass"),
            "allocated_storage": instance.get("AllocatedStorage"),
            "master_username": instance.get("MasterUsername"),
            "multi_az": instance.get("MultiAZ"),
            "publicly_accessible": instance.get("PubliclyAccessible"),
            "status": instance.get("DBInstanceStatus"),
            "tags": tags_from_list(instance.get("TagList")),
        }
        if endpoint:
            observed["address"] = endpoint.get("Address")
            observed["port"] = endpoint.get("Port")
            observed["endpoint"] = f"{endpoint.get('Address')}:{endpoint.get('Port')}"
        return observed
