"""Declarative registry of resource kinds.

Each schema states which attributes a kind accepts, which of them force a
replacement when changed, which are sensitive, which outputs the provider
reports, and whether provisioning completes asynchronously.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class KindSchema:
    """Attribute contract of one resource kind."""
    kind: str
    required: Tuple[str, ...]
    optional: Tuple[str, ...] = ()
    immutable: Tuple[str, ...] = ()
    sensitive: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ("id",)
    asynchronous: bool = False
    id_prefix: str = "res"
    one_of: Tuple[Tuple[str, ...], ...] = ()

    @property
    def attributes(self) -> Tuple[str, ...]:
        return self.required + self.optional + ("tags",)

    def is_immutable(self, attribute: str) -> bool:
        return attribute in self.immutable

    def is_sensitive(self, attribute: str) -> bool:
        return attribute in self.sensitive

    def exposes(self, attribute: str) -> bool:
        """Whether another resource may reference this attribute."""
        return attribute in self.outputs or attribute in self.attributes


KINDS: Dict[str, KindSchema] = {
    "network": KindSchema(
        kind="network",
        required=("cidr_block",),
        optional=("enable_dns_hostnames", "enable_dns_support"),
        immutable=("cidr_block",),
        id_prefix="vpc",
    ),
    "internet_gateway": KindSchema(
        kind="internet_gateway",
        required=("vpc_id",),
        immutable=("vpc_id",),
        id_prefix="igw",
    ),
    "subnet": KindSchema(
        kind="subnet",
        required=("vpc_id", "cidr_block"),
        optional=("availability_zone", "map_public_ip_on_launch"),
        immutable=("vpc_id", "cidr_block", "availability_zone"),
        id_prefix="subnet",
    ),
    "route_table": KindSchema(
        kind="route_table",
        required=("vpc_id",),
        optional=("routes", "subnet_ids"),
        immutable=("vpc_id",),
        id_prefix="rtb",
    ),
    "firewall_rule": KindSchema(
        kind="firewall_rule",
        required=("vpc_id", "group_name"),
        optional=("description", "ingress"),
        immutable=("vpc_id", "group_name", "description"),
        id_prefix="sg",
    ),
    "parameter": KindSchema(
        kind="parameter",
        required=("name", "value"),
        optional=("description",),
        immutable=("name",),
        outputs=("id", "version"),
        id_prefix="param",
    ),
    "secret": KindSchema(
        kind="secret",
        required=("name",),
        optional=("description", "length"),
        immutable=("name", "length", "description"),
        outputs=("id", "handle", "version"),
        id_prefix="secret",
    ),
    "db_subnet_group": KindSchema(
        kind="db_subnet_group",
        required=("name", "subnet_ids"),
        optional=("description",),
        immutable=("name",),
        outputs=("id", "arn"),
        id_prefix="dbsubnet",
    ),
    "managed_database": KindSchema(
        kind="managed_database",
        required=(
            "identifier",
            "engine",
            "instance_class",
            "allocated_storage",
            "master_username",
            "master_password_handle",
        ),
        optional=(
            "engine_version",
            "max_allocated_storage",
            "db_name",
            "security_group_ids",
            "db_subnet_group_name",
            "multi_az",
            "port",
            "publicly_accessible",
        ),
        immutable=(
            "identifier",
            "engine",
            "master_username",
            "master_password_handle",
            "db_name",
            "db_subnet_group_name",
            "port",
        ),
        sensitive=("master_password_handle",),
        outputs=("id", "arn", "address", "endpoint", "port"),
        asynchronous=True,
        id_prefix="db",
    ),
    "compute_instance": KindSchema(
        kind="compute_instance",
        required=("instance_type", "subnet_id"),
        optional=(
            "image_id",
            "image",
            "security_group_ids",
            "associate_public_ip",
            "iam_instance_profile",
            "user_data",
            "root_volume_size",
            "root_volume_type",
        ),
        immutable=(
            "instance_type",
            "image_id",
            "image",
            "subnet_id",
            "associate_public_ip",
            "iam_instance_profile",
            "user_data",
            "root_volume_size",
            "root_volume_type",
        ),
        outputs=("id", "public_ip", "private_ip"),
        asynchronous=True,
        id_prefix="i",
        one_of=(("image_id", "image"),),
    ),
}


def get_schema(kind: str) -> Optional[KindSchema]:
    """Return the schema for a kind, or None if the kind is unknown."""
    return KINDS.get(kind)
