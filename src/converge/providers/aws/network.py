"""EC2 networking adapters: VPC, internet gateway, subnet, route table, security group."""

from typing import Any, Dict, List, Optional, Tuple
from ...utils.errors import ProviderError
from ..base import ReadyStatus
from .base import AwsAdapter, Ec2TaggingMixin, logger, tag_specifications, tags_from_list


class NetworkAdapter(Ec2TaggingMixin, AwsAdapter):
    kind = "network"
    not_found_codes = ("InvalidVpcID.NotFound",)

    def create(self, desired: Dict[str, Any], address: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
        response = self.call(
            "create_vpc",
            CidrBlock=desired["cidr_block"],
            TagSpecifications=tag_specifications("vpc", desired.get("tags")),
        )
        vpc_id = response["Vpc"]["VpcId"]
        logger.info(f"Created VPC {vpc_id} for {address}")
        with self.partial(vpc_id):
            if self.wait("vpc_available", 300, VpcIds=[vpc_id]) is not ReadyStatus.READY:
                raise ProviderError(f"VPC {vpc_id} did not become available", code="NotAvailable")
            self._set_dns(vpc_id, desired, {})
        return vpc_id, self.read(vpc_id) or {"id": vpc_id}

    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        response = self.call_or_none("describe_vpcs", VpcIds=[identifier])
        if not response or not response.get("Vpcs"):
            return None
        vpc = response["Vpcs"][0]
        observed = {
            "id": vpc["VpcId"],
            "cidr_block": vpc["CidrBlock"],
            "tags": tags_from_list(vpc.get("Tags")),
        }
        for attribute, key in (("enable_dns_support", "EnableDnsSupport"),
                               ("enable_dns_hostnames", "EnableDnsHostnames")):
            value = self.call("describe_vpc_attribute", VpcId=identifier, Attribute=key[0].lower() + key[1:])
            observed[attribute] = value.get(key, {}).get("Value")
        return observed

    def update(self, identifier: str, desired: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        previous = previous or {}
        self._set_dns(identifier, desired, previous)
        self.sync_tags(identifier, desired.get("tags"), previous.get("tags"))
        return self.read(identifier) or {}

    def delete(self, identifier: str) -> None:
        self.call_or_none("delete_vpc", VpcId=identifier)

    def _set_dns(self, vpc_id: str, desired: Dict[str, Any], previous: Dict[str, Any]) -> None:
        # One attribute per call is an EC2 API constraint.
        for attribute, key in (("enable_dns_support", "EnableDnsSupport"),
                               ("enable_dns_hostnames", "EnableDnsHostnames")):
            if attribute in desired and desired[attribute] != previous.get(attribute):
                self.call("modify_vpc_attribute", VpcId=vpc_id, **{key: {"Value": bool(desired[attribute])}})


class InternetGatewayAdapter(Ec2TaggingMixin, AwsAdapter):
    kind = "internet_gateway"
    not_found_codes = ("InvalidInternetGatewayID.NotFound",)

    def create(self, desired: Dict[str, Any], address: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
        response = self.call(
            "create_internet_gateway",
            TagSpecifications=tag_specifications("internet-gateway", desired.get("tags")),
        )
        igw_id = response["InternetGateway"]["InternetGatewayId"]
        with self.partial(igw_id):
            self.call("attach_internet_gateway", InternetGatewayId=igw_id, VpcId=desired["vpc_id"])
        logger.info(f"Created internet gateway {igw_id} attached to {desired['vpc_id']}")
        return igw_id, {"id": igw_id, "vpc_id": desired["vpc_id"], "tags": desired.get("tags", {})}

    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        response = self.call_or_none("describe_internet_gateways", InternetGatewayIds=[identifier])
        if not response or not response.get("InternetGateways"):
            return None
        igw = response["InternetGateways"][0]
        attachments = igw.get("Attachments") or []
        return {
            "id": igw["InternetGatewayId"],
            "vpc_id": attachments[0]["VpcId"] if attachments else None,
            "tags": tags_from_list(igw.get("Tags")),
        }

    def update(self, identifier: str, desired: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self.sync_tags(identifier, desired.get("tags"), (previous or {}).get("tags"))
        return self.read(identifier) or {}

    def delete(self, identifier: str) -> None:
        current = self.read(identifier)
        if current is None:
            return
        if current.get("vpc_id"):
            self.call("detach_internet_gateway", InternetGatewayId=identifier, VpcId=current["vpc_id"])
        self.call_or_none("delete_internet_gateway", InternetGatewayId=identifier)


class SubnetAdapter(Ec2TaggingMixin, AwsAdapter):
    kind = "subnet"
    not_found_codes = ("InvalidSubnetID.NotFound",)

    def create(self, desired: Dict[str, Any], address: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
        params = {
            "VpcId": desired["vpc_id"],
            "CidrBlock": desired["cidr_block"],
            "TagSpecifications": tag_specifications("subnet", desired.get("tags")),
        }
        if desired.get("availability_zone"):
            params["AvailabilityZone"] = desired["availability_zone"]
        subnet_id = self.call("create_subnet", **params)["Subnet"]["SubnetId"]
        logger.info(f"Created subnet {subnet_id} for {address}")
        with self.partial(subnet_id):
            if desired.get("map_public_ip_on_launch"):
                self._set_public_ip(subnet_id, True)
            return subnet_id, self.read(subnet_id) or {"id": subnet_id}

    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        response = self.call_or_none("describe_subnets", SubnetIds=[identifier])
        if not response or not response.get("Subnets"):
            return None
        subnet = response["Subnets"][0]
        return {
            "id": subnet["SubnetId"],
            "vpc_id": subnet["VpcId"],
            "cidr_block": subnet["CidrBlock"],
            "availability_zone": subnet.get("AvailabilityZone"),
            "map_public_ip_on_launch": subnet.get("MapPublicIpOnLaunch", False),
            "tags": tags_from_list(subnet.get("Tags")),
        }

    def update(self, identifier: str, desired: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        previous = previous or {}
        wanted = bool(desired.get("map_public_ip_on_launch", False))
        if wanted != bool(previous.get("map_public_ip_on_launch", False)):
            self._set_public_ip(identifier, wanted)
        self.sync_tags(identifier, desired.get("tags"), previous.get("tags"))
        return self.read(identifier) or {}

    def delete(self, identifier: str) -> None:
        self.call_or_none("delete_subnet", SubnetId=identifier)

    def _set_public_ip(self, subnet_id: str, enabled: bool) -> None:
        self.call("modify_subnet_attribute", SubnetId=subnet_id, MapPublicIpOnLaunch={"Value": enabled})


class RouteTableAdapter(Ec2TaggingMixin, AwsAdapter):
    """Route table with routes [{destination, gateway_id}] and subnet associations."""

    kind = "route_table"
    not_found_codes = ("InvalidRouteTableID.NotFound",)

    def create(self, desired: Dict[str, Any], address: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
        response = self.call(
            "create_route_table",
            VpcId=desired["vpc_id"],
            TagSpecifications=tag_specifications("route-table", desired.get("tags")),
        )
        rtb_id = response["RouteTable"]["RouteTableId"]
        logger.info(f"Created route table {rtb_id} for {address}")
        with self.partial(rtb_id):
            self._sync_routes(rtb_id, desired.get("routes") or [], [])
            self._sync_associations(rtb_id, desired.get("subnet_ids") or [])
            return rtb_id, self.read(rtb_id) or {"id": rtb_id}

    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        response = self.call_or_none("describe_route_tables", RouteTableIds=[identifier])
        if not response or not response.get("RouteTables"):
            return None
        table = response["RouteTables"][0]
        routes = [
            {"destination": r["DestinationCidrBlock"], "gateway_id": r["GatewayId"]}
            for r in table.get("Routes", [])
            if r.get("GatewayId") and r.get("GatewayId") != "local" and "DestinationCidrBlock" in r
        ]
        subnet_ids = sorted(a["SubnetId"] for a in table.get("Associations", []) if a.get("SubnetId"))
        return {
            "id": table["RouteTableId"],
            "vpc_id": table["VpcId"],
            "routes": routes,
            "subnet_ids": subnet_ids,
            "tags": tags_from_list(table.get("Tags")),
        }

    def update(self, identifier: str, desired: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        previous = previous or {}
        self._sync_routes(identifier, desired.get("routes") or [], previous.get("routes") or [])
        self._sync_associations(identifier, desired.get("subnet_ids") or [])
        self.sync_tags(identifier, desired.get("tags"), previous.get("tags"))
        return self.read(identifier) or {}

    def delete(self, identifier: str) -> None:
        current = self.call_or_none("describe_route_tables", RouteTableIds=[identifier])
        if not current or not current.get("RouteTables"):
            return
        for association in current["RouteTables"][0].get("Associations", []):
            if association.get("SubnetId"):
                self.call("disassociate_route_table", AssociationId=association["RouteTableAssociationId"])
        self.call_or_none("delete_route_table", RouteTableId=identifier)

    def _sync_routes(self, rtb_id: str, desired: List[Dict[str, Any]], previous: List[Dict[str, Any]]) -> None:
        wanted = {r["destination"]: r["gateway_id"] for r in desired}
        had = {r["destination"]: r["gateway_id"] for r in previous}
        for destination in sorted(set(had) - set(wanted)):
            self.call("delete_route", RouteTableId=rtb_id, DestinationCidrBlock=destination)
        for destination, gateway in sorted(wanted.items()):
            if destination not in had:
                self.call("create_route", RouteTableId=rtb_id, DestinationCidrBlock=destination, GatewayId=gateway)
            elif had[destination] != gateway:
                self.call("replace_route", RouteTableId=rtb_id, DestinationCidrBlock=destination, GatewayId=gateway)

    def _sync_associations(self, rtb_id: str, subnet_ids: List[str]) -> None:
        response = self.call("describe_route_tables", RouteTableIds=[rtb_id])
        associations = {
            a["SubnetId"]: a["RouteTableAssociationId"]
            for a in response["RouteTables"][0].get("Associations", [])
            if a.get("SubnetId")
        }
        for subnet_id in sorted(set(associations) - set(subnet_ids)):
            self.call("disassociate_route_table", AssociationId=associations[subnet_id])
        for subnet_id in sorted(set(subnet_ids) - set(associations)):
            self.call("associate_route_table", RouteTableId=rtb_id, SubnetId=subnet_id)


def _permission(rule: Dict[str, Any]) -> Dict[str, Any]:
    """EC2 IpPermission from an ingress item."""
    protocol = str(rule.get("protocol", "tcp"))
    from_port = rule.get("from_port", rule.get("port"))
    to_port = rule.get("to_port", rule.get("port"))
    permission: Dict[str, Any] = {"IpProtocol": protocol}
    if protocol != "-1":
        permission["FromPort"] = int(from_port)
        permission["ToPort"] = int(to_port)
    if rule.get("source_group_id"):
        permission["UserIdGroupPairs"] = [{"GroupId": rule["source_group_id"]}]
    else:
        permission["IpRanges"] = [{"CidrIp": rule.get("cidr", "0.0.0.0/0")}]
    return permission


def _rule_key(rule: Dict[str, Any]) -> tuple:
    p = _permission(rule)
    source = p.get("UserIdGroupPairs", p.get("IpRanges"))[0]
    return (p["IpProtocol"], p.get("FromPort"), p.get("ToPort"), source.get("GroupId") or source.get("CidrIp"))


class FirewallRuleAdapter(Ec2TaggingMixin, AwsAdapter):
    """Security group; ingress items are {protocol, port | from_port/to_port, cidr | source_group_id}."""

    kind = "firewall_rule"
    not_found_codes = ("InvalidGroup.NotFound", "InvalidGroupId.NotFound")

    def create(self, desired: Dict[str, Any], address: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
        response = self.call(
            "create_security_group",
            GroupName=desired["group_name"],
            Description=desired.get("description") or desired["group_name"],
            VpcId=desired["vpc_id"],
            TagSpecifications=tag_specifications("security-group", desired.get("tags")),
        )
        group_id = response["GroupId"]
        logger.info(f"Created security group {group_id} for {address}")
        with self.partial(group_id):
            self._sync_ingress(group_id, desired.get("ingress") or [], [])
        return group_id, self.read(group_id) or {"id": group_id}

    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        response = self.call_or_none("describe_security_groups", GroupIds=[identifier])
        if not response or not response.get("SecurityGroups"):
            return None
        group = response["SecurityGroups"][0]
        ingress = []
        for permission in group.get("IpPermissions", []):
            base = {"protocol": permission["IpProtocol"]}
            if "FromPort" in permission:
                base["from_port"] = permission["FromPort"]
                base["to_port"] = permission["ToPort"]
            for ip_range in permission.get("IpRanges", []):
                ingress.append(dict(base, cidr=ip_range["CidrIp"]))
            for pair in permission.get("UserIdGroupPairs", []):
                ingress.append(dict(base, source_group_id=pair["GroupId"]))
        return {
            "id": group["GroupId"],
            "vpc_id": group.get("VpcId"),
            "group_name": group["GroupName"],
            "description": group.get("Description"),
            "tags": tags_from_list(group.get("Tags")),
            "ingress_rules": len(ingress),
        }

    def update(self, identifier: str, desired: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        previous = previous or {}
        self._sync_ingress(identifier, desired.get("ingress") or [], previous.get("ingress") or [])
        self.sync_tags(identifier, desired.get("tags"), previous.get("tags"))
        return self.read(identifier) or {}

    def delete(self, identifier: str) -> None:
        self.call_or_none("delete_security_group", GroupId=identifier)

    def _sync_ingress(self, group_id: str, desired: List[Dict[str, Any]], previous: List[Dict[str, Any]]) -> None:
        wanted = {_rule_key(r): r for r in desired}
        had = {_rule_key(r): r for r in previous}
        revoke = [_permission(had[k]) for k in sorted(set(had) - set(wanted), key=str)]
        authorize = [_permission(wanted[k]) for k in sorted(set(wanted) - set(had), key=str)]
        if revoke:
            self.call("revoke_security_group_ingress", GroupId=group_id, IpPermissions=revoke)
        if authorize:
            self.call("authorize_security_group_ingress", GroupId=group_id, IpPermissions=authorize)
