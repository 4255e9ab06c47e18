"""EC2 instance adapter."""

from typing import Any, Dict, Optional, Tuple
from ...utils.errors import ProviderError
from ..base import ReadyStatus
from .base import AwsAdapter, Ec2TaggingMixin, logger, tag_specifications, tags_from_list

# Image aliases usable instead of an explicit image_id.
IMAGE_FILTERS = {
    "amazon-linux-2023": {"owner": "amazon", "name": "al2023-ami-2023.*-x86_64"},
    "amazon-linux-2": {"owner": "amazon", "name": "amzn2-ami-hvm-*-x86_64-gp2"},
    "ubuntu-22.04": {"owner": "099720109477", "name": "ubuntu/images/hvm-ssd/ubuntu-jammy-22.04-amd64-server-*"},
}


class ComputeInstanceAdapter(Ec2TaggingMixin, AwsAdapter):
    kind = "compute_instance"
    not_found_codes = ("InvalidInstanceID.NotFound",)

    def lookup_image(self, image: Any) -> str:
        """Most recent AMI for an alias or an {owner, name_filter} mapping."""
        if isinstance(image, dict):
            spec = {"owner": str(image.get("owner", "amazon")), "name": image["name_filter"]}
        else:
            spec = IMAGE_FILTERS.get(image, {"owner": "amazon", "name": image})
        response = self.call(
            "describe_images",
            Owners=[spec["owner"]],
            Filters=[{"Name": "name", "Values": [spec["name"]]}, {"Name": "state", "Values": ["available"]}],
        )
        images = sorted(response.get("Images", []), key=lambda item: item.get("CreationDate", ""))
        if not images:
            raise ProviderError(f"No AMI matches image {image!r}", code="ImageNotFound")
        return images[-1]["ImageId"]

    def create(self, desired: Dict[str, Any], address: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
        image_id = desired.get("image_id") or self.lookup_image(desired["image"])
        network_interface: Dict[str, Any] = {
            "DeviceIndex": 0,
            "SubnetId": desired["subnet_id"],
            "AssociatePublicIpAddress": bool(desired.get("associate_public_ip", False)),
        }
        if desired.get("security_group_ids"):
            network_interface["Groups"] = list(desired["security_group_ids"])

        params: Dict[str, Any] = {
            "ImageId": image_id,
            "InstanceType": desired["instance_type"],
            "MinCount": 1,
            "MaxCount": 1,
            "NetworkInterfaces": [network_interface],
            "TagSpecifications": tag_specifications("instance", desired.get("tags")),
        }
        if desired.get("iam_instance_profile"):
            params["IamInstanceProfile"] = {"Name": desired["iam_instance_profile"]}
        if desired.get("user_data"):
            params["UserData"] = desired["user_data"]
        if desired.get("root_volume_size"):
            params["BlockDeviceMappings"] = [{
                "DeviceName": "/dev/xvda",
                "Ebs": {
                    "VolumeSize": int(desired["root_volume_size"]),
                    "VolumeType": desired.get("root_volume_type", "gp3"),
                    "DeleteOnTermination": True,
                },
            }]

        instance = self.call("run_instances", **params)["Instances"][0]
        instance_id = instance["InstanceId"]
        logger.info(f"Launched instance {instance_id} ({desired['instance_type']}, {image_id}) for {address}")
        return instance_id, self._observed(instance)

    def wait_until_ready(self, identifier: str, timeout: float) -> ReadyStatus:
        with self.partial(identifier):
            return self.wait("instance_running", timeout, InstanceIds=[identifier])

    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        response = self.call_or_none("describe_instances", InstanceIds=[identifier])
        reservations = (response or {}).get("Reservations") or []
        if not reservations or not reservations[0].get("Instances"):
            return None
        instance = reservations[0]["Instances"][0]
        if instance.get("State", {}).get("Name") in ("terminated", "shutting-down"):
            return None
        return self._observed(instance)

    def update(self, identifier: str, desired: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        previous = previous or {}
        groups = desired.get("security_group_ids")
        if groups is not None and sorted(groups) != sorted(previous.get("security_group_ids") or []):
            self.call("modify_instance_attribute", InstanceId=identifier, Groups=list(groups))
        self.sync_tags(identifier, desired.get("tags"), previous.get("tags"))
        return self.read(identifier) or {}

    def delete(self, identifier: str) -> None:
        if self.call_or_none("terminate_instances", InstanceIds=[identifier]) is None:
            return
        if self.wait("instance_terminated", 600, InstanceIds=[identifier]) is not ReadyStatus.READY:
            raise ProviderError(f"Instance {identifier} did not terminate in time", transient=True,
                                code="DeleteTimeout")

    def _observed(self, instance: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": instance["InstanceId"],
            "instance_type": instance.get("InstanceType"),
            "subnet_id": instance.get("SubnetId"),
            "security_group_ids": sorted(g["GroupId"] for g in instance.get("SecurityGroups", [])),
            "public_ip": instance.get("PublicIpAddress"),
            "private_ip": instance.get("PrivateIpAddress"),
            "state": instance.get("State", {}).get("Name"),
            "tags": tags_from_list(instance.get("Tags")),
        }

