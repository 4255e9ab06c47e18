"""SSM Parameter Store adapters for plain parameters and generated secrets."""

import secrets
import string
from typing import Any, Dict, Optional, Tuple
from .base import AwsAdapter, logger, tag_list

SECRET_ALPHABET = string.ascii_letters + string.digits


class ParameterAdapter(AwsAdapter):
    """Plain String parameter; the identifier is the parameter name."""

    kind = "parameter"
    service = "ssm"
    not_found_codes = ("ParameterNotFound",)
    parameter_type = "String"

    def create(self, desired: Dict[str, Any], address: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
        name = desired["name"]
        params = {
            "Name": name,
            "Value": self.value_for(desired),
            "Type": self.parameter_type,
            "Overwrite": False,
        }
        if desired.get("description"):
            params["Description"] = desired["description"]
        if desired.get("tags"):
            params["Tags"] = tag_list(desired["tags"])
        response = self.call("put_parameter", **params)
        logger.info(f"Created {self.parameter_type} parameter {name} for {address}")
        return name, self.observed(name, desired, response.get("Version", 1))

    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        response = self.call_or_none("get_parameter", Name=identifier, WithDecryption=False)
        if not response:
            return None
        parameter = response["Parameter"]
        observed = {"id": identifier, "name": identifier, "version": parameter.get("Version", 1)}
        if self.parameter_type == "String":
            observed["value"] = parameter.get("Value")
        return observed

    def update(self, identifier: str, desired: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self.call(
            "put_parameter",
            Name=identifier,
            Value=self.value_for(desired),
            Type=self.parameter_type,
            Overwrite=True,
        )
        previous_tags = (previous or {}).get("tags") or {}
        desired_tags = desired.get("tags") or {}
        if desired_tags != previous_tags:
            removed = sorted(set(previous_tags) - set(desired_tags))
            if removed:
                self.call("remove_tags_from_resource", ResourceType="Parameter", ResourceId=identifier, TagKeys=removed)
            if desired_tags:
                self.call("add_tags_to_resource", ResourceType="Parameter", ResourceId=identifier,
                          Tags=tag_list(desired_tags))
        return self.observed(identifier, desired, response.get("Version", 1))

    def delete(self, identifier: str) -> None:
        self.call_or_none("delete_parameter", Name=identifier)

    def value_for(self, desired: Dict[str, Any]) -> str:
        return str(desired["value"])

    def observed(self, name: str, desired: Dict[str, Any], version: int) -> Dict[str, Any]:
        return {"id": name, "name": name, "value": desired.get("value"), "version": version}


class SecretAdapter(ParameterAdapter):
    """
    SecureString whose value is generated here and never leaves the provider.

    Consumers reference the handle output (the parameter name) and the
    consuming adapter resolves it at call time.
    """

    kind = "secret"
    parameter_type = "SecureString"

    def value_for(self, desired: Dict[str, Any]) -> str:
        length = int(desired.get("length", 16))
        return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(length))

    def update(self, identifier: str, desired: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        # Every value-bearing attribute is immutable; only tags converge in place.
        previous_tags = (previous or {}).get("tags") or {}
        desired_tags = desired.get("tags") or {}
        removed = sorted(set(previous_tags) - set(desired_tags))
        if removed:
            self.call("remove_tags_from_resource", ResourceType="Parameter", ResourceId=identifier, TagKeys=removed)
        if desired_tags:
            self.call("add_tags_to_resource", ResourceType="Parameter", ResourceId=identifier,
                      Tags=tag_list(desired_tags))
        return self.read(identifier) or {}

    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        observed = super().read(identifier)
        if observed is not None:
            observed["handle"] = identifier
        return observed

    def observed(self, name: str, desired: Dict[str, Any], version: int) -> Dict[str, Any]:
        return {"id": name, "name": name, "handle": name, "version": version}
