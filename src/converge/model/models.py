"""Pydantic models for the desired-state resource graph."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from .references import NAME_PATTERN, Reference, find_references


class Resource(BaseModel):
    """A typed node of the desired-state graph."""
    kind: str = Field(..., description="Resource kind, e.g. network or compute_instance")
    name: str = Field(..., pattern=NAME_PATTERN, description="Name unique within the kind (letters, digits, _ and -)")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Attribute values, may contain references")
    tags: Dict[str, Any] = Field(default_factory=dict, description="Tags merged with document default tags")
    depends_on: List[str] = Field(default_factory=list, description="Explicit dependency addresses (kind.name)")

    @property
    def address(self) -> str:
        return f"{self.kind}.{self.name}"

    @property
    def references(self) -> List[Reference]:
        return find_references(self.attributes) + find_references(self.tags)

    def dependency_addresses(self) -> List[str]:
        """Addresses this resource depends on, through references or depends_on."""
        addresses = {ref.address for ref in self.references}
        addresses.update(self.depends_on)
        return sorted(addresses)

    def desired_attributes(self) -> Dict[str, Any]:
        """Attributes as sent to the provider (tags folded in)."""
        attrs = dict(self.attributes)
        if self.tags:
            attrs["tags"] = dict(self.tags)
        return attrs


class DesiredState(BaseModel):
    """Parsed desired-state document."""
    version: int = Field(default=1, description="Document format version")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Resolved variable values")
    default_tags: Dict[str, Any] = Field(default_factory=dict, description="Tags applied to every resource")
    resources: List[Resource] = Field(default_factory=list, description="Declared resources")
    source: Optional[str] = Field(None, description="Path the document was loaded from")

    def get(self, address: str) -> Optional[Resource]:
        for resource in self.resources:
            if resource.address == address:
                return resource
        return None

    def addresses(self) -> List[str]:
        return [r.address for r in self.resources]
