"""Shared plumbing for boto3-backed adapters."""

import math
from contextlib import contextmanager
from typing import Any, Dict, List, Optional
import boto3
from botocore.exceptions import ClientError, EndpointConnectionError, WaiterError
from ...utils.errors import ProviderError
from ...utils.logging import get_logger
from ..base import ProviderAdapter, ReadyStatus

logger = get_logger("providers.aws")

# Error codes worth retrying: throttling, eventual consistency, service hiccups.
TRANSIENT_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "RequestThrottled",
    "TooManyRequestsException",
    "ServiceUnavailable",
    "Unavailable",
    "InternalError",
    "InternalFailure",
    "DependencyViolation",
    "IncorrectState",
    "InvalidDBInstanceState",
}


class AwsAdapter(ProviderAdapter):
    """Base for adapters calling AWS through a shared boto3 session."""

    service = "ec2"
    not_found_codes: tuple = ()
    waiter_delay = 15

    def __init__(self, session: boto3.Session):
        super().__init__()
        self.session = session
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = self.session.client(self.service)
        return self._client

    def call(self, operation: str, client=None, **kwargs) -> Dict[str, Any]:
        """Invoke a client operation, translating botocore errors to ProviderError."""
        client = client or self.client
        logger.debug(f"{self.service}.{operation}({', '.join(sorted(kwargs))})")
        try:
            return getattr(client, operation)(**kwargs)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            message = e.response.get("Error", {}).get("Message", str(e))
            raise ProviderError(
                f"{self.service}.{operation} failed: {code}: {message}",
                transient=code in TRANSIENT_CODES,
                code=code,
            ) from e
        except EndpointConnectionError as e:
            raise ProviderError(f"{self.service}.{operation} could not reach AWS: {e}", transient=True,
                                code="EndpointConnectionError") from e

    def is_not_found(self, error: ProviderError) -> bool:
        return error.code in self.not_found_codes

    def call_or_none(self, operation: str, client=None, **kwargs) -> Optional[Dict[str, Any]]:
        """Like call(), but a not-found error returns None."""
        try:
            return self.call(operation, client=client, **kwargs)
        except ProviderError as e:
            if self.is_not_found(e):
                return None
            raise

    @contextmanager
    def partial(self, identifier: str):
        """Attach an already-assigned identifier to errors raised inside the block."""
        try:
            yield
        except ProviderError as e:
            e.identifier = identifier
            raise

    def wait(self, waiter_name: str, timeout: float, client=None, **kwargs) -> ReadyStatus:
        """Run a botocore waiter bounded by timeout seconds."""
        client = client or self.client
        attempts = max(1, math.ceil(timeout / self.waiter_delay))
        waiter = client.get_waiter(waiter_name)
        try:
            waiter.wait(WaiterConfig={"Delay": self.waiter_delay, "MaxAttempts": attempts}, **kwargs)
        except WaiterError as e:
            if "Max attempts exceeded" in str(e):
                logger.warning(f"{waiter_name} not satisfied within {timeout}s")
                return ReadyStatus.TIMED_OUT
            raise ProviderError(f"{e}", code="WaiterFailed") from e
        return ReadyStatus.READY


def tag_list(tags: Optional[Dict[str, Any]]) -> List[Dict[str, str]]:
    """AWS Key/Value tag list from a mapping."""
    return [{"Key": str(k), "Value": str(v)} for k, v in sorted((tags or {}).items())]


def tag_specifications(resource_type: str, tags: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not tags:
        return []
    return [{"ResourceType": resource_type, "Tags": tag_list(tags)}]


def tags_from_list(tags: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    return {t["Key"]: t["Value"] for t in (tags or [])}


class Ec2TaggingMixin:
    """Tag reconciliation for EC2-family resources."""

    def sync_tags(self, identifier: str, desired: Optional[Dict[str, Any]], previous: Optional[Dict[str, Any]]) -> None:
        desired = {str(k): str(v) for k, v in (desired or {}).items()}
        previous = {str(k): str(v) for k, v in (previous or {}).items()}
        removed = sorted(set(previous) - set(desired))
        changed = {k: v for k, v in desired.items() if previous.get(k) != v}
        if removed:
            self.call("delete_tags", Resources=[identifier], Tags=[{"Key": k} for k in removed])
        if changed:
            self.call("create_tags", Resources=[identifier], Tags=tag_list(changed))
