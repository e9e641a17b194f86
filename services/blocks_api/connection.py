"""Format-only AWS role checks and the mock tenant registration built on them."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import ValidationError

ROLE_ARN_PATTERN = re.compile(r"^arn:aws:iam::\d{12}:role/[A-Za-z0-9+=,.@_-]+$")
EXTERNAL_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]{8,64}$")

READ_ONLY_PERMISSIONS = (
    "ce:GetCostAndUsage",
    "ce:GetCostForecast",
    "ce:GetDimensionValues",
    "cur:DescribeReportDefinitions",
    "cloudwatch:GetMetricData",
    "organizations:ListAccounts",
)


def check_connection(
    role_arn: Optional[str],
    external_id: Optional[str],
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Validate the role ARN and external id; no AWS call is made."""
    if not role_arn or not role_arn.strip():
        raise ValidationError.for_field("roleArn", "is required")
    if not external_id or not external_id.strip():
        raise ValidationError.for_field("externalId", "is required")
    role_arn = role_arn.strip()
    external_id = external_id.strip()

    error_message = None
    if not ROLE_ARN_PATTERN.fullmatch(role_arn):
        error_message = "Invalid IAM role ARN format"
    elif not EXTERNAL_ID_PATTERN.fullmatch(external_id):
        error_message = "External ID must be 8-64 alphanumeric characters or hyphens"

    tested_at = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    validation: Dict[str, Any] = {
        "roleArn": role_arn,
        "isValid": error_message is None,
        "permissions": [] if error_message else list(READ_ONLY_PERMISSIONS),
        "testedAt": tested_at.isoformat().replace("+00:00", "Z"),
    }
    if error_message:
        validation["errorMessage"] = error_message
    return {"validation": validation}


_TENANT_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "blocks://tenants")


def setup_tenant(
    name: str,
    role_arn: Optional[str] = None,
    external_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Echo a tenant registration without storing it.

    The tenant id is derived from the name so repeated setups agree. Without
    credentials the tenant stays ``unconfigured``; otherwise the connection
    status follows :func:`check_connection`.
    """
    name = name.strip()
    if not role_arn and not external_id:
        status = "unconfigured"
    else:
        validation = check_connection(role_arn, external_id)["validation"]
        status = "validated" if validation["isValid"] else "error"
    return {
        "tenantId": str(uuid.uuid5(_TENANT_NAMESPACE, name.lower())),
        "name": name,
        "connectionStatus": status,
    }
