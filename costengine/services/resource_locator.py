"""
Locating the resource an actual-cost request refers to (ARN or tags).
"""
from dataclasses import dataclass
from typing import Mapping, Optional

from costengine.domain.cost_models import ResourceDescriptor
from costengine.domain.errors import InvalidResourceError
from costengine.pricing.aws_region_map import SUPPORTED_PARTITIONS
from costengine.services.attributes import SKU_TAG_KEYS


# ARN service -> canonical resource type, for services that map one-to-one
_SERVICE_TYPES = {
    "ec2": "ec2",
    "rds": "rds",
    "s3": "s3",
    "lambda": "lambda",
    "dynamodb": "dynamodb",
    "eks": "eks",
    "elasticloadbalancing": "elb",
    "logs": "cloudwatch",
    "cloudwatch": "cloudwatch",
    "elasticache": "elasticache",
    "iam": "iam",
}

# (service, resource type) pairs that resolve to a different resource type
_RESOURCE_TYPES = {
    ("ec2", "volume"): "ebs",
    ("ec2", "natgateway"): "natgw",
    ("ec2", "vpc"): "vpc",
    ("ec2", "subnet"): "subnet",
    ("ec2", "security-group"): "securitygroup",
}


@dataclass(frozen=True)
class ParsedARN:
    partition: str
    service: str
    region: str
    account_id: str
    resource_type: str
    resource_id: str

    def canonical_resource_type(self) -> str:
        override = _RESOURCE_TYPES.get((self.service, self.resource_type))
        if override:
            return override
        return _SERVICE_TYPES.get(self.service, self.service)


def parse_arn(arn: str) -> ParsedARN:
    """
    Parse arn:partition:service:region:account:resource.

    The resource part may be "type/id", "type:id" or a bare id.

    Raises:
        InvalidResourceError: If the ARN is malformed or its partition is unsupported
    """
    parts = arn.split(":", 5)
    if len(parts) != 6 or parts[0] != "arn":
        raise InvalidResourceError(f"invalid ARN format: {arn!r}")
    _, partition, service, region, account_id, resource = parts
    if partition not in SUPPORTED_PARTITIONS:
        raise InvalidResourceError(f"unsupported ARN partition {partition!r}")
    if not service or not resource:
        raise InvalidResourceError(f"invalid ARN format: {arn!r}")

    # Split on whichever separator comes first ("log-group:/app/web")
    resource_type, resource_id = "", resource
    positions = [position for position in (resource.find("/"), resource.find(":")) if position >= 0]
    if positions:
        split_at = min(positions)
        resource_type, resource_id = resource[:split_at], resource[split_at + 1:]

    return ParsedARN(
        partition=partition,
        service=service,
        region=region,
        account_id=account_id,
        resource_type=resource_type,
        resource_id=resource_id,
    )


def descriptor_from_arn(arn: str, tags: Mapping[str, str], default_region: str = "") -> ResourceDescriptor:
    """
    Build a descriptor from an ARN plus tags.

    ARNs carry no SKU, so it comes from the "sku" tag or an instance/volume
    type tag. Global ARNs (S3, IAM) have no region and fall back to
    default_region.
    """
    parsed = parse_arn(arn)
    sku = tags.get("sku", "") or next((tags[key] for key in SKU_TAG_KEYS if tags.get(key)), "")
    return ResourceDescriptor(
        provider="aws",
        resource_type=parsed.canonical_resource_type(),
        sku=sku,
        region=parsed.region or default_region,
        tags=dict(tags),
        id=parsed.resource_id,
    )


def descriptor_from_tags(tags: Mapping[str, str]) -> Optional[ResourceDescriptor]:
    """
    Build a descriptor from provider/resource_type/sku/region tags.

    Returns:
        The descriptor, or None if any of the four tags is missing
    """
    required = ("provider", "resource_type", "sku", "region")
    if not all(tags.get(key) for key in required):
        return None
    return ResourceDescriptor(
        provider=tags["provider"],
        resource_type=tags["resource_type"],
        sku=tags["sku"],
        region=tags["region"],
        tags=dict(tags),
    )
