"""
Resource type normalization and service detection.

Maps raw resource type strings, canonical ("ec2") or vendor-hierarchical
("aws:ec2/instance:Instance"), onto a closed set of services.
"""
from enum import Enum
from typing import Dict, NamedTuple, Optional


class ServiceType(str, Enum):
    """Closed set of services this engine knows how to price."""
    EC2 = "ec2"
    EBS = "ebs"
    RDS = "rds"
    EKS = "eks"
    S3 = "s3"
    LAMBDA = "lambda"
    DYNAMODB = "dynamodb"
    ELB = "elb"
    NATGW = "natgw"
    CLOUDWATCH = "cloudwatch"
    ELASTICACHE = "elasticache"
    VPC = "vpc"
    SUBNET = "subnet"
    SECURITY_GROUP = "securitygroup"
    IAM = "iam"
    UNKNOWN = "unknown"


# Canonical short forms recognised without parsing
_CANONICAL: Dict[str, ServiceType] = {
    "ec2": ServiceType.EC2,
    "ebs": ServiceType.EBS,
    "rds": ServiceType.RDS,
    "eks": ServiceType.EKS,
    "s3": ServiceType.S3,
    "lambda": ServiceType.LAMBDA,
    "dynamodb": ServiceType.DYNAMODB,
    "elb": ServiceType.ELB,
    "alb": ServiceType.ELB,
    "nlb": ServiceType.ELB,
    "natgw": ServiceType.NATGW,
    "cloudwatch": ServiceType.CLOUDWATCH,
    "elasticache": ServiceType.ELASTICACHE,
    "vpc": ServiceType.VPC,
    "subnet": ServiceType.SUBNET,
    "securitygroup": ServiceType.SECURITY_GROUP,
    "iam": ServiceType.IAM,
}

# (module, resource) pairs that name a different service than their module
_RESOURCE_OVERRIDES: Dict[tuple, str] = {
    ("ec2", "volume"): "ebs",
    ("ebs", "volume"): "ebs",
    ("ec2", "natgateway"): "natgw",
    ("ec2", "vpc"): "vpc",
    ("ec2", "subnet"): "subnet",
    ("ec2", "securitygroup"): "securitygroup",
    ("vpc", "securitygroup"): "securitygroup",
    ("vpc", "subnet"): "subnet",
}

_MODULE_ALIASES: Dict[str, str] = {
    "ec2": "ec2",
    "ebs": "ebs",
    "rds": "rds",
    "eks": "eks",
    "s3": "s3",
    "lambda": "lambda",
    "dynamodb": "dynamodb",
    "lb": "elb",
    "alb": "elb",
    "nlb": "elb",
    "elb": "elb",
    "elasticloadbalancingv2": "elb",
    "natgateway": "natgw",
    "cloudwatch": "cloudwatch",
    "elasticache": "elasticache",
    "iam": "iam",
    "vpc": "vpc",
}


def normalize_resource_type(raw: str) -> str:
    """
    Normalize a resource type to its canonical short form.

    Canonical short forms are returned lower-cased. Hierarchical forms are
    split into provider, module, resource and type segments and looked up
    in the override and alias tables. Anything else, including malformed
    hierarchical strings, is returned unchanged.

    Args:
        raw: Resource type as supplied by the caller

    Returns:
        Canonical short form, or the input unchanged
    """
    if not raw:
        return ""

    lowered = raw.strip().lower()
    if lowered in _CANONICAL:
        return lowered

    segments = lowered.split(":")
    if len(segments) != 3:
        return raw
    provider, path, type_name = segments
    if provider != "aws" or not type_name or path.count("/") != 1:
        return raw
    module, resource = path.split("/")
    if not module or not resource:
        return raw

    override = _RESOURCE_OVERRIDES.get((module, resource))
    if override:
        return override
    return _MODULE_ALIASES.get(module, raw)


def detect_service(normalized: str) -> ServiceType:
    """Map a normalized resource type onto a ServiceType."""
    return _CANONICAL.get(normalized.lower(), ServiceType.UNKNOWN) if normalized else ServiceType.UNKNOWN


class ResolvedType(NamedTuple):
    """A raw resource type's normalized form and service."""
    normalized: str
    service: ServiceType


def resolve_resource_type(raw: str) -> ResolvedType:
    """Normalize and detect in one pure call."""
    normalized = normalize_resource_type(raw)
    return ResolvedType(normalized, detect_service(normalized))


class ServiceResolver:
    """
    Request-scoped memo over resolve_resource_type.

    Create one per request; it is not shared between requests.
    """

    def __init__(self):
        self._cache: Dict[str, ResolvedType] = {}

    def resolve(self, raw: str) -> ResolvedType:
        resolved: Optional[ResolvedType] = self._cache.get(raw)
        if resolved is None:
            resolved = resolve_resource_type(raw)
            self._cache[raw] = resolved
        return resolved

    def service(self, raw: str) -> ServiceType:
        return self.resolve(raw).service

    def normalized(self, raw: str) -> str:
        return self.resolve(raw).normalized

    def __len__(self) -> int:
        return len(self._cache)
