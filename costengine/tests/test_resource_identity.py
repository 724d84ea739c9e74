"""
Tests for resource type normalization and service detection.
"""
import pytest

from costengine.services.resource_identity import (
    ServiceResolver,
    ServiceType,
    detect_service,
    normalize_resource_type,
    resolve_resource_type,
)


@pytest.mark.parametrize("raw,expected", [
    ("ec2", "ec2"),
    ("EC2", "ec2"),
    ("aws:ec2/instance:Instance", "ec2"),
    ("aws:ec2/volume:Volume", "ebs"),
    ("aws:ebs/volume:Volume", "ebs"),
    ("aws:ec2/natGateway:NatGateway", "natgw"),
    ("aws:ec2/vpc:Vpc", "vpc"),
    ("aws:ec2/securityGroup:SecurityGroup", "securitygroup"),
    ("aws:rds/instance:Instance", "rds"),
    ("aws:lb/loadBalancer:LoadBalancer", "elb"),
    ("aws:alb/loadBalancer:LoadBalancer", "elb"),
    ("aws:cloudwatch/logGroup:LogGroup", "cloudwatch"),
    ("aws:elasticache/cluster:Cluster", "elasticache"),
    ("aws:iam/role:Role", "iam"),
])
def test_normalize_known_types(raw, expected):
    assert normalize_resource_type(raw) == expected


@pytest.mark.parametrize("raw", [
    "aws:ec2:Instance",
    "aws:ec2/instance/extra:Instance",
    "gcp:compute/instance:Instance",
    "aws:/instance:Instance",
    "not-a-type",
])
def test_malformed_or_unknown_input_returned_unchanged(raw):
    assert normalize_resource_type(raw) == raw


def test_empty_input():
    assert normalize_resource_type("") == ""
    assert detect_service("") == ServiceType.UNKNOWN


def test_normalization_is_idempotent():
    for raw in ("aws:ec2/volume:Volume", "aws:lb/loadBalancer:LoadBalancer", "ec2", "mystery"):
        once = normalize_resource_type(raw)
        assert normalize_resource_type(once) == once


def test_detect_service_for_alias_and_unknown():
    assert detect_service("alb") == ServiceType.ELB
    assert detect_service("nlb") == ServiceType.ELB
    assert detect_service("kinesis") == ServiceType.UNKNOWN


def test_resolve_resource_type():
    resolved = resolve_resource_type("aws:ec2/natGateway:NatGateway")
    assert resolved.normalized == "natgw"
    assert resolved.service == ServiceType.NATGW


def test_resolver_memoizes_per_instance():
    resolver = ServiceResolver()
    first = resolver.resolve("aws:ec2/instance:Instance")
    second = resolver.resolve("aws:ec2/instance:Instance")
    assert first is second
    assert len(resolver) == 1
    assert resolver.service("s3") == ServiceType.S3
    assert resolver.normalized("aws:ec2/volume:Volume") == "ebs"
    assert len(resolver) == 3
    assert len(ServiceResolver()) == 0
