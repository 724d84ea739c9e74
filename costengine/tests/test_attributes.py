"""
Tests for attribute extraction from tags and attribute documents.
"""
import logging

import pytest

from costengine.domain.cost_models import ResourceDescriptor
from costengine.services.attributes import (
    ARCH_ARM64,
    ARCH_X86_64,
    attribute_source_for,
    extract_database_attributes,
    extract_ec2_attributes,
    extract_function_attributes,
    normalize_rds_engine,
    parse_number,
    resolve_sku,
)


def tag_source(tags):
    return attribute_source_for(ResourceDescriptor(tags=tags))


def document_source(document):
    return attribute_source_for(ResourceDescriptor(attributes=document))


def test_tags_and_document_read_identically():
    """A flat tag map and an equivalent document give the same typed values."""
    from_tags = tag_source({"platform": "windows", "tenancy": "dedicated", "size": "100"})
    from_document = document_source({"platform": "windows", "tenancy": "dedicated", "size": 100})

    assert extract_ec2_attributes(from_tags) == extract_ec2_attributes(from_document)
    assert from_tags.number("size") == from_document.number("size") == (100.0, "size")


def test_document_supports_dotted_keys():
    source = document_source({"placement": {"tenancy": "host"}})
    assert source.text("placement.tenancy") == "host"
    assert source.text("placement.missing") == ""


def test_ec2_defaults():
    attrs = extract_ec2_attributes(tag_source({}))
    assert attrs.os == "Linux"
    assert attrs.tenancy == "Shared"


@pytest.mark.parametrize("platform,expected", [
    ("windows", "Windows"),
    ("Red Hat", "RHEL"),
    ("sles", "SUSE"),
    ("linux/unix", "Linux"),
    ("plan9", "Linux"),
])
def test_ec2_platform_aliases(platform, expected):
    attrs = extract_ec2_attributes(tag_source({"platform": platform}))
    assert attrs.os == expected


def test_ec2_tenancy_default_means_shared():
    attrs = extract_ec2_attributes(tag_source({"tenancy": "default"}))
    assert attrs.tenancy == "Shared"


def test_parse_number_accepts_zero_and_rejects_bad_values(caplog):
    assert parse_number("0", "size") == 0.0
    assert parse_number(12, "size") == 12.0
    with caplog.at_level(logging.WARNING):
        assert parse_number("abc", "size") is None
        assert parse_number("-1", "size") is None
        assert parse_number("nan", "size") is None
    assert parse_number("", "size") is None
    assert any("non-numeric" in record.message for record in caplog.records)


def test_number_skips_invalid_keys():
    source = tag_source({"size": "big", "volume_size": "50"})
    assert source.number("size", "volume_size") == (50.0, "volume_size")


@pytest.mark.parametrize("raw,expected", [
    ("postgres", ("PostgreSQL", False)),
    ("aurora-postgresql", ("Aurora PostgreSQL", False)),
    ("aurora", ("Aurora MySQL", False)),
    ("sqlserver-ex", ("SQL Server", False)),
    ("oracle-ee", ("Oracle", False)),
    ("", ("MySQL", True)),
    ("db2", ("MySQL", True)),
])
def test_rds_engine_aliases(raw, expected):
    assert normalize_rds_engine(raw) == expected


def test_database_defaults():
    attrs = extract_database_attributes(tag_source({}))
    assert attrs.engine == "MySQL"
    assert attrs.engine_defaulted
    assert attrs.storage_type == "gp2"
    assert attrs.storage_gb == 20.0
    assert attrs.storage_defaulted
    assert not attrs.multi_az


def test_database_storage_and_multi_az():
    attrs = extract_database_attributes(tag_source({
        "engine": "postgres",
        "storage_type": "io1",
        "storage_size": "200",
        "multi_az": "true",
    }))
    assert attrs.engine == "PostgreSQL"
    assert attrs.storage_type == "io1"
    assert attrs.storage_gb == 200.0
    assert attrs.multi_az


def test_database_unknown_storage_type_defaults_to_gp2(caplog):
    with caplog.at_level(logging.WARNING):
        attrs = extract_database_attributes(tag_source({"storage_type": "magnetic-ssd"}))
    assert attrs.storage_type == "gp2"
    assert attrs.storage_type_defaulted


def test_function_memory_from_sku_then_tag():
    assert extract_function_attributes(tag_source({"memory": "256"}), "512").memory_mb == 512.0
    assert extract_function_attributes(tag_source({"memory": "256"}), "").memory_mb == 256.0

    attrs = extract_function_attributes(tag_source({}), "")
    assert attrs.memory_mb == 128.0
    assert attrs.memory_defaulted
    assert attrs.requests_per_month == 0.0
    assert attrs.avg_duration_ms == 100.0
    assert attrs.architecture == ARCH_X86_64


def test_function_architecture_aliases():
    attrs = extract_function_attributes(tag_source({"arch": "aarch64"}), "128")
    assert attrs.architecture == ARCH_ARM64


def test_tags_take_precedence_over_attributes():
    resource = ResourceDescriptor(
        provider="aws",
        resource_type="ebs",
        tags={"size": "10"},
        attributes={"size": 500, "volume_type": "io1"},
    )
    source = attribute_source_for(resource)
    assert source.number("size") == (10.0, "size")
    assert resolve_sku(resource) == "io1"


def test_resolve_sku_prefers_descriptor_sku():
    resource = ResourceDescriptor(provider="aws", resource_type="ec2", sku="t3.micro", tags={"instance_type": "m5.large"})
    assert resolve_sku(resource) == "t3.micro"
