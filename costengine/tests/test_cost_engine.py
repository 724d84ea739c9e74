"""
Tests for the cost engine entry points.
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from costengine.core.config import Config, EngineSettings
from costengine.domain.cost_models import ActualCostRequest, GrowthType, ResourceDescriptor
from costengine.domain.errors import InvalidResourceError, RegionMismatchError, TimestampResolutionError
from costengine.services import cost_engine as cost_engine_module
from costengine.services.cost_engine import CostEngine, get_cost_engine


START = datetime(2024, 2, 1, tzinfo=timezone.utc)
NOW = datetime(2024, 3, 1, tzinfo=timezone.utc)


class TestProjectedCost:
    """Tests for get_projected_cost validation and dispatch."""

    def test_hierarchical_type(self, engine, make_resource):
        result = engine.get_projected_cost(make_resource("aws:ec2/instance:Instance", "t3.micro"))
        assert result.cost_per_month == pytest.approx(7.592)

    def test_missing_resource(self, engine):
        with pytest.raises(InvalidResourceError):
            engine.get_projected_cost(None, trace_id="t-1")

    def test_provider_must_be_aws(self, engine):
        resource = ResourceDescriptor(provider="gcp", resource_type="ec2", sku="t3.micro", region="us-east-1")
        with pytest.raises(InvalidResourceError) as exc_info:
            engine.get_projected_cost(resource, trace_id="t-1")
        assert exc_info.value.trace_id == "t-1"
        assert exc_info.value.to_dict()["error"] == "INVALID_RESOURCE"

    def test_provider_is_case_insensitive(self, engine):
        resource = ResourceDescriptor(provider="AWS", resource_type="ec2", sku="t3.micro", region="us-east-1")
        assert engine.get_projected_cost(resource).cost_per_month == pytest.approx(7.592)

    def test_resource_type_required(self, engine, make_resource):
        with pytest.raises(InvalidResourceError):
            engine.get_projected_cost(make_resource("  ", "t3.micro"))

    def test_region_mismatch(self, engine, make_resource):
        with pytest.raises(RegionMismatchError) as exc_info:
            engine.get_projected_cost(make_resource("ec2", "t3.micro", region="eu-west-1"), trace_id="t-2")

        error = exc_info.value
        assert error.code == "UNSUPPORTED_REGION"
        assert error.details["plugin_region"] == "us-east-1"
        assert error.details["resource_region"] == "eu-west-1"
        assert error.details["trace_id"] == "t-2"

    def test_global_service_without_region_uses_instance_region(self, engine, make_resource):
        result = engine.get_projected_cost(make_resource("s3", "STANDARD", tags={"size": "10"}, region=""))
        assert result.cost_per_month == pytest.approx(0.23)

        iam = engine.get_projected_cost(make_resource("iam", region=""))
        assert iam.cost_per_month == 0.0

    def test_regional_service_without_region_is_invalid(self, engine, make_resource):
        with pytest.raises(InvalidResourceError):
            engine.get_projected_cost(make_resource("ec2", "t3.micro", region=""))

    def test_unknown_type_is_zero_not_error(self, engine, make_resource):
        result = engine.get_projected_cost(make_resource("aws:kinesis/stream:Stream", "shard"))
        assert result.cost_per_month == 0.0
        assert "not supported for cost estimation" in result.billing_detail

    def test_summary_log_has_trace_id(self, engine, make_resource, caplog):
        with caplog.at_level(logging.INFO, logger="costengine.services.cost_engine"):
            engine.get_projected_cost(make_resource("ec2", "t3.micro"), trace_id="trace-123")
        assert any("trace-123" in record.getMessage() for record in caplog.records)

    def test_utilization_feeds_carbon_estimate(self, pricing, settings, make_resource, carbon_estimator):
        engine = CostEngine(pricing, settings, carbon_estimator=carbon_estimator)
        resource = make_resource("ec2", "t3.micro", utilization_percentage=100.0)
        result = engine.get_projected_cost(resource)
        assert result.impact_metrics[0].value == pytest.approx(730.0)

    def test_non_numeric_utilization_is_invalid(self, engine, make_resource):
        resource = make_resource("ec2", "t3.micro", utilization_percentage="abc")
        with pytest.raises(InvalidResourceError) as exc_info:
            engine.get_projected_cost(resource, trace_id="t-8")
        assert exc_info.value.trace_id == "t-8"

    @pytest.mark.parametrize("resource_type,sku,expected", [
        ("ec2", "t3.micro", GrowthType.NONE),
        ("s3", "STANDARD", GrowthType.LINEAR),
        ("dynamodb", "", GrowthType.LINEAR),
        ("vpc", "", GrowthType.UNSPECIFIED),
        ("aws:kinesis/stream:Stream", "shard", GrowthType.UNSPECIFIED),
    ])
    def test_growth_hint(self, engine, make_resource, resource_type, sku, expected):
        result = engine.get_projected_cost(make_resource(resource_type, sku))
        assert result.growth_type is expected
        assert result.to_dict()["growth_type"] == expected.value

    def test_pricing_region_must_match_settings(self, pricing):
        with pytest.raises(ValueError):
            CostEngine(pricing, EngineSettings(region="eu-west-1"))


class TestActualCost:
    """Tests for get_actual_cost."""

    def test_explicit_24_hour_window(self, engine, make_resource):
        request = ActualCostRequest(
            resource=make_resource("ec2", "t3.micro"),
            start=START,
            end=START + timedelta(hours=24),
        )
        result = engine.get_actual_cost(request)

        assert result.cost == pytest.approx(0.2496)
        assert result.usage_amount == pytest.approx(24.0)
        assert result.usage_unit == "hours"
        assert result.timestamp == START
        assert result.source.startswith("aws-public-fallback[confidence:HIGH]")
        assert "24.00 hours / 730 = $0.2496" in result.source

    def test_focus_record(self, engine, make_resource):
        request = ActualCostRequest(
            resource=make_resource("ec2", "t3.micro"),
            start=START,
            end=START + timedelta(hours=24),
        )
        record = engine.get_actual_cost(request).focus_record

        assert record.billed_cost == pytest.approx(0.2496)
        assert record.effective_cost == record.list_cost == record.billed_cost
        assert record.list_unit_price == pytest.approx(0.0104)
        assert record.service_name == "Amazon EC2"
        assert record.service_category == "Compute"
        assert record.charge_category == "Usage"
        assert record.pricing_category == "Standard"
        assert record.pricing_unit == "Hours"
        assert record.charge_period_start == START
        assert record.charge_period_end == START + timedelta(hours=24)
        assert record.region_id == "us-east-1"
        assert record.sku_id == "t3.micro"

    def test_ebs_volume_over_a_week(self, engine, make_resource):
        request = ActualCostRequest(
            resource=make_resource("ebs", "gp3", tags={"size": "100"}),
            start=START,
            end=START + timedelta(days=7),
        )
        result = engine.get_actual_cost(request)
        assert result.cost == pytest.approx(8.0 * 168 / 730)
        assert result.cost == pytest.approx(1.8411, abs=1e-4)

    @pytest.mark.parametrize("resource_type,sku", [
        ("ec2", "t3.micro"),
        ("aws:foo/bar:Baz", "anything"),
        ("vpc", ""),
        ("elasticache", ""),
    ])
    def test_zero_duration_is_free(self, engine, make_resource, resource_type, sku):
        request = ActualCostRequest(resource=make_resource(resource_type, sku), start=START, end=START)
        result = engine.get_actual_cost(request)
        assert result.cost == 0.0
        assert result.usage_amount == 0.0
        assert result.focus_record.billed_cost == 0.0
        assert result.focus_record.list_unit_price == 0.0

    def test_end_before_start(self, engine, make_resource):
        request = ActualCostRequest(
            resource=make_resource("ec2", "t3.micro"),
            start=START,
            end=START - timedelta(hours=1),
        )
        with pytest.raises(InvalidResourceError) as exc_info:
            engine.get_actual_cost(request, trace_id="t-3")
        assert "invalid time range" in exc_info.value.message

    def test_missing_start_carries_trace_id(self, engine, make_resource):
        request = ActualCostRequest(resource=make_resource("ec2", "t3.micro"))
        with pytest.raises(TimestampResolutionError) as exc_info:
            engine.get_actual_cost(request, trace_id="t-4", now=NOW)
        assert exc_info.value.trace_id == "t-4"

    def test_imported_resource_is_medium_confidence(self, engine, make_resource):
        resource = make_resource("ec2", "t3.micro", tags={
            "pulumi:created": "2024-02-29T00:00:00Z",
            "pulumi:external": "true",
        })
        result = engine.get_actual_cost(ActualCostRequest(resource=resource), now=NOW)

        assert result.source.startswith("aws-public-fallback[confidence:MEDIUM] imported resource")
        assert result.cost == pytest.approx(7.592 * 24 / 730)

    def test_created_tag_native_resource_is_high_confidence(self, engine, make_resource):
        resource = make_resource("ec2", "t3.micro", tags={"pulumi:created": "2024-02-29T00:00:00Z"})
        result = engine.get_actual_cost(ActualCostRequest(resource=resource), now=NOW)
        assert "[confidence:HIGH]" in result.source

    def test_request_tags_override_resource_tags(self, engine, make_resource):
        resource = make_resource("ec2", "t3.micro", tags={"pulumi:created": "2024-01-01T00:00:00Z"})
        request = ActualCostRequest(resource=resource, tags={"pulumi:created": "2024-02-29T00:00:00Z"})
        result = engine.get_actual_cost(request, now=NOW)
        assert result.usage_amount == pytest.approx(24.0)

    def test_resource_from_arn(self, engine):
        request = ActualCostRequest(
            arn="arn:aws:ec2:us-east-1:123456789012:instance/i-0abc",
            tags={"instance_type": "t3.micro"},
            start=START,
            end=START + timedelta(hours=24),
        )
        assert engine.get_actual_cost(request).cost == pytest.approx(0.2496)

    def test_arn_in_other_region(self, engine):
        request = ActualCostRequest(
            arn="arn:aws:ec2:eu-west-1:123456789012:instance/i-0abc",
            tags={"instance_type": "t3.micro"},
            start=START,
            end=START + timedelta(hours=24),
        )
        with pytest.raises(RegionMismatchError):
            engine.get_actual_cost(request)

    def test_resource_from_json_resource_id(self, engine):
        resource_id = json.dumps({
            "provider": "aws",
            "resource_type": "ec2",
            "sku": "t3.micro",
            "region": "us-east-1",
            "tags": {"pulumi:created": "2024-02-29T00:00:00Z"},
        })
        result = engine.get_actual_cost(ActualCostRequest(resource_id=resource_id), now=NOW)
        assert result.cost == pytest.approx(0.2496)

    def test_resource_from_tags(self, engine):
        request = ActualCostRequest(
            resource_id="i-0abc",
            tags={
                "provider": "aws",
                "resource_type": "ec2",
                "sku": "t3.micro",
                "region": "us-east-1",
            },
            start=START,
            end=START + timedelta(hours=24),
        )
        assert engine.get_actual_cost(request).cost == pytest.approx(0.2496)

    def test_json_resource_id_with_list_tags_is_invalid(self, engine):
        resource_id = json.dumps({
            "provider": "aws",
            "resource_type": "ec2",
            "sku": "t3.micro",
            "region": "us-east-1",
            "tags": ["x"],
        })
        request = ActualCostRequest(resource_id=resource_id, start=START, end=START + timedelta(hours=1))
        with pytest.raises(InvalidResourceError) as exc_info:
            engine.get_actual_cost(request, trace_id="t-6")
        assert "tags must be an object" in exc_info.value.message
        assert exc_info.value.trace_id == "t-6"

    def test_json_resource_id_with_text_utilization_is_invalid(self, engine):
        resource_id = json.dumps({
            "provider": "aws",
            "resource_type": "ec2",
            "sku": "t3.micro",
            "region": "us-east-1",
            "utilization_percentage": "abc",
        })
        request = ActualCostRequest(resource_id=resource_id, start=START, end=START + timedelta(hours=1))
        with pytest.raises(InvalidResourceError) as exc_info:
            engine.get_actual_cost(request, trace_id="t-7")
        assert "utilization_percentage" in exc_info.value.message
        assert exc_info.value.trace_id == "t-7"

    def test_json_resource_id_with_numeric_text_utilization(self, engine):
        resource_id = json.dumps({
            "provider": "aws",
            "resource_type": "ec2",
            "sku": "t3.micro",
            "region": "us-east-1",
            "utilization_percentage": "75",
        })
        request = ActualCostRequest(resource_id=resource_id, start=START, end=START + timedelta(hours=24))
        assert engine.get_actual_cost(request).cost == pytest.approx(0.2496)

    def test_unidentifiable_resource(self, engine):
        request = ActualCostRequest(resource_id="i-0abc", start=START, end=START + timedelta(hours=1))
        with pytest.raises(InvalidResourceError) as exc_info:
            engine.get_actual_cost(request)
        assert "could not be identified" in exc_info.value.message

    def test_missing_request(self, engine):
        with pytest.raises(InvalidResourceError):
            engine.get_actual_cost(None)

    def test_strict_tag_error_propagates(self, engine, make_resource):
        resource = make_resource("natgw", tags={"data_processed_gb": "lots"})
        request = ActualCostRequest(resource=resource, start=START, end=START + timedelta(hours=1))
        with pytest.raises(InvalidResourceError):
            engine.get_actual_cost(request)


class TestPricingSpec:
    """Tests for get_pricing_spec."""

    def test_ec2_spec(self, engine, make_resource):
        spec = engine.get_pricing_spec(make_resource("ec2", "t3.micro"))

        assert spec.billing_mode == "per_hour"
        assert spec.rate_per_unit == pytest.approx(0.0104)
        assert spec.unit == "hour"
        assert spec.currency == "USD"
        assert spec.region == "us-east-1"
        assert "730 hours/month" in spec.assumptions

    def test_unknown_sku_explained(self, engine, make_resource):
        spec = engine.get_pricing_spec(make_resource("ec2", "x9.huge"))
        assert spec.rate_per_unit == 0.0
        assert spec.description == 'EC2 instance type "x9.huge" not found in pricing data'

    def test_unknown_type(self, engine, make_resource):
        spec = engine.get_pricing_spec(make_resource("aws:kinesis/stream:Stream"))
        assert spec.billing_mode == "unknown"

    def test_region_mismatch(self, engine, make_resource):
        with pytest.raises(RegionMismatchError):
            engine.get_pricing_spec(make_resource("ebs", "gp3", region="us-west-2"))

    def test_free_resource(self, engine, make_resource):
        spec = engine.get_pricing_spec(make_resource("vpc"))
        assert spec.billing_mode == "free"
        assert spec.rate_per_unit == 0.0


class TestSupports:
    """Tests for supports and plugin_info."""

    def test_supported_type(self, engine, make_resource):
        result = engine.supports(make_resource("ec2", "t3.micro"))
        assert result.supported
        assert result.supported_metrics == ()

    def test_carbon_metric_advertised_with_estimator(self, pricing, settings, make_resource, carbon_estimator):
        engine = CostEngine(pricing, settings, carbon_estimator=carbon_estimator)
        assert engine.supports(make_resource("ec2", "t3.micro")).supported_metrics == ("carbon_footprint",)
        assert engine.supports(make_resource("ebs", "gp3")).supported_metrics == ()

    def test_other_region_is_unsupported(self, engine, make_resource):
        result = engine.supports(make_resource("ec2", "t3.micro", region="eu-west-1"))
        assert not result.supported
        assert "eu-west-1" in result.reason

    def test_other_provider_is_unsupported(self, engine):
        result = engine.supports(ResourceDescriptor(provider="azure", resource_type="vm", region="us-east-1"))
        assert not result.supported

    def test_unknown_type_is_unsupported(self, engine, make_resource):
        assert not engine.supports(make_resource("aws:kinesis/stream:Stream")).supported

    def test_plugin_info(self, engine):
        info = engine.plugin_info()
        assert info.name == "aws-public"
        assert info.region == "us-east-1"
        assert info.providers == ["aws"]


def test_get_cost_engine_loads_pricing_once(pricing, monkeypatch):
    monkeypatch.setattr(cost_engine_module, "_cost_engine", None)
    monkeypatch.setattr(Config, "AWS_REGION", "us-east-1")
    monkeypatch.setattr(Config, "PRICING_DATA_PATH", "")

    with patch(
        "costengine.pricing.embedded_pricing.create_embedded_pricing_client",
        return_value=pricing,
    ) as factory:
        first = get_cost_engine()
        second = get_cost_engine()

    assert first is second
    factory.assert_called_once_with("us-east-1", None)
