"""
Shared pytest fixtures for cost engine tests.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest
from typing import Dict, List, Set, Tuple
from fastapi.testclient import TestClient

from costengine.core.config import EngineSettings
from costengine.domain.cost_models import ResourceDescriptor
from costengine.pricing.source import CarbonEstimator, NATGatewayPrice, PricingSource, TierRate
from costengine.services.cost_engine import CostEngine
from costengine.services.cost_estimator import EstimationContext


INF = float("inf")


class FakePricingSource(PricingSource):
    """
    In-memory pricing source.

    Add a method name to `unavailable` to make that lookup miss.
    """

    def __init__(self, region: str = "us-east-1"):
        self._region = region
        self.unavailable: Set[str] = set()
        self.ec2: Dict[Tuple[str, str, str], float] = {
            ("t2.micro", "Linux", "Shared"): 0.0116,
            ("t3.micro", "Linux", "Shared"): 0.0104,
            ("t3a.micro", "Linux", "Shared"): 0.0094,
            ("t4g.micro", "Linux", "Shared"): 0.0084,
            ("t3.micro", "Windows", "Shared"): 0.0196,
            ("m5.large", "Linux", "Shared"): 0.096,
            ("m5.large", "Linux", "Dedicated"): 0.106,
            ("m6i.large", "Linux", "Shared"): 0.096,
            ("m6g.large", "Linux", "Shared"): 0.077,
            ("c5.large", "Linux", "Shared"): 0.085,
            ("c6i.large", "Linux", "Shared"): 0.102,
            ("c6g.large", "Linux", "Shared"): 0.068,
        }
        self.ebs: Dict[str, float] = {"gp2": 0.10, "gp3": 0.08, "io1": 0.125, "st1": 0.045}
        self.rds: Dict[Tuple[str, str], float] = {
            ("db.t3.micro", "MySQL"): 0.017,
            ("db.t3.micro", "PostgreSQL"): 0.018,
            ("db.t4g.micro", "MySQL"): 0.016,
            ("db.m5.large", "MySQL"): 0.171,
            ("db.m6i.large", "MySQL"): 0.171,
            ("db.m6g.large", "MySQL"): 0.152,
            ("db.m5.large", "Oracle"): 0.316,
            ("db.m6i.large", "Oracle"): 0.316,
        }
        self.rds_storage: Dict[str, float] = {"gp2": 0.115, "gp3": 0.115, "io1": 0.125, "standard": 0.10}
        self.s3: Dict[str, float] = {"STANDARD": 0.023, "STANDARD_IA": 0.0125, "GLACIER": 0.0036}
        self.elasticache: Dict[Tuple[str, str], float] = {
            ("cache.t3.micro", "Redis"): 0.017,
            ("cache.t3.micro", "Memcached"): 0.017,
            ("cache.m5.large", "Redis"): 0.156,
        }

    def _get(self, method: str, table: Dict, key) -> Tuple[float, bool]:
        if method in self.unavailable or key not in table:
            return 0.0, False
        return table[key], True

    def _scalar(self, method: str, value: float) -> Tuple[float, bool]:
        if method in self.unavailable:
            return 0.0, False
        return value, True

    def region(self) -> str:
        return self._region

    def currency(self) -> str:
        return "USD"

    def ec2_on_demand_price_per_hour(self, instance_type: str, os: str, tenancy: str) -> Tuple[float, bool]:
        return self._get("ec2_on_demand_price_per_hour", self.ec2, (instance_type, os, tenancy))

    def ebs_price_per_gb_month(self, volume_type: str) -> Tuple[float, bool]:
        return self._get("ebs_price_per_gb_month", self.ebs, volume_type)

    def rds_on_demand_price_per_hour(self, instance_type: str, engine: str) -> Tuple[float, bool]:
        return self._get("rds_on_demand_price_per_hour", self.rds, (instance_type, engine))

    def rds_storage_price_per_gb_month(self, volume_type: str) -> Tuple[float, bool]:
        return self._get("rds_storage_price_per_gb_month", self.rds_storage, volume_type)

    def eks_cluster_price_per_hour(self, extended_support: bool) -> Tuple[float, bool]:
        return self._scalar("eks_cluster_price_per_hour", 0.60 if extended_support else 0.10)

    def s3_price_per_gb_month(self, storage_class: str) -> Tuple[float, bool]:
        return self._get("s3_price_per_gb_month", self.s3, storage_class)

    def lambda_price_per_request(self) -> Tuple[float, bool]:
        return self._scalar("lambda_price_per_request", 0.0000002)

    def lambda_price_per_gb_second(self, architecture: str) -> Tuple[float, bool]:
        return self._scalar(
            "lambda_price_per_gb_second", 0.0000133334 if architecture == "arm64" else 0.0000166667
        )

    def dynamodb_on_demand_read_price(self) -> Tuple[float, bool]:
        return self._scalar("dynamodb_on_demand_read_price", 0.000000125)

    def dynamodb_on_demand_write_price(self) -> Tuple[float, bool]:
        return self._scalar("dynamodb_on_demand_write_price", 0.000000625)

    def dynamodb_provisioned_rcu_price(self) -> Tuple[float, bool]:
        return self._scalar("dynamodb_provisioned_rcu_price", 0.00013)

    def dynamodb_provisioned_wcu_price(self) -> Tuple[float, bool]:
        return self._scalar("dynamodb_provisioned_wcu_price", 0.00065)

    def dynamodb_storage_price_per_gb_month(self) -> Tuple[float, bool]:
        return self._scalar("dynamodb_storage_price_per_gb_month", 0.25)

    def alb_price_per_hour(self) -> Tuple[float, bool]:
        return self._scalar("alb_price_per_hour", 0.0225)

    def alb_price_per_lcu(self) -> Tuple[float, bool]:
        return self._scalar("alb_price_per_lcu", 0.008)

    def nlb_price_per_hour(self) -> Tuple[float, bool]:
        return self._scalar("nlb_price_per_hour", 0.0225)

    def nlb_price_per_nlcu(self) -> Tuple[float, bool]:
        return self._scalar("nlb_price_per_nlcu", 0.006)

    def nat_gateway_price(self) -> Tuple[NATGatewayPrice, bool]:
        if "nat_gateway_price" in self.unavailable:
            return NATGatewayPrice(0.0, 0.0), False
        return NATGatewayPrice(hourly_rate=0.045, data_processing_rate=0.045), True

    def cloudwatch_logs_ingestion_tiers(self) -> Tuple[List[TierRate], bool]:
        if "cloudwatch_logs_ingestion_tiers" in self.unavailable:
            return [], False
        return [TierRate(10240, 0.50), TierRate(30720, 0.25), TierRate(51200, 0.10), TierRate(INF, 0.05)], True

    def cloudwatch_logs_storage_price(self) -> Tuple[float, bool]:
        return self._scalar("cloudwatch_logs_storage_price", 0.03)

    def cloudwatch_metrics_tiers(self) -> Tuple[List[TierRate], bool]:
        if "cloudwatch_metrics_tiers" in self.unavailable:
            return [], False
        return [TierRate(10000, 0.30), TierRate(250000, 0.10), TierRate(1000000, 0.05), TierRate(INF, 0.02)], True

    def elasticache_on_demand_price_per_hour(self, node_type: str, engine: str) -> Tuple[float, bool]:
        return self._get("elasticache_on_demand_price_per_hour", self.elasticache, (node_type, engine))


class FakeCarbonEstimator(CarbonEstimator):
    """Returns 1 gram per hour, scaled by utilization."""

    def estimate_grams_co2e(self, instance_type, region, utilization, hours):
        if instance_type == "unknown.type":
            return 0.0, False
        return hours * utilization, True


@pytest.fixture
def pricing():
    """In-memory pricing for us-east-1."""
    return FakePricingSource()


@pytest.fixture
def settings():
    """Default engine settings for us-east-1."""
    return EngineSettings(region="us-east-1")


@pytest.fixture
def engine(pricing, settings):
    """Cost engine over the fake pricing source."""
    return CostEngine(pricing, settings)


@pytest.fixture
def carbon_estimator():
    """Carbon estimator returning 1 gram per hour at full utilization."""
    return FakeCarbonEstimator()


@pytest.fixture
def context():
    """Estimation context without a carbon estimator."""
    return EstimationContext(region="us-east-1", trace_id="test-trace")


@pytest.fixture
def make_resource():
    """Factory for AWS resource descriptors in us-east-1."""
    def factory(resource_type: str, sku: str = "", tags: Dict[str, str] = None, region: str = "us-east-1", **kwargs):
        return ResourceDescriptor(
            provider="aws",
            resource_type=resource_type,
            sku=sku,
            region=region,
            tags=tags or {},
            **kwargs,
        )
    return factory


@pytest.fixture
def client(engine, monkeypatch):
    """FastAPI test client wired to the fake-priced engine."""
    from costengine.main import app
    monkeypatch.setattr("costengine.api.costs.get_cost_engine", lambda: engine)
    return TestClient(app)
