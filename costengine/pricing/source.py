"""
Pricing source and carbon estimator interfaces.

Lookups return (value, found) pairs. A miss is never an exception; callers
turn it into a $0 estimate with an explanation.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class TierRate:
    """Rate applied to usage up to (and including) up_to units."""
    up_to: float
    rate: float


@dataclass(frozen=True)
class NATGatewayPrice:
    hourly_rate: float
    data_processing_rate: float


class PricingSource(ABC):
    """Read-only, region-scoped lookup of AWS public on-demand prices."""

    @abstractmethod
    def region(self) -> str:
        """Region code the loaded prices belong to."""

    @abstractmethod
    def currency(self) -> str:
        """Currency of every returned rate."""

    # Compute and block storage
    @abstractmethod
    def ec2_on_demand_price_per_hour(self, instance_type: str, os: str, tenancy: str) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def ebs_price_per_gb_month(self, volume_type: str) -> Tuple[float, bool]:
        ...

    # Relational databases
    @abstractmethod
    def rds_on_demand_price_per_hour(self, instance_type: str, engine: str) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def rds_storage_price_per_gb_month(self, volume_type: str) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def eks_cluster_price_per_hour(self, extended_support: bool) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def s3_price_per_gb_month(self, storage_class: str) -> Tuple[float, bool]:
        ...

    # Serverless functions
    @abstractmethod
    def lambda_price_per_request(self) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def lambda_price_per_gb_second(self, architecture: str) -> Tuple[float, bool]:
        ...

    # Key-value tables
    @abstractmethod
    def dynamodb_on_demand_read_price(self) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def dynamodb_on_demand_write_price(self) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def dynamodb_provisioned_rcu_price(self) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def dynamodb_provisioned_wcu_price(self) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def dynamodb_storage_price_per_gb_month(self) -> Tuple[float, bool]:
        ...

    # Load balancers
    @abstractmethod
    def alb_price_per_hour(self) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def alb_price_per_lcu(self) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def nlb_price_per_hour(self) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def nlb_price_per_nlcu(self) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def nat_gateway_price(self) -> Tuple[NATGatewayPrice, bool]:
        ...

    # Logs and metrics
    @abstractmethod
    def cloudwatch_logs_ingestion_tiers(self) -> Tuple[List[TierRate], bool]:
        ...

    @abstractmethod
    def cloudwatch_logs_storage_price(self) -> Tuple[float, bool]:
        ...

    @abstractmethod
    def cloudwatch_metrics_tiers(self) -> Tuple[List[TierRate], bool]:
        ...

    @abstractmethod
    def elasticache_on_demand_price_per_hour(self, node_type: str, engine: str) -> Tuple[float, bool]:
        ...


class CarbonEstimator(ABC):
    """Estimates operational carbon for compute instances."""

    @abstractmethod
    def estimate_grams_co2e(
        self,
        instance_type: str,
        region: str,
        utilization: float,
        hours: float,
    ) -> Tuple[float, bool]:
        """
        Grams of CO2-equivalent for running instance_type for hours.

        Returns:
            (grams, ok) where ok is False when the instance type is unknown
        """
