"""
Embedded AWS pricing client.
Reads a single-region offer document in AWS Price List Bulk API layout.

The document is loaded and indexed once at construction; every lookup
afterwards is an O(1) dictionary read against immutable indexes.

Usage:
    client = EmbeddedPricingClient(region="us-east-1")
    rate, found = client.ec2_on_demand_price_per_hour("t3.micro", "Linux", "Shared")
"""
import gzip
import json
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from costengine.pricing.aws_region_map import get_aws_pricing_location
from costengine.pricing.source import NATGatewayPrice, PricingSource, TierRate


logger = logging.getLogger(__name__)


DATA_DIR = Path(__file__).parent / "data"

# Caller-facing S3 storage class -> offer "volumeType"
S3_STORAGE_CLASSES: Dict[str, str] = {
    "STANDARD": "Standard",
    "STANDARD_IA": "Standard - Infrequent Access",
    "ONEZONE_IA": "One Zone - Infrequent Access",
    "INTELLIGENT_TIERING": "Intelligent-Tiering Frequent Access",
    "GLACIER_IR": "Glacier Instant Retrieval",
    "GLACIER": "Amazon Glacier",
    "DEEP_ARCHIVE": "Glacier Deep Archive",
}


class EmbeddedPricingError(Exception):
    """Raised when the embedded offer document cannot be loaded."""
    pass


class EmbeddedPricingClient(PricingSource):
    """
    Pricing source backed by an offer document shipped with the package.

    Expects a JSON (optionally gzipped) document of the form:
        {"region": "us-east-1", "currency": "USD",
         "offers": {"AmazonEC2": {"products": {...}, "terms": {"OnDemand": {...}}}, ...}}
    """

    def __init__(self, region: str = "us-east-1", data_path: Optional[str] = None):
        """
        Load and index the offer document for a region.

        Args:
            region: AWS region code this instance serves
            data_path: Optional explicit path to the offer document

        Raises:
            EmbeddedPricingError: If the document is missing, unreadable,
                                  or belongs to a different region
        """
        self._region = region
        path = Path(data_path) if data_path else DATA_DIR / f"{region}.json"
        document = self._load_document(path)

        document_region = document.get("region", "")
        if document_region != region:
            raise EmbeddedPricingError(
                f"Offer document {path} is for region {document_region!r}, expected {region!r}"
            )
        self._currency = document.get("currency", "USD")
        self.publication_date: str = document.get("publicationDate", "")
        self.location: str = document.get("location") or get_aws_pricing_location(region) or region

        # (service_code, lookup_key) -> unit price
        self._price_index: Dict[tuple, float] = {}
        # (service_code, lookup_key) -> ordered tiers
        self._tier_index: Dict[tuple, List[TierRate]] = {}

        for service_code, offer in document.get("offers", {}).items():
            self._index_offer(service_code, offer)

        logger.info(
            "Loaded embedded pricing for %s: %d prices, %d tiered rates (published %s)",
            region,
            len(self._price_index),
            len(self._tier_index),
            self.publication_date or "unknown",
        )

    def _load_document(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            gz_path = path.with_name(path.name + ".gz")
            if not gz_path.exists():
                raise EmbeddedPricingError(f"Offer document not found: {path}")
            path = gz_path
        try:
            if path.suffix == ".gz":
                with gzip.open(path, "rt", encoding="utf-8") as f:
                    return json.load(f)
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError, gzip.BadGzipFile) as e:
            raise EmbeddedPricingError(f"Error loading offer document {path}: {e}") from e

    @staticmethod
    def _build_lookup_key(filters: Dict[str, str]) -> str:
        """
        Build a lookup key from filters for indexing.

        Returns:
            Lookup key string (e.g., "instanceType:t3.micro|operatingSystem:linux|tenancy:shared")
        """
        parts = []
        for key in sorted(filters.keys()):
            value = filters[key]
            if key.lower() in ("databaseengine", "operatingsystem", "tenancy", "cacheengine"):
                value = value.lower()
            parts.append(f"{key}:{value}")
        return "|".join(parts)

    @staticmethod
    def _dimensions(terms: Dict[str, Any], sku: str) -> List[Dict[str, Any]]:
        """Price dimensions of a SKU's first on-demand term, ordered by beginRange."""
        term_entries = terms.get(sku)
        if not term_entries:
            return []
        term = next(iter(term_entries.values()))
        dimensions = list(term.get("priceDimensions", {}).values())

        def begin(dimension: Dict[str, Any]) -> float:
            try:
                return float(dimension.get("beginRange", "0"))
            except (TypeError, ValueError):
                return 0.0

        return sorted(dimensions, key=begin)

    @staticmethod
    def _usd(dimension: Dict[str, Any]) -> Optional[float]:
        price = dimension.get("pricePerUnit", {}).get("USD")
        if price is None:
            return None
        try:
            return float(price)
        except (TypeError, ValueError):
            return None

    def _store_price(self, service_code: str, filters: Dict[str, str], dimensions: List[Dict[str, Any]]) -> None:
        if not dimensions:
            return
        price = self._usd(dimensions[0])
        if price is None:
            return
        index_key = (service_code, self._build_lookup_key(filters))
        self._price_index.setdefault(index_key, price)

    def _store_tiers(self, service_code: str, filters: Dict[str, str], dimensions: List[Dict[str, Any]]) -> None:
        tiers: List[TierRate] = []
        for dimension in dimensions:
            price = self._usd(dimension)
            if price is None:
                continue
            end = dimension.get("endRange", "Inf")
            up_to = math.inf if end in ("Inf", "", None) else float(end)
            tiers.append(TierRate(up_to=up_to, rate=price))
        if tiers:
            self._tier_index[(service_code, self._build_lookup_key(filters))] = tiers

    def _index_offer(self, service_code: str, offer: Dict[str, Any]) -> None:
        """
        Build lookup indexes for one service's offer.

        Products that match none of the known families are skipped.
        """
        products = offer.get("products", {})
        terms = offer.get("terms", {}).get("OnDemand", {})
        before = len(self._price_index) + len(self._tier_index)

        for sku, product in products.items():
            attributes = product.get("attributes", {})
            family = product.get("productFamily", "")
            usage = attributes.get("usagetype", "")
            dimensions = self._dimensions(terms, sku)

            if service_code == "AmazonEC2":
                if family == "Compute Instance":
                    # Only plain images at standard "Used" capacity; skips
                    # "Linux with SQL" images and capacity reservations
                    if attributes.get("preInstalledSw", "NA") not in ("NA", ""):
                        continue
                    if attributes.get("capacitystatus", "Used").lower() != "used":
                        continue
                    self._store_price(service_code, {
                        "instanceType": attributes.get("instanceType", ""),
                        "operatingSystem": attributes.get("operatingSystem", ""),
                        "tenancy": attributes.get("tenancy", ""),
                    }, dimensions)
                elif family == "Storage":
                    self._store_price(service_code, {"volumeApiName": attributes.get("volumeApiName", "")}, dimensions)
                elif family == "NAT Gateway":
                    if usage.endswith("NatGateway-Hours"):
                        self._store_price(service_code, {"usage": "nat-hours"}, dimensions)
                    elif usage.endswith("NatGateway-Bytes"):
                        self._store_price(service_code, {"usage": "nat-bytes"}, dimensions)

            elif service_code == "AmazonRDS":
                if family == "Database Instance":
                    self._store_price(service_code, {
                        "instanceType": attributes.get("instanceType", ""),
                        "databaseEngine": attributes.get("databaseEngine", ""),
                        "deploymentOption": attributes.get("deploymentOption", ""),
                    }, dimensions)
                elif family == "Database Storage" and attributes.get("deploymentOption", "Single-AZ") == "Single-AZ":
                    self._store_price(service_code, {"volumeApiName": attributes.get("volumeApiName", "")}, dimensions)

            elif service_code == "AmazonEKS":
                if usage.endswith("AmazonEKS-Hours:perCluster"):
                    self._store_price(service_code, {"support": "standard"}, dimensions)
                elif usage.endswith("AmazonEKS-Hours:extendedSupport"):
                    self._store_price(service_code, {"support": "extended"}, dimensions)

            elif service_code == "AmazonS3":
                if family == "Storage":
                    # First tier is the headline GB-month rate
                    self._store_price(service_code, {"volumeType": attributes.get("volumeType", "")}, dimensions)

            elif service_code == "AWSLambda":
                group = attributes.get("group", "")
                if group == "AWS-Lambda-Requests":
                    self._store_price(service_code, {"usage": "requests"}, dimensions)
                elif group == "AWS-Lambda-Duration":
                    self._store_price(service_code, {"usage": "gb-second", "arch": "x86_64"}, dimensions)
                elif group == "AWS-Lambda-Duration-ARM":
                    self._store_price(service_code, {"usage": "gb-second", "arch": "arm64"}, dimensions)

            elif service_code == "AmazonDynamoDB":
                for suffix in (
                    "ReadRequestUnits",
                    "WriteRequestUnits",
                    "ReadCapacityUnit-Hrs",
                    "WriteCapacityUnit-Hrs",
                    "TimedStorage-ByteHrs",
                ):
                    if usage.endswith(suffix):
                        self._store_price(service_code, {"usage": suffix}, dimensions)
                        break

            elif service_code == "AWSELB":
                balancer = {
                    "Load Balancer-Application": "alb",
                    "Load Balancer-Network": "nlb",
                }.get(family)
                if balancer and usage.endswith("LoadBalancerUsage"):
                    self._store_price(service_code, {"balancer": balancer, "usage": "hours"}, dimensions)
                elif balancer and usage.endswith("LCUUsage"):
                    self._store_price(service_code, {"balancer": balancer, "usage": "capacity-units"}, dimensions)

            elif service_code == "AmazonCloudWatch":
                if usage.endswith("VendedLog-Bytes") or usage.endswith("DataProcessing-Bytes"):
                    self._store_tiers(service_code, {"usage": "log-ingestion"}, dimensions)
                elif usage.endswith("TimedStorage-ByteHrs"):
                    self._store_price(service_code, {"usage": "log-storage"}, dimensions)
                elif usage.endswith("CW:MetricMonitorUsage"):
                    self._store_tiers(service_code, {"usage": "metrics"}, dimensions)

            elif service_code == "AmazonElastiCache":
                if family == "Cache Instance":
                    self._store_price(service_code, {
                        "instanceType": attributes.get("instanceType", ""),
                        "cacheEngine": attributes.get("cacheEngine", ""),
                    }, dimensions)

        indexed_count = len(self._price_index) + len(self._tier_index) - before
        logger.debug(f"Indexed {indexed_count} prices for {service_code}/{self._region}")

    def _lookup(self, service_code: str, filters: Dict[str, str]) -> Tuple[float, bool]:
        price = self._price_index.get((service_code, self._build_lookup_key(filters)))
        if price is None:
            logger.debug("No %s price for %s in %s", service_code, filters, self._region)
            return 0.0, False
        return price, True

    def _lookup_tiers(self, service_code: str, filters: Dict[str, str]) -> Tuple[List[TierRate], bool]:
        tiers = self._tier_index.get((service_code, self._build_lookup_key(filters)))
        if not tiers:
            logger.debug("No %s tiers for %s in %s", service_code, filters, self._region)
            return [], False
        return list(tiers), True

    def region(self) -> str:
        return self._region

    def currency(self) -> str:
        return self._currency

    def ec2_on_demand_price_per_hour(self, instance_type: str, os: str, tenancy: str) -> Tuple[float, bool]:
        return self._lookup("AmazonEC2", {"instanceType": instance_type, "operatingSystem": os, "tenancy": tenancy})

    def ebs_price_per_gb_month(self, volume_type: str) -> Tuple[float, bool]:
        return self._lookup("AmazonEC2", {"volumeApiName": volume_type.lower()})

    def rds_on_demand_price_per_hour(self, instance_type: str, engine: str) -> Tuple[float, bool]:
        return self._lookup("AmazonRDS", {
            "instanceType": instance_type,
            "databaseEngine": engine,
            "deploymentOption": "Single-AZ",
        })

    def rds_storage_price_per_gb_month(self, volume_type: str) -> Tuple[float, bool]:
        return self._lookup("AmazonRDS", {"volumeApiName": volume_type.lower()})

    def eks_cluster_price_per_hour(self, extended_support: bool) -> Tuple[float, bool]:
        return self._lookup("AmazonEKS", {"support": "extended" if extended_support else "standard"})

    def s3_price_per_gb_month(self, storage_class: str) -> Tuple[float, bool]:
        volume_type = S3_STORAGE_CLASSES.get(storage_class.upper())
        if volume_type is None:
            return 0.0, False
        return self._lookup("AmazonS3", {"volumeType": volume_type})

    def lambda_price_per_request(self) -> Tuple[float, bool]:
        return self._lookup("AWSLambda", {"usage": "requests"})

    def lambda_price_per_gb_second(self, architecture: str) -> Tuple[float, bool]:
        return self._lookup("AWSLambda", {"usage": "gb-second", "arch": architecture})

    def dynamodb_on_demand_read_price(self) -> Tuple[float, bool]:
        return self._lookup("AmazonDynamoDB", {"usage": "ReadRequestUnits"})

    def dynamodb_on_demand_write_price(self) -> Tuple[float, bool]:
        return self._lookup("AmazonDynamoDB", {"usage": "WriteRequestUnits"})

    def dynamodb_provisioned_rcu_price(self) -> Tuple[float, bool]:
        return self._lookup("AmazonDynamoDB", {"usage": "ReadCapacityUnit-Hrs"})

    def dynamodb_provisioned_wcu_price(self) -> Tuple[float, bool]:
        return self._lookup("AmazonDynamoDB", {"usage": "WriteCapacityUnit-Hrs"})

    def dynamodb_storage_price_per_gb_month(self) -> Tuple[float, bool]:
        return self._lookup("AmazonDynamoDB", {"usage": "TimedStorage-ByteHrs"})

    def alb_price_per_hour(self) -> Tuple[float, bool]:
        return self._lookup("AWSELB", {"balancer": "alb", "usage": "hours"})

    def alb_price_per_lcu(self) -> Tuple[float, bool]:
        return self._lookup("AWSELB", {"balancer": "alb", "usage": "capacity-units"})

    def nlb_price_per_hour(self) -> Tuple[float, bool]:
        return self._lookup("AWSELB", {"balancer": "nlb", "usage": "hours"})

    def nlb_price_per_nlcu(self) -> Tuple[float, bool]:
        return self._lookup("AWSELB", {"balancer": "nlb", "usage": "capacity-units"})

    def nat_gateway_price(self) -> Tuple[NATGatewayPrice, bool]:
        hourly, hourly_found = self._lookup("AmazonEC2", {"usage": "nat-hours"})
        data, data_found = self._lookup("AmazonEC2", {"usage": "nat-bytes"})
        if not (hourly_found and data_found):
            return NATGatewayPrice(0.0, 0.0), False
        return NATGatewayPrice(hourly_rate=hourly, data_processing_rate=data), True

    def cloudwatch_logs_ingestion_tiers(self) -> Tuple[List[TierRate], bool]:
        return self._lookup_tiers("AmazonCloudWatch", {"usage": "log-ingestion"})

    def cloudwatch_logs_storage_price(self) -> Tuple[float, bool]:
        return self._lookup("AmazonCloudWatch", {"usage": "log-storage"})

    def cloudwatch_metrics_tiers(self) -> Tuple[List[TierRate], bool]:
        return self._lookup_tiers("AmazonCloudWatch", {"usage": "metrics"})

    def elasticache_on_demand_price_per_hour(self, node_type: str, engine: str) -> Tuple[float, bool]:
        return self._lookup("AmazonElastiCache", {"instanceType": node_type, "cacheEngine": engine})


def create_embedded_pricing_client(region: str, data_path: Optional[str] = None) -> EmbeddedPricingClient:
    """
    Create the embedded pricing client for a region.

    Args:
        region: AWS region code
        data_path: Optional path to an offer document (default: packaged data)

    Returns:
        EmbeddedPricingClient instance

    Raises:
        EmbeddedPricingError: If no offer document is available for the region
    """
    return EmbeddedPricingClient(region=region, data_path=data_path or None)
