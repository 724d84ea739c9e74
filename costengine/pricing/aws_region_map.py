"""
AWS region code metadata.
Maps region codes to Price List location strings and ARN partitions.
"""
from typing import Dict, List, Optional


# Based on AWS Price List API location values
AWS_REGION_TO_LOCATION: Dict[str, str] = {
    # US East
    "us-east-1": "US East (N. Virginia)",
    "us-east-2": "US East (Ohio)",

    # US West
    "us-west-1": "US West (N. California)",
    "us-west-2": "US West (Oregon)",

    # Asia Pacific
    "ap-south-1": "Asia Pacific (Mumbai)",
    "ap-southeast-1": "Asia Pacific (Singapore)",
    "ap-southeast-2": "Asia Pacific (Sydney)",
    "ap-northeast-1": "Asia Pacific (Tokyo)",
    "ap-northeast-2": "Asia Pacific (Seoul)",
    "ap-northeast-3": "Asia Pacific (Osaka)",
    "ap-east-1": "Asia Pacific (Hong Kong)",

    # Europe
    "eu-west-1": "Europe (Ireland)",
    "eu-west-2": "Europe (London)",
    "eu-west-3": "Europe (Paris)",
    "eu-central-1": "Europe (Frankfurt)",
    "eu-north-1": "Europe (Stockholm)",
    "eu-south-1": "Europe (Milan)",

    "me-south-1": "Middle East (Bahrain)",
    "af-south-1": "Africa (Cape Town)",
    "sa-east-1": "South America (Sao Paulo)",
    "ca-central-1": "Canada (Central)",

    # China partition
    "cn-north-1": "China (Beijing)",
    "cn-northwest-1": "China (Ningxia)",

    # GovCloud partition
    "us-gov-west-1": "AWS GovCloud (US-West)",
    "us-gov-east-1": "AWS GovCloud (US-East)",
}

# ARN partitions this engine accepts
SUPPORTED_PARTITIONS = ("aws", "aws-cn", "aws-us-gov")


def get_aws_pricing_location(region_code: str) -> Optional[str]:
    """
    Get AWS Pricing API location string from region code.

    Args:
        region_code: AWS region code (e.g., 'ap-south-1')

    Returns:
        Pricing API location string (e.g., 'Asia Pacific (Mumbai)'), or None if not found
    """
    return AWS_REGION_TO_LOCATION.get(region_code)


def partition_for_region(region_code: str) -> str:
    """ARN partition a region belongs to."""
    if region_code.startswith("cn-"):
        return "aws-cn"
    if region_code.startswith("us-gov-"):
        return "aws-us-gov"
    return "aws"


def is_known_region(region_code: str) -> bool:
    return region_code in AWS_REGION_TO_LOCATION


def get_all_aws_regions() -> List[str]:
    """
    Get all known AWS region codes.

    Returns:
        List of AWS region codes
    """
    return list(AWS_REGION_TO_LOCATION.keys())
