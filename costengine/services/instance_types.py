"""
Instance family tables used by the recommendation generator.

These maps are hand-curated: each entry names a newer or ARM-based family
that is a drop-in replacement for the source family. Whether a swap is
recommended still depends on live prices at lookup time.
"""
from typing import Dict, Optional, Tuple


# Previous generation -> next generation, same architecture
GENERATION_UPGRADE_MAP: Dict[str, str] = {
    "t2": "t3",
    "t3": "t3a",
    "m4": "m5",
    "m5": "m6i",
    "m5a": "m6a",
    "m6i": "m7i",
    "m6a": "m7a",
    "c4": "c5",
    "c5": "c6i",
    "c5a": "c6a",
    "c6i": "c7i",
    "c6a": "c7a",
    "r4": "r5",
    "r5": "r6i",
    "r5a": "r6a",
    "r6i": "r7i",
    "r6a": "r7a",
    "i3": "i3en",
    "d2": "d3",
}

# x86 family -> Graviton (arm64) equivalent
GRAVITON_MAP: Dict[str, str] = {
    "m5": "m6g",
    "m5a": "m6g",
    "m5n": "m6g",
    "m6i": "m6g",
    "m6a": "m6g",
    "m7i": "m7g",
    "m7a": "m7g",
    "c5": "c6g",
    "c5a": "c6g",
    "c5n": "c6gn",
    "c6i": "c6g",
    "c6a": "c6g",
    "c7i": "c7g",
    "c7a": "c7g",
    "r5": "r6g",
    "r5a": "r6g",
    "r5n": "r6g",
    "r6i": "r6g",
    "r6a": "r6g",
    "r7i": "r7g",
    "r7a": "r7g",
    "t3": "t4g",
    "t3a": "t4g",
}

RDS_GENERATION_UPGRADE_MAP: Dict[str, str] = {
    "db.t2": "db.t3",
    "db.t3": "db.t4g",
    "db.m4": "db.m5",
    "db.m5": "db.m6i",
    "db.m6i": "db.m7i",
    "db.r4": "db.r5",
    "db.r5": "db.r6i",
    "db.r6i": "db.r7i",
}

RDS_GRAVITON_MAP: Dict[str, str] = {
    "db.m5": "db.m6g",
    "db.m6i": "db.m7g",
    "db.r5": "db.r6g",
    "db.r6i": "db.r7g",
    "db.t3": "db.t4g",
}

# Canonical engine names (see attributes.RDS_ENGINE_ALIASES) with Graviton instances
GRAVITON_RDS_ENGINES = frozenset({
    "MySQL",
    "PostgreSQL",
    "MariaDB",
    "Aurora MySQL",
    "Aurora PostgreSQL",
})


def parse_instance_type(instance_type: str) -> Optional[Tuple[str, str]]:
    """
    Split "family.size" into its parts.

    Returns:
        (family, size), or None if the string is not exactly two dotted parts
    """
    parts = instance_type.split(".")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def parse_rds_instance_type(instance_type: str) -> Optional[Tuple[str, str]]:
    """
    Split "db.family.size" into ("db.family", size).
    """
    parts = instance_type.split(".")
    if len(parts) != 3 or parts[0] != "db" or not parts[1] or not parts[2]:
        return None
    return f"db.{parts[1]}", parts[2]


def generation_upgrade(instance_type: str) -> Optional[str]:
    parsed = parse_instance_type(instance_type)
    if parsed is None:
        return None
    family, size = parsed
    target = GENERATION_UPGRADE_MAP.get(family)
    return f"{target}.{size}" if target else None


def graviton_equivalent(instance_type: str) -> Optional[str]:
    parsed = parse_instance_type(instance_type)
    if parsed is None:
        return None
    family, size = parsed
    target = GRAVITON_MAP.get(family)
    return f"{target}.{size}" if target else None


def rds_generation_upgrade(instance_type: str) -> Optional[str]:
    parsed = parse_rds_instance_type(instance_type)
    if parsed is None:
        return None
    family, size = parsed
    target = RDS_GENERATION_UPGRADE_MAP.get(family)
    return f"{target}.{size}" if target else None


def rds_graviton_equivalent(instance_type: str) -> Optional[str]:
    parsed = parse_rds_instance_type(instance_type)
    if parsed is None:
        return None
    family, size = parsed
    target = RDS_GRAVITON_MAP.get(family)
    return f"{target}.{size}" if target else None
