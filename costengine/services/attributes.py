"""
Attribute extraction from resource tags and structured attribute documents.

Extraction never fails a request: malformed values are logged and treated
as absent, and every typed attribute has a default.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from costengine.domain.cost_models import ResourceDescriptor


logger = logging.getLogger(__name__)


OS_LINUX = "Linux"
OS_WINDOWS = "Windows"
OS_RHEL = "RHEL"
OS_SUSE = "SUSE"

TENANCY_SHARED = "Shared"
TENANCY_DEDICATED = "Dedicated"
TENANCY_HOST = "Host"

ARCH_X86_64 = "x86_64"
ARCH_ARM64 = "arm64"

DEFAULT_RDS_ENGINE = "MySQL"
DEFAULT_RDS_STORAGE_TYPE = "gp2"
DEFAULT_RDS_STORAGE_GB = 20.0
VALID_RDS_STORAGE_TYPES = ("gp2", "gp3", "io1", "io2", "standard")

_PLATFORMS: Dict[str, str] = {
    "linux": OS_LINUX,
    "linux/unix": OS_LINUX,
    "windows": OS_WINDOWS,
    "rhel": OS_RHEL,
    "red hat": OS_RHEL,
    "redhat": OS_RHEL,
    "red hat enterprise linux": OS_RHEL,
    "suse": OS_SUSE,
    "sles": OS_SUSE,
    "suse linux": OS_SUSE,
}

_TENANCIES: Dict[str, str] = {
    "default": TENANCY_SHARED,
    "shared": TENANCY_SHARED,
    "dedicated": TENANCY_DEDICATED,
    "host": TENANCY_HOST,
}

_ARCHITECTURES: Dict[str, str] = {
    "x86_64": ARCH_X86_64,
    "x86-64": ARCH_X86_64,
    "amd64": ARCH_X86_64,
    "x86": ARCH_X86_64,
    "arm": ARCH_ARM64,
    "arm64": ARCH_ARM64,
    "aarch64": ARCH_ARM64,
    "graviton": ARCH_ARM64,
}

# Alias -> canonical engine name as it appears in the pricing data
RDS_ENGINE_ALIASES: Dict[str, str] = {
    "mysql": "MySQL",
    "postgres": "PostgreSQL",
    "postgresql": "PostgreSQL",
    "mariadb": "MariaDB",
    "oracle": "Oracle",
    "oracle-se2": "Oracle",
    "oracle-se2-cdb": "Oracle",
    "oracle-ee": "Oracle",
    "oracle-ee-cdb": "Oracle",
    "sqlserver": "SQL Server",
    "sqlserver-ex": "SQL Server",
    "sqlserver-web": "SQL Server",
    "sqlserver-se": "SQL Server",
    "sqlserver-ee": "SQL Server",
    "sql-server": "SQL Server",
    "aurora": "Aurora MySQL",
    "aurora-mysql": "Aurora MySQL",
    "aurora-postgresql": "Aurora PostgreSQL",
}

# Keys consulted, in priority order, when the SKU field is empty
SKU_TAG_KEYS = ("instanceType", "instance_type", "instance_class", "instanceClass", "type", "volumeType", "volume_type")


class AttributeSource:
    """
    Read-only view over a flat tag map or a structured attribute document.

    Layers are consulted in order. Tags and documents share one lookup
    semantics: keys are matched exactly, nested documents are reached with
    dotted keys, and numbers in documents read the same as their string
    forms in tags.
    """

    def __init__(self, layers: Sequence[Mapping[str, Any]]):
        self._layers = tuple(layer for layer in layers if layer)

    def _raw(self, key: str) -> Any:
        for layer in self._layers:
            value = _dig(layer, key)
            if value is not None:
                return value
        return None

    def text(self, *keys: str) -> str:
        """First non-empty value among keys, as a stripped string."""
        for key in keys:
            value = self._raw(key)
            if value is None or isinstance(value, (dict, list)):
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            text = str(value).strip()
            if text:
                return text
        return ""

    def has(self, key: str) -> bool:
        return self._raw(key) is not None

    def raw_text(self, key: str) -> Optional[str]:
        """Stripped string form of key, or None when the key is absent."""
        value = self._raw(key)
        if value is None:
            return None
        return str(value).strip()

    def number(self, *keys: str) -> Tuple[Optional[float], str]:
        """
        First parseable non-negative number among keys.

        Returns:
            (value, key) where value is None when no key held a valid number
        """
        for key in keys:
            raw = self._raw(key)
            if raw is None:
                continue
            value = parse_number(raw, key)
            if value is not None:
                return value, key
        return None, ""


def _dig(document: Mapping[str, Any], key: str) -> Any:
    if key in document:
        return document[key]
    if "." not in key:
        return None
    current: Any = document
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def parse_number(raw: Any, key: str = "") -> Optional[float]:
    """
    Permissive numeric parse: numbers and numeric strings are accepted.

    Zero is a present value. Empty, non-numeric, non-finite and negative
    values are logged and reported as absent.
    """
    if isinstance(raw, bool):
        logger.warning("Ignoring boolean value for numeric attribute %s", key)
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            logger.warning("Ignoring non-numeric value %r for attribute %s", text, key)
            return None
    if math.isnan(value) or math.isinf(value):
        logger.warning("Ignoring non-finite value for attribute %s", key)
        return None
    if value < 0:
        logger.warning("Ignoring negative value %s for attribute %s", value, key)
        return None
    return value


def attribute_source_for(resource: ResourceDescriptor) -> AttributeSource:
    """Tags take precedence over the structured attribute document."""
    return AttributeSource([resource.tags or {}, resource.attributes or {}])


def resolve_sku(resource: ResourceDescriptor) -> str:
    """The descriptor's SKU, or the first SKU-like tag when it is empty."""
    if resource.sku.strip():
        return resource.sku.strip()
    return attribute_source_for(resource).text(*SKU_TAG_KEYS)


def normalize_platform(value: str) -> str:
    return _PLATFORMS.get(value.strip().lower(), OS_LINUX) if value else OS_LINUX


def normalize_tenancy(value: str) -> str:
    return _TENANCIES.get(value.strip().lower(), TENANCY_SHARED) if value else TENANCY_SHARED


def normalize_architecture(value: str) -> str:
    """Map architecture aliases onto x86_64 or arm64 (default x86_64)."""
    if not value:
        return ARCH_X86_64
    return _ARCHITECTURES.get(value.strip().lower(), ARCH_X86_64)


def normalize_rds_engine(value: str) -> Tuple[str, bool]:
    """
    Canonical engine name for an engine alias.

    Returns:
        (engine, defaulted) where defaulted is True when the input was
        absent or unrecognised and MySQL was assumed
    """
    if not value:
        return DEFAULT_RDS_ENGINE, True
    engine = RDS_ENGINE_ALIASES.get(value.strip().lower())
    if engine is None:
        return DEFAULT_RDS_ENGINE, True
    return engine, False


@dataclass(frozen=True)
class EC2Attributes:
    """Operating system and tenancy used to pick an EC2 price."""
    os: str = OS_LINUX
    tenancy: str = TENANCY_SHARED


@dataclass(frozen=True)
class DatabaseAttributes:
    """Engine and storage settings for a relational database instance."""
    engine: str = DEFAULT_RDS_ENGINE
    engine_defaulted: bool = True
    raw_engine: str = ""
    storage_type: str = DEFAULT_RDS_STORAGE_TYPE
    storage_type_defaulted: bool = True
    storage_gb: float = DEFAULT_RDS_STORAGE_GB
    storage_defaulted: bool = True
    multi_az: bool = False


@dataclass(frozen=True)
class FunctionAttributes:
    """Invocation profile for a serverless function."""
    memory_mb: float = 128.0
    memory_defaulted: bool = True
    requests_per_month: float = 0.0
    requests_defaulted: bool = True
    avg_duration_ms: float = 100.0
    duration_defaulted: bool = True
    architecture: str = ARCH_X86_64


def extract_ec2_attributes(source: AttributeSource) -> EC2Attributes:
    platform = source.text("platform", "operatingSystem", "operating_system", "os")
    tenancy = source.text("tenancy")
    return EC2Attributes(os=normalize_platform(platform), tenancy=normalize_tenancy(tenancy))


def extract_database_attributes(source: AttributeSource) -> DatabaseAttributes:
    raw_engine = source.text("engine")
    engine, engine_defaulted = normalize_rds_engine(raw_engine)

    storage_type = source.text("storage_type", "storageType").lower()
    storage_type_defaulted = storage_type not in VALID_RDS_STORAGE_TYPES
    if storage_type and storage_type_defaulted:
        logger.warning("Unknown RDS storage type %r, using %s", storage_type, DEFAULT_RDS_STORAGE_TYPE)
    if storage_type_defaulted:
        storage_type = DEFAULT_RDS_STORAGE_TYPE

    storage_gb, _ = source.number("storage_size", "allocated_storage", "allocatedStorage")
    storage_defaulted = storage_gb is None or storage_gb <= 0
    if storage_defaulted:
        storage_gb = DEFAULT_RDS_STORAGE_GB

    multi_az = source.text("multi_az", "multiAz").lower() in ("true", "1", "yes")

    return DatabaseAttributes(
        engine=engine,
        engine_defaulted=engine_defaulted,
        raw_engine=raw_engine,
        storage_type=storage_type,
        storage_type_defaulted=storage_type_defaulted,
        storage_gb=storage_gb,
        storage_defaulted=storage_defaulted,
        multi_az=multi_az,
    )


def extract_function_attributes(source: AttributeSource, sku: str) -> FunctionAttributes:
    """Memory comes from the SKU (MB), falling back to the memory tag."""
    memory_mb = parse_number(sku, "sku") if sku else None
    if memory_mb is None or memory_mb <= 0:
        memory_mb, _ = source.number("memory_size", "memorySize", "memory")
    memory_defaulted = memory_mb is None or memory_mb <= 0
    if memory_defaulted:
        memory_mb = 128.0

    requests, _ = source.number("requests_per_month")
    duration, _ = source.number("avg_duration_ms")

    return FunctionAttributes(
        memory_mb=memory_mb,
        memory_defaulted=memory_defaulted,
        requests_per_month=requests if requests is not None else 0.0,
        requests_defaulted=requests is None,
        avg_duration_ms=duration if duration is not None else 100.0,
        duration_defaulted=duration is None,
        architecture=normalize_architecture(source.text("arch", "architecture")),
    )
