"""Global configuration: constants, parser settings, environment overrides."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Progress callback cadence while scanning, in bytes of input consumed
DEFAULT_PROGRESS_CHUNK_BYTES = 1 << 20

# Share of the progress range given to scanning; the rest covers the
# unit, spatial and property passes
SCAN_PROGRESS_SHARE = 0.8

# Circle tessellation bounds (see geometry.profile.calculate_circle_segments)
MIN_CIRCLE_SEGMENTS = 8
MAX_CIRCLE_SEGMENTS = 32

# Segments used around a swept disk and a full revolution
SWEPT_DISK_SEGMENTS = 12
FULL_REVOLUTION_SEGMENTS = 24

# Geometric tolerance for coincident points and zero-area checks
EPSILON = 1e-9

# Representation identifiers whose items are turned into meshes
BODY_REPRESENTATIONS = ("Body", "Facetation")

# Spatial structure entity types, mapped to node kinds
SPATIAL_TYPES = {
    "IFCPROJECT": "project",
    "IFCSITE": "site",
    "IFCBUILDING": "building",
    "IFCBUILDINGSTOREY": "storey",
    "IFCSPACE": "space",
    "IFCFACILITY": "facility",
    "IFCFACILITYPART": "facility_part",
    "IFCBRIDGE": "facility",
    "IFCROAD": "facility",
    "IFCRAILWAY": "facility",
    "IFCMARINEFACILITY": "facility",
    "IFCBRIDGEPART": "facility_part",
    "IFCROADPART": "facility_part",
    "IFCRAILWAYPART": "facility_part",
}

# Environment keys understood by load_settings(), with defaults
_CONFIG_KEYS: dict[str, dict[str, Any]] = {
    "AECMESH_BUILD_SPATIAL": {"default": "true", "description": "Build the spatial tree"},
    "AECMESH_EXTRACT_PROPERTIES": {"default": "true", "description": "Read property sets"},
    "AECMESH_STRICT": {"default": "false", "description": "Abort on the first structural error"},
    "AECMESH_PROGRESS_CHUNK": {
        "default": str(DEFAULT_PROGRESS_CHUNK_BYTES),
        "description": "Bytes scanned between progress callbacks",
    },
    "AECMESH_UNIT_SCALE": {"default": "true", "description": "Scale meshes to metres"},
    "AECMESH_WORKERS": {"default": "1", "description": "Worker threads for decode and geometry"},
    "AECMESH_LOG_LEVEL": {"default": "INFO", "description": "Logging level"},
}


class ParserSettings(BaseModel):
    """Runtime options for a parse and the geometry pass that follows it."""

    build_spatial_tree: bool = True
    extract_properties: bool = True
    strict: bool = False
    progress_chunk_bytes: int = Field(default=DEFAULT_PROGRESS_CHUNK_BYTES, gt=0)
    apply_unit_scale: bool = True
    workers: int = Field(default=1, ge=1)
    log_level: str = "INFO"


_FIELD_FOR_KEY = {
    "AECMESH_BUILD_SPATIAL": "build_spatial_tree",
    "AECMESH_EXTRACT_PROPERTIES": "extract_properties",
    "AECMESH_STRICT": "strict",
    "AECMESH_PROGRESS_CHUNK": "progress_chunk_bytes",
    "AECMESH_UNIT_SCALE": "apply_unit_scale",
    "AECMESH_WORKERS": "workers",
    "AECMESH_LOG_LEVEL": "log_level",
}


def load_settings(config_file: str | Path | None = None) -> ParserSettings:
    """Load merged settings: defaults -> JSON file -> environment variables.

    The JSON file may use either the ``AECMESH_*`` keys or the field names of
    :class:`ParserSettings`.  Environment variables override everything.
    """
    values: dict[str, str] = {}

    # 1. Defaults
    for key, info in _CONFIG_KEYS.items():
        values[key] = str(info["default"])

    # 2. Config file
    if config_file is not None:
        path = Path(config_file)
        if path.is_file():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                reverse = {field: key for key, field in _FIELD_FOR_KEY.items()}
                for k, v in data.items():
                    key = reverse.get(k, k)
                    if isinstance(v, bool):
                        v = "true" if v else "false"
                    values[key] = str(v)
            except (json.JSONDecodeError, OSError):
                logger.warning("Could not read config file %s", path, exc_info=True)

    # 3. Environment variables override all
    for key in _CONFIG_KEYS:
        env_val = os.environ.get(key)
        if env_val is not None:
            values[key] = env_val

    fields: dict[str, Any] = {}
    for key, field in _FIELD_FOR_KEY.items():
        if key in values:
            fields[field] = values[key]
    return ParserSettings.model_validate(fields)


def describe_settings() -> list[tuple[str, str, str]]:
    """Return ``(key, default, description)`` for every environment key."""
    return [(k, str(v["default"]), v["description"]) for k, v in _CONFIG_KEYS.items()]
