# model_repo/domain/metadata.py
"""
Metadata enrichment for uploaded model versions.

Uploaded ``metadata.yaml`` files are free-form (typically the metadata written
by an Ultralytics export). The record is kept verbatim as a JSON-compatible
value; a handful of display fields are derived from well-known keys and laid
on top of it.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel

from ..core.errors import ValidationError

MetadataValue = Union[None, bool, int, float, str, List["MetadataValue"], Dict[str, "MetadataValue"]]
MetadataRecord = Dict[str, MetadataValue]

METADATA_FILENAME = "metadata.yaml"


class DerivedMetadata(BaseModel):
    num_classes: Optional[int] = None
    class_list: Optional[List[Any]] = None
    image_size_display: Optional[str] = None
    precision: Optional[str] = None
    quantization: Optional[str] = None
    model_format: Optional[str] = None


def to_json_value(value: Any) -> MetadataValue:
    """Coerce a parsed YAML value into something the JSON column accepts."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_json_value(v) for v in value]
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def parse_metadata_yaml(content: bytes) -> MetadataRecord:
    try:
        parsed = yaml.safe_load(content.decode("utf-8")) if content else None
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ValidationError(f"{METADATA_FILENAME} could not be parsed: {exc}") from exc
    if parsed is None:
        return {}
    if not isinstance(parsed, Mapping):
        raise ValidationError(f"{METADATA_FILENAME} must contain a mapping")
    return to_json_value(parsed)  # type: ignore[return-value]


def format_image_size(imgsz: Any) -> Optional[str]:
    if not isinstance(imgsz, (list, tuple)) or len(imgsz) != 2:
        return None
    width, height = imgsz
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (width, height)):
        return None
    if width == height:
        return str(width)
    return f"{width}x{height}"


def _training_flag(raw: Mapping[str, Any], flag: str) -> Optional[bool]:
    args = raw.get("args")
    if not isinstance(args, Mapping):
        return None
    value = args.get(flag)
    if isinstance(value, bool):
        return value
    return None


def derive(raw: Mapping[str, Any], default_format: str) -> DerivedMetadata:
    derived = DerivedMetadata()

    names = raw.get("names")
    if isinstance(names, Mapping):
        derived.num_classes = len(names)
        derived.class_list = list(names.values())
    elif isinstance(names, list):
        derived.num_classes = len(names)
        derived.class_list = list(names)

    derived.image_size_display = format_image_size(raw.get("imgsz"))

    half = _training_flag(raw, "half")
    if half is not None:
        derived.precision = "FP16" if half else "FP32"

    int8 = _training_flag(raw, "int8")
    if int8 is not None:
        derived.quantization = "INT8" if int8 else "None"

    if not raw.get("model_format"):
        derived.model_format = default_format

    return derived


def enrich(raw: Mapping[str, Any], default_format: str = "TensorFlow.js") -> MetadataRecord:
    """Return a copy of ``raw`` with the derived display fields added."""
    record: MetadataRecord = dict(raw)
    record.update(derive(raw, default_format).model_dump(exclude_none=True))
    return record
