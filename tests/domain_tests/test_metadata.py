"""Tests for metadata parsing and enrichment."""

from datetime import date

import pytest

from model_repo.core.errors import ValidationError
from model_repo.domain.metadata import (
    derive,
    enrich,
    format_image_size,
    parse_metadata_yaml,
    to_json_value,
)

ULTRALYTICS_YAML = b"""
description: Ultralytics YOLOv8n model
date: 2024-05-01
version: 8.2.0
task: detect
imgsz:
- 640
- 640
names:
  0: building
  1: tree
  2: car
args:
  half: true
  int8: false
  batch: 1
"""


class TestImageSize:
    """imgsz pairs render as a short display string."""

    def test_square(self):
        assert enrich({"imgsz": [640, 640]})["image_size_display"] == "640"

    def test_rectangular(self):
        assert enrich({"imgsz": [640, 480]})["image_size_display"] == "640x480"

    def test_absent(self):
        assert "image_size_display" not in enrich({})

    @pytest.mark.parametrize("value", [640, [640], [640, 480, 3], ["640", "640"], None, [True, False]])
    def test_malformed_is_ignored(self, value):
        assert format_image_size(value) is None
        assert "image_size_display" not in enrich({"imgsz": value})


class TestClassNames:
    """names mapping yields class count and ordered list."""

    def test_mapping(self):
        record = enrich({"names": {"0": "building", "1": "tree"}})
        assert record["num_classes"] == 2
        assert record["class_list"] == ["building", "tree"]

    def test_sequence(self):
        record = enrich({"names": ["a", "b", "c"]})
        assert record["num_classes"] == 3
        assert record["class_list"] == ["a", "b", "c"]

    def test_absent(self):
        record = enrich({})
        assert "num_classes" not in record
        assert "class_list" not in record


class TestTrainingFlags:
    """precision / quantization come from nested training args."""

    @pytest.mark.parametrize("half, expected", [(True, "FP16"), (False, "FP32")])
    def test_precision(self, half, expected):
        assert enrich({"args": {"half": half}})["precision"] == expected

    @pytest.mark.parametrize("int8, expected", [(True, "INT8"), (False, "None")])
    def test_quantization(self, int8, expected):
        assert enrich({"args": {"int8": int8}})["quantization"] == expected

    def test_missing_flags_skip_only_their_fields(self):
        record = enrich({"args": {"batch": 4}, "imgsz": [320, 320]})
        assert "precision" not in record
        assert "quantization" not in record
        assert record["image_size_display"] == "320"

    @pytest.mark.parametrize("args", [None, "half", [True], 3])
    def test_missing_or_odd_args_structure(self, args):
        record = enrich({"args": args, "names": {"0": "x"}})
        assert "precision" not in record
        assert "quantization" not in record
        assert record["num_classes"] == 1


class TestModelFormat:
    """model_format defaults only when absent."""

    def test_default(self):
        assert enrich({})["model_format"] == "TensorFlow.js"

    def test_custom_default(self):
        assert enrich({}, default_format="ONNX")["model_format"] == "ONNX"

    def test_existing_value_kept(self):
        assert enrich({"model_format": "TFLite"})["model_format"] == "TFLite"

    def test_derive_leaves_existing_format_unset(self):
        assert derive({"model_format": "TFLite"}, "TensorFlow.js").model_format is None


class TestEnrichPreservesRecord:
    """Unknown keys pass through untouched."""

    def test_opaque_fields_survive(self):
        raw = {"author": "someone", "nested": {"deep": [1, 2, {"x": None}]}}
        record = enrich(raw)
        assert record["author"] == "someone"
        assert record["nested"] == {"deep": [1, 2, {"x": None}]}

    def test_input_not_mutated(self):
        raw = {"imgsz": [640, 640]}
        enrich(raw)
        assert raw == {"imgsz": [640, 640]}


class TestParseMetadataYaml:
    """YAML parsing into a JSON-compatible record."""

    def test_ultralytics_export(self):
        record = parse_metadata_yaml(ULTRALYTICS_YAML)
        assert record["date"] == "2024-05-01"
        assert record["names"] == {"0": "building", "1": "tree", "2": "car"}
        enriched = enrich(record)
        assert enriched["num_classes"] == 3
        assert enriched["class_list"] == ["building", "tree", "car"]
        assert enriched["precision"] == "FP16"
        assert enriched["quantization"] == "None"
        assert enriched["image_size_display"] == "640"

    def test_empty_file(self):
        assert parse_metadata_yaml(b"") == {}

    def test_non_mapping_rejected(self):
        with pytest.raises(ValidationError):
            parse_metadata_yaml(b"- just\n- a list\n")

    def test_invalid_yaml_rejected(self):
        with pytest.raises(ValidationError):
            parse_metadata_yaml(b"key: [unclosed\n")

    def test_to_json_value(self):
        assert to_json_value({1: date(2024, 1, 2), "t": (1, 2)}) == {"1": "2024-01-02", "t": [1, 2]}
