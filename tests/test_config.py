"""Tests for bikefit.config -- defaults, file round-trips and validation."""

import json

import pytest

from bikefit.config import (
    DEFAULT_CONFIG,
    get_target_ranges,
    load_config,
    merge_config,
    save_config,
    validate_config,
    validate_target_ranges,
)


class TestDefaults:

    def test_sections(self):
        assert set(DEFAULT_CONFIG) == {"angles", "cadence", "analysis"}

    def test_detector_constants(self):
        cad = DEFAULT_CONFIG["cadence"]
        assert cad["window_ms"] == 4000.0
        assert cad["min_samples"] == 10
        assert cad["min_peak_gap_ms"] == 300.0
        assert (cad["min_cadence_rpm"], cad["max_cadence_rpm"]) == (40.0, 120.0)
        assert cad["stop_timeout_ms"] == 2000.0

    def test_default_ranges(self):
        ranges = get_target_ranges()
        assert ranges == {
            "knee": (135.0, 150.0),
            "hip": (60.0, 80.0),
            "torso": (30.0, 55.0),
            "elbow": (145.0, 170.0),
        }


class TestMergeConfig:

    def test_none_gives_defaults(self):
        assert merge_config() == DEFAULT_CONFIG

    def test_returns_copy(self):
        cfg = merge_config()
        cfg["cadence"]["window_ms"] = 1.0
        assert DEFAULT_CONFIG["cadence"]["window_ms"] == 4000.0

    def test_partial_override(self):
        cfg = merge_config({"analysis": {"red_margin_deg": 5.0}})
        assert cfg["analysis"]["red_margin_deg"] == 5.0
        assert cfg["analysis"]["trim_end_ms"] == 5000.0
        assert cfg["analysis"]["target_ranges"]["knee"] == [135, 150]


class TestLoadSave:

    def test_json_partial_merge(self, tmp_path):
        path = tmp_path / "rider.json"
        path.write_text(json.dumps({"cadence": {"max_cadence_rpm": 140}}))
        cfg = load_config(path)
        assert cfg["cadence"]["max_cadence_rpm"] == 140
        assert cfg["cadence"]["min_cadence_rpm"] == 40.0
        assert "analysis" in cfg

    def test_json_round_trip(self, tmp_path):
        cfg = merge_config({"analysis": {"target_ranges": {"knee": [138, 148]}}})
        out = save_config(cfg, tmp_path / "sub" / "cfg.json")
        loaded = load_config(out)
        assert loaded["analysis"]["target_ranges"]["knee"] == [138, 148]
        assert get_target_ranges(loaded)["knee"] == (138.0, 148.0)

    def test_yaml_round_trip(self, tmp_path):
        pytest.importorskip("yaml")
        cfg = merge_config({"angles": {"aspect_ratio": 4 / 3}})
        path = tmp_path / "cfg.yaml"
        save_config(cfg, path)
        loaded = load_config(path)
        assert loaded["angles"]["aspect_ratio"] == pytest.approx(4 / 3)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.json")

    def test_non_dict(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(ValueError, match="Config must be a dict"):
            load_config(path)

    def test_invalid_ranges_rejected_on_load(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"analysis": {"target_ranges": {"hip": [80, 60]}}}))
        with pytest.raises(ValueError, match="min < max"):
            load_config(path)

    def test_unknown_cadence_parameter_rejected_on_load(self, tmp_path):
        path = tmp_path / "typo.json"
        path.write_text(json.dumps({"cadence": {"window": 3000}}))
        with pytest.raises(ValueError, match="window"):
            load_config(path)

    def test_non_dict_target_ranges_rejected_on_load(self, tmp_path):
        path = tmp_path / "ranges.json"
        path.write_text(json.dumps({"analysis": {"target_ranges": [1, 2]}}))
        with pytest.raises(ValueError, match="target_ranges"):
            load_config(path)


class TestValidateConfig:

    def test_defaults_pass(self):
        cfg = merge_config()
        assert validate_config(cfg) is cfg

    def test_section_not_a_dict(self):
        with pytest.raises(ValueError, match="cadence"):
            validate_config(merge_config({"cadence": 5}))

    def test_unknown_cadence_parameter(self):
        with pytest.raises(ValueError, match="Unknown cadence parameter"):
            validate_config(merge_config({"cadence": {"lookbak": 4}}))

    def test_invalid_range_values(self):
        with pytest.raises(ValueError, match="min < max"):
            validate_config(merge_config({"analysis": {"target_ranges": {"knee": [2, 1]}}}))


class TestValidateTargetRanges:

    def test_partial(self):
        assert validate_target_ranges({"torso": [20, 40]}) == {"torso": (20.0, 40.0)}

    def test_unknown_channel(self):
        with pytest.raises(ValueError, match="Unknown angle channel"):
            validate_target_ranges({"ankle": [80, 100]})

    def test_not_a_pair(self):
        with pytest.raises(ValueError, match="pair"):
            validate_target_ranges({"knee": 140})

    def test_not_a_dict(self):
        with pytest.raises(TypeError):
            validate_target_ranges([("knee", 1, 2)])

    def test_get_target_ranges_overrides(self):
        cfg = {"analysis": {"target_ranges": {"elbow": [150, 160]}}}
        ranges = get_target_ranges(cfg)
        assert ranges["elbow"] == (150.0, 160.0)
        assert ranges["knee"] == (135.0, 150.0)
