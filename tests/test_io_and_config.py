import csv
import json
import os

import numpy as np

from configs import RuntimeConfig
from core.runner import FrameResult
from utils.io import load_config_json, write_frame_results_csv, write_results_json
from utils.labels import aggregate_verdict
from utils.paths import build_results_out_path, media_tag_from, resolve_asset_dir, resolve_config_path


def _results():
    thumb = np.zeros((256, 256, 3), dtype=np.uint8)
    return [
        FrameResult(label="Frame at 1 sec", thumbnail=thumb, probabilities=(0.6, 0.4), timestamp_seconds=0),
        FrameResult(label="Frame at 2 sec", thumbnail=thumb, probabilities=None, timestamp_seconds=1),
    ]


def test_runtime_config_nested_layout():
    cfg = {
        "paths": {"asset_dir": "bundle/model"},
        "runtime": {"max_frames": 10, "sampling_mode": "stride", "seed": 3},
    }

    runtime = RuntimeConfig.from_config(cfg)

    assert runtime.asset_dir == "bundle/model"
    assert runtime.max_frames == 10
    assert runtime.sampling_mode == "stride"
    assert runtime.seed == 3
    assert runtime.input_size == 256
    assert runtime.results_dir == "results"


def test_runtime_config_flat_legacy_layout():
    runtime = RuntimeConfig.from_config({"asset_dir": "m", "max_frames": 5})

    assert runtime.asset_dir == "m"
    assert runtime.max_frames == 5
    assert runtime.sampling_mode == "random"
    assert runtime.seed is None


def test_bundled_config_is_valid():
    cfg_path = resolve_config_path()

    assert os.path.basename(cfg_path) == "config.json"
    runtime = RuntimeConfig.from_config(load_config_json(cfg_path))
    assert runtime.max_frames == 50
    assert runtime.input_size == 256


def test_paths(tmp_path):
    out = build_results_out_path(media_path="/videos/clip.final.mp4", kind="VIDEO", ext="json", results_dir=str(tmp_path))

    assert out == os.path.join(str(tmp_path), "video", "clip.final", "results.json")
    assert os.path.isdir(os.path.dirname(out))
    assert media_tag_from("") == "default"
    assert resolve_asset_dir("/abs/model", "/etc/cfg.json") == "/abs/model"
    assert resolve_asset_dir("assets", "/etc/app/config.json") == os.path.join("/etc/app", "assets")
    assert resolve_config_path("custom.json") == "custom.json"


def test_write_frame_results_csv(tmp_path):
    out = str(tmp_path / "out" / "results.csv")

    write_frame_results_csv(out_csv=out, results=_results())

    with open(out, newline="") as f:
        rows = list(csv.DictReader(f))
    assert [r["label"] for r in rows] == ["Frame at 1 sec", "Frame at 2 sec"]
    assert float(rows[0]["Real"]) == 0.6
    assert rows[1]["Real"] == ""
    assert rows[1]["timestamp_seconds"] == "1"


def test_write_results_json(tmp_path):
    results = _results()
    out = str(tmp_path / "results.json")

    write_results_json(out_path=out, results=results, verdict=aggregate_verdict(r.probabilities for r in results))

    with open(out) as f:
        data = json.load(f)
    assert data["frames"][0]["display"] == {"Real": 0.6, "Fake": 0.4}
    assert data["frames"][1]["raw_probabilities"] is None
    assert data["frames"][1]["display"] is None
    assert data["verdict"]["label"] == "Real"
    assert data["verdict"]["frames_used"] == 1
