"""Utility modules for the deepfake detector."""

from .paths import (
    build_results_out_path,
    resolve_config_path,
    resolve_asset_dir,
    media_tag_from,
)
from .labels import (
    Verdict,
    display_probabilities,
    format_frame_result,
    aggregate_verdict,
)
from .io import load_config_json, write_frame_results_csv, write_results_json

__all__ = [
    # paths
    "build_results_out_path",
    "resolve_config_path",
    "resolve_asset_dir",
    "media_tag_from",
    # labels
    "Verdict",
    "display_probabilities",
    "format_frame_result",
    "aggregate_verdict",
    # io
    "load_config_json",
    "write_frame_results_csv",
    "write_results_json",
]
