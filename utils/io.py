import csv
import json
import logging
import os
from typing import Any, Dict, Iterable, Optional

from utils.labels import Verdict, display_probabilities

logger = logging.getLogger(__name__)


def load_config_json(config_path: str) -> Dict[str, Any]:
    with open(config_path, "r") as f:
        return json.load(f)


def write_frame_results_csv(*, out_csv: str, results: Iterable[Any]) -> None:
    """One row per FrameResult; one column per display class seen across the results."""
    os.makedirs(os.path.dirname(out_csv) or ".", exist_ok=True)
    rows = []
    columns = []
    for r in results:
        row = {"label": r.label, "timestamp_seconds": "" if r.timestamp_seconds is None else r.timestamp_seconds}
        for name, value in display_probabilities(r.probabilities):
            row[name] = value
            if name not in columns:
                columns.append(name)
        rows.append(row)

    with open(out_csv, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["label", "timestamp_seconds", *columns])
        for row in rows:
            writer.writerow([row["label"], row["timestamp_seconds"], *[row.get(c, "") for c in columns]])
    logger.info(f"[results csv] wrote {len(rows)} rows → {out_csv}")


def results_to_dict(results: Iterable[Any], verdict: Optional[Verdict]) -> Dict[str, Any]:
    return {
        "frames": [
            {
                "label": r.label,
                "timestamp_seconds": r.timestamp_seconds,
                "raw_probabilities": None if r.probabilities is None else list(r.probabilities),
                "display": dict(display_probabilities(r.probabilities)) or None,
            }
            for r in results
        ],
        "verdict": None if verdict is None else {
            "label": verdict.label,
            "confidence": verdict.confidence,
            "probabilities": verdict.probabilities,
            "frames_used": verdict.frames_used,
        },
    }


def write_results_json(*, out_path: str, results: Iterable[Any], verdict: Optional[Verdict]) -> None:
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w") as f:
        json.dump(results_to_dict(results, verdict), f, indent=4)
    logger.info(f"[results json] saved → {out_path}")
