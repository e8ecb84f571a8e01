from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np


BINARY_LABELS: Tuple[str, ...] = ("Real", "Fake")
CLASS_LABELS: Tuple[str, ...] = ("Real", "FE_Fake", "EFS_Fake", "FR_Fake", "FS_Fake")

NO_PREDICTION = "No prediction"


@dataclass(frozen=True)
class Verdict:
    label: str
    confidence: float
    probabilities: Dict[str, float]
    frames_used: int


def display_probabilities(probabilities: Optional[Sequence[float]]) -> List[Tuple[str, float]]:
    """Map a raw probability vector onto display labels.

    1 value p  -> Real=p, Fake=1-p
    2 values   -> Real, Fake as given
    otherwise  -> positional over CLASS_LABELS; extra entries on either side are dropped.

    Returns an empty list when there is no prediction.
    """
    if probabilities is None:
        return []
    probs = [float(p) for p in probabilities]
    if len(probs) == 1:
        return [(BINARY_LABELS[0], probs[0]), (BINARY_LABELS[1], 1.0 - probs[0])]
    if len(probs) == 2:
        return list(zip(BINARY_LABELS, probs))
    return list(zip(CLASS_LABELS, probs))


def format_frame_result(label: str, probabilities: Optional[Sequence[float]]) -> str:
    """Render a result card as text: header line, then one line per class."""
    lines = [f"{label}:"]
    pairs = display_probabilities(probabilities)
    if not pairs:
        lines.append(NO_PREDICTION)
    for name, value in pairs:
        lines.append(f"{name}: {value * 100:.1f}%")
    return "\n".join(lines)


def aggregate_verdict(prob_vectors: Iterable[Optional[Sequence[float]]]) -> Optional[Verdict]:
    """Average display-mapped probabilities over all predicted units.

    Units without a prediction are ignored. Labels that appear in only some
    units (mixed binary / multi-class output) are averaged over the units
    that report them. Returns None when nothing was predicted.
    """
    sums: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    order: List[str] = []
    used = 0
    for probs in prob_vectors:
        pairs = display_probabilities(probs)
        if not pairs:
            continue
        used += 1
        for name, value in pairs:
            if name not in sums:
                sums[name] = 0.0
                counts[name] = 0
                order.append(name)
            sums[name] += value
            counts[name] += 1

    if used == 0:
        return None

    means = {name: sums[name] / counts[name] for name in order}
    best = order[int(np.argmax([means[name] for name in order]))]
    return Verdict(label=best, confidence=means[best], probabilities=means, frames_used=used)
