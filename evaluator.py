"""
evaluator.py
Метрики качества по итоговому набору нитей.
Не зависит от истощенного буфера: считается заново по отдельной маске покрытия.
"""
import math
from typing import Optional, Sequence

import numpy as np

from geometry import LineCache
from models import Nail, QualityMetrics, Segment


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def covered_mask(segments: Sequence[Segment], lines: LineCache) -> np.ndarray:
    """Булева маска пикселей, через которые прошла хотя бы одна нить."""
    mask = np.zeros(lines.height * lines.width, dtype=bool)
    for seg in segments:
        if seg.is_degenerate:
            continue
        mask[lines.line(seg.start, seg.end)] = True
    return mask.reshape(lines.height, lines.width)


def evaluate_quality(segments: Sequence[Segment], nails: Sequence[Nail], width: int, height: int,
                     lines: Optional[LineCache] = None) -> QualityMetrics:
    if lines is None:
        lines = LineCache(nails, width, height)

    total = width * height
    covered = int(covered_mask(segments, lines).sum())
    coverage = covered / total * 100 if total else 0.0
    efficiency = covered / len(segments) if segments else 0.0

    return QualityMetrics(
        coverage_percentage=_round_half_up(coverage, 1),
        string_efficiency=_round_half_up(efficiency, 1),
        quality_score=int(min(100, _round_half_up(coverage))),
        total_pixels=total,
        covered_pixels=covered,
        segment_count=len(segments),
    )
