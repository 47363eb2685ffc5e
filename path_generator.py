"""
path_generator.py
Жадный подбор последовательности нитей.
Значение буфера = оставшаяся "темнота" пикселя. Каждая нить снимает с пикселей
DARKEN_AMOUNT, значения только убывают и не уходят ниже нуля.
"""
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import numpy as np

from config import StringArtConfig
from errors import GenerationCancelled, InvalidSettings
from geometry import LineCache
from models import Nail, Segment


@dataclass
class RunContext:
    """Состояние одного запуска. Передается явно в каждый шаг."""
    darkness: np.ndarray
    lines: LineCache
    current_nail: int = 0
    segments: List[Segment] = field(default_factory=list)

    @property
    def step_index(self) -> int:
        return len(self.segments)


class PathGenerator:
    def __init__(self, config: StringArtConfig):
        self.cfg = config

    def start(self, luminance: np.ndarray, nails: Sequence[Nail]) -> RunContext:
        """Копирует буфер яркости в рабочий буфер темноты. Исходный буфер не трогается."""
        if len(nails) < 2:
            raise InvalidSettings("nails", f"нужно минимум 2 гвоздя, получено {len(nails)}")
        h, w = luminance.shape[:2]
        # int32, чтобы вычитание не заворачивалось как в uint8
        darkness = luminance.astype(np.int32, copy=True)
        return RunContext(darkness=darkness, lines=LineCache(nails, w, h))

    def score_candidates(self, ctx: RunContext) -> np.ndarray:
        """
        Средняя оставшаяся темнота вдоль каждой линии из текущего гвоздя.
        Все кандидаты считаются по одному снимку буфера. Свой гвоздь получает -1.
        """
        flat, owners, counts = ctx.lines.fan(ctx.current_nail)
        n = len(counts)
        values = ctx.darkness.ravel()[flat]
        # Суммы целых в float64 точны, поэтому равные линии дают равные оценки
        sums = np.bincount(owners, weights=values, minlength=n)
        scores = np.zeros(n, dtype=np.float64)
        np.divide(sums, counts, out=scores, where=counts > 0)
        scores[ctx.current_nail] = -1.0
        return scores

    def step(self, ctx: RunContext) -> Segment:
        scores = self.score_candidates(ctx)
        # argmax берет первый максимум -> при равенстве побеждает меньший индекс
        best = int(np.argmax(scores))

        segment = Segment(ctx.current_nail, best, ctx.step_index)
        ctx.segments.append(segment)

        # Истощаем буфер вдоль выбранной линии
        idx = ctx.lines.line(ctx.current_nail, best)
        flat = ctx.darkness.reshape(-1)
        flat[idx] = np.maximum(flat[idx] - self.cfg.DARKEN_AMOUNT, 0)

        ctx.current_nail = best
        return segment

    def generate(self, luminance: np.ndarray, nails: Sequence[Nail], count: int,
                 cancel_event: Optional[threading.Event] = None,
                 deadline: Optional[float] = None,
                 on_step: Optional[Callable[[RunContext, Segment], None]] = None) -> List[Segment]:
        """
        Ровно count нитей, без ранней остановки даже при полностью истощенном буфере.
        deadline - момент time.monotonic(), после которого запуск прерывается.
        on_step получает контекст после каждого шага (префиксы того же прогона).
        """
        ctx = self.start(luminance, nails)
        for _ in range(count):
            if cancel_event is not None and cancel_event.is_set():
                raise GenerationCancelled(f"Отменено на нити {ctx.step_index} из {count}")
            if deadline is not None and time.monotonic() > deadline:
                raise GenerationCancelled(f"Превышен дедлайн на нити {ctx.step_index} из {count}")

            segment = self.step(ctx)
            if on_step is not None:
                on_step(ctx, segment)

        return list(ctx.segments)
