"""
geometry.py
Раскладка гвоздей по окружности и растеризация нитей.
"""
import math
from typing import Dict, List, Sequence, Tuple

import numpy as np

from models import Nail


def generate_nails(count: int, center: Tuple[int, int], radius: float) -> List[Nail]:
    """
    Гвоздь i стоит на угле 2*pi*i/count, начиная с 0.
    Ось y изображения смотрит вниз, поэтому индексы растут по часовой стрелке.
    """
    cx, cy = center
    nails = []
    for i in range(count):
        angle = 2 * math.pi * i / count
        x = cx + radius * math.cos(angle)
        y = cy + radius * math.sin(angle)
        # floor(v + 0.5): половинки округляются одинаково вверх
        nails.append(Nail(i, int(math.floor(x + 0.5)), int(math.floor(y + 0.5)), angle))
    return nails


def _midpoint_line(x0: int, y0: int, x1: int, y1: int) -> np.ndarray:
    dx, dy = x1 - x0, y1 - y0
    n = max(abs(dx), abs(dy))
    if n == 0:
        return np.array([[x0, y0]], dtype=np.int64)

    # Шаг по главной оси, вторая ось - целочисленное округление середины
    i = np.arange(n + 1, dtype=np.int64)
    if abs(dx) >= abs(dy):
        xs = x0 + np.sign(dx) * i
        ys = y0 + np.sign(dy) * ((2 * i * abs(dy) + n) // (2 * n))
    else:
        ys = y0 + np.sign(dy) * i
        xs = x0 + np.sign(dx) * ((2 * i * abs(dx) + n) // (2 * n))
    return np.column_stack((xs, ys))


def rasterize_line(p0: Sequence[int], p1: Sequence[int]) -> np.ndarray:
    """
    Целочисленная 8-связная линия от p0 до p1, массив (N, 2) точек (x, y).
    Оба конца входят ровно один раз. Набор пикселей не зависит от направления:
    линия всегда строится от "меньшего" конца и при необходимости разворачивается.
    """
    a = (int(p0[0]), int(p0[1]))
    b = (int(p1[0]), int(p1[1]))
    if a <= b:
        return _midpoint_line(a[0], a[1], b[0], b[1])
    return _midpoint_line(b[0], b[1], a[0], a[1])[::-1]


class LineCache:
    """
    Кэш растеризованных нитей одного запуска.
    Хранит плоские индексы пикселей внутри буфера (y * width + x) по неупорядоченной паре гвоздей.
    """

    def __init__(self, nails: Sequence[Nail], width: int, height: int):
        self.nails = list(nails)
        self.width = width
        self.height = height
        self._lines: Dict[Tuple[int, int], np.ndarray] = {}
        self._empty = np.empty(0, dtype=np.int32)

    def line(self, i: int, j: int) -> np.ndarray:
        key = (i, j) if i <= j else (j, i)
        cached = self._lines.get(key)
        if cached is None:
            a, b = self.nails[key[0]], self.nails[key[1]]
            pts = rasterize_line((a.x, a.y), (b.x, b.y))
            inside = ((pts[:, 0] >= 0) & (pts[:, 0] < self.width) &
                      (pts[:, 1] >= 0) & (pts[:, 1] < self.height))
            pts = pts[inside]
            cached = (pts[:, 1] * self.width + pts[:, 0]).astype(np.int32)
            self._lines[key] = cached
        return cached

    def fan(self, origin: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Все линии из гвоздя origin разом: (индексы пикселей, номер линии для каждого индекса, длины).
        Линия origin -> origin пустая.
        """
        n = len(self.nails)
        parts = [self._empty if j == origin else self.line(origin, j) for j in range(n)]
        counts = np.fromiter((len(p) for p in parts), dtype=np.int64, count=n)
        flat = np.concatenate(parts)
        owners = np.repeat(np.arange(n), counts)
        return flat, owners, counts
