"""
renderer.py
Рендеринг результата: PNG-превью через OpenCV и SVG для печати/резки шаблона.
"""
from typing import Sequence, Tuple

import cv2
import numpy as np
import svgwrite

from config import StringArtConfig, GenerationSettings
from errors import GenerationFailure
from models import Nail, PreviewImage, Segment


def hex_to_bgr(color: str) -> Tuple[int, int, int]:
    r, g, b = (int(color[i:i + 2], 16) for i in (1, 3, 5))
    return b, g, r


class StringArtRenderer:
    def __init__(self, config: StringArtConfig):
        self.cfg = config

    def _scaled(self, nails: Sequence[Nail]) -> list:
        # Координаты гвоздей заданы в системе CANVAS_SIZE, превью может быть другого размера
        k = self.cfg.PREVIEW_SIZE / self.cfg.CANVAS_SIZE
        return [(int(round(n.x * k)), int(round(n.y * k))) for n in nails]

    def draw(self, segments: Sequence[Segment], nails: Sequence[Nail],
             settings: GenerationSettings) -> np.ndarray:
        """Растровое изображение BGR: фон, нити по порядку, затем гвозди."""
        size = self.cfg.PREVIEW_SIZE
        canvas = np.empty((size, size, 3), dtype=np.uint8)
        canvas[:] = hex_to_bgr(settings.background_color)

        points = self._scaled(nails)
        stroke = hex_to_bgr(settings.stroke_color)
        for seg in segments:
            if seg.is_degenerate:
                continue
            # LINE_8 повторяет ту же 8-связную растеризацию, что и в поиске
            cv2.line(canvas, points[seg.start], points[seg.end], stroke,
                     self.cfg.PREVIEW_LINE_WIDTH, lineType=cv2.LINE_8)

        if settings.show_nails:
            nail_color = hex_to_bgr(self.cfg.PREVIEW_NAIL_COLOR)
            for p in points:
                cv2.circle(canvas, p, self.cfg.PREVIEW_NAIL_RADIUS, nail_color, thickness=-1)

        return canvas

    def render_preview(self, segments: Sequence[Segment], nails: Sequence[Nail],
                       settings: GenerationSettings) -> PreviewImage:
        canvas = self.draw(segments, nails, settings)
        ok, encoded = cv2.imencode(".png", canvas)
        if not ok:
            raise GenerationFailure("cv2.imencode не смог закодировать превью в PNG")
        return PreviewImage(data=encoded.tobytes(), format="png",
                            width=canvas.shape[1], height=canvas.shape[0])

    def build_svg(self, segments: Sequence[Segment], nails: Sequence[Nail],
                  settings: GenerationSettings, output_path: str = "string_art.svg") -> svgwrite.Drawing:
        size = self.cfg.CANVAS_SIZE
        dwg = svgwrite.Drawing(output_path, size=(size, size), profile='tiny')
        dwg.add(dwg.rect(insert=(0, 0), size=(size, size), fill=settings.background_color))

        group = dwg.g(stroke=settings.stroke_color, stroke_width=self.cfg.SVG_STROKE_WIDTH, fill='none')
        for seg in segments:
            if seg.is_degenerate:
                continue
            a, b = nails[seg.start], nails[seg.end]
            group.add(dwg.line(start=(a.x, a.y), end=(b.x, b.y)))
        dwg.add(group)

        if settings.show_nails:
            pins = dwg.g(fill=self.cfg.PREVIEW_NAIL_COLOR)
            for n in nails:
                pins.add(dwg.circle(center=(n.x, n.y), r=self.cfg.PREVIEW_NAIL_RADIUS))
            dwg.add(pins)

        return dwg

    def save_to_svg(self, segments: Sequence[Segment], nails: Sequence[Nail],
                    settings: GenerationSettings, output_path: str):
        self.build_svg(segments, nails, settings, output_path).save()
