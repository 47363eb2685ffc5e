"""
engine.py
Оркестратор генерации.
Pipeline: Validate -> Decode -> Preprocess -> Nails -> Greedy -> Quality -> Preview.
Движок не пишет логов и не трогает файлы: все результаты возвращаются в памяти.
"""
import threading
import time
from typing import Callable, Optional

import numpy as np

from config import StringArtConfig, GenerationSettings, validate_settings
from errors import GenerationFailure, StringArtError
from evaluator import evaluate_quality
from geometry import generate_nails
from image_processor import ImageProcessor
from models import GenerationResult
from path_generator import PathGenerator, RunContext
from renderer import StringArtRenderer


class StringArtEngine:
    def __init__(self, config: Optional[StringArtConfig] = None):
        self.config = config or StringArtConfig()
        self.img_proc = ImageProcessor(self.config)
        self.generator = PathGenerator(self.config)
        self.renderer = StringArtRenderer(self.config)

    def generate(self, image_bytes: bytes, settings: GenerationSettings,
                 cancel_event: Optional[threading.Event] = None,
                 deadline: Optional[float] = None,
                 on_progress: Optional[Callable[[int, int], None]] = None) -> GenerationResult:
        """Сырые байты изображения -> GenerationResult."""
        # Валидация строго до декодирования и выделения буферов
        validate_settings(settings)
        img = self.img_proc.decode(image_bytes)
        return self._run(img, settings, cancel_event, deadline, on_progress)

    def generate_from_image(self, img: np.ndarray, settings: GenerationSettings,
                            cancel_event: Optional[threading.Event] = None,
                            deadline: Optional[float] = None,
                            on_progress: Optional[Callable[[int, int], None]] = None) -> GenerationResult:
        """Уже декодированное изображение (BGR или оттенки серого, uint8)."""
        validate_settings(settings)
        return self._run(img, settings, cancel_event, deadline, on_progress)

    def _run(self, img, settings, cancel_event, deadline, on_progress) -> GenerationResult:
        start_time = time.perf_counter()
        try:
            # 1. Буфер яркости 512x512
            luminance = self.img_proc.preprocess(img, settings)
            h, w = luminance.shape

            # 2. Гвозди (от изображения не зависят)
            nails = generate_nails(settings.nails, self.config.center, self.config.ring_radius)

            # 3. Жадный поиск
            def on_step(ctx: RunContext, _segment):
                if on_progress is not None:
                    on_progress(ctx.step_index, settings.strings)

            segments = self.generator.generate(luminance, nails, settings.strings,
                                               cancel_event=cancel_event, deadline=deadline,
                                               on_step=on_step)

            # 4. Метрики по свежей маске покрытия
            quality = evaluate_quality(segments, nails, w, h)

            # 5. Превью
            preview = self.renderer.render_preview(segments, nails, settings)
        except StringArtError:
            raise
        except Exception as e:
            raise GenerationFailure(f"Сбой генерации: {e}") from e

        elapsed_ms = int(round((time.perf_counter() - start_time) * 1000))
        return GenerationResult(segments=segments, nails=nails, quality=quality,
                                generation_time_ms=elapsed_ms, preview=preview)
