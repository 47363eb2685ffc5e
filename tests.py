"""
tests.py
Модуль автоматического тестирования (Unit Tests).
Запуск: python -m unittest tests  (или pytest).
"""
import json
import math
import tempfile
import threading
import time
import unittest
from pathlib import Path
from unittest import mock

import numpy as np
import cv2

from config import StringArtConfig, GenerationSettings, validate_settings
from engine import StringArtEngine
from errors import GenerationCancelled, GenerationFailure, ImageDecodeError, InvalidSettings
from evaluator import evaluate_quality
from geometry import LineCache, generate_nails, rasterize_line
from image_processor import ImageProcessor
from instructions import format_coordinates, format_instructions
from models import Nail, Segment
from path_generator import PathGenerator
from renderer import StringArtRenderer


def encode_png(img: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


def gradient_image(w=120, h=80) -> np.ndarray:
    """Цветная картинка с горизонтальным градиентом и темным кругом."""
    img = np.zeros((h, w, 3), dtype=np.uint8)
    img[:] = np.linspace(0, 255, w, dtype=np.uint8)[None, :, None]
    cv2.circle(img, (w // 2, h // 2), min(w, h) // 4, (20, 20, 20), -1)
    return img


class TestSettings(unittest.TestCase):

    def test_defaults_are_valid(self):
        settings = GenerationSettings()
        self.assertIs(validate_settings(settings), settings)

    def test_nail_bounds(self):
        for nails in (49, 513):
            with self.assertRaises(InvalidSettings) as cm:
                validate_settings(GenerationSettings(nails=nails))
            self.assertEqual(cm.exception.field, "nails")
        validate_settings(GenerationSettings(nails=50))
        validate_settings(GenerationSettings(nails=512))

    def test_string_bounds(self):
        for strings in (99, 3001):
            with self.assertRaises(InvalidSettings) as cm:
                validate_settings(GenerationSettings(strings=strings))
            self.assertEqual(cm.exception.field, "strings")

    def test_float_bounds(self):
        cases = [
            ({"blur_radius": -0.1}, "blur_radius"),
            ({"blur_radius": 5.1}, "blur_radius"),
            ({"contrast": 0.05}, "contrast"),
            ({"contrast": 3.5}, "contrast"),
        ]
        for kwargs, field in cases:
            with self.assertRaises(InvalidSettings) as cm:
                validate_settings(GenerationSettings(**kwargs))
            self.assertEqual(cm.exception.field, field)

    def test_malformed_values(self):
        with self.assertRaises(InvalidSettings):
            validate_settings(GenerationSettings(nails=True))
        with self.assertRaises(InvalidSettings):
            validate_settings(GenerationSettings(nails=100.5))
        with self.assertRaises(InvalidSettings):
            validate_settings(GenerationSettings(contrast="high"))

    def test_algorithm_and_color(self):
        with self.assertRaises(InvalidSettings) as cm:
            validate_settings(GenerationSettings(algorithm="genetic"))
        self.assertEqual(cm.exception.field, "algorithm")

        with self.assertRaises(InvalidSettings) as cm:
            validate_settings(GenerationSettings(color="red"))
        self.assertEqual(cm.exception.field, "color")

        with self.assertRaises(InvalidSettings) as cm:
            validate_settings(GenerationSettings(color="custom"))
        self.assertEqual(cm.exception.field, "custom_color")

        custom = validate_settings(GenerationSettings(color="custom", custom_color="#12ab3F"))
        self.assertEqual(custom.stroke_color, "#12ab3F")
        self.assertEqual(GenerationSettings(color="white").stroke_color, "#ffffff")

    def test_first_bad_field_is_reported(self):
        with self.assertRaises(InvalidSettings) as cm:
            validate_settings(GenerationSettings(nails=10, strings=10))
        self.assertEqual(cm.exception.field, "nails")

    def test_from_api_dict(self):
        settings = GenerationSettings.from_dict({
            "nails": 300, "strings": 2000, "algorithm": "greedy", "color": "custom",
            "customColor": "#FF0000", "blurRadius": 2, "contrast": 1.5, "showNails": False,
        })
        self.assertEqual(settings.nails, 300)
        self.assertEqual(settings.custom_color, "#FF0000")
        self.assertEqual(settings.blur_radius, 2)
        self.assertFalse(settings.show_nails)
        validate_settings(settings)

        with self.assertRaises(InvalidSettings):
            GenerationSettings.from_dict({"opacity": 0.5})

    def test_settings_are_immutable(self):
        settings = GenerationSettings()
        with self.assertRaises(AttributeError):
            settings.nails = 300


class TestImageProcessor(unittest.TestCase):

    def setUp(self):
        self.config = StringArtConfig()
        self.processor = ImageProcessor(self.config)
        self.flat = GenerationSettings(blur_radius=0, contrast=1.0)

    def test_decode_rejects_garbage(self):
        with self.assertRaises(ImageDecodeError):
            self.processor.decode(b"")
        with self.assertRaises(ImageDecodeError):
            self.processor.decode(b"definitely not an image")

    def test_decode_color_png(self):
        img = self.processor.decode(encode_png(gradient_image()))
        self.assertEqual(img.shape, (80, 120, 3))
        self.assertEqual(img.dtype, np.uint8)

    def test_decode_alpha_goes_to_white(self):
        rgba = np.zeros((10, 10, 4), dtype=np.uint8)
        img = self.processor.decode(encode_png(rgba))
        self.assertEqual(img.shape, (10, 10, 3))
        self.assertTrue(np.all(img == 255))

    def test_load_missing_file(self):
        with self.assertRaises(ImageDecodeError):
            self.processor.load_image("/nonexistent/photo.png")

    def test_preprocess_canonical_size(self):
        result = self.processor.preprocess(gradient_image(), GenerationSettings())
        self.assertEqual(result.shape, (512, 512))
        self.assertEqual(result.dtype, np.uint8)

    def test_letterbox_pads_with_white(self):
        # 200x100 -> 512x256, поля по 128 строк сверху и снизу
        img = np.zeros((100, 200, 3), dtype=np.uint8)
        result = self.processor.preprocess(img, self.flat)
        self.assertTrue(np.all(result[:120] == 255))
        self.assertTrue(np.all(result[-120:] == 255))
        self.assertTrue(np.all(result[200:312, 10:500] == 0))

    def test_contrast_is_clamped(self):
        strong = GenerationSettings(blur_radius=0, contrast=3.0)
        bright = np.full((64, 64), 200, dtype=np.uint8)
        dark = np.full((64, 64), 50, dtype=np.uint8)
        self.assertTrue(np.all(self.processor.preprocess(bright, strong) == 255))
        self.assertTrue(np.all(self.processor.preprocess(dark, strong) == 0))

    def test_contrast_stretches_around_mid_gray(self):
        img = np.full((64, 64), 148, dtype=np.uint8)
        result = self.processor.preprocess(img, GenerationSettings(blur_radius=0, contrast=0.5))
        self.assertTrue(np.all(result == 138))

    def test_blur_smooths_edges(self):
        img = np.zeros((64, 64), dtype=np.uint8)
        img[:, 32:] = 255
        sharp = self.processor.preprocess(img, self.flat)
        blurred = self.processor.preprocess(img, GenerationSettings(blur_radius=5, contrast=1.0))
        # Размытие добавляет промежуточные значения на границе
        self.assertGreater(len(np.unique(blurred[256])), len(np.unique(sharp[256])))


class TestNailLayout(unittest.TestCase):

    def setUp(self):
        self.config = StringArtConfig()

    def test_nails_on_circle(self):
        n = 200
        nails = generate_nails(n, self.config.center, self.config.ring_radius)
        self.assertEqual([nail.index for nail in nails], list(range(n)))
        for nail in nails:
            dist = math.hypot(nail.x - 256, nail.y - 256)
            self.assertAlmostEqual(dist, 200, delta=1.0)
            self.assertAlmostEqual(nail.angle, 2 * math.pi * nail.index / n)
            self.assertIsInstance(nail.x, int)

    def test_first_nail_at_angle_zero(self):
        nails = generate_nails(50, (256, 256), 200)
        self.assertEqual((nails[0].x, nails[0].y), (456, 256))
        # Ось y вниз: второй гвоздь ниже первого (по часовой на экране)
        self.assertGreater(nails[1].y, nails[0].y)

    def test_deterministic(self):
        self.assertEqual(generate_nails(333, (256, 256), 200), generate_nails(333, (256, 256), 200))

    def test_radius_scales_with_canvas(self):
        self.config.CANVAS_SIZE = 64
        self.assertEqual(self.config.center, (32, 32))
        self.assertEqual(self.config.ring_radius, 25)


class TestRasterizer(unittest.TestCase):

    PAIRS = [((0, 0), (4, 2)), ((0, 0), (2, 4)), ((456, 256), (56, 256)), ((10, 3), (3, 17)),
             ((5, 5), (5, -7)), ((-3, 9), (12, 0)), ((100, 100), (301, 250))]

    def test_endpoints_and_connectivity(self):
        for a, b in self.PAIRS:
            pts = rasterize_line(a, b)
            self.assertEqual(tuple(pts[0]), a)
            self.assertEqual(tuple(pts[-1]), b)
            self.assertEqual(len(pts), max(abs(b[0] - a[0]), abs(b[1] - a[1])) + 1)
            steps = np.abs(np.diff(pts, axis=0))
            self.assertTrue(np.all(steps.max(axis=1) == 1), "Линия должна быть 8-связной")
            self.assertEqual(len({tuple(p) for p in pts}), len(pts), "Дубликатов быть не должно")

    def test_symmetric_pixel_set(self):
        for a, b in self.PAIRS:
            forward = {tuple(p) for p in rasterize_line(a, b)}
            backward = {tuple(p) for p in rasterize_line(b, a)}
            self.assertEqual(forward, backward)

    def test_single_point(self):
        pts = rasterize_line((7, 7), (7, 7))
        self.assertEqual(pts.tolist(), [[7, 7]])

    def test_cache_drops_out_of_bounds(self):
        nails = [Nail(0, -5, 5, 0.0), Nail(1, 5, 5, 0.0)]
        cache = LineCache(nails, 10, 10)
        idx = cache.line(0, 1)
        self.assertEqual(sorted(idx.tolist()), [5 * 10 + x for x in range(6)])
        self.assertIs(cache.line(1, 0), idx)


class TestPathGenerator(unittest.TestCase):

    def setUp(self):
        self.config = StringArtConfig()
        self.config.CANVAS_SIZE = 64
        self.generator = PathGenerator(self.config)
        self.nails = generate_nails(8, self.config.center, self.config.ring_radius)
        self.gray = np.full((64, 64), 128, dtype=np.uint8)

    def test_uniform_buffer_scenario(self):
        segments = self.generator.generate(self.gray, self.nails, 5)
        self.assertEqual(len(segments), 5)
        self.assertEqual(segments[0], Segment(0, 1, 0))
        self.assertEqual(segments[0].to_dict(), {"from": 0, "to": 1, "order": 0})
        for i, seg in enumerate(segments):
            self.assertEqual(seg.order, i)
            self.assertTrue(0 <= seg.start < 8 and 0 <= seg.end < 8)
            self.assertNotEqual(seg.start, seg.end)
        # Нити идут цепочкой: каждая начинается там, где закончилась предыдущая
        for prev, cur in zip(segments, segments[1:]):
            self.assertEqual(prev.end, cur.start)

    def test_depletion_is_monotonic(self):
        snapshots = []

        def on_step(ctx, segment):
            snapshots.append(ctx.darkness.copy())

        self.generator.generate(self.gray, self.nails, 40, on_step=on_step)
        prev = self.gray.astype(np.int32)
        for snap in snapshots:
            self.assertTrue(np.all(snap <= prev))
            self.assertTrue(np.all(snap >= 0))
            prev = snap

    def test_depletion_amount(self):
        ctx = self.generator.start(self.gray, self.nails)
        self.generator.step(ctx)
        idx = ctx.lines.line(0, 1)
        self.assertTrue(np.all(ctx.darkness.ravel()[idx] == 128 - self.config.DARKEN_AMOUNT))
        self.assertEqual(int((ctx.darkness != 128).sum()), len(idx))
        self.assertEqual(ctx.current_nail, 1)

    def test_source_buffer_untouched(self):
        before = self.gray.copy()
        self.generator.generate(self.gray, self.nails, 20)
        np.testing.assert_array_equal(self.gray, before)

    def test_black_buffer_never_stops_early(self):
        black = np.zeros((64, 64), dtype=np.uint8)
        ctx = self.generator.start(black, self.nails)
        scores = self.generator.score_candidates(ctx)
        self.assertEqual(scores[0], -1.0)
        self.assertTrue(np.all(scores[1:] == 0))

        segments = self.generator.generate(black, self.nails, 20)
        self.assertEqual(len(segments), 20)
        # Все оценки нулевые -> всегда побеждает наименьший индекс
        expected = [(0, 1) if i % 2 == 0 else (1, 0) for i in range(20)]
        self.assertEqual([(s.start, s.end) for s in segments], expected)

    def test_out_of_bounds_pixels_are_excluded_from_mean(self):
        buf = np.full((10, 10), 100, dtype=np.uint8)
        nails = [Nail(0, -5, 5, 0.0), Nail(1, 5, 5, 0.0), Nail(2, -5, -1, 0.0)]
        ctx = self.generator.start(buf, nails)
        scores = self.generator.score_candidates(ctx)
        self.assertEqual(scores.tolist(), [-1.0, 100.0, 0.0])

    def test_prefers_darkest_remaining_line(self):
        buf = np.zeros((64, 64), dtype=np.uint8)
        a, b = self.nails[0], self.nails[4]
        pts = rasterize_line((a.x, a.y), (b.x, b.y))
        buf[pts[:, 1], pts[:, 0]] = 255
        segments = self.generator.generate(buf, self.nails, 1)
        self.assertEqual(segments[0], Segment(0, 4, 0))

    def test_deterministic(self):
        rng = np.random.default_rng(7)
        buf = rng.integers(0, 256, size=(64, 64), dtype=np.uint8)
        first = self.generator.generate(buf, self.nails, 60)
        second = self.generator.generate(buf, self.nails, 60)
        self.assertEqual(first, second)

    def test_prefix_matches_full_run(self):
        full = self.generator.generate(self.gray, self.nails, 30)
        prefix = self.generator.generate(self.gray, self.nails, 12)
        self.assertEqual(full[:12], prefix)

    def test_cancel_event(self):
        event = threading.Event()
        event.set()
        with self.assertRaises(GenerationCancelled):
            self.generator.generate(self.gray, self.nails, 10, cancel_event=event)

    def test_cancel_mid_run(self):
        event = threading.Event()

        def on_step(ctx, segment):
            if ctx.step_index == 3:
                event.set()

        with self.assertRaises(GenerationCancelled):
            self.generator.generate(self.gray, self.nails, 10, cancel_event=event, on_step=on_step)

    def test_deadline(self):
        with self.assertRaises(GenerationCancelled):
            self.generator.generate(self.gray, self.nails, 10, deadline=time.monotonic() - 1)

    def test_needs_two_nails(self):
        with self.assertRaises(InvalidSettings):
            self.generator.start(self.gray, self.nails[:1])


class TestQuality(unittest.TestCase):

    def setUp(self):
        self.nails = generate_nails(8, (32, 32), 25)

    def test_pixels_counted_once(self):
        line_len = len(LineCache(self.nails, 64, 64).line(0, 1))
        segments = [Segment(0, 1, 0), Segment(1, 0, 1)]
        q = evaluate_quality(segments, self.nails, 64, 64)
        self.assertEqual(q.covered_pixels, line_len)
        self.assertEqual(q.total_pixels, 4096)
        self.assertEqual(q.segment_count, 2)
        self.assertEqual(q.string_efficiency, math.floor(line_len / 2 * 10 + 0.5) / 10)
        self.assertEqual(q.coverage_percentage, math.floor(line_len / 4096 * 100 * 10 + 0.5) / 10)

    def test_degenerate_segment_excluded(self):
        q = evaluate_quality([Segment(3, 3, 0)], self.nails, 64, 64)
        self.assertEqual(q.covered_pixels, 0)
        self.assertEqual(q.segment_count, 1)

    def test_empty_sequence(self):
        q = evaluate_quality([], self.nails, 64, 64)
        self.assertEqual((q.coverage_percentage, q.string_efficiency, q.quality_score), (0.0, 0.0, 0))

    def test_black_buffer_still_has_coverage(self):
        config = StringArtConfig()
        config.CANVAS_SIZE = 64
        black = np.zeros((64, 64), dtype=np.uint8)
        segments = PathGenerator(config).generate(black, self.nails, 10)
        q = evaluate_quality(segments, self.nails, 64, 64)
        self.assertGreater(q.coverage_percentage, 0)

    def test_bounds_and_score(self):
        config = StringArtConfig()
        config.CANVAS_SIZE = 64
        rng = np.random.default_rng(1)
        buf = rng.integers(0, 256, size=(64, 64), dtype=np.uint8)
        segments = PathGenerator(config).generate(buf, self.nails, 200)
        q = evaluate_quality(segments, self.nails, 64, 64)
        self.assertTrue(0 <= q.coverage_percentage <= 100)
        self.assertTrue(0 <= q.quality_score <= 100)
        self.assertLessEqual(abs(q.quality_score - q.coverage_percentage), 0.5 + 1e-9)


class TestRenderer(unittest.TestCase):

    def setUp(self):
        self.config = StringArtConfig()
        self.renderer = StringArtRenderer(self.config)
        self.nails = [Nail(0, 10, 100, 0.0), Nail(1, 200, 100, 0.0), Nail(2, 100, 300, 0.0)]

    def test_preview_is_png(self):
        preview = self.renderer.render_preview([Segment(0, 1, 0)], self.nails, GenerationSettings())
        self.assertTrue(preview.data.startswith(b"\x89PNG"))
        self.assertEqual((preview.width, preview.height, preview.format), (512, 512, "png"))
        decoded = cv2.imdecode(np.frombuffer(preview.data, np.uint8), cv2.IMREAD_COLOR)
        self.assertEqual(decoded.shape, (512, 512, 3))
        self.assertTrue(preview.to_data_url().startswith("data:image/png;base64,"))

    def test_stroke_and_background(self):
        settings = GenerationSettings(color="custom", custom_color="#ff0000",
                                      background_color="#00ff00", show_nails=False)
        canvas = self.renderer.draw([Segment(0, 1, 0)], self.nails, settings)
        self.assertEqual(tuple(canvas[100, 100]), (0, 0, 255))
        self.assertEqual(tuple(canvas[50, 50]), (0, 255, 0))

    def test_nails_drawn(self):
        settings = GenerationSettings(show_nails=True)
        canvas = self.renderer.draw([], self.nails, settings)
        self.assertEqual(tuple(canvas[300, 100]), (0, 0, 0))
        hidden = self.renderer.draw([], self.nails, GenerationSettings(show_nails=False))
        self.assertTrue(np.all(hidden == 255))

    def test_svg(self):
        segments = [Segment(0, 1, 0), Segment(1, 2, 1), Segment(2, 2, 2)]
        svg = self.renderer.build_svg(segments, self.nails, GenerationSettings()).tostring()
        self.assertEqual(svg.count("<line"), 2)
        self.assertEqual(svg.count("<circle"), 3)


class TestInstructions(unittest.TestCase):

    def setUp(self):
        self.config = StringArtConfig()
        self.settings = GenerationSettings(nails=50, strings=100)
        engine = StringArtEngine(self.config)
        self.result = engine.generate_from_image(gradient_image(), self.settings)

    def test_instructions(self):
        text = format_instructions(self.result, self.settings, project="demo")
        self.assertIn("Project: demo", text)
        self.assertIn("Nail 0: (456px, 256px) - Angle: 0.0°", text)
        first = self.result.segments[0]
        self.assertIn(f"String 0: From nail {first.start} to nail {first.end}", text)
        self.assertIn("... and 90 more strings", text)

    def test_coordinates(self):
        text = format_coordinates(self.result, self.settings, self.config)
        self.assertIn("Canvas Size: 512 x 512 pixels", text)
        self.assertIn("Radius: 200 pixels", text)
        self.assertIn("0, 456, 256, 0.00", text)
        self.assertIn("Nail_Count: 50", text)


class TestEngine(unittest.TestCase):

    def setUp(self):
        self.engine = StringArtEngine()
        self.settings = GenerationSettings(nails=50, strings=100)
        self.image_bytes = encode_png(gradient_image())

    def test_full_run(self):
        progress = []
        result = self.engine.generate(self.image_bytes, self.settings,
                                      on_progress=lambda done, total: progress.append((done, total)))
        self.assertEqual(len(result.segments), 100)
        self.assertEqual(len(result.nails), 50)
        self.assertEqual(progress[-1], (100, 100))
        self.assertEqual(len(progress), 100)
        self.assertEqual(result.quality.total_pixels, 512 * 512)
        self.assertEqual(result.quality.segment_count, 100)
        self.assertGreaterEqual(result.generation_time_ms, 0)

        payload = result.to_dict()
        self.assertEqual(set(payload), {"segments", "pegPositions", "quality", "generationTimeMs", "preview"})
        self.assertEqual(payload["segments"][0]["order"], 0)
        self.assertEqual(payload["pegPositions"][0], {"index": 0, "x": 456, "y": 256, "angle": 0.0})
        json.dumps(payload)

    def test_deterministic(self):
        first = self.engine.generate(self.image_bytes, self.settings)
        second = self.engine.generate(self.image_bytes, self.settings)
        self.assertEqual(first.segments, second.segments)
        self.assertEqual(first.quality, second.quality)
        self.assertEqual(first.preview.data, second.preview.data)

    def test_invalid_settings_before_decode(self):
        # Битые байты не должны даже декодироваться
        with mock.patch.object(self.engine.img_proc, "decode") as decode:
            with self.assertRaises(InvalidSettings):
                self.engine.generate(b"garbage", GenerationSettings(nails=49))
            decode.assert_not_called()

    def test_corrupt_image(self):
        with self.assertRaises(ImageDecodeError):
            self.engine.generate(b"garbage", self.settings)

    def test_internal_failure_is_wrapped(self):
        with mock.patch.object(self.engine.renderer, "render_preview", side_effect=RuntimeError("boom")):
            with self.assertRaises(GenerationFailure) as cm:
                self.engine.generate(self.image_bytes, self.settings)
        self.assertIsInstance(cm.exception.__cause__, RuntimeError)

    def test_cancelled_run_returns_nothing(self):
        event = threading.Event()
        event.set()
        with self.assertRaises(GenerationCancelled):
            self.engine.generate(self.image_bytes, self.settings, cancel_event=event)


class TestConsoleApp(unittest.TestCase):

    def test_batch_run(self):
        from cli import ConsoleApp

        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "in"
            out = Path(tmp) / "out"
            src.mkdir()
            (src / "photo.png").write_bytes(encode_png(gradient_image()))

            code = ConsoleApp().run([str(src), "--out", str(out), "--nails", "50", "--strings", "100"])
            self.assertEqual(code, 0)
            for name in ("photo_string_art.png", "photo_string_art.svg", "photo_string_art.json",
                         "photo_string_art_instructions.txt", "photo_string_art_coordinates.txt"):
                self.assertTrue((out / name).exists(), name)
            data = json.loads((out / "photo_string_art.json").read_text(encoding="utf-8"))
            self.assertEqual(len(data["segments"]), 100)

    def test_invalid_settings_abort(self):
        from cli import ConsoleApp

        with tempfile.TemporaryDirectory() as tmp:
            code = ConsoleApp().run([tmp, "--out", str(Path(tmp) / "out"), "--nails", "10"])
            self.assertEqual(code, 2)
            self.assertFalse((Path(tmp) / "out").exists())

if __name__ == '__main__':
    unittest.main()
