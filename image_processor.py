"""
image_processor.py
Подготовка фотографии к жадному поиску.
Pipeline: Decode -> Letterbox 512x512 -> Grayscale -> Gaussian Blur -> Contrast.
"""
import cv2
import numpy as np

from config import StringArtConfig, GenerationSettings
from errors import ImageDecodeError


class ImageProcessor:
    def __init__(self, config: StringArtConfig):
        self.cfg = config

    def load_image(self, path: str) -> np.ndarray:
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise ImageDecodeError(f"Файл не прочитан: {path} ({e})") from e
        return self.decode(data)

    def decode(self, data: bytes) -> np.ndarray:
        """Байты jpg/png/bmp/webp -> uint8 массив (BGR или одноканальный)."""
        if not data:
            raise ImageDecodeError("Пустой буфер изображения")

        buf = np.frombuffer(data, dtype=np.uint8)
        try:
            img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
        except cv2.error as e:
            raise ImageDecodeError(f"Изображение повреждено: {e}") from e
        if img is None or img.size == 0:
            raise ImageDecodeError("Формат изображения не распознан")

        # 16-битные PNG/TIFF приводим к 8 битам
        if img.dtype == np.uint16:
            img = (img >> 8).astype(np.uint8)
        elif img.dtype != np.uint8:
            raise ImageDecodeError(f"Неподдерживаемая глубина цвета: {img.dtype}")

        # Прозрачность кладем на белый фон
        if img.ndim == 3 and img.shape[2] == 4:
            alpha = img[:, :, 3:4].astype(np.float32) / 255.0
            rgb = img[:, :, :3].astype(np.float32)
            img = np.rint(rgb * alpha + 255.0 * (1.0 - alpha)).astype(np.uint8)

        return img

    def letterbox(self, img: np.ndarray) -> np.ndarray:
        """Вписывает изображение в квадрат CANVAS_SIZE с сохранением пропорций."""
        size = self.cfg.CANVAS_SIZE
        h, w = img.shape[:2]
        scale = min(size / w, size / h)
        new_w = max(1, min(size, int(round(w * scale))))
        new_h = max(1, min(size, int(round(h * scale))))

        # INTER_AREA для уменьшения, INTER_CUBIC для увеличения
        interp = cv2.INTER_AREA if scale < 1 else cv2.INTER_CUBIC
        resized = cv2.resize(img, (new_w, new_h), interpolation=interp)

        top = (size - new_h) // 2
        left = (size - new_w) // 2
        pad = self.cfg.PAD_COLOR
        value = pad if resized.ndim == 2 else (pad, pad, pad)
        return cv2.copyMakeBorder(resized, top, size - new_h - top, left, size - new_w - left,
                                  cv2.BORDER_CONSTANT, value=value)

    def preprocess(self, img: np.ndarray, settings: GenerationSettings) -> np.ndarray:
        """
        Превращает произвольное фото в буфер яркости CANVAS_SIZE x CANVAS_SIZE, uint8.
        """
        # 1. LETTERBOX (Приводим к каноническому квадрату)
        canvas = self.letterbox(img)

        # 2. GRAYSCALE (Взвешенная сумма каналов)
        if canvas.ndim == 3 and canvas.shape[2] == 3:
            gray = cv2.cvtColor(canvas, cv2.COLOR_BGR2GRAY)
        elif canvas.ndim == 3:
            gray = canvas[:, :, 0]
        else:
            gray = canvas

        # 3. GAUSSIAN BLUR (Подавление высокочастотного шума)
        if settings.blur_radius > 0:
            gray = cv2.GaussianBlur(gray, (0, 0), sigmaX=float(settings.blur_radius))

        # 4. CONTRAST (Симметричное растяжение вокруг 128)
        stretched = (gray.astype(np.float32) - 128.0) * float(settings.contrast) + 128.0
        return np.clip(np.rint(stretched), 0, 255).astype(np.uint8)
