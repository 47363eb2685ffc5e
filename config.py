"""
config.py
Централизованное хранилище настроек генератора.
StringArtConfig - константы движка, GenerationSettings - параметры одного запуска.
"""
import re
from dataclasses import dataclass, fields
from typing import Any, Mapping

from errors import InvalidSettings

# Границы допустимых значений (валидатор ниже - единственный источник правды)
MIN_NAILS, MAX_NAILS = 50, 512
MIN_STRINGS, MAX_STRINGS = 100, 3000
MIN_BLUR, MAX_BLUR = 0.0, 5.0
MIN_CONTRAST, MAX_CONTRAST = 0.1, 3.0

# Реализован только жадный алгоритм
ALGORITHMS = ("greedy",)
COLORS = ("black", "white", "custom")

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


@dataclass
class StringArtConfig:
    # --- 1. CANVAS (РАБОЧИЙ БУФЕР) ---
    # Все изображения приводятся к квадрату CANVAS_SIZE x CANVAS_SIZE.
    CANVAS_SIZE: int = 512
    # Цвет полей при вписывании (letterbox), 0-255.
    PAD_COLOR: int = 255

    # --- 2. NAILS (ГВОЗДИ) ---
    # Радиус окружности гвоздей для канонического холста 512.
    # При другом CANVAS_SIZE масштабируется пропорционально.
    NAIL_RING_RADIUS: int = 200

    # --- 3. GREEDY (ЖАДНЫЙ ПОИСК) ---
    # Сколько "темноты" снимает одна нить с каждого пикселя.
    DARKEN_AMOUNT: int = 30

    # --- 4. PREVIEW ---
    PREVIEW_SIZE: int = 512
    PREVIEW_LINE_WIDTH: int = 1
    PREVIEW_NAIL_RADIUS: int = 2
    PREVIEW_NAIL_COLOR: str = "#000000"

    # Параметры экспорта
    SVG_STROKE_WIDTH: float = 1
    OUTPUT_SUFFIX: str = "_string_art"

    @property
    def center(self) -> tuple:
        half = self.CANVAS_SIZE // 2
        return half, half

    @property
    def ring_radius(self) -> int:
        return int(round(self.NAIL_RING_RADIUS * self.CANVAS_SIZE / 512))


@dataclass(frozen=True)
class GenerationSettings:
    """Параметры одного запуска. После валидации не меняются."""
    nails: int = 200
    strings: int = 1000
    algorithm: str = "greedy"
    color: str = "black"
    custom_color: str = None
    blur_radius: float = 1.0
    contrast: float = 1.2
    show_nails: bool = True
    background_color: str = "#ffffff"

    # Ключи внешнего API (camelCase) -> поля датакласса
    _API_KEYS = {
        "customColor": "custom_color",
        "blurRadius": "blur_radius",
        "showNails": "show_nails",
        "backgroundColor": "background_color",
    }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GenerationSettings":
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = cls._API_KEYS.get(key, key)
            if name not in known:
                raise InvalidSettings(key, f"неизвестный параметр '{key}'")
            kwargs[name] = value
        return cls(**kwargs)

    @property
    def stroke_color(self) -> str:
        """Цвет нити в виде #RRGGBB."""
        if self.color == "custom":
            return self.custom_color
        return "#000000" if self.color == "black" else "#ffffff"


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_int(name: str, value, low: int, high: int):
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidSettings(name, f"{name} должно быть целым числом, получено {value!r}")
    if value < low or value > high:
        raise InvalidSettings(name, f"{name} должно быть в диапазоне [{low}, {high}], получено {value}")


def _check_float(name: str, value, low: float, high: float):
    if not _is_number(value) or value != value:
        raise InvalidSettings(name, f"{name} должно быть числом, получено {value!r}")
    if value < low or value > high:
        raise InvalidSettings(name, f"{name} должно быть в диапазоне [{low}, {high}], получено {value}")


def validate_settings(settings: GenerationSettings) -> GenerationSettings:
    """
    Проверяет параметры запуска до любых вычислений.
    Возвращает настройки без изменений или бросает InvalidSettings
    с именем первого неверного поля.
    """
    _check_int("nails", settings.nails, MIN_NAILS, MAX_NAILS)
    _check_int("strings", settings.strings, MIN_STRINGS, MAX_STRINGS)

    if settings.algorithm not in ALGORITHMS:
        raise InvalidSettings("algorithm", f"неизвестный алгоритм {settings.algorithm!r}, доступны: {', '.join(ALGORITHMS)}")

    if settings.color not in COLORS:
        raise InvalidSettings("color", f"цвет должен быть одним из {', '.join(COLORS)}, получено {settings.color!r}")
    if settings.color == "custom":
        if not isinstance(settings.custom_color, str) or not HEX_COLOR.match(settings.custom_color):
            raise InvalidSettings("custom_color", f"ожидается цвет вида #RRGGBB, получено {settings.custom_color!r}")

    _check_float("blur_radius", settings.blur_radius, MIN_BLUR, MAX_BLUR)
    _check_float("contrast", settings.contrast, MIN_CONTRAST, MAX_CONTRAST)

    if not isinstance(settings.background_color, str) or not HEX_COLOR.match(settings.background_color):
        raise InvalidSettings("background_color", f"ожидается цвет вида #RRGGBB, получено {settings.background_color!r}")

    return settings
