"""
errors.py
Иерархия ошибок движка. Движок ничего не логирует и не повторяет:
ошибка уходит вызывающему коду как есть.
"""


class StringArtError(Exception):
    """Базовая ошибка генератора."""


class InvalidSettings(StringArtError):
    """Параметр запуска вне допустимого диапазона или неверного типа."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class ImageDecodeError(StringArtError):
    """Исходное изображение не читается."""


class GenerationFailure(StringArtError):
    """Непредвиденный сбой в жадном цикле или при рендеринге. Причина в __cause__."""


class GenerationCancelled(StringArtError):
    """Запуск прерван по токену отмены или по дедлайну."""
