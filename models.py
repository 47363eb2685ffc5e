"""
models.py
Результаты генерации. Все структуры создаются заново на каждый запуск.
"""
import base64
from dataclasses import dataclass
from typing import List, NamedTuple


class Nail(NamedTuple):
    index: int
    x: int
    y: int
    angle: float


class Segment(NamedTuple):
    # from - зарезервированное слово, поэтому start/end
    start: int
    end: int
    order: int

    @property
    def is_degenerate(self) -> bool:
        return self.start == self.end

    def to_dict(self) -> dict:
        return {"from": self.start, "to": self.end, "order": self.order}


@dataclass(frozen=True)
class QualityMetrics:
    coverage_percentage: float
    string_efficiency: float
    quality_score: int
    total_pixels: int
    covered_pixels: int
    segment_count: int

    def to_dict(self) -> dict:
        return {
            "coveragePercentage": self.coverage_percentage,
            "stringEfficiency": self.string_efficiency,
            "qualityScore": self.quality_score,
            "totalPixels": self.total_pixels,
            "coveredPixels": self.covered_pixels,
            "segmentCount": self.segment_count,
        }


@dataclass(frozen=True)
class PreviewImage:
    data: bytes
    format: str
    width: int
    height: int

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:image/{self.format};base64,{encoded}"

    def to_dict(self) -> dict:
        return {
            "data": self.to_data_url(),
            "format": self.format,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class GenerationResult:
    segments: List[Segment]
    nails: List[Nail]
    quality: QualityMetrics
    generation_time_ms: int
    preview: PreviewImage

    def to_dict(self) -> dict:
        return {
            "segments": [s.to_dict() for s in self.segments],
            "pegPositions": [n._asdict() for n in self.nails],
            "quality": self.quality.to_dict(),
            "generationTimeMs": self.generation_time_ms,
            "preview": self.preview.to_dict(),
        }
