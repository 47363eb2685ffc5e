"""
instructions.py
Текстовые выгрузки для ручной сборки: инструкция и таблица координат.
"""
import math
from datetime import datetime
from typing import Optional

from config import StringArtConfig, GenerationSettings
from models import GenerationResult

PREVIEW_STEPS = 10


def _header(title: str, underline: str, project: str, generated: datetime) -> list:
    return [
        title,
        underline * len(title),
        "",
        f"Project: {project}",
        f"Generated: {generated:%Y-%m-%d %H:%M:%S}",
    ]


def format_instructions(result: GenerationResult, settings: GenerationSettings,
                        project: str = "String Art Generation",
                        generated: Optional[datetime] = None) -> str:
    generated = generated or datetime.now()
    count = len(result.nails)
    lines = _header("STRING ART INSTRUCTIONS", "=", project, generated)
    lines += [
        "",
        "SETTINGS:",
        f"- Nails: {settings.nails}",
        f"- Strings: {settings.strings}",
        f"- Algorithm: {settings.algorithm}",
        f"- String Color: {settings.stroke_color}",
        f"- Background: {settings.background_color}",
        f"- Blur Radius: {settings.blur_radius}",
        f"- Contrast: {settings.contrast}",
        "",
        "MATERIALS NEEDED:",
        "- Wooden board or canvas (recommended size: 30cm x 30cm)",
        f"- {count} small nails (1-2cm length)",
        f"- String or thread in color: {settings.stroke_color}",
        "- Hammer",
        "- Ruler or measuring tape",
        "- Pencil for marking",
        "- Scissors",
        "",
        "NAIL POSITIONS:",
    ]
    for nail in result.nails:
        lines.append(f"Nail {nail.index}: ({nail.x}px, {nail.y}px) - Angle: {math.degrees(nail.angle):.1f}°")

    lines += ["", "STRING PATHS (in order):"]
    for seg in result.segments:
        lines.append(f"String {seg.order}: From nail {seg.start} to nail {seg.end}")

    lines += [
        "",
        "STEP-BY-STEP INSTRUCTIONS:",
        "1. Mark the center point on your board",
        "2. Draw a circle around the center",
        f"3. Mark {count} evenly spaced points on the circle",
        "4. Hammer nails at each marked position",
        f"5. Number the nails from 0 to {count - 1} clockwise, starting at the rightmost point",
        "6. Tie the string to nail 0",
        "7. Follow the string paths in order:",
    ]
    for seg in result.segments[:PREVIEW_STEPS]:
        lines.append(f"   - String {seg.order}: Go from nail {seg.start} to nail {seg.end}")
    if len(result.segments) > PREVIEW_STEPS:
        lines.append(f"   ... and {len(result.segments) - PREVIEW_STEPS} more strings")
    lines += [
        "8. Keep string tension consistent throughout",
        "9. Secure string at each nail as you go",
        "10. Tie off final string and trim excess",
        "",
        "TIPS FOR SUCCESS:",
        "- Work in good lighting",
        "- Double-check nail positions before hammering",
        "- Take breaks if needed",
        "",
    ]
    return "\n".join(lines)


def format_coordinates(result: GenerationResult, settings: GenerationSettings,
                       config: StringArtConfig, project: str = "String Art Generation",
                       generated: Optional[datetime] = None) -> str:
    generated = generated or datetime.now()
    cx, cy = config.center
    lines = _header("STRING ART COORDINATES", "=", project, generated)
    lines += [
        f"Canvas Size: {config.CANVAS_SIZE} x {config.CANVAS_SIZE} pixels",
        f"Center: ({cx}, {cy})",
        f"Radius: {config.ring_radius} pixels",
        "",
        "NAIL POSITIONS:",
        "Format: Nail_Number, X_Coordinate, Y_Coordinate, Angle_Degrees",
        "",
    ]
    for nail in result.nails:
        lines.append(f"{nail.index}, {nail.x}, {nail.y}, {math.degrees(nail.angle):.2f}")

    lines += [
        "",
        "STRING PATHS:",
        "Format: String_Order, From_Nail, To_Nail, From_X, From_Y, To_X, To_Y",
        "",
    ]
    for seg in result.segments:
        a, b = result.nails[seg.start], result.nails[seg.end]
        lines.append(f"{seg.order}, {seg.start}, {seg.end}, {a.x}, {a.y}, {b.x}, {b.y}")

    lines += [
        "",
        "SETTINGS:",
        f"Nail_Count: {settings.nails}",
        f"String_Count: {settings.strings}",
        f"String_Color: {settings.stroke_color}",
        f"Background_Color: {settings.background_color}",
        "",
    ]
    return "\n".join(lines)
