"""
cli.py
Обработка аргументов командной строки и UI.
"""
import json
import time
import argparse
from pathlib import Path
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, BarColumn, TextColumn
from rich.table import Table
from rich.panel import Panel
from rich import box

from config import StringArtConfig, GenerationSettings, validate_settings
from engine import StringArtEngine
from errors import InvalidSettings, StringArtError
from instructions import format_instructions, format_coordinates

console = Console()

class ConsoleApp:
    def __init__(self):
        # 1. Загружаем конфиг
        self.config = StringArtConfig()

        # 2. Движок получает весь конфиг целиком
        self.engine = StringArtEngine(self.config)

    def parse_args(self, argv=None):
        defaults = GenerationSettings()
        parser = argparse.ArgumentParser(description="String Art Generator")
        parser.add_argument("input_dir", type=str, help="Папка с картинками")
        parser.add_argument("--out", type=str, default="output", help="Папка для сохранения")
        parser.add_argument("--nails", type=int, default=defaults.nails, help="Количество гвоздей (50-512)")
        parser.add_argument("--strings", type=int, default=defaults.strings, help="Количество нитей (100-3000)")
        parser.add_argument("--color", type=str, default=defaults.color, choices=["black", "white", "custom"])
        parser.add_argument("--custom-color", type=str, default=None, help="Цвет нити #RRGGBB для --color custom")
        parser.add_argument("--background", type=str, default=defaults.background_color, help="Цвет фона #RRGGBB")
        parser.add_argument("--blur", type=float, default=defaults.blur_radius, help="Радиус размытия (0-5)")
        parser.add_argument("--contrast", type=float, default=defaults.contrast, help="Контраст (0.1-3)")
        parser.add_argument("--no-nails", action="store_true", help="Не рисовать гвозди на превью")
        parser.add_argument("--timeout", type=float, default=None, help="Лимит времени на один файл, сек")
        return parser.parse_args(argv)

    def build_settings(self, args) -> GenerationSettings:
        settings = GenerationSettings(
            nails=args.nails,
            strings=args.strings,
            color=args.color,
            custom_color=args.custom_color,
            blur_radius=args.blur,
            contrast=args.contrast,
            show_nails=not args.no_nails,
            background_color=args.background,
        )
        return validate_settings(settings)

    def save_outputs(self, result, settings, file: Path, output_path: Path):
        base = output_path / (file.stem + self.config.OUTPUT_SUFFIX)
        Path(f"{base}.png").write_bytes(result.preview.data)
        self.engine.renderer.save_to_svg(result.segments, result.nails, settings, f"{base}.svg")
        Path(f"{base}_instructions.txt").write_text(
            format_instructions(result, settings, project=file.stem), encoding="utf-8")
        Path(f"{base}_coordinates.txt").write_text(
            format_coordinates(result, settings, self.config, project=file.stem), encoding="utf-8")
        Path(f"{base}.json").write_text(json.dumps(result.to_dict()), encoding="utf-8")

    def run(self, argv=None):
        args = self.parse_args(argv)
        input_path = Path(args.input_dir)
        output_path = Path(args.out)

        try:
            settings = self.build_settings(args)
        except InvalidSettings as e:
            console.print(f"[bold red]Ошибка параметра {e.field}:[/bold red] {e}")
            return 2

        output_path.mkdir(exist_ok=True)

        # Поддержка разных форматов
        extensions = ["*.jpg", "*.jpeg", "*.png", "*.bmp", "*.webp"]
        files = []
        for ext in extensions:
            files.extend(input_path.glob(ext.lower()))
            files.extend(input_path.glob(ext.upper()))

        # Удаляем дубликаты
        files = sorted(list(set(files)))

        if not files:
            console.print("[bold red]Ошибка:[/bold red] Файлы не найдены.")
            return 1

        console.print(Panel.fit(
            f"Файлов: [bold cyan]{len(files)}[/bold cyan]\n"
            f"Гвозди: [bold green]{settings.nails}[/bold green], "
            f"нити: [bold green]{settings.strings}[/bold green]",
            title="🧵 String Art Generator", border_style="blue"
        ))

        results = []

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
        ) as progress:
            task = progress.add_task("[cyan]Обработка...", total=len(files))
            strings_task = progress.add_task("[magenta]Нити", total=settings.strings)

            for file in files:
                start_time = time.time()
                status = "OK"
                coverage = "-"
                progress.reset(strings_task, description=f"[magenta]{file.name}")

                deadline = time.monotonic() + args.timeout if args.timeout else None

                def on_progress(done, total):
                    progress.update(strings_task, completed=done)

                try:
                    result = self.engine.generate(file.read_bytes(), settings,
                                                  deadline=deadline, on_progress=on_progress)
                    self.save_outputs(result, settings, file, output_path)
                    coverage = f"{result.quality.coverage_percentage:.1f}%"
                except (StringArtError, OSError) as e:
                    status = f"ERROR: {str(e)}"
                    console.print(f"\n[red]Сбой на {file.name}: {e}[/red]")

                elapsed = time.time() - start_time
                results.append((file.name, f"{elapsed:.2f}s", str(settings.strings), coverage, status))
                progress.advance(task)

        self.print_summary(results)
        return 0

    def print_summary(self, data):
        table = Table(title="Результаты", box=box.ROUNDED)
        table.add_column("Файл", style="cyan")
        table.add_column("Время", justify="right")
        table.add_column("Нити", justify="right")
        table.add_column("Покрытие", justify="right")
        table.add_column("Статус", justify="center")

        for row in data:
            status_style = "green" if "OK" in row[4] else "red"
            short_status = row[4] if len(row[4]) < 20 else "ERROR"
            table.add_row(row[0], row[1], row[2], row[3], f"[{status_style}]{short_status}[/{status_style}]")

        console.print(table)


def main():
    raise SystemExit(ConsoleApp().run())


if __name__ == "__main__":
    main()
