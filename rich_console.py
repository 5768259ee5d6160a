"""
Rich console configuration for the trip replay tools.

Provides terminal output with progress bars, tables, panels and styled logging.
"""

import logging
from typing import Iterable, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme
from rich.panel import Panel
from rich.table import Table
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeElapsedColumn,
)

from speed_colors import argb_to_rgb, color_for_speed_kph

TRIP_THEME = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "highlight": "bold magenta",
    "muted": "dim",
    "speed": "bold cyan",
    "gps": "green",
    "distance": "bold blue",
})

# Global console instance
console = Console(theme=TRIP_THEME)


def setup_rich_logging(verbose: bool = False) -> None:
    """
    Configure logging to use Rich handler.

    Args:
        verbose: Enable DEBUG level logging with full details
    """
    level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                show_time=verbose,
                show_path=verbose,
                rich_tracebacks=True,
                tracebacks_show_locals=verbose,
                markup=True,
            )
        ],
        force=True,  # Override any existing configuration
    )


def create_progress() -> Progress:
    """
    Create a progress bar for simplification and replay stepping.

    Returns:
        Configured Progress instance
    """
    return Progress(
        SpinnerColumn("dots"),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(bar_width=40, style="cyan", complete_style="green"),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def format_duration_ms(duration_ms: int) -> str:
    """Format milliseconds as H:MM:SS or MM:SS."""
    seconds = max(int(duration_ms), 0) // 1000
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def speed_style(speed_kph: float) -> str:
    """Rich style string matching the polyline color of a speed."""
    r, g, b = argb_to_rgb(color_for_speed_kph(speed_kph))
    return f"bold rgb({r},{g},{b})"


def print_trip_summary(
    title: str,
    fix_count: int,
    duration_ms: int,
    distance_m: float,
    moving_time_ms: int,
    max_speed_kph: float,
    route_points: Optional[int] = None,
) -> None:
    """
    Print a styled trip summary panel.

    Args:
        title: Trip title
        fix_count: Number of recorded fixes
        duration_ms: Wall duration of the trip
        distance_m: Total distance in meters
        moving_time_ms: Time spent moving
        max_speed_kph: Maximum adjusted speed
        route_points: Points left after simplification (optional)
    """
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Fixes", f"[highlight]{fix_count:,}[/]")
    if route_points is not None:
        table.add_row("Replay Points", f"{route_points:,}")
    table.add_row("Duration", format_duration_ms(duration_ms))
    table.add_row("Distance", f"[distance]{distance_m / 1000.0:.2f} km[/]")
    table.add_row("Moving Time", format_duration_ms(moving_time_ms))
    table.add_row("Max Speed", f"[{speed_style(max_speed_kph)}]{max_speed_kph:.1f} km/h[/]")

    panel = Panel(
        table,
        title=f"[bold]{title}[/]",
        border_style="cyan",
        padding=(1, 2),
    )
    console.print(panel)


def print_frames_table(frames: Iterable) -> None:
    """
    Print replay frames as a table.

    Args:
        frames: ReplayUiState objects (or anything with the same fields)
    """
    table = Table(title="Replay", header_style="bold cyan")
    table.add_column("Trip Time", justify="right")
    table.add_column("Position", style="gps")
    table.add_column("Speed", justify="right")
    table.add_column("Bearing", justify="right")
    table.add_column("Distance", justify="right", style="distance")
    table.add_column("Segment", justify="right", style="muted")
    table.add_column("Runs", justify="right", style="muted")

    for state in frames:
        pos = state.car_position
        speed_kph = state.current_speed_kph
        table.add_row(
            format_duration_ms(state.trip_time_ms),
            f"{pos.latitude:.6f}, {pos.longitude:.6f}" if pos else "-",
            f"[{speed_style(speed_kph)}]{speed_kph:.1f} km/h[/]",
            f"{state.current_bearing:.0f}°",
            f"{state.distance_traveled_meters:.0f} m",
            str(state.segment_index),
            str(len(state.progress_colored)),
        )
    console.print(table)


def print_error(message: str, hint: Optional[str] = None) -> None:
    """
    Print a styled error message.

    Args:
        message: Error message
        hint: Optional hint for resolution
    """
    console.print(f"\n[error]Error:[/] {message}")
    if hint:
        console.print(f"[muted]Hint: {hint}[/]")
