"""Console-friendly formatting utilities."""

from __future__ import annotations


def format_bytes(num: float) -> str:
    suffixes = ["B", "KiB", "MiB", "GiB", "TiB"]
    value = float(num)
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}"
        value /= 1024
    return f"{value:.1f} TiB"


def format_number(value: float) -> str:
    """``72.0`` -> ``72``, ``0.534`` -> ``0.53``."""
    return f"{round(float(value), 2):g}"


def format_quantity(value: float, unit: str = "") -> str:
    text = format_number(value)
    if not unit:
        return text
    if unit in ("%", "°C"):
        return f"{text}{unit}"
    return f"{text} {unit}"
