from __future__ import annotations

import logging
from dataclasses import dataclass

# C0 controls that survive in extracted text; everything else below 0x20 is dropped on request.
_KEPT_CONTROLS = frozenset("\n\t")


@dataclass
class SanitizationStats:
    nul_removed: int = 0
    controls_removed: int = 0
    surrogates_replaced: int = 0
    newlines_normalized: int = 0

    @property
    def changed(self) -> bool:
        return bool(
            self.nul_removed
            or self.controls_removed
            or self.surrogates_replaced
            or self.newlines_normalized
        )


def sanitize_text(
    value: str,
    *,
    strip: bool,
    normalize_newlines: bool = True,
    drop_controls: bool = False,
) -> tuple[str, SanitizationStats]:
    """Make text safe for a Postgres text column.

    NUL bytes are always removed and lone surrogates become U+FFFD. With
    ``drop_controls`` the remaining C0 control characters (form feeds from PDF
    streams, escape codes from OCR output) are removed as well, except newline
    and tab.
    """
    stats = SanitizationStats()
    chars: list[str] = []
    index = 0
    length = len(value)

    while index < length:
        char = value[index]
        index += 1

        if char == "\x00":
            stats.nul_removed += 1
            continue

        if 0xD800 <= ord(char) <= 0xDFFF:
            chars.append("\uFFFD")
            stats.surrogates_replaced += 1
            continue

        if normalize_newlines and char == "\r":
            if index < length and value[index] == "\n":
                index += 1
            chars.append("\n")
            stats.newlines_normalized += 1
            continue

        if drop_controls and char < " " and char not in _KEPT_CONTROLS and char != "\r":
            stats.controls_removed += 1
            continue

        chars.append(char)

    sanitized = "".join(chars)
    if strip:
        sanitized = sanitized.strip()
    return sanitized, stats


def log_sanitization_stats(
    logger: logging.Logger,
    *,
    location: str,
    stats: SanitizationStats,
) -> None:
    if not stats.changed:
        return
    logger.debug(
        (
            "Sanitized text write for %s "
            "(nul_removed=%d, controls_removed=%d, surrogates_replaced=%d, newlines_normalized=%d)."
        ),
        location,
        stats.nul_removed,
        stats.controls_removed,
        stats.surrogates_replaced,
        stats.newlines_normalized,
    )


__all__ = [
    "SanitizationStats",
    "log_sanitization_stats",
    "sanitize_text",
]
