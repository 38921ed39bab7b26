"""ANSI-aware helpers for fixed-width terminal rendering."""
from __future__ import annotations
import re
from typing import List

from rich.color import ColorSystem
from rich.style import Style

ANSI_RE = re.compile(r'\x1b\[[0-9;]*m')
TOKEN_RE = re.compile(r'(\s{3,}|\s+)')
COLUMN_BREAK_RE = re.compile(r'^\s{3,}$')


def style(text: str, spec: str) -> str:
    """Return ``text`` wrapped in the ANSI codes for a rich style spec."""
    if not text:
        return text
    return Style.parse(spec).render(text, color_system=ColorSystem.STANDARD)


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub('', text)


def visible_len(text: str) -> int:
    """Number of terminal columns ``text`` occupies, ignoring style codes."""
    return len(strip_ansi(text))


def wrap_line(text: str, max_width: int) -> List[str]:
    """Wrap a (possibly styled) line to ``max_width`` visible columns.

    Runs of three or more whitespace characters are column separators: when
    one lands on a break it is dropped instead of starting the next line.
    Words and 1-2 space runs are never split, so a single token wider than
    ``max_width`` is emitted on its own line as-is.
    """
    lines: List[str] = []
    current = ''
    for part in TOKEN_RE.split(text):
        if not part:
            continue
        if current and visible_len(current) + visible_len(part) > max_width:
            lines.append(current.rstrip())
            current = '' if COLUMN_BREAK_RE.match(part) else part
            continue
        current += part
    if current.strip():
        lines.append(current.rstrip())
    return lines
