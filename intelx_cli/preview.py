"""Keyword-in-context previews for file contents."""
from __future__ import annotations
import math
import re
from typing import List, NamedTuple, Optional

from intelx_cli.models import MatchWindow
from intelx_cli.text import style, visible_len, wrap_line

LINE_NUMBER_WIDTH = 6
GUTTER_WIDTH = LINE_NUMBER_WIDTH + 3  # ">123456: "
ELLIPSIS = '...'
TRUNCATE_SPACE_RATIO = 0.7

# Lines used around the preview: title, file info, blank lines and the
# navigation prompt with up to four choices.
PREVIEW_CHROME_LINES = 12
WRAP_FACTOR = 1.5

HIGHLIGHT_STYLE = 'black on yellow'
MATCH_GUTTER_STYLE = 'green'
CONTEXT_GUTTER_STYLE = 'bright_black'
HEADER_STYLE = 'cyan'
NOTICE_STYLE = 'yellow'

NO_MATCHES_MESSAGE = 'No matches found in file content.'

SPACE_RUN_RE = re.compile(r' {3,}')


class PreviewLayout(NamedTuple):
    context_lines: int
    max_matches: int


def find_context(content: str, term: str, context_lines: int = 5) -> List[MatchWindow]:
    """Return one window per line containing ``term`` (case-insensitive).

    Windows of neighbouring matches are allowed to overlap; each matching
    line always gets its own window.
    """
    if not content or not term:
        return []
    lines = content.split('\n')
    needle = term.lower()
    matches = []
    for i, line in enumerate(lines):
        if needle in line.lower():
            start = max(0, i - context_lines)
            end = min(len(lines), i + context_lines + 1)
            matches.append(MatchWindow(i + 1, lines[start:end], i - start))
    return matches


def highlight(line: str, term: str) -> str:
    pattern = re.compile(re.escape(term), re.IGNORECASE)
    return pattern.sub(lambda m: style(m.group(0), HIGHLIGHT_STYLE), line)


def truncate_line(line: str, max_width: int) -> str:
    """Cut ``line`` so that it plus an ellipsis fits in ``max_width``."""
    available = max(1, max_width - len(ELLIPSIS))
    cut = line[:available]
    space = cut.rfind(' ')
    if space > available * TRUNCATE_SPACE_RATIO:
        cut = cut[:space]
    return cut.rstrip() + style(ELLIPSIS, CONTEXT_GUTTER_STYLE)


def preview_width(columns: int) -> int:
    return max(10, columns - GUTTER_WIDTH - 1)


def _number(line_number: int) -> str:
    return str(line_number).rjust(LINE_NUMBER_WIDTH)


def render_window(window: MatchWindow, term: str, max_width: int) -> List[str]:
    out = [style(f'--- Match at line {window.line_number} ---', HEADER_STYLE)]
    continuation = ' ' * GUTTER_WIDTH
    for line_number, line, is_match in window.numbered():
        if is_match:
            segments = wrap_line(highlight(line, term), max_width) or ['']
            for j, segment in enumerate(segments):
                prefix = style(f'>{_number(line_number)}: ', MATCH_GUTTER_STYLE) if j == 0 else continuation
                out.append(prefix + segment)
            continue
        line = SPACE_RUN_RE.sub('   ', line)
        if visible_len(line) > max_width:
            line = truncate_line(line, max_width)
        out.append(style(f' {_number(line_number)}: ', CONTEXT_GUTTER_STYLE) + line)
    return out


def render_preview(matches: List[MatchWindow], term: str, max_matches: int = 3,
                   columns: int = 80) -> Optional[List[str]]:
    """Render match windows into display lines, or None when nothing matched."""
    if not matches:
        return None
    max_width = preview_width(columns)
    lines: List[str] = []
    for window in matches[:max_matches]:
        lines.append('')
        lines.extend(render_window(window, term, max_width))
    if len(matches) > max_matches:
        lines.append('')
        lines.append(style(f'... and {len(matches) - max_matches} more match(es)', NOTICE_STYLE))
    return lines


def format_preview(matches: List[MatchWindow], term: str, max_matches: int = 3,
                   columns: int = 80) -> str:
    block = render_preview(matches, term, max_matches=max_matches, columns=columns)
    if block is None:
        return style(NO_MATCHES_MESSAGE, NOTICE_STYLE)
    return '\n'.join(block)


def preview_layout(rows: int) -> PreviewLayout:
    """Pick context size and match count so a preview roughly fits ``rows``.

    This is an estimate: every window is assumed to grow by WRAP_FACTOR when
    long lines wrap, and nothing stops a page from overflowing the terminal
    when the estimate is wrong.
    """
    available = max(0, rows - PREVIEW_CHROME_LINES)
    if available >= 10:
        context = 4 if available >= 15 else 3
        # window lines plus its header and the blank line before it
        per_window = math.ceil((2 * context + 3) * WRAP_FACTOR)
        return PreviewLayout(context, max(1, min(3, available // per_window)))
    context = max(0, int((available / WRAP_FACTOR - 3) // 2))
    return PreviewLayout(context, 1)
