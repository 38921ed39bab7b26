"""Console output and prompt helpers shared by the menus."""
from __future__ import annotations
import re
from typing import List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from intelx_cli.models import AccountInfo, SearchRecord

console = Console()

BAR_LENGTH = 20


def record_labels(records: Sequence[SearchRecord]) -> List[str]:
    """``name | date | size | bucket`` labels with aligned columns."""
    rows = [(r.file_name, r.date_label, r.size_label, r.bucket_label) for r in records]
    if not rows:
        return []
    name_w = max(max(len(r[0]) for r in rows), 30)
    date_w = max(max(len(r[1]) for r in rows), 10)
    size_w = max(max(len(r[2]) for r in rows), 8)
    return [f'{n.ljust(name_w)} | {d.ljust(date_w)} | {s.ljust(size_w)} | {b}' for n, d, s, b in rows]


def print_ansi(block: str) -> None:
    console.print(Text.from_ansi(block), soft_wrap=True)


def ask_menu(prompt_text: str, options: List[str], allow_back: bool = True,
             default: Optional[int] = None) -> Optional[int]:
    """Numbered menu; returns the chosen index or None for Back."""
    while True:
        console.print(Panel(prompt_text))
        for idx, opt in enumerate(options, 1):
            console.print(f'[cyan]{idx}[/] - {escape(opt)}')
        if allow_back:
            console.print('[cyan]0[/] - Back / Cancel')
        if default is not None:
            fallback = str(default + 1)
        else:
            fallback = '0' if allow_back else '1'
        choice = Prompt.ask('Choose', default=fallback, console=console)
        try:
            val = int(choice)
        except ValueError:
            console.print('[red]Invalid selection, try again.[/]')
            continue
        if allow_back and val == 0:
            return None
        if 1 <= val <= len(options):
            return val - 1
        console.print('[red]Invalid selection, try again.[/]')


def parse_selection(text: str, count: int) -> List[int]:
    """Turn ``"1,3-5"`` / ``"all"`` into sorted zero-based indices.

    Raises ValueError on anything outside 1..count.
    """
    text = (text or '').strip().lower()
    if not text or text in ('none', 'n'):
        return []
    if text in ('all', '*', 'a'):
        return list(range(count))
    picked = set()
    for part in re.split(r'[,\s]+', text):
        if not part:
            continue
        if '-' in part:
            lo, hi = part.split('-', 1)
            start, end = int(lo), int(hi)
            if start > end:
                start, end = end, start
        else:
            start = end = int(part)
        if start < 1 or end > count:
            raise ValueError(f'{part} is out of range 1-{count}')
        picked.update(range(start - 1, end))
    return sorted(picked)


def ask_selection(title: str, labels: List[str]) -> List[int]:
    """List ``labels`` and let the user pick several (default: all)."""
    table = Table(title=title, show_lines=False)
    table.add_column('#', justify='right', width=5)
    table.add_column('Item', overflow='fold')
    for i, label in enumerate(labels, 1):
        table.add_row(str(i), Text(label))
    console.print(table)
    while True:
        answer = Prompt.ask("Select items (e.g. 1,3,5-7, 'all' or 'none')", default='all', console=console)
        try:
            return parse_selection(answer, len(labels))
        except ValueError as e:
            console.print(f'[red]Invalid selection: {e}[/]')


def credit_color(credit: int, maximum: int) -> str:
    if credit < maximum * 0.1:
        return 'red'
    if credit < maximum * 0.5:
        return 'yellow'
    return 'green'


def limits_table(info: AccountInfo) -> Table:
    table = Table(title='Endpoint Credits', show_lines=False)
    table.add_column('Endpoint')
    table.add_column('Credits', justify='right')
    table.add_column('%', justify='right')
    table.add_column('Reset', justify='right')
    table.add_column('Usage')
    for path in info.credit_paths():
        credit = info.get_remaining_credits(path)
        maximum = info.get_max_credits(path)
        share = credit / maximum
        filled = round(share * BAR_LENGTH)
        color = credit_color(credit, maximum)
        bar = f'[green]{"█" * filled}[/green][bright_black]{"░" * (BAR_LENGTH - filled)}[/bright_black]'
        table.add_row(path, f'[{color}]{credit}[/{color}]/{maximum}', f'{share * 100:.1f}%',
                      f'{info.get_credit_reset(path)}h', bar)
    return table


def show_limits(info: AccountInfo) -> None:
    console.print('\n[bold cyan]API Limits:[/bold cyan]')
    console.print(f'Active Searches: [yellow]{info.get_active_searches_info()}[/yellow]')
    if not info.credit_paths():
        console.print('[yellow]No endpoint credits reported for this API key.[/yellow]')
        return
    console.print(limits_table(info))
