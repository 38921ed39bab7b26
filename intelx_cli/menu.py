"""
Interactive session: a small state machine driving search, preview,
download and combolist generation.

    MAIN_MENU -> SEARCHING -> PREVIEWING_PAGE | SELECTING_RECORDS
                             | SELECTING_FILES | GENERATING_COMBOLIST
    every state -> MAIN_MENU (done, back, or after an error)
    MAIN_MENU -> EXITING
"""
from __future__ import annotations
import os
import re
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from rich.markup import escape
from rich.prompt import Confirm, Prompt

from intelx_cli.archive import write_zip
from intelx_cli.client import IntelXClient, IntelXError
from intelx_cli.combolist import build_combolist, is_domain, strip_domain, write_combolist
from intelx_cli.config import Config, log
from intelx_cli.display import ask_menu, ask_selection, console, print_ansi, record_labels, show_limits
from intelx_cli.filetree import parse_file_tree
from intelx_cli.models import SearchRecord
from intelx_cli.preview import find_context, format_preview, preview_layout


class State(Enum):
    MAIN_MENU = 'main_menu'
    SEARCHING = 'searching'
    PREVIEWING_PAGE = 'previewing_page'
    SELECTING_RECORDS = 'selecting_records'
    SELECTING_FILES = 'selecting_files'
    GENERATING_COMBOLIST = 'generating_combolist'
    EXITING = 'exiting'


TRANSITIONS: Dict[State, frozenset] = {
    State.MAIN_MENU: frozenset({State.MAIN_MENU, State.SEARCHING, State.EXITING}),
    State.SEARCHING: frozenset({
        State.MAIN_MENU, State.PREVIEWING_PAGE, State.SELECTING_RECORDS,
        State.SELECTING_FILES, State.GENERATING_COMBOLIST,
    }),
    State.PREVIEWING_PAGE: frozenset({State.PREVIEWING_PAGE, State.MAIN_MENU}),
    State.SELECTING_RECORDS: frozenset({State.MAIN_MENU}),
    State.SELECTING_FILES: frozenset({State.MAIN_MENU}),
    State.GENERATING_COMBOLIST: frozenset({State.MAIN_MENU}),
    State.EXITING: frozenset(),
}

UNSAFE_FILENAME_RE = re.compile(r'[\\/:*?"<>|\s]+')


class PreviewPager:
    """Per-session page content cache with a one-page look-ahead fetch."""

    def __init__(self, fetch: Callable[[SearchRecord], str], records: List[SearchRecord]):
        self.fetch = fetch
        self.records = records
        self.cache: Dict[int, str] = {}
        self.pending: Dict[int, Future] = {}
        self.lock = threading.Lock()
        self.executor = ThreadPoolExecutor(max_workers=1)

    def __len__(self):
        return len(self.records)

    def _load(self, page: int) -> str:
        content = self.fetch(self.records[page])
        with self.lock:
            self.cache[page] = content
        return content

    def get(self, page: int) -> str:
        with self.lock:
            if page in self.cache:
                return self.cache[page]
            future = self.pending.pop(page, None)
        if future is not None:
            try:
                return future.result()
            except Exception as e:
                log(f'Look-ahead for page {page} failed, fetching again: {e}')
        return self._load(page)

    def is_cached(self, page: int) -> bool:
        with self.lock:
            return page in self.cache

    def prefetch(self, page: int) -> None:
        if page < 0 or page >= len(self.records):
            return
        with self.lock:
            if page in self.cache or page in self.pending:
                return
            self.pending[page] = self.executor.submit(self._load, page)

    def close(self) -> None:
        self.executor.shutdown(wait=False)


class Session:
    def __init__(self, config: Config, query: Optional[str] = None, output: Optional[str] = None,
                 limit: int = 1000, client_factory: Callable[..., IntelXClient] = IntelXClient):
        self.config = config
        self.query = query.strip() if query else None
        self.output = output
        self.limit = limit
        self.client_factory = client_factory
        self.client: Optional[IntelXClient] = None
        self.records: List[SearchRecord] = []
        self.page = 0
        self.last_move: Optional[str] = None
        self.pager: Optional[PreviewPager] = None
        self.state = State.SEARCHING if self.query else State.MAIN_MENU
        self.handlers: Dict[State, Callable[[], State]] = {
            State.MAIN_MENU: self.main_menu,
            State.SEARCHING: self.searching,
            State.PREVIEWING_PAGE: self.previewing_page,
            State.SELECTING_RECORDS: self.selecting_records,
            State.SELECTING_FILES: self.selecting_files,
            State.GENERATING_COMBOLIST: self.generating_combolist,
        }

    # state machine

    def transition(self, target: State) -> None:
        if target not in TRANSITIONS[self.state]:
            raise RuntimeError(f'Illegal transition {self.state.name} -> {target.name}')
        if target is State.MAIN_MENU:
            self._reset()
        self.state = target

    def _reset(self) -> None:
        self.query = None
        self.records = []
        self.page = 0
        self.last_move = None
        if self.pager is not None:
            self.pager.close()
            self.pager = None

    def step(self) -> State:
        try:
            target = self.handlers[self.state]()
        except (IntelXError, OSError, ValueError) as e:
            log(f'{self.state.name} failed: {e}')
            console.print(f'\n[red]✗ Error: {escape(str(e))}[/red]')
            target = State.MAIN_MENU
        self.transition(target)
        return self.state

    def run(self) -> None:
        while self.state is not State.EXITING:
            self.step()

    # helpers

    def get_client(self) -> Optional[IntelXClient]:
        if not self.config.api_key:
            console.print('\n[red]✗ Error: API key not set. Choose "Set API Key" from the main menu first.[/red]')
            return None
        if self.client is None or self.client.apikey != self.config.api_key:
            self.client = self.client_factory(self.config.api_key, base_url=self.config.base_url)
        return self.client

    def output_path(self) -> str:
        if self.output:
            return self.output if os.path.isabs(self.output) else os.path.join(os.getcwd(), self.output)
        name = UNSAFE_FILENAME_RE.sub('_', self.query or 'intelx') or 'intelx'
        return os.path.join(os.getcwd(), f'{name}.zip')

    def terminal_size(self) -> Tuple[int, int]:
        size = console.size
        return size.width or 80, size.height or 24

    def download_all(self, items: List[Tuple[str, str, str]]) -> None:
        """Download ``(label, systemid, bucket)`` items into one zip archive."""
        console.print(f'\n[cyan]Downloading [bold yellow]{len(items)}[/bold yellow] files...[/cyan]\n')
        downloaded = []
        for i, (name, systemid, bucket) in enumerate(items, 1):
            console.print(f'[{i}/{len(items)}] Downloading: [cyan]{escape(name)}[/cyan]... ', end='')
            try:
                data = self.client.download(systemid, bucket)
            except IntelXError as e:
                log(f'Download of {systemid} failed: {e}')
                console.print(f'[red]✗ Error: {escape(str(e))}[/red]')
                continue
            downloaded.append((name, data))
            console.print('[green]✓[/green]')
        if not downloaded:
            console.print('\n[red]✗ No files were successfully downloaded[/red]')
            return
        path = self.output_path()
        write_zip(downloaded, path)
        console.print(f'\n[green]✓ Downloaded [bold yellow]{len(downloaded)}[/bold yellow] files to '
                      f'[bold cyan]{escape(path)}[/bold cyan][/green]')

    # states

    def main_menu(self) -> State:
        choice = ask_menu('What would you like to do?', ['Search', 'Set API Key', 'API Limits', 'Exit'],
                          allow_back=False)
        if choice == 1:
            key = Prompt.ask('Enter your IntelX API key', console=console).strip()
            if not key:
                console.print('[red]API key is required[/red]')
                return State.MAIN_MENU
            self.config.set_api_key(key)
            self.client = None
            console.print('\n[green]✓ API key saved successfully![/green]')
            return State.MAIN_MENU
        if choice == 2:
            client = self.get_client()
            if client is None:
                return State.MAIN_MENU
            console.print('\n[cyan]Fetching API limits...[/cyan]')
            show_limits(client.limits())
            Prompt.ask('\n[bright_black]Press Enter to return to menu[/bright_black]', default='',
                       show_default=False, console=console)
            return State.MAIN_MENU
        if choice == 3:
            console.print('[bold]Goodbye[/bold]')
            return State.EXITING
        query = Prompt.ask('Enter query or system ID to search for', console=console).strip()
        if not query:
            console.print('[yellow]Query or system ID is required[/yellow]')
            return State.MAIN_MENU
        self.query = query
        return State.SEARCHING

    def searching(self) -> State:
        client = self.get_client()
        if client is None:
            return State.MAIN_MENU
        console.print(f'\n[cyan]Searching for: [bold white]{escape(self.query)}[/bold white][/cyan]')
        self.records = client.find(self.query, limit=self.limit)
        if not self.records:
            console.print('[red]✗ No records found[/red]')
            return State.MAIN_MENU
        console.print(f'[green]✓ Found [bold yellow]{len(self.records)}[/bold yellow] record(s)[/green]\n')

        actions = [
            ('Preview files (show context around search term)', State.PREVIEWING_PAGE),
            ('Download files directly from results', State.SELECTING_RECORDS),
            ('View file tree of a specific record', State.SELECTING_FILES),
        ]
        if is_domain(self.query):
            actions.append(('Generate combolist (username:password) for this domain', State.GENERATING_COMBOLIST))
        choice = ask_menu('What would you like to do?', [name for name, _ in actions])
        if choice is None:
            return State.MAIN_MENU
        target = actions[choice][1]
        if target is State.PREVIEWING_PAGE:
            self.page = 0
            self.last_move = None
            self.pager = PreviewPager(lambda r: client.file_preview(r.storageid, r.bucket), self.records)
        return target

    def previewing_page(self) -> State:
        record = self.records[self.page]
        total = len(self.records)
        columns, rows = self.terminal_size()
        layout = preview_layout(rows)

        console.clear()
        console.print(f'\n[bold cyan]File Preview ({self.page + 1}/{total})[/bold cyan]\n')
        console.print(f'File: [bold yellow]{escape(record.file_name)}[/bold yellow]')
        console.print(f'Date: [bright_black]{record.date_label}[/bright_black] | '
                      f'Size: [bright_black]{record.size_label}[/bright_black] | '
                      f'Bucket: [bright_black]{escape(record.bucket_label)}[/bright_black]\n')
        try:
            if not self.pager.is_cached(self.page):
                console.print('[cyan]Loading file content...[/cyan]')
            content = self.pager.get(self.page)
            matches = find_context(content, self.query, layout.context_lines)
            print_ansi(format_preview(matches, self.query, layout.max_matches, columns))
        except IntelXError as e:
            console.print(f'[red]Error loading preview: {escape(str(e))}[/red]')

        self.pager.prefetch(self.page + 1)

        choices: List[Tuple[str, str]] = []
        if self.page < total - 1:
            choices.append(('Next →', 'next'))
        if self.page > 0:
            choices.append(('← Previous', 'prev'))
        choices.append(('Download this file', 'download'))
        choices.append(('Back to menu', 'back'))
        values = [v for _, v in choices]
        default = values.index(self.last_move) if self.last_move in values else 0

        choice = ask_menu('What would you like to do?', [n for n, _ in choices], allow_back=False, default=default)
        action = values[choice]
        if action in ('next', 'prev'):
            self.last_move = action
            self.page += 1 if action == 'next' else -1
        elif action == 'download':
            self.download_one(record)
        elif action == 'back':
            console.clear()
            return State.MAIN_MENU
        return State.PREVIEWING_PAGE

    def download_one(self, record: SearchRecord) -> None:
        console.print(f'\n[cyan]Downloading: {escape(record.file_name)}...[/cyan]')
        try:
            data = self.client.download(record.systemid, record.bucket)
            path = os.path.join(os.getcwd(), record.file_name)
            with open(path, 'wb') as fh:
                fh.write(data)
        except (IntelXError, OSError) as e:
            log(f'Download of {record.systemid} failed: {e}')
            console.print(f'[red]✗ Error: {escape(str(e))}[/red]')
            return
        console.print(f'[green]✓ Downloaded to [bold cyan]{escape(path)}[/bold cyan][/green]')
        Prompt.ask('[bright_black]Press Enter to continue[/bright_black]', default='',
                   show_default=False, console=console)

    def selecting_records(self) -> State:
        picked = ask_selection('Select files to download', record_labels(self.records))
        if not picked:
            console.print('[yellow]No files selected[/yellow]')
            return State.MAIN_MENU
        items = []
        for idx in picked:
            rec = self.records[idx]
            name = rec.file_name if rec.name else f'file_{rec.systemid}.txt'
            items.append((name, rec.systemid, rec.bucket))
        self.download_all(items)
        return State.MAIN_MENU

    def selecting_files(self) -> State:
        if len(self.records) == 1:
            record = self.records[0]
        else:
            choice = ask_menu('Select a record to view its file tree:', record_labels(self.records))
            if choice is None:
                return State.MAIN_MENU
            record = self.records[choice]

        if not record.indexfile or not record.bucket:
            console.print('[red]✗ Missing indexfile or bucket in results[/red]')
            return State.MAIN_MENU
        console.print(f'[green]✓ Found: [bold white]{escape(record.file_name)}[/bold white][/green]')

        console.print('[cyan]Fetching file tree...[/cyan]')
        files = parse_file_tree(self.client.file_tree(record.indexfile, record.bucket))
        if not files:
            console.print('[red]✗ No files found in tree[/red]')
            return State.MAIN_MENU
        console.print(f'[green]✓ Found [bold yellow]{len(files)}[/bold yellow] files[/green]\n')

        picked = ask_selection('Select files to download', [f.relative_path or f.file_name for f in files])
        if not picked:
            console.print('[yellow]No files selected[/yellow]')
            return State.MAIN_MENU
        self.download_all([(files[i].relative_path or files[i].file_name, files[i].did, record.bucket)
                           for i in picked])
        return State.MAIN_MENU

    def generating_combolist(self) -> State:
        domain = strip_domain(self.query)
        total = len(self.records)
        if not Confirm.ask(f'Scan {total} record(s) for {escape(domain)} credentials?', default=True,
                           console=console):
            return State.MAIN_MENU

        def progress(i, record):
            console.print(f'[{i + 1}/{total}] Scanning: [cyan]{escape(record.file_name)}[/cyan]')

        result = build_combolist(self.client, self.records, domain, progress=progress)
        if result.aborted:
            return State.MAIN_MENU
        summary = f'Processed {result.processed}/{total} record(s)'
        if result.failed:
            summary += f', {result.failed} failed'
        if result.stopped_early:
            summary += ', stopped early (credits exhausted)'
        console.print(f'\n[cyan]{summary}[/cyan]')
        if not result.credentials:
            console.print(f'[yellow]No credentials found for {escape(domain)}[/yellow]')
            return State.MAIN_MENU
        path = write_combolist(result.credentials, domain)
        log(f'Combolist for {domain}: {len(result.credentials)} credential(s) -> {path}')
        console.print(f'[green]✓ Saved [bold yellow]{len(result.credentials)}[/bold yellow] unique '
                      f'credential(s) to [bold cyan]{escape(path)}[/bold cyan][/green]')
        return State.MAIN_MENU
