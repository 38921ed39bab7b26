"""
Combolist generation: pull username:password pairs for a domain out of
previewed leak files and write them to a flat text file.

Two line shapes are recognised:

    example.com/login:user:pass
    https://example.com/login|user|pass

Everything is matched case-insensitively against the literal domain.
"""
from __future__ import annotations
import os
import re
from typing import Callable, Iterable, List, Optional, Set

from intelx_cli.client import PREVIEW_PATH, IntelXError, is_quota_exhausted
from intelx_cli.config import log
from intelx_cli.display import console
from intelx_cli.models import SearchRecord

PROTOCOL_RE = re.compile(r'^https?://', re.IGNORECASE)
DOMAIN_RE = re.compile(r'^[a-z0-9]+([\-.][a-z0-9]+)*\.[a-z]{2,}$', re.IGNORECASE)


def strip_domain(query: str) -> str:
    """``https://Example.com/login`` -> ``Example.com``"""
    query = PROTOCOL_RE.sub('', (query or '').strip())
    return query.split('/', 1)[0].strip()


def is_domain(query: str) -> bool:
    return bool(DOMAIN_RE.match(strip_domain(query)))


def credential_patterns(domain: str):
    d = re.escape(domain)
    colon = re.compile(d + r'(?:/[^:\s]*)?:([^:\s]+):([^:\s]+)', re.IGNORECASE)
    pipe = re.compile(r'(?:https?://)?' + d + r'(?:/[^|\s]*)?\|([^|\s]+)\|([^|\s]+)', re.IGNORECASE)
    return colon, pipe


def extract_credentials(text: str, domain: str) -> Set[str]:
    found: Set[str] = set()
    if not text or not domain:
        return found
    for pattern in credential_patterns(domain):
        for m in pattern.finditer(text):
            user, password = m.group(1).strip(), m.group(2).strip()
            if user and password:
                found.add(f'{user}:{password}')
    return found


def combolist_filename(domain: str) -> str:
    safe = re.sub(r'[^A-Za-z0-9._-]', '_', domain)
    return f'combolist_{safe}.txt'


def write_combolist(credentials: Iterable[str], domain: str, directory: str = '.') -> str:
    """Write sorted unique credentials one per line; returns the file path."""
    path = os.path.join(directory, combolist_filename(domain))
    lines = sorted(set(credentials))
    with open(path, 'w', encoding='utf-8') as fh:
        for line in lines:
            fh.write(line + '\n')
    return path


class CombolistResult:
    def __init__(self, total: int):
        self.total = total
        self.processed = 0
        self.failed = 0
        self.aborted = False
        self.stopped_early = False
        self.credentials: List[str] = []

    @property
    def completed(self) -> int:
        return self.processed + self.failed


def build_combolist(client, records: List[SearchRecord], domain: str,
                    progress: Optional[Callable[[int, SearchRecord], None]] = None) -> CombolistResult:
    """Fetch every record's preview text and collect credentials for ``domain``.

    Stops at the first failure that looks like exhausted credits; any other
    failed record is counted and skipped.
    """
    result = CombolistResult(len(records))
    limits = client.limits()
    credits = limits.get_remaining_credits(PREVIEW_PATH)
    if credits <= 0:
        console.print(f'[red]✗ No credits left for {PREVIEW_PATH} '
                      f'(reset in {limits.get_credit_reset(PREVIEW_PATH)}h). Nothing was processed.[/red]')
        result.aborted = True
        return result
    if credits < len(records):
        console.print(f'[yellow]Only {credits} preview credit(s) left for {len(records)} record(s); '
                      f'the scan may stop early.[/yellow]')

    found: Set[str] = set()
    for i, record in enumerate(records):
        if progress:
            progress(i, record)
        try:
            text = client.file_preview(record.storageid, record.bucket)
        except IntelXError as e:
            if is_quota_exhausted(e):
                log(f'Combolist stopped after {result.processed} record(s): {e}')
                console.print(f'[red]✗ Credits exhausted after {result.processed} of {len(records)} record(s): {e}[/red]')
                result.stopped_early = True
                break
            log(f'Combolist skipped {record.systemid}: {e}')
            result.failed += 1
            continue
        found |= extract_credentials(text, domain)
        result.processed += 1

    result.credentials = sorted(found)
    return result
