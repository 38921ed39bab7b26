"""Parse the HTML file listing returned by /file/view?f=12."""
from __future__ import annotations
import re
from html.parser import HTMLParser
from typing import Dict, List, Optional

from intelx_cli.models import TreeFile

DID_PREFIX = '/?did='

# Older listings only carry ``title``; newer ones put the full path in
# ``data-original-title`` (bootstrap tooltips). The link text is the last
# resort.
TITLE_ATTRIBUTES = ('data-original-title', 'title')

FIRST_SEGMENT_RE = re.compile(r'^[^/]+/')


class FileTreeParser(HTMLParser):
    """Collect ``<a href="/?did=...">`` links in document order."""

    def __init__(self):
        HTMLParser.__init__(self, convert_charrefs=True)
        self.links: List[Dict[str, str]] = []
        self._current: Optional[Dict[str, str]] = None

    def handle_starttag(self, tag, attrs):
        if tag != 'a':
            return
        attrs = dict(attrs)
        href = attrs.get('href') or ''
        if not href.startswith(DID_PREFIX):
            return
        title = ''
        for name in TITLE_ATTRIBUTES:
            if attrs.get(name):
                title = attrs[name]
                break
        self._current = {'did': href[len(DID_PREFIX):], 'title': title, 'text': ''}

    def handle_data(self, data):
        if self._current is not None:
            self._current['text'] += data

    def handle_endtag(self, tag):
        if tag == 'a' and self._current is not None:
            self.links.append(self._current)
            self._current = None


def parse_file_tree(html: str) -> List[TreeFile]:
    parser = FileTreeParser()
    parser.feed(html or '')
    parser.close()

    files: List[TreeFile] = []
    seen = set()
    for link in parser.links:
        did = link['did']
        if not did or did in seen:
            continue
        text = link['text'].strip()
        full_path = link['title'] or text
        if not full_path:
            continue
        seen.add(did)
        files.append(TreeFile(
            did=did,
            full_path=full_path,
            file_name=text or full_path,
            relative_path=FIRST_SEGMENT_RE.sub('', full_path, count=1),
        ))
    return files
