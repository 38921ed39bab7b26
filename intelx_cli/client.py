"""Thin wrapper around the Intelligence X HTTP API."""
from __future__ import annotations
import re
import time
from typing import Any, Dict, List, Optional

import requests

from intelx_cli.config import DEFAULT_BASE_URL, log
from intelx_cli.models import AccountInfo, SearchRecord

USER_AGENT = 'Mozilla/5.0 (X11; Linux x86_64; rv:144.0) Gecko/20100101 Firefox/144.0'

PREVIEW_PATH = '/file/view'
QUOTA_STATUS_CODES = (402, 429)
QUOTA_MARKER_RE = re.compile(r'\b(?:credits?|quota|rate[- ]limit(?:ed)?|limit (?:reached|exceeded))\b',
                             re.IGNORECASE)
REDACTED = '<api key>'

# /intelligent/search/result status values
RESULTS_READY = 0
RESULTS_DONE = 1
RESULTS_PENDING = 3


class IntelXError(Exception):
    """A failed API call.

    ``reason`` holds only what the API itself says went wrong (HTTP reason
    phrase and the JSON ``error`` field), never the raw response body.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.reason = reason

    def __str__(self):
        if self.status_code:
            return f'{self.message} ({self.status_code})'
        return self.message


def is_quota_exhausted(error: Exception) -> bool:
    """Guess from a failed request whether the account ran out of credits."""
    status = getattr(error, 'status_code', None)
    if status in QUOTA_STATUS_CODES:
        return True
    text = getattr(error, 'reason', None)
    if text is None and status is None:
        text = str(error)
    return bool(text and QUOTA_MARKER_RE.search(text))


def error_reason(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    error = data.get('error') if isinstance(data, dict) else None
    return ' '.join(str(p) for p in (resp.reason, error) if p)


class IntelXClient:
    def __init__(self, apikey: str, base_url: str = DEFAULT_BASE_URL, timeout: int = 30,
                 poll_attempts: int = 10, poll_delay: float = 1.0):
        if not apikey:
            raise ValueError('API key required')
        self.apikey = apikey
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.poll_attempts = poll_attempts
        self.poll_delay = poll_delay
        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': USER_AGENT,
            'Accept': '*/*',
            'x-key': self.apikey,
            'Cache-Control': 'no-cache',
        })

    def _redact(self, text: str) -> str:
        return text.replace(self.apikey, REDACTED)

    def _request(self, path: str, method: str = 'GET', params: Dict[str, Any] = None,
                 json_data: Dict[str, Any] = None, what: str = 'Request') -> requests.Response:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            if method.upper() == 'GET':
                resp = self.session.get(url, params=params, timeout=self.timeout)
            else:
                resp = self.session.post(url, json=json_data, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            detail = self._redact(str(e))
            log(f'HTTP request error to {url}: {detail}')
            raise IntelXError(f'{what} failed: {detail}', reason='') from e
        if not resp.ok:
            snippet = self._redact((resp.text or '')[:200])
            log(f'{what} failed: {resp.status_code} {url} {snippet}')
            detail = ' '.join(p for p in (resp.reason, snippet) if p)
            raise IntelXError(f'{what} failed: {detail or "HTTP error"}', resp.status_code,
                              reason=error_reason(resp))
        return resp

    def _json(self, resp: requests.Response, what: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise IntelXError(f'{what} response parse failed: {resp.text[:200]}', resp.status_code) from e

    def search(self, term: str, maxresults: int = 1000) -> str:
        """Submit a search and return its id."""
        payload = {
            'term': term,
            'lookuplevel': 0,
            'maxresults': maxresults,
            'timeout': None,
            'datefrom': '',
            'dateto': '',
            'sort': 2,
            'media': 0,
            'terminate': [],
        }
        resp = self._request('/intelligent/search', method='POST', json_data=payload, what='Search')
        data = self._json(resp, 'Search')
        search_id = data.get('id') if isinstance(data, dict) else None
        if not search_id:
            raise IntelXError('Search failed: no search id returned', resp.status_code)
        return search_id

    def search_results(self, search_id: str, limit: int = 1000) -> List[SearchRecord]:
        params = {'id': search_id, 'limit': limit, 'statistics': 1, 'previewlines': 8}
        records: List[Dict[str, Any]] = []
        for attempt in range(max(1, self.poll_attempts)):
            resp = self._request('/intelligent/search/result', params=params, what='Get results')
            data = self._json(resp, 'Get results') or {}
            records = data.get('records') or []
            if data.get('status') != RESULTS_PENDING or records:
                break
            log(f'Results for {search_id} not ready (attempt {attempt + 1})')
            time.sleep(self.poll_delay)
        return [SearchRecord(r) for r in records[:limit]]

    def find(self, term: str, limit: int = 1000) -> List[SearchRecord]:
        return self.search_results(self.search(term), limit=limit)

    def _file_view(self, fmt: int, storageid: str, bucket: str, what: str) -> str:
        params = {
            'f': fmt,
            'storageid': storageid,
            'bucket': bucket,
            'license': 'researcher',
        }
        return self._request(PREVIEW_PATH, params=params, what=what).text

    def file_preview(self, storageid: str, bucket: str) -> str:
        return self._file_view(0, storageid, bucket, 'Get file preview')

    def file_tree(self, indexfile: str, bucket: str) -> str:
        return self._file_view(12, indexfile, bucket, 'Get file tree')

    def download(self, systemid: str, bucket: str) -> bytes:
        params = {'type': 1, 'systemid': systemid, 'bucket': bucket}
        return self._request('/file/read', params=params, what='Download').content

    def limits(self) -> AccountInfo:
        resp = self._request('/authenticate/info', what='Get API limits')
        data = self._json(resp, 'Get API limits')
        return AccountInfo(data if isinstance(data, dict) else {})
