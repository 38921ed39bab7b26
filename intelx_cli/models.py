from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional


class MatchWindow(NamedTuple):
    """Lines around one matching line; ``match_index`` points into ``context``."""
    line_number: int
    context: List[str]
    match_index: int

    def numbered(self):
        """Yield ``(line_number, line, is_match)`` for every context line."""
        first = self.line_number - self.match_index
        for i, line in enumerate(self.context):
            yield first + i, line, i == self.match_index


class TreeFile(NamedTuple):
    did: str
    full_path: str
    file_name: str
    relative_path: str


class SearchRecord:
    """Represents a search result record from the Intelligence X API"""
    def __init__(self, data: Dict[str, Any]):
        self.raw = data
        self.systemid = data.get("systemid", "")
        self.storageid = data.get("storageid", "")
        self.name = data.get("name", "")
        self.date = data.get("date", "")
        self.size = data.get("size", 0)
        self.bucket = data.get("bucket", "")
        self.bucketh = data.get("bucketh", "")
        self.indexfile = data.get("indexfile", "")
        self.media = data.get("media", 0)

    def __repr__(self):
        return f"SearchRecord(systemid={self.systemid!r}, name={self.name!r})"

    @property
    def file_name(self) -> str:
        if not self.name:
            return "Unknown"
        return self.name.rstrip("/").split("/")[-1] or "Unknown"

    @property
    def date_label(self) -> str:
        if not self.date:
            return "Unknown date"
        try:
            return datetime.fromisoformat(self.date.replace("Z", "+00:00")).strftime("%Y-%m-%d")
        except ValueError:
            return self.date[:10]

    @property
    def size_label(self) -> str:
        if not self.size:
            return "Unknown size"
        return f"{self.size / 1024 / 1024:.2f} MB"

    @property
    def bucket_label(self) -> str:
        return self.bucketh or self.bucket or "Unknown bucket"


class AccountInfo:
    """Credits and limits as returned by /authenticate/info"""
    def __init__(self, data: Dict[str, Any]):
        self.buckets = data.get("buckets", []) or []
        self.redacted = data.get("redacted", []) or []
        self.paths = data.get("paths", {}) or {}
        self.searchesactive = data.get("searchesactive", 0)
        self.maxconcurrentsearches = data.get("maxconcurrentsearches", 0)

    def _path(self, path: str) -> Optional[Dict[str, Any]]:
        info = self.paths.get(path)
        return info if isinstance(info, dict) else None

    def get_remaining_credits(self, path: str) -> int:
        """Get remaining credits for a path"""
        info = self._path(path)
        return int(info.get("Credit") or 0) if info else 0

    def get_max_credits(self, path: str) -> int:
        info = self._path(path)
        return int(info.get("CreditMax") or 0) if info else 0

    def get_credit_reset(self, path: str) -> int:
        """Hours until the credits for a path are reset"""
        info = self._path(path)
        return int(info.get("CreditReset") or 0) if info else 0

    def credit_paths(self):
        """Endpoints that carry a credit allowance, in API order."""
        return [p for p in self.paths if self.get_max_credits(p) > 0]

    def get_active_searches_info(self) -> str:
        return f"{self.searchesactive}/{self.maxconcurrentsearches}"
