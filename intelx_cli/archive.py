from __future__ import annotations
import os
import zipfile
from typing import Iterable, Tuple


def write_zip(entries: Iterable[Tuple[str, bytes]], output_path: str) -> int:
    """Write ``(relative path, data)`` pairs into a deflated zip archive.

    Returns the number of entries written. Duplicate paths get a numeric
    suffix so no entry is silently replaced.
    """
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    used = set()
    count = 0
    with zipfile.ZipFile(output_path, 'w', compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
        for name, data in entries:
            name = (name or 'file').lstrip('/')
            unique = name
            n = 1
            while unique in used:
                root, ext = os.path.splitext(name)
                unique = f'{root}_{n}{ext}'
                n += 1
            used.add(unique)
            zf.writestr(unique, data)
            count += 1
    return count
