"""Walk a directory and fingerprint every file by SHA-1 of its contents.

The forward map (remote path -> digest) is what the deploy announces; the reverse
map (digest -> file) resolves the digests the API later asks us to upload. Two
files with identical content share a digest; the reverse map keeps one of them,
which is enough because Netlify stores uploads by digest.
"""

import hashlib
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Union

from netlifydeploy.errors import FingerprintError

log = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class FileEntry:
    """One local file: remote path ("/a/b.html"), absolute filesystem path, sha1 hex."""

    path: str
    real_path: Path
    digest: str


@dataclass
class FingerprintIndex:
    by_path: Dict[str, str] = field(default_factory=dict)
    by_digest: Dict[str, FileEntry] = field(default_factory=dict)

    def add(self, entry: FileEntry) -> None:
        self.by_path[entry.path] = entry.digest
        # First file seen with this content stays the representative
        self.by_digest.setdefault(entry.digest, entry)

    def __len__(self) -> int:
        return len(self.by_path)


def sha1_file(path: Union[str, Path]) -> str:
    """Lowercase hex SHA-1 of the file, read in chunks."""
    h = hashlib.sha1()
    try:
        with open(path, "rb") as f:
            while True:
                chunk = f.read(CHUNK_SIZE)
                if not chunk:
                    break
                h.update(chunk)
    except OSError as e:
        raise FingerprintError(str(path), str(e)) from e
    return h.hexdigest()


def remote_path(root: Path, file_path: Path) -> str:
    """Remote key for file_path: "/" + path relative to root, forward slashes."""
    rel = file_path.relative_to(root)
    return "/" + "/".join(rel.parts)


def walk(root: Union[str, Path]) -> FingerprintIndex:
    """
    Fingerprint every file under root. Directories are descended (symlinked
    directories are not followed); hidden files are included; only regular
    files (or links to them) are hashed. Any unreadable directory or file
    fails the whole walk with FingerprintError.
    """
    root = Path(root).absolute()
    if not root.is_dir():
        raise FingerprintError(str(root), "not a directory")

    def _raise(err: OSError) -> None:
        raise FingerprintError(err.filename or str(root), err.strerror or str(err)) from err

    index = FingerprintIndex()
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
        for name in filenames:
            full = Path(dirpath) / name
            if not full.is_file():
                # FIFOs, sockets, devices and dangling links
                log.debug("Skipping non-regular file %s", full)
                continue
            entry = FileEntry(path=remote_path(root, full), real_path=full, digest=sha1_file(full))
            index.add(entry)
            log.debug("Fingerprinted %s %s", entry.digest, entry.path)
    log.info("Fingerprinted %d files (%d unique) under %s", len(index.by_path), len(index.by_digest), root)
    return index
