"""Document loading and ``$ref`` resolution with caching support."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import requests
import yaml
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import ReferenceResolutionError, SchemaError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Immutable cache key for document files."""

    path: Path
    mtime: float
    size: int

    @classmethod
    def from_path(cls, path: Path) -> CacheKey:
        """Create a cache key from a file path."""
        stat = path.stat()
        return cls(
            path=path.resolve(),
            mtime=stat.st_mtime,
            size=stat.st_size,
        )


@dataclass
class CachedDocument:
    """A cached document with metadata."""

    data: dict[str, Any]
    key: CacheKey
    content_hash: str


class DocumentCache:
    """Document cache with automatic invalidation.

    Caches parsed files and invalidates an entry when the underlying file
    changes (based on mtime and size).
    """

    __slots__ = ("_cache", "_max_size")

    def __init__(self, max_size: int = 100) -> None:
        self._cache: dict[Path, CachedDocument] = {}
        self._max_size = max_size

    def get(self, path: Path) -> dict[str, Any]:
        """Get a document from cache, loading it if necessary.

        Raises:
            SchemaError: If the document is invalid.
        """
        resolved = path.resolve()
        current_key = CacheKey.from_path(resolved)

        cached = self._cache.get(resolved)
        if cached is not None and cached.key == current_key:
            return cached.data

        data = load_document(resolved)
        content_hash = hashlib.sha256(resolved.read_bytes()).hexdigest()[:16]

        if len(self._cache) >= self._max_size:
            oldest = next(iter(self._cache))
            del self._cache[oldest]

        self._cache[resolved] = CachedDocument(
            data=data,
            key=current_key,
            content_hash=content_hash,
        )
        return data

    def invalidate(self, path: Path | None = None) -> None:
        """Invalidate cached documents.

        Args:
            path: Specific path to invalidate, or None to clear all.
        """
        if path is None:
            self._cache.clear()
        else:
            self._cache.pop(path.resolve(), None)

    def __len__(self) -> int:
        return len(self._cache)


def parse_document(contents: str | bytes, source: str | None = None) -> dict[str, Any]:
    """Parse YAML or JSON document contents into a mapping.

    Raises:
        SchemaError: If the contents cannot be parsed or are not a mapping.
    """
    if isinstance(contents, bytes):
        contents = contents.decode("utf-8")
    try:
        data = yaml.safe_load(contents)
    except yaml.YAMLError as e:
        raise SchemaError(f"Invalid YAML: {e}", source) from e

    if not isinstance(data, dict):
        raise SchemaError("Document root must be a mapping", source)
    return data


def load_document(path: Path) -> dict[str, Any]:
    """Load a YAML or JSON document from disk.

    Raises:
        SchemaError: If the file cannot be read or parsed.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SchemaError(f"Failed to read document: {e}", str(path)) from e

    if path.suffix.lower() == ".json":
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise SchemaError(f"Invalid JSON: {e}", str(path)) from e
        if not isinstance(data, dict):
            raise SchemaError("Document root must be a mapping", str(path))
        return data

    return parse_document(content, str(path))


def _unescape_pointer_token(token: str) -> str:
    return unquote(token).replace("~1", "/").replace("~0", "~")


def resolve_pointer(document: dict[str, Any], fragment: str, ref: str) -> Any:
    """Resolve a JSON pointer fragment (``/components/schemas/X``) in ``document``."""
    node: Any = document
    for token in fragment.lstrip("/").split("/"):
        if not token:
            continue
        key = _unescape_pointer_token(token)
        if isinstance(node, dict) and key in node:
            node = node[key]
        elif isinstance(node, list) and key.isdigit() and int(key) < len(node):
            node = node[int(key)]
        else:
            raise ReferenceResolutionError(ref, reason=f"'{key}' not found")
    return node


class RefResolver:
    """Resolves local and external ``$ref`` values for one generation run.

    Supports:
      - local refs: ``#/components/schemas/Name``
      - relative file refs: ``models.yaml#/components/schemas/Name``
      - ``file://`` URLs
      - ``http(s)://`` URLs, fetched with retries

    Every node is resolved relative to a *base*: ``""`` for the root
    document, otherwise the absolute location of the external document the
    node was loaded from.
    """

    def __init__(
        self,
        document: dict[str, Any],
        base_path: Path | None = None,
        cache: DocumentCache | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.document = document
        self.base_path = base_path
        self._cache = cache or DocumentCache()
        self._session = session
        self._remote: dict[str, dict[str, Any]] = {}

    def split(self, ref: str, base: str = "") -> tuple[str, str]:
        """Return ``(document_location, fragment)`` for ``ref`` seen from ``base``."""
        location, _, fragment = ref.partition("#")
        if not location:
            return base, fragment
        if location.startswith(("http://", "https://", "file://")):
            return location, fragment
        if base.startswith(("http://", "https://")):
            return base.rsplit("/", 1)[0] + "/" + location, fragment
        if base:
            parent = Path(base).parent
        elif self.base_path is not None:
            parent = self.base_path.parent if self.base_path.suffix else self.base_path
        else:
            parent = Path.cwd()
        return str((parent / location).resolve()), fragment

    def canonical(self, ref: str, base: str = "") -> str:
        """Return a run-unique key for ``ref``; local refs of the root document stay as-is."""
        location, fragment = self.split(ref, base)
        if not location:
            return f"#{fragment}"
        return f"{location}#{fragment}"

    def resolve(self, ref: str, base: str = "") -> tuple[Any, str]:
        """Resolve ``ref`` and return ``(node, base_of_node)``.

        Raises:
            ReferenceResolutionError: If the target cannot be found or loaded.
        """
        location, fragment = self.split(ref, base)
        document = self.document if not location else self._load(location, ref)
        return resolve_pointer(document, fragment, ref), location

    def _load(self, location: str, ref: str) -> dict[str, Any]:
        if location.startswith(("http://", "https://")):
            return self._fetch_remote(location, ref)
        if location.startswith("file://"):
            parsed = urlparse(location)
            path_str = url2pathname(parsed.path or "")
            if parsed.netloc and not path_str.startswith(parsed.netloc):
                path_str = parsed.netloc + path_str
            path = Path(path_str)
        else:
            path = Path(location)
        try:
            return self._cache.get(path)
        except FileNotFoundError as e:
            raise ReferenceResolutionError(ref, reason=f"file '{path}' does not exist") from e
        except SchemaError as e:
            raise ReferenceResolutionError(ref, reason=e.message) from e

    def _fetch_remote(self, url: str, ref: str) -> dict[str, Any]:
        if url in self._remote:
            return self._remote[url]

        if self._session is None:
            session = requests.Session()
            retries = Retry(total=3, backoff_factor=0.5, status_forcelist=(500, 502, 503, 504))
            adapter = HTTPAdapter(max_retries=retries)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
            self._session = session

        logger.debug("Fetching remote document %s", url)
        try:
            resp = self._session.get(url, timeout=5)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ReferenceResolutionError(ref, reason=str(e)) from e

        try:
            data = parse_document(resp.text, url)
        except SchemaError as e:
            raise ReferenceResolutionError(ref, reason=e.message) from e

        self._remote[url] = data
        return data
