"""
librarian/client.py
===================
Async wrapper around the Librarian HTTP API.

Supports:
- POST /chat                          (answer a prompt using indexed books)
- POST /search                        (top-K chunk matches for a query)
- GET  /books                         (list indexed books)
- GET  /books/:id/download            (download by book ID)
- GET  /books/by-filename/:f/download (download by filename)
- POST /upload                        (multipart PDF upload)

Every request carries ``Authorization: Bearer <key>`` when an API key is
configured.  Failures surface as :class:`LibrarianError`.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

import aiohttp

from utils.logger import get_logger

log = get_logger(__name__)

# content-disposition: attachment; filename="file name.pdf"
_CD_FILENAME = re.compile(r"""filename\*?=(?:UTF-8''|")?([^";]+)"?""", re.IGNORECASE)


class LibrarianError(Exception):
    """Raised when the Librarian API returns an error or is unreachable."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


@dataclass(frozen=True)
class Download:
    """A downloaded book file."""

    filename: str
    data: bytes


def filename_from_content_disposition(header: Optional[str]) -> Optional[str]:
    """Pull the filename out of a Content-Disposition header, if there is one."""
    if not header:
        return None
    match = _CD_FILENAME.search(header)
    if not match:
        return None
    return unquote(match.group(1))


class LibrarianClient:
    """Lightweight async client for the Librarian REST API.

    Parameters
    ----------
    base_url:
        Base URL of the Librarian server, e.g. ``http://localhost:3000``.
    api_key:
        Optional bearer token.
    timeout:
        Request timeout in seconds.
    """

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: int = 120) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    # ── Session lifecycle ────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Return (or create) the shared aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session (call on shutdown)."""
        if self._session and not self._session.closed:
            await self._session.close()
            log.debug("Librarian HTTP session closed.")

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    # ── Error helpers ────────────────────────────────────────────────────────

    @staticmethod
    async def _error_from(resp: aiohttp.ClientResponse) -> LibrarianError:
        """Build an error from a non-2xx response, preferring the server's message."""
        message = f"HTTP {resp.status}"
        try:
            data = await resp.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            data = None
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                message = str(error["message"])
        return LibrarianError(message, status=resp.status)

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        log.debug("POST %s", url)
        try:
            session = await self._get_session()
            async with session.post(url, json=payload, headers=self._headers()) as resp:
                if resp.status >= 400:
                    raise await self._error_from(resp)
                data = await resp.json(content_type=None)
        except LibrarianError:
            raise
        except aiohttp.ClientConnectorError as exc:
            raise LibrarianError(f"Cannot connect to Librarian at {self.base_url}.") from exc
        except aiohttp.ServerTimeoutError as exc:
            raise LibrarianError(f"Librarian timed out after {self.timeout.total}s.") from exc
        except (aiohttp.ClientError, ValueError) as exc:
            raise LibrarianError(f"Unexpected error calling Librarian: {exc}") from exc

        if not isinstance(data, dict):
            raise LibrarianError(f"Unexpected response from {path}: {data!r:.200}")
        error = data.get("error")
        if isinstance(error, dict):
            raise LibrarianError(str(error.get("message") or "unknown error"))
        return data

    # ── Chat / search ────────────────────────────────────────────────────────

    async def chat(self, prompt: str, top_k: int = 8, temperature: float = 1) -> Dict[str, Any]:
        """Ask a question; returns the decoded ``{answer, sources, used_topK}`` body."""
        payload = {
            "messages": [{"role": "user", "content": prompt}],
            "topK": top_k,
            "temperature": temperature,
        }
        return await self._post_json("/chat", payload)

    async def search(self, query: str, top_k: int = 5) -> Dict[str, Any]:
        """Search the library; returns the decoded ``{query, topK, matches}`` body."""
        return await self._post_json("/search", {"query": query, "topK": top_k})

    # ── Books ────────────────────────────────────────────────────────────────

    async def list_books(self) -> List[Dict[str, Any]]:
        """Return the ``items`` list from GET /books."""
        url = f"{self.base_url}/books"
        try:
            session = await self._get_session()
            async with session.get(url, headers=self._headers()) as resp:
                if resp.status >= 400:
                    raise LibrarianError(f"could not list books (HTTP {resp.status})", status=resp.status)
                data = await resp.json(content_type=None)
        except LibrarianError:
            raise
        except (aiohttp.ClientError, ValueError) as exc:
            raise LibrarianError(f"could not list books: {exc}") from exc

        items = data.get("items") if isinstance(data, dict) else None
        return items if isinstance(items, list) else []

    async def _download(self, url: str, fallback_name: str) -> Download:
        log.debug("GET %s", url)
        try:
            session = await self._get_session()
            async with session.get(url, headers=self._headers()) as resp:
                if resp.status >= 400:
                    raise await self._error_from(resp)
                body = await resp.read()
                name = filename_from_content_disposition(resp.headers.get("Content-Disposition"))
        except LibrarianError:
            raise
        except aiohttp.ClientError as exc:
            raise LibrarianError(str(exc)) from exc
        return Download(filename=name or fallback_name, data=body)

    async def download_by_filename(self, filename: str) -> Download:
        url = f"{self.base_url}/books/by-filename/{quote(filename, safe='')}/download"
        return await self._download(url, filename)

    async def download_by_id(self, book_id: str, fallback_name: Optional[str] = None) -> Download:
        url = f"{self.base_url}/books/{quote(str(book_id), safe='')}/download"
        return await self._download(url, fallback_name or f"{book_id}.bin")

    # ── Upload ───────────────────────────────────────────────────────────────

    async def upload_pdf(self, filename: str, data: bytes) -> Dict[str, Any]:
        """POST a PDF as multipart ``file``; returns the decoded status body.

        The backend reports per-file failures in the body (``success: false``)
        rather than with an error status, so the body is returned as-is.
        """
        url = f"{self.base_url}/upload"
        form = aiohttp.FormData()
        form.add_field("file", data, filename=filename, content_type="application/pdf")

        log.info("Uploading %s to %s", filename, url)
        try:
            session = await self._get_session()
            async with session.post(url, data=form, headers=self._headers()) as resp:
                payload = await resp.json(content_type=None)
                status = resp.status
        except (aiohttp.ClientError, ValueError) as exc:
            raise LibrarianError(f"Upload failed: {exc}") from exc

        if not isinstance(payload, dict):
            raise LibrarianError(f"Unexpected response from /upload (HTTP {status})", status=status)
        return payload
