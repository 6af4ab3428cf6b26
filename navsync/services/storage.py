from __future__ import annotations

import base64
import hashlib
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx

from navsync.errors import StaleVersionError, UpstreamError


@dataclass(frozen=True)
class StoredDocument:
    text: str
    version: str | None


class StoreBackend(Protocol):
    def read(self, path: str) -> StoredDocument | None: ...

    def write(self, path: str, text: str, version: str | None = None) -> str: ...

    def list_names(self, directory: str) -> set[str]: ...

    def write_bytes(self, path: str, data: bytes) -> None: ...


class BookmarkSource(Protocol):
    def fetch(self) -> str: ...


def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class LocalDirectoryStore:
    """Store backend over a plain directory.

    The version token is the sha256 of the file bytes, so a write fails when
    the file changed (or appeared) since it was read.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, path: str) -> Path:
        return self.root / path.lstrip("/")

    def read(self, path: str) -> StoredDocument | None:
        target = self._path(path)
        if not target.is_file():
            return None
        data = target.read_bytes()
        return StoredDocument(text=data.decode("utf-8"), version=_digest(data))

    def write(self, path: str, text: str, version: str | None = None) -> str:
        target = self._path(path)
        current = _digest(target.read_bytes()) if target.is_file() else None
        if current != version:
            raise StaleVersionError(f"{path} changed since it was read")

        data = text.encode("utf-8")
        self._atomic_write(target, data)
        return _digest(data)

    def list_names(self, directory: str) -> set[str]:
        target = self._path(directory)
        if not target.is_dir():
            return set()
        return {entry.name for entry in target.iterdir() if entry.is_file()}

    def write_bytes(self, path: str, data: bytes) -> None:
        self._atomic_write(self._path(path), data)

    def _atomic_write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".navsync-")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, target)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class GitHubContentsStore:
    """Store backend over the GitHub repository contents API.

    The version token is the blob sha returned by the API; GitHub rejects a
    PUT carrying a stale sha with 409 (or 422 when the file appeared).
    """

    def __init__(
        self,
        repo: str,
        token: str | None = None,
        branch: str = "main",
        api_url: str = "https://api.github.com",
        timeout: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.repo = repo
        self.token = token
        self.branch = branch
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "navsync",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.Client(
            base_url=self.api_url,
            timeout=self.timeout,
            headers=headers,
            transport=self.transport,
        )

    def _contents_url(self, path: str) -> str:
        return f"/repos/{self.repo}/contents/{path.strip('/')}"

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            with self._client() as client:
                return client.request(method, self._contents_url(path), **kwargs)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"{method} {path} failed: {exc}") from exc

    def read(self, path: str) -> StoredDocument | None:
        response = self._request("GET", path, params={"ref": self.branch})
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise UpstreamError(
                f"reading {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        payload = response.json()
        text = base64.b64decode(payload.get("content") or "").decode("utf-8")
        return StoredDocument(text=text, version=payload.get("sha"))

    def _put(self, path: str, data: bytes, version: str | None, message: str) -> str:
        body = {
            "message": message,
            "content": base64.b64encode(data).decode("ascii"),
            "branch": self.branch,
        }
        if version:
            body["sha"] = version
        response = self._request("PUT", path, json=body)
        if response.status_code in {409, 422}:
            raise StaleVersionError(
                f"{path} changed since it was read",
                status_code=response.status_code,
            )
        if not response.is_success:
            raise UpstreamError(
                f"writing {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return (response.json().get("content") or {}).get("sha") or ""

    def write(self, path: str, text: str, version: str | None = None) -> str:
        return self._put(
            path, text.encode("utf-8"), version, f"chore: sync bookmarks into {path}"
        )

    def list_names(self, directory: str) -> set[str]:
        response = self._request("GET", directory, params={"ref": self.branch})
        if response.status_code == 404:
            return set()
        if not response.is_success:
            raise UpstreamError(
                f"listing {directory} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        payload = response.json()
        if not isinstance(payload, list):
            return set()
        return {item["name"] for item in payload if item.get("type") == "file"}

    def write_bytes(self, path: str, data: bytes) -> None:
        self._put(path, data, None, f"chore: add icon {path.rsplit('/', 1)[-1]}")


class HttpBookmarkSource:
    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url
        self.token = token
        self.timeout = timeout
        self.transport = transport

    def fetch(self) -> str:
        params = {"access_token": self.token} if self.token else None
        try:
            with httpx.Client(
                follow_redirects=True, timeout=self.timeout, transport=self.transport
            ) as client:
                response = client.get(self.url, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"fetching bookmarks failed: {exc}") from exc
        if not response.is_success:
            raise UpstreamError(
                f"fetching bookmarks returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.text


class StoreBookmarkSource:
    def __init__(self, store: StoreBackend, path: str):
        self.store = store
        self.path = path

    def fetch(self) -> str:
        document = self.store.read(self.path)
        if document is None:
            raise UpstreamError(f"bookmark export {self.path} not found", 404)
        return document.text
