"""GitHub REST client implementing the source-host capability protocols."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Mapping, Optional, Type, TypeVar
from urllib.parse import quote

import requests
from pydantic import BaseModel, ValidationError
from requests import Response, Session
from requests.exceptions import RequestException

from ..config import GitHubSettings
from ..errors import GitHubAPIError, GitHubNotFoundError
from .models import Commit, GitReference, GitTag, Release, ReleaseAsset, Repository, RepositorySearchResult

logger = logging.getLogger(__name__)

_Model = TypeVar("_Model", bound=BaseModel)

_JSON = "application/vnd.github+json"
_OCTET = "application/octet-stream"
_CHUNK = 1024 * 1024


class GitHubClient:
    """Thin wrapper over ``requests`` speaking the GitHub v3 API."""

    def __init__(
        self,
        token: str,
        *,
        api_url: str = "https://api.github.com",
        uploads_url: str = "https://uploads.github.com",
        timeout: float = 30.0,
        session: Optional[Session] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.uploads_url = uploads_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token = token

    @classmethod
    def from_settings(cls, settings: GitHubSettings, *, session: Optional[Session] = None) -> "GitHubClient":
        return cls(
            settings.token(),
            api_url=settings.api_url,
            uploads_url=settings.uploads_url,
            timeout=settings.request_timeout,
            session=session,
        )

    # -- git data -----------------------------------------------------------

    def get_matching_refs(self, owner: str, repo: str, ref: str) -> List[GitReference]:
        payload = self._json("GET", f"/repos/{owner}/{repo}/git/matching-refs/{ref}")
        return [GitReference.model_validate(item) for item in payload or []]

    def get_ref(self, owner: str, repo: str, ref: str) -> GitReference:
        return self._model(GitReference, "GET", f"/repos/{owner}/{repo}/git/ref/{ref}")

    def create_tag(self, owner: str, repo: str, tag: str, message: str, sha: str) -> GitTag:
        body = {"tag": tag, "message": message, "object": sha, "type": "commit"}
        return self._model(GitTag, "POST", f"/repos/{owner}/{repo}/git/tags", json=body)

    def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> GitReference:
        if not ref.startswith("refs/"):
            ref = f"refs/{ref}"
        return self._model(GitReference, "POST", f"/repos/{owner}/{repo}/git/refs", json={"ref": ref, "sha": sha})

    # -- repositories -------------------------------------------------------

    def get_repository(self, owner: str, repo: str) -> Repository:
        return self._model(Repository, "GET", f"/repos/{owner}/{repo}")

    def get_commit(self, owner: str, repo: str, sha: str) -> Commit:
        return self._model(Commit, "GET", f"/repos/{owner}/{repo}/commits/{sha}")

    def search_repositories(self, query: str) -> RepositorySearchResult:
        return self._model(RepositorySearchResult, "GET", "/search/repositories", params={"q": query})

    # -- releases -----------------------------------------------------------

    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> Release:
        return self._model(Release, "GET", f"/repos/{owner}/{repo}/releases/tags/{quote(tag, safe='')}")

    def set_prerelease(self, owner: str, repo: str, release_id: int, prerelease: bool) -> Release:
        return self._model(
            Release,
            "PATCH",
            f"/repos/{owner}/{repo}/releases/{release_id}",
            json={"prerelease": prerelease},
        )

    def list_release_assets(self, owner: str, repo: str, release_id: int) -> List[ReleaseAsset]:
        assets: List[ReleaseAsset] = []
        page = 1
        while True:
            batch = self._json(
                "GET",
                f"/repos/{owner}/{repo}/releases/{release_id}/assets",
                params={"per_page": 100, "page": page},
            )
            assets.extend(ReleaseAsset.model_validate(item) for item in batch or [])
            if not batch or len(batch) < 100:
                return assets
            page += 1

    def delete_release_asset(self, owner: str, repo: str, asset_id: int) -> None:
        self._request("DELETE", f"/repos/{owner}/{repo}/releases/assets/{asset_id}")

    def upload_release_asset(self, owner: str, repo: str, release: Release, name: str, path: Path) -> ReleaseAsset:
        url = f"{self.uploads_url}/repos/{owner}/{repo}/releases/{release.id}/assets"
        with path.open("rb") as handle:
            response = self._request(
                "POST",
                url,
                params={"name": name},
                data=handle,
                headers={"Content-Type": _OCTET, "Content-Length": str(path.stat().st_size)},
            )
        return _validate(ReleaseAsset, response)

    def download_release_asset(self, owner: str, repo: str, asset_id: int, destination: BinaryIO) -> int:
        response = self._request(
            "GET",
            f"/repos/{owner}/{repo}/releases/assets/{asset_id}",
            headers={"Accept": _OCTET},
            stream=True,
        )
        written = 0
        try:
            for chunk in response.iter_content(chunk_size=_CHUNK):
                if chunk:
                    destination.write(chunk)
                    written += len(chunk)
        finally:
            response.close()
        return written

    # -- transport ----------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        **kwargs: Any,
    ) -> Response:
        url = path if path.startswith("http") else f"{self.api_url}{path}"
        merged: Dict[str, str] = {"Authorization": f"Bearer {self._token}", "Accept": _JSON}
        merged.update(headers or {})
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, headers=merged, timeout=self.timeout, **kwargs)
        except RequestException as exc:
            raise GitHubAPIError(f"{method} {url} failed: {exc}") from exc

        if response.status_code == 404:
            raise GitHubNotFoundError(f"{method} {url} returned 404", status_code=404)
        if response.status_code >= 400:
            raise GitHubAPIError(
                f"{method} {url} returned {response.status_code}: {response.text or response.reason}",
                status_code=response.status_code,
            )
        return response

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubAPIError(f"{method} {path} returned a non-JSON body") from exc

    def _model(self, model: Type[_Model], method: str, path: str, **kwargs: Any) -> _Model:
        return _validate(model, self._request(method, path, **kwargs))


def _validate(model: Type[_Model], response: Response) -> _Model:
    try:
        return model.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise GitHubAPIError(f"Unexpected {model.__name__} payload from GitHub: {exc}") from exc
