"""HTTP client for the Netlify deploy API."""

import logging
import os
from contextlib import contextmanager
from typing import IO, Any, Dict, Iterator, List, Optional, Union
from urllib.parse import quote

import httpx

from netlifydeploy.api.models import Deploy, DeployFiles, Site
from netlifydeploy.errors import APIError
from netlifydeploy.network import USER_AGENT, get_base_url, upload_timeout

log = logging.getLogger(__name__)

JSON_TIMEOUT = 30.0

Body = Union[bytes, IO[bytes]]


@contextmanager
def _wrap_errors(operation: str) -> Iterator[None]:
    """Turn httpx and decoding failures into APIError tagged with the operation."""
    try:
        yield
    except httpx.HTTPStatusError as e:
        detail = e.response.text[:200] if e.response is not None else ""
        raise APIError(
            operation,
            f"{e.response.status_code} {e.response.reason_phrase} {detail}".strip(),
            status_code=e.response.status_code,
        ) from e
    except httpx.HTTPError as e:
        raise APIError(operation, f"{type(e).__name__}: {e}") from e
    except ValueError as e:
        # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
        raise APIError(operation, f"invalid response: {e}") from e


def _body_size(body: Body) -> int:
    if isinstance(body, (bytes, bytearray)):
        return len(body)
    try:
        return os.fstat(body.fileno()).st_size
    except (AttributeError, OSError, ValueError):
        return 0


class NetlifyAPI:
    """
    Narrow facade over the Netlify API: list sites, create/get deploy, upload file.
    A fresh httpx client is opened per call, so the facade holds no connection state
    and is safe to share between upload threads.
    """

    def __init__(self, access_token: str, base_url: Optional[str] = None) -> None:
        self._base_url = (base_url or get_base_url()).rstrip("/")
        self._access_token = access_token
        log.debug("API client base_url=%s", self._base_url)

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self._access_token}",
            "User-Agent": USER_AGENT,
        }

    def list_sites(self, page: int, per_page: int) -> List[Site]:
        """GET /sites?page=&per_page=&filter=all. Returns one page of sites."""
        log.debug("GET /sites page=%d per_page=%d", page, per_page)
        with _wrap_errors("list sites"):
            with httpx.Client(http2=True, timeout=JSON_TIMEOUT) as client:
                r = client.get(
                    f"{self._base_url}/sites",
                    params={"page": page, "per_page": per_page, "filter": "all"},
                    headers=self._headers(),
                )
                r.raise_for_status()
                data = r.json()
            if not isinstance(data, list):
                raise ValueError("expected a list of sites")
            return [Site.model_validate(item) for item in data]

    def create_deploy(self, site_id: str, deploy: DeployFiles, title: str = "") -> Deploy:
        """POST /sites/{site_id}/deploys. Title goes in the query string when set."""
        log.debug("POST /sites/%s/deploys files=%d", site_id, len(deploy.files))
        params: Dict[str, Any] = {}
        if title:
            params["title"] = title
        with _wrap_errors("create deploy"):
            with httpx.Client(http2=True, timeout=JSON_TIMEOUT) as client:
                r = client.post(
                    f"{self._base_url}/sites/{quote(site_id, safe='')}/deploys",
                    params=params,
                    json=deploy.to_json(),
                    headers={**self._headers(), "Content-Type": "application/json"},
                )
                r.raise_for_status()
                return Deploy.model_validate(r.json())

    def get_deploy(self, deploy_id: str) -> Deploy:
        """GET /deploys/{deploy_id}."""
        with _wrap_errors("get deploy"):
            with httpx.Client(http2=True, timeout=JSON_TIMEOUT) as client:
                r = client.get(
                    f"{self._base_url}/deploys/{quote(deploy_id, safe='')}",
                    headers=self._headers(),
                )
                r.raise_for_status()
                return Deploy.model_validate(r.json())

    def upload_file(self, deploy_id: str, path: str, body: Body) -> Dict[str, Any]:
        """
        PUT /deploys/{deploy_id}/files{path} with the raw bytes. path starts with "/".
        A binary file object is streamed by httpx rather than read into memory.
        """
        size = _body_size(body)
        log.debug("upload_file deploy=%s path=%s size=%d", deploy_id, path, size)
        with _wrap_errors("upload file"):
            with httpx.Client(http2=True, timeout=upload_timeout(size)) as client:
                r = client.put(
                    f"{self._base_url}/deploys/{quote(deploy_id, safe='')}/files{quote(path)}",
                    content=body,
                    headers={**self._headers(), "Content-Type": "application/octet-stream"},
                )
                r.raise_for_status()
                if not r.content:
                    return {}
                return r.json()
