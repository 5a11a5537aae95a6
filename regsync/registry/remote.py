"""Client for the registry HTTP API v2."""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

import requests

from ..errors import (
    ImageNotFoundError,
    RegsyncError,
    RegistryAuthError,
    RegistryRequestError,
    TransportError,
)
from ..models.reference import DEFAULT_REGISTRY_HOST


logger = logging.getLogger(__name__)

MANIFEST_MEDIA_TYPES = ", ".join([
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.oci.image.index.v1+json",
])

DEFAULT_REQUEST_TIMEOUT = 60

CHALLENGE_PARAM_PATTERN = re.compile(r'(\w+)="([^"]*)"')
NEXT_LINK_PATTERN = re.compile(r'<([^>]+)>;\s*rel="next"')


def registry_hostname(host: str) -> str:
    if host in ("", "docker.io", "registry-1.docker.io"):
        return DEFAULT_REGISTRY_HOST
    return host


def registry_scheme(host: str) -> str:
    """Plain HTTP is only used for local registries."""
    hostname = host.split(":", 1)[0]
    if hostname in ("localhost", "127.0.0.1") or hostname.endswith(".local"):
        return "http"
    return "https"


def registry_repository(host: str, repository: str) -> str:
    """Docker Hub keeps official images under the library namespace."""
    if registry_hostname(host) == DEFAULT_REGISTRY_HOST and "/" not in repository:
        return f"library/{repository}"
    return repository


def parse_challenge(header: str) -> Tuple[str, Dict[str, str]]:
    """Split a WWW-Authenticate header into its scheme and parameters."""
    scheme, _, params = header.strip().partition(" ")
    return scheme.lower(), dict(CHALLENGE_PARAM_PATTERN.findall(params))


def error_codes(response: requests.Response) -> List[str]:
    """Diagnostic codes from a registry error body."""
    try:
        body = response.json()
    except ValueError:
        return []
    if not isinstance(body, dict):
        return []
    return [str(error.get("code", "")) for error in body.get("errors") or [] if isinstance(error, dict)]


def response_error(message: str, response: requests.Response) -> RegsyncError:
    """Map an error response onto the error taxonomy.

    Only server-side failures are worth retrying; a 4xx is a property of
    the request.
    """
    status = response.status_code
    message = f"{message}: {status} {response.reason}"
    if status in (401, 403):
        return RegistryAuthError(message)

    codes = error_codes(response)
    if status == 404:
        return ImageNotFoundError(f"{message} {codes}", status_code=status, codes=codes or ["NOT_FOUND"])
    if status >= 500:
        return TransportError(f"{message} {codes}", status_code=status, codes=codes)
    return RegistryRequestError(f"{message} {codes}", status_code=status, codes=codes)


class RemoteRegistry:
    """Talks to a single registry host over the distribution API."""

    def __init__(self, host: str, credentials: Optional[Dict[str, Any]] = None,
                 session: Optional[requests.Session] = None):
        self.host = registry_hostname(host)
        self.base_url = f"{registry_scheme(self.host)}://{self.host}"
        self.credentials = credentials or {}
        self.session = session or requests.Session()
        self._token: Optional[str] = None

    def _basic_auth(self) -> Optional[Tuple[str, str]]:
        username = self.credentials.get("Username")
        password = self.credentials.get("Password")
        if username and password:
            return username, password
        return None

    def _fetch_token(self, challenge: Dict[str, str], timeout: float) -> str:
        realm = challenge.get("realm")
        if not realm:
            raise TransportError(f"token challenge from {self.host} has no realm")

        params = {key: value for key, value in challenge.items() if key in ("service", "scope")}
        identity_token = self.credentials.get("IdentityToken")
        try:
            if identity_token:
                response = self.session.post(realm, timeout=timeout, data={
                    "grant_type": "refresh_token",
                    "refresh_token": identity_token,
                    "client_id": "regsync",
                    **params
                })
            else:
                response = self.session.get(realm, params=params, auth=self._basic_auth(),
                                            timeout=timeout)
        except requests.RequestException as e:
            raise TransportError(f"fetch token from {realm}: {e}") from e

        if response.status_code >= 400:
            raise response_error(f"fetch token from {realm}", response)

        body = response.json()
        token = body.get("token") or body.get("access_token")
        if not token:
            raise TransportError(f"token response from {realm} has no token")
        return token

    def _request(self, method: str, path_or_url: str, headers: Optional[Dict[str, str]] = None,
                 timeout: float = DEFAULT_REQUEST_TIMEOUT) -> requests.Response:
        url = urljoin(self.base_url, path_or_url)
        headers = dict(headers or {})
        auth = None
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            response = self.session.request(method, url, headers=headers, timeout=timeout)
            if response.status_code == 401 and "WWW-Authenticate" in response.headers:
                scheme, challenge = parse_challenge(response.headers["WWW-Authenticate"])
                if scheme == "bearer":
                    self._token = self._fetch_token(challenge, timeout)
                    headers["Authorization"] = f"Bearer {self._token}"
                elif scheme == "basic":
                    auth = self._basic_auth()
                response = self.session.request(method, url, headers=headers, auth=auth,
                                                timeout=timeout)
        except requests.RequestException as e:
            raise TransportError(f"{method} {url}: {e}") from e

        if response.status_code >= 400:
            raise response_error(f"{method} {url}", response)

        return response

    def get_manifest(self, repository: str, reference: str,
                     timeout: float = DEFAULT_REQUEST_TIMEOUT) -> Dict[str, Any]:
        """Fetch the manifest for a tag or digest."""
        repository = registry_repository(self.host, repository)
        response = self._request(
            "GET",
            f"/v2/{repository}/manifests/{reference}",
            headers={"Accept": MANIFEST_MEDIA_TYPES},
            timeout=timeout
        )
        return {
            "digest": response.headers.get("Docker-Content-Digest", ""),
            "media_type": response.headers.get("Content-Type", ""),
            "body": response.content,
        }

    def list_tags(self, repository: str, timeout: float = DEFAULT_REQUEST_TIMEOUT) -> List[str]:
        """List every tag of a repository, following pagination links."""
        repository = registry_repository(self.host, repository)
        tags: List[str] = []
        next_url: Optional[str] = f"/v2/{repository}/tags/list"

        while next_url:
            response = self._request("GET", next_url, timeout=timeout)
            tags.extend(response.json().get("tags") or [])

            match = NEXT_LINK_PATTERN.search(response.headers.get("Link", ""))
            next_url = match.group(1) if match else None

        logger.debug(f"Found {len(tags)} tags for {self.host}/{repository}")
        return tags
