"""Registry credential resolution."""

import base64
import json
import logging
import os
from typing import Any, Dict, Optional

from docker import auth as docker_auth
from docker.errors import DockerException

from ..errors import AuthResolveError
from ..models.manifest import Auth


logger = logging.getLogger(__name__)

DOCKER_HUB_AUTH_HOST = "https://index.docker.io/v1/"


def get_auth_host(host: str) -> str:
    """Return the host a credential lookup should use."""
    if host in ("", "docker.io"):
        return DOCKER_HUB_AUTH_HOST
    return host


def encode_auth(auth_config: Dict[str, Any]) -> str:
    """URL-safe base64 of the JSON encoded credentials."""
    return base64.urlsafe_b64encode(json.dumps(auth_config).encode('utf-8')).decode('ascii')


def decode_auth(encoded: str) -> Dict[str, Any]:
    """Inverse of encode_auth."""
    if not encoded:
        return {}
    padded = encoded + '=' * (-len(encoded) % 4)
    return json.loads(base64.urlsafe_b64decode(padded.encode('ascii')))


def get_encoded_basic_auth(username: str, password: str) -> str:
    return encode_auth({"Username": username, "Password": password})


def get_keychain_auth(host: str) -> Dict[str, Any]:
    """Look up credentials for host in the docker credential store.

    Returns an empty mapping when no credentials are stored.
    """
    auth_host = get_auth_host(host)
    try:
        auth_config = docker_auth.load_config()
        resolved = auth_config.resolve_authconfig(auth_host)
    except DockerException as e:
        raise AuthResolveError(f"resolve auth for {auth_host}: {e}") from e

    if not resolved:
        logger.debug(f"No stored credentials for {auth_host}")
        return {}

    credentials = {
        "Username": resolved.get("Username", resolved.get("username", "")),
        "Password": resolved.get("Password", resolved.get("password", "")),
    }
    identity_token = resolved.get("IdentityToken")
    if identity_token:
        credentials["IdentityToken"] = identity_token
    return credentials


def get_encoded_auth_for_host(host: str) -> str:
    """Encoded credentials for host from the docker credential store."""
    credentials = get_keychain_auth(host)
    if not credentials:
        credentials = {"Username": "", "Password": ""}
    return encode_auth(credentials)


def resolve_encoded_auth(host: str, auth: Optional[Auth] = None) -> str:
    """Encoded credentials for a registry host.

    Explicit auth holds the names of environment variables whose values are
    the credentials. Without it the docker credential store is consulted.
    """
    if auth is not None and auth.is_set:
        return get_encoded_basic_auth(
            os.environ.get(auth.username, ""),
            os.environ.get(auth.password, "")
        )

    return get_encoded_auth_for_host(host)
