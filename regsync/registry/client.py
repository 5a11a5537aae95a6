"""Registry client driving the local container engine."""

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import docker
import requests
from docker.errors import APIError, DockerException, StreamParseError
from docker.utils import parse_repository_tag
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from ..config.settings import Config
from ..errors import (
    EngineError,
    ImageNotFoundError,
    InvalidReferenceError,
    RegistryAuthError,
    RegistryResponseError,
    RegsyncError,
    StreamProtocolError,
    TransportError,
)
from ..models.reference import DEFAULT_REGISTRY_HOST, ImageReference
from ..utils.deadline import Deadline
from ..utils.retry import retry_operation
from .auth import decode_auth, get_keychain_auth
from .remote import DEFAULT_REQUEST_TIMEOUT, RemoteRegistry
from .status import wait_for_stream_complete


logger = logging.getLogger(__name__)

T = TypeVar('T')

# The engine strips these prefixes from images pulled from Docker Hub.
DOCKER_HUB_PREFIXES = (
    "index.docker.io/library/",
    "docker.io/library/",
    "index.docker.io/",
    "docker.io/",
)

ABSENT_CODES = ("MANIFEST_UNKNOWN", "NOT_FOUND", "NAME_UNKNOWN")


def normalize_local_image(image: str) -> str:
    for prefix in DOCKER_HUB_PREFIXES:
        if image.startswith(prefix):
            return image[len(prefix):]
    return image


def image_exists(image: str, images: List[str]) -> bool:
    """True if image is in the list of local images, ignoring case."""
    image = normalize_local_image(image).lower()
    return any(current.lower() == image for current in images)


def classify_engine_error(error: Exception, operation: str) -> RegsyncError:
    """Map a docker SDK or transport exception onto the regsync taxonomy."""
    message = f"{operation}: {error}"
    if isinstance(error, StreamParseError):
        return StreamProtocolError(message)
    if isinstance(error, APIError):
        status = error.status_code
        if status in (401, 403):
            return RegistryAuthError(message)
        if status == 404:
            return ImageNotFoundError(message)
        if error.is_server_error():
            return TransportError(message, status_code=status)
        return EngineError(message)
    if isinstance(error, (requests.exceptions.Timeout, requests.exceptions.ChunkedEncodingError,
                          Urllib3HTTPError)):
        return TransportError(message)
    return EngineError(message)


class RegistryClient:
    """Pull, tag and push images through the local engine and probe remotes."""

    def __init__(self, config: Config, docker_client: Optional[Any] = None,
                 remote_factory: Callable[..., RemoteRegistry] = RemoteRegistry):
        self.config = config
        self._api = docker_client
        self.remote_factory = remote_factory

    @property
    def api(self):
        """Lazy initialization of the engine API client."""
        if self._api is None:
            try:
                self._api = docker.from_env().api
            except DockerException as e:
                raise EngineError(f"new docker client: {e}") from e
        return self._api

    def _retry(self, func: Callable[[], T], description: str,
               deadline: Optional[Deadline]) -> T:
        return retry_operation(
            func,
            description,
            attempts=self.config.retry_attempts,
            delay=self.config.retry_delay,
            deadline=deadline
        )

    @staticmethod
    def _timeout(deadline: Optional[Deadline]) -> float:
        if deadline is None:
            return DEFAULT_REQUEST_TIMEOUT
        deadline.check("registry request")
        return deadline.timeout(DEFAULT_REQUEST_TIMEOUT)

    @staticmethod
    def _auth_config(auth: Optional[str]) -> Optional[Dict[str, Any]]:
        auth_config = decode_auth(auth) if auth else {}
        if not any(auth_config.values()):
            return None
        return auth_config

    def _list_images(self) -> List[Dict[str, Any]]:
        try:
            return self.api.images()
        except (DockerException, requests.RequestException) as e:
            raise classify_engine_error(e, "list images") from e

    def get_all_images_on_host(self) -> List[str]:
        """All image tags known to the local engine, e.g. ``ubuntu:18.04``."""
        images = []
        for summary in self._list_images():
            images.extend(summary.get("RepoTags") or [])
        return images

    def get_all_digests_on_host(self) -> List[str]:
        """All image digests known to the local engine, e.g. ``ubuntu@sha256:...``."""
        digests = []
        for summary in self._list_images():
            digests.extend(summary.get("RepoDigests") or [])
        return digests

    def image_exists_on_host(self, image: str, deadline: Optional[Deadline] = None) -> bool:
        """True if the local engine already holds the image.

        Untagged and ``latest`` images are never considered present.
        """
        if ImageReference.parse(image).is_latest:
            return False

        if deadline is not None:
            deadline.check(f"check local image {image}")

        if "@" in image:
            images = self.get_all_digests_on_host()
        else:
            images = self.get_all_images_on_host()

        return image_exists(image, images)

    def image_exists_at_remote(self, image: str, auth: Optional[str] = None,
                               deadline: Optional[Deadline] = None) -> bool:
        """True if the image exists at its registry and is not ``latest``.

        A ``latest`` image is still fetched so unreachable or unauthorized
        registries surface as errors, but it always reports absent.
        """
        reference = ImageReference.parse(image)
        if not reference.repository:
            raise InvalidReferenceError(f"parse reference {image!r}: no repository")

        credentials = decode_auth(auth) if auth else get_keychain_auth(reference.host)
        remote = self.remote_factory(reference.host, credentials)
        manifest_reference = reference.digest or reference.tag or "latest"

        def probe() -> bool:
            try:
                remote.get_manifest(reference.repository, manifest_reference,
                                    timeout=self._timeout(deadline))
            except RegistryResponseError as e:
                if e.has_code(*ABSENT_CODES):
                    return False
                raise
            return True

        found = self._retry(probe, f"get image {image}", deadline)
        if not found:
            logger.debug(f"{image} does not exist at remote")
            return False

        return not reference.is_latest

    def get_tags_for_repository(self, host: str, repository: str,
                                deadline: Optional[Deadline] = None) -> List[str]:
        """List the tags of a remote repository."""
        host = host or DEFAULT_REGISTRY_HOST
        remote = self.remote_factory(host, get_keychain_auth(host))

        return self._retry(
            lambda: remote.list_tags(repository, timeout=self._timeout(deadline)),
            f"list tags for {host}/{repository}",
            deadline
        )

    def tag(self, source: str, target: str):
        """Tag a local image under a new name."""
        repository, tag = parse_repository_tag(target)
        try:
            tagged = self.api.tag(source, repository, tag=tag)
        except (DockerException, requests.RequestException) as e:
            raise classify_engine_error(e, f"tag {source} as {target}") from e

        if not tagged:
            raise EngineError(f"tag {source} as {target}: engine did not create the tag")
        logger.info(f"Tagged {source} as {target}")

    def pull_and_wait(self, image: str, auth: Optional[str] = None,
                      deadline: Optional[Deadline] = None):
        """Pull an image and wait for the transfer to finish."""
        self._retry(
            lambda: self._transfer_and_wait("PULL", image, auth, deadline),
            f"pull {image}",
            deadline
        )

    def push_and_wait(self, image: str, auth: Optional[str] = None,
                      deadline: Optional[Deadline] = None):
        """Push an image and wait for the transfer to finish."""
        self._retry(
            lambda: self._transfer_and_wait("PUSH", image, auth, deadline),
            f"push {image}",
            deadline
        )

    def _transfer_and_wait(self, command: str, image: str, auth: Optional[str],
                           deadline: Optional[Deadline]):
        if deadline is None:
            return self._transfer(command, image, auth, deadline)
        # The engine stream has no read timeout of its own.
        return deadline.run(lambda: self._transfer(command, image, auth, deadline),
                            f"{command.lower()} {image}")

    def _transfer(self, command: str, image: str, auth: Optional[str],
                  deadline: Optional[Deadline]):
        auth_config = self._auth_config(auth)
        try:
            if command == "PULL":
                events = self.api.pull(image, stream=True, decode=True, auth_config=auth_config)
            else:
                events = self.api.push(image, stream=True, decode=True, auth_config=auth_config)

            wait_for_stream_complete(events, image, command,
                                     stride=self.config.progress_stride, deadline=deadline)
        except (DockerException, StreamParseError, requests.RequestException,
                Urllib3HTTPError) as e:
            raise classify_engine_error(e, f"{command.lower()} image {image}") from e
