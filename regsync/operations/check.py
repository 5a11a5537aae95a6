"""Check upstream registries for newer versions of the sources."""

import logging
from typing import Dict, List, Optional

from packaging.version import InvalidVersion, Version

from ..config.settings import Config
from ..errors import RegsyncError
from ..models.manifest import Source
from ..registry.client import RegistryClient
from ..utils.deadline import Deadline


logger = logging.getLogger(__name__)

# Tag listing is not supported for these hosts.
SKIPPED_HOSTS = ('quay.io',)


def parse_version(tag: str) -> Optional[Version]:
    try:
        return Version(tag)
    except InvalidVersion:
        return None


def filter_tags(tags: List[str]) -> List[str]:
    """Keep tags that look like versions and parse as one."""
    filtered = []
    for tag in tags:
        if not tag or not (tag[0].isdigit() or tag[0] == 'v'):
            continue
        if parse_version(tag) is None:
            continue
        filtered.append(tag)
    return filtered


def get_newer_versions(current: Version, tags: List[str]) -> List[str]:
    """Tags whose version is strictly greater than current, in listing order."""
    newer = []
    for tag in tags:
        version = parse_version(tag)
        if version is not None and version > current:
            newer.append(tag)
    return newer


class CheckOperation:
    """Reports newer upstream tags for each source."""

    def __init__(self, config: Config, client: Optional[RegistryClient] = None):
        self.config = config
        self.client = client or RegistryClient(config)

    def check_sources(self, sources: List[Source],
                      deadline: Optional[Deadline] = None) -> Dict[str, List[str]]:
        deadline = deadline or Deadline(self.config.timeout)
        updates: Dict[str, List[str]] = {}

        for source in sources:
            if source.host in SKIPPED_HOSTS:
                logger.info(f"Image {source.image} is hosted on {source.host}. Skipping ...")
                continue

            current = parse_version(source.tag)
            if current is None:
                logger.info(f"Image {source.image} tag is not a version. Skipping ...")
                continue

            try:
                tags = self.client.get_tags_for_repository(source.host, source.repository, deadline)
            except RegsyncError as e:
                raise type(e)(f"list tags for {source.image}: {e}") from e

            newer = get_newer_versions(current, filter_tags(tags))
            if not newer:
                logger.info(f"Image {source.image} is up to date")
                continue

            logger.info(f"New versions for {source.image} found: {newer}")
            updates[source.image] = newer

        return updates
