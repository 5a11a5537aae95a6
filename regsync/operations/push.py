"""Reconcile the target registry with the declared sources."""

import logging
from typing import Any, Callable, Dict, List, Optional

from ..config.settings import Config
from ..errors import RegsyncError
from ..models.manifest import Source
from ..registry.auth import resolve_encoded_auth
from ..registry.client import RegistryClient
from ..utils.deadline import Deadline
from ..utils.progress import ProgressReporter


logger = logging.getLogger(__name__)


class PushOperation:
    """Pushes every source missing from its target registry."""

    def __init__(self, config: Config, client: Optional[RegistryClient] = None,
                 resolve_auth: Callable[..., str] = resolve_encoded_auth):
        self.config = config
        self.client = client or RegistryClient(config)
        self.resolve_auth = resolve_auth

    def push_sources(self, sources: List[Source], force: bool = False, dry_run: bool = False,
                     deadline: Optional[Deadline] = None) -> Dict[str, Any]:
        """Bring the target registry into agreement with sources.

        Sources are handled one at a time in order. The first error aborts
        the run; images pushed before it stay pushed.
        """
        deadline = deadline or Deadline(self.config.timeout)

        logger.info("Finding images that need to be pushed ...")
        queued = self._find_unsynced_sources(sources, force, deadline)

        result = {
            'total': len(sources),
            'queued': [source.target_image for source in queued],
            'pushed': [],
            'dry_run': dry_run
        }

        if not queued:
            logger.info("All images are up to date! 0 images pushed.")
            return result

        if dry_run:
            for source in queued:
                logger.info(f"{source.image} would be pushed as {source.target_image}")
            return result

        with ProgressReporter(len(queued), description="Pushing images",
                              disable=not self.config.show_progress) as progress:
            for source in queued:
                self._push_source(source, deadline)
                result['pushed'].append(source.target_image)
                progress.update(image=source.target_image)

        logger.info(f"All images have been pushed. {len(result['pushed'])} images pushed.")
        return result

    def _target_auth(self, source: Source) -> str:
        return self.resolve_auth(source.target.host, source.target.auth)

    def _source_auth(self, source: Source) -> str:
        return self.resolve_auth(source.host, source.auth)

    def _find_unsynced_sources(self, sources: List[Source], force: bool,
                               deadline: Deadline) -> List[Source]:
        unsynced = []
        for source in sources:
            if force:
                unsynced.append(source)
                continue

            try:
                auth = self._target_auth(source) if source.target.auth.is_set else None
                exists = self.client.image_exists_at_remote(source.target_image, auth, deadline)
            except RegsyncError as e:
                raise type(e)(f"check target image {source.target_image}: {e}") from e

            if not exists:
                logger.info(f"Image {source.image} needs to be pushed to {source.target_image}")
                unsynced.append(source)

        return unsynced

    def _push_source(self, source: Source, deadline: Deadline):
        try:
            if self.client.image_exists_on_host(source.image, deadline):
                logger.info(f"Image {source.image} exists locally. Skipping pull ...")
            else:
                self.client.pull_and_wait(source.image, self._source_auth(source), deadline)

            self.client.tag(source.image, source.target_image)
            self.client.push_and_wait(source.target_image, self._target_auth(source), deadline)
        except RegsyncError as e:
            raise type(e)(f"push {source.image} to {source.target_image}: {e}") from e
