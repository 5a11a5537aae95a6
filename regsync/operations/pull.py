"""Pull source or target images into the local engine."""

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

ORIGINS = ('source', 'target')


class PullOperation:
    """Pulls the images of a manifest that the local engine does not hold."""

    def __init__(self, config: Config, client: Optional[RegistryClient] = None,
                 resolve_auth: Callable[..., str] = resolve_encoded_auth):
        self.config = config
        self.client = client or RegistryClient(config)
        self.resolve_auth = resolve_auth

    def pull_sources(self, sources: List[Source], origin: str = 'source',
                     deadline: Optional[Deadline] = None) -> Dict[str, Any]:
        if origin not in ORIGINS:
            raise ValueError(f"Unknown origin '{origin}', expected one of {', '.join(ORIGINS)}")

        deadline = deadline or Deadline(self.config.timeout)
        result = {'origin': origin, 'pulled': [], 'skipped': []}

        with ProgressReporter(len(sources), description=f"Pulling {origin} images",
                              disable=not self.config.show_progress) as progress:
            for source in sources:
                if origin == 'source':
                    image, host, auth = source.image, source.host, source.auth
                else:
                    image, host, auth = source.target_image, source.target.host, source.target.auth

                try:
                    if self.client.image_exists_on_host(image, deadline):
                        logger.info(f"Image {image} exists locally. Skipping ...")
                        result['skipped'].append(image)
                        progress.update(skipped=True, image=image)
                        continue

                    self.client.pull_and_wait(image, self.resolve_auth(host, auth), deadline)
                except RegsyncError as e:
                    raise type(e)(f"pull {origin} image {image}: {e}") from e

                result['pulled'].append(image)
                progress.update(image=image)

        logger.info(f"Pulled {len(result['pulled'])} {origin} images.")
        return result
