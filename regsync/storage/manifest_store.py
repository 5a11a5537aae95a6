"""Reading and writing the image manifest file."""

import logging
import os

import yaml
from yaml.emitter import Emitter
from yaml.representer import SafeRepresenter
from yaml.resolver import BaseResolver
from yaml.serializer import Serializer

from ..errors import ManifestError
from ..models.manifest import Manifest, Target
from .kubernetes import get_images_from_kubernetes_manifests


logger = logging.getLogger(__name__)


class ManifestDumper(Emitter, Serializer, SafeRepresenter, BaseResolver):
    """Dumper that writes every string as a plain scalar where YAML allows it.

    Without implicit resolvers values such as ``1.10`` are not quoted, so the
    manifest must be read back with ``yaml.BaseLoader``.
    """

    def __init__(self, stream, default_style=None, default_flow_style=False,
                 canonical=None, indent=None, width=None, allow_unicode=None,
                 line_break=None, encoding=None, explicit_start=None,
                 explicit_end=None, version=None, tags=None, sort_keys=True):
        Emitter.__init__(self, stream, canonical=canonical, indent=indent,
                         width=width, allow_unicode=allow_unicode,
                         line_break=line_break)
        Serializer.__init__(self, encoding=encoding, explicit_start=explicit_start,
                            explicit_end=explicit_end, version=version, tags=tags)
        SafeRepresenter.__init__(self, default_style=default_style,
                                 default_flow_style=default_flow_style,
                                 sort_keys=sort_keys)
        BaseResolver.__init__(self)


def load_manifest(path: str) -> Manifest:
    """Load the manifest at path and default each source's target."""
    if not os.path.exists(path):
        raise ManifestError(f"Manifest file not found: {path}")

    try:
        with open(path, 'r') as f:
            data = yaml.load(f, Loader=yaml.BaseLoader)
    except yaml.YAMLError as e:
        raise ManifestError(f"Unable to parse manifest {path}: {e}") from e

    if data is not None and not isinstance(data, dict):
        raise ManifestError(f"Manifest {path} must be a mapping with 'target' and 'sources'")

    manifest = Manifest.from_dict(data)
    logger.debug(f"Loaded {len(manifest.sources)} sources from {path}")

    return manifest.apply_default_target()


def dump_manifest(manifest: Manifest) -> str:
    return yaml.dump(manifest.to_dict(), Dumper=ManifestDumper, sort_keys=False,
                     default_flow_style=False)


def save_manifest(manifest: Manifest, path: str):
    """Write the manifest to path, preserving source order."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, 'w') as f:
        f.write(dump_manifest(manifest))

    logger.info(f"Wrote manifest with {len(manifest.sources)} sources to {path}")


def new_manifest(target: str) -> Manifest:
    """Create a manifest with no sources."""
    return Manifest(target=Target.parse(target))


def new_manifest_with_autodetect(target: str, path: str) -> Manifest:
    """Create a manifest whose sources are found in Kubernetes resources under path."""
    manifest = new_manifest(target)
    images = get_images_from_kubernetes_manifests(path)
    return manifest.update(images)
