"""Find container images referenced by Kubernetes resources."""

import logging
import os
import re
from typing import Any, Dict, List

import yaml

from ..models.reference import ImageReference


logger = logging.getLogger(__name__)

YAML_EXTENSIONS = ('.yaml', '.yml')

# Substrings that mark an argument as a URL, a variable or a log level
# rather than an image.
ARG_EXCLUSIONS = (
    '$', 'http://', 'https://',
    ':trace', ':debug', ':info', ':warn', ':error', ':critical', ':off',
)

ADDRESS_PATTERN = re.compile(r'\d+\.\d+:\d')


def get_images_from_kubernetes_manifests(path: str) -> List[str]:
    """Return the images found in Kubernetes resources under path."""
    images = []
    for file_path in get_yaml_files(path):
        for resource in split_resources(file_path):
            images.extend(get_images_from_resource(resource))

    images = dedupe_images(images)
    logger.info(f"Found {len(images)} images in {path}")
    return images


def get_yaml_files(path: str) -> List[str]:
    """Walk path collecting YAML files, skipping .git directories."""
    if os.path.isfile(path):
        return [path] if path.endswith(YAML_EXTENSIONS) else []

    files = []
    for root, dirs, filenames in os.walk(path):
        dirs[:] = sorted(d for d in dirs if d != '.git')
        for filename in sorted(filenames):
            if os.path.splitext(filename)[1] in YAML_EXTENSIONS:
                files.append(os.path.join(root, filename))
    return files


def split_resources(file_path: str) -> List[str]:
    """Split a file into its individual resource documents."""
    with open(file_path, 'r', newline='') as f:
        contents = f.read()

    line_break = '\r\n' if '\r\n' in contents and os.name == 'nt' else '\n'
    return contents.split(f'{line_break}---{line_break}')


def get_images_from_resource(resource: str) -> List[str]:
    """Extract images from one resource document.

    Documents that are not YAML mappings are skipped.
    """
    try:
        documents = list(yaml.load_all(resource, Loader=yaml.BaseLoader))
    except yaml.YAMLError as e:
        logger.debug(f"Skipping document that is not valid YAML: {e}")
        return []

    images = []
    for contents in documents:
        if isinstance(contents, dict):
            images.extend(_get_images_from_object(contents))
    return images


def _get_images_from_object(contents: Dict[str, Any]) -> List[str]:
    kind = contents.get('kind')
    spec = _mapping(contents.get('spec'))

    if kind in ('Prometheus', 'Alertmanager'):
        return _get_monitoring_images(spec)

    if kind == 'Pod':
        return _get_pod_spec_images(spec)

    if kind == 'CronJob':
        job_spec = _mapping(_mapping(spec.get('jobTemplate')).get('spec'))
        return _get_template_images(job_spec)

    return _get_template_images(spec)


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _sequence(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _get_monitoring_images(spec: Dict[str, Any]) -> List[str]:
    images = _get_pod_spec_images(spec)

    if spec.get('baseImage'):
        images.append(f"{spec['baseImage']}:{spec.get('version', '')}")
    elif spec.get('image'):
        images.append(spec['image'])

    return images


def _get_template_images(spec: Dict[str, Any]) -> List[str]:
    template = _mapping(spec.get('template'))
    return _get_pod_spec_images(_mapping(template.get('spec')))


def _get_pod_spec_images(pod_spec: Dict[str, Any]) -> List[str]:
    images = get_images_from_containers(_sequence(pod_spec.get('containers')))
    images.extend(get_images_from_containers(_sequence(pod_spec.get('initContainers'))))
    return images


def get_images_from_containers(containers: List[Any]) -> List[str]:
    """Collect container images, including images passed as arguments."""
    images = []
    for container in containers:
        container = _mapping(container)
        if container.get('image'):
            images.append(container['image'])

        for arg in _sequence(container.get('args')):
            image = get_image_from_arg(str(arg))
            if image:
                images.append(image)

    return images


def get_image_from_arg(arg: str) -> str:
    """Return the image an argument refers to, or an empty string."""
    if ':' not in arg or '=:' in arg:
        return ''

    candidate = arg.split('=', 1)[1] if '=' in arg else arg
    if '=' in candidate:
        return ''

    if any(exclusion in candidate for exclusion in ARG_EXCLUSIONS):
        return ''

    if ADDRESS_PATTERN.search(candidate):
        return ''

    repository = ImageReference.parse(candidate).repository
    if not repository or ':' in repository:
        return ''

    return candidate


def dedupe_images(images: List[str]) -> List[str]:
    """Remove duplicates case-insensitively, keeping the first occurrence."""
    seen = set()
    deduped = []
    for image in images:
        if not image or image.lower() in seen:
            continue
        seen.add(image.lower())
        deduped.append(image)
    return deduped
