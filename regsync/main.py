"""Main CLI entry point for regsync."""

import argparse
import json
import sys
import logging
from typing import Dict, Any, List

from . import __version__
from .config.settings import Config
from .errors import ManifestError
from .models.manifest import Source, get_sources_from_images
from .operations.check import CheckOperation
from .operations.pull import PullOperation
from .operations.push import PushOperation
from .storage.kubernetes import dedupe_images, get_images_from_kubernetes_manifests
from .storage.manifest_store import (
    load_manifest,
    new_manifest,
    new_manifest_with_autodetect,
    save_manifest,
)
from .utils.logger import setup_logging


logger = logging.getLogger(__name__)

# Path argument that reads a whitespace-separated image list from stdin.
STDIN_PATH = '-'


def print_json_output(data: Dict[str, Any]):
    """Print formatted JSON output."""
    print(json.dumps(data, indent=2))


def get_sources(config: Config, images: List[str] = None, target: str = None) -> List[Source]:
    """Sources from an image list and target, or from the manifest."""
    if images:
        if not target:
            raise ManifestError("--target is required when --images is set")
        return get_sources_from_images(images, target)

    manifest = load_manifest(config.manifest_path)
    if not manifest.sources:
        raise ManifestError(f"No sources found in manifest ({config.manifest_path})")
    return manifest.sources


def handle_create(args):
    """Handle create command."""
    try:
        config = Config(args.manifest)

        if args.path:
            manifest = new_manifest_with_autodetect(args.target, args.path)
        else:
            manifest = new_manifest(args.target)

        save_manifest(manifest, config.manifest_path)

    except Exception as e:
        logger.error(f"Create failed: {e}")
        sys.exit(1)


def handle_update(args):
    """Handle update command."""
    try:
        config = Config(args.manifest)

        current = load_manifest(config.manifest_path)
        if args.path == STDIN_PATH:
            images = dedupe_images(sys.stdin.read().split())
        else:
            images = get_images_from_kubernetes_manifests(args.path)

        output = args.output or config.manifest_path
        save_manifest(current.update(images), output)
        logger.info(f"Wrote {len(images)} images to {output}")

    except Exception as e:
        logger.error(f"Update failed: {e}")
        sys.exit(1)


def handle_list(args):
    """Handle list command."""
    try:
        config = Config(args.manifest)
        manifest = load_manifest(config.manifest_path)

        if args.origin == 'source':
            images = [source.image for source in manifest.sources]
        else:
            images = [source.target_image for source in manifest.sources]

        if args.output:
            with open(args.output, 'w') as f:
                f.writelines(f"{image}\n" for image in images)
            logger.info(f"Wrote {len(images)} images to {args.output}")
        else:
            for image in images:
                print(image)

    except Exception as e:
        logger.error(f"List failed: {e}")
        sys.exit(1)


def handle_pull(args):
    """Handle pull command."""
    try:
        config = Config(args.manifest, show_progress=not args.no_progress)
        sources = get_sources(config)

        result = PullOperation(config).pull_sources(sources, origin=args.origin)

        print_json_output({
            "Operation": "Pull",
            "Origin": result['origin'],
            "Pulled": result['pulled'],
            "Skipped": result['skipped']
        })

    except Exception as e:
        logger.error(f"Pull failed: {e}")
        sys.exit(1)


def handle_push(args):
    """Handle push command."""
    try:
        config = Config(args.manifest, show_progress=not args.no_progress)
        sources = get_sources(config, args.images, args.target)

        result = PushOperation(config).push_sources(
            sources,
            force=args.force,
            dry_run=args.dryrun
        )

        print_json_output({
            "Operation": "Push (Dry Run)" if args.dryrun else "Push",
            "Sources": result['total'],
            "Queued": result['queued'],
            "Pushed": result['pushed']
        })

    except Exception as e:
        logger.error(f"Push failed: {e}")
        sys.exit(1)


def handle_check(args):
    """Handle check command."""
    try:
        config = Config(args.manifest)
        if args.images:
            sources = get_sources_from_images(args.images, "")
        else:
            sources = get_sources(config)

        updates = CheckOperation(config).check_sources(sources)

        print_json_output({
            "Operation": "Check",
            "Checked": len(sources),
            "Updates": updates
        })

    except Exception as e:
        logger.error(f"Check failed: {e}")
        sys.exit(1)


def handle_version(args):
    """Handle version command."""
    print(f"regsync version {__version__}")


def main(argv: List[str] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='regsync',
        description='Synchronizes container images from source registries to a target registry.'
    )

    parser.add_argument(
        '-m', '--manifest',
        help='Path where the manifest file is (default: .images.yaml in the current directory)'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Set logging level (default: INFO)'
    )
    parser.add_argument(
        '--log-file',
        help='Log to file in addition to console'
    )
    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Do not draw progress bars'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Create command
    create_parser = subparsers.add_parser(
        'create',
        help='Create a new manifest',
        description='Create a new manifest, optionally populated with the images found in Kubernetes resources at a path.'
    )
    create_parser.add_argument('path', nargs='?', help='Directory of Kubernetes resources to scan for images')
    create_parser.add_argument(
        '-t', '--target',
        required=True,
        help='Registry and optional repository the images will be pushed to (e.g. myregistry.com/mirror)'
    )
    create_parser.set_defaults(func=handle_create)

    # Update command
    update_parser = subparsers.add_parser(
        'update',
        help='Update an existing manifest',
        description='Rescan Kubernetes resources at a path, keeping auth and target overrides of known sources.'
    )
    update_parser.add_argument(
        'path',
        help="Directory of Kubernetes resources to scan for images, or '-' to read images from standard input"
    )
    update_parser.add_argument('-o', '--output', help='Write the updated manifest here instead of over the manifest')
    update_parser.set_defaults(func=handle_update)

    # List command
    list_parser = subparsers.add_parser(
        'list',
        help='List the images in the manifest',
        description='Print the source or target images of the manifest.'
    )
    list_parser.add_argument(
        'origin',
        nargs='?',
        choices=['source', 'target'],
        default='target',
        help='Which images to list (default: target)'
    )
    list_parser.add_argument('-o', '--output', help='Write the images to a file instead of standard output')
    list_parser.set_defaults(func=handle_list)

    # Pull command
    pull_parser = subparsers.add_parser(
        'pull',
        help='Pull the images in the manifest',
        description='Pull the source or target images that are missing from the local engine.'
    )
    pull_parser.add_argument('origin', choices=['source', 'target'], help='Which images to pull')
    pull_parser.set_defaults(func=handle_pull)

    # Push command
    push_parser = subparsers.add_parser(
        'push',
        help='Push images to the target registry',
        description='Push every source image that does not yet exist at its target registry.'
    )
    push_parser.add_argument(
        '--dryrun',
        action='store_true',
        help="Don't pull, tag or push, just list the images that would be pushed"
    )
    push_parser.add_argument(
        '--force',
        action='store_true',
        help='Push images even if they already exist at the target registry'
    )
    push_parser.add_argument(
        '-i', '--images',
        nargs='+',
        help='Images to push instead of the manifest sources (requires --target)'
    )
    push_parser.add_argument('-t', '--target', help='Registry and optional repository to push --images to')
    push_parser.set_defaults(func=handle_push)

    # Check command
    check_parser = subparsers.add_parser(
        'check',
        help='Check for newer image versions',
        description='Report tags at the source registries that are newer than the tags in the manifest.'
    )
    check_parser.add_argument('-i', '--images', nargs='+', help='Images to check instead of the manifest sources')
    check_parser.set_defaults(func=handle_check)

    # Version command
    version_parser = subparsers.add_parser('version', help='Print the version')
    version_parser.set_defaults(func=handle_version)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.log_level, args.log_file)

    args.func(args)


if __name__ == '__main__':
    main()
