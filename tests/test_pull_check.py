from __future__ import annotations

import pytest
from packaging.version import Version

from regsync.models.manifest import Source, Target
from regsync.operations.check import CheckOperation, filter_tags, get_newer_versions
from regsync.operations.pull import PullOperation

from .conftest import FakeRegistryClient


TARGET = Target(host="target.com", repository="mirror")


def test_pull_sources_skips_local_images(config, fake_auth) -> None:
    client = FakeRegistryClient(local_images={"busybox:1.32"})
    sources = [Source.from_image("busybox:1.32", TARGET), Source.from_image("quay.io/foo/bar:v1", TARGET)]

    result = PullOperation(config, client, fake_auth).pull_sources(sources, origin="source")

    assert result["skipped"] == ["busybox:1.32"]
    assert result["pulled"] == ["quay.io/foo/bar:v1"]
    assert client.calls_to("pull_and_wait") == [("pull_and_wait", "quay.io/foo/bar:v1", "auth-for-quay.io")]


def test_pull_target_images(config, fake_auth) -> None:
    client = FakeRegistryClient()
    sources = [Source.from_image("busybox:1.32", TARGET)]

    result = PullOperation(config, client, fake_auth).pull_sources(sources, origin="target")

    assert result["pulled"] == ["target.com/mirror/busybox:1.32"]
    assert client.calls_to("pull_and_wait")[0][2] == "auth-for-target.com"


def test_pull_rejects_unknown_origin(config, fake_auth) -> None:
    with pytest.raises(ValueError, match="origin"):
        PullOperation(config, FakeRegistryClient(), fake_auth).pull_sources([], origin="elsewhere")


def test_filter_tags() -> None:
    tags = ["latest", "v1.0.0", "1.2", "version", "1.0.0-rc1", "alpine", "3.12-alpine", ""]

    assert filter_tags(tags) == ["v1.0.0", "1.2", "1.0.0-rc1"]


def test_get_newer_versions_keeps_listing_order() -> None:
    tags = ["2.0.0", "0.9.0", "1.0.0", "1.0.1", "v1.5"]

    assert get_newer_versions(Version("1.0.0"), tags) == ["2.0.0", "1.0.1", "v1.5"]


def test_check_sources(config) -> None:
    client = FakeRegistryClient(tags={
        "library/nginx": ["1.18.0", "1.19.0", "1.20.0", "mainline"],
        "library/redis": ["5.0", "6.0"],
    })
    sources = [
        Source.from_image("library/nginx:1.19.0"),
        Source.from_image("library/redis:6.0"),
        Source.from_image("quay.io/foo/bar:v1.0.0"),
        Source.from_image("library/busybox:latest"),
    ]

    updates = CheckOperation(config, client).check_sources(sources)

    assert updates == {"library/nginx:1.19.0": ["1.20.0"]}
    assert [call[2] for call in client.calls_to("get_tags_for_repository")] == [
        "library/nginx", "library/redis"
    ]


def test_semver_filter_drops_non_versions() -> None:
    assert filter_tags(["noperiods", "contains-hypen", "1.0.0", "v1.0.0"]) == ["1.0.0", "v1.0.0"]


def test_every_later_major_is_newer() -> None:
    tags = [f"v{major}.0.0" for major in range(1, 7)]

    assert get_newer_versions(Version("v0.1.0"), filter_tags(tags)) == tags
