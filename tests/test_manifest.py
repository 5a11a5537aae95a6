from __future__ import annotations

from pathlib import Path

import pytest

from regsync.errors import ManifestError
from regsync.models.manifest import Auth, Source, Target, get_sources_from_images
from regsync.storage.kubernetes import get_images_from_kubernetes_manifests
from regsync.storage.manifest_store import (
    dump_manifest,
    load_manifest,
    new_manifest,
    new_manifest_with_autodetect,
    save_manifest,
)


MANIFEST_YAML = """\
target:
  host: mycompany.com
  repository: mirror
  auth:
    username: TARGET_USER
    password: TARGET_PASSWORD
sources:
  - repository: coreos/prometheus-operator
    host: quay.io
    tag: v0.40.0
  - repository: busybox
    tag: "1.10"
    auth:
      username: HUB_USER
      password: HUB_PASSWORD
  - repository: team/app
    host: source.com
    digest: sha256:abc123
    target:
      host: other.com
      repository: apps
"""


@pytest.fixture
def manifest_path(tmp_path: Path) -> Path:
    path = tmp_path / ".images.yaml"
    path.write_text(MANIFEST_YAML, encoding="utf-8")
    return path


def test_target_parse() -> None:
    assert Target.parse("target.com/mirror") == Target(host="target.com", repository="mirror")
    assert Target.parse("target.com") == Target(host="target.com")
    assert Target.parse("localhost:5000/a/b") == Target(host="localhost:5000", repository="a/b")
    assert Target.parse("mirror/images") == Target(repository="mirror/images")
    assert Target.parse("") == Target()


def test_target_str() -> None:
    assert str(Target(host="target.com", repository="mirror")) == "target.com/mirror"
    assert str(Target(host="target.com")) == "target.com"


def test_auth_is_set_requires_both_names() -> None:
    assert Auth("USER", "PASS").is_set
    assert not Auth("USER", "").is_set
    assert not Auth().is_set


def test_source_images() -> None:
    source = Source(
        host="quay.io",
        repository="foo/repo",
        tag="v1.0.0",
        target=Target(host="target.com", repository="bar")
    )

    assert source.image == "quay.io/foo/repo:v1.0.0"
    assert source.target_image == "target.com/bar/foo/repo:v1.0.0"


def test_source_from_image_with_digest() -> None:
    source = Source.from_image("source.com/repo@sha256:123", Target(host="target.com"))

    assert source.digest == "sha256:123"
    assert source.tag == ""
    assert source.target_image == "target.com/repo:123"


def test_load_applies_default_target(manifest_path: Path) -> None:
    manifest = load_manifest(str(manifest_path))

    assert len(manifest.sources) == 3
    assert manifest.sources[0].target == manifest.target
    assert manifest.sources[0].target_image == "mycompany.com/mirror/coreos/prometheus-operator:v0.40.0"
    assert manifest.sources[1].target.auth == Auth("TARGET_USER", "TARGET_PASSWORD")
    assert manifest.sources[2].target_image == "other.com/apps/team/app:abc123"


def test_load_keeps_scalars_as_strings(manifest_path: Path) -> None:
    manifest = load_manifest(str(manifest_path))

    assert manifest.sources[1].tag == "1.10"
    assert manifest.sources[1].auth == Auth("HUB_USER", "HUB_PASSWORD")


def test_load_missing_manifest(tmp_path: Path) -> None:
    with pytest.raises(ManifestError, match="not found"):
        load_manifest(str(tmp_path / "missing.yaml"))


def test_load_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ManifestError, match="mapping"):
        load_manifest(str(path))


def test_load_rejects_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("target: [unclosed\n", encoding="utf-8")

    with pytest.raises(ManifestError, match="parse"):
        load_manifest(str(path))


def test_save_does_not_persist_default_target(manifest_path: Path, tmp_path: Path) -> None:
    manifest = load_manifest(str(manifest_path))
    out = tmp_path / "out" / "images.yaml"

    save_manifest(manifest, str(out))
    text = out.read_text(encoding="utf-8")

    assert text.count("target:") == 2
    assert "other.com" in text
    assert "tag: 1.10\n" in text
    assert '"' not in text and "'" not in text


def test_save_preserves_source_order(manifest_path: Path, tmp_path: Path) -> None:
    out = tmp_path / "images.yaml"

    save_manifest(load_manifest(str(manifest_path)), str(out))
    reloaded = load_manifest(str(out))

    assert [s.repository for s in reloaded.sources] == [
        "coreos/prometheus-operator", "busybox", "team/app"
    ]
    assert reloaded.sources[1].tag == "1.10"
    assert reloaded.sources[2].target.host == "other.com"


def test_dump_omits_empty_fields() -> None:
    manifest = new_manifest("target.com")
    manifest.sources.append(Source(repository="busybox", tag="1.0"))

    text = dump_manifest(manifest)

    assert "digest" not in text
    assert "auth" not in text
    assert "host: target.com" in text


def test_update_preserves_auth_and_target_overrides(manifest_path: Path) -> None:
    manifest = load_manifest(str(manifest_path))

    updated = manifest.update([
        "busybox:1.11",
        "source.com/team/app:2.0.0",
        "nginx:1.19",
    ])

    busybox, app, nginx = updated.sources
    assert busybox.tag == "1.11"
    assert busybox.auth == Auth("HUB_USER", "HUB_PASSWORD")
    assert app.tag == "2.0.0"
    assert app.digest == ""
    assert app.target.host == "other.com"
    assert app.target.repository == "apps"
    assert nginx.auth == Auth()
    assert nginx.target == manifest.target


def test_find_source_matches_target_image(manifest_path: Path) -> None:
    manifest = load_manifest(str(manifest_path))

    found = manifest.find_source("mycompany.com/mirror/coreos/prometheus-operator:v0.41.0")

    assert found is manifest.sources[0]
    assert manifest.find_source("unknown.com/nothing:1") is None


def test_get_sources_from_images_dedupes() -> None:
    sources = get_sources_from_images(
        ["quay.io/foo/repo:v1", "Quay.io/foo/repo:v1", "busybox:1.0", ""],
        "target.com/mirror"
    )

    assert [s.image for s in sources] == ["quay.io/foo/repo:v1", "busybox:1.0"]
    assert sources[1].target_image == "target.com/mirror/busybox:1.0"


DEPLOYMENT = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: web
spec:
  template:
    spec:
      containers:
        - name: web
          image: nginx:1.19
---
apiVersion: batch/v1beta1
kind: CronJob
metadata:
  name: report
spec:
  jobTemplate:
    spec:
      template:
        spec:
          containers:
            - name: report
              image: quay.io/team/report:v2.1.0
"""


def test_autodetect_then_update_preserves_auth(tmp_path: Path) -> None:
    resources = tmp_path / "k8s"
    resources.mkdir()
    (resources / "app.yaml").write_text(DEPLOYMENT, encoding="utf-8")
    path = str(tmp_path / ".images.yaml")

    manifest = new_manifest_with_autodetect("target.com/mirror", str(resources))
    assert [s.image for s in manifest.sources] == ["nginx:1.19", "quay.io/team/report:v2.1.0"]

    manifest.sources[1].auth = Auth("QUAY_USER", "QUAY_PASSWORD")
    save_manifest(manifest, path)

    (resources / "app.yaml").write_text(DEPLOYMENT.replace("v2.1.0", "v2.2.0"), encoding="utf-8")
    updated = load_manifest(path).update(get_images_from_kubernetes_manifests(str(resources)))

    report = updated.sources[1]
    assert report.tag == "v2.2.0"
    assert report.auth == Auth("QUAY_USER", "QUAY_PASSWORD")
    assert report.target_image == "target.com/mirror/team/report:v2.2.0"
