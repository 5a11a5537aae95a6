"""Container image reference parsing and rendering."""

from dataclasses import dataclass
from typing import Tuple


DEFAULT_REGISTRY_HOST = "index.docker.io"


def _split_digest(reference: str) -> Tuple[str, str]:
    if "@" not in reference:
        return reference, ""
    name, digest = reference.split("@", 1)
    return name, digest


def _split_tag(name: str) -> Tuple[str, str]:
    # A colon followed by a slash belongs to a host port, not a tag.
    index = name.rfind(":")
    if index == -1 or "/" in name[index + 1:]:
        return name, ""
    return name[:index], name[index + 1:]


def _is_host(segment: str) -> bool:
    return "." in segment or ":" in segment


def digest_hex(digest: str) -> str:
    """Return the hex portion of an ``algo:hex`` digest."""
    if ":" in digest:
        return digest.split(":", 1)[1]
    return digest


def join_path(*parts: str) -> str:
    """Join non-empty path parts with a slash."""
    return "/".join(part.strip("/") for part in parts if part and part.strip("/"))


@dataclass(frozen=True)
class ImageReference:
    """A parsed container image reference.

    Parsing never fails. Malformed input yields empty fields and callers
    filter on emptiness.
    """
    host: str = ""
    repository: str = ""
    tag: str = ""
    digest: str = ""

    @classmethod
    def parse(cls, reference: str) -> 'ImageReference':
        """Split a reference into host, repository, tag and digest.

        >>> ImageReference.parse("host.com/ns/repo:v1.0.0")
        ImageReference(host='host.com', repository='ns/repo', tag='v1.0.0', digest='')
        """
        reference = (reference or "").strip()
        name, digest = _split_digest(reference)
        name, tag = _split_tag(name)
        if digest:
            tag = ""

        segments = name.split("/")
        host = segments[0] if _is_host(segments[0]) else ""
        repository = name[len(host):].lstrip("/")

        return cls(host=host, repository=repository, tag=tag, digest=digest)

    @property
    def image(self) -> str:
        """Canonical form ``[host/]repo[(:tag|@digest)]``."""
        rendered = join_path(self.host, self.repository)
        if self.digest:
            return f"{rendered}@{self.digest}"
        if self.tag:
            return f"{rendered}:{self.tag}"
        return rendered

    def target_image(self, target_host: str, target_repository: str = "") -> str:
        """Render the reference under a target registry prefix.

        Digests are not preserved across a push, so the target copy is
        addressed by tag and a digest becomes its hex portion.
        """
        rendered = join_path(target_host, target_repository, self.repository)
        if self.digest:
            return f"{rendered}:{digest_hex(self.digest)}"
        if self.tag:
            return f"{rendered}:{self.tag}"
        return rendered

    @property
    def is_latest(self) -> bool:
        """True when the reference is untagged or tagged ``latest``."""
        if self.digest:
            return False
        return self.tag in ("", "latest")

    def __str__(self) -> str:
        return self.image
