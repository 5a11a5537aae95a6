"""Image manifest data models."""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Any, Optional, Tuple

from .reference import ImageReference, join_path


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


@dataclass
class Auth:
    """Names of the environment variables holding registry credentials."""
    username: str = ""
    password: str = ""

    @property
    def is_set(self) -> bool:
        return bool(self.username and self.password)

    def to_dict(self) -> Dict[str, str]:
        data = {}
        if self.username:
            data["username"] = self.username
        if self.password:
            data["password"] = self.password
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Auth':
        data = data or {}
        return cls(username=_text(data, "username"), password=_text(data, "password"))


@dataclass
class Target:
    """Registry host and repository prefix that images are pushed to."""
    host: str = ""
    repository: str = ""
    auth: Auth = field(default_factory=Auth)

    @classmethod
    def parse(cls, target: str) -> 'Target':
        """Build a target from ``host[/repository]``."""
        host, _, repository = (target or "").strip().partition("/")
        if "." not in host and ":" not in host and host != "localhost":
            return cls(repository=join_path(host, repository))
        return cls(host=host, repository=repository.strip("/"))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.host:
            data["host"] = self.host
        if self.repository:
            data["repository"] = self.repository
        auth = self.auth.to_dict()
        if auth:
            data["auth"] = auth
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Target':
        data = data or {}
        return cls(
            host=_text(data, "host"),
            repository=_text(data, "repository"),
            auth=Auth.from_dict(data.get("auth"))
        )

    def __str__(self) -> str:
        return join_path(self.host, self.repository)


@dataclass
class Source:
    """A source image declared in the manifest."""
    repository: str
    host: str = ""
    tag: str = ""
    digest: str = ""
    auth: Auth = field(default_factory=Auth)
    target: Target = field(default_factory=Target)

    @classmethod
    def from_image(cls, image: str, target: Optional[Target] = None) -> 'Source':
        reference = ImageReference.parse(image)
        return cls(
            host=reference.host,
            repository=reference.repository,
            tag=reference.tag,
            digest=reference.digest,
            target=target if target is not None else Target()
        )

    @property
    def reference(self) -> ImageReference:
        return ImageReference(
            host=self.host,
            repository=self.repository,
            tag=self.tag,
            digest=self.digest
        )

    @property
    def image(self) -> str:
        """The source image including its tag or digest."""
        return self.reference.image

    @property
    def target_image(self) -> str:
        """The image at the target registry including its tag."""
        return self.reference.target_image(self.target.host, self.target.repository)

    @property
    def key(self) -> Tuple[str, str]:
        return self.host, self.repository

    def to_dict(self, default_target: Optional[Target] = None) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.host:
            data["host"] = self.host
        data["repository"] = self.repository
        if self.tag:
            data["tag"] = self.tag
        if self.digest:
            data["digest"] = self.digest
        target = self.target.to_dict()
        if target and self.target != default_target:
            data["target"] = target
        auth = self.auth.to_dict()
        if auth:
            data["auth"] = auth
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Source':
        return cls(
            host=_text(data, "host"),
            repository=_text(data, "repository"),
            tag=_text(data, "tag"),
            digest=_text(data, "digest"),
            auth=Auth.from_dict(data.get("auth")),
            target=Target.from_dict(data.get("target"))
        )


@dataclass
class Manifest:
    """The target registry and the sources to synchronize into it."""
    target: Target
    sources: List[Source] = field(default_factory=list)

    def apply_default_target(self) -> 'Manifest':
        """Give every source without its own target host the manifest target."""
        for source in self.sources:
            if not source.target.host:
                source.target = replace(self.target, auth=replace(self.target.auth))
        return self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"target": self.target.to_dict()}
        if self.sources:
            data["sources"] = [source.to_dict(self.target) for source in self.sources]
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Manifest':
        data = data or {}
        sources = [Source.from_dict(item) for item in data.get("sources") or []]
        return cls(target=Target.from_dict(data.get("target")), sources=sources)

    def find_source(self, image: str) -> Optional[Source]:
        """Find the source that an image string refers to.

        An image matches on host and repository, either as the source
        image or as its copy at the target.
        """
        reference = ImageReference.parse(image)
        for source in self.sources:
            source_reference = ImageReference.parse(source.image)
            target_reference = ImageReference.parse(source.target_image)

            if (reference.host, reference.repository) == (source_reference.host, source_reference.repository):
                return source
            if (reference.host, reference.repository) == (target_reference.host, target_reference.repository):
                return source
        return None

    def update(self, images: List[str]) -> 'Manifest':
        """Return a manifest whose sources are rebuilt from image strings.

        Host, repository, auth and target overrides of sources already in
        the manifest are preserved. Tags and digests come from the images.
        """
        updated_sources = []
        for image in images:
            reference = ImageReference.parse(image)
            found = self.find_source(image)
            if found is None:
                updated_sources.append(Source(
                    host=reference.host,
                    repository=reference.repository,
                    tag=reference.tag,
                    digest=reference.digest,
                    target=replace(self.target)
                ))
                continue

            target = replace(self.target)
            if found.target.host and found.target.host != self.target.host:
                target.host = found.target.host
            if found.target.host and found.target.repository != self.target.repository:
                target.repository = found.target.repository
            if found.target.host and found.target.auth != self.target.auth:
                target.auth = replace(found.target.auth)

            updated_sources.append(Source(
                host=found.host,
                repository=found.repository,
                tag=reference.tag,
                digest=reference.digest,
                auth=replace(found.auth),
                target=target
            ))

        return Manifest(target=replace(self.target), sources=updated_sources)


def get_sources_from_images(images: List[str], target: str) -> List[Source]:
    """Parse image strings into sources that push to the given target."""
    parsed_target = Target.parse(target)
    sources = []
    seen = set()
    for image in images:
        if not image or image.lower() in seen:
            continue
        seen.add(image.lower())
        sources.append(Source.from_image(image, replace(parsed_target)))
    return sources
