"""Release tag parsing and ordering for php-src tags (php-5.4.0, php-7.0.0RC1, ...)."""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

TAG_PREFIX = "php-"

_VERSION = re.compile(r"^(\d+)\.(\d+)\.(\d+)([A-Za-z]+\d*)?$")

# Pre-release suffixes sort before the final release.
_SUFFIX_RANK = {"alpha": 0, "beta": 1, "rc": 2}


@dataclass(frozen=True)
class Version:
    major: int
    minor: int
    patch: int
    suffix: str = ""

    @classmethod
    def parse(cls, value: str) -> "Version":
        match = _VERSION.match(value)
        if not match:
            raise ValueError(f"Not a release version: {value}")
        major, minor, patch, suffix = match.groups()
        return cls(int(major), int(minor), int(patch), suffix or "")

    @property
    def sort_key(self) -> Tuple:
        if not self.suffix:
            return (self.major, self.minor, self.patch, 3, 0)
        match = re.match(r"([A-Za-z]+)(\d*)", self.suffix)
        name, number = match.group(1).lower(), match.group(2)
        return (self.major, self.minor, self.patch, _SUFFIX_RANK.get(name, -1), int(number or 0))

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}{self.suffix}"


def version_from_tag(tag: str) -> Optional[str]:
    """"php-5.4.0" -> "5.4.0"; None for tags that are not releases."""
    if not tag.startswith(TAG_PREFIX):
        return None
    candidate = tag[len(TAG_PREFIX):]
    if not _VERSION.match(candidate):
        return None
    return candidate


def tag_for_version(version: str) -> str:
    return f"{TAG_PREFIX}{version}"


def sort_versions(versions: Iterable[str]) -> List[str]:
    """Sort version strings oldest first, dropping anything unparseable."""
    parsed = []
    for value in versions:
        try:
            parsed.append(Version.parse(value))
        except ValueError:
            continue
    return [str(v) for v in sorted(set(parsed), key=lambda v: v.sort_key)]
