"""Version selectors, release tag ordering, and record naming.

A selector is what the user types: `latest` (or `dev`), `stable` (or
nothing at all), or an explicit release tag like `4.6.1`.  Tags are ordered
by version precedence using `packaging.version`,  so 4.6.10 sorts above
4.6.9.  Tags which are not versions at all are never release candidates.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from packaging.version import InvalidVersion, Version

from .constants import LATEST_TOKENS, STABLE_TOKENS, RECORD_PREFIX, STANDALONE_SUFFIX
from .utils import NoReleaseFoundError


class SelectorKind(Enum):
    LATEST = "latest"
    STABLE = "stable"
    EXPLICIT = "explicit"


@dataclass(frozen=True)
class VersionSelector:
    """Which version to operate on.  `tag` is set only for EXPLICIT."""

    kind: SelectorKind
    tag: Optional[str] = None

    @classmethod
    def latest(cls) -> "VersionSelector":
        return cls(SelectorKind.LATEST)

    @classmethod
    def stable(cls) -> "VersionSelector":
        return cls(SelectorKind.STABLE)

    @classmethod
    def explicit(cls, tag: str) -> "VersionSelector":
        if not tag:
            raise ValueError("An explicit selector needs a non-empty tag.")
        return cls(SelectorKind.EXPLICIT, tag)

    @property
    def is_latest(self) -> bool:
        return self.kind is SelectorKind.LATEST

    @property
    def is_stable(self) -> bool:
        return self.kind is SelectorKind.STABLE

    @property
    def is_explicit(self) -> bool:
        return self.kind is SelectorKind.EXPLICIT

    def __str__(self) -> str:
        return self.tag if self.is_explicit else self.kind.value


def parse_selector(token: Optional[str]) -> VersionSelector:
    """Map a user token onto a VersionSelector.

    `latest` and `dev` are synonyms,  and a missing token means `stable`.
    """
    token = (token or "").strip()
    if token.lower() in LATEST_TOKENS:
        return VersionSelector.latest()
    if token.lower() in STABLE_TOKENS:
        return VersionSelector.stable()
    return VersionSelector.explicit(token)


# ------------------------------------------------------------------------------


def parse_tag(tag: str) -> Optional[Version]:
    """Return the Version for `tag` or None if it isn't a version."""
    try:
        return Version(tag)
    except InvalidVersion:
        return None


def sort_tags(tags: list[str], reverse: bool = True) -> list[str]:
    """Order version tags by precedence,  newest first by default.
    Tags that are not versions are dropped.
    """
    versioned = [(parse_tag(tag), tag) for tag in tags]
    versioned = [(version, tag) for version, tag in versioned if version is not None]
    versioned.sort(key=lambda pair: (pair[0], pair[1]), reverse=reverse)
    return [tag for _, tag in versioned]


def latest_release(tags: list[str]) -> str:
    """Return the version-maximal tag,  preferring final releases over
    pre-releases.  Raises NoReleaseFoundError when there is nothing to pick.
    """
    ordered = sort_tags(tags)
    if not ordered:
        raise NoReleaseFoundError(
            "No stable releases found. Available tags: " + (" ".join(tags) or "(none)")
        )
    finals = [tag for tag in ordered if not parse_tag(tag).is_prerelease]  # type: ignore[union-attr]
    return finals[0] if finals else ordered[0]


def version_status(tag: str, legacy_major: int, older_minor: int) -> str:
    """Short recommendation for a release tag as shown by `versions`."""
    version = parse_tag(tag)
    if version is None:
        return ""
    if version.major < legacy_major:
        return "(legacy - not recommended)"
    if version.major == legacy_major and version.minor < older_minor:
        return "(older - consider upgrading)"
    return "✓"


# ------------------------------------------------------------------------------

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._+-]")


def safe_name_part(text: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("-", text)


def tag_record_name(tag: str, standalone: bool = False) -> str:
    """Record directory name for a release tag,  e.g. bidscoin_v4.6.2 or bidscoin_v4.6.2_standalone"""
    suffix = STANDALONE_SUFFIX if standalone else ""
    return f"{RECORD_PREFIX}v{safe_name_part(tag)}{suffix}"


def branch_record_name(
    branch: str, commit_date: str, short_hash: str, standalone: bool = False
) -> str:
    """Record directory name for a branch tip,  e.g. bidscoin_main_20250101_abc1234"""
    suffix = STANDALONE_SUFFIX if standalone else ""
    return f"{RECORD_PREFIX}{safe_name_part(branch)}_{commit_date}_{short_hash}{suffix}"


_BRANCH_NAME_RE = re.compile(r"^(?P<branch>.+)_(?P<date>\d{8})_(?P<hash>[0-9a-f]{4,40})$")


def display_name(name: str) -> str:
    """Readable form of a record name: `main (2025-01-01 abc1234)` or `4.6.2`.

    Standalone records read as e.g. `4.6.2 standalone`.
    """
    bare = name.removeprefix(RECORD_PREFIX)
    standalone = bare.endswith(STANDALONE_SUFFIX)
    bare = bare.removesuffix(STANDALONE_SUFFIX)
    match = _BRANCH_NAME_RE.match(bare)
    if match:
        date = match.group("date")
        formatted = f"{date[:4]}-{date[4:6]}-{date[6:]}"
        readable = f"{match.group('branch')} ({formatted} {match.group('hash')})"
    else:
        readable = bare.removeprefix("v")
    return f"{readable} standalone" if standalone else readable
