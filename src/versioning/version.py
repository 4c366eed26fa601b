"""
Kubernetes API version identifiers.

Versions follow the ``v<MAJOR>[alpha|beta<LEVEL>]`` format, for example
``v1``, ``v1alpha2`` or ``v2beta1``. An API version optionally prefixes the
version with a group: ``<GROUP>/<VERSION>``.

Versions are totally ordered: the major version is compared first, a stable
version is greater than any leveled version of the same major, and any beta
level is greater than any alpha level.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Optional

MAX_VERSION_LENGTH = 63
MAX_GROUP_LENGTH = 253
MAX_GROUP_LABEL_LENGTH = 63
MAX_NUMBER = 2**64 - 1

# Always matched with fullmatch. Digits are ASCII only. Every group label after
# the first starts with a dot, so a label run cannot be split more than one way.
VERSION_PATTERN = re.compile(r"v(?P<major>[0-9]+)(?P<level>[a-z][a-z0-9-]*)?")
LEVEL_PATTERN = re.compile(r"(?P<identifier>[a-z]+)(?P<number>[0-9]+)")
GROUP_PATTERN = re.compile(r"[a-z0-9](?:[-a-z0-9]*[a-z0-9])?(?:\.[a-z0-9](?:[-a-z0-9]*[a-z0-9])?)*")


class ParseVersionError(ValueError):
    """Raised when a version, level or API version string cannot be parsed."""


class InvalidFormatError(ParseVersionError):
    pass


class UnknownLevelIdentifierError(ParseVersionError):
    pass


class NumericOverflowError(ParseVersionError):
    pass


class ParseGroupError(ValueError):
    """Raised when an API group is not a valid DNS subdomain."""


def _parse_number(digits: str, text: str) -> int:
    if len(digits) > 1 and digits.startswith("0"):
        raise InvalidFormatError(
            f"invalid version format {text!r}: numbers must not have leading zeros"
        )
    number = int(digits)
    if number > MAX_NUMBER:
        raise NumericOverflowError(f"number {digits} in {text!r} is too large")
    return number


class LevelKind(Enum):
    ALPHA = "alpha"
    BETA = "beta"

    @property
    def rank(self) -> int:
        return 0 if self is LevelKind.ALPHA else 1


@total_ordering
@dataclass(frozen=True)
class Level:
    """A minor version level, ``alpha<N>`` or ``beta<N>``."""

    kind: LevelKind
    number: int

    @classmethod
    def alpha(cls, number: int) -> Level:
        return cls(LevelKind.ALPHA, number)

    @classmethod
    def beta(cls, number: int) -> Level:
        return cls(LevelKind.BETA, number)

    @classmethod
    def parse(cls, text: str) -> Level:
        match = LEVEL_PATTERN.fullmatch(text)
        if not match:
            raise InvalidFormatError(
                f"invalid level format {text!r}, expected alpha<VERSION>|beta<VERSION>"
            )
        identifier = match.group("identifier")
        try:
            kind = LevelKind(identifier)
        except ValueError:
            raise UnknownLevelIdentifierError(
                f"unknown level identifier {identifier!r}, expected alpha|beta"
            ) from None
        return cls(kind, _parse_number(match.group("number"), text))

    def __lt__(self, other):
        if not isinstance(other, Level):
            return NotImplemented
        return (self.kind.rank, self.number) < (other.kind.rank, other.number)

    def __str__(self):
        return f"{self.kind.value}{self.number}"


@total_ordering
@dataclass(frozen=True)
class Version:
    """A Kubernetes resource version such as ``v1``, ``v2beta1`` or ``v1alpha2``."""

    major: int
    level: Optional[Level] = None

    @classmethod
    def parse(cls, text: str) -> Version:
        if not isinstance(text, str) or not text or len(text) > MAX_VERSION_LENGTH:
            raise InvalidFormatError(
                f"invalid version format {text!r}: input is empty, not a string "
                f"or longer than {MAX_VERSION_LENGTH} characters"
            )
        match = VERSION_PATTERN.fullmatch(text)
        if not match:
            raise InvalidFormatError(
                f"invalid version format {text!r}, expected v<MAJOR>[alpha|beta<LEVEL>]"
            )
        major = _parse_number(match.group("major"), text)
        level_text = match.group("level")
        level = Level.parse(level_text) if level_text else None
        return cls(major, level)

    @property
    def is_stable(self) -> bool:
        return self.level is None

    def sort_key(self):
        # Stable versions sort after every leveled version of the same major.
        if self.level is None:
            return (self.major, 1, 0, 0)
        return (self.major, 0, self.level.kind.rank, self.level.number)

    def __lt__(self, other):
        if not isinstance(other, Version):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __str__(self):
        if self.level is None:
            return f"v{self.major}"
        return f"v{self.major}{self.level}"


def parse_version(text: str) -> Version:
    return Version.parse(text)


def format_version(version: Version) -> str:
    return str(version)


def compare(a: Version, b: Version) -> int:
    """Return -1, 0 or 1 as ``a`` is less than, equal to or greater than ``b``."""
    if a == b:
        return 0
    return -1 if a < b else 1


@dataclass(frozen=True)
class Group:
    """A validated API group, for example ``apiextensions.k8s.io``."""

    name: str

    @classmethod
    def parse(cls, text: str) -> Group:
        if not text:
            raise ParseGroupError("group must not be empty")
        if len(text) > MAX_GROUP_LENGTH:
            raise ParseGroupError(
                f"group must not be longer than {MAX_GROUP_LENGTH} characters"
            )
        if not GROUP_PATTERN.fullmatch(text):
            raise ParseGroupError(f"group {text!r} must be a valid DNS subdomain")
        if any(len(label) > MAX_GROUP_LABEL_LENGTH for label in text.split(".")):
            raise ParseGroupError(
                f"group {text!r} has a label longer than {MAX_GROUP_LABEL_LENGTH} characters"
            )
        return cls(text)

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class ApiVersion:
    """An API version in the ``[<GROUP>/]<VERSION>`` format."""

    group: Optional[Group]
    version: Version

    @classmethod
    def parse(cls, text: str) -> ApiVersion:
        if not isinstance(text, str):
            raise InvalidFormatError(f"API version {text!r} is not a string")
        if "/" in text:
            group_text, version_text = text.split("/", 1)
            try:
                group = Group.parse(group_text)
            except ParseGroupError as e:
                raise InvalidFormatError(
                    f"failed to parse group of API version {text!r}: {e}"
                ) from e
            return cls(group, Version.parse(version_text))
        return cls(None, Version.parse(text))

    def __str__(self):
        if self.group is None:
            return str(self.version)
        return f"{self.group}/{self.version}"
