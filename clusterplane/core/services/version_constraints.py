"""
Version constraints — range expressions over Kubernetes versions.

Versions are parsed with ``semver`` the lenient way templates publish
them: an optional leading ``v`` and optional minor/patch (``1.29`` is
``1.29.0``).

Constraint grammar::

    constraint := group ( "||" group )*          any group may match
    group      := term ( ("," | " ") term )*     every term must match
    term       := [op] partial | partial " - " partial
    op         := "=" | "!=" | ">" | "<" | ">=" | "=>" | "<=" | "=<" | "~" | "~>" | "^"
    partial    := major["." minor["." patch]]["-" pre]   (x, X, * are wildcards)

Tilde pins the minor (``~1.2.3`` → ``>=1.2.3 <1.3.0``), caret pins the
left-most non-zero component (``^0.2.3`` → ``>=0.2.3 <0.3.0``).  A
pre-release version only satisfies terms that carry a pre-release
themselves.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import semver

_OP_PATTERN = r"!=|>=|=>|<=|=<|~>|~|\^|>|<|="
_HYPHEN_RE = re.compile(r"(\S+)\s+-\s+(\S+)")
_OP_SPACE_RE = re.compile(rf"({_OP_PATTERN})\s+")
_TERM_RE = re.compile(rf"^({_OP_PATTERN})?(.+)$")
_PARTIAL_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*|[xX*])"
    r"(?:\.(?P<minor>0|[1-9]\d*|[xX*]))?"
    r"(?:\.(?P<patch>0|[1-9]\d*|[xX*]))?"
    r"(?:-(?P<pre>[0-9A-Za-z.\-]+))?"
    r"(?:\+[0-9A-Za-z.\-]+)?$"
)
_WILDCARDS = ("x", "X", "*")


class VersionError(ValueError):
    """A version string is not a valid semantic version."""


class ConstraintError(ValueError):
    """A constraint expression cannot be parsed."""


def parse_version(text: str) -> semver.Version:
    """Parse a (lenient) semantic version.

    Raises:
        VersionError: Not a valid version.
    """
    raw = text.strip()
    if raw[:1] in ("v", "V"):
        raw = raw[1:]
    try:
        return semver.Version.parse(raw, optional_minor_and_patch=True)
    except (ValueError, TypeError) as e:
        raise VersionError(f"invalid version {text!r}: {e}") from e


@dataclass(frozen=True)
class _Partial:
    """A version with possibly-missing components (None = wildcard)."""

    major: int | None
    minor: int | None
    patch: int | None
    pre: str | None

    @property
    def dirty(self) -> bool:
        return self.major is None or self.minor is None or self.patch is None

    def floor(self) -> semver.Version:
        return semver.Version(
            self.major or 0,
            self.minor or 0,
            self.patch or 0,
            prerelease=self.pre,
        )

    def ceiling(self) -> semver.Version | None:
        """First version past the wildcard range; None when unbounded."""
        if self.major is None:
            return None
        if self.minor is None:
            return semver.Version(self.major + 1, 0, 0)
        if self.patch is None:
            return semver.Version(self.major, self.minor + 1, 0)
        return semver.Version(self.major, self.minor, self.patch + 1)


def _parse_partial(text: str, expression: str) -> _Partial:
    match = _PARTIAL_RE.match(text)
    if match is None:
        raise ConstraintError(f"improper constraint {expression!r}: bad version {text!r}")

    parts: list[int | None] = []
    wildcard = False
    for name in ("major", "minor", "patch"):
        value = match.group(name)
        if value is None or value in _WILDCARDS or wildcard:
            wildcard = True
            parts.append(None)
        else:
            parts.append(int(value))
    return _Partial(parts[0], parts[1], parts[2], match.group("pre"))


@dataclass(frozen=True)
class _Term:
    op: str
    partial: _Partial

    def matches(self, version: semver.Version) -> bool:
        p = self.partial
        if version.prerelease and not p.pre and self.op != "!=":
            return False

        floor = p.floor()
        ceiling = p.ceiling()

        if self.op in ("", "="):
            return self._within(version, floor, ceiling)
        if self.op == "!=":
            return not self._within(version, floor, ceiling)
        if self.op == ">":
            if p.dirty:
                return ceiling is not None and version >= ceiling
            return version > floor
        if self.op in (">=", "=>"):
            return version >= floor
        if self.op == "<":
            return version < floor
        if self.op in ("<=", "=<"):
            if p.dirty:
                return ceiling is None or version < ceiling
            return version <= floor
        if self.op in ("~", "~>"):
            major = p.major or 0
            if p.minor is None:
                upper = semver.Version(major + 1, 0, 0)
            else:
                upper = semver.Version(major, p.minor + 1, 0)
            return floor <= version < upper
        if self.op == "^":
            return floor <= version < self._caret_ceiling()
        raise ConstraintError(f"unknown operator {self.op!r}")  # pragma: no cover

    def _caret_ceiling(self) -> semver.Version:
        p = self.partial
        major = p.major or 0
        if major > 0 or p.minor is None:
            return semver.Version(major + 1, 0, 0)
        if p.minor > 0 or p.patch is None:
            return semver.Version(0, p.minor + 1, 0)
        return semver.Version(0, 0, p.patch + 1)

    def _within(
        self,
        version: semver.Version,
        floor: semver.Version,
        ceiling: semver.Version | None,
    ) -> bool:
        if not self.partial.dirty:
            return version == floor
        if ceiling is None:
            return True
        return floor <= version < ceiling


@dataclass(frozen=True)
class Constraint:
    """A parsed constraint expression."""

    text: str
    groups: tuple[tuple[_Term, ...], ...]

    @classmethod
    def parse(cls, text: str) -> Constraint:
        """Parse a constraint expression.

        Raises:
            ConstraintError: The expression is malformed.
        """
        if not text.strip():
            raise ConstraintError("empty constraint")

        groups = []
        for raw_group in text.split("||"):
            normalized = _HYPHEN_RE.sub(r">=\1 <=\2", raw_group.strip())
            normalized = _OP_SPACE_RE.sub(r"\1", normalized)
            tokens = [tok for tok in re.split(r"[,\s]+", normalized) if tok]
            if not tokens:
                raise ConstraintError(f"improper constraint {text!r}: empty group")

            terms = []
            for token in tokens:
                match = _TERM_RE.match(token)
                if match is None:  # pragma: no cover - _TERM_RE accepts any non-empty token
                    raise ConstraintError(f"improper constraint {text!r}")
                op, version_text = match.group(1) or "", match.group(2)
                terms.append(_Term(op, _parse_partial(version_text, text)))
            groups.append(tuple(terms))

        return cls(text=text, groups=tuple(groups))

    def check(self, version: semver.Version | str) -> bool:
        """Whether ``version`` satisfies the constraint."""
        if isinstance(version, str):
            version = parse_version(version)
        return any(all(term.matches(version) for term in group) for group in self.groups)

    def __str__(self) -> str:
        return self.text
