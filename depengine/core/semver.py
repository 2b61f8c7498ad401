"""npm-compatible semantic versioning for depengine.

Registry versions and ``package.json`` ranges follow npm's semver dialect
rather than PEP 440, so this module implements that dialect directly:

- :class:`SemVer`: a ``MAJOR.MINOR.PATCH[-PRERELEASE][+BUILD]`` value with
  SemVer 2.0.0 precedence.
- :class:`Range`: ``||``-separated comparator sets, desugared from caret
  (``^``), tilde (``~``), X-range (``1.x``, ``*``) and hyphen
  (``1.2.3 - 2.0.0``) forms into primitive ``<``, ``<=``, ``>``, ``>=`` and
  exact comparators.

The module-level helpers (:func:`satisfies`, :func:`intersects`,
:func:`min_version`, ...) are total: malformed input never raises, it simply
yields ``False`` / ``None`` so callers can branch on declaration quality.

Typical usage::

    >>> satisfies("1.2.0", "^1.0.0")
    True
    >>> str(min_version(">=14"))
    '14.0.0'
    >>> intersects("^1.0.0 <=1.2.0", ">1.2.0")
    False
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import List, Optional, Sequence, Tuple, Union

__all__ = [
    "SemVer",
    "Comparator",
    "Range",
    "parse_version",
    "is_valid_version",
    "is_prerelease",
    "compare",
    "major",
    "minor",
    "parse_range",
    "is_valid_range",
    "valid_range",
    "is_wildcard_range",
    "satisfies",
    "min_version",
    "intersects",
    "with_upper_bound",
]

Identifier = Union[int, str]
VersionLike = Union[str, "SemVer"]

_IDENTS = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"

_VERSION_RE = re.compile(
    rf"^\s*[v=]*\s*(\d+)\.(\d+)\.(\d+)(?:-({_IDENTS}))?(?:\+({_IDENTS}))?\s*$"
)

_PARTIAL_RE = re.compile(
    rf"^[v=]*(\d+|[xX*])"
    rf"(?:\.(\d+|[xX*])"
    rf"(?:\.(\d+|[xX*])(?:-({_IDENTS}))?(?:\+{_IDENTS})?)?)?$"
)

_TOKEN_RE = re.compile(r"^(~>|~|\^|<=|>=|<|>|=)?(.+)$")
_HYPHEN_RE = re.compile(r"^\s*(\S+)\s+-\s+(\S+)\s*$")
_OPERATOR_GAP_RE = re.compile(r"(~>|~|\^|<=|>=|<|>|=)\s+")
_ALTERNATIVE_SPLIT_RE = re.compile(r"\s*\|\|\s*")


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------


def _parse_identifiers(text: Optional[str]) -> Tuple[Identifier, ...]:
    if not text:
        return ()
    return tuple(int(part) if part.isdigit() else part for part in text.split("."))


def _identifier_key(identifier: Identifier) -> Tuple[int, int, str]:
    # Numeric identifiers always have lower precedence than alphanumeric ones.
    if isinstance(identifier, int):
        return (0, identifier, "")
    return (1, 0, identifier)


@total_ordering
@dataclass(frozen=True, eq=False)
class SemVer:
    """A parsed semantic version.

    Build metadata is kept for display but ignored for precedence and
    equality, as SemVer 2.0.0 requires.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        prerelease: Dot-separated pre-release identifiers; numeric ones
            are stored as ``int``.
        build: Build metadata identifiers.
    """

    major: int
    minor: int
    patch: int
    prerelease: Tuple[Identifier, ...] = ()
    build: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "SemVer":
        """Parse *text*, tolerating a leading ``v``/``=`` and whitespace.

        Raises:
            ValueError: *text* is not a semantic version.
        """
        if not isinstance(text, str):
            raise ValueError(f"Invalid version: {text!r}")
        match = _VERSION_RE.match(text)
        if not match:
            raise ValueError(f"Invalid version: {text!r}")
        major_s, minor_s, patch_s, pre, build = match.groups()
        return cls(
            int(major_s),
            int(minor_s),
            int(patch_s),
            _parse_identifiers(pre),
            tuple(build.split(".")) if build else (),
        )

    @property
    def release(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def _key(self) -> Tuple[int, int, int, bool, Tuple[Tuple[int, int, str], ...]]:
        # A release sorts above every pre-release of the same tuple.
        return (
            self.major,
            self.minor,
            self.patch,
            not self.prerelease,
            tuple(_identifier_key(i) for i in self.prerelease),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(str(i) for i in self.prerelease)
        return text


def _coerce(version: VersionLike) -> Optional[SemVer]:
    if isinstance(version, SemVer):
        return version
    try:
        return SemVer.parse(version)
    except ValueError:
        return None


def parse_version(version: VersionLike) -> Optional[SemVer]:
    """Return the parsed version, or ``None`` when *version* is malformed."""
    return _coerce(version)


def is_valid_version(version: VersionLike) -> bool:
    return _coerce(version) is not None


def is_prerelease(version: VersionLike) -> bool:
    """Return ``True`` for a valid version carrying pre-release identifiers."""
    parsed = _coerce(version)
    return parsed is not None and parsed.is_prerelease


def compare(a: VersionLike, b: VersionLike) -> int:
    """Compare two versions, returning ``-1``, ``0`` or ``1``.

    Malformed versions sort below every valid one and equal to each other.
    """
    left, right = _coerce(a), _coerce(b)
    if left is None or right is None:
        return (left is not None) - (right is not None)
    return (left > right) - (left < right)


def major(version: VersionLike) -> Optional[int]:
    parsed = _coerce(version)
    return parsed.major if parsed else None


def minor(version: VersionLike) -> Optional[int]:
    parsed = _coerce(version)
    return parsed.minor if parsed else None


# ---------------------------------------------------------------------------
# Comparators
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Comparator:
    """A primitive comparison against one version.

    ``operator`` is one of ``""`` (exact), ``"<"``, ``"<="``, ``">"`` or
    ``">="``.  A comparator whose ``semver`` is ``None`` matches anything.
    """

    operator: str
    semver: Optional[SemVer]

    @property
    def is_any(self) -> bool:
        return self.semver is None

    def test(self, version: SemVer) -> bool:
        if self.semver is None:
            return True
        if self.operator == "":
            return version == self.semver
        if self.operator == "<":
            return version < self.semver
        if self.operator == "<=":
            return version <= self.semver
        if self.operator == ">":
            return version > self.semver
        return version >= self.semver

    def __str__(self) -> str:
        if self.semver is None:
            return "*"
        return f"{self.operator}{self.semver}"


ANY = Comparator("", None)

ComparatorSet = Tuple[Comparator, ...]


@dataclass(frozen=True)
class _Partial:
    major: Optional[int]
    minor: Optional[int]
    patch: Optional[int]
    prerelease: Tuple[Identifier, ...] = ()


def _parse_partial(text: str) -> _Partial:
    match = _PARTIAL_RE.match(text)
    if not match:
        raise ValueError(f"Invalid version in range: {text!r}")

    parts: List[Optional[int]] = [
        None if raw is None or raw in ("x", "X", "*") else int(raw)
        for raw in match.groups()[:3]
    ]

    # Anything after the first wildcard component is a wildcard too.
    for index, value in enumerate(parts):
        if value is None:
            parts[index:] = [None] * (len(parts) - index)
            break

    prerelease = _parse_identifiers(match.group(4)) if parts[2] is not None else ()
    return _Partial(parts[0], parts[1], parts[2], prerelease)


def _v(major_: int, minor_: int, patch_: int, prerelease: Tuple[Identifier, ...] = ()) -> SemVer:
    return SemVer(major_, minor_, patch_, prerelease)


_FLOOR: Tuple[Identifier, ...] = (0,)


def _x_range(operator: str, partial: _Partial) -> List[Comparator]:
    if operator == "=":
        operator = ""

    if partial.major is None:
        if operator in ("<", ">"):
            # Nothing is below or above everything.
            return [Comparator("<", _v(0, 0, 0, _FLOOR))]
        return [ANY]

    if partial.patch is not None:
        full = _v(partial.major, partial.minor or 0, partial.patch, partial.prerelease)
        return [Comparator(operator, full)]

    major_, minor_ = partial.major, partial.minor
    minor_is_wild = minor_ is None

    if operator == "":
        if minor_is_wild:
            return [
                Comparator(">=", _v(major_, 0, 0)),
                Comparator("<", _v(major_ + 1, 0, 0, _FLOOR)),
            ]
        return [
            Comparator(">=", _v(major_, minor_, 0)),
            Comparator("<", _v(major_, minor_ + 1, 0, _FLOOR)),
        ]

    if operator == ">":
        if minor_is_wild:
            return [Comparator(">=", _v(major_ + 1, 0, 0))]
        return [Comparator(">=", _v(major_, minor_ + 1, 0))]

    if operator == "<=":
        if minor_is_wild:
            return [Comparator("<", _v(major_ + 1, 0, 0, _FLOOR))]
        return [Comparator("<", _v(major_, minor_ + 1, 0, _FLOOR))]

    if operator == "<":
        return [Comparator("<", _v(major_, minor_ or 0, 0, _FLOOR))]

    return [Comparator(">=", _v(major_, minor_ or 0, 0))]


def _tilde(partial: _Partial) -> List[Comparator]:
    if partial.major is None:
        return [ANY]
    if partial.minor is None:
        return [
            Comparator(">=", _v(partial.major, 0, 0)),
            Comparator("<", _v(partial.major + 1, 0, 0, _FLOOR)),
        ]
    lower_patch = partial.patch if partial.patch is not None else 0
    return [
        Comparator(">=", _v(partial.major, partial.minor, lower_patch, partial.prerelease)),
        Comparator("<", _v(partial.major, partial.minor + 1, 0, _FLOOR)),
    ]


def _caret(partial: _Partial) -> List[Comparator]:
    major_, minor_, patch_ = partial.major, partial.minor, partial.patch
    if major_ is None:
        return [ANY]
    if minor_ is None:
        return [
            Comparator(">=", _v(major_, 0, 0)),
            Comparator("<", _v(major_ + 1, 0, 0, _FLOOR)),
        ]
    if patch_ is None:
        upper = _v(major_, minor_ + 1, 0, _FLOOR) if major_ == 0 else _v(major_ + 1, 0, 0, _FLOOR)
        return [Comparator(">=", _v(major_, minor_, 0)), Comparator("<", upper)]

    # Only the left-most non-zero component may change.
    if major_ != 0:
        upper = _v(major_ + 1, 0, 0, _FLOOR)
    elif minor_ != 0:
        upper = _v(0, minor_ + 1, 0, _FLOOR)
    else:
        upper = _v(0, 0, patch_ + 1, _FLOOR)
    return [
        Comparator(">=", _v(major_, minor_, patch_, partial.prerelease)),
        Comparator("<", upper),
    ]


def _hyphen(lower_text: str, upper_text: str) -> List[Comparator]:
    lower, upper = _parse_partial(lower_text), _parse_partial(upper_text)
    comparators: List[Comparator] = []

    if lower.major is not None:
        comparators.append(
            Comparator(
                ">=",
                _v(lower.major, lower.minor or 0, lower.patch or 0, lower.prerelease),
            )
        )

    if upper.major is not None:
        if upper.minor is None:
            comparators.append(Comparator("<", _v(upper.major + 1, 0, 0, _FLOOR)))
        elif upper.patch is None:
            comparators.append(Comparator("<", _v(upper.major, upper.minor + 1, 0, _FLOOR)))
        else:
            comparators.append(
                Comparator("<=", _v(upper.major, upper.minor, upper.patch, upper.prerelease))
            )

    return comparators or [ANY]


def _parse_token(token: str) -> List[Comparator]:
    match = _TOKEN_RE.match(token)
    if not match:
        raise ValueError(f"Invalid comparator: {token!r}")
    operator, version_text = match.groups()
    partial = _parse_partial(version_text)

    if operator in ("~", "~>"):
        return _tilde(partial)
    if operator == "^":
        return _caret(partial)
    return _x_range(operator or "", partial)


def _parse_alternative(text: str) -> ComparatorSet:
    hyphen = _HYPHEN_RE.match(text)
    if hyphen:
        comparators = _hyphen(*hyphen.groups())
    else:
        collapsed = _OPERATOR_GAP_RE.sub(r"\1", text.strip())
        # An empty alternative ("1.0.0 ||") admits everything.
        comparators = []
        for token in collapsed.split():
            comparators.extend(_parse_token(token))

    concrete = [c for c in comparators if not c.is_any]
    return tuple(concrete) if concrete else (ANY,)


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------


class Range:
    """A parsed npm version range.

    Args:
        raw: Range expression as written in ``package.json``.

    Raises:
        ValueError: *raw* is empty or not a valid range expression.
    """

    def __init__(self, raw: str) -> None:
        if not isinstance(raw, str) or not raw.strip():
            raise ValueError("Empty version range")
        self.raw = raw
        self.sets: List[ComparatorSet] = [
            _parse_alternative(alternative)
            for alternative in _ALTERNATIVE_SPLIT_RE.split(raw.strip())
        ]

    @property
    def is_any(self) -> bool:
        """``True`` when the range admits every version (``*``, ``x``, ...)."""
        return any(all(c.is_any for c in comparators) for comparators in self.sets)

    def test(self, version: VersionLike, *, include_prerelease: bool = False) -> bool:
        parsed = _coerce(version)
        if parsed is None:
            return False
        return any(
            _test_set(comparators, parsed, include_prerelease)
            for comparators in self.sets
        )

    def __str__(self) -> str:
        if self.is_any:
            return str(ANY)
        return "||".join(" ".join(str(c) for c in comparators) for comparators in self.sets)

    def __repr__(self) -> str:
        return f"Range({self.raw!r})"


def _test_set(
    comparators: Sequence[Comparator],
    version: SemVer,
    include_prerelease: bool,
) -> bool:
    if not all(c.test(version) for c in comparators):
        return False

    if version.is_prerelease and not include_prerelease:
        # A pre-release only matches when the range opts into pre-releases
        # of that exact major.minor.patch tuple.
        return any(
            c.semver is not None
            and c.semver.is_prerelease
            and c.semver.release == version.release
            for c in comparators
        )

    return True


def parse_range(text: str) -> Optional[Range]:
    """Return the parsed range, or ``None`` when *text* is not a valid range."""
    try:
        return Range(text)
    except ValueError:
        return None


def is_valid_range(text: str) -> bool:
    return parse_range(text) is not None


def valid_range(text: str) -> Optional[str]:
    """Return the normalized comparator form of *text*, or ``None``.

    Example::

        >>> valid_range("^1.2.3")
        '>=1.2.3 <2.0.0-0'
    """
    parsed = parse_range(text)
    return str(parsed) if parsed is not None else None


def is_wildcard_range(text: str) -> bool:
    parsed = parse_range(text)
    return parsed is not None and parsed.is_any


def satisfies(
    version: VersionLike,
    range_text: str,
    *,
    include_prerelease: bool = False,
) -> bool:
    """Return ``True`` if *version* falls inside *range_text*.

    Malformed versions or ranges never satisfy anything.
    """
    parsed = parse_range(range_text)
    if parsed is None:
        return False
    return parsed.test(version, include_prerelease=include_prerelease)


def min_version(range_text: str) -> Optional[SemVer]:
    """Return the lowest version *range_text* admits, or ``None``.

    ``None`` is returned for malformed ranges and for ranges that admit
    nothing at all.

    Example::

        >>> str(min_version("^1.2.3 || >=0.5.0 <0.6.0"))
        '0.5.0'
    """
    parsed = parse_range(range_text)
    if parsed is None:
        return None

    for floor in (_v(0, 0, 0), _v(0, 0, 0, _FLOOR)):
        if parsed.test(floor):
            return floor

    lowest: Optional[SemVer] = None
    for comparators in parsed.sets:
        set_floor: Optional[SemVer] = None
        for comparator in comparators:
            candidate = comparator.semver
            if candidate is None or comparator.operator in ("<", "<="):
                continue
            if comparator.operator == ">":
                if candidate.is_prerelease:
                    candidate = _v(*candidate.release, candidate.prerelease + (0,))
                else:
                    candidate = _v(candidate.major, candidate.minor, candidate.patch + 1)
            if set_floor is None or candidate > set_floor:
                set_floor = candidate
        if set_floor is not None and (lowest is None or set_floor < lowest):
            lowest = set_floor

    if lowest is not None and parsed.test(lowest):
        return lowest
    return None


# ---------------------------------------------------------------------------
# Intersection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Bound:
    version: SemVer
    inclusive: bool


def _tighter_lower(current: Optional[_Bound], candidate: _Bound) -> _Bound:
    if current is None or candidate.version > current.version:
        return candidate
    if candidate.version == current.version and not candidate.inclusive:
        return candidate
    return current


def _tighter_upper(current: Optional[_Bound], candidate: _Bound) -> _Bound:
    if current is None or candidate.version < current.version:
        return candidate
    if candidate.version == current.version and not candidate.inclusive:
        return candidate
    return current


def _is_satisfiable(comparators: Sequence[Comparator]) -> bool:
    lower: Optional[_Bound] = None
    upper: Optional[_Bound] = None

    for comparator in comparators:
        if comparator.semver is None:
            continue
        op = comparator.operator
        if op in ("", ">=", ">"):
            lower = _tighter_lower(lower, _Bound(comparator.semver, op != ">"))
        if op in ("", "<=", "<"):
            upper = _tighter_upper(upper, _Bound(comparator.semver, op != "<"))

    if lower is None or upper is None:
        return True
    if lower.version < upper.version:
        return True
    return lower.version == upper.version and lower.inclusive and upper.inclusive


def intersects(range_a: str, range_b: str) -> bool:
    """Return ``True`` if some version could satisfy both ranges.

    Each comparator set is treated as an interval; two ranges intersect
    when any pair of their sets has a non-empty overlap.  Malformed ranges
    intersect nothing.
    """
    left, right = parse_range(range_a), parse_range(range_b)
    if left is None or right is None:
        return False
    return any(
        _is_satisfiable(set_a + set_b) for set_a in left.sets for set_b in right.sets
    )


# ---------------------------------------------------------------------------
# Range construction
# ---------------------------------------------------------------------------


def with_upper_bound(range_text: str, version: VersionLike) -> str:
    """Cap every alternative of *range_text* at ``<=version``.

    A single plain alternative keeps its original text (``"^1.0.0"`` →
    ``"^1.0.0 <=1.2.0"``).  Hyphen alternatives cannot take an extra
    comparator, so they are rewritten in comparator form first, and
    wildcard alternatives collapse to the bare ceiling.

    Raises:
        ValueError: *range_text* is not a valid range.
    """
    parsed = Range(range_text)
    ceiling = f"<={version}"
    alternatives = _ALTERNATIVE_SPLIT_RE.split(range_text.strip())

    capped: List[str] = []
    for raw, comparators in zip(alternatives, parsed.sets):
        if all(c.is_any for c in comparators):
            capped.append(ceiling)
        elif _HYPHEN_RE.match(raw):
            capped.append(" ".join(str(c) for c in comparators) + f" {ceiling}")
        else:
            capped.append(f"{raw.strip()} {ceiling}")

    return " || ".join(capped)
