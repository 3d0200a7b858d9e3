"""Constraint and token parsing.

Ranges are parsed with ``semantic_version.NpmSpec`` and its clause tree is
flattened into intervals. On top of the npm grammar, dep-style manifests
allow a bare version to mean a caret range, a ``v`` before any version,
``==``/``!=`` and comma-separated comparator lists. Text that is not a
range at all is taken as a plain tag name.
"""

import re
from typing import Iterator, List, Optional, Tuple

import semantic_version
from semantic_version.base import AllOf, Always, AnyOf, Never, Range

from common.errors import InputError
from .constraint import Constraint, Interval, intersect_intervals, normalize_intervals, union_intervals
from .models import ProjectRoot

_WILDCARDS = ("x", "X", "*")
_OPERATOR_CHARS = set("^~<>=!,| ")
_OPERATOR_PREFIXES = ("^", "~", "<", ">", "=")
_SPEC_BLOCK = semantic_version.NpmSpec.Parser.NPM_SPEC_BLOCK

_V_PREFIX_RE = re.compile(r'(?<![0-9A-Za-z.\-])[vV](?=\d)')
_GLUE_RE = re.compile(r'(>=|<=|==|!=|\^|~|>|<|=)\s+')
_HYPHEN_RE = re.compile(r'^\s*(?P<left>\S+)\s+-\s+(?P<right>\S+)\s*$')

_ALL = (Interval(),)


def _npm_clause(expression: str):
    try:
        return semantic_version.NpmSpec(expression).clause
    except ValueError as exc:
        raise InputError(f"Invalid constraint {expression!r}: {exc}") from exc


def _leaves(clause) -> Iterator[Range]:
    if isinstance(clause, (AnyOf, AllOf)):
        for child in clause:
            yield from _leaves(child)
    elif isinstance(clause, Range):
        yield clause


def _complement(intervals: Tuple[Interval, ...]) -> Tuple[Interval, ...]:
    gaps: List[Interval] = []
    lower, lower_inc = None, True
    for iv in intervals:
        if iv.lower is not None:
            gaps.append(Interval(lower, lower_inc, iv.lower, not iv.lower_inclusive))
        if iv.upper is None:
            return normalize_intervals(gaps)
        lower, lower_inc = iv.upper, not iv.upper_inclusive
    gaps.append(Interval(lower, lower_inc, None, False))
    return normalize_intervals(gaps)


def _range_intervals(rng: Range) -> Tuple[Interval, ...]:
    target = rng.target.truncate("prerelease")
    op = rng.operator
    if op == Range.OP_EQ:
        return (Interval.point(target),)
    if op == Range.OP_GT:
        return (Interval(target, False, None, False),)
    if op == Range.OP_GTE:
        return (Interval(target, True, None, False),)
    if op == Range.OP_LT:
        return (Interval(None, True, target, False),)
    if op == Range.OP_LTE:
        return (Interval(None, True, target, True),)
    return _complement((Interval.point(target),))


def _clause_intervals(clause) -> Tuple[Interval, ...]:
    """Flatten an NpmSpec clause tree into normalized intervals."""
    if isinstance(clause, AnyOf):
        result: Tuple[Interval, ...] = ()
        for child in clause:
            result = union_intervals(result, _clause_intervals(child))
        return result
    if isinstance(clause, AllOf):
        result = _ALL
        for child in clause:
            result = intersect_intervals(result, _clause_intervals(child))
        return result
    if isinstance(clause, Range):
        return _range_intervals(clause)
    if isinstance(clause, Always):
        return _ALL
    if isinstance(clause, Never):
        return ()
    raise InputError(f"Unsupported range clause {clause!r}")


def _is_xrange(text: str) -> bool:
    core = re.split(r'[-+]', text, maxsplit=1)[0]
    return any(part in _WILDCARDS for part in core.split("."))


def _npm_block(token: str) -> str:
    # A bare version is a caret range; NpmSpec would read it as exact.
    if token.startswith("=="):
        return token[1:]
    if token.startswith(_OPERATOR_PREFIXES) or _is_xrange(token):
        return token
    return "^" + token


def _group_intervals(group: str) -> Tuple[Tuple[Interval, ...], bool]:
    """Intervals for one ``||`` alternative and whether it names a prerelease."""
    group = _V_PREFIX_RE.sub("", group.replace(",", " "))
    hyphen = _HYPHEN_RE.match(group)
    if hyphen:
        tokens = [f">={hyphen.group('left')}"]
        if hyphen.group("right") not in _WILDCARDS:
            tokens.append(f"<={hyphen.group('right')}")
    else:
        tokens = _GLUE_RE.sub(r"\1", group).split()

    blocks: List[str] = []
    excluded: List[str] = []
    for token in tokens:
        if token.startswith("!="):
            excluded.append(token[2:])
        else:
            blocks.append(_npm_block(token))

    clause = _npm_clause(" ".join(blocks))
    intervals = _clause_intervals(clause)
    prerelease = any(r.target.prerelease for r in _leaves(clause))
    for text in excluded:
        removed = _npm_clause("=" + text)
        intervals = intersect_intervals(intervals, _complement(_clause_intervals(removed)))
        prerelease = prerelease or any(r.target.prerelease for r in _leaves(removed))
    return intervals, prerelease


def _looks_like_range(text: str) -> bool:
    if any(c in _OPERATOR_CHARS for c in text):
        return True
    if text in _WILDCARDS:
        return True
    m = _SPEC_BLOCK.match(_V_PREFIX_RE.sub("", text))
    if m is None:
        return False
    # NpmSpec only allows a prerelease or build suffix on a full version.
    return not ((m.group("prerel") or m.group("build")) and m.group("patch") is None)


def parse_constraint(text: Optional[str]) -> Constraint:
    """Parse constraint text into a canonical Constraint.

    Raises:
        InputError: if the text looks like a range but is malformed.
    """
    if text is None:
        return Constraint.any()
    s = text.strip()
    if s in ("", "*", "any"):
        return Constraint.any()
    if not _looks_like_range(s):
        return Constraint.plain(s)
    intervals: Tuple[Interval, ...] = ()
    allow_prerelease = False
    for group in s.split("||"):
        group_intervals, prerelease = _group_intervals(group)
        intervals = union_intervals(intervals, group_intervals)
        allow_prerelease = allow_prerelease or prerelease
    if not intervals:
        return Constraint.none(f"constraint {s!r} admits no version")
    return Constraint.from_intervals(intervals, allow_prerelease=allow_prerelease)


def constraint_from_fields(
    version: Optional[str] = None,
    branch: Optional[str] = None,
    revision: Optional[str] = None,
) -> Constraint:
    """Build a constraint from manifest-style fields; at most one may be set."""
    given = [k for k, v in (("version", version), ("branch", branch), ("revision", revision)) if v]
    if len(given) > 1:
        raise InputError(f"Only one of version, branch or revision may be set, got {', '.join(given)}")
    if branch:
        return Constraint.branch(branch.strip())
    if revision:
        return Constraint.revision_of(revision.strip())
    return parse_constraint(version)


def tokenize_rightmost_at(s: str) -> Tuple[str, Optional[str]]:
    """Return (identifier, spec or None) using the rightmost-@ rule."""
    s = s.strip()
    if '@' not in s:
        return s, None
    identifier, spec_part = s.rsplit('@', 1)
    spec_part = spec_part.strip()
    return identifier.strip(), spec_part or None


def parse_project_token(token: str) -> Tuple[ProjectRoot, Constraint]:
    """Parse ``root@constraint`` (constraint optional) as given on a command line."""
    identifier, spec = tokenize_rightmost_at(token)
    if not identifier:
        raise InputError(f"Missing project root in {token!r}")
    if spec is not None and spec.lower() == "latest":
        spec = None
    return identifier.rstrip("/"), parse_constraint(spec)
