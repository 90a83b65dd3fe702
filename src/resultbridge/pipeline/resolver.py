# src/resultbridge/pipeline/resolver.py

"""
Maps raw runner labels to the test identifiers requested for a run.

Matching is tried in order: exact canonical label, whitespace-normalized
label, then the leaf name as a trailing component of the label. A suffix match
is only accepted when exactly one requested identifier's leaf trails the raw
label; two or more candidates are a resolution failure, never a guess.
"""

import re
from collections import defaultdict
from collections.abc import Iterable

import attrs
import structlog

from resultbridge.protocols import DEFAULT_LABEL_SEPARATOR, TestIdentifier
from resultbridge.telemetry import StructLogger

log: StructLogger = structlog.get_logger("pipeline.resolver")

_WHITESPACE_RE = re.compile(r"\s+")
# Hierarchy separator runners put between a suite name and what follows it.
_TRAILING_SEPARATOR_RE = re.compile(r"(?:\s*(?:>|›|»|::|/|\|)\s*|\s+[-–—]\s+)$")


def normalize_label(label: str) -> str:
    return _WHITESPACE_RE.sub(" ", label).strip()


@attrs.define(frozen=True, slots=True)
class Resolution:
    """Outcome of resolving one label."""

    identifier: TestIdentifier | None
    strategy: str
    candidates: tuple[TestIdentifier, ...] = ()

    @property
    def matched(self) -> bool:
        return self.identifier is not None

    @property
    def ambiguous(self) -> bool:
        return len(self.candidates) > 1


class IdentityResolver:
    """
    Read-only label index over one run's requested identifiers.

    The index is built once and never mutated, so a resolver may be shared
    by concurrent runs over the same request.
    """

    def __init__(
        self,
        identifiers: Iterable[TestIdentifier],
        separator: str = DEFAULT_LABEL_SEPARATOR,
    ):
        self.identifiers = frozenset(identifiers)
        self.separator = separator
        exact: dict[str, TestIdentifier] = {}
        normalized: dict[str, list[TestIdentifier]] = defaultdict(list)
        leaves: list[tuple[TestIdentifier, str]] = []
        for identifier in sorted(self.identifiers):
            label = identifier.label(separator)
            exact[label] = identifier
            normalized[normalize_label(label)].append(identifier)
            leaves.append((identifier, normalize_label(identifier.leaf)))
        self._exact = exact
        self._normalized = {key: tuple(value) for key, value in normalized.items()}
        self._leaves = tuple(leaves)
        log.debug("Identity resolver index built", identifiers=len(self.identifiers))

    def resolve(self, raw_label: str) -> Resolution:
        identifier = self._exact.get(raw_label)
        if identifier is not None:
            return Resolution(identifier, "exact", (identifier,))

        candidates = self._normalized.get(normalize_label(raw_label), ())
        if len(candidates) == 1:
            return Resolution(candidates[0], "normalized", candidates)
        if candidates:
            return self._failure(raw_label, "normalized", candidates)

        return self._resolve_suffix(raw_label)

    def _resolve_suffix(self, raw_label: str) -> Resolution:
        raw = normalize_label(raw_label)
        candidates = tuple(identifier for identifier, leaf in self._leaves if _leaf_trails(raw, leaf))
        if len(candidates) == 1:
            return Resolution(candidates[0], "suffix", candidates)
        return self._failure(raw_label, "suffix", candidates)

    def _failure(self, raw_label: str, strategy: str, candidates: tuple[TestIdentifier, ...]) -> Resolution:
        if candidates:
            log.warning(
                "Ambiguous test label left unresolved",
                raw_label=raw_label,
                strategy=strategy,
                candidates=[str(candidate) for candidate in candidates],
            )
        else:
            log.warning("Test label matches no requested test", raw_label=raw_label)
        return Resolution(None, strategy, candidates)


def _leaf_trails(raw: str, leaf: str) -> bool:
    """True when ``leaf`` is the whole of ``raw`` or its last separated component."""
    if raw == leaf:
        return True
    if not raw.endswith(leaf):
        return False
    return _TRAILING_SEPARATOR_RE.search(raw[: -len(leaf)]) is not None

# 🔼⚙️
