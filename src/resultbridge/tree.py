# src/resultbridge/tree.py

"""
In-memory test tree built from canonical hierarchical labels.
"""

from collections.abc import Iterable
from pathlib import Path

import structlog

from resultbridge.exceptions import TestTreeError
from resultbridge.protocols import DEFAULT_LABEL_SEPARATOR, TestIdentifier, TestTree
from resultbridge.telemetry import StructLogger

log: StructLogger = structlog.get_logger("tree")


class StaticTestTree(TestTree):
    """A read-only set of discoverable tests."""

    def __init__(self, identifiers: Iterable[TestIdentifier], separator: str = DEFAULT_LABEL_SEPARATOR):
        self.separator = separator
        self._identifiers = frozenset(identifiers)

    @classmethod
    def from_labels(cls, labels: Iterable[str], separator: str = DEFAULT_LABEL_SEPARATOR) -> "StaticTestTree":
        identifiers = []
        for label in labels:
            label = label.strip()
            if not label or label.startswith("#"):
                continue
            identifiers.append(TestIdentifier.from_label(label, separator))
        return cls(identifiers, separator)

    @classmethod
    def from_file(cls, path: Path, separator: str = DEFAULT_LABEL_SEPARATOR) -> "StaticTestTree":
        """Reads one label per line; blank lines and ``#`` comments are skipped."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise TestTreeError(f"Cannot read tests file '{path}': {e}") from e
        tree = cls.from_labels(text.splitlines(), separator)
        log.debug("Loaded test tree", path=str(path), tests=len(tree))
        return tree

    def __len__(self) -> int:
        return len(self._identifiers)

    def __iter__(self):
        return iter(sorted(self._identifiers))

    def identifiers_for(self, selection: Iterable[str] | None = None) -> frozenset[TestIdentifier]:
        if selection is None:
            return self._identifiers
        chosen: set[TestIdentifier] = set()
        for wanted in selection:
            prefix = TestIdentifier.from_label(wanted, self.separator).components
            matched = {
                identifier
                for identifier in self._identifiers
                if identifier.components[: len(prefix)] == prefix
            }
            if not matched:
                log.warning("Selection matches no test in the tree", selection=wanted)
            chosen |= matched
        return frozenset(chosen)

# 🔼⚙️
