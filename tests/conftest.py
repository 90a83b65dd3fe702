#
# tests/conftest.py
#

import pytest

from resultbridge.pipeline import IdentityResolver
from resultbridge.protocols import TestIdentifier
from resultbridge.reporting import RecordingSink
from resultbridge.runtime import ResultCorrelator


def ident(label: str) -> TestIdentifier:
    return TestIdentifier.from_label(label)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def auth_tests() -> frozenset[TestIdentifier]:
    return frozenset({ident("auth > login works"), ident("auth > logout works")})


@pytest.fixture
def make_correlator(sink: RecordingSink):
    """Builds a correlator over the given labels, reporting into ``sink``."""

    def _make(*labels: str, **kwargs) -> ResultCorrelator:
        resolver = IdentityResolver({ident(label) for label in labels})
        return ResultCorrelator(resolver, sink, **kwargs)

    return _make


@pytest.fixture
def tests_file(tmp_path):
    path = tmp_path / "tests.txt"
    path.write_text("# discovered tests\nauth > login works\nauth > logout works\n\nbilling > refunds\n", encoding="utf-8")
    return path
