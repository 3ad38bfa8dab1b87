from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tests.keys import generate_keys
from tests.mockserver import MockServer

if TYPE_CHECKING:
    from collections.abc import Generator


collect_ignore = [
    # not a test, but looks like a test
    "tests/mockserver.py",
]


@pytest.fixture
def mockserver() -> Generator[MockServer]:
    with MockServer() as mockserver:
        yield mockserver


@pytest.fixture
def tls_mockserver() -> Generator[MockServer]:
    with MockServer(tls=True) as mockserver:
        yield mockserver


# Generate localhost certificate files, needed by the TLS tests
generate_keys()
