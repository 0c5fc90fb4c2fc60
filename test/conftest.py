from collections.abc import Iterator
import sys

import pytest

from .console import Console


@pytest.fixture
def console() -> Iterator[Console]:
    console = Console(sys.stdout, verbose=True)
    yield console
    if console.failed_assertions:
        pytest.fail(f'{console.failed_assertions} failed assertion(s)')
