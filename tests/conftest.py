import os
import sys

import pytest

from partint import Polynomial, RealVariable


def pytest_sessionstart(session):  # noqa: D401 - test harness helper
    """Ensure the current Python's bin directory is on PATH for subprocesses.

    The CLI smoke test launches ``python -m partint``; prepend the directory
    of the running interpreter so the 'python' launcher is discoverable.
    """

    bin_dir = os.path.dirname(sys.executable)
    path = os.environ.get("PATH", "")
    if bin_dir and bin_dir not in path.split(os.pathsep):
        os.environ["PATH"] = os.pathsep.join([bin_dir, path]) if path else bin_dir


@pytest.fixture
def x():
    return RealVariable("x", 0.5, 0.0, 1.0)


@pytest.fixture
def y():
    return RealVariable("y", 1.0, 0.0, 2.0)


@pytest.fixture
def z():
    return RealVariable("z", 1.0, 0.0, 3.0)


@pytest.fixture
def f(x):
    # 1 + 2x
    return Polynomial("f", x, [1.0, 2.0])


@pytest.fixture
def g(y):
    # 3y^2
    return Polynomial("g", y, [0.0, 0.0, 3.0])
