"""Configures pytest further."""
import pytest

from rsakit.keygen import PrimeCache


def pytest_addoption(parser):
    parser.addoption("--skip-slow", action="store_true", default=False, help="skip slower tests")
    parser.addoption("--run-extreme", action="store_true", default=False, help="run extreme value extremely slow tests")


def pytest_collection_modifyitems(config, items):
    skipdict = {}
    if config.getoption("--skip-slow"):
        skipdict["slow"] = pytest.mark.skip(reason="Slow test: needs no --skip-slow option")
    if not config.getoption("--run-extreme"):
        skipdict["extreme"] = pytest.mark.skip(reason="Extreme test: needs --run-extreme option")
    if not skipdict:
        return
    for item in items:
        for k, v in skipdict.items():
            if k in item.keywords:
                item.add_marker(v)


@pytest.fixture(autouse=True)
def isolated_state(mocker):
    """Every test starts with an empty process-wide prime cache and a cleared silent flag."""
    mocker.patch("rsakit.keygen.PRIMES_CACHE", PrimeCache())
    mocker.patch("rsakit.config.SILENT", False)
