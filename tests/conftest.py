import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--run-redundant",
        action="store_true",
        default=False,
        help="Also run parametrizations that repeat covered code paths.",
    )


def pytest_configure(config):
    # read by test modules at collection time
    pytest.run_redundant = config.getoption("--run-redundant")
