"""Global pytest fixtures for SITEWIRE."""

pytest_plugins = [
    "tests.fixtures.sqlite",
    "tests.fixtures.fakes",
    "tests.fixtures.web",
]
