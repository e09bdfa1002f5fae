"""Functional tests for ``sitewire plan``.

The command reads a TOML site configuration and prints what would be built,
without connecting to anything.
"""

import json
import textwrap

import pytest
from click.testing import CliRunner

from sitewire import __version__
from sitewire.entrypoints.cli.main import sitewire as sitewire_cli

# mypy: disable-error-code=no-untyped-def

FULL_TOML = """
    database = "sqlite://"
    config_store = { theme = "light" }

    [network]
    port = 8080

    [realtime]
    outgoing_transport = true

    [users.server]
    session_ttl = 3600

    [http]
"""


def invoke(*args):
    return CliRunner().invoke(sitewire_cli, ["--no-flight-recorder", *args])


@pytest.fixture
def write_config(tmp_path):
    def write(text: str):
        path = tmp_path / "site.toml"
        path.write_text(textwrap.dedent(text))
        return str(path)

    return write


def test_version():
    result = invoke("--version")
    assert result.exit_code == 0
    assert __version__ in result.output


def test_plan_prints_steps_stages_and_fields(write_config):
    result = invoke("plan", write_config(FULL_TOML))
    assert result.exit_code == 0, result.output
    assert "users_server <- database, realtime, subscriptions, incoming_transport" in result.output
    assert "cookie <- users_server, http" in result.output
    assert "1. database, network" in result.output
    assert "5. cookie" in result.output
    assert "subscription_handler" in result.output


def test_plan_as_json(write_config):
    result = invoke("plan", "--json", write_config(FULL_TOML))
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert [step["subsystem"] for step in data["steps"]] == [
        "database",
        "config_store",
        "network",
        "realtime",
        "subscriptions",
        "incoming_transport",
        "outgoing_transport",
        "users_server",
        "http",
        "cookie",
    ]
    assert data["stages"][0] == ["database", "network"]
    assert "users" in data["fields"]


def test_plan_honours_explicit_opt_outs(write_config):
    result = invoke(
        "plan",
        "--json",
        write_config(
            """
            database = "sqlite://"
            cookie = false
            http = true

            [realtime]
            subscriptions = false

            [users.server]
            """
        ),
    )
    assert result.exit_code == 0, result.output
    fields = json.loads(result.stdout)["fields"]
    assert "subscription_handler" not in fields
    assert "users_server" not in fields
    assert "users" in fields
    assert "cookie" not in fields


def test_plan_for_empty_config(write_config):
    result = invoke("plan", write_config(""))
    assert result.exit_code == 0
    assert "Nothing to build." in result.output


@pytest.mark.parametrize(
    "text, message",
    [
        ("[databse]\nurl = 'sqlite://'\n", "unknown keys: databse"),
        ("[network]\nport = 70000\n", "port must be an integer"),
        ("[http\n", "Invalid configuration"),
    ],
)
def test_plan_reports_bad_configuration(write_config, text, message):
    result = invoke("plan", write_config(text))
    assert result.exit_code == 1
    assert message in result.output


def test_plan_needs_an_existing_file(tmp_path):
    result = invoke("plan", str(tmp_path / "missing.toml"))
    assert result.exit_code == 2
