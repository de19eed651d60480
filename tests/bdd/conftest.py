"""
Shared fixtures and step definitions for BDD tests.

- runner, mock_booking, mock_holds, context: available to all scenario files in this directory
- no_logging: autouse, prevents log file creation during tests
- 'the output contains' step: shared across all feature files
"""

import pytest
from datetime import date
from unittest.mock import patch
from click.testing import CliRunner
from pytest_bdd import then, parsers


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_booking():
    with patch("bookyr.cli.main.booking") as mock:
        yield mock


@pytest.fixture
def mock_holds():
    with patch("bookyr.cli.main.holds") as mock:
        yield mock


@pytest.fixture
def mock_load_identity():
    with patch("bookyr.cli.main.permissions.load_identity") as mock:
        yield mock


@pytest.fixture
def fixed_today():
    with patch("bookyr.engine.timeline.local_today", return_value=date(2025, 7, 10)):
        yield


@pytest.fixture
def context():
    """Mutable dict shared between Given/When/Then steps within a scenario."""
    return {}


@pytest.fixture(autouse=True)
def no_logging():
    with patch("bookyr.cli.main.configure_logging"):
        yield


@then(parsers.parse('the output contains "{text}"'))
def output_contains(context, text):
    assert text in context["result"].output, (
        f"Expected {text!r} in output:\n{context['result'].output}"
    )


@then(parsers.parse('the output does not contain "{text}"'))
def output_does_not_contain(context, text):
    assert text not in context["result"].output, (
        f"Did not expect {text!r} in output:\n{context['result'].output}"
    )
