"""
Pytest configuration and shared fixtures for stackwright tests.
"""

import pytest
from moto import mock_aws

from fakes import EMPTY_TEMPLATE, T0, FakeCloudFormationClient
from stackwright.stacks.inputs import ApplyStackInput, DeleteStackInput, TemplateSource


@pytest.fixture
def mock_aws_services():
    """Mock all AWS services used by the application."""
    with mock_aws():
        yield


@pytest.fixture
def client():
    """Scripted CloudFormation client whose sleep advances its poll cycle."""
    return FakeCloudFormationClient()


@pytest.fixture
def operation_kwargs(client):
    """Keyword arguments that keep operations off the wall clock."""
    return {
        'sleep': client.sleep,
        'clock': lambda: T0,
    }


@pytest.fixture
def apply_input():
    return ApplyStackInput(
        stack_name="my-stack",
        template_source=TemplateSource.inline(EMPTY_TEMPLATE),
    )


@pytest.fixture
def delete_input():
    return DeleteStackInput(stack_name="my-stack")
