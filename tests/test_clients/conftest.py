"""Fixtures for the service client tests."""

from unittest.mock import Mock

import pytest


@pytest.fixture
def boto_client():
    """Mock boto3 client handed out by the client manager."""
    return Mock()


@pytest.fixture
def aws_client_manager(boto_client):
    """Mock AWSClientManager returning boto_client for every service."""
    manager = Mock()
    manager.get_client.return_value = boto_client
    return manager
