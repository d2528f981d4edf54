"""Pytest configuration and fixtures.

This module configures pytest to resolve imports from the repository root and
provides the settings used to synthesize the stack under test.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to Python path so infrastructure imports work
project_dir = Path(__file__).parent.parent
if str(project_dir) not in sys.path:
    sys.path.insert(0, str(project_dir))

from infrastructure.config import Settings  # noqa: E402

TEST_ACCOUNT = "123456789012"
TEST_REGION = "us-east-1"
TEST_CERTIFICATE_ARN = (
    f"arn:aws:acm:{TEST_REGION}:{TEST_ACCOUNT}:certificate/"
    "11111111-2222-3333-4444-555555555555"
)


@pytest.fixture
def stack_settings():
    """Settings independent of the process environment and .env file."""
    return Settings(
        _env_file=None,
        aws_account_id=TEST_ACCOUNT,
        aws_default_region=TEST_REGION,
        app_certificate_arn=TEST_CERTIFICATE_ARN,
        domain_name="divicent.com",
        record_name="app",
        vpc_cidr="10.0.0.0/16",
        node_env="production",
        log_level="INFO",
        app_source_dir=project_dir / "app",
    )
