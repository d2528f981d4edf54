"""Infrastructure for the containerized web application.

This package provides the CDK building blocks of the deployment:
- AppStack: Stack declaring the complete resource graph
- Settings: Deployment configuration loaded from the environment
- build_environment: Target account and region of the stack
"""

from .config import Settings
from .stack import AppStack, build_environment

__all__ = [
    "AppStack",
    "Settings",
    "build_environment",
]
