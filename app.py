#!/usr/bin/env python3
"""CDK App entry point for the application infrastructure."""

import logging

import aws_cdk as cdk

from infrastructure.config import settings
from infrastructure.stack import AppStack, build_environment

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = cdk.App()

AppStack(
    app,
    "InfraStack",
    settings=settings,
    env=build_environment(app, settings),
    description="Containerized web application on ECS behind an HTTPS load balancer",
)

app.synth()
