"""Container image assets built from the application's Dockerfile.

The application image is built by the CDK toolkit from a local Docker build
context. This module locates the Dockerfile, reads the ports it exposes and
hands the context to ``ecs.ContainerImage.from_asset``.
"""

import logging
from pathlib import Path
from typing import Union

from aws_cdk import aws_ecs as ecs

logger = logging.getLogger(__name__)

DOCKERFILE_NAME = "Dockerfile"


def find_dockerfile(source_dir: Union[str, Path]) -> Path:
    """Locate the Dockerfile of a build context.

    Args:
        source_dir: Docker build context directory.

    Returns:
        Path to the Dockerfile.

    Raises:
        FileNotFoundError: If the directory or its Dockerfile does not exist.
    """
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Build context not found: {source_dir}")

    dockerfile = source_dir / DOCKERFILE_NAME
    if not dockerfile.is_file():
        raise FileNotFoundError(f"Dockerfile not found: {dockerfile}")
    return dockerfile


def _instructions(dockerfile: Path) -> list[str]:
    """Split a Dockerfile into logical instructions.

    Lines ending in a backslash are joined with the next line. Comment lines
    are dropped, including those inside a continued instruction.
    """
    instructions: list[str] = []
    pending = ""
    for line in dockerfile.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if stripped.startswith("#"):
            continue
        if stripped.endswith("\\"):
            pending += stripped[:-1] + " "
            continue
        instruction = (pending + stripped).strip()
        pending = ""
        if instruction:
            instructions.append(instruction)
    if pending.strip():
        instructions.append(pending.strip())
    return instructions


def _parse_port_spec(spec: str, dockerfile: Path) -> list[int]:
    # 3000, 3000/tcp, 3000-3005/udp
    port = spec.split("/", 1)[0]
    start, sep, end = port.partition("-")
    if not start.isdigit() or (sep and not end.isdigit()):
        raise ValueError(f"Invalid EXPOSE port in {dockerfile}: {spec}")
    if not sep:
        return [int(start)]
    if int(start) > int(end):
        raise ValueError(f"Invalid EXPOSE port range in {dockerfile}: {spec}")
    return list(range(int(start), int(end) + 1))


def exposed_ports(dockerfile: Union[str, Path]) -> list[int]:
    """Read the ports declared by ``EXPOSE`` instructions.

    Args:
        dockerfile: Path to the Dockerfile.

    Returns:
        Exposed ports in declaration order. A protocol suffix (``3000/tcp``)
        is dropped and ranges (``3000-3005``) are expanded.

    Raises:
        ValueError: If an ``EXPOSE`` argument is not a port number or range.
    """
    dockerfile = Path(dockerfile)
    ports: list[int] = []
    for instruction in _instructions(dockerfile):
        tokens = instruction.split()
        if tokens[0].upper() != "EXPOSE":
            continue
        for token in tokens[1:]:
            ports.extend(_parse_port_spec(token, dockerfile))
    return ports


def container_image_from_source(
    source_dir: Union[str, Path], container_port: int
) -> ecs.ContainerImage:
    """Create a container image asset from a local build context.

    Args:
        source_dir: Docker build context directory.
        container_port: Port the task definition maps for the container.

    Returns:
        Container image built by the CDK toolkit at deploy time.
    """
    dockerfile = find_dockerfile(source_dir)
    ports = exposed_ports(dockerfile)
    if container_port not in ports:
        logger.warning(
            f"Container port {container_port} is not exposed by {dockerfile} "
            f"(exposed: {ports})"
        )

    logger.debug(f"Using build context {source_dir} for the application image")
    return ecs.ContainerImage.from_asset(str(source_dir))
