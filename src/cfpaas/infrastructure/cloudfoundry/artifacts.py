"""Artifact download and push-manifest generation."""

import os
import shutil
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote, urlparse

import requests
import yaml

from cfpaas.domain.application import ApplicationDescriptor
from cfpaas.domain.exceptions import DeploymentError
from cfpaas.infrastructure.logging.logger import get_logger
from cfpaas.utils.archive import resolve_archive_name

logger = get_logger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024
DOWNLOAD_TIMEOUT = (5, 60)


def _artifact_not_found(artifact: str, reason: str, cause: Optional[BaseException] = None) -> DeploymentError:
    return DeploymentError(
        f"Artifact '{artifact}' could not be fetched: {reason}",
        error_code="ARTIFACT_NOT_FOUND",
        details={"artifact": artifact},
        cause=cause,
    )


def fetch_artifact(artifact: str, work_dir: Path) -> Path:
    """
    Make the artifact available as a local file inside ``work_dir``.

    HTTP(S) URLs are downloaded; ``file://`` URLs and plain paths are copied.

    :param artifact: URL or path of the artifact.
    :param work_dir: Scratch directory owned by the caller.
    :return: Path of the local copy.
    :raises DeploymentError: If the artifact cannot be fetched.
    """
    name = resolve_archive_name(artifact) or "artifact"
    target = work_dir / name
    parsed = urlparse(artifact)

    if parsed.scheme in ("http", "https"):
        logger.info("Downloading artifact %s", artifact)
        try:
            with requests.get(artifact, stream=True, timeout=DOWNLOAD_TIMEOUT) as response:
                response.raise_for_status()
                with open(target, "wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
        except requests.exceptions.RequestException as e:
            raise _artifact_not_found(artifact, str(e), e) from e
        return target

    source = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(artifact)
    if not source.exists():
        raise _artifact_not_found(artifact, "no such file or directory")
    if source.is_dir():
        # exploded applications are pushed as directories
        return source
    shutil.copyfile(source, target)
    return target


def build_manifest(descriptor: ApplicationDescriptor, path: Path, domain: Optional[str]) -> dict[str, Any]:
    """Build a push manifest for a single application."""
    app: dict[str, Any] = {
        "name": descriptor.name,
        "path": str(path),
        "memory": f"{descriptor.memory}M",
        "disk_quota": f"{descriptor.disk}M",
        "instances": descriptor.instances,
        "host": descriptor.route_host,
    }
    if domain:
        app["domain"] = domain
    if descriptor.buildpack:
        app["buildpack"] = descriptor.buildpack
    if descriptor.env:
        app["env"] = dict(descriptor.env)
    return {"applications": [app]}


def write_manifest(manifest: dict[str, Any], work_dir: Path) -> Path:
    manifest_path = work_dir / "manifest.yml"
    with open(manifest_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(manifest, f, default_flow_style=False, sort_keys=False)
    logger.debug("Wrote push manifest %s", os.fspath(manifest_path))
    return manifest_path
