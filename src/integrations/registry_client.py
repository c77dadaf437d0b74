"""
Registry metadata lookup over the OCI distribution API.

Resolves the platform(s) of an image when the push notification does not
carry one: fetches the manifest, then either reads the platforms listed by
an image index or the os/architecture from a single manifest's config blob.
Anonymous bearer tokens and docker config.json credentials are supported.
"""

import base64
import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

from constants import (
    DOCKER_HUB_API_HOST,
    DOCKER_HUB_CONFIG_KEYS,
    DOCKER_HUB_REGISTRY,
    INDEX_MEDIA_TYPES,
    MANIFEST_ACCEPT_HEADER,
    REGISTRY_REQUEST_TIMEOUT,
    UNKNOWN_PLATFORM_VALUE,
)
from core.exceptions import (
    ReferenceNotFoundError,
    RegistryAuthError,
    RegistryLookupError,
    RegistryUnreachableError,
)
from core.models import Platform
from core.platform_interface import PlatformLookup

logger = logging.getLogger(__name__)

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


@dataclass(frozen=True)
class ImageReference:
    """Parsed image reference."""

    registry: str
    repository: str
    identifier: str
    """Tag or digest"""

    @property
    def api_host(self) -> str:
        if self.registry == DOCKER_HUB_REGISTRY:
            return DOCKER_HUB_API_HOST
        return self.registry

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse registry/repository[:tag|@digest].

        Raises:
            ReferenceNotFoundError: If the reference has no registry or repository
        """
        registry, _, remainder = reference.partition("/")
        if not registry or not remainder:
            raise ReferenceNotFoundError(reference, "reference must include registry and repository")

        if "@" in remainder:
            repository, _, identifier = remainder.partition("@")
        else:
            repository, _, identifier = remainder.rpartition(":")
            if not repository:
                repository, identifier = remainder, "latest"

        return cls(registry=registry, repository=repository, identifier=identifier or "latest")


def load_docker_credentials(registry: str, config_path: Optional[Path] = None) -> Optional[tuple[str, str]]:
    """
    Look up basic credentials for a registry in docker config.json.

    Args:
        registry: Registry host as used in image references
        config_path: Explicit config file, defaults to $DOCKER_CONFIG/config.json
            or ~/.docker/config.json

    Returns:
        (username, password) or None if no credentials are stored
    """
    if config_path is None:
        config_dir = os.environ.get("DOCKER_CONFIG")
        config_path = Path(config_dir) / "config.json" if config_dir else Path.home() / ".docker" / "config.json"

    try:
        config = json.loads(config_path.read_text())
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read docker config {config_path}: {e}")
        return None

    auths = config.get("auths") or {}
    keys = [registry, f"https://{registry}"]
    if registry == DOCKER_HUB_REGISTRY:
        keys.extend(DOCKER_HUB_CONFIG_KEYS)

    for key in keys:
        entry = auths.get(key)
        if not entry:
            continue
        if entry.get("username") and entry.get("password"):
            return entry["username"], entry["password"]
        encoded = entry.get("auth")
        if encoded:
            try:
                username, _, password = base64.b64decode(encoded).decode("utf-8").partition(":")
            except (ValueError, UnicodeDecodeError):
                logger.warning(f"Ignoring undecodable credentials for {key} in {config_path}")
                continue
            return username, password
    return None


class RegistryClient(PlatformLookup):
    """
    Minimal distribution API client for platform lookups.
    """

    def __init__(
        self,
        request_timeout: float = REGISTRY_REQUEST_TIMEOUT,
        docker_config_path: Optional[Path] = None,
    ):
        """
        Initialize registry client.

        Args:
            request_timeout: Upper bound for a single HTTP request in seconds
            docker_config_path: docker config.json to read credentials from
        """
        self.request_timeout = request_timeout
        self.docker_config_path = docker_config_path

    def resolve_platforms(
        self,
        reference: str,
        insecure: bool = False,
        timeout: Optional[float] = None,
    ) -> list[Platform]:
        """
        Fetch the platform(s) of an image.

        Raises:
            ReferenceNotFoundError: If the image or its config is unknown
            RegistryAuthError: If the registry rejects the credentials
            RegistryUnreachableError: On network errors, timeouts and server errors
        """
        ref = ImageReference.parse(reference)
        manifest = self._get_json(ref, reference, f"manifests/{ref.identifier}", insecure, timeout, MANIFEST_ACCEPT_HEADER)

        if manifest.get("mediaType") in INDEX_MEDIA_TYPES or "manifests" in manifest:
            platforms = self._index_platforms(manifest)
            if not platforms:
                raise ReferenceNotFoundError(reference, "image index lists no platforms")
            return platforms

        config_digest = (manifest.get("config") or {}).get("digest")
        if not config_digest:
            raise ReferenceNotFoundError(reference, "manifest has no config descriptor")

        config = self._get_json(ref, reference, f"blobs/{config_digest}", insecure, timeout)
        platform = Platform.from_dict(config)
        if platform is None:
            raise ReferenceNotFoundError(reference, "image config has no os/architecture")
        return [platform]

    def _index_platforms(self, index: dict) -> list[Platform]:
        platforms = []
        for descriptor in index.get("manifests") or []:
            platform = Platform.from_dict(descriptor.get("platform") or {})
            # attestation manifests are listed as unknown/unknown
            if platform is None or platform.os == UNKNOWN_PLATFORM_VALUE:
                continue
            if platform not in platforms:
                platforms.append(platform)
        return platforms

    def _get_json(
        self,
        ref: ImageReference,
        reference: str,
        path: str,
        insecure: bool,
        timeout: Optional[float],
        accept: Optional[str] = None,
    ) -> dict:
        """GET a distribution API path and decode the JSON body."""
        url = f"https://{ref.api_host}/v2/{ref.repository}/{path}"
        headers = {"Accept": accept} if accept else {}
        request_timeout = self.request_timeout if timeout is None else min(timeout, self.request_timeout)

        try:
            response = requests.get(url, headers=headers, timeout=request_timeout, verify=not insecure)
            if response.status_code == 401:
                authorization = self._authorize(ref, response, insecure, request_timeout)
                if authorization:
                    headers["Authorization"] = authorization
                    response = requests.get(url, headers=headers, timeout=request_timeout, verify=not insecure)
        except requests.Timeout:
            raise RegistryUnreachableError(reference, f"timeout fetching {path}")
        except requests.RequestException as e:
            raise RegistryUnreachableError(reference, f"error fetching {path}: {e}")

        status = response.status_code
        if status == 404:
            raise ReferenceNotFoundError(reference, f"{path} not found", status)
        if status in (401, 403):
            raise RegistryAuthError(reference, f"access to {path} denied", status)
        if status == 429 or status >= 500:
            raise RegistryUnreachableError(reference, f"registry answered {status} for {path}", status)
        if status >= 400:
            raise RegistryLookupError(reference, f"registry answered {status} for {path}", status)

        try:
            body = response.json()
        except ValueError as e:
            raise RegistryLookupError(reference, f"invalid JSON in {path}: {e}")
        if not isinstance(body, dict):
            raise RegistryLookupError(reference, f"unexpected JSON document in {path}")
        return body

    def _authorize(
        self,
        ref: ImageReference,
        challenge_response: requests.Response,
        insecure: bool,
        timeout: float,
    ) -> Optional[str]:
        """
        Answer a WWW-Authenticate challenge.

        Returns:
            Authorization header value, or None if the challenge cannot be answered
        """
        challenge = challenge_response.headers.get("WWW-Authenticate", "")
        scheme, _, params_text = challenge.partition(" ")
        params = dict(_CHALLENGE_PARAM.findall(params_text))
        credentials = load_docker_credentials(ref.registry, self.docker_config_path)

        if scheme.lower() == "basic":
            if credentials is None:
                return None
            encoded = base64.b64encode(f"{credentials[0]}:{credentials[1]}".encode("utf-8")).decode("ascii")
            return f"Basic {encoded}"

        if scheme.lower() != "bearer" or "realm" not in params:
            logger.debug(f"Unsupported registry auth challenge for {ref.registry}: {challenge!r}")
            return None

        query = {"scope": params.get("scope", f"repository:{ref.repository}:pull")}
        if "service" in params:
            query["service"] = params["service"]

        response = requests.get(
            params["realm"],
            params=query,
            auth=credentials,
            timeout=timeout,
            verify=not insecure,
        )
        if response.status_code != 200:
            logger.debug(f"Token request to {params['realm']} answered {response.status_code}")
            return None

        try:
            token_data = response.json()
        except ValueError:
            return None
        token = token_data.get("token") or token_data.get("access_token")
        return f"Bearer {token}" if token else None


__all__ = ["ImageReference", "RegistryClient", "load_docker_credentials"]
