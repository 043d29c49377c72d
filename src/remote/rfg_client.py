# src/remote/rfg_client.py — v1
"""RealFaviconGenerator API client implementing BaseGenerationClient.

POSTs ``{"favicon_generation": request}``, then downloads the generated
package (a zip) and extracts it into the caller's staging directory.
"""

from __future__ import annotations

import asyncio
import io
import json
import logging
import zipfile
from pathlib import Path
from typing import Any

import httpx

from rfgbuild.core.errors import RemoteServiceError
from rfgbuild.core.models import ArtifactDescriptor, ArtifactSet
from rfgbuild.core.util import mask_string
from rfgbuild.remote.base_client import BaseGenerationClient
from rfgbuild.remote.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://realfavicongenerator.net/api/favicon"


class RfgClient(BaseGenerationClient):
    """HTTP client for the RealFaviconGenerator non-interactive API."""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout_s: float = 60.0,
        retry_configs: dict[str, RetryConfig] | None = None,
        debug: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._retry_configs = retry_configs
        self._debug = debug
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s),
            follow_redirects=True,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def generate(self, request: dict[str, Any], files_dir: Path) -> ArtifactSet:
        payload = {"favicon_generation": request}
        body = await with_retry(
            self._post, payload, operation="generate", retry_configs=self._retry_configs,
        )

        result = body.get("favicon_generation_result") if isinstance(body, dict) else None
        if not isinstance(result, dict):
            raise RemoteServiceError(self._failure_message(request, body, "malformed response"), body)

        try:
            descriptor = ArtifactDescriptor.model_validate(result)
        except ValueError as e:
            raise RemoteServiceError(self._failure_message(request, body, str(e)), body) from e
        if not descriptor.succeeded:
            raise RemoteServiceError(
                self._failure_message(request, body, descriptor.error_message), body
            )

        files_dir.mkdir(parents=True, exist_ok=True)
        files = await self._download_files(descriptor, files_dir)
        logger.info("Generated %d favicon files", len(files))
        return ArtifactSet(descriptor=descriptor, files_dir=files_dir, files=files)

    async def download_preview(self, url: str, target: Path) -> Path | None:
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with self._client.stream("GET", url) as response:
                response.raise_for_status()
                with target.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
        except (httpx.HTTPError, OSError) as e:
            target.unlink(missing_ok=True)
            logger.warning("Unable to download preview %s: %s", url, e)
            return None
        return target

    # --- internals ---

    async def _post(self, payload: dict[str, Any]) -> Any:
        response = await self._client.post(self._api_url, json=payload)
        if response.status_code == 429 or response.status_code >= 500:
            response.raise_for_status()
        try:
            return response.json()
        except ValueError:
            # Non-JSON 4xx bodies carry no usable result.
            response.raise_for_status()
            raise

    async def _get_bytes(self, url: str) -> bytes:
        response = await self._client.get(url)
        response.raise_for_status()
        return response.content

    async def _download_files(self, descriptor: ArtifactDescriptor, files_dir: Path) -> list[str]:
        favicon = descriptor.favicon
        if favicon.package_url:
            data = await with_retry(
                self._get_bytes, favicon.package_url,
                operation="download package", retry_configs=self._retry_configs,
            )
            return await asyncio.to_thread(_extract_package, data, files_dir)

        files: list[str] = []
        for url in favicon.files_urls:
            name = url.rstrip("/").rsplit("/", 1)[-1].split("?", 1)[0]
            data = await with_retry(
                self._get_bytes, url, operation=f"download {name}",
                retry_configs=self._retry_configs,
            )
            (files_dir / name).write_bytes(data)
            if name not in files:
                files.append(name)
        return sorted(files)

    def _failure_message(self, request: dict[str, Any], response: Any, reason: str) -> str:
        if not self._debug:
            return (
                f"The RealFaviconGenerator API request failed ({reason or 'unknown error'}), "
                'enable "debug" in the configuration to display the request and response output.'
            )
        shown = {**request, "api_key": mask_string(request.get("api_key", ""))}
        master = shown.get("master_picture")
        if isinstance(master, dict) and "content" in master:
            shown["master_picture"] = {**master, "content": f"<{len(master['content'])} base64 chars>"}
        return (
            f"[REQUEST]:\n\n{json.dumps(shown, indent=4)}\n\n"
            f"[RESPONSE]:\n\n{json.dumps(response, indent=4, default=str)}"
        )


def _extract_package(data: bytes, files_dir: Path) -> list[str]:
    """Extract a zip package into ``files_dir``, refusing paths that escape it."""
    root = files_dir.resolve()
    names: list[str] = []
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise RemoteServiceError(f"Generated package is not a valid zip archive: {e}") from e
    with archive:
        for member in archive.infolist():
            if member.is_dir():
                continue
            target = (root / member.filename).resolve()
            if root not in target.parents:
                raise RemoteServiceError(f"Refusing package entry outside destination: {member.filename}")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(archive.read(member))
            names.append(target.relative_to(root).as_posix())
    return sorted(names)
