# src/pipeline/orchestrator.py — v2
"""Favicon generation pipeline.

Workflow:
    1. Resolve configuration (defaults, config files, inline options, source)
    2. Fingerprint the request and look it up in the cache
    3. On miss or expiry: call the remote service and store the result
    4. Reconcile the destination directory from the cache entry
    5. Resolve deferred icon paths in generated manifests
    6. Inject markup (and resolve icon paths) in every configured HTML file

The fingerprint lock is held from lookup through reconciliation, so a cache
entry is never rewritten while it is being copied out.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Sequence

from rfgbuild.cache.base_cache_store import BaseCacheStore
from rfgbuild.cache.cache_factory import create_cache_store
from rfgbuild.cache.expiry import cache_enabled, is_expired
from rfgbuild.cache.fingerprint import compute_fingerprint
from rfgbuild.config.discovery import ConfigSource
from rfgbuild.config.options import PluginOptions
from rfgbuild.config.resolver import ConfigResolver
from rfgbuild.config.settings import Settings, load_settings
from rfgbuild.config.source import resolve_source
from rfgbuild.core.errors import InjectionError
from rfgbuild.core.models import (
    ArtifactDescriptor,
    ArtifactSet,
    Asset,
    GenerationResult,
    ResolvedConfig,
)
from rfgbuild.core.util import is_url, relative_path
from rfgbuild.logging.context import new_run_context, set_fingerprint, set_step
from rfgbuild.markup.injector import MarkupInjector
from rfgbuild.markup.path_tokens import PathTokenRewriter
from rfgbuild.remote.base_client import BaseGenerationClient
from rfgbuild.remote.retry import build_retry_configs
from rfgbuild.storage import layout
from rfgbuild.storage.reconciler import ArtifactReconciler
from rfgbuild.tracking.progress import ProgressObserver, ProgressTracker
from rfgbuild.watch.reconciler import WatchReconciler
from rfgbuild.watch.session import PollingWatchBackend, WatchBackend, WatchSession, WatchState

logger = logging.getLogger(__name__)


class FaviconGenerator:
    """One favicon bundle: options, cache, remote client and watch session."""

    def __init__(
        self,
        options: PluginOptions | None = None,
        settings: Settings | None = None,
        *,
        client: BaseGenerationClient | None = None,
        cache_store: BaseCacheStore | None = None,
        observer: ProgressObserver | None = None,
        extra_sources: Sequence[ConfigSource] = (),
        watch_backend: WatchBackend | None = None,
    ) -> None:
        self.options = options or PluginOptions()
        self.settings = settings or load_settings()
        self.progress = ProgressTracker(observer)
        self.assets: list[Asset] = []
        self.result: GenerationResult | None = None

        self._resolver = ConfigResolver(self.options, self.settings, extra_sources)
        self._client = client
        self._owns_client = client is None
        self._cache = cache_store
        self._reconciler = ArtifactReconciler(self.progress)
        self._injector = MarkupInjector()
        self._watch_backend = watch_backend
        self._watcher: WatchReconciler | None = None
        self._run_lock = asyncio.Lock()

        # Per-run memoization.
        self._resolved: ResolvedConfig | None = None
        self._fingerprint: str | None = None

    # --- collaborators ---

    @property
    def client(self) -> BaseGenerationClient:
        if self._client is None:
            from rfgbuild.remote.rfg_client import RfgClient

            self._client = RfgClient(
                api_url=self.settings.api_url,
                timeout_s=self.settings.request_timeout_s,
                retry_configs=build_retry_configs(
                    self.settings.max_retries, self.settings.retry_base_delay_s
                ),
                debug=self.options.debug,
            )
        return self._client

    @property
    def cache(self) -> BaseCacheStore:
        if self._cache is None:
            self._cache = create_cache_store(self.settings)
        return self._cache

    @property
    def destination(self) -> Path:
        return Path(self.options.dest).resolve()

    @property
    def is_watching(self) -> bool:
        return self._watcher is not None and self._watcher.state is not WatchState.IDLE

    # --- configuration ---

    def resolve_config(self) -> ResolvedConfig:
        if self._resolved is None:
            self._resolved = self._resolver.resolve()
        return self._resolved

    def fingerprint(self) -> str:
        if self._fingerprint is None:
            self._fingerprint = compute_fingerprint(self.resolve_config().request)
        return self._fingerprint

    # --- entry points ---

    async def run(self) -> GenerationResult | None:
        """Generate once, unless a watch session already drives generation."""
        if self.is_watching:
            return None
        return await self.generate()

    async def generate(self) -> GenerationResult:
        """Run the full pipeline once.

        Raises:
            ConfigurationError, SourceNotFoundError: Invalid setup.
            RemoteServiceError: The remote service failed.
            CacheWriteError: The cache entry could not be written.
        """
        async with self._run_lock:
            new_run_context()
            self.progress.reset()
            self.assets = []
            self._resolved = None
            self._fingerprint = None
            try:
                self.result = await self._generate()
            except Exception as e:
                await self.progress.fail(str(e))
                raise
            finally:
                set_step(None)
            return self.result

    async def _generate(self) -> GenerationResult:
        set_step("config")
        await self.progress.advance("Discovering configuration")
        resolved = self.resolve_config()
        self.progress.raise_floor(20)
        await self.progress.advance("Processing configuration", resolved.config_files)

        set_step("artifacts")
        fingerprint, descriptor, cache_hit = await self._obtain_artifacts(resolved)

        set_step("manifests")
        self.progress.raise_floor(80)
        await self._process_manifests(resolved)

        set_step("html")
        self.progress.raise_floor(90)
        failed = await self._process_html(resolved, descriptor)

        preview: Path | None = None
        if descriptor.preview_file_name:
            candidate = self.destination / descriptor.preview_file_name
            preview = candidate if candidate.is_file() else None

        await self.progress.done("Generated favicons", relative_path(self.destination))
        return GenerationResult(
            fingerprint=fingerprint,
            descriptor=descriptor,
            destination=self.destination,
            cache_hit=cache_hit,
            assets=list(self.assets),
            failed_files=failed,
            preview_file=preview,
        )

    # --- artifacts ---

    async def _obtain_artifacts(
        self, resolved: ResolvedConfig
    ) -> tuple[str, ArtifactDescriptor, bool]:
        fingerprint = self.fingerprint()
        set_fingerprint(fingerprint)
        policy = self.options.cache

        if not cache_enabled(policy):
            # No cache reads or writes: stage in a temp dir, reconcile, drop.
            staging = Path(tempfile.mkdtemp(prefix="rfgbuild-"))
            try:
                artifacts = await self._request(resolved, staging / layout.FILES_DIR)
                await self._download_preview(artifacts)
                await self._reconcile(artifacts.files_dir)
            finally:
                await asyncio.to_thread(shutil.rmtree, staging, ignore_errors=True)
            return fingerprint, artifacts.descriptor, False

        await self.progress.advance("Checking for cached response", fingerprint)
        async with self.cache.lock(fingerprint):
            entry = await self.cache.lookup(fingerprint)
            cache_hit = entry is not None and not is_expired(entry, policy)
            if entry is not None and cache_hit:
                self.progress.raise_floor(50)
                await self.progress.report(
                    self.progress.percent, "Found cached response", relative_path(entry.descriptor_path)
                )
            else:
                if entry is not None:
                    logger.info("Cached response %s expired", fingerprint[:12])
                staging = self.cache.staging_area(fingerprint)
                try:
                    artifacts = await self._request(resolved, layout.files_dir(staging))
                    await self._download_preview(artifacts)
                    entry = await self.cache.store(fingerprint, artifacts)
                finally:
                    await self.cache.discard(staging)

            await self._reconcile(entry.files_dir)
        return fingerprint, entry.descriptor, cache_hit

    async def _request(self, resolved: ResolvedConfig, files_dir: Path) -> ArtifactSet:
        self.progress.raise_floor(50)
        await self.progress.report(self.progress.percent, "Generating favicons", force=True)
        return await self.client.generate(resolved.request, files_dir)

    async def _download_preview(self, artifacts: ArtifactSet) -> None:
        descriptor = artifacts.descriptor
        name = descriptor.preview_file_name
        if not descriptor.preview_picture_url or not name:
            return
        saved = await self.client.download_preview(
            descriptor.preview_picture_url, Path(artifacts.files_dir) / name
        )
        if saved is not None and name not in artifacts.files:
            artifacts.files.append(name)

    async def _reconcile(self, files_dir: Path) -> None:
        await self.progress.advance("Cleaning", relative_path(self.destination))
        self.progress.raise_floor(70)
        self.assets.extend(await self._reconciler.apply(files_dir, self.destination))

    # --- consumer files ---

    def _manifest_files(self) -> list[Path]:
        found: list[Path] = []
        for pattern in self.options.manifest_files:
            for path in sorted(self.destination.rglob(pattern)):
                if path.is_file() and path not in found:
                    found.append(path)
        return found

    async def _process_manifests(self, resolved: ResolvedConfig) -> None:
        if resolved.icons_path_resolver is None:
            return
        rewriter = PathTokenRewriter(resolved.icons_path_resolver)
        files = self._manifest_files()
        for index, path in enumerate(files):
            await self.progress.report(
                self.progress.step_percentage(len(files), index),
                "Processing manifest file",
                relative_path(path),
            )
            await rewriter.rewrite_file(path, "manifest")

    async def _process_html(
        self, resolved: ResolvedConfig, descriptor: ArtifactDescriptor
    ) -> list[str]:
        """Patch every configured HTML file; unbalanced markers skip that file only."""
        rewriter = (
            PathTokenRewriter(resolved.icons_path_resolver)
            if resolved.icons_path_resolver is not None
            else None
        )
        files = [Path(f).resolve() for f in self.options.html_files]
        failed: list[str] = []

        for index, path in enumerate(files):
            await self.progress.report(
                self.progress.step_percentage(len(files), index),
                "Processing HTML file",
                relative_path(path),
            )
            if not path.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text("", encoding="utf-8")

            original = await asyncio.to_thread(path.read_text, encoding="utf-8")
            try:
                content = self._injector.inject(
                    original,
                    descriptor.favicon.html_code,
                    keep=self.options.keep,
                    remove_tags=descriptor.favicon.overlapping_markups,
                )
            except InjectionError as e:
                logger.error("Skipping HTML file %s: %s", relative_path(path), e)
                failed.append(str(path))
                continue

            if rewriter is not None:
                content = await rewriter.rewrite(content, path, "html")
            if content != original:
                await asyncio.to_thread(path.write_text, content, encoding="utf-8")
            self.assets.append(Asset.from_path(path))

        return failed

    # --- watch mode ---

    async def watch(self) -> bool:
        """Start watching the favicon source. False if disabled or already watching."""
        if self._watcher is not None or not self.options.watch:
            return False

        source = resolve_source(self.options.src, cwd=self.options.src_cwd)
        if is_url(source):
            logger.warning("Favicon source %s is a URL, not watching", source)
            return False

        backend = self._watch_backend or PollingWatchBackend(self.settings.watch_poll_interval_s)
        session = WatchSession(Path(source), backend)
        self._watcher = WatchReconciler(
            session, regenerate=self.generate, clean=self.clean_destination
        )
        return self._watcher.start(ignore_initial=self.destination.exists())

    async def stop_watching(self) -> None:
        if self._watcher is None:
            return
        await self._watcher.stop()
        self._watcher = None

    async def wait_idle(self) -> None:
        """Wait until no watch-triggered run is in flight."""
        if self._watcher is not None:
            await self._watcher.wait_idle()

    async def clean_destination(self) -> None:
        await self._reconciler.clear(self.destination)
        await self.progress.done("Cleaned", relative_path(self.destination))

    async def aclose(self) -> None:
        await self.stop_watching()
        if self._owns_client and self._client is not None:
            await self._client.aclose()

    async def __aenter__(self) -> FaviconGenerator:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()
