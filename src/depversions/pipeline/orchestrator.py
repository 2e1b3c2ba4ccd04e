"""Per-scope coordination of cache, request queue, resolver and classifier."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..common.logging_utils import Timer, extra_context
from ..config import Settings
from ..errors import CancellationError, MalformedInputError
from ..manifest import parse_manifest
from ..registry.base import RegistryFetcher
from ..versioning.classifier import classify
from ..versioning.models import Dependency, DependencyResult, PassResult
from ..versioning.resolver import VersionResolver
from .cache import VersionCache, content_fingerprint
from .cancel import CancelToken
from .request_queue import RequestQueue

logger = logging.getLogger(__name__)

EVENT_RESULT = "result"
EVENT_COMPLETE = "complete"
EVENT_REFRESH = "refresh"
EVENTS = (EVENT_RESULT, EVENT_COMPLETE, EVENT_REFRESH)


@dataclass
class ScopeState:
    """Bookkeeping for one scope (e.g. one open manifest)."""

    active_token: Optional[CancelToken] = None
    fingerprint: Optional[str] = None
    # bumped by every pass that supersedes the previous one
    generation: int = 0


class FetchOrchestrator:
    """Resolves dependency upgrades per scope.

    Each call to ``resolve`` is a pass: it supersedes any pass still running
    for the same scope, serves cache hits immediately and queues the misses.
    Listeners receive a ``result`` event per dependency in completion order, a
    ``complete`` event with the ordered ``PassResult`` once every item has
    settled, and a debounced ``refresh`` event carrying the scope. A pass
    superseded by a newer one for its scope emits no ``complete``; a pass
    cancelled without a successor does, with ``cancelled`` set.
    """

    def __init__(
        self,
        fetcher: RegistryFetcher,
        settings: Optional[Settings] = None,
        cache: Optional[VersionCache] = None,
        queue: Optional[RequestQueue] = None,
    ):
        """Initialize the orchestrator.

        Args:
            fetcher: Registry fetch capability.
            settings: Pipeline settings; defaults when omitted.
            cache: Version cache; built from settings when omitted.
            queue: Request queue; built from settings when omitted.
        """
        self._settings = settings or Settings()
        self._fetcher = fetcher
        self._cache = cache or VersionCache(ttl=self._settings.cache_ttl_ms / 1000)
        self._queue = queue or RequestQueue(
            max_concurrent=self._settings.max_concurrent,
            max_retries=self._settings.max_retries,
            base_delay=self._settings.base_retry_delay_ms / 1000,
        )
        self._resolver = VersionResolver(fetcher, self._settings.prerelease_policy())
        self._scopes: Dict[str, ScopeState] = {}
        self._listeners: Dict[str, List[Callable[[Any], None]]] = {e: [] for e in EVENTS}
        self._refresh_handles: Dict[str, asyncio.TimerHandle] = {}
        self._sweeper: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def cache(self) -> VersionCache:
        return self._cache

    @property
    def queue(self) -> RequestQueue:
        return self._queue

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the periodic cache sweeper."""
        self._loop = asyncio.get_running_loop()
        if self._sweeper is None:
            interval = self._settings.cleanup_interval_ms / 1000
            self._sweeper = asyncio.ensure_future(self._sweep_periodically(interval))

    async def aclose(self) -> None:
        """Cancel all scopes, drop queued work and stop background timers."""
        for scope in list(self._scopes):
            self.cancel_scope(scope)
        self._queue.abort_all()
        for handle in self._refresh_handles.values():
            handle.cancel()
        self._refresh_handles.clear()
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None

    async def __aenter__(self) -> "FetchOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _sweep_periodically(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self._cache.sweep_expired()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, event: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register ``callback`` for ``event`` and return an unsubscribe function."""
        if event not in self._listeners:
            raise ValueError(f"Unknown event: {event}")
        self._listeners[event].append(callback)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners[event].remove(callback)

        return unsubscribe

    def _emit(self, event: str, payload: Any) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.error(
                    "Listener for %s failed",
                    event,
                    exc_info=True,
                    extra=extra_context(event="listener_error", component="orchestrator"),
                )

    def _publish(self, result: DependencyResult) -> None:
        self._emit(EVENT_RESULT, result)
        self._schedule_refresh(result.scope)

    def _schedule_refresh(self, scope: str) -> None:
        if scope in self._refresh_handles:
            return
        loop = asyncio.get_running_loop()
        self._refresh_handles[scope] = loop.call_later(
            self._settings.refresh_debounce_ms / 1000, self._fire_refresh, scope
        )

    def _fire_refresh(self, scope: str) -> None:
        self._refresh_handles.pop(scope, None)
        self._emit(EVENT_REFRESH, scope)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def apply_settings(self, settings: Settings) -> None:
        """Take new settings from the host.

        The pre-release policy and enable gate apply to the next pass. Passes
        still running are cancelled and cached results are dropped, so no
        result computed under the old policy survives. Queue tuning keeps the
        values the queue was built with.

        May be called from another thread while the orchestrator's loop is
        running; the update is then handed over to that loop.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            loop = self._loop
            if loop is not None and loop.is_running():
                loop.call_soon_threadsafe(self._apply_settings, settings)
                return
            self._apply_settings(settings, refresh=False)
            return
        self._apply_settings(settings)

    def _apply_settings(self, settings: Settings, refresh: bool = True) -> None:
        self._settings = settings
        self._resolver = VersionResolver(self._fetcher, settings.prerelease_policy())
        for scope in list(self._scopes):
            self.cancel_scope(scope)
        self._cache.clear()
        logger.info(
            "Settings applied; cache cleared",
            extra=extra_context(event="settings", component="orchestrator", scopes=len(self._scopes)),
        )
        if refresh:
            for scope in list(self._scopes):
                self._schedule_refresh(scope)

    def cancel_scope(self, scope: str) -> bool:
        """Cancel the in-flight pass for ``scope``; True if there was one."""
        state = self._scopes.get(scope)
        if state is None or state.active_token is None:
            return False
        state.active_token.cancel("Scope resolution cancelled")
        state.active_token = None
        return True

    def _supersede(self, scope: str) -> ScopeState:
        state = self._scopes.setdefault(scope, ScopeState())
        if state.active_token is not None:
            state.active_token.cancel("Superseded by a newer resolution pass")
            state.active_token = None
        state.generation += 1
        return state

    def invalidate_scope(self, scope: str) -> int:
        """Drop cached results for ``scope``."""
        return self._cache.invalidate_scope(scope)

    def close_scope(self, scope: str) -> None:
        """Forget ``scope`` entirely (e.g. its document was closed)."""
        self.cancel_scope(scope)
        self._cache.invalidate_scope(scope)
        self._scopes.pop(scope, None)
        handle = self._refresh_handles.pop(scope, None)
        if handle is not None:
            handle.cancel()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_manifest(self, scope: str, text: str, revision: int = 0) -> PassResult:
        """Parse package.json ``text`` and resolve its dependencies.

        A malformed manifest cancels the scope's running pass and yields an
        empty result.
        """
        try:
            dependencies = parse_manifest(text)
        except MalformedInputError as exc:
            logger.warning(
                "Cannot read manifest for %s: %s",
                scope,
                exc,
                extra=extra_context(event="manifest", component="orchestrator", outcome="malformed"),
            )
            self._supersede(scope)
            result = PassResult(scope=scope)
            self._emit(EVENT_COMPLETE, result)
            return result
        return await self.resolve(
            scope, dependencies, fingerprint=content_fingerprint(revision, text)
        )

    async def resolve(
        self,
        scope: str,
        dependencies: Iterable[Dependency],
        fingerprint: Optional[str] = None,
    ) -> PassResult:
        """Run a resolution pass for ``scope``.

        Args:
            scope: Scope identifier.
            dependencies: Dependencies to resolve.
            fingerprint: Content fingerprint of the scope's source; a change
                since the previous pass invalidates the scope's cache.

        Returns:
            PassResult with settled, non-cancelled results in dependency order.
        """
        if not self._settings.enabled:
            result = PassResult(scope=scope)
            self._emit(EVENT_COMPLETE, result)
            return result

        self._loop = asyncio.get_running_loop()
        state = self._supersede(scope)
        generation = state.generation
        token = CancelToken()
        state.active_token = token

        if fingerprint is not None and fingerprint != state.fingerprint:
            self._cache.invalidate_scope(scope)
            state.fingerprint = fingerprint

        deps = tuple(dependencies)
        with Timer() as timer:
            try:
                settled = await asyncio.gather(
                    *(self._resolve_one(scope, dep, token) for dep in deps)
                )
            finally:
                if state.active_token is token:
                    state.active_token = None

        result = PassResult(
            scope=scope,
            results=tuple(r for r in settled if r is not None),
            cancelled=token.cancelled,
        )
        logger.info(
            "Resolved %d/%d dependencies for %s%s",
            len(result.results),
            len(deps),
            scope,
            " (cancelled)" if result.cancelled else "",
            extra=extra_context(
                event="pass_complete",
                component="orchestrator",
                outcome="cancelled" if result.cancelled else "success",
                failures=len(result.failures),
                duration_ms=timer.duration_ms(),
            ),
        )
        # a superseded pass settles silently; the newer pass reports the scope
        if state.generation == generation:
            self._emit(EVENT_COMPLETE, result)
        return result

    async def _resolve_one(
        self, scope: str, dep: Dependency, token: CancelToken
    ) -> Optional[DependencyResult]:
        if token.cancelled:
            return None

        cached = self._cache.get(scope, dep.name, dep.clean_version)
        if cached is not None:
            result = DependencyResult(
                scope=scope,
                dependency=dep,
                upgrades=classify(dep.clean_version, cached),
                info=cached,
                from_cache=True,
            )
            self._publish(result)
            return result

        resolver = self._resolver
        future = self._queue.enqueue(
            lambda: resolver.resolve(dep.name, dep.clean_version, cancel_token=token),
            token,
        )
        try:
            info = await future
        except CancellationError:
            return None
        except Exception as exc:  # pylint: disable=broad-exception-caught
            if token.cancelled:
                return None
            logger.warning(
                "Failed to resolve %s: %s",
                dep.name,
                exc,
                extra=extra_context(
                    event="resolve",
                    component="orchestrator",
                    outcome="error",
                    package=dep.name,
                    attempts=getattr(exc, "attempts", None),
                ),
            )
            result = DependencyResult(scope=scope, dependency=dep, error=exc)
            self._publish(result)
            return result

        if token.cancelled:
            return None
        self._cache.set(scope, dep.name, dep.clean_version, info)
        result = DependencyResult(
            scope=scope,
            dependency=dep,
            upgrades=classify(dep.clean_version, info),
            info=info,
        )
        self._publish(result)
        return result
