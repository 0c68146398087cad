"""Pipeline orchestration for sync, documentation and source lifecycle flows."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional, Sequence, Union

from . import __version__
from .collisions import CollisionResolution, resolve_collisions
from .config import SpecbindConfig, load_config, save_config
from .errors import (
    ConfigError,
    IncompatiblePluginError,
    PluginGenerationError,
    SyncCancelledError,
    describe_error,
)
from .events import ProgressChannel, Status, Step
from .logging import get_logger
from .models import ResourceDescriptor, RestData, Schema, SourceConfig, Tab
from .openapi.descriptors import build_descriptors
from .openapi.resolver import SpecResolver, SpecResolverProtocol
from .plugins import discover_plugins
from .plugins.base import (
    BuildContext,
    GeneratorContext,
    GeneratorPlugin,
    InitContext,
    InitResult,
    SourceContext,
    options_schema,
    plugin_hook,
)
from .plugins.compat import satisfies
from .stats import StatsCounter

CancelSignal = Union[asyncio.Event, threading.Event]

_OPTION_TYPES: Dict[str, tuple] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
}


@dataclass
class SyncResult:
    """Outcome of one sync invocation.

    ``errors`` maps a source id to the error attached to its failing step; a
    configuration-level failure is recorded under the empty id.
    """

    success: bool
    stats: Dict[str, Dict[str, int]] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)


@dataclass
class _ActivePlugin:
    name: str
    plugin: GeneratorPlugin
    options: Dict[str, Any]


class _RunState:
    """Cancellation bookkeeping shared by the source tasks of one run."""

    def __init__(self) -> None:
        self.cancel_reason: Optional[str] = None


def validate_options(plugin_name: str, schema: Mapping[str, Mapping[str, Any]], options: Mapping[str, Any]) -> Dict[str, Any]:
    """Check ``options`` against a plugin's option schema and fill in defaults."""
    unknown = sorted(set(options) - set(schema))
    if unknown and schema:
        raise ConfigError(f"Unknown option(s) for generator '{plugin_name}': {', '.join(unknown)}")
    resolved: Dict[str, Any] = {} if schema else dict(options)
    for name, rule in schema.items():
        if name in options:
            value = options[name]
            expected = str(rule.get("type", "")) or None
            types = _OPTION_TYPES.get(expected or "")
            if types is not None and (not isinstance(value, types) or (expected != "boolean" and isinstance(value, bool))):
                raise ConfigError(
                    f"Option '{name}' of generator '{plugin_name}' must be of type {expected}, got {type(value).__name__}"
                )
            resolved[name] = value
        elif "default" in rule:
            resolved[name] = rule["default"]
        elif rule.get("required"):
            raise ConfigError(f"Option '{name}' of generator '{plugin_name}' is required")
    return resolved


class Orchestrator:
    """Runs the sync pipeline and the plugin lifecycle hooks around it.

    The orchestrator is the only writer of the progress channel. Sources are
    independent units of work; plugins sharing an output directory never run
    at the same time.
    """

    def __init__(
        self,
        resolver: SpecResolverProtocol | None = None,
        plugins: Optional[Mapping[str, GeneratorPlugin]] = None,
        *,
        core_version: str = __version__,
        plugin_loader: Callable[[Sequence[str]], Dict[str, GeneratorPlugin]] = discover_plugins,
    ) -> None:
        self._resolver = resolver
        self._plugin_overrides = dict(plugins) if plugins is not None else None
        self._plugin_loader = plugin_loader
        self.core_version = core_version
        self.logger = get_logger("orchestrator")
        self._latest_stats: Dict[str, Dict[str, int]] = {}
        self._stats_lock = threading.Lock()
        self._root_locks: Dict[Path, threading.Lock] = {}
        self._root_locks_guard = threading.Lock()

    # ------------------------------------------------------------------ sync

    def run_sync(
        self,
        config: SpecbindConfig,
        channel: ProgressChannel | None = None,
        *,
        cancel_event: CancelSignal | None = None,
        source_id: str | None = None,
        timeout: float | None = None,
    ) -> SyncResult:
        """Blocking wrapper around :meth:`sync`."""
        return asyncio.run(
            self.sync(
                config,
                channel or ProgressChannel(),
                cancel_event=cancel_event,
                source_id=source_id,
                timeout=timeout,
            )
        )

    async def sync(
        self,
        config: SpecbindConfig,
        channel: ProgressChannel,
        cancel_event: CancelSignal | None = None,
        source_id: str | None = None,
        *,
        timeout: float | None = None,
    ) -> SyncResult:
        """Run the pipeline for every configured source (or only ``source_id``).

        Exactly one terminal event is emitted on ``channel``, after every
        source reached a terminal state.
        """
        self.logger.info("Starting sync for %s", config.root)
        result = SyncResult(success=True)

        channel.status(Status.STARTED, "", Step.RESOLVING_CONFIG)
        try:
            plugins = self._resolve_plugins(config)
            sources = self._select_sources(config, source_id)
        except Exception as exc:
            self.logger.error("Configuration failed: %s", exc)
            self.logger.debug("Configuration failure details", exc_info=True)
            channel.status(Status.ERROR, "", Step.RESOLVING_CONFIG, error=describe_error(exc))
            channel.done(False)
            return SyncResult(success=False, errors={"": describe_error(exc)})
        channel.status(
            Status.SUCCESS,
            "",
            Step.RESOLVING_CONFIG,
            info=f"{len(sources)} source(s), generator(s): {', '.join(p.name for p in plugins)}",
        )

        state = _RunState()
        resolver = self._resolver or SpecResolver(base_dir=config.root)
        work = asyncio.ensure_future(
            self._run_sources(config, sources, plugins, resolver, channel, state, result)
        )
        effective_timeout = timeout if timeout is not None else config.timeout
        await self._supervise(work, cancel_event, effective_timeout, state)

        result.success = not result.errors
        if result.stats:
            self.logger.info("Generation stats: %s", _format_totals(result.stats))
        self.logger.info("Sync finished: %s", "success" if result.success else "failed")
        channel.done(result.success)
        return result

    async def _supervise(
        self,
        work: "asyncio.Future[None]",
        cancel_event: CancelSignal | None,
        timeout: float | None,
        state: _RunState,
    ) -> None:
        watcher = asyncio.ensure_future(_wait_for_signal(cancel_event)) if cancel_event is not None else None
        waiting = {work} if watcher is None else {work, watcher}
        try:
            done, _ = await asyncio.wait(waiting, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
            if work not in done:
                if watcher is not None and watcher in done:
                    state.cancel_reason = "Sync cancelled"
                else:
                    state.cancel_reason = f"Sync timed out after {timeout:g}s"
                self.logger.warning("%s; stopping active sources", state.cancel_reason)
                work.cancel()
            await asyncio.gather(work, return_exceptions=True)
        finally:
            if watcher is not None:
                watcher.cancel()

    async def _run_sources(
        self,
        config: SpecbindConfig,
        sources: Sequence[SourceConfig],
        plugins: Sequence[_ActivePlugin],
        resolver: SpecResolverProtocol,
        channel: ProgressChannel,
        state: _RunState,
        result: SyncResult,
    ) -> None:
        if config.concurrency <= 1:
            for source in sources:
                await self._process_source(config, source, plugins, resolver, channel, state, result)
            return

        semaphore = asyncio.Semaphore(config.concurrency)

        async def _bounded(source: SourceConfig) -> None:
            async with semaphore:
                await self._process_source(config, source, plugins, resolver, channel, state, result)

        tasks = [asyncio.ensure_future(_bounded(source)) for source in sources]
        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _process_source(
        self,
        config: SpecbindConfig,
        source: SourceConfig,
        plugins: Sequence[_ActivePlugin],
        resolver: SpecResolverProtocol,
        channel: ProgressChannel,
        state: _RunState,
        result: SyncResult,
    ) -> None:
        counter = StatsCounter(source.id)
        try:
            document = await self._step(
                channel, source, Step.FETCHING_SPEC, state, lambda: asyncio.to_thread(resolver.resolve, source.spec_url)
            )
            descriptors = await self._step(
                channel, source, Step.BUILDING_DESCRIPTORS, state, lambda: build_descriptors(document, source.id)
            )
            resolution = await self._step(
                channel,
                source,
                Step.RESOLVING_CONFLICTS,
                state,
                lambda: resolve_collisions(descriptors, source_id=source.id),
            )
            await self._step(
                channel,
                source,
                Step.GENERATING,
                state,
                lambda: self._generate_all(config, source, descriptors, resolution, plugins, counter, state),
            )
        except asyncio.CancelledError:
            result.errors[source.id] = describe_error(SyncCancelledError(state.cancel_reason or "Sync cancelled"))
            raise
        except Exception as exc:
            self.logger.error("Source %s failed: %s", source.id, describe_error(exc))
            self.logger.debug("Failure details for source %s", source.id, exc_info=True)
            result.errors[source.id] = describe_error(exc)
        finally:
            snapshot = counter.snapshot()
            result.stats[source.id] = snapshot
            with self._stats_lock:
                self._latest_stats[source.id] = snapshot

    async def _step(
        self,
        channel: ProgressChannel,
        source: SourceConfig,
        step: Step,
        state: _RunState,
        action: Callable[[], Any],
    ) -> Any:
        channel.status(Status.STARTED, source.id, step)
        try:
            value = action()
            if inspect.isawaitable(value):
                value = await value
        except asyncio.CancelledError:
            reason = SyncCancelledError(state.cancel_reason or "Sync cancelled", source_id=source.id)
            channel.status(Status.ERROR, source.id, step, error=describe_error(reason))
            raise
        except Exception as exc:
            channel.status(Status.ERROR, source.id, step, error=describe_error(exc))
            raise
        channel.status(Status.SUCCESS, source.id, step)
        return value

    async def _generate_all(
        self,
        config: SpecbindConfig,
        source: SourceConfig,
        descriptors: Sequence[ResourceDescriptor[Any]],
        resolution: CollisionResolution,
        plugins: Sequence[_ActivePlugin],
        counter: StatsCounter,
        state: _RunState,
    ) -> None:
        failures: List[PluginGenerationError] = []
        for active in plugins:
            root_dir = self._root_dir(config, active)
            context = GeneratorContext(
                root_dir=root_dir,
                source=source,
                stats_counter=counter,
                potentially_conflicting_operation_ids=resolution.conflicting_operation_ids,
                collisions=resolution,
                options=dict(active.options),
                sources=tuple(config.sources),
            )
            async with self._hold_root(root_dir):
                self.logger.debug("Running generator %s for %s into %s", active.name, source.id, root_dir)
                try:
                    await _invoke_generate(active.plugin, list(descriptors), context, state)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    error = PluginGenerationError(active.name, describe_error(exc), source_id=source.id)
                    error.__cause__ = exc
                    self.logger.error("%s", error)
                    self.logger.debug("Generator %s traceback", active.name, exc_info=exc)
                    failures.append(error)
                    continue
            self.logger.debug(
                "Generator %s for %s: %d file(s) written, %d unchanged",
                active.name,
                source.id,
                len(context.written),
                len(context.unchanged),
            )
        if len(failures) == 1:
            raise failures[0]
        if failures:
            raise PluginGenerationError(
                ", ".join(failure.plugin_name for failure in failures),
                "; ".join(str(failure) for failure in failures),
                source_id=source.id,
            )

    # --------------------------------------------------------- configuration

    def _resolve_plugins(self, config: SpecbindConfig) -> List[_ActivePlugin]:
        if not config.generators:
            raise ConfigError("No generator configured")
        if self._plugin_overrides is not None:
            missing = [name for name in config.generators if name not in self._plugin_overrides]
            if missing:
                raise ConfigError(f"Unknown generator plugins requested: {', '.join(missing)}")
            instances = {name: self._plugin_overrides[name] for name in config.generators}
        else:
            instances = self._plugin_loader(config.generators)

        active: List[_ActivePlugin] = []
        for name, plugin in instances.items():
            meta = plugin.meta()
            try:
                compatible = satisfies(self.core_version, meta.compat)
            except ValueError as exc:
                raise ConfigError(f"Plugin '{meta.name}' declares an invalid compat range: {exc}") from exc
            if not compatible:
                raise IncompatiblePluginError(meta.name, meta.compat, self.core_version)
            options = validate_options(name, options_schema(plugin), config.options_for(name))
            self.logger.info("Using generator %s (%s %s)", name, meta.name, meta.version)
            active.append(_ActivePlugin(name=name, plugin=plugin, options=options))
        return active

    @staticmethod
    def _select_sources(config: SpecbindConfig, source_id: str | None) -> List[SourceConfig]:
        if source_id is None:
            return list(config.sources)
        return [config.source(source_id)]

    @staticmethod
    def _root_dir(config: SpecbindConfig, active: _ActivePlugin) -> Path:
        return config.output_path / active.plugin.meta().generator

    @contextlib.asynccontextmanager
    async def _hold_root(self, root_dir: Path) -> AsyncIterator[None]:
        """Serialize generators writing into ``root_dir`` across every run of this orchestrator.

        The lock is a thread lock polled from the event loop so that runs on
        different loops (``run_sync`` starts a fresh one per call) exclude each
        other too.
        """
        key = root_dir.resolve()
        with self._root_locks_guard:
            lock = self._root_locks.setdefault(key, threading.Lock())
        while not lock.acquire(blocking=False):
            await asyncio.sleep(0.01)
        try:
            yield
        finally:
            lock.release()

    def latest_stats(self, source_id: str) -> Optional[Dict[str, int]]:
        """Snapshot recorded for ``source_id`` by the most recent sync, if any."""
        with self._stats_lock:
            snapshot = self._latest_stats.get(source_id)
        return dict(snapshot) if snapshot is not None else None

    # --------------------------------------------------------- documentation

    def documentation(self, config: SpecbindConfig, source_id: str, descriptor_id: str) -> List[Tab]:
        """Documentation tabs for one descriptor from every configured plugin."""
        source = config.source(source_id)
        resolver = self._resolver or SpecResolver(base_dir=config.root)
        descriptors = build_descriptors(resolver.resolve(source.spec_url), source.id)
        descriptor = next((item for item in descriptors if item.id == descriptor_id), None)
        if descriptor is None:
            raise KeyError(f"Descriptor '{descriptor_id}' not found in source '{source_id}'")

        tabs: List[Tab] = []
        for active in self._resolve_plugins(config):
            if isinstance(descriptor.data, RestData):
                tabs.extend(active.plugin.get_endpoint_documentation(descriptor))
            elif isinstance(descriptor.data, Schema):
                tabs.extend(active.plugin.get_schema_documentation(descriptor))
        return tabs

    def descriptors(self, config: SpecbindConfig, source_id: str) -> List[ResourceDescriptor[Any]]:
        source = config.source(source_id)
        resolver = self._resolver or SpecResolver(base_dir=config.root)
        return build_descriptors(resolver.resolve(source.spec_url), source.id)

    # ------------------------------------------------------------- lifecycle

    def init_project(self, config: SpecbindConfig) -> List[InitResult]:
        """Run every plugin's ``init`` hook, then the collected ``post_init`` callbacks."""
        results: List[InitResult] = []
        for active in self._resolve_plugins(config):
            hook = plugin_hook(active.plugin, "init")
            if hook is None:
                continue
            self.logger.debug("Initializing generator %s", active.name)
            outcome = hook(InitContext(root_dir=config.root, sources=tuple(config.sources), options=active.options))
            if isinstance(outcome, InitResult):
                results.append(outcome)
        for outcome in results:
            if outcome.post_init is not None:
                outcome.post_init()
        return results

    def add_source(
        self, config_path: Path, source: SourceConfig, *, server_url: str | None = None
    ) -> SpecbindConfig:
        """Append ``source`` to the project configuration and notify plugins."""
        config = load_config(config_path)
        if config.has_source(source.id):
            raise ConfigError(f"Source '{source.id}' already exists")
        config.sources.append(source)
        save_config(config)
        self.logger.info("Added source %s", source.id)
        for active in self._resolve_plugins(config):
            hook = plugin_hook(active.plugin, "add_source")
            if hook is not None:
                hook(SourceContext(root_dir=config.root, source=source, options=active.options, server_url=server_url))
        return config

    def remove_source(self, config_path: Path, source_id: str) -> SpecbindConfig:
        """Remove a source from the configuration; unknown ids are a no-op."""
        config = load_config(config_path)
        if not config.has_source(source_id):
            self.logger.info("Source %s is not configured; nothing to remove", source_id)
            return config
        source = config.source(source_id)
        config.sources = [item for item in config.sources if item.id != source_id]
        save_config(config)
        with self._stats_lock:
            self._latest_stats.pop(source_id, None)
        self.logger.info("Removed source %s", source_id)
        for active in self._resolve_plugins(config):
            hook = plugin_hook(active.plugin, "remove_source")
            if hook is not None:
                hook(SourceContext(root_dir=config.root, source=source, options=active.options))
        return config

    def post_build(self, config: SpecbindConfig) -> None:
        for active in self._resolve_plugins(config):
            hook = plugin_hook(active.plugin, "post_build")
            if hook is not None:
                hook(BuildContext(root_dir=config.root, sources=tuple(config.sources), options=active.options))


async def _invoke_generate(
    plugin: GeneratorPlugin,
    descriptors: List[ResourceDescriptor[Any]],
    context: GeneratorContext,
    state: _RunState,
) -> None:
    generate = plugin.generate
    if inspect.iscoroutinefunction(generate):
        try:
            await generate(descriptors, context)
        except asyncio.CancelledError:
            context.cancel(state.cancel_reason or "Sync cancelled")
            raise
        return
    worker = asyncio.ensure_future(asyncio.to_thread(generate, descriptors, context))
    try:
        outcome = await asyncio.shield(worker)
    except asyncio.CancelledError:
        # The thread cannot be interrupted; flag it and wait until it stops writing.
        context.cancel(state.cancel_reason or "Sync cancelled")
        await _drain(worker)
        raise
    if inspect.isawaitable(outcome):
        await outcome


async def _drain(worker: "asyncio.Future[Any]") -> None:
    while not worker.done():
        try:
            await asyncio.shield(worker)
        except asyncio.CancelledError:
            continue
        except Exception:
            break
    if not worker.cancelled() and worker.exception() is not None:
        error = worker.exception()
        get_logger("orchestrator").debug("Generator stopped after cancellation: %s", describe_error(error))


async def _wait_for_signal(signal: CancelSignal) -> None:
    if isinstance(signal, asyncio.Event):
        await signal.wait()
        return
    while not signal.is_set():
        await asyncio.sleep(0.05)


def _format_totals(stats: Mapping[str, Mapping[str, int]]) -> str:
    parts = []
    for source_id in sorted(stats):
        counts = ", ".join(f"{name}={value}" for name, value in sorted(stats[source_id].items()))
        parts.append(f"{source_id}[{counts or '-'}]")
    return " ".join(parts)


__all__ = ["Orchestrator", "SyncResult", "validate_options"]
