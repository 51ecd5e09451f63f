"""
The controller's top-level orchestration: login, watchers, the queue, workers.

Every watched resource kind is routed separately: its events feed the local
cache of the objects, then are filtered, mapped to the keys of the affected
AddonConfigs, and put into the work queue. The queue's workers run one
reconciliation cycle per key and schedule the next one as directed.
"""
import asyncio
import dataclasses
import logging
from collections.abc import Sequence

from addonctrl._cogs.clients import auth, stores, watching
from addonctrl._cogs.configs import configuration
from addonctrl._cogs.structs import bodies, credentials, references
from addonctrl._core.actions import payloads
from addonctrl._core.intents import filters, piggybacking, states
from addonctrl._core.reactor import queueing, reconciling

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Route:
    resource: references.Resource
    admits: filters.EventFilter
    keys: filters.KeysMapper


ROUTES: Sequence[Route] = (
    Route(references.ADDON_CONFIGS, filters.admits_any_event, filters.keys_for_config),
    Route(references.MANAGED_CLUSTERS, filters.admits_any_event, filters.keys_for_cluster),
    Route(references.CLUSTER_ADDONS, filters.admits_addon_event, filters.keys_for_addon),
)


async def watch_route(
        *,
        route: Route,
        settings: configuration.OperatorSettings,
        cache: stores.CachedObjectStore,
        queue: queueing.WorkQueue,
        context: auth.APIContext | None = None,
) -> None:
    async for raw_event in watching.infinite_watch(
        settings=settings, resource=route.resource, context=context,
    ):
        # The objects gone while disconnected are seen as deleted, but with no events.
        if raw_event is watching.Bookmark.LISTED:
            raw_events: list[bodies.RawEvent] = [
                {'type': 'DELETED', 'object': body} for body in cache.relisted(route.resource)
            ]
        else:
            cache.observe(route.resource, raw_event)
            raw_events = [raw_event]

        for event in raw_events:
            if route.admits(event):
                for key in route.keys(event['object']):
                    queue.add(key)


def run(
        *,
        settings: configuration.OperatorSettings | None = None,
        workers: int | None = None,
) -> None:
    """
    Run the whole controller synchronously, until interrupted.
    """
    try:
        asyncio.run(operator(settings=settings, workers=workers))
    except asyncio.CancelledError:
        pass


async def operator(
        *,
        settings: configuration.OperatorSettings | None = None,
        workers: int | None = None,
        routes: Sequence[Route] = ROUTES,
) -> None:
    settings = settings if settings is not None else configuration.OperatorSettings()
    info = piggybacking.login(logger=logger)
    async with auth.APIContext(info) as context:
        auth.context_var.set(context)

        upstream = stores.APIObjectStore(settings=settings, context=context)
        cache = stores.CachedObjectStore(upstream, resources=[route.resource for route in routes])
        builder = payloads.DefaultPayloadBuilder(store=upstream, settings=settings)
        reconciler = reconciling.Reconciler(store=cache, settings=settings, builder=builder)
        queue = queueing.WorkQueue(settings=settings)

        logger.info(f"Starting the controller with {len(routes)} watched resources.")
        watchers = [
            asyncio.create_task(
                watch_route(route=route, settings=settings, cache=cache, queue=queue, context=context),
                name=f'watcher of {route.resource}',
            )
            for route in routes
        ]
        processor = asyncio.create_task(
            queue.run(reconciler.reconcile, workers=workers),
            name='work queue',
        )
        tasks = watchers + [processor]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.wait(tasks, timeout=settings.queueing.exit_timeout)
            logger.info("The controller has stopped.")


async def reconcile_once(
        key: references.ObjectKey,
        *,
        settings: configuration.OperatorSettings | None = None,
        info: credentials.ConnectionInfo | None = None,
) -> states.Directive:
    """
    Run one reconciliation cycle directly against the API, with no cache or queue.
    """
    settings = settings if settings is not None else configuration.OperatorSettings()
    info = info if info is not None else piggybacking.login(logger=logger)
    async with auth.APIContext(info) as context:
        store = stores.APIObjectStore(settings=settings, context=context)
        reconciler = reconciling.Reconciler(store=store, settings=settings)
        return await reconciler.reconcile(key)
