"""
One reconciliation cycle of one AddonConfig: fetch, decide, execute.

The decisions are made in :mod:`addonctrl._core.intents.states` from the snapshot
of the objects as fetched at the beginning of the cycle. The plan's actions are
then executed in order over the working copies of the owner & target.
Every successful write replaces the working copy with the server's response,
so that the next write carries the freshest resource version.

The expected outcomes are not errors:

* A conflict of the optimistic concurrency anywhere in the cycle means that
  someone else has changed the objects meanwhile. The cycle is retried soon
  with a fresh snapshot.
* An incomplete teardown of the dependents is re-checked soon.
* An absent object on its release or deletion is already released or deleted.
* An absent object on its protection has vanished since the snapshot;
  its deletion event (or a re-listing) will bring the key back.

All other errors are logged with the context and escalated to the work queue,
which retries the key with an exponential backoff.
"""
import copy
import functools
import logging

from addonctrl._cogs.clients import errors, stores
from addonctrl._cogs.configs import configuration
from addonctrl._cogs.helpers import typedefs
from addonctrl._cogs.structs import bodies, finalizers, references
from addonctrl._core.actions import loggers, payloads, syncing
from addonctrl._core.intents import labelling, states

logger = logging.getLogger(__name__)


class _Context:
    """ The mutable working copies of the objects within one cycle. """

    def __init__(
            self,
            *,
            key: references.ObjectKey,
            owner: bodies.RawBody | None,
            target: bodies.RawBody | None,
            logger: typedefs.Logger,
    ) -> None:
        super().__init__()
        self.key = key
        self.owner = copy.deepcopy(owner)
        self.target = copy.deepcopy(target)
        self.logger = logger

    @property
    def owner_body(self) -> bodies.RawBody:
        if self.owner is None:
            raise TypeError(f"The AddonConfig {self.key} is required, but absent.")
        return self.owner

    @property
    def target_body(self) -> bodies.RawBody:
        if self.target is None:
            raise TypeError(f"The ManagedCluster {self.key.namespace} is required, but absent.")
        return self.target


class Reconciler:

    def __init__(
            self,
            *,
            store: stores.ObjectStore,
            settings: configuration.OperatorSettings,
            builder: payloads.PayloadBuilder | None = None,
            label_policy: labelling.LabelPolicy | None = None,
    ) -> None:
        super().__init__()
        self.store = store
        self.settings = settings
        self.builder = (builder if builder is not None else
                        payloads.DefaultPayloadBuilder(store=store, settings=settings))
        self.label_policy = (label_policy if label_policy is not None else
                             functools.partial(labelling.policy_controller_label, settings=settings))

    async def reconcile(self, key: references.ObjectKey) -> states.Directive:
        """
        Run one cycle for the key and decide when to run the next one.
        """
        logger = loggers.ObjectLogger(key=key)
        try:
            snapshot = await self.observe(key)
            plan = states.plan(snapshot, settings=self.settings, label_policy=self.label_policy)
            logger.debug(f"The state is {plan.state.value!r}; planned: {list(plan.actions)!r}")
            ctx = _Context(key=key, owner=snapshot.owner, target=snapshot.target, logger=logger)
            for action in plan.actions:
                directive = await self.execute(ctx, action)
                if directive is not None:
                    return directive
            return plan.directive
        except errors.APIConflictError as e:
            delay = self.settings.reconciling.conflict_delay
            logger.info(f"The objects have changed meanwhile; retrying in {delay}s: {e.message}")
            return states.Directive.after(delay)

    async def observe(self, key: references.ObjectKey) -> states.Snapshot:
        # The target cluster is named by the key's namespace, by convention.
        target = await self._fetch(references.MANAGED_CLUSTERS, None, key.namespace)
        owner = await self._fetch(references.ADDON_CONFIGS, key.namespace, key.name)
        snapshot = states.Snapshot(owner=owner, target=target)
        if states.detect(snapshot, settings=self.settings) in states.ACTIVE_STATES:
            crds_work_name = syncing.get_crds_work_name(key.name, self.settings)
            crds_work = await self._fetch(references.MANIFEST_WORKS, key.namespace, crds_work_name)
            snapshot = states.Snapshot(owner=owner, target=target, crds_work=crds_work)
        return snapshot

    async def _fetch(
            self,
            resource: references.Resource,
            namespace: references.Namespace,
            name: str,
    ) -> bodies.RawBody | None:
        try:
            return await stores.get_or_none(self.store, resource, namespace, name)
        except errors.APIError as e:
            where = f"{namespace}/{name}" if namespace else name
            logger.error(f"Failed to read {resource.kind} {where}: {e!r}")
            raise

    async def execute(self, ctx: _Context, action: states.Action) -> states.Directive | None:
        """
        Execute one action; return a directive if the rest of the plan must be skipped.
        """
        try:
            return await self._execute(ctx, action)
        except errors.APIConflictError:
            raise
        except errors.APIError as e:
            ctx.logger.error(f"Failed to execute {action!r} for {ctx.key}: {e!r}")
            raise

    async def _execute(self, ctx: _Context, action: states.Action) -> states.Directive | None:
        finalizer = self.settings.naming.finalizer
        match action:
            case states.ReleaseTarget():
                if finalizers.remove_finalizer(ctx.target_body, finalizer):
                    ctx.logger.info("Releasing the ManagedCluster.")
                    ctx.target = await self._update_or_none(references.MANAGED_CLUSTERS, ctx.target_body)

            case states.ReleaseOwner():
                if finalizers.remove_finalizer(ctx.owner_body, finalizer):
                    ctx.logger.info("Releasing the AddonConfig.")
                    ctx.owner = await self._update_or_none(references.ADDON_CONFIGS, ctx.owner_body)

            case states.ProtectTarget():
                if finalizers.add_finalizer(ctx.target_body, finalizer):
                    ctx.logger.debug("Protecting the ManagedCluster with a finalizer.")
                    ctx.target = await self._update_or_none(references.MANAGED_CLUSTERS, ctx.target_body)
                    if ctx.target is None:
                        ctx.logger.info("The ManagedCluster has vanished meanwhile.")
                        return states.Directive.done()

            case states.ProtectOwner():
                if finalizers.add_finalizer(ctx.owner_body, finalizer):
                    ctx.logger.debug("Protecting the AddonConfig with a finalizer.")
                    ctx.owner = await self._update_or_none(references.ADDON_CONFIGS, ctx.owner_body)
                    if ctx.owner is None:
                        ctx.logger.info("The AddonConfig has vanished meanwhile.")
                        return states.Directive.done()

            case states.DeleteOwner():
                ctx.logger.info("The ManagedCluster is being deleted; deleting the AddonConfig.")
                try:
                    await self.store.delete(references.ADDON_CONFIGS, ctx.key.namespace, ctx.key.name)
                except errors.APINotFoundError:
                    pass

            case states.Teardown(tier=tier, force=force):
                completed = await syncing.teardown_tier(
                    store=self.store, owner=ctx.owner_body, tier=tier, force=force,
                    settings=self.settings, logger=ctx.logger)
                if not completed:
                    delay = self.settings.reconciling.teardown_delay
                    ctx.logger.info(f"The {tier.value} are not deleted yet; re-checking in {delay}s.")
                    return states.Directive.after(delay)

            case states.ApplyLabel(key=key, value=value):
                await self._apply_label(ctx, key, value)

            case states.BackfillDefaults(image_pull_secret=secret, image_registry=registry):
                # In memory only: the backfilled values are never persisted to the AddonConfig.
                spec = ctx.owner_body.setdefault('spec', {})
                if not spec.get('imagePullSecret') and secret:
                    spec['imagePullSecret'] = secret
                if not spec.get('imageRegistry') and registry:
                    spec['imageRegistry'] = registry

            case states.EnsureCRDs(kube_version=kube_version):
                await syncing.ensure_crds(
                    store=self.store, builder=self.builder, owner=ctx.owner_body,
                    kube_version=kube_version, settings=self.settings, logger=ctx.logger)

            case states.EnsureOperator():
                await syncing.ensure_operator(
                    store=self.store, builder=self.builder, owner=ctx.owner_body,
                    settings=self.settings, logger=ctx.logger)

            case states.EnsureAddons():
                await syncing.ensure_addons(
                    store=self.store, owner=ctx.owner_body,
                    settings=self.settings, logger=ctx.logger)

            case states.SyncComponents():
                await syncing.sync_component_works(
                    store=self.store, builder=self.builder, owner=ctx.owner_body,
                    settings=self.settings, logger=ctx.logger)

            case _:
                raise TypeError(f"Unsupported action: {action!r}")
        return None

    async def _update_or_none(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
    ) -> bodies.RawBody | None:
        # A vanished object needs neither a release nor a protection.
        try:
            return await self.store.update(resource, body)
        except errors.APINotFoundError:
            return None

    async def _apply_label(self, ctx: _Context, key: str, value: str | None) -> None:
        # Best-effort: the failures are logged, but never block the cycle.
        if ctx.target is None:
            return
        candidate = copy.deepcopy(ctx.target)
        if not labelling.apply_label(candidate, key, value):
            return
        try:
            ctx.target = await self.store.update(references.MANAGED_CLUSTERS, candidate)
        except errors.APIError as e:
            ctx.logger.warning(f"Failed to update the label {key!r} of the ManagedCluster: {e!r}")
