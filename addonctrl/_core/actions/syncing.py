"""
Ensuring and deleting the dependent resources of an AddonConfig.

Every deployable unit is a ManifestWork in the cluster's namespace:
the CRDs bundle, the add-on operator, and one work per enabled component.
They are created or updated to the desired payload, and deleted in tiers
when the AddonConfig goes away: first the components, then the operator,
and only then the CRDs (so that the CRDs never disappear under the running
consumers on the managed cluster).

The ensuring routines do not wait for the remote agents to apply the works;
the deletion routines report if the deletion is completed, i.e. if the works
are gone from the store. The incomplete deletion is re-checked later.
"""
import enum

from addonctrl._cogs.clients import errors, stores
from addonctrl._cogs.configs import configuration
from addonctrl._cogs.helpers import typedefs
from addonctrl._cogs.structs import bodies, finalizers, references
from addonctrl._core.actions import payloads
from addonctrl._core.intents import components


class Tier(enum.Enum):
    """ The groups of the deployable units, in the order of their teardown. """
    COMPONENTS = 'components'
    OPERATOR = 'operator'
    CRDS = 'crds'


TEARDOWN_ORDER: tuple[Tier, ...] = (Tier.COMPONENTS, Tier.OPERATOR, Tier.CRDS)


def get_crds_work_name(owner_name: str, settings: configuration.OperatorSettings) -> str:
    return f'{owner_name}{settings.naming.crds_work_suffix}'


def get_operator_work_name(owner_name: str, settings: configuration.OperatorSettings) -> str:
    return f'{owner_name}{settings.naming.operator_work_suffix}'


def get_component_work_name(
        owner_name: str,
        component: components.Component,
        settings: configuration.OperatorSettings,
) -> str:
    return f'{owner_name}{settings.naming.component_work_suffix}{component.name}'


def get_tier_work_names(
        owner_name: str,
        tier: Tier,
        settings: configuration.OperatorSettings,
) -> list[str]:
    match tier:
        case Tier.COMPONENTS:
            # All of them, regardless of the flags: the flags could be changed meanwhile.
            return [get_component_work_name(owner_name, component, settings)
                    for component in components.COMPONENTS]
        case Tier.OPERATOR:
            return [get_operator_work_name(owner_name, settings)]
        case Tier.CRDS:
            return [get_crds_work_name(owner_name, settings)]
        case _:
            raise ValueError(f"Unknown teardown tier: {tier!r}")


async def ensure_work(
        *,
        store: stores.ObjectStore,
        name: str,
        namespace: str,
        manifests: list[payloads.Manifest],
        logger: typedefs.Logger,
) -> bool:
    """
    Make the work exist with the desired payload. Only the ``spec`` is compared & overwritten.
    """
    desired = payloads.build_work(name=name, namespace=namespace, manifests=manifests)
    existing = await stores.get_or_none(store, references.MANIFEST_WORKS, namespace, name)
    if existing is None:
        logger.info(f"Creating the ManifestWork {name!r}.")
        await store.create(references.MANIFEST_WORKS, desired)
    elif existing.get('spec') != desired['spec']:
        logger.info(f"Updating the ManifestWork {name!r}.")
        existing['spec'] = desired['spec']
        await store.update(references.MANIFEST_WORKS, existing)
    return True


async def delete_work(
        *,
        store: stores.ObjectStore,
        name: str,
        namespace: str,
        force: bool,
        logger: typedefs.Logger,
) -> bool:
    """
    Request the deletion of a work; return ``True`` only when it is gone.

    With ``force``, all the work's finalizers are stripped: the remote agents
    that would normally remove them are known to be unreachable.
    """
    try:
        work = await store.get(references.MANIFEST_WORKS, namespace, name)
    except errors.APINotFoundError:
        return True

    if force and finalizers.remove_all_finalizers(work):
        logger.info(f"Stripping the finalizers of the ManifestWork {name!r}.")
        try:
            work = await store.update(references.MANIFEST_WORKS, work)
        except errors.APINotFoundError:
            return True

    if not finalizers.is_deletion_ongoing(work):
        logger.info(f"Deleting the ManifestWork {name!r}.")
        try:
            await store.delete(references.MANIFEST_WORKS, namespace, name)
        except errors.APINotFoundError:
            return True

    return False


async def teardown_tier(
        *,
        store: stores.ObjectStore,
        owner: bodies.RawBody,
        tier: Tier,
        force: bool,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> bool:
    """
    Delete all the units of the tier; report if all of them are gone.

    The deletions are issued for all the units, even if some are not completed.
    """
    owner_name = bodies.get_name(owner) or ''
    namespace = bodies.get_namespace(owner) or ''
    completed: list[bool] = []
    for name in get_tier_work_names(owner_name, tier, settings):
        completed.append(await delete_work(
            store=store, name=name, namespace=namespace, force=force, logger=logger))
    return all(completed)


async def ensure_crds(
        *,
        store: stores.ObjectStore,
        builder: payloads.PayloadBuilder,
        owner: bodies.RawBody,
        kube_version: str | None,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> bool:
    return await ensure_work(
        store=store,
        name=get_crds_work_name(bodies.get_name(owner) or '', settings),
        namespace=bodies.get_namespace(owner) or '',
        manifests=await builder.build_crds(owner, kube_version),
        logger=logger,
    )


async def ensure_operator(
        *,
        store: stores.ObjectStore,
        builder: payloads.PayloadBuilder,
        owner: bodies.RawBody,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> bool:
    return await ensure_work(
        store=store,
        name=get_operator_work_name(bodies.get_name(owner) or '', settings),
        namespace=bodies.get_namespace(owner) or '',
        manifests=await builder.build_operator(owner),
        logger=logger,
    )


async def ensure_addons(
        *,
        store: stores.ObjectStore,
        owner: bodies.RawBody,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> None:
    """
    Create the missing ManagedClusterAddOns of the enabled components.

    The add-ons are never deleted here: they are owned by the AddonConfig
    and garbage-collected together with it.
    """
    namespace = bodies.get_namespace(owner) or ''
    for component in components.COMPONENTS:
        if not component.is_enabled(owner):
            continue
        name = component.get_addon_name(settings)
        existing = await stores.get_or_none(store, references.CLUSTER_ADDONS, namespace, name)
        if existing is None:
            logger.info(f"Creating the ManagedClusterAddOn {name!r}.")
            await store.create(references.CLUSTER_ADDONS, {
                'apiVersion': references.CLUSTER_ADDONS.api_version,
                'kind': references.CLUSTER_ADDONS.kind,
                'metadata': {
                    'name': name,
                    'namespace': namespace,
                    'ownerReferences': [bodies.build_owner_reference(owner)],
                },
                'spec': {'installNamespace': settings.naming.addon_namespace},
            })


async def sync_component_works(
        *,
        store: stores.ObjectStore,
        builder: payloads.PayloadBuilder,
        owner: bodies.RawBody,
        settings: configuration.OperatorSettings,
        logger: typedefs.Logger,
) -> bool:
    """
    Make the component works match the flags: ensure the enabled, delete the disabled.

    Reports if everything is in place, i.e. the disabled works are gone.
    """
    owner_name = bodies.get_name(owner) or ''
    namespace = bodies.get_namespace(owner) or ''
    completed: list[bool] = []
    for component in components.COMPONENTS:
        name = get_component_work_name(owner_name, component, settings)
        if component.is_enabled(owner):
            manifests = await builder.build_component(owner, component)
            completed.append(await ensure_work(
                store=store, name=name, namespace=namespace, manifests=manifests, logger=logger))
        else:
            completed.append(await delete_work(
                store=store, name=name, namespace=namespace, force=False, logger=logger))
    return all(completed)
