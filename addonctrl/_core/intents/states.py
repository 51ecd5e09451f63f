"""
The lifecycle states of an AddonConfig and the decisions on what to do in them.

The states are not stored anywhere: they are derived from the observed
snapshot of the AddonConfig (the owner), its ManagedCluster (the target),
and the work with the CRDs bundle (if relevant). The same snapshot always
leads to the same plan: a sequence of actions and a scheduling directive.

The plans are executed by the reconciler (:mod:`addonctrl._core.reactor.reconciling`),
which does all the I/O. The decision-making here is pure and has no I/O,
so that it can be tested without any API or fake stores.
"""
import dataclasses
import enum
import functools
from collections.abc import Sequence

from addonctrl._cogs.configs import configuration
from addonctrl._cogs.structs import bodies, conditions, finalizers
from addonctrl._core.actions import syncing
from addonctrl._core.intents import labelling


class State(str, enum.Enum):
    NO_OWNER = 'no-owner'
    NO_TARGET = 'no-target'
    DELETING = 'deleting'
    TARGET_DELETING = 'target-deleting'
    PAUSED = 'paused'
    PROVISIONING = 'provisioning'  # the CRDs are not applied yet
    WAITING = 'waiting'  # the CRDs are applied, but not available yet
    STEADY = 'steady'


# The states where the dependents are ensured (and so the CRDs work is relevant).
ACTIVE_STATES = frozenset({State.PROVISIONING, State.WAITING, State.STEADY})


@dataclasses.dataclass(frozen=True)
class Snapshot:
    owner: bodies.RawBody | None
    target: bodies.RawBody | None
    crds_work: bodies.RawBody | None = None


@dataclasses.dataclass(frozen=True)
class Directive:
    """
    What to do with the key after the cycle: forget it or check it again.

    ``delay`` is ``None`` for "done" (until a new event comes),
    zero for "requeue immediately", or the number of seconds to wait.
    """
    delay: float | None = None

    @classmethod
    def done(cls) -> 'Directive':
        return cls(delay=None)

    @classmethod
    def now(cls) -> 'Directive':
        return cls(delay=0)

    @classmethod
    def after(cls, delay: float) -> 'Directive':
        return cls(delay=delay)

    @property
    def requeue(self) -> bool:
        return self.delay is not None

    def __str__(self) -> str:
        return ('done' if self.delay is None else
                'requeue now' if not self.delay else
                f'requeue after {self.delay}s')


class Action:
    """ A base for the steps of a plan, as executed by the reconciler. """


@dataclasses.dataclass(frozen=True)
class ReleaseTarget(Action):
    pass


@dataclasses.dataclass(frozen=True)
class ReleaseOwner(Action):
    pass


@dataclasses.dataclass(frozen=True)
class ProtectTarget(Action):
    pass


@dataclasses.dataclass(frozen=True)
class ProtectOwner(Action):
    pass


@dataclasses.dataclass(frozen=True)
class DeleteOwner(Action):
    pass


@dataclasses.dataclass(frozen=True)
class Teardown(Action):
    tier: syncing.Tier
    force: bool


@dataclasses.dataclass(frozen=True)
class ApplyLabel(Action):
    key: str
    value: str | None


@dataclasses.dataclass(frozen=True)
class BackfillDefaults(Action):
    image_pull_secret: str
    image_registry: str


@dataclasses.dataclass(frozen=True)
class EnsureCRDs(Action):
    kube_version: str | None


@dataclasses.dataclass(frozen=True)
class EnsureOperator(Action):
    pass


@dataclasses.dataclass(frozen=True)
class EnsureAddons(Action):
    pass


@dataclasses.dataclass(frozen=True)
class SyncComponents(Action):
    pass


@dataclasses.dataclass(frozen=True)
class Plan:
    state: State
    actions: Sequence[Action]
    directive: Directive


def is_paused(
        owner: bodies.RawBody,
        *,
        settings: configuration.OperatorSettings,
) -> bool:
    annotations = owner.get('metadata', {}).get('annotations') or {}
    value = annotations.get(settings.naming.pause_annotation) or ''
    return value.lower() == 'true'


def is_target_available(
        target: bodies.RawBody | None,
        *,
        settings: configuration.OperatorSettings,
) -> bool:
    return conditions.is_available(target, kind=settings.conditions.cluster_available)


def get_kube_version(target: bodies.RawBody) -> str | None:
    version = target.get('status', {}).get('version') or {}
    return version.get('kubernetes') or None


def detect(
        snapshot: Snapshot,
        *,
        settings: configuration.OperatorSettings,
) -> State:
    owner, target, crds_work = snapshot.owner, snapshot.target, snapshot.crds_work
    if owner is None:
        return State.NO_OWNER
    elif finalizers.is_deletion_ongoing(owner):
        return State.DELETING
    elif target is None:
        return State.NO_TARGET
    elif finalizers.is_deletion_ongoing(target):
        return State.TARGET_DELETING
    elif is_paused(owner, settings=settings):
        return State.PAUSED
    elif crds_work is None or not conditions.has_conditions(crds_work):
        return State.PROVISIONING
    elif conditions.is_available(crds_work, kind=settings.conditions.work_available):
        return State.STEADY
    else:
        return State.WAITING


def plan(
        snapshot: Snapshot,
        *,
        settings: configuration.OperatorSettings,
        label_policy: labelling.LabelPolicy | None = None,
) -> Plan:
    """
    Decide what should be done with the objects in the snapshot, and what next.
    """
    if label_policy is None:
        label_policy = functools.partial(labelling.policy_controller_label, settings=settings)

    state = detect(snapshot, settings=settings)
    owner, target = snapshot.owner, snapshot.target
    finalizer = settings.naming.finalizer
    actions: list[Action] = []

    match state:
        case State.NO_OWNER:
            if target is not None and finalizers.has_finalizer(target, finalizer):
                actions.append(ReleaseTarget())
            return Plan(state, actions, Directive.done())

        case State.DELETING:
            owner = _required(owner, 'AddonConfig')
            force = target is None or not is_target_available(target, settings=settings)
            actions.extend(Teardown(tier=tier, force=force) for tier in syncing.TEARDOWN_ORDER)
            if target is not None:
                actions.append(ApplyLabel(*label_policy(owner)))
            actions.append(ReleaseOwner())
            if target is not None:
                actions.append(ReleaseTarget())
            return Plan(state, actions, Directive.done())

        case State.NO_TARGET:
            return Plan(state, actions, Directive.done())

        case State.TARGET_DELETING:
            # The deleting target is not protected: new finalizers are refused there.
            actions.extend([ProtectOwner(), DeleteOwner()])
            return Plan(state, actions, Directive.done())

        case State.PAUSED:
            actions.extend([ProtectTarget(), ProtectOwner()])
            return Plan(state, actions, Directive.done())

    owner = _required(owner, 'AddonConfig')
    target = _required(target, 'ManagedCluster')
    actions.extend([
        ProtectTarget(),
        ProtectOwner(),
        BackfillDefaults(
            image_pull_secret=settings.defaults.image_pull_secret,
            image_registry=settings.defaults.image_registry,
        ),
        EnsureCRDs(kube_version=get_kube_version(target)),
        EnsureOperator(),
        EnsureAddons(),
        ApplyLabel(*label_policy(owner)),
    ])

    delays = settings.reconciling
    match state:
        case State.STEADY:
            actions.append(SyncComponents())
            directive = Directive.after(delays.resync_delay)
        case State.WAITING:
            directive = Directive.after(delays.availability_delay)
        case State.PROVISIONING if is_target_available(target, settings=settings):
            directive = Directive.after(delays.availability_delay)
        case _:
            directive = Directive.after(delays.resync_delay)
    return Plan(state, actions, directive)


def _required(body: bodies.RawBody | None, kind: str) -> bodies.RawBody:
    # The detected state implies the object's presence; the absence is a bug.
    if body is None:
        raise TypeError(f"The {kind} is absent in a state that requires it.")
    return body
