"""
The controller of the klusterlet add-ons: the exported functions & classes.
"""
# isort: skip_file

from addonctrl._cogs.configs.configuration import (
    OperatorSettings,
)
from addonctrl._cogs.clients.errors import (
    APIError,
    APIClientError,
    APIServerError,
    APIConflictError,
    APINotFoundError,
)
from addonctrl._cogs.clients.stores import (
    ObjectStore,
    APIObjectStore,
    CachedObjectStore,
)
from addonctrl._cogs.helpers.versions import (
    version as __version__,
)
from addonctrl._cogs.structs.credentials import (
    ConnectionInfo,
    LoginError,
)
from addonctrl._cogs.structs.references import (
    ObjectKey,
    Resource,
)
from addonctrl._core.actions.loggers import (
    configure,
    LogFormat,
)
from addonctrl._core.actions.payloads import (
    PayloadBuilder,
    DefaultPayloadBuilder,
)
from addonctrl._core.intents.components import (
    Component,
    COMPONENTS,
)
from addonctrl._core.intents.labelling import (
    LabelPolicy,
    policy_controller_label,
)
from addonctrl._core.intents.states import (
    Directive,
    Plan,
    Snapshot,
    State,
    plan,
)
from addonctrl._core.reactor.queueing import (
    WorkQueue,
)
from addonctrl._core.reactor.reconciling import (
    Reconciler,
)
from addonctrl._core.reactor.running import (
    run,
    operator,
    reconcile_once,
)

__all__ = [
    'OperatorSettings',
    'APIError', 'APIClientError', 'APIServerError', 'APIConflictError', 'APINotFoundError',
    'ObjectStore', 'APIObjectStore', 'CachedObjectStore',
    'ConnectionInfo', 'LoginError',
    'ObjectKey', 'Resource',
    'configure', 'LogFormat',
    'PayloadBuilder', 'DefaultPayloadBuilder',
    'Component', 'COMPONENTS',
    'LabelPolicy', 'policy_controller_label',
    'Directive', 'Plan', 'Snapshot', 'State', 'plan',
    'WorkQueue',
    'Reconciler',
    'run', 'operator', 'reconcile_once',
]
