"""
Logging of the per-object messages and the log formatting.

Every reconciliation cycle logs via an :class:`ObjectLogger`, which carries
the reference to the reconciled AddonConfig. The reference is rendered
either as a ``[namespace/name]`` prefix of the text messages, or as a nested
field of the JSON records, so that the log parsers could group the messages.
"""
import copy
import enum
import logging
from collections.abc import Mapping, MutableMapping
from typing import TYPE_CHECKING, Any, TextIO

try:
    # python-json-logger>=3.1.0
    from pythonjsonlogger.core import RESERVED_ATTRS as _pjl_RESERVED_ATTRS
    from pythonjsonlogger.json import JsonFormatter as _pjl_JsonFormatter
except ImportError:
    # python-json-logger<3.1.0
    from pythonjsonlogger.jsonlogger import JsonFormatter as _pjl_JsonFormatter  # type: ignore
    from pythonjsonlogger.jsonlogger import RESERVED_ATTRS as _pjl_RESERVED_ATTRS  # type: ignore

from addonctrl._cogs.helpers import typedefs
from addonctrl._cogs.structs import references

logger = logging.getLogger('addonctrl.objects')

# A key for object references in JSON logs, as seen by the log parsers.
DEFAULT_JSON_REFKEY = 'object'

# The record's attribute with the reference, as put by the adapter.
REF_ATTR = 'k8s_ref'

SEVERITIES: list[tuple[int, str]] = [
    (logging.DEBUG, 'debug'),
    (logging.INFO, 'info'),
    (logging.WARNING, 'warn'),
    (logging.ERROR, 'error'),
]


def get_severity(levelno: int) -> str:
    return next((name for level, name in SEVERITIES if levelno <= level), 'fatal')


def render_ref(ref: Mapping[str, Any]) -> str:
    namespace, name = ref.get('namespace'), ref.get('name', '')
    return f"[{namespace}/{name}]" if namespace else f"[{name}]"


class LogFormat(enum.Enum):
    """ Log formats, as specified on CLI. """
    PLAIN = '%(message)s'
    FULL = '[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s'
    JSON = '-json-'  # not used for formatting, only for detection


class ObjectFormatter(logging.Formatter):
    """ A base for the formatters aware of the AddonConfigs' references. """


class ObjectTextFormatter(ObjectFormatter, logging.Formatter):
    pass


class ObjectJsonFormatter(ObjectFormatter, _pjl_JsonFormatter):
    def __init__(
            self,
            *args: Any,
            refkey: str | None = None,
            **kwargs: Any,
    ) -> None:
        # The reference is rendered under its own key, never as a flat extra field.
        reserved = {*kwargs.pop('reserved_attrs', _pjl_RESERVED_ATTRS), REF_ATTR}
        super().__init__(*args, reserved_attrs=reserved, timestamp=kwargs.pop('timestamp', True), **kwargs)
        self.refkey: str = refkey or DEFAULT_JSON_REFKEY

    def add_fields(
            self,
            log_record: dict[str, object],
            record: logging.LogRecord,
            message_dict: dict[str, object],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        ref = getattr(record, REF_ATTR, None)
        if ref is not None:
            log_record[self.refkey] = ref
        log_record.setdefault('severity', get_severity(record.levelno))


class ObjectPrefixingMixin(ObjectFormatter):
    def format(self, record: logging.LogRecord) -> str:
        ref = getattr(record, REF_ATTR, None)
        if ref is not None:
            record = copy.copy(record)
            record.msg = f"{render_ref(ref)} {record.msg}"
        return super().format(record)


class ObjectPrefixingTextFormatter(ObjectPrefixingMixin, ObjectTextFormatter):
    pass


class ObjectPrefixingJsonFormatter(ObjectPrefixingMixin, ObjectJsonFormatter):
    pass


class ObjectLogger(typedefs.LoggerAdapter):
    """
    A logger/adapter to carry the reconciled object's reference for formatting.

    Constructed for every reconciliation cycle from the key only: the object
    itself can be absent at that moment (e.g. already deleted).
    """

    def __init__(
            self,
            *,
            key: references.ObjectKey,
            resource: references.Resource = references.ADDON_CONFIGS,
    ) -> None:
        ref = {'apiVersion': resource.api_version, 'kind': resource.kind,
               'namespace': key.namespace, 'name': key.name}
        super().__init__(logger, {REF_ATTR: ref})

    def process(
            self,
            msg: str,
            kwargs: MutableMapping[str, Any],
    ) -> tuple[str, MutableMapping[str, Any]]:
        # The per-message extras are kept along with the reference (stdlib would drop them).
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get('extra', {})}
        return msg, kwargs


# Our own handlers are replaced on re-configuration, the others are kept (e.g. pytest's).
if TYPE_CHECKING:
    class _AddonctrlStreamHandler(logging.StreamHandler[TextIO]):
        pass
else:
    class _AddonctrlStreamHandler(logging.StreamHandler):
        pass

# The libraries which are too chatty for anything but the debug mode.
NOISY_LOGGERS = ('asyncio', 'aiohttp')


def configure(
        debug: bool | None = None,
        verbose: bool | None = None,
        quiet: bool | None = None,
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: bool | None = None,
        log_refkey: str | None = None,
) -> None:
    handler = _AddonctrlStreamHandler()
    handler.setFormatter(make_formatter(log_format=log_format, log_prefix=log_prefix,
                                        log_refkey=log_refkey))

    root = logging.getLogger()
    root.handlers[:] = [h for h in root.handlers if not isinstance(h, _AddonctrlStreamHandler)]
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug or verbose else logging.WARNING if quiet else logging.INFO)

    for name in NOISY_LOGGERS:
        noisy = logging.getLogger(name)
        noisy.propagate = bool(debug)
        if not debug:
            noisy.handlers[:] = [logging.NullHandler()]


def make_formatter(
        log_format: LogFormat | str = LogFormat.FULL,
        log_prefix: bool | None = None,
        log_refkey: str | None = None,
) -> ObjectFormatter:
    """
    Pick a formatter for the format; the prefixes are on by default for texts only.
    """
    if log_prefix is None:
        log_prefix = log_format is not LogFormat.JSON
    match log_format, log_prefix:
        case LogFormat.JSON, True:
            return ObjectPrefixingJsonFormatter(refkey=log_refkey)
        case LogFormat.JSON, False:
            return ObjectJsonFormatter(refkey=log_refkey)
        case LogFormat(value=fmt) | (str() as fmt), True:
            return ObjectPrefixingTextFormatter(fmt)
        case LogFormat(value=fmt) | (str() as fmt), False:
            return ObjectTextFormatter(fmt)
        case _:
            raise ValueError(f"Unsupported log format: {log_format!r}")
