"""
Rudimentary type [re-]definitions used across the codebase.

Some stdlib classes are generics only for the type checkers, not at runtime
(e.g. `logging.LoggerAdapter`). This module defines them in a reusable way.
"""
import logging
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    LoggerAdapter = logging.LoggerAdapter[Any]
else:
    LoggerAdapter = logging.LoggerAdapter

Logger = Union[logging.Logger, LoggerAdapter]
