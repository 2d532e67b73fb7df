"""varfx: asynchronous listenable values and their combinators."""

from importlib.metadata import version as _version

__version__ = _version("varfx")

from varfx.sentinel import UNDEFINED
from varfx.errors import VariableError, InvalidArgumentError, ClosedError, ConfigurationError
from varfx.oneshot import OneShot
from varfx.scheduling import TaskQueue, get_queue, set_queue, settle, async_, delay
from varfx.variable import Variable, Listenable, set_thread_scheduler
from varfx.normalize import option, next_, next_undefined
from varfx.combinators import (
    all_,
    first,
    lift,
    collect,
    flatten,
    from_array,
    get_prop,
    concat,
    log_values,
)
# textual NOT auto-imported: opt-in only

__all__ = [
    "UNDEFINED",
    "VariableError",
    "InvalidArgumentError",
    "ClosedError",
    "ConfigurationError",
    "OneShot",
    "TaskQueue",
    "get_queue",
    "set_queue",
    "settle",
    "async_",
    "delay",
    "Variable",
    "Listenable",
    "set_thread_scheduler",
    "option",
    "next_",
    "next_undefined",
    "all_",
    "first",
    "lift",
    "collect",
    "flatten",
    "from_array",
    "get_prop",
    "concat",
    "log_values",
]
