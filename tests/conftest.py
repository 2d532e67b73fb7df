"""Shared fixtures: every test gets its own task queue and no thread scheduler."""

import pytest

import varfx.variable as _var_mod
from varfx.scheduling import TaskQueue, set_queue


@pytest.fixture(autouse=True)
def queue():
    fresh = TaskQueue()
    previous = set_queue(fresh)
    old_sched, old_thread = _var_mod._scheduler, _var_mod._scheduler_thread
    _var_mod._scheduler = None
    _var_mod._scheduler_thread = None
    try:
        yield fresh
    finally:
        set_queue(previous)
        _var_mod._scheduler = old_sched
        _var_mod._scheduler_thread = old_thread
