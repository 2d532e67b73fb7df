"""Bridge varfx Variables into a running Textual app.

Only this module imports textual. Widget effects go through bind(), which
drops deliveries while the app is stopped or being rebuilt, ignores the
NoMatches a widget query raises when its target is not mounted, and hands
foreign-thread deliveries to app.call_from_thread.

Listeners run on whichever thread drains the task queue. When the app's own
event loop drives the queue that is the app thread, so the call_from_thread
hop only happens when the queue is drained somewhere else (a worker thread
calling drain(), for instance).
"""

import threading
from collections import Counter
from contextlib import contextmanager

from textual.css.query import NoMatches

# id(app) -> number of pause() blocks currently open for that app.
_pause_depth: Counter = Counter()


@contextmanager
def pause(app):
    """Hold back bound effects while the app's widgets are being swapped.

    Blocks nest; the app counts as paused until the outermost one exits.
    """
    key = id(app)
    _pause_depth[key] += 1
    try:
        yield app
    finally:
        _pause_depth[key] -= 1
        if _pause_depth[key] <= 0:
            del _pause_depth[key]


def is_safe(app) -> bool:
    """True when app is running and no pause() block is open for it."""
    if not app.is_running:
        return False
    return _pause_depth.get(id(app), 0) == 0


def bind(app, source, effect):
    """Listen to source and apply effect(value, error) to app's widgets.

    The thread calling bind() is taken to be the app thread. A delivery
    arriving on any other thread (only possible when the queue is drained
    off the app thread) is forwarded through app.call_from_thread. Errors
    other than NoMatches propagate to the Variable, which logs them.
    Returns the unlisten.
    """
    app_thread = threading.get_ident()

    def _apply(value, error):
        try:
            effect(value, error)
        except NoMatches:
            # Target widget not mounted (yet or any more).
            return

    def _on_value(value, error):
        if not is_safe(app):
            return
        if threading.get_ident() == app_thread:
            _apply(value, error)
        else:
            app.call_from_thread(_apply, value, error)

    return source.listen(_on_value)
