"""
Sequential task runner.

Install and uninstall tasks read the installed set and then act on it.
Running them one at a time keeps each read-then-act pair from interleaving
with another task's, so no lock around the installed set is needed.

/ Ejecuta tareas asincronas una por una; se detiene en el primer fallo.
"""

import logging
from typing import Awaitable, Callable, Iterable

logger = logging.getLogger("extctl.extensions.sequencer")

Task = Callable[[], Awaitable[None]]


async def sequence(tasks: Iterable[Task]) -> None:
    """
    Run tasks strictly in order, awaiting each before starting the next.

    The first exception propagates unchanged and the remaining tasks are
    never started.

    Args:
        tasks: Zero-argument callables returning awaitables.
    """
    pending = list(tasks)
    for index, task in enumerate(pending, start=1):
        logger.debug(f"Running task {index}/{len(pending)}")
        try:
            await task()
        except Exception as e:
            skipped = len(pending) - index
            if skipped:
                logger.info(f"Task {index} failed ({e!r}); skipping {skipped} remaining")
            raise
