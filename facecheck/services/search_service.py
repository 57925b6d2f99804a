"""Wait for a FaceCheck search to finish."""
import logging
import time
from typing import Callable

from facecheck.exceptions import PollTimeoutError
from facecheck.services.facecheck_client import FaceCheckClient

logger = logging.getLogger(__name__)

PROGRESS_UNKNOWN = -1
UNKNOWN_PROGRESS_WAIT = 2.0
PROGRESS_WAIT = 1.0


def next_wait(progress) -> float:
    """Seconds to sleep before the next poll."""
    return UNKNOWN_PROGRESS_WAIT if progress == PROGRESS_UNKNOWN else PROGRESS_WAIT


def poll_search(
    client: FaceCheckClient,
    id_search: str,
    demo: bool = False,
    on_progress: Callable[[str | None, int], None] | None = None,
    timeout: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> dict:
    """Poll the search endpoint until the response carries ``output``.

    Runs forever when ``timeout`` is None. API and transport errors from
    any poll propagate to the caller.

    Returns:
        The first response whose ``output`` is not null
    """
    payload = {"id_search": id_search, "with_progress": True, "demo": demo}
    started = clock()
    polls = 0

    while True:
        response = client.search(payload)
        polls += 1
        if response.get("output") is not None:
            logger.debug(f"Search {id_search} done after {polls} polls")
            return response

        progress = response.get("progress")
        if progress is None:
            progress = PROGRESS_UNKNOWN
        if on_progress:
            on_progress(response.get("message"), progress)

        wait = next_wait(progress)
        elapsed = clock() - started
        if timeout is not None and elapsed + wait > timeout:
            raise PollTimeoutError(id_search, elapsed)

        logger.debug(f"Search {id_search} progress={progress}, next poll in {wait}s")
        sleep(wait)
