"""
Seat-contention load harness.

Simulates many concurrent users competing for a small set of seats in a
ticketing event and records how the backend behaves under contention
versus a non-competitive baseline.

The package is organised leaves-first:

- :mod:`.identity` -- synthetic identity pool and token minting
- :mod:`.allocation` -- pure resource-allocation strategies
- :mod:`.ramp` -- staged and fixed-iteration ramp profiles
- :mod:`.executor` -- one HTTP call per invocation, no retries
- :mod:`.classifier` -- response taxonomy incl. tolerated duplicates
- :mod:`.scenario` -- built-in scenarios and the per-VU loop
- :mod:`.scheduler` -- thread-per-VU host runtime
- :mod:`.run` -- setup phase and run driver
- :mod:`.locust_users` / :mod:`.locustfile` -- Locust as the host runtime

Submodules are not imported here: the root ``config`` module imports
:mod:`.errors`, and the scenario layer imports ``config``.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(debug: bool = False) -> None:
    """Configure root logging once; ``debug`` enables per-request logs."""
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT)
    # urllib3 logs every connection at DEBUG, which drowns the harness output.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
