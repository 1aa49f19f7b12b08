"""
Thread-per-VU host runtime.

:class:`ThreadScheduler` plays the role a load-testing runtime normally
plays: it spawns virtual users, keeps the active population at whatever
the ramp profile asks for, and ends the run when the profile is finished.
Each VU is an ordinary daemon thread, so VUs genuinely overlap in wall
clock time and requests race each other at the backend.

There is no synchronisation between VUs.  Each one owns a private stop
event; ramp-down sets the events of the highest-numbered VUs, and the
VU's ``sleep`` waits on that event so a stopped VU leaves its think time
immediately.  Requests still in flight when the run ends are abandoned.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from contention_app.ramp import FixedIterationProfile, StagedProfile

logger = logging.getLogger(__name__)

Profile = StagedProfile | FixedIterationProfile


class VirtualUser:
    """
    One simulated client driven by its own thread.

    The iteration counter survives stops and restarts, so a VU that is
    ramped down and later ramped up again continues where it left off.
    """

    def __init__(self, vu_index: int, profile: Profile):
        self.vu_index = vu_index
        self.iteration_index = 0
        self.profile = profile
        self.stop_event = threading.Event()
        self.thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def should_continue(self) -> bool:
        return not self.stop_event.is_set() and self.profile.allows(self.iteration_index)

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            self.stop_event.wait(seconds)

    def stop(self) -> None:
        self.stop_event.set()


class ThreadScheduler:
    """
    Runs a VU loop function under a ramp profile.

    Args:
        tick: Seconds between population adjustments.
        join_timeout: Grace period for VUs to finish at run end.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        *,
        tick: float = 0.1,
        join_timeout: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tick = tick
        self.join_timeout = join_timeout
        self.clock = clock
        self._users: dict[int, VirtualUser] = {}
        self._finished = threading.Event()

    def sleep(self, seconds: float) -> None:
        """Sleep outside any VU; returns early when the run is torn down."""
        if seconds > 0:
            self._finished.wait(seconds)

    def spawn_vu(self, vu_index: int, profile: Profile, loop_fn: Callable[[VirtualUser], None]) -> VirtualUser:
        """Start (or restart) the VU with *vu_index* on its own thread."""
        user = self._users.get(vu_index)
        if user is None:
            user = VirtualUser(vu_index, profile)
            self._users[vu_index] = user
        user.stop_event.clear()
        user.thread = threading.Thread(
            target=self._run_user,
            args=(user, loop_fn),
            name=f"vu-{vu_index}",
            daemon=True,
        )
        user.thread.start()
        return user

    def run(self, profile: Profile, loop_fn: Callable[[VirtualUser], None]) -> int:
        """
        Drive *loop_fn* for every VU the profile calls for.

        Blocks until the profile is over (time-based stages finished, or
        every fixed-iteration VU done).  Returns the number of distinct VUs
        that ran.
        """
        self._users = {}
        self._finished.clear()
        started = self.clock()
        logger.info("Starting run: up to %s VUs", profile.max_vus)
        try:
            while True:
                target = profile.target_at(self.clock() - started)
                if target is None:
                    break
                self._rebalance(target, profile, loop_fn)
                if isinstance(profile, FixedIterationProfile) and self._all_done(profile.vus):
                    break
                self.sleep(self.tick)
        finally:
            self._shutdown()
        logger.info("Run finished after %.1fs with %s VUs", self.clock() - started, len(self._users))
        return len(self._users)

    def _run_user(self, user: VirtualUser, loop_fn: Callable[[VirtualUser], None]) -> None:
        try:
            loop_fn(user)
        except Exception:
            # Per-request errors never get here; this is a bug in the loop itself.
            logger.exception("VU %s crashed", user.vu_index)

    def _active(self) -> list[VirtualUser]:
        return [user for user in self._users.values() if user.running and not user.stop_event.is_set()]

    def _all_done(self, vus: int) -> bool:
        return len(self._users) >= vus and not any(user.running for user in self._users.values())

    def _rebalance(self, target: int, profile: Profile, loop_fn: Callable[[VirtualUser], None]) -> None:
        active = self._active()
        if len(active) > target:
            for user in sorted(active, key=lambda u: u.vu_index, reverse=True)[: len(active) - target]:
                user.stop()
            return

        if isinstance(profile, FixedIterationProfile) and self._users:
            # Fixed-iteration VUs are started once and never restarted.
            return

        missing = target - len(active)
        vu_index = 1
        while missing > 0:
            user = self._users.get(vu_index)
            if user is None or not user.running:
                self.spawn_vu(vu_index, profile, loop_fn)
                missing -= 1
            vu_index += 1

    def _shutdown(self) -> None:
        self._finished.set()
        for user in self._users.values():
            user.stop()
        deadline = self.clock() + self.join_timeout
        for user in self._users.values():
            if user.thread is None:
                continue
            remaining = deadline - self.clock()
            if remaining <= 0:
                break
            user.thread.join(remaining)
        abandoned = sum(1 for user in self._users.values() if user.running)
        if abandoned:
            logger.warning("Abandoned %s VUs with requests still in flight", abandoned)
