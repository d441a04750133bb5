"""
Per-device health records that decide whether an announcement is worth acting on.

An announcement is debounced when the device re-announces the same endpoint shortly after it was last seen.
A device is in cooldown after repeated connection failures, until some time has passed since the last failure.
Records that have not been seen for a long time are swept away periodically.
"""
import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class DeviceState:
    """
    The health record for one device.
    fail_count and last_fail_time only change together, in DeviceStateTracker.record_failure
    """
    def __init__(self, last_seen=None):
        self.last_seen = last_seen
        self.fail_count = 0
        self.last_fail_time = None

    def __repr__(self):
        return "DeviceState(last_seen=%r, fail_count=%r, last_fail_time=%r)" % \
               (self.last_seen, self.fail_count, self.last_fail_time)


class DeviceStateTracker:
    """
    Owns the map of device key to DeviceState. Times are in seconds from a monotonic clock.

    :param debounce_window: an unchanged re-announcement within this many seconds of the last one is ignored
    :param cooldown_threshold: a device with more failures than this is put in cooldown
    :param cooldown_period: how long after the last failure the cooldown lasts
    :param stale_after: records not seen for this long are removed by sweep_stale()
    """
    def __init__(self, debounce_window=5.0, cooldown_threshold=5, cooldown_period=300.0, stale_after=600.0):
        self.debounce_window = debounce_window
        self.cooldown_threshold = cooldown_threshold
        self.cooldown_period = cooldown_period
        self.stale_after = stale_after
        self._states = {}

    def get(self, key) -> DeviceState:
        return self._states.get(key)

    def _state(self, key) -> DeviceState:
        state = self._states.get(key)
        if state is None:
            state = self._states[key] = DeviceState()
        return state

    def should_debounce(self, key, endpoint_unchanged, now):
        if not endpoint_unchanged:
            return False
        state = self._states.get(key)
        return state is not None and state.last_seen is not None and \
            now - state.last_seen < self.debounce_window

    def record_seen(self, key, now):
        self._state(key).last_seen = now

    def is_in_cooldown(self, key, now):
        return self.cooldown_remaining(key, now) > 0

    def cooldown_remaining(self, key, now):
        """
        :return: the number of seconds before the device leaves cooldown, or 0 when it is not in cooldown.
        """
        state = self._states.get(key)
        if state is None or state.fail_count <= self.cooldown_threshold or state.last_fail_time is None:
            return 0
        return max(0, self.cooldown_period - (now - state.last_fail_time))

    def record_success(self, key):
        self._state(key).fail_count = 0

    def record_failure(self, key, now):
        state = self._state(key)
        state.fail_count += 1
        state.last_fail_time = now
        return state.fail_count

    def sweep_stale(self, now):
        """
        Removes every record not seen for stale_after seconds, whether the device is online or not.
        :return: the keys removed
        """
        stale = [key for key, state in self._states.items()
                 if state.last_seen is None or now - state.last_seen >= self.stale_after]
        for key in stale:
            logger.info("[~] Cleaning up stale device state: %s" % key)
            del self._states[key]
        return stale

    def keys(self):
        return tuple(self._states)

    def __len__(self):
        return len(self._states)


class StaleEntrySweeper:
    """
    Calls DeviceStateTracker.sweep_stale() every interval seconds on the running loop.
    """
    def __init__(self, tracker: DeviceStateTracker, interval=600.0, clock=time.monotonic, sleep=asyncio.sleep):
        self.tracker = tracker
        self.interval = interval
        self.clock = clock
        self.sleep = sleep
        self._task = None

    def start(self):
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())
        return self._task

    async def _run(self):
        while True:
            await self.sleep(self.interval)
            self.tracker.sweep_stale(self.clock())

    async def stop(self):
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
