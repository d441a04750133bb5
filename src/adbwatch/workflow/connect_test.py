import unittest
from unittest.mock import AsyncMock, Mock, call

from hamcrest import assert_that, is_, equal_to

from adbwatch.connector.base import CommandError
from adbwatch.registry import Device
from adbwatch.state import DeviceStateTracker
from adbwatch.workflow.connect import ConnectionState, ConnectionWorkflow

DEVICE = Device('device-a', 'A', '10.0.0.5:5555', ('10.0.0.5',), 5555)


class ConnectionWorkflowTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.adb = AsyncMock()
        self.adb.is_connected.return_value = True
        self.tracker = DeviceStateTracker()
        self.tracker.record_seen(DEVICE.key, 0)
        self.mirror = Mock()
        self.notifier = Mock()
        self.sleep = AsyncMock()
        self.now = 1000
        self.sut = ConnectionWorkflow(self.adb, self.tracker, self.mirror, self.notifier,
                                      clock=lambda: self.now, sleep=self.sleep)
        self.states = []
        self.sut.transitions += lambda device, state: self.states.append(state)

    def delays(self):
        return [c[0][0] for c in self.sleep.await_args_list]

    async def test_connects_first_time(self):
        assert_that(await self.sut.run(DEVICE), is_(ConnectionState.CONNECTED))
        self.adb.disconnect.assert_awaited_once_with('10.0.0.5:5555')
        self.adb.connect.assert_awaited_once_with('10.0.0.5:5555')
        self.adb.is_connected.assert_awaited_once_with('10.0.0.5:5555')
        assert_that(self.delays(), is_([0.5, 1.0]))
        self.mirror.launch.assert_called_once_with('10.0.0.5:5555')
        self.notifier.notify.assert_called_once_with("ADB connected", "A @ 10.0.0.5:5555")
        assert_that(self.states, is_(equal_to([ConnectionState.IDLE, ConnectionState.DISCONNECTING,
                                               ConnectionState.CONNECTING, ConnectionState.VERIFYING,
                                               ConnectionState.CONNECTED])))

    async def test_connect_fails_twice_then_succeeds(self):
        self.adb.connect.side_effect = [CommandError("refused"), CommandError("refused"), None]
        assert_that(await self.sut.run(DEVICE), is_(ConnectionState.CONNECTED))
        assert_that(self.adb.connect.await_count, is_(3))
        assert_that(self.delays(), is_([0.5, 1.0, 0.5, 2.0, 0.5, 1.0]))
        self.mirror.launch.assert_called_once_with('10.0.0.5:5555')
        assert_that(self.tracker.get(DEVICE.key).fail_count, is_(0))
        assert_that(self.states.count(ConnectionState.BACKOFF), is_(2))

    async def test_gives_up_after_three_retries(self):
        self.adb.connect.side_effect = CommandError("refused")
        assert_that(await self.sut.run(DEVICE), is_(ConnectionState.FAILED))
        assert_that(self.adb.connect.await_count, is_(4))
        assert_that(self.delays(), is_([0.5, 1.0, 0.5, 2.0, 0.5, 4.0, 0.5]))
        state = self.tracker.get(DEVICE.key)
        assert_that((state.fail_count, state.last_fail_time), is_((1, 1000)))
        self.mirror.launch.assert_not_called()
        self.notifier.notify.assert_called_once_with("ADB connect failed", "A: refused")
        assert_that(self.states[-1], is_(ConnectionState.FAILED))

    async def test_failed_verification_is_retried(self):
        self.adb.is_connected.side_effect = [False, True]
        assert_that(await self.sut.run(DEVICE), is_(ConnectionState.CONNECTED))
        assert_that(self.adb.connect.await_count, is_(2))
        assert_that(self.delays(), is_([0.5, 1.0, 0.5, 1.0]))

    async def test_disconnect_failure_is_ignored(self):
        self.adb.disconnect.side_effect = CommandError("no such device")
        assert_that(await self.sut.run(DEVICE), is_(ConnectionState.CONNECTED))
        assert_that(self.adb.connect.await_count, is_(1))

    async def test_success_resets_previous_failures(self):
        for _ in range(3):
            self.tracker.record_failure(DEVICE.key, 1)
        await self.sut.run(DEVICE)
        assert_that(self.tracker.get(DEVICE.key).fail_count, is_(0))

    async def test_each_exhausted_run_counts_once(self):
        self.adb.connect.side_effect = CommandError("refused")
        await self.sut.run(DEVICE)
        await self.sut.run(DEVICE)
        assert_that(self.tracker.get(DEVICE.key).fail_count, is_(2))

    async def test_mirror_launched_after_stabilizing(self):
        order = []
        self.sleep.side_effect = lambda delay: order.append(('sleep', delay))
        self.mirror.launch.side_effect = lambda endpoint: order.append(('launch', endpoint))
        await self.sut.run(DEVICE)
        assert_that(order[-2:], is_([('sleep', 1.0), ('launch', '10.0.0.5:5555')]))


if __name__ == '__main__':  # pragma no cover
    unittest.main()
