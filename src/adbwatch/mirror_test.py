import asyncio
import unittest
from unittest.mock import AsyncMock, Mock, patch

from hamcrest import assert_that, is_, instance_of, equal_to

from adbwatch.mirror import MirrorSupervisor, mirror_args
from adbwatch.support.retry_strategy import GiveUp, Success

ENDPOINT = '10.0.0.5:5555'


def exits(code):
    process = Mock()
    process.wait = AsyncMock(return_value=code)
    return process


class MirrorSupervisorTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.sleep = AsyncMock()
        self.sut = MirrorSupervisor(sleep=self.sleep)
        self.sut._spawn = AsyncMock()

    def spawns(self, *results):
        self.sut._spawn.side_effect = [exits(r) if isinstance(r, int) or r is None else r for r in results]

    async def test_args(self):
        self.spawns(0)
        await self.sut.supervise(ENDPOINT)
        self.sut._spawn.assert_awaited_once_with(
            ['--tcpip=10.0.0.5:5555', '-m', '1024', '--no-audio', '--stay-awake'])

    def test_max_size(self):
        assert_that(mirror_args(ENDPOINT, 800)[1:3], is_(['-m', '800']))

    async def test_clean_exit_is_not_relaunched(self):
        self.spawns(0)
        assert_that(await self.sut.supervise(ENDPOINT), is_(Success(0)))
        self.sleep.assert_not_awaited()

    async def test_user_abort_is_not_relaunched(self):
        self.spawns(1)
        assert_that(await self.sut.supervise(ENDPOINT), is_(Success(1)))
        assert_that(self.sut._spawn.await_count, is_(1))

    async def test_killed_by_signal_is_not_relaunched(self):
        self.spawns(-15)
        assert_that(await self.sut.supervise(ENDPOINT), is_(Success(-15)))
        assert_that(self.sut._spawn.await_count, is_(1))

    async def test_abnormal_exit_relaunched_twice(self):
        self.spawns(2, 2, 2)
        result = await self.sut.supervise(ENDPOINT)
        assert_that(result, is_(instance_of(GiveUp)))
        assert_that(self.sut._spawn.await_count, is_(3))
        assert_that([c[0][0] for c in self.sleep.await_args_list], is_(equal_to([2.0, 2.0])))

    async def test_relaunch_recovers(self):
        self.spawns(2, 0)
        assert_that(await self.sut.supervise(ENDPOINT), is_(Success(0)))
        assert_that(self.sut._spawn.await_count, is_(2))

    async def test_spawn_error_is_retried(self):
        self.sut._spawn.side_effect = [FileNotFoundError(2, "No such file"), exits(0)]
        with self.assertLogs('adbwatch.mirror', level='ERROR') as logs:
            assert_that(await self.sut.supervise(ENDPOINT), is_(Success(0)))
        assert_that("Failed to start scrcpy" in logs.output[0], is_(True))
        self.sleep.assert_awaited_once_with(2.0)

    async def test_spawn_error_gives_up(self):
        self.sut._spawn.side_effect = OSError("exec format error")
        result = await self.sut.supervise(ENDPOINT)
        assert_that(result, is_(instance_of(GiveUp)))
        assert_that(self.sut._spawn.await_count, is_(3))

    async def test_launch_runs_in_background(self):
        gate = asyncio.Event()
        process = Mock()

        async def wait():
            await gate.wait()
            return 0
        process.wait = wait
        self.sut._spawn.return_value = process

        task = self.sut.launch(ENDPOINT)
        await asyncio.sleep(0)
        assert_that(task.done(), is_(False))
        assert_that(self.sut.sessions, is_({task}))
        gate.set()
        assert_that(await task, is_(Success(0)))
        await asyncio.sleep(0)
        assert_that(self.sut.sessions, is_(set()))

    async def test_shutdown_stops_supervising_without_killing(self):
        process = Mock()

        async def wait():
            await asyncio.Event().wait()
        process.wait = wait
        self.sut._spawn.return_value = process
        task = self.sut.launch(ENDPOINT)
        await asyncio.sleep(0)
        await self.sut.shutdown()
        assert_that(task.cancelled(), is_(True))
        process.kill.assert_not_called()
        process.terminate.assert_not_called()

    async def test_spawn_inherits_terminal(self):
        sut = MirrorSupervisor('scrcpy-test')
        with patch('asyncio.create_subprocess_exec', new=AsyncMock()) as create:
            await sut._spawn(['--tcpip=x'])
        create.assert_awaited_once_with('scrcpy-test', '--tcpip=x')


if __name__ == '__main__':  # pragma no cover
    unittest.main()
