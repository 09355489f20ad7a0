"""
Tests for the lifecycle state machine and the tensor arena.
"""

import asyncio

import pytest
import torch

from pneumo_detect.exceptions import InitError, NotReadyError
from pneumo_detect.inference import LifecycleManager, ServiceState, TensorArena


class TestTensorArena:

    def test_releases_on_exit(self):
        with TensorArena() as arena:
            arena.track(torch.zeros(3))
            arena.track(torch.ones(2))
            assert arena.live == 2

        assert arena.live == 0
        assert arena.allocated == arena.released == 2
        assert arena.closed

    def test_releases_when_body_raises(self):
        arena = TensorArena()
        with pytest.raises(ValueError):
            with arena:
                arena.track(torch.zeros(3))
                raise ValueError("boom")

        assert arena.live == 0
        assert arena.released == 1

    def test_track_after_release_fails(self):
        with TensorArena() as arena:
            pass
        with pytest.raises(RuntimeError):
            arena.track(torch.zeros(1))


class _Builder:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.builds = 0
        self.releases = 0

    async def build(self):
        self.builds += 1
        await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("no resources")

    async def release(self):
        self.releases += 1


class TestLifecycleManager:

    def test_initial_state(self):
        manager = LifecycleManager("test")
        assert manager.state == ServiceState.UNINITIALIZED
        assert not manager.is_ready()

    def test_initialize_is_idempotent(self):
        manager = LifecycleManager("test")
        builder = _Builder()

        async def run():
            await manager.initialize(builder.build, builder.release)
            await manager.initialize(builder.build, builder.release)

        asyncio.run(run())

        assert manager.state == ServiceState.READY
        assert builder.builds == 1

    def test_concurrent_initialize_builds_once(self):
        manager = LifecycleManager("test")
        builder = _Builder()

        async def run():
            await asyncio.gather(*(manager.initialize(builder.build, builder.release) for _ in range(5)))

        asyncio.run(run())

        assert builder.builds == 1
        assert manager.is_ready()

    def test_failed_build(self):
        manager = LifecycleManager("test")
        builder = _Builder(fail=True)

        with pytest.raises(InitError):
            asyncio.run(manager.initialize(builder.build, builder.release))

        assert manager.state == ServiceState.FAILED
        assert builder.releases == 1

        # Failure is fatal: no rebuild on a second attempt
        with pytest.raises(InitError):
            asyncio.run(manager.initialize(builder.build, builder.release))
        assert builder.builds == 1

    def test_serving_requires_ready(self):
        manager = LifecycleManager("test")

        async def run():
            async with manager.serving():
                pass

        with pytest.raises(NotReadyError):
            asyncio.run(run())

    def test_dispose_is_terminal(self):
        manager = LifecycleManager("test")
        builder = _Builder()

        async def run():
            await manager.initialize(builder.build, builder.release)
            await manager.dispose(builder.release)
            await manager.dispose(builder.release)

        asyncio.run(run())

        assert manager.state == ServiceState.DISPOSED
        assert builder.releases == 1

        with pytest.raises(NotReadyError):
            asyncio.run(manager.initialize(builder.build, builder.release))

    def test_serving_during_initialize_fails_fast(self):
        manager = LifecycleManager("test")

        async def run():
            started = asyncio.Event()
            finish = asyncio.Event()

            async def build():
                started.set()
                await finish.wait()

            async def release():
                pass

            task = asyncio.create_task(manager.initialize(build, release))
            await started.wait()
            assert manager.state == ServiceState.INITIALIZING
            with pytest.raises(NotReadyError):
                async with manager.serving():
                    pass
            finish.set()
            await task
            async with manager.serving():
                pass

        asyncio.run(run())

        assert manager.is_ready()
