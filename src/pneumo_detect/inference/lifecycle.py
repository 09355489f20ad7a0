"""
Backend lifecycle state machine and scoped tensor release.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, List, Optional

import torch
from loguru import logger

from ..exceptions import InitError, NotReadyError
from .types import ServiceState


class TensorArena:
    """
    Tracks the tensors allocated during one call and releases them on exit.

    Used as a context manager, so release happens on both the success and the
    failure path::

        with TensorArena() as arena:
            batch = arena.track(preprocessor.preprocess(data))
            ...
    """

    def __init__(self, name: str = "classify"):
        self.name = name
        self.allocated = 0
        self.released = 0
        self.closed = False
        self._tensors: List[torch.Tensor] = []

    def track(self, tensor: torch.Tensor) -> torch.Tensor:
        if self.closed:
            raise RuntimeError(f"Arena '{self.name}' is already released")
        self._tensors.append(tensor)
        self.allocated += 1
        return tensor

    @property
    def live(self) -> int:
        return len(self._tensors)

    def release(self):
        on_gpu = any(t.is_cuda for t in self._tensors)
        self.released += len(self._tensors)
        self._tensors.clear()
        self.closed = True
        if on_gpu:
            torch.cuda.empty_cache()

    def __enter__(self) -> "TensorArena":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        logger.trace(f"Arena '{self.name}' released {self.released}/{self.allocated} tensors")
        return False


class LifecycleManager:
    """
    Owns the ServiceState of one backend.

    A single asyncio lock serializes initialize, dispose and every scoring
    call, so a backend never runs two of them at once.

    Transitions::

        Uninitialized -> Initializing -> Ready | Failed
        Ready | Uninitialized | Failed -> Disposed   (terminal)
    """

    def __init__(self, name: str):
        self.name = name
        self.state = ServiceState.UNINITIALIZED
        self._lock: Optional[asyncio.Lock] = None
        self._failure: Optional[BaseException] = None

    @property
    def lock(self) -> asyncio.Lock:
        # Created on first use so it binds to the running event loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def is_ready(self) -> bool:
        return self.state == ServiceState.READY

    def ensure_ready(self):
        if self.state != ServiceState.READY:
            raise NotReadyError(
                f"Backend '{self.name}' is not ready (state={self.state.value})"
            )

    async def initialize(
        self,
        build: Callable[[], Awaitable[None]],
        release: Callable[[], Awaitable[None]]
    ):
        """
        Run ``build`` once; later calls while Ready are no-ops.

        Raises:
            NotReadyError: If the backend was disposed
            InitError: If construction fails now or failed earlier
        """
        async with self.lock:
            if self.state == ServiceState.READY:
                logger.debug(f"Backend '{self.name}' already initialized")
                return
            if self.state == ServiceState.DISPOSED:
                raise NotReadyError(f"Backend '{self.name}' has been disposed")
            if self.state == ServiceState.FAILED:
                raise InitError(
                    f"Backend '{self.name}' failed to initialize: {self._failure}"
                ) from self._failure

            self.state = ServiceState.INITIALIZING
            logger.info(f"Initializing backend '{self.name}'")
            try:
                await build()
            except Exception as e:
                self.state = ServiceState.FAILED
                self._failure = e
                logger.error(f"Backend '{self.name}' failed to initialize: {e}")
                await release()
                if isinstance(e, InitError):
                    raise
                raise InitError(f"Failed to initialize backend '{self.name}': {e}") from e

            self.state = ServiceState.READY
            logger.info(f"Backend '{self.name}' ready")

    @asynccontextmanager
    async def serving(self):
        """
        Hold the lock for one scoring call.

        Fails immediately with NotReadyError unless Ready, so a call made while
        initialize is still running does not wait for it. The state is checked
        again under the lock in case a dispose got there first.
        """
        self.ensure_ready()
        async with self.lock:
            self.ensure_ready()
            yield

    async def dispose(self, release: Callable[[], Awaitable[None]]):
        async with self.lock:
            if self.state == ServiceState.DISPOSED:
                return
            try:
                await release()
            finally:
                self.state = ServiceState.DISPOSED
                logger.info(f"Backend '{self.name}' disposed")
