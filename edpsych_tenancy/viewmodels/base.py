"""
Stateful view-models bound by UI code.

A view-model holds the latest fetched data plus ``is_loading`` / ``error``
flags, notifies listeners on every state change, and owns the remote calls it
starts: ``dispose()`` cancels whatever is still in flight and freezes state.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger("edpsych-tenancy")

T = TypeVar("T")
Listener = Callable[["ViewModel"], None]


class ViewModel:
    def __init__(self) -> None:
        self.is_loading: bool = True
        self.error: Exception | None = None
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Future] = set()
        self._in_flight = 0
        self._generation = 0
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns the matching unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes: Any) -> None:
        if self._disposed:
            return
        for name, value in changes.items():
            setattr(self, name, value)
        for listener in list(self._listeners):
            listener(self)

    async def _call(self, awaitable: Awaitable[T]) -> T:
        """Run a remote call as a child task owned by this view-model."""
        if self._disposed:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RuntimeError(f"{type(self).__name__} is disposed")
        generation = self._generation
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        result = await task
        if generation != self._generation:
            # Answer arrived for a tenant or lifetime that is gone
            raise asyncio.CancelledError()
        return result

    @asynccontextmanager
    async def _operation(self):
        """
        Loading/error bookkeeping around one operation.
        Errors are recorded then re-raised; the loading flag always resets.
        """
        generation = self._generation
        self._in_flight += 1
        self._set_state(is_loading=True, error=None)
        try:
            yield
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation == self._generation:
                self._set_state(error=e)
            raise
        finally:
            # Operations abandoned by _abandon_calls no longer count
            if generation == self._generation:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._set_state(is_loading=False)

    async def _mount_load(self, load: Callable[[], Awaitable[Any]]) -> None:
        """Initial load: nobody awaits it, so failures stay in ``error``."""
        generation = self._generation
        try:
            await load()
        except asyncio.CancelledError:
            # Superseded by a tenant switch: the newer load owns the state now
            if generation != self._generation and not self._disposed:
                return
            raise
        except Exception as e:
            logger.warning("%s initial load failed: %s", type(self).__name__, e)

    async def mount(self) -> None:
        self._set_state(is_loading=False)

    def _abandon_calls(self) -> None:
        """Cancel every outstanding call and forget its loading bookkeeping."""
        self._generation += 1
        self._in_flight = 0
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def dispose(self) -> None:
        """Cancel outstanding calls; later responses no longer touch state."""
        self._disposed = True
        self._abandon_calls()
        self._listeners.clear()

    async def __aenter__(self):
        await self.mount()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.dispose()


class TenantViewModel(ViewModel, ABC):
    """
    View-model scoped to one tenant. Changing the tenant cancels the previous
    tenant's calls, empties the cached data, then reloads.
    """

    def __init__(self, tenant_id: str | None) -> None:
        super().__init__()
        self.tenant_id = tenant_id
        for name, value in self._empty_state().items():
            setattr(self, name, value)

    @abstractmethod
    def _empty_state(self) -> dict[str, Any]:
        """Entity fields and their values before anything is loaded."""
        ...

    @abstractmethod
    async def reload(self) -> Any:
        ...

    async def mount(self) -> None:
        if not self.tenant_id:
            self._set_state(is_loading=False)
            return
        await self._mount_load(self.reload)

    async def set_tenant(self, tenant_id: str | None) -> None:
        if tenant_id == self.tenant_id:
            return
        self._abandon_calls()
        self.tenant_id = tenant_id
        self._set_state(error=None, **self._empty_state())
        await self.mount()
