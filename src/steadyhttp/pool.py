"""Bounded-concurrency batches of logical requests.

:class:`ConcurrentRequestPool` runs many keyed requests on one event loop
with at most ``concurrency`` of them in flight; the rest wait in a queue
until a worker frees up.  Each request gets its own configuration snapshot
(the shared options merged with its per-request options) and goes through
the usual cache and retry layers.

Failure policy:

* without ``on_reject``, the first request that fails for good aborts the
  batch: outstanding requests are cancelled and
  :class:`~steadyhttp.exceptions.AggregateBatchError` is raised;
* with ``on_reject(error, key, handle)``, the callback decides.  Returning
  :attr:`RejectDecision.ABORT`, calling ``handle.abort()`` or raising
  aborts the batch; any other return value (``None``,
  :attr:`RejectDecision.SWALLOW`, or whatever the callback happens to
  return) drops the key from the result and the batch carries on.

The result maps every successful key to its result.  Completion order is
not preserved.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Callable, NoReturn, Optional, Union

from steadyhttp.exceptions import AggregateBatchError, InvalidArgumentError
from steadyhttp.executor import RequestExecutor
from steadyhttp.options import RequestConfig, merge
from steadyhttp.output import get_output

RequestKey = Union[str, int]

DEFAULT_CONCURRENCY = 10


class TaskState(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RejectDecision(str, enum.Enum):
    """What ``on_reject`` wants done with a failed request."""

    SWALLOW = "swallow"
    ABORT = "abort"


@dataclass
class PoolTask:
    """One request of a batch.  Created per batch and never reused."""

    key: RequestKey
    url: str
    config: RequestConfig
    state: TaskState = TaskState.PENDING
    result: Any = None
    error: Optional[Exception] = None


class BatchHandle:
    """View of a running batch handed to ``on_reject``.

    Args:
        tasks: Every task of the batch, by key.
        current: The task whose failure is being reported.
        error: The failure itself.
    """

    def __init__(
        self,
        tasks: Mapping[RequestKey, PoolTask],
        current: PoolTask,
        error: Exception,
    ) -> None:
        self._tasks = tasks
        self._current = current
        self._error = error

    @property
    def key(self) -> RequestKey:
        return self._current.key

    @property
    def results(self) -> dict[RequestKey, Any]:
        """Results of the requests that have succeeded so far."""
        return {
            key: task.result
            for key, task in self._tasks.items()
            if task.state is TaskState.SUCCEEDED
        }

    @property
    def failed(self) -> list[RequestKey]:
        return [key for key, task in self._tasks.items() if task.state is TaskState.FAILED]

    @property
    def pending(self) -> int:
        """Requests not finished yet (queued or running)."""
        return sum(
            1 for task in self._tasks.values()
            if task.state in (TaskState.PENDING, TaskState.RUNNING)
        )

    def abort(self, error: Optional[BaseException] = None) -> NoReturn:
        """Abort the batch, reporting *error* (default: the current failure)."""
        cause = error if error is not None else self._error
        raise AggregateBatchError(cause, self._current.key) from cause


RejectCallback = Callable[[Exception, RequestKey, BatchHandle], Any]


class ConcurrentRequestPool:
    """Fans a batch out over a fixed number of asyncio workers.

    Args:
        executor: Runs each logical request.
    """

    def __init__(self, executor: RequestExecutor) -> None:
        self._executor = executor

    async def run_all(
        self,
        method: str,
        requests: Union[Mapping[RequestKey, Any], Sequence[Any]],
        shared: Optional[RequestConfig] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        on_reject: Optional[RejectCallback] = None,
    ) -> dict[RequestKey, Any]:
        """Run every request of the batch and collect the results.

        Args:
            method: HTTP method used for every request.
            requests: Mapping of key to URL (or to a mapping holding ``url``
                plus per-request options), or a sequence of those keyed by
                position.
            shared: Options common to every request.
            concurrency: Maximum requests in flight (>= 1).
            on_reject: Failure callback; see the module docstring.

        Returns:
            Successful keys mapped to their results.

        Raises:
            InvalidArgumentError: For a bad ``concurrency`` or request entry.
            AggregateBatchError: When the batch is aborted.
        """
        if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
            raise InvalidArgumentError(f"concurrency must be a positive integer, got {concurrency!r}")

        tasks = self._build_tasks(requests, shared or RequestConfig())
        if not tasks:
            return {}

        queue: asyncio.Queue[PoolTask] = asyncio.Queue()
        for task in tasks.values():
            queue.put_nowait(task)

        get_output().debug(
            f"Batch {method.upper()}: {len(tasks)} requests, concurrency {concurrency}"
        )
        workers = [
            asyncio.create_task(self._worker(method, queue, tasks, on_reject))
            for _ in range(min(concurrency, len(tasks)))
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        return {
            key: task.result
            for key, task in tasks.items()
            if task.state is TaskState.SUCCEEDED
        }

    async def _worker(
        self,
        method: str,
        queue: asyncio.Queue[PoolTask],
        tasks: Mapping[RequestKey, PoolTask],
        on_reject: Optional[RejectCallback],
    ) -> None:
        while True:
            try:
                task = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            task.state = TaskState.RUNNING
            try:
                task.result = await self._executor.execute(method, task.url, task.config)
            except Exception as exc:
                task.state = TaskState.FAILED
                task.error = exc
                await self._reject(task, exc, tasks, on_reject)
            else:
                task.state = TaskState.SUCCEEDED

    async def _reject(
        self,
        task: PoolTask,
        error: Exception,
        tasks: Mapping[RequestKey, PoolTask],
        on_reject: Optional[RejectCallback],
    ) -> None:
        if on_reject is None:
            raise AggregateBatchError(error, task.key) from error

        try:
            decision = on_reject(error, task.key, BatchHandle(tasks, task, error))
            if inspect.isawaitable(decision):
                decision = await decision
        except AggregateBatchError:
            raise
        except Exception as exc:
            raise AggregateBatchError(exc, task.key) from exc

        if decision == RejectDecision.ABORT:
            raise AggregateBatchError(error, task.key) from error
        get_output().debug(f"Request {task.key!r} failed and was skipped: {error}")

    @staticmethod
    def _build_tasks(
        requests: Union[Mapping[RequestKey, Any], Sequence[Any]],
        shared: RequestConfig,
    ) -> dict[RequestKey, PoolTask]:
        if isinstance(requests, Mapping):
            items = list(requests.items())
        elif isinstance(requests, Sequence) and not isinstance(requests, (str, bytes)):
            items = list(enumerate(requests))
        else:
            raise InvalidArgumentError("requests must be a mapping or a sequence")

        tasks: dict[RequestKey, PoolTask] = {}
        for key, entry in items:
            if not isinstance(key, (str, int)) or isinstance(key, bool):
                raise InvalidArgumentError(f"batch keys must be str or int, got {key!r}")
            if isinstance(entry, Mapping):
                options = dict(entry)
                url = options.pop("url", None)
            else:
                url, options = entry, None
            if not url:
                raise InvalidArgumentError(f"batch request {key!r} has no url")
            tasks[key] = PoolTask(key=key, url=str(url), config=merge(shared, options))
        return tasks
