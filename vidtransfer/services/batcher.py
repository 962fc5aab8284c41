"""Windowed, bounded-concurrency execution of part operations."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from vidtransfer.core.exceptions import InvalidArgumentException
from vidtransfer.utils.logger import get_logger

logger: logging.Logger = get_logger(__name__)

T = TypeVar('T')

Operation = Callable[[], Awaitable[T]]
CompletionCallback = Callable[[int, Any], Any]


class ParallelBatcher:
    """
    Run operations in consecutive windows of ``concurrency_limit``.

    Each window is awaited in full before the next one starts, so at most
    ``concurrency_limit`` operations are ever in flight. A window with any
    failure stops the run: no later window is started and the first failure
    in completion order is raised. Results of that window's other operations
    are discarded.
    """

    def __init__(self, concurrency_limit: int = 3):
        if concurrency_limit < 1:
            raise InvalidArgumentException(
                f"concurrency_limit must be at least 1, got {concurrency_limit}",
                field="concurrency_limit"
            )
        self.concurrency_limit = concurrency_limit

    def windows(self, count: int) -> List[range]:
        """Index ranges of the windows used for ``count`` operations."""
        return [
            range(start, min(start + self.concurrency_limit, count))
            for start in range(0, count, self.concurrency_limit)
        ]

    async def run(
        self,
        operations: Sequence[Operation],
        on_complete: Optional[CompletionCallback] = None
    ) -> List[Any]:
        """
        Execute every operation and return results in input order.

        Args:
            operations: Zero-argument coroutine factories; a factory is only
                called when its window starts.
            on_complete: Optional ``(index, result)`` callback, sync or async,
                invoked as each operation succeeds.

        Returns:
            List of results, ``results[i]`` belonging to ``operations[i]``.
        """
        results: Dict[int, Any] = {}

        for window in self.windows(len(operations)):
            failures: List[Tuple[int, Exception]] = []

            async def _run_one(index: int) -> None:
                try:
                    result = await operations[index]()
                    if on_complete is not None:
                        callback_result = on_complete(index, result)
                        if asyncio.iscoroutine(callback_result):
                            await callback_result
                except Exception as e:
                    failures.append((index, e))
                    return
                results[index] = result

            await asyncio.gather(*(_run_one(i) for i in window))

            if failures:
                index, error = failures[0]
                logger.warning(
                    f"Batch stopped at window {window.start}-{window.stop - 1}: "
                    f"operation {index} failed ({len(failures)} failure(s) in window)"
                )
                raise error

        return [results[i] for i in range(len(operations))]
