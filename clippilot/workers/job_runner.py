"""Background job runner using asyncio."""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class JobRunner:
    """
    Async background runner: one task per key.
    
    Callers hand off a coroutine and return immediately; completion is
    observed by re-querying job state, or by ``wait`` in tests.
    """
    
    def __init__(self):
        self._running_jobs: Dict[str, asyncio.Task] = {}
        self._on_interrupt: Optional[Callable[[str], Awaitable[None]]] = None
    
    def set_interrupt_handler(self, handler: Callable[[str], Awaitable[None]]):
        """Register a callback run for each key interrupted by ``shutdown``."""
        self._on_interrupt = handler
    
    def start(self, key: str, coro: Awaitable) -> bool:
        """
        Start a background run.
        
        Args:
            key: Identity of the run (the job id)
            coro: Coroutine to execute
            
        Returns:
            True if the run was started, False if one is already running for ``key``
        """
        if key in self._running_jobs:
            logger.warning(f"Job {key} is already running")
            coro.close()
            return False
        
        task = asyncio.create_task(self._run(key, coro))
        self._running_jobs[key] = task
        return True
    
    async def _run(self, key: str, coro: Awaitable):
        try:
            await coro
        except asyncio.CancelledError:
            logger.info(f"Job {key} was interrupted")
            raise
        except Exception as e:
            # Runs record their own failures; anything reaching here is a bug
            logger.exception(f"Job {key} crashed: {e}")
        finally:
            self._running_jobs.pop(key, None)
    
    def is_running(self, key: str) -> bool:
        """Check if a run is currently in flight."""
        return key in self._running_jobs
    
    async def wait(self, key: str):
        """Wait for a run to finish; returns immediately if none is running."""
        task = self._running_jobs.get(key)
        if task:
            await asyncio.gather(task, return_exceptions=True)
    
    async def shutdown(self):
        """Cancel all running jobs and mark them failed."""
        interrupted = dict(self._running_jobs)
        for task in interrupted.values():
            task.cancel()
        
        if interrupted:
            await asyncio.gather(*interrupted.values(), return_exceptions=True)
        
        if self._on_interrupt:
            for key in interrupted:
                try:
                    await self._on_interrupt(key)
                except Exception as e:
                    logger.error(f"Failed to record interruption of job {key}: {e}")
        
        self._running_jobs.clear()


# Global job runner instance
job_runner = JobRunner()
