from __future__ import annotations

from releasegate.queue.memory import DelayingWorkQueue, QueueShutDown

__all__ = ["DelayingWorkQueue", "QueueShutDown"]
