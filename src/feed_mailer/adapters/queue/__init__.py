"""Queue adapters between fetching and notifying."""

from feed_mailer.adapters.queue.directory_queue import DirectoryBatchQueue
from feed_mailer.adapters.queue.memory_queue import MemoryBatchQueue

__all__ = ["DirectoryBatchQueue", "MemoryBatchQueue"]
