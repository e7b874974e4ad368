"""
FeedReader Worker
=================

Execution boundary for fetching and parsing: a worker thread with its own
event loop, reached only through JSON messages with correlation ids.
"""

from .client import FeedWorkerClient
from .feed_worker import FeedRequestHandler, FeedWorker

__all__ = [
    "FeedWorkerClient",
    "FeedWorker",
    "FeedRequestHandler",
]
