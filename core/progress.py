#!/usr/bin/env python3
"""
TableCopy Progress Signal

The engine reports the total number of rows to migrate once, then one
increment per copied page. Displays implement ProgressListener.
"""


class ProgressListener:
    """Receives row counts while tables are copied"""

    def start(self, total: int):
        pass

    def advance(self, count: int):
        pass

    def finish(self):
        pass


class NullProgress(ProgressListener):
    """Discards every progress event"""


class CountingProgress(ProgressListener):
    """Keeps the events in memory; handy for callers that poll"""

    def __init__(self):
        self.total = 0
        self.copied = 0
        self.increments = []
        self.finished = False

    def start(self, total: int):
        self.total = total

    def advance(self, count: int):
        self.copied += count
        self.increments.append(count)

    def finish(self):
        self.finished = True
