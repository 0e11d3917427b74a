"""
Base writer interface for vSphere Perf Analyzer.
"""

import logging
from abc import ABC, abstractmethod

# Initialize logger
LOG = logging.getLogger(__name__)


class Writer(ABC):
    """
    Base class for all writers.
    """

    @abstractmethod
    def write(self, payload: str) -> bool:
        """
        Write one batch to the destination.

        Args:
            payload: Newline-joined line protocol

        Returns:
            True if write was successful, False otherwise
        """
        pass

    def close(self) -> None:
        """
        Optional method to close the writer and clean up resources.
        Default implementation does nothing - override in subclasses that need cleanup.
        """
        pass


class StubWriter(Writer):
    """Logs what would be written. Used with --doNotPost."""

    def __init__(self):
        self.payloads = []

    def write(self, payload: str) -> bool:
        line_count = payload.count('\n') + 1 if payload else 0
        LOG.info(f"Stub writer: would write {line_count} lines")
        LOG.debug(payload)
        self.payloads.append(payload)
        return True
