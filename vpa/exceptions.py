# -----------------------------------------------------------------------------
# Copyright (c) 2025 vSphere Perf Analyzer contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

"""
Exception types raised by vSphere Perf Analyzer.
"""


class VpaError(Exception):
    """Base class for all collector errors."""


class InvalidTimestamp(VpaError, ValueError):
    """A source timestamp could not be converted to epoch nanoseconds."""

    def __init__(self, value, reason: str = "unsupported timestamp"):
        self.value = value
        self.reason = reason
        super().__init__(f"{reason}: {value!r}")


class ConnectionFailed(VpaError):
    """Session setup against vCenter, vSAN or the appliance REST API failed."""

    def __init__(self, endpoint: str, message: str):
        self.endpoint = endpoint
        super().__init__(f"{endpoint}: {message}")
