# -----------------------------------------------------------------------------
# Copyright (c) 2025 vSphere Perf Analyzer contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

"""
Run batches and the emitter that hands them to a writer.

A Batch is the explicit accumulator for one polling run of one collection
category. The emitter adds the poller's own record and writes the whole batch
in a single call.
"""

import logging
import socket
import time
from typing import Iterable, Iterator, List, Optional

from vpa.models import EntityContext, EntityType, OutputLine
from vpa.timestamps import now_ns
from vpa.writer.base import Writer
from vpa.writer.line_protocol import LineRecordBuilder

LOG = logging.getLogger(__name__)

POLLER_MEASUREMENT = 'vpa_poller'


class Batch:
    """Ordered OutputLines of one run."""

    def __init__(self, lines: Optional[Iterable[OutputLine]] = None):
        self._lines: List[OutputLine] = list(lines) if lines else []

    def add(self, line: OutputLine) -> None:
        self._lines.append(line)

    def extend(self, lines: Iterable[OutputLine]) -> None:
        self._lines.extend(lines)

    @property
    def lines(self) -> List[OutputLine]:
        return list(self._lines)

    def __len__(self):
        return len(self._lines)

    def __iter__(self) -> Iterator[OutputLine]:
        return iter(self._lines)

    def to_lines(self) -> List[str]:
        return [LineRecordBuilder.to_line(line) for line in self._lines]

    def payload(self) -> str:
        """Newline-joined line protocol for the whole batch."""
        return '\n'.join(self.to_lines())


class RunStats:
    """
    Bookkeeping for the poller's own record.

    Args:
        target: Label of what was polled (vcenter and category)
        poller: Hostname of the machine running the poller
        started_at: Run start, epoch nanoseconds; now if omitted
    """

    def __init__(self, target: str, poller: Optional[str] = None, started_at: Optional[int] = None):
        self.target = target
        self.poller = poller or socket.gethostname()
        self.started_at = started_at if started_at is not None else now_ns()
        self.entities = 0
        self._start_monotonic = time.monotonic()
        self._duration = None

    def entity_done(self, count: int = 1) -> None:
        self.entities += count

    def finish(self) -> float:
        """Freeze and return the run duration in seconds."""
        if self._duration is None:
            self._duration = time.monotonic() - self._start_monotonic
        return self._duration

    @property
    def duration(self) -> float:
        if self._duration is not None:
            return self._duration
        return time.monotonic() - self._start_monotonic


class BatchEmitter:
    """Appends the poller record to a batch and hands the payload to the writer."""

    def __init__(self, writer: Writer, builder: Optional[LineRecordBuilder] = None):
        self.writer = writer
        self.builder = builder or LineRecordBuilder()

    def poller_line(self, stats: RunStats) -> OutputLine:
        entity = EntityContext(
            entity_type=EntityType.POLLER,
            entity_id=stats.poller,
            entity_name=stats.poller,
            tags={'target': stats.target, 'poller': stats.poller},
        )
        fields = {
            'duration': float(stats.finish()),
            'entities': int(stats.entities),
        }
        return self.builder.build(POLLER_MEASUREMENT, self.builder.build_tags(entity), fields,
                                  stats.started_at)

    def emit(self, batch: Batch, stats: RunStats) -> bool:
        """
        Write the batch plus exactly one poller record.

        Returns:
            bool: The writer's result. The response itself is not inspected here.
        """
        batch.add(self.poller_line(stats))
        LOG.info(f"Emitting {len(batch)} lines for {stats.target} "
                 f"({stats.entities} entities in {stats.duration:.2f}s)")
        return self.writer.write(batch.payload())
