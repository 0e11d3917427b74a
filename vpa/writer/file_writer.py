"""
Line protocol file writer for vSphere Perf Analyzer.

Appends batches to timestamped .lp files instead of posting them, which is useful for
checking what a run would send or for replaying with `influx write`.
"""

import logging
import os

from vpa.utils import get_output_path
from vpa.writer.base import Writer

# Initialize logger
LOG = logging.getLogger(__name__)


class LineProtocolFileWriter(Writer):
    """
    Writer that outputs batches to .lp files.
    """

    def __init__(self, output_dir: str, target: str = "vpa"):
        """
        Initialize the file writer.

        Args:
            output_dir: Directory where files will be written
            target: Label used in file names
        """
        self.output_dir = output_dir
        self.target = target
        self.files_written = []
        os.makedirs(output_dir, exist_ok=True)
        LOG.info(f"Line protocol file writer initialized with output directory: {output_dir}")

    def write(self, payload: str) -> bool:
        filepath = get_output_path(self.target, self.output_dir)
        try:
            # Several batches per minute land in the same file
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(payload)
                f.write('\n')
        except OSError as e:
            LOG.error(f"Failed to write line protocol to {filepath}: {e}")
            return False

        if filepath not in self.files_written:
            self.files_written.append(filepath)
        LOG.info(f"Line protocol saved to: {filepath} ({len(payload.splitlines())} lines)")
        return True
