# -----------------------------------------------------------------------------
# Copyright (c) 2025 vSphere Perf Analyzer contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

import logging
import os
import re
from datetime import datetime
from typing import List, Optional, Union

LOG = logging.getLogger(__name__)


def get_output_path(target: str, outdir: Optional[str] = None, extension: str = 'lp') -> str:
    """Generate an output file path with target label and timestamp for file writers."""
    directory = outdir if outdir else '.'
    os.makedirs(directory, exist_ok=True)
    timestamp = datetime.now().strftime('%Y%m%d%H%M')

    if not target:
        LOG.warning("[UTILS] Missing target label for output file. File will not have a target identifier.")
        filename = f"batch_{timestamp}.{extension}"
    else:
        # Keep file names filesystem-safe (vcenter FQDNs, category names)
        clean_target = re.sub(r'[^A-Za-z0-9_.-]', '_', target)
        filename = f"{clean_target}_{timestamp}.{extension}"

    return os.path.join(directory, filename)


def split_list(value: Union[None, str, List[str]]) -> List[str]:
    """
    Normalize a comma separated string or a list into a list of stripped strings.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(',')
    else:
        items = []
        for item in value:
            items.extend(str(item).split(','))
    return [item.strip() for item in items if item and item.strip()]


def target_label(vcenter: str, category: str) -> str:
    return f"{vcenter}/{category}" if vcenter else category
