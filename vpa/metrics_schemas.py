# -----------------------------------------------------------------------------
# Copyright (c) 2025 vSphere Perf Analyzer contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

"""
Tag vocabularies for every entity type.

The tag set of a series is part of its identity in InfluxDB, so each entity
type always emits the same keys in the same order. Values that are missing
are written as TAG_PLACEHOLDER instead of being left out.
"""

from typing import List

from vpa.models import EntityType

TAG_PLACEHOLDER = 'n/a'

# Appended to the entity tags for PER_INSTANCE metrics
INSTANCE_TAG = 'instance'

TAG_SCHEMAS = {
    EntityType.HOST: {
        # host_id is the managed object id, host is the display name
        'tags': ['vcenter', 'datacenter', 'cluster', 'cluster_id', 'host', 'host_id'],
    },
    EntityType.VM: {
        'tags': ['vcenter', 'datacenter', 'cluster', 'host', 'vm', 'vm_id'],
    },
    EntityType.VSAN_CLUSTER: {
        'tags': ['vcenter', 'cluster', 'cluster_id'],
    },
    EntityType.VSAN_DISKGROUP: {
        'tags': ['vcenter', 'cluster', 'host', 'diskgroup', 'diskgroup_id'],
    },
    EntityType.APPLIANCE: {
        'tags': ['vcenter', 'check', 'check_type'],
    },
    EntityType.POLLER: {
        'tags': ['target', 'poller'],
    },
}

# Tag keys filled from EntityContext.entity_id / entity_name
ID_TAG = {
    EntityType.HOST: 'host_id',
    EntityType.VM: 'vm_id',
    EntityType.VSAN_CLUSTER: 'cluster_id',
    EntityType.VSAN_DISKGROUP: 'diskgroup_id',
}

NAME_TAG = {
    EntityType.HOST: 'host',
    EntityType.VM: 'vm',
    EntityType.VSAN_CLUSTER: 'cluster',
    EntityType.VSAN_DISKGROUP: 'diskgroup',
}


def get_tag_keys(entity_type) -> List[str]:
    """
    Get the ordered tag keys for an entity type

    Args:
        entity_type (EntityType): Entity type of the line

    Returns:
        list: Tag keys, empty list if the type is unknown
    """
    schema = TAG_SCHEMAS.get(entity_type)
    if not schema:
        return []
    return list(schema['tags'])
