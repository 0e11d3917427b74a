"""
InfluxDB line protocol record building and serialization.

Format: measurement,tag1=value1,tag2=value2 field1=value1,field2=value2 timestamp
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, Optional

from vpa.metrics_schemas import ID_TAG, INSTANCE_TAG, NAME_TAG, TAG_PLACEHOLDER, get_tag_keys
from vpa.models import EntityContext, OutputLine
from vpa.timestamps import to_epoch_ns

LOG = logging.getLogger(__name__)


def _escape_key(value: str) -> str:
    """Escape tag keys, tag values and field keys."""
    # Backslash first so a trailing one cannot escape the next separator
    return (str(value).replace('\\', '\\\\').replace(',', r'\,')
            .replace('=', r'\=').replace(' ', r'\ '))


def _escape_measurement(value: str) -> str:
    return str(value).replace(',', r'\,').replace(' ', r'\ ')


def sanitize_tag_value(value) -> str:
    """
    Return a tag value that is safe to write, or the placeholder.

    Newlines would split the record, so they are replaced; surrounding
    whitespace is stripped. Empty values become TAG_PLACEHOLDER so the series
    keeps the same tag set.
    """
    if value is None:
        return TAG_PLACEHOLDER
    sanitized = str(value).replace('\r', '_').replace('\n', '_').strip()
    if not sanitized:
        return TAG_PLACEHOLDER
    return sanitized


def format_field_value(value: Any) -> str:
    """Format a field value based on its type."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        return repr(value)
    escaped = str(value).replace('\\', '\\\\').replace('"', r'\"')
    return f'"{escaped}"'


class LineRecordBuilder:
    """
    Builds OutputLine records with the fixed tag vocabulary of each entity type.
    """

    def build_tags(self, entity: EntityContext, instance: Optional[str] = None,
                   per_instance: bool = False, unit: Optional[str] = None) -> Dict[str, str]:
        """
        Tag set for a line of this entity.

        Args:
            entity: The entity the line describes
            instance: Sub-device instance, only used when per_instance is set
            per_instance: Append the instance tag
            unit: Append a unit tag when given

        Returns:
            OrderedDict of tag key -> sanitized value
        """
        values = dict(entity.tags)
        id_tag = ID_TAG.get(entity.entity_type)
        name_tag = NAME_TAG.get(entity.entity_type)
        if id_tag and not values.get(id_tag):
            values[id_tag] = entity.entity_id
        if name_tag and not values.get(name_tag):
            values[name_tag] = entity.entity_name

        tags = OrderedDict()
        for key in get_tag_keys(entity.entity_type):
            tags[key] = sanitize_tag_value(values.get(key))
        if per_instance:
            tags[INSTANCE_TAG] = sanitize_tag_value(instance)
        if unit is not None:
            tags['unit'] = sanitize_tag_value(unit)
        return tags

    def build(self, measurement: str, tags: Dict[str, Any], fields: Dict[str, Any],
              timestamp) -> OutputLine:
        """
        Assemble an OutputLine.

        Args:
            measurement: Measurement name
            tags: Ordered tag mapping; empty values become the placeholder
            fields: Field mapping; None values are dropped
            timestamp: Epoch nanoseconds (int), datetime, or source time string

        Raises:
            ValueError: If no field has a value
            InvalidTimestamp: If the timestamp cannot be normalized
        """
        clean_fields = OrderedDict((k, v) for k, v in fields.items() if v is not None)
        if not clean_fields:
            raise ValueError(f"Line for {measurement} has no fields")
        clean_tags = OrderedDict((k, sanitize_tag_value(v)) for k, v in tags.items())
        if isinstance(timestamp, int) and not isinstance(timestamp, bool):
            ts = timestamp
        else:
            ts = to_epoch_ns(timestamp)
        return OutputLine(measurement=measurement, tags=clean_tags, fields=clean_fields, timestamp=ts)

    @staticmethod
    def to_line(record: OutputLine) -> str:
        """Serialize an OutputLine to one line of line protocol."""
        head = _escape_measurement(record.measurement)
        if record.tags:
            head += ',' + ','.join(f"{_escape_key(k)}={_escape_key(v)}" for k, v in record.tags.items())
        field_str = ','.join(f"{_escape_key(k)}={format_field_value(v)}" for k, v in record.fields.items())
        return f"{head} {field_str} {record.timestamp}"
