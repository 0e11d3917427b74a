"""
Tests for line record building and line protocol serialization.
"""

import pytest

from vpa.exceptions import InvalidTimestamp
from vpa.models import EntityContext, EntityType
from vpa.writer.line_protocol import LineRecordBuilder, format_field_value, sanitize_tag_value

from tests.conftest import SOURCE_TS, SOURCE_TS_NS


class TestFormatFieldValue:

    def test_types(self):
        assert format_field_value(True) == 'true'
        assert format_field_value(False) == 'false'
        assert format_field_value(3) == '3i'
        assert format_field_value(2.0) == '2.0'
        assert format_field_value(0.25) == '0.25'

    def test_string_is_quoted_and_escaped(self):
        assert format_field_value('a"b') == '"a\\"b"'
        assert format_field_value('c:\\temp') == '"c:\\\\temp"'


class TestSanitizeTagValue:

    def test_placeholder(self):
        assert sanitize_tag_value(None) == 'n/a'
        assert sanitize_tag_value('') == 'n/a'
        assert sanitize_tag_value('   ') == 'n/a'

    def test_newlines_replaced(self):
        assert sanitize_tag_value('a\nb') == 'a_b'


class TestLineRecordBuilder:
    """Record building and serialization"""

    def setup_method(self):
        self.builder = LineRecordBuilder()

    def test_escaping(self):
        line = self.builder.build('my meas,x', {'a': 'x y', 'b=c': 'd,e'}, {'value': 1.5}, SOURCE_TS_NS)
        assert LineRecordBuilder.to_line(line) == (
            'my\\ meas\\,x,a=x\\ y,b\\=c=d\\,e value=1.5 1519812000000000000')

    def test_trailing_backslash_in_tag_value(self):
        line = self.builder.build('m', {'a': 'x\\', 'b': 'y'}, {'value': 1.5}, SOURCE_TS_NS)
        assert LineRecordBuilder.to_line(line) == 'm,a=x\\\\,b=y value=1.5 1519812000000000000'

    def test_missing_tag_and_null_field(self):
        line = self.builder.build('m', {'a': 'x', 'b': None}, {'value': 1.5, 'other': None}, SOURCE_TS_NS)
        assert LineRecordBuilder.to_line(line) == 'm,a=x,b=n/a value=1.5 1519812000000000000'

    def test_no_fields(self):
        with pytest.raises(ValueError):
            self.builder.build('m', {'a': 'x'}, {'value': None}, SOURCE_TS_NS)

    def test_timestamp_string_is_normalized(self):
        line = self.builder.build('m', {}, {'value': 1.0}, SOURCE_TS)
        assert line.timestamp == SOURCE_TS_NS
        assert LineRecordBuilder.to_line(line) == 'm value=1.0 1519812000000000000'

    def test_bad_timestamp(self):
        with pytest.raises(InvalidTimestamp):
            self.builder.build('m', {}, {'value': 1.0}, '2018-02-28T10:00:00')

    def test_host_tags(self, host_entity):
        tags = self.builder.build_tags(host_entity)
        assert list(tags.items()) == [
            ('vcenter', 'vc1'),
            ('datacenter', 'dc1'),
            ('cluster', 'Prod'),
            ('cluster_id', 'domain-c7'),
            ('host', 'esx01'),
            ('host_id', 'host-1'),
        ]

    def test_standalone_host_gets_placeholders(self):
        entity = EntityContext(EntityType.HOST, 'host-9', 'esx09', tags={'vcenter': 'vc1'})
        tags = self.builder.build_tags(entity)
        assert tags['cluster'] == 'n/a'
        assert tags['cluster_id'] == 'n/a'
        assert tags['datacenter'] == 'n/a'

    def test_instance_and_unit_tags(self, vm_entity):
        tags = self.builder.build_tags(vm_entity, instance='scsi0:0', per_instance=True, unit='ms')
        assert list(tags)[-2:] == ['instance', 'unit']
        assert tags['instance'] == 'scsi0:0'
        assert tags['vm_id'] == 'vm-1001'

    def test_empty_instance_placeholder(self, vm_entity):
        tags = self.builder.build_tags(vm_entity, instance='', per_instance=True)
        assert tags['instance'] == 'n/a'
        assert 'unit' not in tags

    def test_tag_keys_stable_across_entities(self, host_entity):
        other = EntityContext(EntityType.HOST, 'host-2', 'esx02', tags={'vcenter': 'vc1'})
        assert list(self.builder.build_tags(host_entity)) == list(self.builder.build_tags(other))
