# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import pytest

from xmlbind import (
    Cardinality,
    Descriptor,
    FieldBinding,
    Nested,
    Opaque,
    Primitive,
    Record,
    Role,
    SchemaError,
    TaggedEnum,
    UntaggedEnum,
    ValueCoercionError,
    Variant,
    VariantMap,
    attribute,
    child,
    children,
    flag,
    flatten,
    tagged,
    text,
    unparsed,
    untagged,
)
from xmlbind.datamodel import UInt8Adapter


NAME = Descriptor([attribute('zh', str), attribute('en', str)])
SIZE = Descriptor([child('width', int), child('height', int)])


class TestFieldBinding:

    def test_helpers(self) -> None:
        age = attribute('age', int, adapter=UInt8Adapter)
        assert age.role is Role.Attribute
        assert age.name == 'age'
        assert age.cardinality is Cardinality.Scalar
        assert age.shape == Primitive(int, UInt8Adapter)
        assert age.default is None

        lefty = attribute('lefty', bool, default=False)
        assert lefty.default is not None
        assert lefty.default() is False
        assert lefty.is_default(False)
        assert not lefty.is_default(True)
        assert not age.is_default(0)

        name = child('name', NAME)
        assert name.role is Role.Child
        assert name.shape == Nested(NAME)

        items = children('items', int, name='item', size_hint='count')
        assert items.cardinality is Cardinality.Repeated
        assert items.name == 'item'
        assert items.xml_name == 'item'

        value = text('value', optional=True)
        assert value.role is Role.Text
        assert value.name is None
        assert value.xml_name == 'value'
        assert value.cardinality is Cardinality.Optional

        bold = flag('bold', name='b')
        assert bold.role is Role.Flag
        assert bold.shape == Primitive(bool)

        shape = tagged('shape', {'circle': NAME, 'point': None})
        assert isinstance(shape.shape, TaggedEnum)
        assert list(shape.shape.variants) == ['circle', 'point']
        assert not shape.shape.variants.fallback

        content = untagged('content', {'circle': NAME}, cardinality=Cardinality.Repeated, fallback=True)
        assert content.role is Role.UntaggedVariant
        assert isinstance(content.shape, UntaggedEnum)
        assert content.shape.variants.fallback

        others = unparsed('others', optional=True)
        assert others.shape == Opaque()
        assert others.cardinality is Cardinality.Optional

        size = flatten('size', SIZE, optional=True)
        assert size.role is Role.Flatten
        assert size.name is None
        assert size.xml_name == 'size'
        assert size.shape == Nested(SIZE)
        assert size.cardinality is Cardinality.Optional

    def test_callable_defaults(self) -> None:
        tags = children('tags', str, name='tag', default=list)
        assert tags.default is list
        assert tags.is_default([])
        assert not tags.is_default(['a'])

    def test_constant_defaults_are_copied(self) -> None:
        items = children('items', int, name='item', default=[])
        assert items.default is not None
        first = items.default()
        first.append(1)  # type: ignore[attr-defined]
        assert items.default() == []
        assert items.default() is not items.default()
        assert items.is_default([])

        name = child('name', NAME, default=Record(zh='', en=''))
        assert name.default is not None
        name.default()['zh'] = 'changed'  # type: ignore[index]
        assert name.default() == Record(zh='', en='')

    def test_invalid_bindings(self) -> None:
        with pytest.raises(SchemaError, match=r'must have a name'):
            FieldBinding(key='age', role=Role.Attribute, shape=Primitive(int))

        with pytest.raises(SchemaError, match=r"doesn't take a name"):
            FieldBinding(key='value', role=Role.Text, name='value', shape=Primitive(str))

        with pytest.raises(SchemaError, match=r'must have a primitive shape'):
            FieldBinding(key='name', role=Role.Attribute, name='name', shape=Nested(NAME))

        with pytest.raises(SchemaError, match=r'cannot be repeated'):
            FieldBinding(key='age', role=Role.Attribute, name='age', shape=Primitive(int), cardinality=Cardinality.Repeated)

        with pytest.raises(SchemaError, match=r'flag binding must be a scalar bool'):
            FieldBinding(key='bold', role=Role.Flag, name='b', shape=Primitive(int))

        with pytest.raises(SchemaError, match=r'untagged variant binding must have an untagged enum shape'):
            FieldBinding(key='content', role=Role.UntaggedVariant, shape=Nested(NAME))

        with pytest.raises(SchemaError, match=r'cannot have an untagged enum shape'):
            FieldBinding(key='content', role=Role.Child, name='content', shape=UntaggedEnum(VariantMap({'a': None})))

        with pytest.raises(SchemaError, match=r'cannot have a size hint'):
            FieldBinding(key='item', role=Role.Child, name='item', shape=Primitive(int), size_hint=3)

        with pytest.raises(SchemaError, match=r'must not be negative'):
            children('items', int, name='item', size_hint=-1)

        with pytest.raises(SchemaError, match=r'an adapter can only be specified for primitive types'):
            child('name', NAME, adapter=UInt8Adapter)

        with pytest.raises(SchemaError, match=r'a binding target must be'):
            child('name', 'NAME')  # type: ignore[arg-type]

        with pytest.raises(SchemaError, match=r"doesn't take a name"):
            FieldBinding(key='size', role=Role.Flatten, name='size', shape=Nested(SIZE))

        with pytest.raises(SchemaError, match=r'must be a single or optional nested descriptor'):
            FieldBinding(key='size', role=Role.Flatten, shape=Nested(SIZE), cardinality=Cardinality.Repeated)

        with pytest.raises(SchemaError, match=r'must be a single or optional nested descriptor'):
            FieldBinding(key='size', role=Role.Flatten, shape=Primitive(int))

        with pytest.raises(SchemaError, match=r'can only have child and flag bindings'):
            flatten('name', NAME)

    def test_defaults_must_compare_equal(self) -> None:
        with pytest.raises(SchemaError, match=r"produces values that don't compare equal"):
            attribute('ratio', float, default=float('nan'))

        with pytest.raises(SchemaError, match=r"produces values that don't compare equal"):
            child('token', NAME, default=object)

    def test_parse_and_format(self) -> None:
        age = attribute('age', int, adapter=UInt8Adapter)
        assert age.parse('16') == 16
        assert age.format(16) == '16'

        with pytest.raises(ValueCoercionError, match=r"Invalid value for 'age': cannot convert '300' to int \(UInt8Adapter\)") as exc_info:
            age.parse('300')
        assert exc_info.value.field == 'age'
        assert exc_info.value.raw_text == '300'
        assert isinstance(exc_info.value.__cause__, ValueError)

        with pytest.raises(ValueCoercionError, match=r'value must be of type int'):
            age.format('16')

        with pytest.raises(ValueCoercionError, match=r'for unsigned 8-bit integer'):
            age.format(256)

        # bool is an int subclass, but True is not an integer value
        with pytest.raises(ValueCoercionError, match=r"cannot convert 'True' to int \(UInt8Adapter\): value must be of type int"):
            age.format(True)

        count = attribute('count', int)
        with pytest.raises(ValueCoercionError, match=r'value must be of type int'):
            count.format(False)

        lefty = attribute('lefty', bool)
        assert lefty.format(True) == 'true'


class TestVariantMap:

    def test_variant_map(self) -> None:
        variants = VariantMap([('circle', NAME), ('point', None)])
        assert list(variants) == ['circle', 'point']
        assert len(variants) == 2
        assert variants['circle'] is NAME
        assert variants['point'] is None
        assert 'square' not in variants
        assert variants == VariantMap({'circle': NAME, 'point': None})
        assert variants != VariantMap({'point': None, 'circle': NAME})
        assert variants != VariantMap({'circle': NAME, 'point': None}, fallback=True)

        assert len(VariantMap(fallback=True)) == 0

    def test_text_variant(self) -> None:
        variants = VariantMap({'circle': NAME}, text=('label', str))
        assert variants.text == ('label', Primitive(str))
        assert variants.text_tag == 'label'
        assert list(variants) == ['circle']
        assert 'label' not in variants
        assert variants.parse_text('shape', 'round') == Variant('label', 'round')
        assert variants.format_text('shape', Variant('label', 'round')) == 'round'
        assert variants == VariantMap({'circle': NAME}, text=('label', Primitive(str)))
        assert variants != VariantMap({'circle': NAME})
        assert VariantMap({'circle': NAME}).text_tag is None

        numbers = VariantMap(text=('number', Primitive(int, UInt8Adapter)))
        assert len(numbers) == 0
        assert numbers.parse_text('value', '7') == Variant('number', 7)

        with pytest.raises(ValueCoercionError, match=r"Invalid value for 'value': cannot convert '300' to int \(UInt8Adapter\)"):
            numbers.parse_text('value', '300')

        with pytest.raises(ValueCoercionError, match=r'value must be of type int'):
            numbers.format_text('value', Variant('number', '7'))

        shape = untagged('shape', {'circle': NAME}, text=('label', str))
        assert isinstance(shape.shape, UntaggedEnum)
        assert shape.shape.variants.text_tag == 'label'

    def test_invalid_variant_maps(self) -> None:
        with pytest.raises(SchemaError, match=r'at least one variant'):
            VariantMap()

        with pytest.raises(SchemaError, match=r'duplicate variant names'):
            VariantMap([('circle', None), ('circle', NAME)])

        with pytest.raises(SchemaError, match=r'must map to a Descriptor or None'):
            VariantMap({'circle': Record()})  # type: ignore[dict-item]

        with pytest.raises(SchemaError, match=r"the 'label' text variant clashes with the element variant"):
            VariantMap({'label': None}, text=('label', str))

        with pytest.raises(SchemaError, match=r'the text variant must be a \(tag, type\) pair'):
            VariantMap({'circle': None}, text=('label', 'str'))  # type: ignore[arg-type]


class TestDescriptor:

    def test_descriptor(self) -> None:
        shapes = untagged('shape', {'circle': NAME, 'point': None})
        extra = untagged('extra', {'circle': None, 'square': None}, fallback=True)
        descriptor = Descriptor(
            [
                attribute('age', int),
                child('name', NAME),
                text('note', optional=True),
                flag('bold', name='b'),
                shapes,
                extra,
            ],
            root='person',
        )

        assert descriptor.root == 'person'
        assert descriptor.factory is Record
        assert [binding.key for binding in descriptor.attributes] == ['age']
        assert list(descriptor.attribute_map) == ['age']
        assert descriptor.text is not None
        assert descriptor.text.key == 'note'
        assert [binding.key for binding in descriptor.content] == ['name', 'bold', 'shape', 'extra']
        assert list(descriptor.element_map) == ['name', 'b']
        assert descriptor.untagged == (shapes, extra)

        # the first untagged binding that knows a variant wins
        assert descriptor.match_untagged('circle') == (shapes, NAME)
        assert descriptor.match_untagged('square') == (extra, None)
        assert descriptor.match_untagged('hexagon') is None
        assert descriptor.fallback_untagged() is extra
        assert descriptor.text_variant is None
        assert dict(descriptor.flatten_map) == {}

    def test_flattened_and_text_variants(self) -> None:
        size = flatten('size', SIZE)
        label = untagged('label', {'icon': None}, cardinality=Cardinality.Optional, text=('caption', str))
        descriptor = Descriptor([child('name', str), size, label], root='widget')

        assert [binding.key for binding in descriptor.content] == ['name', 'size', 'label']
        assert list(descriptor.element_map) == ['name']
        assert dict(descriptor.flatten_map) == {'width': size, 'height': size}
        assert descriptor.text_variant is label

    def test_invalid_descriptors(self) -> None:
        with pytest.raises(SchemaError, match=r"duplicate field key 'age'"):
            Descriptor([attribute('age', int), child('age', int)])

        with pytest.raises(SchemaError, match=r"duplicate attribute name 'id'"):
            Descriptor([attribute('first', int, name='id'), attribute('second', int, name='id')])

        with pytest.raises(SchemaError, match=r"duplicate element name 'item'"):
            Descriptor([child('first', int, name='item'), flag('second', name='item')])

        with pytest.raises(SchemaError, match=r'only one text binding'):
            Descriptor([text('first'), text('second')])

        with pytest.raises(SchemaError, match=r'must refer to an attribute binding'):
            Descriptor([children('items', int, name='item', size_hint='count')])

        with pytest.raises(SchemaError, match=r'must refer to an attribute binding'):
            Descriptor([child('count', int), children('items', int, name='item', size_hint='count')])

        with pytest.raises(SchemaError, match=r'must be FieldBinding objects'):
            Descriptor(['age'])  # type: ignore[list-item]

        with pytest.raises(SchemaError, match=r"duplicate element name 'width' in the 'size' flatten binding"):
            Descriptor([child('width', str), flatten('size', SIZE)])

        with pytest.raises(SchemaError, match=r"duplicate element name 'height' in the 'other' flatten binding"):
            Descriptor([flatten('size', SIZE), flatten('other', Descriptor([child('height', int)]))])

        with pytest.raises(SchemaError, match=r"cannot be bound to both the 'note' text binding and the text variant of 'label'"):
            Descriptor([text('note'), untagged('label', {'icon': None}, text=('caption', str))])

        Descriptor([attribute('count', int), children('items', int, name='item', size_hint='count')])
