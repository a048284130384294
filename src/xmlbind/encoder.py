# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from collections.abc import Iterable

from .events import EventWriter
from .exceptions import MissingRequiredValue, UnresolvedVariant
from .schema import Cardinality, Descriptor, FieldBinding, Nested, Opaque, Primitive, Role, TaggedEnum, UntaggedEnum, VariantMap
from .values import Marker, Unparsed, Variant, get_field

__all__ = 'Encoder',  # noqa: COM818


logger = logging.getLogger(__name__)


class Encoder:
    """Write value trees to an event writer, following their descriptors"""

    def __init__(self, writer: EventWriter) -> None:
        self.writer = writer

    def encode(self, descriptor: Descriptor, name: str, value: object) -> None:
        """Write value as an element with the given name"""
        attributes: list[tuple[str, str]] = []
        for binding in descriptor.attributes:
            if binding.skip_serializing:
                continue
            item = self._get_field(binding, value, name)
            if item is None and binding.cardinality is Cardinality.Optional or binding.is_default(item):
                continue
            assert binding.name is not None  # noqa: S101 (used by type checkers)
            attributes.append((binding.name, binding.format(item)))

        self.writer.start(name, attributes)

        if descriptor.text is not None:
            binding = descriptor.text
            item = self._get_field(binding, value, name)
            if not (item is None and binding.cardinality is Cardinality.Optional or binding.is_default(item)):
                self.writer.text(binding.format(item))

        self._encode_children(descriptor, name, value)
        self.writer.end(name)

    def _encode_children(self, descriptor: Descriptor, name: str, value: object) -> None:
        for binding in descriptor.content:
            if binding.skip_serializing:
                continue
            item = self._get_field(binding, value, name)
            if binding.is_default(item):
                continue
            match binding.cardinality:
                case Cardinality.Repeated:
                    for element in self._items(binding, item):
                        self._encode_content(binding, element, name)
                case Cardinality.Optional if item is None:
                    pass
                case _:
                    self._encode_content(binding, item, name)

    def _get_field(self, binding: FieldBinding, value: object, element: str) -> object:
        item = get_field(value, binding.key)
        if item is not Marker.Missing:
            return item
        if binding.default is not None:
            return binding.default()
        if binding.cardinality is Cardinality.Optional:
            return None
        if binding.cardinality is Cardinality.Repeated:
            return []
        if binding.role is Role.Flag:
            return False
        raise MissingRequiredValue(binding.key, element)

    def _items(self, binding: FieldBinding, item: object) -> Iterable[object]:
        if isinstance(item, str | bytes) or not isinstance(item, Iterable):
            raise TypeError(f'the {binding.key!r} field must be a sequence, not {type(item).__qualname__}')
        return item

    def _encode_content(self, binding: FieldBinding, item: object, element: str) -> None:
        match binding.role, binding.shape:
            case Role.Flag, _:
                if item:
                    assert binding.name is not None  # noqa: S101 (used by type checkers)
                    self.writer.start(binding.name)
                    self.writer.end(binding.name)
            case Role.UntaggedVariant, UntaggedEnum(variants):
                self._encode_variant(binding, variants, item)
            case Role.Flatten, Nested(descriptor):
                self._encode_children(descriptor, element, item)
            case _, Primitive():
                assert binding.name is not None  # noqa: S101 (used by type checkers)
                self.writer.start(binding.name)
                self.writer.text(binding.format(item))
                self.writer.end(binding.name)
            case _, Nested(descriptor):
                assert binding.name is not None  # noqa: S101 (used by type checkers)
                self.encode(descriptor, binding.name, item)
            case _, TaggedEnum(variants):
                assert binding.name is not None  # noqa: S101 (used by type checkers)
                self.writer.start(binding.name)
                self._encode_variant(binding, variants, item)
                self.writer.end(binding.name)
            case _, Opaque():
                assert binding.name is not None  # noqa: S101 (used by type checkers)
                self.write_unparsed(binding.name, self._unparsed(binding, item))
            case _, shape:
                raise TypeError(f'cannot encode {shape!r} for the {binding.key!r} {binding.role.value} binding')

    def _encode_variant(self, binding: FieldBinding, variants: VariantMap, item: object) -> None:
        if not isinstance(item, Variant):
            raise TypeError(f'the {binding.key!r} field must be a Variant, not {type(item).__qualname__}')
        if item.tag == variants.text_tag:
            self.writer.text(variants.format_text(binding.key, item))
        elif item.tag in variants:
            descriptor = variants[item.tag]
            if descriptor is None:
                self.writer.start(item.tag)
                self.writer.end(item.tag)
            else:
                self.encode(descriptor, item.tag, item.payload)
        elif variants.fallback and isinstance(item.payload, Unparsed):
            logger.debug('Writing the unparsed %r variant of %r', item.tag, binding.key)
            self.write_unparsed(item.tag, item.payload)
        else:
            raise UnresolvedVariant(item.tag, binding.key)

    def _unparsed(self, binding: FieldBinding, item: object) -> Unparsed:
        if not isinstance(item, Unparsed):
            raise TypeError(f'the {binding.key!r} field must be Unparsed, not {type(item).__qualname__}')
        return item

    def write_unparsed(self, name: str, unparsed: Unparsed) -> None:
        """Write an unparsed element back exactly as it was captured"""
        self.writer.start(name, unparsed.attributes)
        self.writer.replay(unparsed.events)
        self.writer.end(name)
