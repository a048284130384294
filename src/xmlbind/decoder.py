# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from .events import EndTag, Event, StartTag, Text
from .exceptions import DepthExceeded, MalformedDocument, MissingRequiredValue, UnknownField, UnresolvedVariant
from .options import DecoderOptions
from .schema import Cardinality, Descriptor, FieldBinding, Nested, Opaque, Primitive, Role, TaggedEnum, UntaggedEnum, VariantMap
from .values import Unparsed, Variant

__all__ = 'Decoder',  # noqa: COM818


logger = logging.getLogger(__name__)


class Decoder:
    """
    Build value trees out of a stream of XML events.

    A decoder consumes the events of a single call. It keeps track of the
    position in the stream and of the current nesting depth, and it should
    not be shared between concurrent calls.
    """

    def __init__(self, events: Iterable[Event], *, options: DecoderOptions | None = None) -> None:
        self.options = options or DecoderOptions()
        self.depth = 0
        self.events: Iterator[Event] = iter(events)

    def next_event(self) -> Event:
        try:
            return next(self.events)
        except StopIteration:
            raise MalformedDocument('Unexpected end of the event stream') from None

    def decode(self, descriptor: Descriptor, start: StartTag) -> object:
        """Decode the element that starts with the given start tag, which has already been consumed from the stream"""
        with self._element():
            return self._decode_record(descriptor, start)

    @contextmanager
    def _element(self) -> Iterator[None]:
        self.depth += 1
        try:
            if self.depth > self.options.max_depth:
                raise DepthExceeded(self.options.max_depth)
            yield
        finally:
            self.depth -= 1

    def _check_end(self, event: EndTag, start: StartTag) -> None:
        if event.name != start.name:
            raise MalformedDocument(f'Mismatched end tag: expected {start.name!r}, got {event.name!r}')

    def _decode_record(self, descriptor: Descriptor, start: StartTag) -> object:  # noqa: C901
        values: dict[str, object] = {}

        for name, raw_value in start.attributes:
            binding = descriptor.attribute_map.get(name)
            if binding is None:
                if descriptor.deny_unknown:
                    raise UnknownField(name, start.name)
                logger.debug('Ignoring unknown attribute %r of %r', name, start.name)
                continue
            values[binding.key] = binding.parse(raw_value)

        for binding in descriptor.attributes:
            if binding.key not in values:
                values[binding.key] = self._missing_value(binding, start)

        text_chunks: list[str] = []
        sequences: dict[str, list[object]] = {}
        flattened: dict[str, tuple[dict[str, object], dict[str, list[object]]]] = {}
        unmatched: str | None = None  # the first unrecognized child element

        while True:
            event = self.next_event()
            match event:
                case EndTag():
                    self._check_end(event, start)
                    break
                case Text(content):
                    if descriptor.text is not None:
                        text_chunks.append(content)
                    elif descriptor.text_variant is not None and content.strip():
                        binding = descriptor.text_variant
                        assert isinstance(binding.shape, UntaggedEnum)  # noqa: S101 (used by type checkers)
                        self._store(binding, binding.shape.variants.parse_text(binding.key, content), values, sequences, start)
                case StartTag(name):
                    binding = descriptor.element_map.get(name)
                    if binding is not None:
                        self._store(binding, self._decode_shape(binding, event), values, sequences, start)
                        continue
                    binding = descriptor.flatten_map.get(name)
                    if binding is not None:
                        assert isinstance(binding.shape, Nested)  # noqa: S101 (used by type checkers)
                        element_binding = binding.shape.descriptor.element_map[name]
                        flattened_values, flattened_sequences = flattened.setdefault(binding.key, ({}, {}))
                        self._store(element_binding, self._decode_shape(element_binding, event), flattened_values, flattened_sequences, start)
                        continue
                    untagged_match = descriptor.match_untagged(name)
                    if untagged_match is not None:
                        binding, variant_descriptor = untagged_match
                        self._store(binding, self._decode_variant(name, variant_descriptor, event), values, sequences, start)
                        continue
                    binding = descriptor.fallback_untagged()
                    if binding is not None:
                        logger.debug('Keeping unknown element %r of %r as an unparsed %r variant', name, start.name, binding.key)
                        self._store(binding, Variant(name, self.capture(event)), values, sequences, start)
                        continue
                    if descriptor.deny_unknown:
                        raise UnknownField(name, start.name)
                    logger.debug('Skipping unknown element %r of %r', name, start.name)
                    self.skip(event)
                    if unmatched is None:
                        unmatched = name
                case _:
                    pass  # comments and processing instructions carry no data

        if descriptor.text is not None:
            binding = descriptor.text
            if text_chunks:
                values[binding.key] = binding.parse(''.join(text_chunks))
            else:
                values[binding.key] = self._missing_value(binding, start)

        for key, (flattened_values, flattened_sequences) in flattened.items():
            binding = next(item for item in descriptor.content if item.key == key)
            assert isinstance(binding.shape, Nested)  # noqa: S101 (used by type checkers)
            values[key] = self._build(binding.shape.descriptor, flattened_values, flattened_sequences, start)

        return self._build(descriptor, values, sequences, start, unmatched)

    def _build(self, descriptor: Descriptor, values: dict[str, object], sequences: dict[str, list[object]], start: StartTag, unmatched: str | None = None) -> object:
        """Fill in the content fields that were not found in the element and create the value"""
        for binding in descriptor.content:
            if binding.key in values:
                continue
            if binding.key in sequences:
                values[binding.key] = sequences[binding.key]
            elif binding.role is Role.Flag:
                values[binding.key] = False
            elif binding.cardinality is Cardinality.Repeated:
                values[binding.key] = binding.default() if binding.default is not None else []
            elif binding.default is not None or binding.cardinality is Cardinality.Optional:
                values[binding.key] = self._missing_value(binding, start)
            elif binding.role is Role.UntaggedVariant and unmatched is not None:
                raise UnresolvedVariant(unmatched, binding.key)
            elif binding.role is Role.Flatten:
                # none of its elements were found, but its own fields may all have defaults
                assert isinstance(binding.shape, Nested)  # noqa: S101 (used by type checkers)
                values[binding.key] = self._build(binding.shape.descriptor, {}, {}, start)
            else:
                raise MissingRequiredValue(binding.key, start.name)
        return descriptor.factory(**values)

    def _missing_value(self, binding: FieldBinding, start: StartTag) -> object:
        if binding.default is not None:
            return binding.default()
        if binding.cardinality is Cardinality.Optional:
            return None
        raise MissingRequiredValue(binding.key, start.name)

    def _store(self, binding: FieldBinding, value: object, values: dict[str, object], sequences: dict[str, list[object]], start: StartTag) -> None:
        if binding.cardinality is Cardinality.Repeated:
            try:
                sequence = sequences[binding.key]
            except KeyError:
                sequence = sequences[binding.key] = []
                size_hint = self._size_hint(binding, values)
                if size_hint is not None:
                    logger.debug('Expecting %d %r elements in %r', size_hint, binding.xml_name, start.name)
            sequence.append(value)
        else:
            if binding.key in values:
                logger.debug('Element %r occurs more than once in %r, keeping the last one', binding.xml_name, start.name)
            values[binding.key] = value

    def _size_hint(self, binding: FieldBinding, values: dict[str, object]) -> int | None:
        match binding.size_hint:
            case int(size):
                return size
            case str(key):
                size = values.get(key)
                return size if isinstance(size, int) else None
            case _:
                return None

    def _decode_shape(self, binding: FieldBinding, start: StartTag) -> object:
        if binding.role is Role.Flag:
            self.skip(start)
            return True
        match binding.shape:
            case Primitive():
                return binding.parse(self.read_text(start))
            case Nested(descriptor):
                return self.decode(descriptor, start)
            case TaggedEnum(variants):
                return self._decode_tagged(binding, variants, start)
            case Opaque():
                return self.capture(start)
            case shape:
                raise TypeError(f'cannot decode {shape!r} as a child element')

    def _decode_tagged(self, binding: FieldBinding, variants: VariantMap, start: StartTag) -> object:
        result: Variant | None = None
        with self._element():
            while True:
                event = self.next_event()
                match event:
                    case EndTag():
                        self._check_end(event, start)
                        break
                    case StartTag(name) if result is not None:
                        logger.debug('Skipping element %r after the selected %r variant of %r', name, result.tag, start.name)
                        self.skip(event)
                    case StartTag(name) if name in variants:
                        result = self._decode_variant(name, variants[name], event)
                    case StartTag(name) if variants.fallback:
                        logger.debug('Keeping unknown element %r of %r as an unparsed variant', name, start.name)
                        result = Variant(name, self.capture(event))
                    case StartTag(name):
                        raise UnresolvedVariant(name, binding.key)
                    case Text(content) if result is None and variants.text is not None and content.strip():
                        result = variants.parse_text(binding.key, content)
                    case _:
                        pass
        if result is None:
            raise MissingRequiredValue(binding.key, start.name)
        return result

    def _decode_variant(self, name: str, descriptor: Descriptor | None, start: StartTag) -> Variant:
        if descriptor is None:
            self.skip(start)
            return Variant(name)
        return Variant(name, self.decode(descriptor, start))

    def read_text(self, start: StartTag) -> str:
        """Read the text content of an element, skipping over its child elements"""
        chunks: list[str] = []
        with self._element():
            while True:
                event = self.next_event()
                match event:
                    case EndTag():
                        self._check_end(event, start)
                        break
                    case Text(content):
                        chunks.append(content)
                    case StartTag():
                        self.skip(event)
                    case _:
                        pass
        return ''.join(chunks)

    def skip(self, start: StartTag) -> None:
        """Consume and discard the rest of the element that starts with start"""
        for _ in self._subtree(start):
            pass

    def capture(self, start: StartTag) -> Unparsed:
        """Consume the rest of the element that starts with start and keep its content verbatim"""
        return Unparsed(start.attributes, tuple(self._subtree(start)))

    def _subtree(self, start: StartTag) -> Iterator[Event]:
        # yields the content events of the element, up to but not including its end tag
        open_tags = [start]
        if self.depth + 1 > self.options.max_depth:
            raise DepthExceeded(self.options.max_depth)
        while True:
            event = self.next_event()
            match event:
                case StartTag():
                    open_tags.append(event)
                    if self.depth + len(open_tags) > self.options.max_depth:
                        raise DepthExceeded(self.options.max_depth)
                case EndTag():
                    self._check_end(event, open_tags.pop())
                    if not open_tags:
                        return
            yield event
