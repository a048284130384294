# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from collections.abc import Iterable

from .decoder import Decoder
from .encoder import Encoder
from .events import Event, EventRecorder, StartTag, TreeWriter, parse_events
from .exceptions import MalformedDocument, RootElementNotFound, SchemaError
from .options import DecoderOptions, EncoderOptions
from .schema import Descriptor

__all__ = 'decode', 'decode_document', 'decode_events', 'encode_document', 'encode_events'


logger = logging.getLogger(__name__)


def _root_name(descriptor: Descriptor, root_name: str | None) -> str:
    if root_name is not None:
        return root_name
    if descriptor.root is not None:
        return descriptor.root
    raise SchemaError('the root element name must be provided, either by the call or by the descriptor')


def decode(descriptor: Descriptor, events: Iterable[Event], *, options: DecoderOptions | None = None) -> object:
    """Decode the element whose start tag is the first event in events"""
    decoder = Decoder(events, options=options)
    start = decoder.next_event()
    if not isinstance(start, StartTag):
        raise MalformedDocument(f'Expected a start tag, got {start!r}')
    return decoder.decode(descriptor, start)


def decode_events(descriptor: Descriptor, events: Iterable[Event], root_name: str | None = None, *, options: DecoderOptions | None = None) -> object:
    """
    Decode the root element of an event sequence.

    Events that precede the root element (comments, processing instructions
    and whitespace) are skipped and the events that follow it are ignored.
    """
    root_name = _root_name(descriptor, root_name)
    decoder = Decoder(events, options=options)
    for event in decoder.events:
        if isinstance(event, StartTag):
            if event.name != root_name:
                raise RootElementNotFound(root_name, event.name)
            logger.debug('Decoding the %r root element', root_name)
            return decoder.decode(descriptor, event)
    raise RootElementNotFound(root_name)


def decode_document(descriptor: Descriptor, document: bytes | str, root_name: str | None = None, *, options: DecoderOptions | None = None) -> object:
    """Decode an XML document into a value, following the given descriptor"""
    root_name = _root_name(descriptor, root_name)
    return decode_events(descriptor, parse_events(document, options=options), root_name, options=options)


def encode_events(descriptor: Descriptor, value: object, root_name: str | None = None) -> list[Event]:
    """Encode a value into the event sequence of its root element"""
    root_name = _root_name(descriptor, root_name)
    recorder = EventRecorder()
    Encoder(recorder).encode(descriptor, root_name, value)
    return recorder.events


def encode_document(descriptor: Descriptor, value: object, root_name: str | None = None, *, options: EncoderOptions | None = None) -> bytes:
    """Encode a value into an XML document, following the given descriptor"""
    root_name = _root_name(descriptor, root_name)
    writer = TreeWriter()
    Encoder(writer).encode(descriptor, root_name, value)
    return writer.serialize(options)
