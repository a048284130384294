# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from lxml import etree

from .exceptions import MalformedDocument
from .options import DecoderOptions, EncoderOptions

__all__ = (  # noqa: RUF022
    'StartTag',
    'Text',
    'EndTag',
    'Comment',
    'ProcessingInstruction',
    'Event',
    'EventCollector',
    'EventWriter',
    'TreeWriter',
    'EventRecorder',
    'parse_events',
)


# noinspection PyProtectedMember
type ETreeElement = etree._Element  # noqa: SLF001
type Attributes = tuple[tuple[str, str], ...]


@dataclass(frozen=True, slots=True)
class StartTag:
    name: str
    attributes: Attributes = ()


@dataclass(frozen=True, slots=True)
class Text:
    content: str


@dataclass(frozen=True, slots=True)
class EndTag:
    name: str


@dataclass(frozen=True, slots=True)
class Comment:
    content: str


@dataclass(frozen=True, slots=True)
class ProcessingInstruction:
    target: str
    data: str = ''


type Event = StartTag | Text | EndTag | Comment | ProcessingInstruction


class EventCollector:
    """
    An lxml parser target that records the parser callbacks as events.

    Adjacent chunks of character data (the parser splits text around entity
    references and CDATA sections) are merged into a single Text event, so
    that the same content always produces the same event sequence. Text that
    is separated by comments or processing instructions is not merged.
    """

    def __init__(self, *, ignore_blank_text: bool = False) -> None:
        self.events: list[Event] = []
        self.ignore_blank_text = ignore_blank_text
        self._text: list[str] = []

    def _flush_text(self) -> None:
        if self._text:
            content = ''.join(self._text)
            self._text.clear()
            if not (self.ignore_blank_text and content.isspace()):
                self.events.append(Text(content))

    def start(self, tag: str, attrib: dict[str, str]) -> None:
        self._flush_text()
        self.events.append(StartTag(tag, tuple(attrib.items())))

    def end(self, tag: str) -> None:
        self._flush_text()
        self.events.append(EndTag(tag))

    def data(self, data: str) -> None:
        self._text.append(data)

    def comment(self, text: str) -> None:
        self._flush_text()
        self.events.append(Comment(text))

    def pi(self, target: str, data: str | None = None) -> None:
        self._flush_text()
        self.events.append(ProcessingInstruction(target, data or ''))

    def close(self) -> list[Event]:
        self._flush_text()
        return self.events


def parse_events(document: bytes | str, *, options: DecoderOptions | None = None) -> list[Event]:
    """Tokenize an XML document into a list of events"""
    if options is None:
        options = DecoderOptions()
    if isinstance(document, str):
        document = document.encode('utf-8')
    collector = EventCollector(ignore_blank_text=options.ignore_blank_text)
    parser = etree.XMLParser(target=collector, resolve_entities=False, no_network=True, huge_tree=options.huge_tree)
    try:
        return etree.fromstring(document, parser)
    except etree.XMLSyntaxError as exc:
        raise MalformedDocument(f'Malformed XML document: {exc}') from exc


class EventWriter(Protocol):
    def start(self, name: str, attributes: Iterable[tuple[str, str]] = ()) -> None: ...

    def text(self, content: str) -> None: ...

    def end(self, name: str) -> None: ...

    def comment(self, content: str) -> None: ...

    def pi(self, target: str, data: str = '') -> None: ...

    def replay(self, events: Iterable[Event]) -> None: ...


class EventReplayMixin:
    def replay(self: EventWriter, events: Iterable[Event]) -> None:
        """Emit a previously captured event sequence unchanged"""
        for event in events:
            match event:
                case StartTag(name, attributes):
                    self.start(name, attributes)
                case Text(content):
                    self.text(content)
                case EndTag(name):
                    self.end(name)
                case Comment(content):
                    self.comment(content)
                case ProcessingInstruction(target, data):
                    self.pi(target, data)


class TreeWriter(EventReplayMixin):
    """An event writer that builds an lxml element tree and serializes it"""

    def __init__(self) -> None:
        self._builder = etree.TreeBuilder()

    def start(self, name: str, attributes: Iterable[tuple[str, str]] = ()) -> None:
        self._builder.start(name, dict(attributes))

    def text(self, content: str) -> None:
        if content:
            self._builder.data(content)

    def end(self, name: str) -> None:
        self._builder.end(name)

    def comment(self, content: str) -> None:
        self._builder.comment(content)

    def pi(self, target: str, data: str = '') -> None:
        self._builder.pi(target, data or None)

    def close(self) -> ETreeElement:
        return self._builder.close()

    def serialize(self, options: EncoderOptions | None = None) -> bytes:
        if options is None:
            options = EncoderOptions()
        return etree.tostring(self.close(), encoding=options.encoding, xml_declaration=options.xml_declaration, standalone=options.standalone, pretty_print=options.pretty_print)


class EventRecorder(EventReplayMixin):
    """An event writer that records the events it receives"""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def start(self, name: str, attributes: Iterable[tuple[str, str]] = ()) -> None:
        self.events.append(StartTag(name, tuple(attributes)))

    def text(self, content: str) -> None:
        if not content:
            return
        if self.events and isinstance(self.events[-1], Text):
            self.events[-1] = Text(self.events[-1].content + content)
        else:
            self.events.append(Text(content))

    def end(self, name: str) -> None:
        self.events.append(EndTag(name))

    def comment(self, content: str) -> None:
        self.events.append(Comment(content))

    def pi(self, target: str, data: str = '') -> None:
        self.events.append(ProcessingInstruction(target, data))
