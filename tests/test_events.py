# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import sys

import pytest

from xmlbind import DecoderOptions, EncoderOptions, MalformedDocument, max_depth_limit
from xmlbind.events import Comment, EndTag, EventRecorder, ProcessingInstruction, StartTag, Text, TreeWriter, parse_events
from xmlbind.options import LIBXML2_MAX_DEPTH


class TestParseEvents:

    def test_events(self) -> None:
        events = parse_events('<person age="16" name="Tom"><!-- note --><city>Paris</city><?app mode="x"?></person>')
        assert events == [
            StartTag('person', (('age', '16'), ('name', 'Tom'))),
            Comment(' note '),
            StartTag('city'),
            Text('Paris'),
            EndTag('city'),
            ProcessingInstruction('app', 'mode="x"'),
            EndTag('person'),
        ]

    def test_text_is_coalesced(self) -> None:
        events = parse_events(b'<value>a &amp; b <![CDATA[<c>]]> d</value>')
        assert events == [StartTag('value'), Text('a & b <c> d'), EndTag('value')]

        # comments split the text
        events = parse_events(b'<value>abc<!--c-->def</value>')
        assert events == [StartTag('value'), Text('abc'), Comment('c'), Text('def'), EndTag('value')]

    def test_unicode(self) -> None:
        document = '<name zh="汤姆" en="Tom">汤姆</name>'
        assert parse_events(document) == parse_events(document.encode('utf-8'))
        assert parse_events(document)[0] == StartTag('name', (('zh', '汤姆'), ('en', 'Tom')))

    def test_blank_text(self) -> None:
        document = b'<list>\n  <item>1</item>\n  <item> </item>\n</list>'
        assert Text('\n  ') in parse_events(document)

        events = parse_events(document, options=DecoderOptions(ignore_blank_text=True))
        assert events == [StartTag('list'), StartTag('item'), Text('1'), EndTag('item'), StartTag('item'), EndTag('item'), EndTag('list')]

    def test_namespaces(self) -> None:
        events = parse_events(b'<p:root xmlns:p="urn:example" p:id="1"><child/></p:root>')
        assert events == [StartTag('{urn:example}root', (('{urn:example}id', '1'),)), StartTag('child'), EndTag('child'), EndTag('{urn:example}root')]

    def test_malformed(self) -> None:
        with pytest.raises(MalformedDocument, match=r'Malformed XML document'):
            parse_events(b'<person age="16">')

        with pytest.raises(MalformedDocument, match=r'Malformed XML document'):
            parse_events(b'<person></name>')

        with pytest.raises(MalformedDocument, match=r'Malformed XML document'):
            parse_events(b'<a/><b/>')


class TestWriters:

    def test_tree_writer(self) -> None:
        writer = TreeWriter()
        writer.start('person', [('age', '16'), ('name', 'Tom')])
        writer.start('empty')
        writer.end('empty')
        writer.start('note')
        writer.text('a < b & c')
        writer.end('note')
        writer.comment(' done ')
        writer.end('person')
        assert writer.serialize() == b'<person age="16" name="Tom"><empty/><note>a &lt; b &amp; c</note><!-- done --></person>'

    def test_declaration(self) -> None:
        writer = TreeWriter()
        writer.start('root')
        writer.end('root')
        document = writer.serialize(EncoderOptions(xml_declaration=True, standalone=True))
        assert document.startswith(b"<?xml version='1.0' encoding='UTF-8' standalone='yes'?>")
        assert document.rstrip().endswith(b'<root/>')

    def test_replay(self) -> None:
        events = parse_events(b'<others age="16"><gf/><parent><f/><m name="Lisa">1999</m></parent><!--x--><?pi data?></others>')
        recorder = EventRecorder()
        recorder.replay(events)
        assert recorder.events == events

        writer = TreeWriter()
        writer.replay(events)
        assert writer.serialize() == b'<others age="16"><gf/><parent><f/><m name="Lisa">1999</m></parent><!--x--><?pi data?></others>'

    def test_recorder_merges_text(self) -> None:
        recorder = EventRecorder()
        recorder.start('value')
        recorder.text('abc')
        recorder.text('')
        recorder.text('def')
        recorder.end('value')
        assert recorder.events == [StartTag('value'), Text('abcdef'), EndTag('value')]


class TestOptions:

    def test_options(self) -> None:
        assert DecoderOptions().max_depth == 128
        assert not DecoderOptions().huge_tree
        assert DecoderOptions(max_depth=LIBXML2_MAX_DEPTH + 1).huge_tree

        with pytest.raises(ValueError, match=r'max_depth must be a positive integer'):
            DecoderOptions(max_depth=0)

        with pytest.raises(ValueError, match=r'standalone can only be specified together with the XML declaration'):
            EncoderOptions(standalone=True)

        with pytest.raises(ValueError, match=r'use a byte encoding'):
            EncoderOptions(encoding='unicode')

    def test_max_depth_follows_the_recursion_limit(self, monkeypatch: pytest.MonkeyPatch) -> None:
        limit = max_depth_limit()
        assert limit == (sys.getrecursionlimit() - 200) // 3
        assert DecoderOptions(max_depth=limit).max_depth == limit

        with pytest.raises(ValueError, match=rf'max_depth cannot be larger than {limit} under the current recursion limit'):
            DecoderOptions(max_depth=limit + 1)

        monkeypatch.setattr(sys, 'getrecursionlimit', lambda: 5000)
        assert max_depth_limit() == 1600
        assert DecoderOptions(max_depth=1000).huge_tree
