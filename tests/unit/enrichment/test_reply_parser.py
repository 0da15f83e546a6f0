# tests/unit/enrichment/test_reply_parser.py — v1
"""Tests for enrichment/reply_parser.py."""

from __future__ import annotations

import json

import pytest

from newsweaver.enrichment.reply_parser import ReplyParseError, parse_reply, strip_code_fence

REPLY = {"seo_title": "Title", "tldr": ["a", "b", "c"], "tags": ["x"]}


class TestStripCodeFence:
    def test_json_fence(self):
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        assert strip_code_fence('  {"a": 1} ') == '{"a": 1}'


class TestParseReply:
    def test_plain_json(self):
        reply = parse_reply(json.dumps(REPLY))
        assert reply.seo_title == "Title"
        assert reply.tldr == ["a", "b", "c"]
        assert reply.content_md == ""

    def test_fenced_json(self):
        reply = parse_reply("```json\n" + json.dumps(REPLY) + "\n```")
        assert reply.tags == ["x"]

    def test_string_tldr_split_into_bullets(self):
        reply = parse_reply(json.dumps({"seo_title": "t", "tldr": "- one\n- two\n* three"}))
        assert reply.tldr == ["one", "two", "three"]

    def test_comma_tags_split(self):
        reply = parse_reply(json.dumps({"seo_title": "t", "tags": "a, b ,c"}))
        assert reply.tags == ["a", "b", "c"]

    def test_not_json(self):
        with pytest.raises(ReplyParseError, match="not valid JSON"):
            parse_reply("Sure! Here is your article: ...")

    def test_json_array_rejected(self):
        with pytest.raises(ReplyParseError, match="not an object"):
            parse_reply("[1, 2]")

    def test_missing_title_rejected(self):
        with pytest.raises(ReplyParseError, match="invalid fields"):
            parse_reply(json.dumps({"seo_description": "d"}))
