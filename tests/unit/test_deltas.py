"""Tests for merging streamed text fragments."""
from __future__ import annotations

from interview_session.deltas import merge_delta


def test_empty_sides():
    assert merge_delta("", "Hello") == "Hello"
    assert merge_delta("Hello", "") == "Hello"


def test_full_restatement_replaces():
    assert merge_delta("Hello", "Hello world") == "Hello world"


def test_stale_prefix_is_ignored():
    assert merge_delta("Hello world", "Hello") == "Hello world"


def test_boundary_overlap_spliced_once():
    assert merge_delta("Hello wor", "world") == "Hello world"
    assert merge_delta("abcab", "abx") == "abcabx"


def test_plain_continuation_appends():
    assert merge_delta("What is ", "a trigger?") == "What is a trigger?"


def test_fragments_build_sentence():
    text = ""
    for fragment in ["Tell me", "Tell me about", " about governor", " limits."]:
        text = merge_delta(text, fragment)
    assert text == "Tell me about governor limits."
