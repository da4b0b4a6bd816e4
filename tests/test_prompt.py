"""Tests for prompt assembly."""

import pytest

from site_qa.rag.index import Chunk
from site_qa.rag.prompt import build_prompt, format_context, intent_flags


def chunk(source, text):
    return Chunk(id=f"{source}#0", source_id=source, text=text, embedding=[], term_frequency={}, token_length=0)


RANKED = [
    (chunk("http://uni.test/apply", "Closing date: March 1."), 0.9),
    (chunk("http://uni.test/contact", "Contact Anna Schmidt."), 0.5),
]


@pytest.mark.unit
class TestPrompt:
    """Test build_prompt() and helpers."""

    def test_context_format(self):
        assert format_context(RANKED) == (
            "SOURCE: http://uni.test/apply\nClosing date: March 1.\n\n"
            "SOURCE: http://uni.test/contact\nContact Anna Schmidt.\n\n"
        )

    def test_intent_flags(self):
        flags = intent_flags("Who is in charge of the application deadline?")

        assert flags == {
            "wants_list": False,
            "wants_deadline": True,
            "wants_contact": True,
            "wants_requirements": False,
        }

    def test_guidance_lines_follow_flags(self):
        prompt = build_prompt("What is the deadline?", RANKED, "http://uni.test/apply")

        assert "Give exact dates first" in prompt
        assert "complete bullet list" not in prompt
        assert "QUESTION:\nWhat is the deadline?" in prompt
        assert "SOURCE: http://uni.test/apply\nClosing date: March 1." in prompt
        assert prompt.rstrip().endswith("Source: http://uni.test/apply")

    def test_no_guidance(self):
        prompt = build_prompt("Tell me about campus life", RANKED, "http://uni.test/apply")

        assert "Additional guidance:\n(none)" in prompt

    def test_unknown_primary_source(self):
        prompt = build_prompt("Anything?", [], "")

        assert prompt.rstrip().endswith("Source: (unknown)")
        assert "CONTEXT:\n\n" in prompt
