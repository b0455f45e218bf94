from __future__ import annotations

import pytest
from span_translator.sentence_splitter import sentence_spans, split_sentences


def test_split_sentences_consumes_boundary() -> None:
    assert split_sentences("Cats are mammals. Dogs are too.") == [
        "Cats are mammals",
        "Dogs are too.",
    ]


@pytest.mark.parametrize(
    "text",
    [
        "no punctuation at all",
        "  padded text without a boundary  ",
        "decimal 3.14 stays together",
        "ends with a period.",
    ],
)
def test_split_sentences_without_boundary_returns_trimmed_input(text: str) -> None:
    assert split_sentences(text) == [text.strip()]


def test_split_sentences_handles_punctuation_runs_and_newlines() -> None:
    text = "Really?! Yes...\n\nAbsolutely!   Done"
    assert split_sentences(text) == ["Really", "Yes", "Absolutely", "Done"]


def test_split_sentences_has_no_empty_trailing_element() -> None:
    assert split_sentences("One. Two!  ") == ["One", "Two!"]


def test_split_sentences_empty_input() -> None:
    assert split_sentences("") == [""]
    assert split_sentences("   ") == [""]


def test_sentence_spans_line_up_with_sentences() -> None:
    text = "  Cats are mammals. Dogs are too!  Fish swim. "
    trimmed = text.strip()

    spans = sentence_spans(text)
    sentences = split_sentences(text)

    assert len(spans) == len(sentences)
    assert [trimmed[start:end] for start, end in spans] == sentences
