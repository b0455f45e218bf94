"""
Punctuation-based sentence splitting for question-answering contexts.
"""

from __future__ import annotations

import re

SENTENCE_BOUNDARY = re.compile(r"[.!?]+\s+")


def split_sentences(text: str) -> list[str]:
    """Split trimmed ``text`` at runs of ``.``/``!``/``?`` followed by whitespace.

    The boundary match is consumed, so the closing punctuation of a sentence
    followed by whitespace is not part of either sentence. Text without a
    boundary comes back as a single element; empty text yields ``[""]``.
    """

    sentences = SENTENCE_BOUNDARY.split(text.strip())
    while len(sentences) > 1 and not sentences[-1]:
        sentences.pop()
    return sentences


def sentence_spans(text: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` character offsets of each sentence in ``text.strip()``.

    The offsets line up one-to-one with :func:`split_sentences`. The
    translators do not use them; they let callers map highlighted sentences
    back to character ranges of the context.
    """
    trimmed = text.strip()
    spans: list[tuple[int, int]] = []
    start = 0
    for match in SENTENCE_BOUNDARY.finditer(trimmed):
        spans.append((start, match.start()))
        start = match.end()
    spans.append((start, len(trimmed)))

    while len(spans) > 1 and spans[-1][0] == spans[-1][1]:
        spans.pop()
    return spans
