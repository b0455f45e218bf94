"""
Alignment of sub-word tokens to the sentences they belong to.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .data_structures import UNASSIGNED

logger = logging.getLogger(__name__)

SENTENCE_END_TOKENS = frozenset({".", "!", "?"})


@dataclass(frozen=True)
class SpecialTokens:
    """Marker strings of the tokenizer vocabulary."""

    sep: str = "[SEP]"
    cls: str = "[CLS]"
    pad: str = "[PAD]"

    @classmethod
    def from_tokenizer(cls, tokenizer: Any) -> SpecialTokens:
        """Read separator/class/padding markers from a Hugging Face tokenizer.

        Markers the tokenizer does not define keep the BERT defaults.
        """
        defaults = cls()
        sep = getattr(tokenizer, "sep_token", None) or getattr(tokenizer, "eos_token", None)
        cls_token = getattr(tokenizer, "cls_token", None) or getattr(tokenizer, "bos_token", None)
        pad = getattr(tokenizer, "pad_token", None)
        return cls(
            sep=str(sep) if sep else defaults.sep,
            cls=str(cls_token) if cls_token else defaults.cls,
            pad=str(pad) if pad else defaults.pad,
        )


def map_tokens_to_sentences(
    tokens: Sequence[str],
    special_tokens: SpecialTokens | None = None,
) -> list[int]:
    """
    Assign each token the index of the sentence it belongs to.

    The counter starts at 0, restarts at every separator and advances after
    each token that is exactly ``.``, ``!`` or ``?``, so the punctuation stays
    with the sentence it closes. Separator, class and padding markers get
    ``UNASSIGNED``.

    Args:
        tokens: Token strings of an encoding
        special_tokens: Marker strings, BERT markers when omitted

    Returns:
        Sentence index per token, same length as ``tokens``
    """
    special_tokens = special_tokens or SpecialTokens()
    sentence_ids = [UNASSIGNED] * len(tokens)

    current_sentence = 0
    for index, token in enumerate(tokens):
        if token == special_tokens.sep:
            current_sentence = 0
            continue
        if token != special_tokens.cls and token != special_tokens.pad:
            sentence_ids[index] = current_sentence
        if token in SENTENCE_END_TOKENS:
            current_sentence += 1

    logger.debug("Mapped %d tokens onto sentence ids %s", len(tokens), sentence_ids)
    return sentence_ids
