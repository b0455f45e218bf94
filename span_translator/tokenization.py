"""
Adapters around Hugging Face tokenizers.

The tokenizer itself is an external collaborator: this module only turns its
output into an :class:`Encoding` and exposes its text reconstruction as a
detokenizer over a token list.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from .data_structures import Encoding

logger = logging.getLogger(__name__)


def encode_pair(
    tokenizer: Any,
    text: str,
    text_pair: str | None = None,
    max_length: int | None = None,
) -> Encoding:
    """
    Tokenize ``text`` (and ``text_pair``) into an :class:`Encoding`.

    Offsets are requested only from fast tokenizers, which are the only ones
    able to produce them. When ``max_length`` is given, pairs are truncated on
    the context side.

    Args:
        tokenizer: Hugging Face tokenizer (``PreTrainedTokenizerBase``)
        text: Question, or the single text to embed
        text_pair: Context text
        max_length: Truncation length, ``None`` disables truncation

    Returns:
        Encoding of the pair
    """
    truncation: bool | str = False
    if max_length is not None:
        truncation = "only_second" if text_pair is not None else True

    return_offsets = bool(getattr(tokenizer, "is_fast", False))
    encoded = tokenizer(
        text,
        text_pair,
        add_special_tokens=True,
        truncation=truncation,
        max_length=max_length,
        return_attention_mask=True,
        return_token_type_ids=True,
        return_special_tokens_mask=True,
        return_offsets_mapping=return_offsets,
    )

    input_ids = list(encoded["input_ids"])
    tokens = tokenizer.convert_ids_to_tokens(input_ids)
    offsets = encoded.get("offset_mapping") if return_offsets else None
    logger.debug("Encoded pair into %d tokens", len(input_ids))

    return Encoding(
        ids=input_ids,
        attention_mask=encoded.get("attention_mask") or [1] * len(input_ids),
        tokens=tokens,
        offsets=offsets,
        special_tokens_mask=encoded.get("special_tokens_mask"),
        token_type_ids=encoded.get("token_type_ids"),
    )


class TokenListDetokenizer:
    """Rebuild text for a token index range using the tokenizer's own rules.

    Without a tokenizer, tokens are joined with single spaces.
    """

    def __init__(self, tokens: Sequence[str], tokenizer: Any | None = None) -> None:
        self.tokens = list(tokens)
        self.tokenizer = tokenizer

    def detokenize(self, start: int, end: int) -> str:
        pieces = self.tokens[start:end]
        if self.tokenizer is None:
            return " ".join(pieces)
        return str(self.tokenizer.convert_tokens_to_string(pieces))
