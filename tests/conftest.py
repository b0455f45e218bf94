from __future__ import annotations

import re
from typing import Any

import pytest

_WORD_RE = re.compile(r"\w+|[^\w\s]")


class StubWordTokenizer:
    """BERT-style tokenizer stub: one token per word or punctuation mark."""

    is_fast = False
    sep_token = "[SEP]"
    cls_token = "[CLS]"
    pad_token = "[PAD]"

    def __init__(self) -> None:
        self.vocab: dict[str, int] = {"[PAD]": 0, "[CLS]": 1, "[SEP]": 2}

    def _token_id(self, token: str) -> int:
        return self.vocab.setdefault(token, len(self.vocab))

    def __call__(
        self,
        text: str,
        text_pair: str | None = None,
        *,
        add_special_tokens: bool = True,
        truncation: bool | str = False,
        max_length: int | None = None,
        return_attention_mask: bool = True,
        return_token_type_ids: bool = True,
        return_special_tokens_mask: bool = True,
        return_offsets_mapping: bool = False,
    ) -> dict[str, Any]:
        first = _WORD_RE.findall(text)
        tokens = ["[CLS]", *first, "[SEP]"]
        token_type_ids = [0] * len(tokens)
        special_tokens_mask = [1, *([0] * len(first)), 1]

        if text_pair is not None:
            second = _WORD_RE.findall(text_pair)
            if truncation and max_length is not None:
                second = second[: max(max_length - len(tokens) - 1, 0)]
            tokens += [*second, "[SEP]"]
            token_type_ids += [1] * (len(second) + 1)
            special_tokens_mask += [*([0] * len(second)), 1]

        input_ids = [self._token_id(token) for token in tokens]
        return {
            "input_ids": input_ids,
            "attention_mask": [1] * len(input_ids),
            "token_type_ids": token_type_ids,
            "special_tokens_mask": special_tokens_mask,
        }

    def convert_ids_to_tokens(self, ids: list[int]) -> list[str]:
        inverse = {token_id: token for token, token_id in self.vocab.items()}
        return [inverse[int(token_id)] for token_id in ids]

    def convert_tokens_to_string(self, tokens: list[str]) -> str:
        return " ".join(tokens)


@pytest.fixture
def stub_tokenizer() -> StubWordTokenizer:
    return StubWordTokenizer()
