from __future__ import annotations

import numpy as np
import pytest
import torch
from span_translator.data_structures import UNASSIGNED, TensorDataType
from span_translator.sentence_splitter import sentence_spans
from span_translator.translators import (
    MultiSpanQuestionAnsweringTranslator,
    SentenceHighlightTranslator,
    TextEmbeddingTranslator,
    create_translator,
)

QUESTION = "Which pets?"
CONTEXT = "Cats and dogs are pets. Fish are too."
# [CLS] Which pets ? [SEP] Cats and dogs are pets . Fish are too . [SEP]
NUM_TOKENS = 16


def _highlight_logits(positive: set[int]) -> np.ndarray:
    logits = np.tile(np.array([4.0, -4.0], dtype=np.float32), (NUM_TOKENS, 1))
    for index in positive:
        logits[index] = [-4.0, 4.0]
    return logits


def test_sentence_highlight_process_input(stub_tokenizer) -> None:
    translator = SentenceHighlightTranslator(stub_tokenizer)

    ctx, inputs = translator.process_input(QUESTION, CONTEXT)

    assert list(inputs) == ["input_ids", "attention_mask", "sentence_ids"]
    assert ctx.sentences == ["Cats and dogs are pets", "Fish are too."]
    assert inputs["sentence_ids"].data == (
        UNASSIGNED, 0, 0, 0, UNASSIGNED,
        0, 0, 0, 0, 0, 0, 1, 1, 1, 1, UNASSIGNED,
    )  # fmt: skip
    assert len(ctx.encoding) == NUM_TOKENS


def test_sentence_highlight_context_sentences_map_to_characters(stub_tokenizer) -> None:
    ctx, _ = SentenceHighlightTranslator(stub_tokenizer).process_input(QUESTION, CONTEXT)

    spans = sentence_spans(CONTEXT)

    assert [CONTEXT[start:end] for start, end in spans] == ctx.sentences


def test_sentence_highlight_process_output(stub_tokenizer) -> None:
    translator = SentenceHighlightTranslator(stub_tokenizer)
    ctx, _ = translator.process_input(QUESTION, CONTEXT)

    result = translator.process_output(ctx, [("logits", _highlight_logits({11, 12, 13, 14}))])

    assert result.names() == ["num_spans", "labels"]
    assert result["num_spans"].data == (4,)
    assert result["num_spans"].shape == (1,)
    assert result["labels"].data_type is TensorDataType.INT64
    assert result["labels"].shape == (NUM_TOKENS,)
    assert [i for i, label in enumerate(result["labels"].data) if label == 1] == [11, 12, 13, 14]


def test_sentence_highlight_requires_context(stub_tokenizer) -> None:
    with pytest.raises(ValueError, match="context"):
        SentenceHighlightTranslator(stub_tokenizer).process_input(QUESTION)


def test_multi_span_process_input(stub_tokenizer) -> None:
    translator = MultiSpanQuestionAnsweringTranslator(stub_tokenizer)

    ctx, inputs = translator.process_input(QUESTION, CONTEXT)

    assert list(inputs) == ["input_ids", "attention_mask"]
    assert ctx.encoding.tokens[4] == "[SEP]"


def test_multi_span_process_output(stub_tokenizer) -> None:
    translator = MultiSpanQuestionAnsweringTranslator(stub_tokenizer)
    ctx, _ = translator.process_input(QUESTION, CONTEXT)
    labels = np.zeros(NUM_TOKENS, dtype=np.int64)
    labels[2] = 1  # question tokens are never decoded
    labels[5] = 1
    labels[7] = 1
    labels[8] = 2
    labels[11] = 1

    result = translator.process_output(
        ctx, [("num_spans", np.array([2])), ("labels", labels)]
    )

    assert result.names() == ["num_spans", "labels", "answers"]
    assert result["answers"].string_value == "Cats | dogs are | Fish"
    # The model-produced count is reported even though three spans were decoded
    assert result["num_spans"].data == (2,)
    assert result["labels"].data == tuple(labels.tolist())


def test_multi_span_process_output_with_logits(stub_tokenizer) -> None:
    translator = MultiSpanQuestionAnsweringTranslator(stub_tokenizer)
    ctx, _ = translator.process_input(QUESTION, CONTEXT)
    logits = torch.zeros(1, NUM_TOKENS, 3)
    logits[0, :, 0] = 1.0
    logits[0, 9, 1] = 5.0

    result = translator.process_output(ctx, {"num_spans": torch.tensor([[1]]), "logits": logits})

    assert result["answers"].string_value == "pets"
    assert result["num_spans"].data == (1,)


def test_multi_span_process_output_ignores_surplus_labels(stub_tokenizer) -> None:
    translator = MultiSpanQuestionAnsweringTranslator(stub_tokenizer)
    ctx, _ = translator.process_input(QUESTION, CONTEXT)
    labels = np.zeros(NUM_TOKENS + 4, dtype=np.int64)
    labels[14:] = [1, 2, 2, 2, 2, 2]

    result = translator.process_output(ctx, [np.array([1]), labels])

    assert result["answers"].string_value == ". [SEP]"
    assert result["labels"].shape == (NUM_TOKENS + 4,)


def test_multi_span_process_output_requires_two_outputs(stub_tokenizer) -> None:
    translator = MultiSpanQuestionAnsweringTranslator(stub_tokenizer)
    ctx, _ = translator.process_input(QUESTION, CONTEXT)

    with pytest.raises(ValueError, match="span count and label"):
        translator.process_output(ctx, [np.array([1])])


def test_text_embedding_translator(stub_tokenizer) -> None:
    translator = TextEmbeddingTranslator(stub_tokenizer)

    ctx, inputs = translator.process_input("Cats purr.")
    embedding = np.array([0.5, -0.25, 1.0], dtype=np.float32)
    result = translator.process_output(ctx, [("sentence_embedding", embedding)])

    assert list(inputs) == ["input_ids", "attention_mask", "token_type_ids"]
    assert ctx.encoding.tokens == ("[CLS]", "Cats", "purr", ".", "[SEP]")
    np.testing.assert_array_equal(result["sentence_embedding"].decode_bytes(), embedding)


def test_create_translator(stub_tokenizer) -> None:
    translator = create_translator("sentence_highlighting", stub_tokenizer, threshold=0.9)

    assert isinstance(translator, SentenceHighlightTranslator)
    assert translator.threshold == 0.9
    with pytest.raises(ValueError, match="Unsupported task"):
        create_translator("summarization", stub_tokenizer)
