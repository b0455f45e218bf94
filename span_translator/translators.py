"""
Task translators: text in, model tensors out, and back to a result envelope.

Each translator splits one inference call in two halves around the model
execution boundary. :meth:`Translator.process_input` tokenizes the request
and returns the model inputs together with a :class:`TranslatorContext`;
:meth:`Translator.process_output` receives that same context and the raw
model outputs. No state is kept on the translator between the two halves, so
a single instance can serve concurrent calls.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any

import numpy as np

from .data_structures import NamedTensor, TranslatorContext
from .decoding import (
    DEFAULT_THRESHOLD,
    SpanDecoder,
    find_separator,
    positive_class_probabilities,
    resolve_label_ids,
    threshold_probabilities,
)
from .inputs import build_model_inputs
from .sentence_splitter import split_sentences
from .serialization import ModelTensors, RawOutputs, iter_named_outputs, serialize_outputs
from .token_mapping import SpecialTokens, map_tokens_to_sentences
from .tokenization import TokenListDetokenizer, encode_pair

logger = logging.getLogger(__name__)

NUM_SPANS = "num_spans"
LABELS = "labels"
ANSWERS = "answers"
ANSWER_SEPARATOR = " | "


def _output_values(outputs: RawOutputs) -> list[Any]:
    values = []
    for _, value in iter_named_outputs(outputs):
        if isinstance(value, NamedTensor):
            value = value.to_numpy()
        values.append(value)
    return values


def _int64_tensor(name: str, values: Any) -> NamedTensor:
    array = np.asarray(values, dtype=np.int64).reshape(-1)
    return NamedTensor.from_array(name, array)


class Translator:
    """
    Base translator holding the tokenizer shared by all calls.

    Args:
        tokenizer: Hugging Face tokenizer
        special_tokens: Marker strings, read from the tokenizer when omitted
        max_length: Truncation length for encoding, ``None`` to disable
    """

    def __init__(
        self,
        tokenizer: Any,
        special_tokens: SpecialTokens | None = None,
        max_length: int | None = None,
    ):
        self.tokenizer = tokenizer
        self.special_tokens = special_tokens or SpecialTokens.from_tokenizer(tokenizer)
        self.max_length = max_length

    def process_input(
        self, text: str, text_pair: str | None = None
    ) -> tuple[TranslatorContext, OrderedDict[str, NamedTensor]]:
        raise NotImplementedError

    def process_output(self, ctx: TranslatorContext, outputs: RawOutputs) -> ModelTensors:
        raise NotImplementedError

    def _encode_question_context(self, question: str, context: str | None) -> TranslatorContext:
        if context is None:
            raise ValueError(f"{type(self).__name__} requires both a question and a context")
        encoding = encode_pair(self.tokenizer, question, context, max_length=self.max_length)
        return TranslatorContext(encoding=encoding)


class SentenceHighlightTranslator(Translator):
    """
    Highlights the context tokens that answer a question.

    Inputs carry a ``sentence_ids`` tensor aligning tokens to context
    sentences; outputs are thresholded keep probabilities.
    """

    def __init__(
        self,
        tokenizer: Any,
        special_tokens: SpecialTokens | None = None,
        max_length: int | None = None,
        threshold: float = DEFAULT_THRESHOLD,
    ):
        super().__init__(tokenizer, special_tokens=special_tokens, max_length=max_length)
        self.threshold = threshold

    def process_input(
        self, text: str, text_pair: str | None = None
    ) -> tuple[TranslatorContext, OrderedDict[str, NamedTensor]]:
        ctx = self._encode_question_context(text, text_pair)
        ctx.sentences = split_sentences(text_pair or "")
        ctx.sentence_ids = map_tokens_to_sentences(ctx.encoding.tokens, self.special_tokens)
        logger.debug(
            "Encoded %d tokens over %d context sentences", len(ctx.encoding), len(ctx.sentences)
        )
        return ctx, build_model_inputs(ctx.encoding, ctx.sentence_ids)

    def process_output(self, ctx: TranslatorContext, outputs: RawOutputs) -> ModelTensors:
        values = _output_values(outputs)
        if not values:
            raise ValueError("Model returned no outputs; expected highlight logits")

        probabilities = positive_class_probabilities(values[0])
        result = threshold_probabilities(probabilities, threshold=self.threshold)

        return ModelTensors(
            [
                _int64_tensor(NUM_SPANS, [result.count]),
                _int64_tensor(LABELS, result.labels),
            ]
        )


class MultiSpanQuestionAnsweringTranslator(Translator):
    """
    Extracts one or more answer spans from the context.

    The model returns a span count and one BIO label per token. Spans are
    decoded after the first separator and joined into the ``answers`` string.
    """

    def process_input(
        self, text: str, text_pair: str | None = None
    ) -> tuple[TranslatorContext, OrderedDict[str, NamedTensor]]:
        ctx = self._encode_question_context(text, text_pair)
        return ctx, build_model_inputs(ctx.encoding)

    def process_output(self, ctx: TranslatorContext, outputs: RawOutputs) -> ModelTensors:
        values = _output_values(outputs)
        if len(values) < 2:
            raise ValueError(
                f"Expected span count and label outputs from the model, got {len(values)}"
            )

        num_spans = int(np.asarray(values[0]).reshape(-1)[0])
        labels = resolve_label_ids(values[1])

        tokens = ctx.encoding.tokens
        decodable = labels
        if len(labels) > len(tokens):
            logger.warning(
                "Model returned %d labels for %d tokens; ignoring the surplus",
                len(labels),
                len(tokens),
            )
            decodable = labels[: len(tokens)]

        decoder = SpanDecoder(TokenListDetokenizer(tokens, self.tokenizer))
        result = decoder.decode(
            decodable,
            separator_index=find_separator(tokens, self.special_tokens.sep),
            num_spans=num_spans,
        )

        return ModelTensors(
            [
                _int64_tensor(NUM_SPANS, [result.count]),
                _int64_tensor(LABELS, labels),
                NamedTensor.from_string(
                    ANSWERS, ANSWER_SEPARATOR.join(span.text for span in result.spans)
                ),
            ]
        )


class TextEmbeddingTranslator(Translator):
    """Encodes a single text and passes every model output through unchanged."""

    def __init__(
        self,
        tokenizer: Any,
        special_tokens: SpecialTokens | None = None,
        max_length: int | None = None,
        with_bytes: bool = True,
    ):
        super().__init__(tokenizer, special_tokens=special_tokens, max_length=max_length)
        self.with_bytes = with_bytes

    def process_input(
        self, text: str, text_pair: str | None = None
    ) -> tuple[TranslatorContext, OrderedDict[str, NamedTensor]]:
        encoding = encode_pair(self.tokenizer, text, text_pair, max_length=self.max_length)
        ctx = TranslatorContext(encoding=encoding)
        return ctx, build_model_inputs(encoding, include_token_type_ids=True)

    def process_output(self, ctx: TranslatorContext, outputs: RawOutputs) -> ModelTensors:
        return serialize_outputs(outputs, with_bytes=self.with_bytes)


TRANSLATORS: dict[str, type[Translator]] = {
    "sentence_highlighting": SentenceHighlightTranslator,
    "multi_span_qa": MultiSpanQuestionAnsweringTranslator,
    "text_embedding": TextEmbeddingTranslator,
}


def create_translator(task: str, tokenizer: Any, **kwargs: Any) -> Translator:
    """Instantiate the translator registered for ``task``."""
    if task not in TRANSLATORS:
        raise ValueError(f"Unsupported task: {task}. Choose one of {sorted(TRANSLATORS)}")
    return TRANSLATORS[task](tokenizer, **kwargs)
