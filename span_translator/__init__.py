"""
Translation between (question, context) text and model tensors.

This package converts text pairs into named model inputs and converts raw
model outputs back into highlighted sentences, extracted answer spans and
serialized embedding tensors.
"""

from __future__ import annotations

from .data_structures import (
    UNASSIGNED,
    DecodeResult,
    Encoding,
    NamedTensor,
    Span,
    SpanLabel,
    TensorDataType,
    TranslatorContext,
)
from .decoding import (
    SpanDecoder,
    find_separator,
    positive_class_probabilities,
    threshold_probabilities,
)
from .inputs import build_model_inputs
from .runtime import Predictor, TorchModelRunner
from .sentence_splitter import sentence_spans, split_sentences
from .serialization import ModelTensors, serialize_outputs
from .token_mapping import SpecialTokens, map_tokens_to_sentences
from .tokenization import TokenListDetokenizer, encode_pair
from .translators import (
    MultiSpanQuestionAnsweringTranslator,
    SentenceHighlightTranslator,
    TextEmbeddingTranslator,
    Translator,
    create_translator,
)

__all__ = [
    "UNASSIGNED",
    "DecodeResult",
    "Encoding",
    "NamedTensor",
    "Span",
    "SpanLabel",
    "TensorDataType",
    "TranslatorContext",
    "SpanDecoder",
    "find_separator",
    "positive_class_probabilities",
    "threshold_probabilities",
    "build_model_inputs",
    "Predictor",
    "TorchModelRunner",
    "sentence_spans",
    "split_sentences",
    "ModelTensors",
    "serialize_outputs",
    "SpecialTokens",
    "map_tokens_to_sentences",
    "TokenListDetokenizer",
    "encode_pair",
    "Translator",
    "SentenceHighlightTranslator",
    "MultiSpanQuestionAnsweringTranslator",
    "TextEmbeddingTranslator",
    "create_translator",
]
