"""
Decoders turning per-token model outputs into labels and answer spans.

Two variants are provided:

* :class:`SpanDecoder` walks BIO labels (see :class:`SpanLabel`) after the
  question/context separator and merges contiguous Begin/Continue runs into
  text spans.
* :func:`threshold_probabilities` marks every token whose positive-class
  probability exceeds a threshold, without any merging.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Protocol

import numpy as np
import torch

from .data_structures import DecodeResult, Span, SpanLabel

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.5


class Detokenizer(Protocol):
    def detokenize(self, start: int, end: int) -> str:
        """Return the text of tokens ``[start, end)``."""
        ...


class DecoderState(Enum):
    IDLE = "idle"
    OPEN = "open"


def find_separator(tokens: Sequence[str], sep_token: str) -> int:
    """Index of the first separator token, -1 when absent."""
    for index, token in enumerate(tokens):
        if token == sep_token:
            return index
    return -1


class SpanDecoder:
    """
    BIO state machine over the context part of a token sequence.

    Args:
        detokenizer: Rebuilds text for a token range
    """

    def __init__(self, detokenizer: Detokenizer):
        self.detokenizer = detokenizer

    def _emit(self, start: int, end: int) -> Span:
        text = self.detokenizer.detokenize(start, end).strip()
        return Span(start=start, end=end, text=text)

    def decode(
        self,
        labels: Sequence[int] | np.ndarray,
        separator_index: int | None,
        num_spans: int | None = None,
    ) -> DecodeResult:
        """
        Decode spans from labels of tokens after ``separator_index``.

        A Continue label with no open span is dropped and an unknown label
        value is ignored; both are logged as data-quality issues rather than
        raised. A span ends after its last Begin or Continue token, so ignored
        labels never extend it. A missing separator (``None`` or negative) widens the scan to
        the whole sequence.

        Args:
            labels: One label per token for the full sequence
            separator_index: Position of the question/context separator
            num_spans: Span count produced by the model. It is reported as is,
                even when it differs from the number of decoded spans.

        Returns:
            DecodeResult with the labels, decoded spans and reported count
        """
        label_values = [int(value) for value in np.asarray(labels).reshape(-1).tolist()]

        if separator_index is None or separator_index < 0:
            logger.warning("No separator token found; decoding spans over the whole sequence")
            separator_index = -1

        spans: list[Span] = []
        state = DecoderState.IDLE
        span_start = 0
        # Exclusive end of the open span: one past its last Begin/Continue token
        span_end = 0
        orphan_labels = 0

        for index in range(separator_index + 1, len(label_values)):
            label = label_values[index]
            if label == SpanLabel.BEGIN:
                if state is DecoderState.OPEN:
                    spans.append(self._emit(span_start, span_end))
                span_start = index
                span_end = index + 1
                state = DecoderState.OPEN
            elif label == SpanLabel.CONTINUE:
                if state is DecoderState.OPEN:
                    span_end = index + 1
                else:
                    logger.debug("Dropping Continue label without Begin at token %d", index)
                    orphan_labels += 1
            elif label == SpanLabel.OTHER:
                if state is DecoderState.OPEN:
                    spans.append(self._emit(span_start, span_end))
                    state = DecoderState.IDLE
            else:
                logger.debug("Ignoring unknown label %d at token %d", label, index)
                orphan_labels += 1

        if state is DecoderState.OPEN:
            spans.append(self._emit(span_start, span_end))

        if orphan_labels:
            logger.warning(
                "Label sequence had %d malformed labels; decoded %d spans on a best-effort basis",
                orphan_labels,
                len(spans),
            )

        count = len(spans) if num_spans is None else int(num_spans)
        if count != len(spans):
            logger.info(
                "Model reported %d spans but %d were decoded from the labels", count, len(spans)
            )

        return DecodeResult(count=count, labels=label_values, spans=spans)


def positive_class_probabilities(logits: np.ndarray | torch.Tensor) -> np.ndarray:
    """Softmax over the last axis and keep the probability of class 1.

    A leading batch axis of size one is dropped.
    """
    scores = torch.as_tensor(logits).float()
    if scores.dim() == 3 and scores.shape[0] == 1:
        scores = scores.squeeze(0)
    if scores.dim() == 0 or scores.shape[-1] < 2:
        raise ValueError(
            f"Expected logits with at least two classes on the last axis, got shape "
            f"{tuple(scores.shape)}"
        )
    probs = torch.softmax(scores, dim=-1)[..., 1]
    return probs.reshape(-1).cpu().numpy()


def threshold_probabilities(
    probabilities: Sequence[float] | np.ndarray,
    threshold: float = DEFAULT_THRESHOLD,
) -> DecodeResult:
    """
    Binary labels from positive-class probabilities.

    A token is labelled 1 when its probability is strictly above ``threshold``;
    the count is the number of positive labels.
    """
    probs = np.asarray(probabilities, dtype=np.float64).reshape(-1)
    labels = (probs > threshold).astype(np.int64)
    return DecodeResult(count=int(labels.sum()), labels=labels.tolist())


def resolve_label_ids(labels: np.ndarray | torch.Tensor) -> np.ndarray:
    """Return integer label ids, taking the argmax of float logits.

    Integer inputs are flattened as they are. Float inputs whose last axis
    holds one score per :class:`SpanLabel` are reduced with argmax.
    """
    if isinstance(labels, torch.Tensor):
        labels = labels.detach().cpu().numpy()
    values = np.asarray(labels)
    if np.issubdtype(values.dtype, np.floating):
        if values.ndim >= 2 and values.shape[-1] == len(SpanLabel):
            values = values.argmax(axis=-1)
        else:
            values = np.rint(values)
    return values.astype(np.int64).reshape(-1)
