"""
Assembly of named model input tensors from an encoding.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Sequence

import numpy as np

from .data_structures import Encoding, NamedTensor

INPUT_IDS = "input_ids"
ATTENTION_MASK = "attention_mask"
SENTENCE_IDS = "sentence_ids"
TOKEN_TYPE_IDS = "token_type_ids"


def build_model_inputs(
    encoding: Encoding,
    sentence_ids: Sequence[int] | None = None,
    include_token_type_ids: bool = False,
) -> OrderedDict[str, NamedTensor]:
    """
    Package an encoding as the tensors a model consumes.

    Args:
        encoding: Tokenized input
        sentence_ids: Sentence index per token, -1 for unassigned tokens
        include_token_type_ids: Add ``token_type_ids`` when the encoding has them

    Returns:
        ``input_ids`` and ``attention_mask`` (int64), then ``sentence_ids``
        (int32) when a map is supplied
    """
    inputs: OrderedDict[str, NamedTensor] = OrderedDict()
    inputs[INPUT_IDS] = NamedTensor.from_array(INPUT_IDS, np.asarray(encoding.ids, dtype=np.int64))
    inputs[ATTENTION_MASK] = NamedTensor.from_array(
        ATTENTION_MASK, np.asarray(encoding.attention_mask, dtype=np.int64)
    )

    if include_token_type_ids and encoding.token_type_ids is not None:
        inputs[TOKEN_TYPE_IDS] = NamedTensor.from_array(
            TOKEN_TYPE_IDS, np.asarray(encoding.token_type_ids, dtype=np.int64)
        )

    if sentence_ids is not None:
        if len(sentence_ids) != len(encoding):
            raise ValueError(
                f"sentence_ids has {len(sentence_ids)} entries but the encoding has "
                f"{len(encoding)} tokens"
            )
        inputs[SENTENCE_IDS] = NamedTensor.from_array(
            SENTENCE_IDS, np.asarray(sentence_ids, dtype=np.int32)
        )

    return inputs
