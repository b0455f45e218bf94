"""
Data structures shared by the span translation pipeline.
"""

from __future__ import annotations

import base64
import logging
import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

import numpy as np
import torch

logger = logging.getLogger(__name__)

UNASSIGNED = -1  # Semantic unit id for tokens outside any sentence


class TensorDataType(Enum):
    """Element types a serialized tensor may carry."""

    FLOAT16 = "float16"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    INT8 = "int8"
    UINT8 = "uint8"
    INT32 = "int32"
    INT64 = "int64"
    BOOLEAN = "bool"
    STRING = "string"

    @property
    def numpy_dtype(self) -> np.dtype:
        """Little-endian numpy dtype used for the byte representation."""
        if self is TensorDataType.STRING:
            raise ValueError("STRING tensors have no numeric dtype")
        return np.dtype(self.value).newbyteorder("<")

    @classmethod
    def from_numpy(cls, dtype: np.dtype | type) -> TensorDataType:
        resolved = np.dtype(dtype)
        if resolved.kind in ("U", "S", "O"):
            return cls.STRING
        for member in cls:
            if member is not cls.STRING and np.dtype(member.value) == resolved.newbyteorder("="):
                return member
        raise ValueError(f"Unsupported tensor dtype: {resolved}")

    @classmethod
    def from_torch(cls, dtype: torch.dtype) -> TensorDataType:
        mapping = {
            torch.float16: cls.FLOAT16,
            torch.float32: cls.FLOAT32,
            torch.float64: cls.FLOAT64,
            torch.int8: cls.INT8,
            torch.uint8: cls.UINT8,
            torch.int32: cls.INT32,
            torch.int64: cls.INT64,
            torch.bool: cls.BOOLEAN,
        }
        if dtype not in mapping:
            raise ValueError(f"Unsupported tensor dtype: {dtype}")
        return mapping[dtype]


class SpanLabel(IntEnum):
    """BIO tags emitted by multi-span question answering models."""

    OTHER = 0
    BEGIN = 1
    CONTINUE = 2


@dataclass(frozen=True)
class Encoding:
    """
    Tokenized (question, context) pair.

    Attributes:
        ids: Token ids [seq_len]
        attention_mask: Attention bits [seq_len]
        tokens: Token strings, special markers included [seq_len]
        offsets: Character offsets of each token in its source text
        special_tokens_mask: 1 for special tokens, 0 for content tokens
        token_type_ids: Segment id of each token (0 = question, 1 = context)
    """

    ids: tuple[int, ...]
    attention_mask: tuple[int, ...]
    tokens: tuple[str, ...]
    offsets: tuple[tuple[int, int], ...] | None = None
    special_tokens_mask: tuple[int, ...] | None = None
    token_type_ids: tuple[int, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", tuple(int(value) for value in self.ids))
        object.__setattr__(
            self, "attention_mask", tuple(int(value) for value in self.attention_mask)
        )
        object.__setattr__(self, "tokens", tuple(str(token) for token in self.tokens))
        if self.offsets is not None:
            object.__setattr__(
                self, "offsets", tuple((int(start), int(end)) for start, end in self.offsets)
            )
        if self.special_tokens_mask is not None:
            object.__setattr__(
                self,
                "special_tokens_mask",
                tuple(int(value) for value in self.special_tokens_mask),
            )
        if self.token_type_ids is not None:
            object.__setattr__(
                self, "token_type_ids", tuple(int(value) for value in self.token_type_ids)
            )

        length = len(self.ids)
        for name in ("attention_mask", "tokens", "offsets", "special_tokens_mask", "token_type_ids"):
            value = getattr(self, name)
            if value is not None and len(value) != length:
                raise ValueError(
                    f"Encoding.{name} has {len(value)} entries but there are {length} token ids"
                )

    def __len__(self) -> int:
        return len(self.ids)

    def find_token(self, token: str) -> int:
        """Return the index of the first occurrence of ``token`` or -1."""
        for index, candidate in enumerate(self.tokens):
            if candidate == token:
                return index
        return -1


@dataclass
class NamedTensor:
    """
    Portable tensor record.

    ``data`` holds the flattened values in row-major order and ``shape`` the
    dimensions they fill. ``byte_buffer`` is the optional little-endian raw
    representation of the same values. STRING tensors carry a single value
    in ``string_value`` and no numeric data.
    """

    name: str
    data: tuple[Any, ...] = ()
    shape: tuple[int, ...] = ()
    data_type: TensorDataType = TensorDataType.FLOAT32
    byte_buffer: bytes | None = None
    string_value: str | None = None

    def __post_init__(self) -> None:
        self.data = tuple(self.data)
        self.shape = tuple(int(dim) for dim in self.shape)
        if any(dim < 0 for dim in self.shape):
            raise ValueError(f"Tensor '{self.name}' has a negative dimension: {self.shape}")

        if self.data_type is TensorDataType.STRING:
            if self.string_value is None:
                raise ValueError(f"STRING tensor '{self.name}' requires string_value")
            if self.data or self.byte_buffer is not None:
                raise ValueError(f"STRING tensor '{self.name}' cannot carry numeric data")
            return

        expected = math.prod(self.shape)
        if expected != len(self.data):
            raise ValueError(
                f"Tensor '{self.name}' has {len(self.data)} values but shape {list(self.shape)} "
                f"requires {expected}"
            )

        if self.byte_buffer is not None:
            self.byte_buffer = bytes(self.byte_buffer)
            if self.byte_buffer != self._encode_values():
                raise ValueError(
                    f"Byte buffer of tensor '{self.name}' does not match its values "
                    f"under {self.data_type.name}"
                )

    @classmethod
    def from_array(
        cls,
        name: str,
        array: np.ndarray | torch.Tensor | Any,
        with_bytes: bool = False,
    ) -> NamedTensor:
        """Build a record from a numpy array, torch tensor or nested sequence."""
        if isinstance(array, str):
            return cls.from_string(name, array)
        if isinstance(array, torch.Tensor):
            if array.dtype == torch.bfloat16:
                # numpy has no bfloat16
                logger.debug("Casting bfloat16 tensor '%s' to float32", name)
                array = array.float()
            data_type = TensorDataType.from_torch(array.dtype)
            values = array.detach().cpu().numpy()
        else:
            values = np.asarray(array)
            data_type = TensorDataType.from_numpy(values.dtype)
            if data_type is TensorDataType.STRING:
                if values.size != 1:
                    raise ValueError(f"STRING tensor '{name}' must hold exactly one value")
                return cls.from_string(name, str(values.reshape(-1)[0]))

        values = np.ascontiguousarray(values, dtype=data_type.numpy_dtype)
        return cls(
            name=name,
            data=tuple(values.reshape(-1).tolist()),
            shape=values.shape,
            data_type=data_type,
            byte_buffer=values.tobytes() if with_bytes else None,
        )

    @classmethod
    def from_string(cls, name: str, value: str) -> NamedTensor:
        return cls(name=name, data_type=TensorDataType.STRING, string_value=value)

    def _encode_values(self) -> bytes:
        return np.asarray(self.data, dtype=self.data_type.numpy_dtype).tobytes()

    def to_numpy(self) -> np.ndarray:
        """Return the values as an array of the declared dtype and shape."""
        if self.data_type is TensorDataType.STRING:
            return np.asarray(self.string_value)
        return np.asarray(self.data, dtype=self.data_type.numpy_dtype).reshape(self.shape)

    def decode_bytes(self) -> np.ndarray:
        """Decode ``byte_buffer`` under the declared element type."""
        if self.byte_buffer is None:
            raise ValueError(f"Tensor '{self.name}' carries no byte buffer")
        return np.frombuffer(self.byte_buffer, dtype=self.data_type.numpy_dtype).reshape(
            self.shape
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary format for serialization."""
        result: dict[str, Any] = {"name": self.name, "data_type": self.data_type.name}
        if self.data_type is TensorDataType.STRING:
            result["result"] = self.string_value
            return result
        result["shape"] = list(self.shape)
        result["data"] = list(self.data)
        if self.byte_buffer is not None:
            result["byte_buffer"] = {
                "array": base64.b64encode(self.byte_buffer).decode("ascii"),
                "order": "LITTLE_ENDIAN",
            }
        return result


@dataclass(frozen=True)
class Span:
    """Half-open token range ``[start, end)`` and the text it decodes to."""

    start: int
    end: int
    text: str

    @property
    def token_indices(self) -> list[int]:
        return list(range(self.start, self.end))

    def __len__(self) -> int:
        return self.end - self.start


@dataclass
class DecodeResult:
    """
    Output of a decoder.

    Attributes:
        count: Reported number of spans. For multi-span answers this is the
            model-produced value and may disagree with ``len(spans)``.
        labels: Per-token labels
        spans: Decoded spans in left-to-right order
    """

    count: int
    labels: list[int] = field(default_factory=list)
    spans: list[Span] = field(default_factory=list)

    @property
    def answers(self) -> str:
        return " | ".join(span.text for span in self.spans)


@dataclass
class TranslatorContext:
    """
    State handed from input processing to output processing of one call.

    ``sentences`` holds the context sentences for sentence highlighting. Output
    processing does not read it; it is kept for callers that report which
    sentences a label refers to.
    """

    encoding: Encoding
    sentences: list[str] | None = None
    sentence_ids: list[int] | None = None
