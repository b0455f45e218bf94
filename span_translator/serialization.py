"""
Task-agnostic conversion of raw model outputs into portable tensor records.

:class:`ModelTensors` is the result envelope returned by every translator.
Its byte form is a safetensors payload: numeric tensors are stored as flat
arrays and the tensor layout (names, order, shapes, element types and any
string values) travels in the safetensors metadata header.
"""

from __future__ import annotations

import json
import struct
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any, Union

import numpy as np
import torch
from safetensors.numpy import load as load_safetensors
from safetensors.numpy import save as save_safetensors

from .data_structures import NamedTensor, TensorDataType

ArrayLike = Union[np.ndarray, torch.Tensor, Sequence[Any], str, int, float]
RawOutputs = Union[
    Mapping[str, ArrayLike],
    Iterable[tuple[str, ArrayLike]],
    Iterable[NamedTensor],
]

LAYOUT_METADATA_KEY = "span_translator.layout"


def iter_named_outputs(outputs: RawOutputs) -> Iterator[tuple[str, Any]]:
    """Yield ``(name, value)`` pairs from a mapping, pairs or named tensors."""
    if isinstance(outputs, Mapping):
        yield from outputs.items()
        return
    for index, item in enumerate(outputs):
        if isinstance(item, NamedTensor):
            yield item.name, item
        elif isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], str):
            yield item[0], item[1]
        else:
            yield f"output_{index}", item


class ModelTensors:
    """Ordered, name-addressable collection of :class:`NamedTensor` records."""

    def __init__(self, tensors: Iterable[NamedTensor] | None = None) -> None:
        self.tensors: list[NamedTensor] = list(tensors or [])

    def add(self, tensor: NamedTensor) -> None:
        self.tensors.append(tensor)

    def names(self) -> list[str]:
        return [tensor.name for tensor in self.tensors]

    def __getitem__(self, name: str) -> NamedTensor:
        for tensor in self.tensors:
            if tensor.name == name:
                return tensor
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return any(tensor.name == name for tensor in self.tensors)

    def __iter__(self) -> Iterator[NamedTensor]:
        return iter(self.tensors)

    def __len__(self) -> int:
        return len(self.tensors)

    def __repr__(self) -> str:
        parts = []
        for tensor in self.tensors:
            if tensor.data_type is TensorDataType.STRING:
                parts.append(f"{tensor.name}=STRING")
            else:
                parts.append(f"{tensor.name}={tensor.data_type.name}{list(tensor.shape)}")
        return f"ModelTensors({', '.join(parts)})"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary format for serialization."""
        return {"output": [tensor.to_dict() for tensor in self.tensors]}

    def to_bytes(self) -> bytes:
        arrays: dict[str, np.ndarray] = {}
        layout: list[dict[str, Any]] = []
        for tensor in self.tensors:
            entry: dict[str, Any] = {"name": tensor.name, "data_type": tensor.data_type.name}
            if tensor.data_type is TensorDataType.STRING:
                entry["value"] = tensor.string_value
            else:
                if tensor.name in arrays:
                    raise ValueError(f"Duplicate tensor name '{tensor.name}'")
                entry["shape"] = list(tensor.shape)
                entry["byte_buffer"] = tensor.byte_buffer is not None
                arrays[tensor.name] = tensor.to_numpy().reshape(-1)
            layout.append(entry)

        metadata = {LAYOUT_METADATA_KEY: json.dumps(layout, ensure_ascii=False)}
        return save_safetensors(arrays, metadata=metadata)

    @classmethod
    def from_bytes(cls, payload: bytes) -> ModelTensors:
        (header_size,) = struct.unpack("<Q", payload[:8])
        header = json.loads(payload[8 : 8 + header_size].decode("utf-8"))
        metadata = header.get("__metadata__") or {}
        if LAYOUT_METADATA_KEY not in metadata:
            raise ValueError("Payload does not carry a tensor layout")
        layout = json.loads(metadata[LAYOUT_METADATA_KEY])

        arrays = load_safetensors(payload)
        tensors = []
        for entry in layout:
            data_type = TensorDataType[entry["data_type"]]
            if data_type is TensorDataType.STRING:
                tensors.append(NamedTensor.from_string(entry["name"], entry["value"]))
                continue
            values = np.ascontiguousarray(arrays[entry["name"]], dtype=data_type.numpy_dtype)
            tensors.append(
                NamedTensor(
                    name=entry["name"],
                    data=tuple(values.tolist()),
                    shape=tuple(entry["shape"]),
                    data_type=data_type,
                    byte_buffer=values.tobytes() if entry["byte_buffer"] else None,
                )
            )
        return cls(tensors)


def serialize_outputs(outputs: RawOutputs, with_bytes: bool = True) -> ModelTensors:
    """
    Convert raw model outputs into a :class:`ModelTensors` envelope.

    Every output keeps its name, shape, element type and values; with
    ``with_bytes`` each numeric record also carries its little-endian bytes
    for zero-copy consumers.

    Args:
        outputs: Mapping of name to array, ``(name, array)`` pairs or tensors
        with_bytes: Attach raw byte buffers

    Returns:
        ModelTensors in input order
    """
    model_tensors = ModelTensors()
    for name, value in iter_named_outputs(outputs):
        if isinstance(value, NamedTensor):
            numeric = value.data_type is not TensorDataType.STRING
            if with_bytes and numeric and value.byte_buffer is None:
                value = NamedTensor.from_array(value.name, value.to_numpy(), with_bytes=True)
            model_tensors.add(value)
        else:
            model_tensors.add(NamedTensor.from_array(name, value, with_bytes=with_bytes))
    return model_tensors
