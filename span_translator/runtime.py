"""
Model execution boundary.

The model engine is treated as a blocking call: :class:`Predictor` runs
``process_input``, hands the tensors to a runner, waits for its outputs and
finishes with ``process_output``. Engine errors propagate to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol

import numpy as np
import torch
from tqdm import tqdm

from .data_structures import NamedTensor
from .serialization import ModelTensors
from .translators import Translator

logger = logging.getLogger(__name__)


class ModelRunner(Protocol):
    def __call__(self, inputs: Mapping[str, NamedTensor]) -> list[tuple[str, np.ndarray]]: ...


class TorchModelRunner:
    """
    Run a torch module on named input tensors.

    Inputs gain a leading batch axis of one; on the way out that axis is
    dropped again from every output with at least two dimensions.

    Args:
        model: Module called with the input tensors as keyword arguments
        device: Device to run on, the model's device when omitted
        input_names: Names forwarded to the model, all inputs when omitted
        output_names: Names for positional (tuple) outputs
    """

    def __init__(
        self,
        model: torch.nn.Module,
        device: str | torch.device | None = None,
        input_names: Sequence[str] | None = None,
        output_names: Sequence[str] | None = None,
    ):
        self.model = model
        if device is None:
            first_param = next(iter(model.parameters()), None)
            device = first_param.device if first_param is not None else "cpu"
        self.device = torch.device(device)
        self.input_names = list(input_names) if input_names is not None else None
        self.output_names = list(output_names) if output_names is not None else None
        self.model.to(self.device)
        self.model.eval()

    def _to_model_inputs(self, inputs: Mapping[str, NamedTensor]) -> dict[str, torch.Tensor]:
        model_inputs: dict[str, torch.Tensor] = {}
        for name, tensor in inputs.items():
            if self.input_names is not None and name not in self.input_names:
                continue
            model_inputs[name] = torch.from_numpy(tensor.to_numpy().copy()).unsqueeze(0).to(
                self.device
            )
        return model_inputs

    def _named_outputs(self, outputs: Any) -> list[tuple[str, torch.Tensor]]:
        if isinstance(outputs, torch.Tensor):
            name = self.output_names[0] if self.output_names else "output_0"
            return [(name, outputs)]

        if isinstance(outputs, Mapping):
            # ModelOutput is an OrderedDict that already omits unset fields
            items = list(outputs.items())
        else:
            items = []
            for index, value in enumerate(outputs):
                if self.output_names is not None and index < len(self.output_names):
                    name = self.output_names[index]
                else:
                    name = f"output_{index}"
                items.append((name, value))

        return [(name, value) for name, value in items if isinstance(value, torch.Tensor)]

    def __call__(self, inputs: Mapping[str, NamedTensor]) -> list[tuple[str, np.ndarray]]:
        model_inputs = self._to_model_inputs(inputs)
        with torch.no_grad():
            outputs = self.model(**model_inputs)

        results: list[tuple[str, np.ndarray]] = []
        for name, value in self._named_outputs(outputs):
            if value.dim() >= 2 and value.shape[0] == 1:
                value = value[0]
            results.append((name, value.detach().cpu().numpy()))
        return results


class Predictor:
    """
    One translator and one runner, chained per request.

    Args:
        translator: Converts text to inputs and outputs to the result envelope
        runner: Executes the model on the inputs
    """

    def __init__(self, translator: Translator, runner: ModelRunner):
        self.translator = translator
        self.runner = runner

    def predict(self, text: str, text_pair: str | None = None) -> ModelTensors:
        ctx, inputs = self.translator.process_input(text, text_pair)
        outputs = self.runner(inputs)
        return self.translator.process_output(ctx, outputs)

    def predict_batch(
        self,
        items: Iterable[tuple[str, str] | str],
        show_progress_bar: bool = False,
    ) -> list[ModelTensors]:
        """
        Predict each item in turn.

        Args:
            items: ``(question, context)`` pairs or single texts
            show_progress_bar: Show progress bar

        Returns:
            One envelope per item, in input order
        """
        requests = list(items)
        results = []
        for item in tqdm(requests, desc="Requests", disable=not show_progress_bar):
            if isinstance(item, str):
                results.append(self.predict(item))
            else:
                text, text_pair = item
                results.append(self.predict(text, text_pair))
        logger.info("Processed %d requests", len(results))
        return results
