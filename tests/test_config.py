from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import torch
from span_translator import runner as runner_module
from span_translator.config import TranslatorArguments, parse_arguments, parse_config_file
from span_translator.runner import build_predictor, run


def test_parse_arguments_from_command_line() -> None:
    args = parse_arguments(
        [
            "--model_name_or_path",
            "some/checkpoint",
            "--task",
            "sentence_highlighting",
            "--threshold",
            "0.7",
            "--question",
            "Why?",
            "--context",
            "Because.",
        ]
    )

    assert args.model_name_or_path == "some/checkpoint"
    assert args.task == "sentence_highlighting"
    assert args.threshold == pytest.approx(0.7)
    assert args.max_length == 512
    assert args.with_bytes is True


def test_parse_arguments_rejects_unknown_task() -> None:
    with pytest.raises(SystemExit):
        parse_arguments(["--model_name_or_path", "m", "--task", "summarization"])


def test_parse_config_file_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "highlight.yaml"
    config_path.write_text(
        "model_name_or_path: some/checkpoint\n"
        "task: sentence_highlighting\n"
        "max_length: 256\n"
        "unexpected_key: 1\n",
        encoding="utf-8",
    )

    args = parse_config_file(config_path)

    assert args.task == "sentence_highlighting"
    assert args.max_length == 256
    assert args.threshold == 0.5


def test_parse_config_file_validates_values(tmp_path: Path) -> None:
    config_path = tmp_path / "bad.yaml"
    config_path.write_text("model_name_or_path: m\nthreshold: 1.5\n", encoding="utf-8")

    with pytest.raises(ValueError, match="threshold"):
        parse_config_file(config_path)


def test_parse_arguments_config_file_with_overrides(tmp_path: Path) -> None:
    config_path = tmp_path / "qa.yaml"
    config_path.write_text(
        "model_name_or_path: some/checkpoint\ntask: multi_span_qa\nmax_length: 128\n",
        encoding="utf-8",
    )

    args = parse_arguments([str(config_path), "--max_length", "64", "--no_with_bytes"])

    assert args.model_name_or_path == "some/checkpoint"
    assert args.task == "multi_span_qa"
    assert args.max_length == 64
    assert args.with_bytes is False


def test_parse_arguments_json_config(tmp_path: Path) -> None:
    config_path = tmp_path / "embed.json"
    config_path.write_text(
        json.dumps({"model_name_or_path": "m", "task": "text_embedding", "text": "hello"}),
        encoding="utf-8",
    )

    args = parse_arguments([str(config_path)])

    assert args.task == "text_embedding"
    assert args.text == "hello"


def test_run_requires_request_text() -> None:
    with pytest.raises(ValueError, match="--question and --context"):
        run(TranslatorArguments(model_name_or_path="m", task="multi_span_qa", question="Why?"))

    with pytest.raises(ValueError, match="--text"):
        run(TranslatorArguments(model_name_or_path="m", task="text_embedding"))


def test_parse_arguments_input_and_output_names() -> None:
    args = parse_arguments(
        [
            "--model_name_or_path",
            "m",
            "--input_names",
            "input_ids",
            "attention_mask",
            "--output_names",
            "logits",
        ]
    )

    assert args.input_names == ["input_ids", "attention_mask"]
    assert args.output_names == ["logits"]


class _StockTokenClassifier(torch.nn.Module):
    """Token classification head that accepts only the standard inputs."""

    def __init__(self) -> None:
        super().__init__()
        self.bias = torch.nn.Parameter(torch.tensor([0.0, 1.0]))

    def forward(self, input_ids: torch.Tensor, attention_mask: torch.Tensor) -> dict[str, Any]:
        logits = torch.zeros(*input_ids.shape, 2) + self.bias
        return {"logits": logits * attention_mask.unsqueeze(-1)}


def test_build_predictor_forwards_only_selected_inputs(
    monkeypatch: pytest.MonkeyPatch, stub_tokenizer: Any
) -> None:
    class _TokenizerLoader:
        @staticmethod
        def from_pretrained(name: str, **kwargs: Any) -> Any:
            return stub_tokenizer

    class _ModelLoader:
        @staticmethod
        def from_pretrained(name: str, **kwargs: Any) -> torch.nn.Module:
            return _StockTokenClassifier()

    monkeypatch.setattr(runner_module, "AutoTokenizer", _TokenizerLoader)
    monkeypatch.setattr(runner_module, "AutoModelForTokenClassification", _ModelLoader)

    args = TranslatorArguments(
        model_name_or_path="m",
        task="sentence_highlighting",
        input_names=["input_ids", "attention_mask"],
        question="Why?",
        context="Cats purr. Dogs bark.",
    )
    predictor = build_predictor(args)

    assert predictor.runner.input_names == ["input_ids", "attention_mask"]

    result = predictor.predict(args.question, args.context)

    # [CLS] Why ? [SEP] Cats purr . Dogs bark . [SEP]
    assert result["labels"].data == (1,) * 11
    assert result["num_spans"].data == (11,)
