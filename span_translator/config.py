"""
Command line and file configuration for the translation runner.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml
from transformers.hf_argparser import HfArgumentParser

from .decoding import DEFAULT_THRESHOLD
from .translators import TRANSLATORS

logger = logging.getLogger(__name__)


@dataclass
class TranslatorArguments:
    """Arguments selecting the model, the task and the request to run."""

    model_name_or_path: str = field(
        metadata={"help": "Path to a checkpoint or model identifier from huggingface.co/models"}
    )
    task: str = field(
        default="multi_span_qa",
        metadata={"help": "Translation task", "choices": sorted(TRANSLATORS)},
    )
    tokenizer_name: str | None = field(
        default=None,
        metadata={"help": "Tokenizer name or path if different from model_name_or_path"},
    )
    max_length: int | None = field(
        default=512, metadata={"help": "Maximum sequence length for encoding"}
    )
    threshold: float = field(
        default=DEFAULT_THRESHOLD,
        metadata={"help": "Keep-probability threshold for sentence highlighting"},
    )
    with_bytes: bool = field(
        default=True, metadata={"help": "Attach raw byte buffers to embedding outputs"}
    )
    device: str | None = field(default=None, metadata={"help": "Device to run the model on"})
    trust_remote_code: bool = field(
        default=False,
        metadata={
            "help": "Allow custom modeling code shipped with the checkpoint. Needed for "
            "heads that accept extra inputs such as sentence_ids"
        },
    )
    input_names: list[str] | None = field(
        default=None,
        metadata={
            "help": "Inputs forwarded to the model, all of them when omitted. "
            "Use 'input_ids attention_mask' for stock Hugging Face heads"
        },
    )
    output_names: list[str] | None = field(
        default=None, metadata={"help": "Names given to positional model outputs"}
    )
    cache_dir: str | None = field(
        default=None, metadata={"help": "Where to store downloaded models and tokenizers"}
    )
    question: str | None = field(default=None, metadata={"help": "Question text"})
    context: str | None = field(default=None, metadata={"help": "Context text"})
    text: str | None = field(default=None, metadata={"help": "Text to embed"})
    output_file: str | None = field(
        default=None, metadata={"help": "Write the JSON result here instead of stdout"}
    )

    def __post_init__(self) -> None:
        if self.task not in TRANSLATORS:
            raise ValueError(f"Unsupported task: {self.task}. Choose one of {sorted(TRANSLATORS)}")
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {self.threshold}")
        if self.max_length is not None and self.max_length <= 0:
            raise ValueError("max_length must be positive")


def parse_config_file(config_file: str | Path) -> TranslatorArguments:
    """Parse a YAML configuration file into :class:`TranslatorArguments`."""
    with open(config_file, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    known = {item.name for item in fields(TranslatorArguments)}
    unknown = sorted(set(config) - known)
    if unknown:
        logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))

    return TranslatorArguments(**{key: value for key, value in config.items() if key in known})


def parse_arguments(argv: Sequence[str] | None = None) -> TranslatorArguments:
    """
    Parse arguments from the command line or a configuration file.

    A first argument ending in ``.yaml``/``.yml`` or ``.json`` is read as a
    configuration file; any remaining command line flags override it.
    """
    parser = HfArgumentParser(TranslatorArguments)  # type: ignore[arg-type]
    args = list(argv) if argv is not None else None

    if args and args[0].endswith((".yaml", ".yml", ".json")):
        config_file, remaining = args[0], args[1:]
        logger.info("Loading configuration from: %s", config_file)
        if config_file.endswith(".json"):
            (translator_args,) = parser.parse_json_file(json_file=config_file)
        else:
            translator_args = parse_config_file(config_file)

        if remaining:
            defaults = parser.parse_dict(
                {"model_name_or_path": translator_args.model_name_or_path}
            )[0]
            (overrides,) = parser.parse_args_into_dataclasses(
                args=["--model_name_or_path", translator_args.model_name_or_path, *remaining]
            )
            for item in fields(TranslatorArguments):
                override_value = getattr(overrides, item.name)
                if override_value != getattr(defaults, item.name):
                    logger.info(
                        "Override %s: %s -> %s",
                        item.name,
                        getattr(translator_args, item.name),
                        override_value,
                    )
                    setattr(translator_args, item.name, override_value)
        return translator_args

    (translator_args,) = parser.parse_args_into_dataclasses(args=args)
    return translator_args
