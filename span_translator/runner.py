"""
Command line runner: translate one request with a Hugging Face checkpoint
and print the result envelope as JSON.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from transformers import AutoModel, AutoModelForTokenClassification, AutoTokenizer
from transformers.utils import logging as hf_logging

from .config import TranslatorArguments, parse_arguments
from .runtime import Predictor, TorchModelRunner
from .serialization import ModelTensors
from .translators import create_translator

logger = logging.getLogger(__name__)


def _translator_kwargs(args: TranslatorArguments) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"max_length": args.max_length}
    if args.task == "sentence_highlighting":
        kwargs["threshold"] = args.threshold
    elif args.task == "text_embedding":
        kwargs["with_bytes"] = args.with_bytes
    return kwargs


def build_predictor(args: TranslatorArguments) -> Predictor:
    """Load tokenizer and model for ``args.task`` and wire them into a predictor."""
    tokenizer = AutoTokenizer.from_pretrained(
        args.tokenizer_name or args.model_name_or_path,
        cache_dir=args.cache_dir,
        trust_remote_code=args.trust_remote_code,
    )

    model_class = AutoModel if args.task == "text_embedding" else AutoModelForTokenClassification
    logger.info("Loading %s from %s", model_class.__name__, args.model_name_or_path)
    model = model_class.from_pretrained(
        args.model_name_or_path,
        cache_dir=args.cache_dir,
        trust_remote_code=args.trust_remote_code,
    )

    translator = create_translator(args.task, tokenizer, **_translator_kwargs(args))
    runner = TorchModelRunner(
        model,
        device=args.device,
        input_names=args.input_names,
        output_names=args.output_names,
    )
    return Predictor(translator, runner)


def run(args: TranslatorArguments) -> ModelTensors:
    """Run the request described by ``args``."""
    if args.task == "text_embedding":
        if args.text is None:
            raise ValueError("--text is required for the text_embedding task")
        request: tuple[str, str | None] = (args.text, None)
    else:
        if args.question is None or args.context is None:
            raise ValueError(f"--question and --context are required for the {args.task} task")
        request = (args.question, args.context)

    predictor = build_predictor(args)
    return predictor.predict(*request)


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    hf_logging.set_verbosity(logging.WARNING)

    args = parse_arguments(sys.argv[1:] if argv is None else argv)
    result = run(args)

    rendered = json.dumps(result.to_dict(), ensure_ascii=False, indent=2)
    if args.output_file:
        Path(args.output_file).write_text(rendered + "\n", encoding="utf-8")
        logger.info("Result written to %s", args.output_file)
    else:
        print(rendered)


if __name__ == "__main__":
    main()
