"""Entrypoint: generate images through the GenBooth proxy."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from genbooth.config import load_settings
from genbooth.llm.cancellation import CancelToken
from genbooth.llm.client import build_client, build_request
from genbooth.llm.types import ProviderError
from genbooth.utils import read_image_as_data_uri, write_data_uri


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="GenBooth image generation client")
    parser.add_argument("--settings", default="config/settings.yaml", help="Path to settings.yaml")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")

    subparsers = parser.add_subparsers(dest="command")
    gen = subparsers.add_parser("generate", help="Transform an input image with one or more prompts")
    gen.add_argument("--image", required=True, help="Input image file")
    gen.add_argument("--prompt", action="append", required=True, help="Prompt text (repeatable)")
    gen.add_argument("--out", required=True, help="Output PNG path; numbered when several prompts are given")
    gen.add_argument("--route", default=None, help="provider:model override")
    gen.add_argument("--no-primer", action="store_true", help="Send prompts without the render primer")
    subparsers.add_parser("show-config", help="Print merged settings")
    return parser


def _output_paths(out: str, count: int) -> list[Path]:
    path = Path(out)
    if count == 1:
        return [path]
    return [path.with_name(f"{path.stem}-{i + 1}{path.suffix or '.png'}") for i in range(count)]


async def _run_generate(config, args) -> int:
    if args.no_primer:
        config["generation"]["primer_enabled"] = False
    input_image = read_image_as_data_uri(args.image)
    cancel = CancelToken()
    failures = 0

    async with build_client(config) as client:
        requests = [build_request(config, prompt, input_image, args.route) for prompt in args.prompt]
        tasks = [asyncio.ensure_future(client.generate(req, cancel)) for req in requests]
        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            cancel.cancel()
            raise

    for path, result in zip(_output_paths(args.out, len(requests)), results):
        if isinstance(result, ProviderError):
            failures += 1
            print(f"Generation failed: {result}")
        elif isinstance(result, BaseException):
            raise result
        elif result is None:
            failures += 1
            print(f"Generation cancelled: {path}")
        else:
            write_data_uri(result, path)
            print(f"Wrote {path}")
    return 1 if failures else 0


def main() -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args()
    command = args.command or "show-config"

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    config = load_settings(args.settings)

    if command == "show-config":
        print(yaml.safe_dump(config, sort_keys=False))
        return

    try:
        code = asyncio.run(_run_generate(config, args))
    except KeyboardInterrupt:
        print("Interrupted")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
