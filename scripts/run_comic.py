"""
CLI example that renders a comicflow generation in the terminal.

Usage:
    python scripts/run_comic.py "dancing with penguins" \
        --base-url http://localhost:3000 \
        --yaml
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import yaml

from tqdm.auto import tqdm

# Ensure project root is on the Python path when running as a script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from comicflow import GenerationOrchestrator, GenerationPhase, OrchestrationState
from comicflow.common import post_json, with_retries

DEFAULT_MAX_PROMPT_LENGTH = 50

SETTINGS_KEYS = {
    "base_url",
    "story_url",
    "image_url",
    "timeout",
    "surface_image_errors",
    "retries",
}


class SnapshotRenderer:
    """
    Terminal rendering layer: observes orchestration snapshots and prints progress.
    """

    def __init__(self) -> None:
        self._panel_bar: tqdm | None = None
        self._phase: GenerationPhase | None = None
        self._captioned: set[int] = set()

    def __call__(self, state: OrchestrationState) -> None:
        phase_changed = state.phase is not self._phase
        self._phase = state.phase

        match state.phase:
            case GenerationPhase.STORY_LOADING if phase_changed:
                self.close()
                self._captioned.clear()
                self._write(f"Writing a story for {state.prompt_text!r}...")
            case GenerationPhase.PANELS_READY if phase_changed:
                total = len(state.panels)
                self._write(f"Story ready with {total} panels. Drawing...")
                self._panel_bar = tqdm(total=total, desc="Panels", unit="panel")
            case GenerationPhase.IMAGE_LOADING:
                if self._panel_bar is not None and state.active_index is not None:
                    self._panel_bar.set_description(f"Panel {state.active_index + 1}")
            case GenerationPhase.FAILED:
                self.close()
                if state.last_error is not None:
                    self._write(state.last_error.message)
            case GenerationPhase.HALTED:
                self.close()
                pending = ", ".join(str(index + 1) for index in state.pending_indices)
                self._write(f"Image generation stopped; panels still pending: {pending}.")
                if state.last_error is not None:
                    self._write(state.last_error.message)
            case GenerationPhase.COMPLETE:
                self.close()
                self._write("Comic complete.")

        self._show_new_captions(state)

    def _show_new_captions(self, state: OrchestrationState) -> None:
        # Captions are revealed together with their image.
        for index, panel in enumerate(state.panels):
            if panel.has_image and index not in self._captioned:
                self._captioned.add(index)
                if self._panel_bar is not None:
                    self._panel_bar.update(1)
                self._write(f"  [{index + 1}] {panel.caption_text}\n      {panel.image_ref}")

    def close(self) -> None:
        if self._panel_bar is not None:
            self._panel_bar.close()
            self._panel_bar = None

    @staticmethod
    def _write(message: str) -> None:
        tqdm.write(message)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate an illustrated comic from a prompt.")
    parser.add_argument("prompt", help="Short story prompt, e.g. 'dancing with penguins'.")
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML/JSON settings file (base_url, story_url, image_url, timeout, ...).",
    )
    parser.add_argument("--base-url", default=None, help="Root URL of the generation services.")
    parser.add_argument("--story-url", default=None, help="Full story service endpoint.")
    parser.add_argument("--image-url", default=None, help="Full image service endpoint.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds.",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=None,
        help="Total attempts per service call (default: 1, no retry).",
    )
    parser.add_argument(
        "--surface-image-errors",
        dest="surface_image_errors",
        action="store_true",
        default=None,
        help="Report a halted image sequence as an error instead of only logging it.",
    )
    parser.add_argument(
        "--max-prompt-length",
        type=int,
        default=DEFAULT_MAX_PROMPT_LENGTH,
        help=f"Reject prompts longer than this (default: {DEFAULT_MAX_PROMPT_LENGTH}).",
    )
    parser.add_argument(
        "--yaml",
        action="store_true",
        help="Print the final snapshot as YAML.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level for diagnostics (default: WARNING).",
    )
    return parser.parse_args(argv)


def load_settings(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    elif suffix == ".json":
        data = json.loads(text)
    else:
        raise ValueError("Unsupported settings file format. Use YAML or JSON.")

    if data is None:
        return {}
    if not isinstance(data, Dict):
        raise ValueError("Settings file must deserialize to a mapping.")

    unknown = set(data) - SETTINGS_KEYS
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}.")

    flag = data.get("surface_image_errors")
    if flag is not None and not isinstance(flag, bool):
        raise ValueError(f"surface_image_errors must be true or false, got {flag!r}.")
    return data


def merge_settings(args: argparse.Namespace) -> Dict[str, Any]:
    settings: Dict[str, Any] = load_settings(Path(args.config)) if args.config else {}
    for key in SETTINGS_KEYS:
        value = getattr(args, key)
        if value is not None:
            settings[key] = value
    return settings


def build_orchestrator(settings: Dict[str, Any]) -> GenerationOrchestrator:
    retries = int(settings.get("retries") or 1)
    post_fn = with_retries(post_json, attempts=retries) if retries > 1 else None
    return GenerationOrchestrator(
        base_url=settings.get("base_url"),
        story_url=settings.get("story_url"),
        image_url=settings.get("image_url"),
        timeout=settings.get("timeout"),
        post_fn=post_fn,
        surface_image_errors=settings.get("surface_image_errors") is True,
    )


async def run(orchestrator: GenerationOrchestrator, prompt: str) -> OrchestrationState:
    renderer = SnapshotRenderer()
    unsubscribe = orchestrator.subscribe(renderer)
    try:
        orchestrator.submit(prompt)
        return await orchestrator.wait_idle()
    finally:
        unsubscribe()
        renderer.close()


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    prompt = args.prompt.strip()
    if not prompt:
        print("Please enter a prompt.", file=sys.stderr)
        return 2
    if len(prompt) > args.max_prompt_length:
        print(
            f"Prompt is {len(prompt)} characters; the limit is {args.max_prompt_length}.",
            file=sys.stderr,
        )
        return 2

    orchestrator = build_orchestrator(merge_settings(args))
    final_state = asyncio.run(run(orchestrator, prompt))

    if args.yaml:
        print(final_state.to_yaml(), end="")

    return 0 if final_state.phase is GenerationPhase.COMPLETE else 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
