"""
Training data exporter - turns accumulated feedback into adapter datasets.

Produces instruction-style JSONL rows ({instruction, input, output}) for three
small adapters:

- quality-scorer: prompt + params -> acceptance score 0-10
- prompt-enhancer: rejected prompt -> best accepted prompt of the same type
- style-recommender: accepted prompt -> visual style label
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from loguru import logger

from uiforge.db.repositories import FeedbackRepository
from uiforge.domain import TrainingExample
from uiforge.exceptions import UnknownAdapterError


class AdapterType(str, Enum):
    QUALITY_SCORER = "quality-scorer"
    PROMPT_ENHANCER = "prompt-enhancer"
    STYLE_RECOMMENDER = "style-recommender"


# Minimum |score| >= 0.3 rows before a training run is worth attempting
ADAPTER_MIN_EXAMPLES: dict[AdapterType, int] = {
    AdapterType.QUALITY_SCORER: 100,
    AdapterType.PROMPT_ENHANCER: 200,
    AdapterType.STYLE_RECOMMENDER: 300,
}

DEFAULT_MIN_ABS_SCORE = 0.3
DEFAULT_EXPORT_LIMIT = 10_000

QUALITY_SCORER_INSTRUCTION = (
    "Rate the likelihood that the following UI generation request will be accepted by the user. "
    "Respond with a score from 0 to 10."
)
PROMPT_ENHANCER_INSTRUCTION = (
    "Improve the following UI generation prompt to produce better results that will be accepted by the user."
)
STYLE_RECOMMENDER_INSTRUCTION = "Given the following UI generation request, recommend the best visual style."

_PARAM_COLUMNS = ("component_type", "variant", "mood", "industry", "style")


@dataclass(frozen=True)
class ExportResult:
    path: Path
    count: int


@dataclass(frozen=True)
class TrainingReadiness:
    adapter: AdapterType
    ready: bool
    count: int
    required: int


def parse_adapter(adapter: AdapterType | str) -> AdapterType:
    try:
        return AdapterType(adapter)
    except ValueError as e:
        valid = ", ".join(a.value for a in AdapterType)
        raise UnknownAdapterError(f"Unknown adapter '{adapter}'. Valid adapters: {valid}") from e


def quality_label(score: float) -> int:
    """Map an internal feedback score (roughly -1..2) onto the 0-10 acceptance scale."""
    # Half-up rounding
    return max(0, min(10, math.floor((score + 1) * 3.33 + 0.5)))


# =============================================================================
# Raw export
# =============================================================================


def export_raw_examples(
    repository: FeedbackRepository,
    min_abs_score: float = DEFAULT_MIN_ABS_SCORE,
    limit: int = DEFAULT_EXPORT_LIMIT,
) -> list[TrainingExample]:
    """Feedback rows with |score| >= min_abs_score, most recent first, up to `limit`."""
    rows = repository.list_scored(min_abs_score=min_abs_score, limit=limit)
    examples = []
    for row in rows:
        params = {col: row[col] for col in _PARAM_COLUMNS if row.get(col)}
        examples.append(
            TrainingExample(
                prompt=row.get("prompt") or "",
                code_hash=row.get("code_hash") or "",
                score=float(row["score"]),
                params=params,
            )
        )
    return examples


# =============================================================================
# Per-adapter projections
# =============================================================================


def build_quality_scorer_data(examples: Sequence[TrainingExample]) -> list[dict[str, str]]:
    return [
        {
            "instruction": QUALITY_SCORER_INSTRUCTION,
            "input": (
                f"Prompt: {e.prompt}\n"
                f"Component: {e.params.get('component_type', 'unknown')}\n"
                f"Style: {e.params.get('style', 'default')}"
            ),
            "output": str(quality_label(e.score)),
        }
        for e in examples
        if e.prompt
    ]


def build_prompt_enhancer_data(examples: Sequence[TrainingExample]) -> list[dict[str, str]]:
    """
    Pair every rejected prompt (score < -0.3) with the single best accepted
    prompt (score > 0.5) of the same component type.

    Types without an accepted prompt contribute nothing.
    """
    by_type: dict[str, list[TrainingExample]] = {}
    for e in examples:
        by_type.setdefault(e.params.get("component_type", "unknown"), []).append(e)

    rows = []
    for group in by_type.values():
        good = sorted((e for e in group if e.score > 0.5), key=lambda e: e.score, reverse=True)
        if not good:
            continue
        bad = sorted((e for e in group if e.score < -0.3), key=lambda e: e.score)
        best = good[0]
        for b in bad:
            rows.append(
                {
                    "instruction": PROMPT_ENHANCER_INSTRUCTION,
                    "input": b.prompt,
                    "output": best.prompt,
                }
            )
    return rows


def build_style_recommender_data(examples: Sequence[TrainingExample]) -> list[dict[str, str]]:
    return [
        {
            "instruction": STYLE_RECOMMENDER_INSTRUCTION,
            "input": e.prompt,
            "output": e.params["style"],
        }
        for e in examples
        if e.score > 0.3 and e.params.get("style") and e.params["style"] != "default"
    ]


_BUILDERS = {
    AdapterType.QUALITY_SCORER: build_quality_scorer_data,
    AdapterType.PROMPT_ENHANCER: build_prompt_enhancer_data,
    AdapterType.STYLE_RECOMMENDER: build_style_recommender_data,
}


def build_adapter_data(adapter: AdapterType | str, examples: Sequence[TrainingExample]) -> list[dict[str, str]]:
    return _BUILDERS[parse_adapter(adapter)](examples)


# =============================================================================
# File output
# =============================================================================


def write_jsonl(rows: Iterable[dict], file_path: str | Path) -> int:
    """
    Write rows as JSON Lines, creating parent directories.

    Writes nothing (and creates no file) when there are no rows.
    """
    rows = list(rows)
    if not rows:
        return 0

    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")

    logger.info(f"Training data written: {path} ({len(rows)} rows)")
    return len(rows)


def export_for_adapter(
    adapter: AdapterType | str,
    repository: FeedbackRepository,
    output_dir: str | Path,
    min_abs_score: float = DEFAULT_MIN_ABS_SCORE,
    limit: int = DEFAULT_EXPORT_LIMIT,
) -> ExportResult:
    """Export one adapter's dataset to `<output_dir>/<adapter>.jsonl`."""
    adapter = parse_adapter(adapter)
    raw = export_raw_examples(repository, min_abs_score=min_abs_score, limit=limit)
    rows = build_adapter_data(adapter, raw)

    path = Path(output_dir) / f"{adapter.value}.jsonl"
    count = write_jsonl(rows, path)
    if not count:
        logger.info(f"No {adapter.value} training rows from {len(raw)} feedback examples")
    return ExportResult(path=path, count=count)


def has_enough_data(
    adapter: AdapterType | str,
    repository: FeedbackRepository,
    min_abs_score: float = DEFAULT_MIN_ABS_SCORE,
) -> TrainingReadiness:
    """Compare the number of usable feedback rows with the adapter's minimum."""
    adapter = parse_adapter(adapter)
    count = repository.count_min_abs(min_abs_score)
    required = ADAPTER_MIN_EXAMPLES[adapter]
    return TrainingReadiness(adapter=adapter, ready=count >= required, count=count, required=required)
