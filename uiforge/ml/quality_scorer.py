"""
Quality scorer - predicts whether generated code will be accepted.

Uses the inference provider when it is ready, otherwise (or when the model
answer cannot be parsed) scores the code with structural heuristics.

Score range: 0-10 (0 = likely rejected, 10 = likely accepted).
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Literal

from loguru import logger

from uiforge.ml.inference import HeuristicInferenceProvider, InferenceProvider, check_ready, infer_with_fallback

ACCEPTANCE_THRESHOLD = 6.0
MODEL_CONFIDENCE = 0.8
HEURISTIC_CONFIDENCE = 0.5

A11Y_MARKERS = [
    re.compile(r"aria-", re.I),
    re.compile(r"role=", re.I),
    re.compile(r"alt=", re.I),
    re.compile(r"tabIndex", re.I),
    re.compile(r"sr-only", re.I),
    re.compile(r"<label", re.I),
    re.compile(r"htmlFor", re.I),
]
SEMANTIC_TAGS = ["<header", "<main", "<nav", "<section", "<article", "<footer", "<aside"]
TAILWIND_PATTERNS = [
    re.compile(p) for p in (r"\bflex\b", r"\bgrid\b", r"\bp-\d", r"\bm-\d", r"\btext-", r"\bbg-", r"\brounded")
]
STRUCTURE_MARKERS = [
    re.compile(r"export\s+(default\s+)?function"),
    re.compile(r"interface\s+\w+Props"),
    re.compile(r"return\s*\("),
    re.compile(r"import\s+"),
]
RESPONSIVE_MARKERS = [re.compile(p) for p in (r"\bsm:", r"\bmd:", r"\blg:", r"\bxl:", r"@media")]

_LEADING_NUMBER = re.compile(r"^\s*(-?\d+(?:\.\d+)?)")


@dataclass
class QualityScore:
    score: float
    confidence: float
    source: Literal["model", "heuristic"]
    factors: dict[str, float] = field(default_factory=dict)
    latency_ms: float = 0.0


def _fraction(patterns: list[re.Pattern], code: str) -> float:
    return sum(1 for p in patterns if p.search(code)) / len(patterns)


def _length_factor(length: int) -> float:
    if length < 50:
        return 0.0
    if length < 200:
        return 0.5
    if length < 5000:
        return 1.0
    return 0.7


def heuristic_factors(code: str, component_type: str | None = None) -> dict[str, float]:
    """Per-factor scores in [0, 1]. The tailwind factor is present only for class-based markup."""
    factors: dict[str, float] = {
        "length": _length_factor(len(code)),
        "accessibility": _fraction(A11Y_MARKERS, code),
        "semantic_html": min(1.0, sum(1 for t in SEMANTIC_TAGS if t in code) / 3),
    }

    if "className" in code or "class=" in code:
        factors["tailwind"] = _fraction(TAILWIND_PATTERNS, code)

    factors["structure"] = _fraction(STRUCTURE_MARKERS, code)
    factors["responsive"] = _fraction(RESPONSIVE_MARKERS, code)
    factors["dark_mode"] = 1.0 if "dark:" in code else 0.0

    if component_type:
        factors["prompt_alignment"] = 1.0 if component_type.lower() in code.lower() else 0.3
    else:
        factors["prompt_alignment"] = 0.5

    return factors


def parse_model_score(text: str) -> float | None:
    """Leading number of a model answer, if it lies in [0, 10]."""
    match = _LEADING_NUMBER.match(text or "")
    if not match:
        return None
    value = float(match.group(1))
    if 0 <= value <= 10:
        return value
    return None


class QualityScorer:
    """
    Example:
        >>> scorer = QualityScorer()
        >>> result = await scorer.score("pricing card", "<div className='p-4'>...</div>", component_type="card")
        >>> result.source
        'heuristic'
    """

    def __init__(self, provider: InferenceProvider | None = None, timeout_seconds: float = 10.0):
        self.provider = provider or HeuristicInferenceProvider()
        self.timeout_seconds = timeout_seconds

    async def score(
        self,
        prompt: str,
        code: str,
        component_type: str | None = None,
        framework: str | None = None,
        style: str | None = None,
    ) -> QualityScore:
        started = time.perf_counter()

        if await check_ready(self.provider, self.timeout_seconds):
            result = await self._score_with_model(prompt, code, component_type, framework, style, started)
            if result is not None:
                return result
            logger.debug("Model output unparseable, falling back to heuristics")

        return self.score_with_heuristics(code, component_type, started)

    async def _score_with_model(
        self,
        prompt: str,
        code: str,
        component_type: str | None,
        framework: str | None,
        style: str | None,
        started: float,
    ) -> QualityScore | None:
        infer_prompt = "\n".join(
            [
                "Rate the likelihood that the following UI generation request will be accepted by the user.",
                "Respond with ONLY a number from 0 to 10.",
                "",
                f"Prompt: {prompt}",
                f"Component: {component_type or 'unknown'}",
                f"Framework: {framework or 'unknown'}",
                f"Style: {style or 'default'}",
                f"Code length: {len(code)} chars",
                "",
                "Score:",
            ]
        )
        result = await infer_with_fallback(
            self.provider, infer_prompt, timeout_seconds=self.timeout_seconds, max_tokens=8, temperature=0.1
        )
        if not result.ok:
            return None

        value = parse_model_score(result.text)
        if value is None:
            return None
        return QualityScore(
            score=round(value, 1),
            confidence=MODEL_CONFIDENCE,
            source="model",
            latency_ms=(time.perf_counter() - started) * 1000,
        )

    def score_with_heuristics(
        self,
        code: str,
        component_type: str | None = None,
        started: float | None = None,
    ) -> QualityScore:
        factors = heuristic_factors(code, component_type)
        normalized = sum(factors.values()) / len(factors) * 10
        latency = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        return QualityScore(
            score=round(normalized, 1),
            confidence=HEURISTIC_CONFIDENCE,
            source="heuristic",
            factors=factors,
            latency_ms=latency,
        )

    async def is_likely_accepted(
        self,
        prompt: str,
        code: str,
        component_type: str | None = None,
        framework: str | None = None,
        style: str | None = None,
    ) -> bool:
        result = await self.score(prompt, code, component_type, framework, style)
        return result.score >= ACCEPTANCE_THRESHOLD
