"""
Unit tests for the quality scorer.
"""

import asyncio

import pytest

from uiforge.ml.inference import InferenceProvider, InferenceResult
from uiforge.ml.quality_scorer import QualityScorer, heuristic_factors, parse_model_score

CARD_CODE = (
    "export default function PricingCard() {\n"
    "  return (\n"
    '    <section className="flex flex-col p-4 md:p-6 rounded-lg bg-white dark:bg-gray-900">\n'
    "      <h2>Pro card</h2>\n"
    '      <button aria-label="Choose Pro">Choose</button>\n'
    "    </section>\n"
    "  );\n"
    "}\n"
)


class FakeProvider(InferenceProvider):
    """Provider returning a fixed answer."""

    name = "fake"

    def __init__(self, text="", ready=True):
        self.text = text
        self.ready = ready
        self.prompts = []

    async def is_ready(self):
        return self.ready

    async def infer(self, prompt, max_tokens=256, temperature=0.3):
        self.prompts.append(prompt)
        return InferenceResult(text=self.text, source="model")


class ReadinessFailingProvider(FakeProvider):
    """Provider whose readiness check raises or never returns."""

    def __init__(self, text="", hang=False):
        super().__init__(text)
        self.hang = hang

    async def is_ready(self):
        if self.hang:
            await asyncio.sleep(5)
            return True
        raise RuntimeError("tags endpoint exploded")


class TestHeuristicFactors:
    """Tests for the rule-based factors."""

    def test_all_factors_in_range(self):
        factors = heuristic_factors(CARD_CODE, "card")

        assert all(0.0 <= v <= 1.0 for v in factors.values())
        assert set(factors) == {
            "length",
            "accessibility",
            "semantic_html",
            "tailwind",
            "structure",
            "responsive",
            "dark_mode",
            "prompt_alignment",
        }

    def test_signals_detected(self):
        factors = heuristic_factors(CARD_CODE, "card")

        assert factors["length"] == 1.0
        assert factors["dark_mode"] == 1.0
        assert factors["prompt_alignment"] == 1.0
        assert factors["accessibility"] > 0
        assert factors["responsive"] > 0

    def test_tailwind_only_for_class_markup(self):
        assert "tailwind" not in heuristic_factors("<div><p>plain</p></div>")

    def test_prompt_alignment(self):
        assert heuristic_factors("<div/>", "navbar")["prompt_alignment"] == 0.3
        assert heuristic_factors("<div/>")["prompt_alignment"] == 0.5


class TestParseModelScore:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("7", 7.0),
            ("  8.5 - looks solid", 8.5),
            ("10", 10.0),
            ("0", 0.0),
            ("11", None),
            ("-1", None),
            ("great", None),
            ("", None),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_model_score(text) == expected


class TestQualityScorer:
    """Tests for model and heuristic scoring paths."""

    @pytest.mark.asyncio
    async def test_heuristic_without_model(self):
        result = await QualityScorer().score("pricing card", CARD_CODE, component_type="card")

        assert result.source == "heuristic"
        assert result.confidence == 0.5
        assert 0.0 <= result.score <= 10.0
        assert result.factors

    def test_heuristic_score_is_mean_times_ten(self):
        result = QualityScorer().score_with_heuristics("")

        # Only prompt_alignment (0.5) is non-zero out of seven factors
        assert result.score == pytest.approx(round(0.5 / 7 * 10, 1))

    @pytest.mark.asyncio
    async def test_model_score(self):
        provider = FakeProvider("7.5 because the layout is clear")

        result = await QualityScorer(provider).score("pricing card", CARD_CODE, component_type="card")

        assert result.source == "model"
        assert result.score == 7.5
        assert result.confidence == 0.8
        assert "Prompt: pricing card" in provider.prompts[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answer", ["looks great", "15", ""])
    async def test_unusable_model_answer_falls_back(self, answer):
        result = await QualityScorer(FakeProvider(answer)).score("pricing card", CARD_CODE)

        assert result.source == "heuristic"

    @pytest.mark.asyncio
    async def test_not_ready_skips_model(self):
        provider = FakeProvider("9", ready=False)

        result = await QualityScorer(provider).score("pricing card", CARD_CODE)

        assert result.source == "heuristic"
        assert provider.prompts == []

    @pytest.mark.asyncio
    async def test_is_likely_accepted(self):
        assert await QualityScorer(FakeProvider("6")).is_likely_accepted("p", CARD_CODE) is True
        assert await QualityScorer(FakeProvider("5.9")).is_likely_accepted("p", CARD_CODE) is False

    @pytest.mark.asyncio
    async def test_crashing_readiness_falls_back(self):
        provider = ReadinessFailingProvider("9")

        result = await QualityScorer(provider).score("pricing card", CARD_CODE)

        assert result.source == "heuristic"
        assert provider.prompts == []

    @pytest.mark.asyncio
    async def test_hanging_readiness_falls_back(self):
        scorer = QualityScorer(ReadinessFailingProvider("9", hang=True), timeout_seconds=0.05)

        result = await asyncio.wait_for(scorer.score("pricing card", CARD_CODE), timeout=2)

        assert result.source == "heuristic"
