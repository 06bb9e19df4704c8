"""
Prompt enhancer - improves user prompts before generation.

Uses the inference provider when it is ready, otherwise applies rule-based
enhancement:

1. Add missing context (framework, accessibility, responsiveness)
2. Expand vague terms into specific design language
3. Inject best-practice hints for the component type
4. Add style and mood context
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Literal

from loguru import logger

from uiforge.ml.inference import HeuristicInferenceProvider, InferenceProvider, check_ready, infer_with_fallback

A11Y_KEYWORDS = ("accessible", "a11y", "aria", "screen reader", "wcag", "keyboard")
RESPONSIVE_KEYWORDS = ("responsive", "mobile", "breakpoint", "adaptive")
VAGUE_TERMS = ("nice", "good", "cool", "simple", "basic", "clean", "modern")

VAGUE_EXPANSIONS = {
    "nice": "polished and visually refined",
    "good-looking": "aesthetically pleasing with balanced spacing and typography",
    "cool": "modern with subtle animations and visual depth",
    "simple": "clean and minimal with clear visual hierarchy",
    "basic": "straightforward with essential elements and clear layout",
    "fancy": "sophisticated with layered effects and refined details",
    "pretty": "visually appealing with harmonious colors and spacing",
    "beautiful": "elegantly designed with attention to typography and whitespace",
}

COMPONENT_HINTS = {
    "card": ". Use consistent padding, clear content hierarchy with heading, body, and action areas",
    "button": ". Include hover, focus, and active states with appropriate contrast ratios",
    "form": ". Add proper label associations, validation feedback, and logical tab order",
    "modal": ". Trap focus within the dialog, handle Escape key, and restore focus on close",
    "nav": ". Include skip navigation link, clear active state indicators, and mobile menu toggle",
    "table": ". Add proper scope attributes, sortable column headers if applicable, and responsive overflow handling",
    "hero": ". Use an attention-grabbing layout with clear CTA, balanced whitespace, and optimized image loading",
    "footer": ". Include logical link grouping, social links, and sufficient color contrast",
    "sidebar": ". Support collapsible state, keyboard navigation, and proper landmark role",
    "header": ". Include logo placement, navigation, and responsive breakpoint behavior",
}


@dataclass
class EnhancementContext:
    component_type: str | None = None
    framework: str | None = None
    style: str | None = None
    mood: str | None = None
    industry: str | None = None


@dataclass
class EnhancedPrompt:
    enhanced: str
    original: str
    source: Literal["model", "rules"]
    additions: list[str] = field(default_factory=list)
    latency_ms: float = 0.0


def needs_enhancement(prompt: str) -> bool:
    """Short, vague, or accessibility/responsive-agnostic prompts benefit from enhancement."""
    lower = prompt.lower()
    if len(prompt) < 30:
        return True
    if any(t in lower for t in VAGUE_TERMS):
        return True
    if not any(k in lower for k in ("accessible", "a11y", "aria", "wcag")):
        return True
    return "responsive" not in lower and "mobile" not in lower


def _expand_vague_terms(prompt: str, additions: list[str]) -> str:
    result = prompt
    for vague, specific in VAGUE_EXPANSIONS.items():
        pattern = re.compile(rf"\b{re.escape(vague)}\b", re.IGNORECASE)
        if pattern.search(result):
            result = pattern.sub(specific, result)
            additions.append(f"expanded:{vague}")
    return result


def _add_component_hints(prompt: str, component_type: str, additions: list[str]) -> str:
    hint = COMPONENT_HINTS.get(component_type.lower())
    if hint and hint[2:20] not in prompt:
        additions.append(f"component-hint:{component_type}")
        return prompt + hint
    return prompt


def enhance_with_rules(
    prompt: str,
    context: EnhancementContext | None = None,
    started: float | None = None,
) -> EnhancedPrompt:
    context = context or EnhancementContext()
    additions: list[str] = []
    enhanced = prompt.strip()
    lower = enhanced.lower()

    if context.framework and context.framework.lower() not in lower:
        enhanced += f" using {context.framework}"
        additions.append("framework")

    if not any(k in lower for k in A11Y_KEYWORDS):
        enhanced += ". Include ARIA labels and keyboard navigation support"
        additions.append("accessibility")

    if not any(k in lower for k in RESPONSIVE_KEYWORDS):
        enhanced += ". Make it responsive across mobile, tablet, and desktop"
        additions.append("responsive")

    enhanced = _expand_vague_terms(enhanced, additions)

    if context.component_type:
        enhanced = _add_component_hints(enhanced, context.component_type, additions)

    if context.style and context.style.lower() not in lower:
        enhanced += f" with {context.style} visual style"
        additions.append("style")

    if context.mood and context.mood.lower() not in lower:
        enhanced += f" conveying a {context.mood} mood"
        additions.append("mood")

    latency = (time.perf_counter() - started) * 1000 if started is not None else 0.0
    return EnhancedPrompt(enhanced=enhanced, original=prompt, source="rules", additions=additions, latency_ms=latency)


class PromptEnhancer:
    def __init__(self, provider: InferenceProvider | None = None, timeout_seconds: float = 10.0):
        self.provider = provider or HeuristicInferenceProvider()
        self.timeout_seconds = timeout_seconds

    async def enhance(self, prompt: str, context: EnhancementContext | None = None) -> EnhancedPrompt:
        """
        Enhance a prompt, preferring the model.

        A model answer is used only when it is longer than half the original
        prompt; anything shorter, and any model failure, falls back to rules.
        """
        started = time.perf_counter()

        if await check_ready(self.provider, self.timeout_seconds):
            context = context or EnhancementContext()
            lines = [
                "Improve the following UI generation prompt to produce better, more specific results.",
                "Keep the original intent but add specificity about layout, styling, and accessibility.",
                "Respond with ONLY the improved prompt, nothing else.",
                "",
                f"Original: {prompt}",
                f"Component type: {context.component_type}" if context.component_type else "",
                f"Framework: {context.framework}" if context.framework else "",
                f"Style: {context.style}" if context.style else "",
                "",
                "Improved:",
            ]
            result = await infer_with_fallback(
                self.provider,
                "\n".join(line for line in lines if line),
                timeout_seconds=self.timeout_seconds,
                max_tokens=256,
                temperature=0.5,
            )
            text = result.text.strip()
            if result.source == "model" and len(text) > len(prompt) * 0.5:
                return EnhancedPrompt(
                    enhanced=text,
                    original=prompt,
                    source="model",
                    additions=["model-enhanced"],
                    latency_ms=(time.perf_counter() - started) * 1000,
                )
            logger.debug("Model enhancement unusable, falling back to rules")

        return enhance_with_rules(prompt, context, started)
