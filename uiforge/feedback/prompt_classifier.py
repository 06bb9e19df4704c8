"""
Rule-based prompt classifier for implicit feedback.

Compares two consecutive generations in a session (plus the free text of the
newer request) and infers how the user felt about the older one, without any
model or API call.

Signals, evaluated in a fixed order:
1. Task switch (component type or tool changed)
2. Keywords in the new request (praise / redo / tweak)
3. Time between the two requests
4. Same-parameter iteration (only when no task switch)

The signals are combined as a confidence-weighted mean, so one high-confidence
signal outweighs several weak ones.
"""

from __future__ import annotations

from collections.abc import Sequence

from uiforge.domain import Generation, ImplicitSignal, PromptClassification, SignalKind

# =============================================================================
# Keyword dictionaries
# =============================================================================

POSITIVE_KEYWORDS = (
    "perfect", "great", "looks good", "thanks", "love it",
    "awesome", "nice", "exactly", "good job", "well done",
    "that's it", "keep", "ship it", "deploy", "done",
)

NEGATIVE_KEYWORDS = (
    "redo", "wrong", "fix", "change", "not what i", "try again",
    "different", "instead", "actually", "no,", "nope", "bad",
    "ugly", "broken", "doesn't work", "not right", "scrap",
)

TWEAK_KEYWORDS = (
    "darker", "lighter", "bigger", "smaller", "more", "less",
    "adjust", "tweak", "slightly", "a bit", "little",
    "spacing", "padding", "margin", "color", "font",
)

# =============================================================================
# Thresholds
# =============================================================================

RAPID_FOLLOWUP_SECONDS = 30
LONG_GAP_SECONDS = 300


def _first_match(text: str, keywords: Sequence[str]) -> str | None:
    for kw in keywords:
        if kw in text:
            return kw
    return None


def detect_new_task(prev: Generation, curr: Generation) -> ImplicitSignal | None:
    """The user moved to a different component type or tool."""
    if prev.tool != curr.tool:
        reason = f"Switched tools: {prev.tool} -> {curr.tool}"
    elif prev.component_type != curr.component_type:
        reason = f"Changed component type: {prev.component_type} -> {curr.component_type}"
    else:
        return None
    return ImplicitSignal(SignalKind.NEW_TASK, 1.0, 0.8, reason)


def detect_keyword_signals(prompt_context: str) -> list[ImplicitSignal]:
    """Scan the request text for praise, redo, and tweak cues."""
    signals: list[ImplicitSignal] = []
    lower = prompt_context.lower()

    kw = _first_match(lower, POSITIVE_KEYWORDS)
    if kw:
        signals.append(ImplicitSignal(SignalKind.PRAISE, 2.0, 0.9, f'Positive keyword detected: "{kw}"'))

    kw = _first_match(lower, NEGATIVE_KEYWORDS)
    if kw:
        signals.append(ImplicitSignal(SignalKind.MAJOR_REDO, -1.0, 0.7, f'Negative keyword detected: "{kw}"'))

    if not signals:
        kw = _first_match(lower, TWEAK_KEYWORDS)
        if kw:
            signals.append(ImplicitSignal(SignalKind.MINOR_TWEAK, 0.5, 0.6, f'Tweak keyword detected: "{kw}"'))

    return signals


def detect_time_signal(prev: Generation, curr: Generation) -> ImplicitSignal | None:
    gap = (curr.timestamp - prev.timestamp).total_seconds()

    if gap < RAPID_FOLLOWUP_SECONDS:
        return ImplicitSignal(SignalKind.RAPID_FOLLOWUP, -0.3, 0.5, f"Rapid follow-up: {gap:.0f}s gap")
    if gap > LONG_GAP_SECONDS:
        return ImplicitSignal(SignalKind.TIME_GAP, 0.8, 0.6, f"Long gap: {gap / 60:.1f} minutes")
    return None


def is_same_params_iteration(prev: Generation, curr: Generation) -> bool:
    return (
        prev.component_type == curr.component_type
        and prev.framework == curr.framework
        and prev.tool == curr.tool
    )


def combine_signals(signals: list[ImplicitSignal]) -> PromptClassification:
    """Confidence-weighted mean score; combined confidence is the strongest signal's."""
    total_weight = sum(s.confidence for s in signals)
    weighted = sum(s.score * s.confidence for s in signals)
    return PromptClassification(
        signals=list(signals),
        combined_score=weighted / total_weight if total_weight > 0 else 0.0,
        combined_confidence=max((s.confidence for s in signals), default=0.0),
    )


def classify_prompt_pair(
    prev: Generation,
    curr: Generation,
    prompt_context: str = "",
) -> PromptClassification:
    """
    Classify a pair of consecutive generations into implicit feedback for `prev`.

    Args:
        prev: The earlier generation (the one being judged).
        curr: The generation that followed it.
        prompt_context: Optional free text of the newer request.

    Returns:
        PromptClassification with zero or more signals.
    """
    signals: list[ImplicitSignal] = []

    new_task = detect_new_task(prev, curr)
    if new_task:
        signals.append(new_task)

    if prompt_context:
        signals.extend(detect_keyword_signals(prompt_context))

    time_signal = detect_time_signal(prev, curr)
    if time_signal:
        signals.append(time_signal)

    if not new_task and is_same_params_iteration(prev, curr):
        if not any(s.kind == SignalKind.PRAISE for s in signals):
            signals.append(
                ImplicitSignal(
                    SignalKind.MINOR_TWEAK,
                    0.0,
                    0.4,
                    "Same params iteration (neutral, likely refining)",
                )
            )

    return combine_signals(signals)


def classify_prompt_text(prompt_context: str) -> PromptClassification:
    """Keyword-only classification for a single request with no previous generation."""
    return combine_signals(detect_keyword_signals(prompt_context or ""))
