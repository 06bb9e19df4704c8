"""
Structural fingerprinting for generated markup.

Reduces JSX/HTML to an element skeleton with class names, text and attribute
values removed, keeping only the hierarchy and inferred semantic roles:

    <div className="flex gap-4"><h2>Title</h2><button>CTA</button></div>
    -> div[layout]>h2[heading]+button[action]

Two artifacts with the same shape produce the same hash regardless of content.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

from uiforge.domain import CodePattern

HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
JSX_COMMENT = re.compile(r"\{/\*.*?\*/\}", re.DOTALL)
TAG = re.compile(
    r"<(/?)([a-zA-Z][a-zA-Z0-9]*)"
    r"((?:[^>\"'{}]|\"[^\"]*\"|'[^']*'|\{(?:[^{}]|\{[^{}]*\})*\})*?)"
    r"(/?)>"
)

VOID_ELEMENTS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
)

EMPTY_SKELETON = "empty"

_FIXED_ROLES = {
    "button": "action",
    "a": "action",
    "input": "input",
    "textarea": "input",
    "select": "input",
    "form": "form",
    "label": "label",
    "p": "body",
    "img": "media",
    "picture": "media",
    "video": "media",
    "audio": "media",
    "svg": "icon",
    "nav": "navigation",
    "header": "header",
    "footer": "footer",
    "main": "main",
    "section": "section",
    "article": "article",
    "aside": "sidebar",
    "ul": "list",
    "ol": "list",
    "li": "item",
    "table": "table",
    "tr": "row",
    "td": "cell",
    "th": "cell",
}

_DIV_ROLES = (
    (("flex", "grid"), "layout"),
    (("card",), "card"),
    (("modal", "dialog"), "modal"),
    (("container", "wrapper"), "container"),
)


@dataclass(frozen=True)
class Fingerprint:
    skeleton: str
    hash: str


def infer_semantic_role(tag_name: str, attributes: str) -> str | None:
    """Infer a semantic role from a tag name and its raw attribute text."""
    if re.fullmatch(r"h[1-6]", tag_name):
        return "heading"

    role = _FIXED_ROLES.get(tag_name)
    if role:
        return role

    lower = attributes.lower()
    if tag_name == "span" and "badge" in lower:
        return "badge"
    if tag_name == "div":
        for needles, div_role in _DIV_ROLES:
            if any(n in lower for n in needles):
                return div_role
    return None


def extract_skeleton(code: str) -> str:
    """
    Extract the element skeleton of a markup string.

    Siblings are joined with '+', children with '>', and each step back up the
    tree with '^'. Returns 'empty' when no elements are found.
    """
    clean = JSX_COMMENT.sub("", HTML_COMMENT.sub("", code or ""))

    stack: list[str] = []
    parts: list[str] = []
    last_depth = 0

    for match in TAG.finditer(clean):
        closing, raw_name, attributes, self_closing = match.groups()
        tag_name = raw_name.lower()

        if closing:
            if tag_name in stack:
                while stack and stack.pop() != tag_name:
                    pass
            continue

        depth = len(stack)
        if parts:
            if depth > last_depth:
                parts.append(">")
            elif depth == last_depth:
                parts.append("+")
            else:
                parts.append("^" * (last_depth - depth))

        role = infer_semantic_role(tag_name, attributes)
        parts.append(f"{tag_name}[{role}]" if role else tag_name)
        last_depth = depth

        if not self_closing and tag_name not in VOID_ELEMENTS:
            stack.append(tag_name)

    return "".join(parts) or EMPTY_SKELETON


def hash_skeleton(skeleton: str) -> str:
    """Short stable digest of a skeleton."""
    return hashlib.sha256(skeleton.encode("utf-8")).hexdigest()[:16]


def hash_content(code: str) -> str:
    """Short digest of the raw artifact text."""
    return hashlib.sha256((code or "").encode("utf-8")).hexdigest()[:16]


def fingerprint(code: str) -> Fingerprint:
    skeleton = extract_skeleton(code)
    return Fingerprint(skeleton=skeleton, hash=hash_skeleton(skeleton))


def is_promotable(pattern: CodePattern, min_frequency: int = 3, min_score: float = 0.5) -> bool:
    """Check whether a pattern meets the promotion criteria."""
    return pattern.frequency >= min_frequency and pattern.avg_score > min_score and not pattern.promoted
