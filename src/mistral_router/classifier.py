"""Prompt intent heuristics.

`classify` is a pure function of the prompt text: the same prompt always
yields the same `Intent`. It looks for three kinds of signal:

- a programming language or framework named in the text;
- code keywords such as "function", "class", "algorithm" or "implement";
- code syntax: braces, arrows, fenced blocks, statement-terminating
  semicolons, `def`/`function` headers or indented blocks.

Any one signal classifies the prompt as CODE. Ambiguous prompts can be
misclassified; callers pin a provider explicitly when that matters.
"""

from __future__ import annotations

import re

from .contracts import Intent, Provider

_LANGUAGES = (
    "python",
    "javascript",
    "typescript",
    "java",
    "kotlin",
    "swift",
    "rust",
    "golang",
    "ruby",
    "php",
    "perl",
    "scala",
    "haskell",
    "elixir",
    "c\\+\\+",
    "c#",
    "cpp",
    "sql",
    "bash",
    "powershell",
    "html",
    "css",
    "react",
    "vue",
    "angular",
    "node\\.js",
    "nodejs",
    "django",
    "flask",
    "fastapi",
)

_KEYWORDS = (
    "function",
    "functions",
    "class",
    "classes",
    "method",
    "algorithm",
    "algorithms",
    "implement",
    "implementation",
    "code",
    "coding",
    "script",
    "snippet",
    "debug",
    "refactor",
    "compile",
    "compiler",
    "regex",
    "api",
    "endpoint",
    "component",
    "variable",
    "loop",
    "recursive function",
    "unit test",
    "stack trace",
    "syntax",
)

_LANGUAGE_RE = re.compile(r"(?<![\w#+])(?:" + "|".join(_LANGUAGES) + r")(?![\w#+])", re.IGNORECASE)
_KEYWORD_RE = re.compile(r"\b(?:" + "|".join(re.escape(k) for k in _KEYWORDS) + r")\b", re.IGNORECASE)

_SYNTAX_PATTERNS = (
    re.compile(r"```"),
    re.compile(r"[{}]"),
    re.compile(r"=>|->|::|==|!=|\+\+|&&|\|\|"),
    re.compile(r";\s*$", re.MULTILINE),
    re.compile(r"^\s*(?:def|class|fn|func|function|import|from|#include|public|private)\b", re.MULTILINE),
    re.compile(r"\w+\([^()\n]*\)\s*[:{]"),
    re.compile(r"\n(?: {4}|\t)\S"),
)

_CODESTRAL_MODEL_RE = re.compile(r"^codestral(?:-|$)")
_MISTRAL_MODEL_RE = re.compile(
    r"^(?:mistral|open-mistral|open-mixtral|mixtral|ministral|magistral|pixtral)(?:-|$)"
)


def has_code_syntax(prompt: str) -> bool:
    return any(p.search(prompt) for p in _SYNTAX_PATTERNS)


def mentions_language(prompt: str) -> bool:
    return _LANGUAGE_RE.search(prompt) is not None


def mentions_code_keyword(prompt: str) -> bool:
    return _KEYWORD_RE.search(prompt) is not None


def classify(prompt: str) -> Intent:
    if mentions_language(prompt) or mentions_code_keyword(prompt) or has_code_syntax(prompt):
        return Intent.CODE
    return Intent.CHAT


def provider_for_intent(intent: Intent) -> Provider:
    return Provider.CODESTRAL if intent is Intent.CODE else Provider.MISTRAL


def provider_for_model(model: str | None) -> Provider | None:
    """Return the provider a model id belongs to, or None when it is not recognized."""
    if not model:
        return None
    normalized = model.strip().lower()
    if _CODESTRAL_MODEL_RE.match(normalized):
        return Provider.CODESTRAL
    if _MISTRAL_MODEL_RE.match(normalized):
        return Provider.MISTRAL
    return None
