"""Splunk-style pipe query parsing.

``level:ERROR | stats count by user | filter count > 1`` becomes a base filter
(``level:ERROR``) plus one :class:`StageSpec` per pipe segment. Parsing is
best-effort and never raises; semantic validation happens when the stages are
built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

MATCH_ALL = "*"
COMPARISON_OPERATORS = frozenset({"==", "!=", ">=", "<=", ">", "<", "="})


@dataclass
class StageSpec:
    command: str
    args: List[str] = field(default_factory=list)
    params: Dict[str, str] = field(default_factory=dict)

    def param(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.params.get(key, default)


@dataclass
class ParsedQuery:
    base_filter: str = MATCH_ALL
    stages: List[StageSpec] = field(default_factory=list)

    @property
    def has_stages(self) -> bool:
        return bool(self.stages)


@dataclass(frozen=True)
class _Token:
    text: str
    quoted: bool = False


def _is_quote(chars: List[str], ch: str) -> bool:
    # A quote preceded by a backslash is literal and does not toggle state.
    return ch == '"' and not (chars and chars[-1] == "\\")


def split_pipes(query: str) -> List[str]:
    """Split on ``|`` outside double quotes.

    An unterminated quote keeps every later pipe literal.
    """
    parts: List[str] = []
    current: List[str] = []
    in_quotes = False
    for ch in query:
        if _is_quote(current, ch):
            in_quotes = not in_quotes
            current.append(ch)
        elif ch == "|" and not in_quotes:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _finish_token(chars: List[str], unterminated: bool) -> Optional[_Token]:
    raw = "".join(chars)
    if not raw:
        return None
    quoted = False
    if unterminated:
        # Drop the dangling opening quote; the rest of the segment is one token.
        for idx in range(len(raw) - 1, -1, -1):
            if raw[idx] == '"' and (idx == 0 or raw[idx - 1] != "\\"):
                quoted = idx == 0
                raw = raw[:idx] + raw[idx + 1 :]
                break
    elif len(raw) >= 2 and raw[0] == '"' and raw[-1] == '"' and raw[-2] != "\\":
        raw = raw[1:-1]
        quoted = True
    return _Token(raw.replace('\\"', '"'), quoted)


def _tokenize(segment: str) -> List[_Token]:
    tokens: List[_Token] = []
    current: List[str] = []
    in_quotes = False
    for ch in segment:
        if _is_quote(current, ch):
            in_quotes = not in_quotes
            current.append(ch)
        elif ch.isspace() and not in_quotes:
            token = _finish_token(current, unterminated=False)
            if token is not None:
                tokens.append(token)
            current = []
        else:
            current.append(ch)
    token = _finish_token(current, unterminated=in_quotes)
    if token is not None:
        tokens.append(token)
    return tokens


def parse_stage(segment: str) -> Optional[StageSpec]:
    segment = segment.strip()
    if not segment:
        return None
    tokens = _tokenize(segment)
    if not tokens:
        return None

    spec = StageSpec(command=tokens[0].text.lower())
    for token in tokens[1:]:
        text = token.text
        if not token.quoted and "=" in text and text not in COMPARISON_OPERATORS:
            key, value = text.split("=", 1)
            spec.params[key] = value
        else:
            spec.args.append(text)
    return spec


def parse(raw_query: Optional[str]) -> ParsedQuery:
    if raw_query is None or not raw_query.strip():
        return ParsedQuery(MATCH_ALL, [])

    parts = split_pipes(raw_query)
    base_filter = parts[0].strip() or MATCH_ALL
    stages: List[StageSpec] = []
    for part in parts[1:]:
        spec = parse_stage(part)
        if spec is not None:
            stages.append(spec)
    return ParsedQuery(base_filter, stages)
