from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple


GREETING_REPLY = "こんにちは！どのようにお手伝いできますか？"
FALLBACK_TEMPLATE = "「{message}」について承りました。詳細を教えていただけますか？"


@dataclass(frozen=True)
class Rule:
    keywords: Tuple[str, ...]
    response: str

    def matches(self, message: str) -> bool:
        lowered = message.lower()
        return any(keyword in lowered for keyword in self.keywords)


RULES: Tuple[Rule, ...] = (
    Rule(keywords=("こんにちは", "hello"), response=GREETING_REPLY),
    Rule(keywords=("名前",), response="私はDevbotです。何かお手伝いできることはありますか？"),
    Rule(
        keywords=("天気",),
        response="申し訳ありませんが、現在の天気情報へのアクセス権がありません。",
    ),
    Rule(keywords=("ありがとう",), response="どういたしまして！他に質問があればいつでもどうぞ。"),
)


def match_reply(message: str, rules: Sequence[Rule] = RULES) -> str:
    """Return the response of the first rule matching ``message``.

    Matching is a case-insensitive substring test. When nothing matches the
    original message is quoted back with a request for more detail.
    """
    for rule in rules:
        if rule.matches(message):
            return rule.response
    return FALLBACK_TEMPLATE.format(message=message)
