"""回答分类器。

对 LLM 回答做纯关键词匹配（不区分大小写的子串匹配），输出：

- 类别（8 个固定类别之一）。
- 情绪标签（aligned / seeking / transforming 三组词计数的决策表）。
- 是否在向用户提问。

另外提供 format_response 用于规整回答的段落格式。所有函数均为纯函数。
"""

import re
from typing import Dict, Iterable

from advisor_core.domain.conversation import ResponseTags
from advisor_core.analysis.keywords import (
    CATEGORY_KEYWORDS,
    DEFAULT_CATEGORY,
    QUESTION_MARKERS,
    SENTIMENT_INDICATORS,
    CategoryTag,
    SentimentTag,
)

_BULLET_RE = re.compile(r"•\s+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def _count_hits(lower_text: str, keywords: Iterable[str]) -> int:
    """统计词表中出现在文本里的关键词个数。"""

    return sum(1 for keyword in keywords if keyword in lower_text)


def classify_category(text: str) -> CategoryTag:
    """返回命中关键词最多的类别。

    没有任何命中，或最高命中数由多个类别并列时，返回默认类别 "purpose"。
    """

    lower_text = (text or "").lower()
    scores: Dict[str, int] = {
        category: _count_hits(lower_text, keywords) for category, keywords in CATEGORY_KEYWORDS.items()
    }
    best = max(scores.values(), default=0)
    if best == 0:
        return DEFAULT_CATEGORY
    leaders = [category for category, score in scores.items() if score == best]
    if len(leaders) > 1:
        return DEFAULT_CATEGORY
    return leaders[0]  # type: ignore[return-value]


def classify_sentiment(text: str) -> SentimentTag:
    """按 aligned / seeking / transforming 计数决定情绪标签。

    aligned 与 seeking 计数相等且大于 0 时落入 seeking 分支，
    这是沿用下来的行为，调用方不应依赖它“修正”。
    """

    lower_text = (text or "").lower()
    aligned = _count_hits(lower_text, SENTIMENT_INDICATORS["aligned"])
    seeking = _count_hits(lower_text, SENTIMENT_INDICATORS["seeking"])
    transforming = _count_hits(lower_text, SENTIMENT_INDICATORS["transforming"])

    if aligned > seeking:
        return "ALIGNED_TRANSFORMING" if transforming > 0 else "ALIGNED"
    if seeking > 0:
        return "SEEKING_TRANSFORMING" if transforming > 0 else "SEEKING"
    return "TRANSFORMING" if transforming > 0 else "NEUTRAL"


def is_question(text: str) -> bool:
    """回答中含 "?" 且包含任一疑问标记词时视为提问。"""

    if not text or "?" not in text:
        return False
    lower_text = text.lower()
    return any(marker in lower_text for marker in QUESTION_MARKERS)


def format_response(text: str) -> str:
    """规整回答段落：项目符号前空一行，连续 3 个以上换行压缩为 2 个，去首尾空白。

    多次调用结果不变（幂等）。
    """

    normalized = (text or "").replace("\r\n", "\n").replace("\r", "\n")
    normalized = _BULLET_RE.sub("\n\n• ", normalized)
    normalized = _BLANK_LINES_RE.sub("\n\n", normalized)
    return normalized.strip()


def classify_response(text: str) -> ResponseTags:
    return ResponseTags(
        category=classify_category(text),
        sentiment=classify_sentiment(text),
        is_question=is_question(text),
    )
