"""分类器使用的固定词表与展示标签。"""

from typing import Dict, Literal, Tuple


CategoryTag = Literal[
    "purpose",
    "alignment",
    "service",
    "abundance",
    "wisdom",
    "community",
    "innovation",
    "mastery",
]

SentimentTag = Literal[
    "ALIGNED",
    "ALIGNED_TRANSFORMING",
    "SEEKING",
    "SEEKING_TRANSFORMING",
    "TRANSFORMING",
    "NEUTRAL",
]

DEFAULT_CATEGORY: CategoryTag = "purpose"

# 顺序即平票时的遍历顺序
CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "purpose": ("mission", "purpose", "calling", "vision", "transformation", "impact", "legacy", "divine", "soul"),
    "alignment": ("energy", "flow", "alignment", "harmony", "balance", "integration", "authentic", "truth"),
    "service": ("contribution", "service", "healing", "teaching", "empowerment", "guidance", "transformation"),
    "abundance": ("prosperity", "abundance", "wealth", "growth", "expansion", "manifestation", "receiving"),
    "wisdom": ("insight", "clarity", "guidance", "intuition", "knowing", "understanding", "wisdom"),
    "community": ("connection", "relationship", "tribe", "community", "collaboration", "partnership"),
    "innovation": ("creativity", "innovation", "inspiration", "possibility", "potential", "breakthrough"),
    "mastery": ("excellence", "mastery", "leadership", "embodiment", "expertise", "authority"),
}

SENTIMENT_INDICATORS: Dict[str, Tuple[str, ...]] = {
    "aligned": (
        "flow", "aligned", "inspired", "clear", "guided", "supported",
        "connected", "empowered", "authentic", "purposeful", "divine",
    ),
    "seeking": (
        "seeking", "confused", "uncertain", "stuck", "blocked", "resistant",
        "fearful", "doubtful", "disconnected", "misaligned",
    ),
    "transforming": (
        "shifting", "evolving", "growing", "expanding", "healing",
        "releasing", "transforming", "awakening", "emerging",
    ),
}

QUESTION_MARKERS: Tuple[str, ...] = ("what", "how", "could", "can", "tell me")

CATEGORY_LABELS: Dict[str, str] = {
    "purpose": "Soul Purpose",
    "alignment": "Energy Alignment",
    "service": "Divine Service",
    "abundance": "Sacred Abundance",
    "wisdom": "Inner Wisdom",
    "community": "Soul Tribe",
    "innovation": "Creative Flow",
    "mastery": "Spiritual Mastery",
}

SENTIMENT_LABELS: Dict[str, str] = {
    "ALIGNED": "Soul Aligned",
    "ALIGNED_TRANSFORMING": "Divine Flow",
    "SEEKING": "Seeking Clarity",
    "SEEKING_TRANSFORMING": "Sacred Shift",
    "TRANSFORMING": "Transforming",
    "NEUTRAL": "Journey Begins",
}
