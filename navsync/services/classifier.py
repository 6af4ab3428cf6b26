from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from pathlib import Path

from navsync.models import ClassificationRule

FALLBACK_RULE = ClassificationRule(
    id="my-favorites", name="My Favorites", icon="⭐", order=99
)

DEFAULT_RULE_DATA = [
    {
        "id": "ai-tools",
        "name": "AI Tools",
        "icon": "🤖",
        "order": 1,
        "keywords": ["gpt", "llm", "chatbot", "machine learning", "人工智能"],
        "domains": [
            "openai.com",
            "chatgpt.com",
            "anthropic.com",
            "claude.ai",
            "gemini.google.com",
            "huggingface.co",
            "perplexity.ai",
            "deepseek.com",
            "midjourney.com",
            "kimi.moonshot.cn",
        ],
    },
    {
        "id": "dev-tools",
        "name": "Developer Tools",
        "icon": "🛠️",
        "order": 2,
        "keywords": ["api", "docs", "documentation", "sdk", "developer", "开发"],
        "domains": [
            "github.com",
            "gitee.com",
            "gitlab.com",
            "stackoverflow.com",
            "npmjs.com",
            "pypi.org",
            "developer.mozilla.org",
            "readthedocs.io",
            "vercel.com",
        ],
    },
    {
        "id": "design",
        "name": "Design",
        "icon": "🎨",
        "order": 3,
        "keywords": ["design", "icons", "font", "palette", "设计"],
        "domains": ["figma.com", "dribbble.com", "behance.net", "iconfont.cn"],
    },
    {
        "id": "learning",
        "name": "Learning",
        "icon": "📚",
        "order": 4,
        "keywords": ["course", "tutorial", "learn", "教程", "学习"],
        "domains": [
            "coursera.org",
            "udemy.com",
            "edx.org",
            "khanacademy.org",
            "leetcode.com",
            "wikipedia.org",
        ],
    },
    {
        "id": "media",
        "name": "Video & Music",
        "icon": "🎬",
        "order": 5,
        "keywords": ["video", "music", "movie", "podcast", "视频", "音乐"],
        "domains": [
            "youtube.com",
            "bilibili.com",
            "netflix.com",
            "spotify.com",
            "music.163.com",
        ],
    },
    {
        "id": "news",
        "name": "News & Reading",
        "icon": "📰",
        "order": 6,
        "keywords": ["news", "blog", "weekly", "新闻", "博客"],
        "domains": [
            "news.ycombinator.com",
            "medium.com",
            "zhihu.com",
            "juejin.cn",
            "sspai.com",
        ],
    },
]


def load_rules(data: Iterable[dict]) -> list[ClassificationRule]:
    return [ClassificationRule.from_dict(item) for item in data]


def load_rules_file(path: str | Path) -> list[ClassificationRule]:
    with open(path, encoding="utf-8") as handle:
        return load_rules(json.load(handle))


DEFAULT_RULES = load_rules(DEFAULT_RULE_DATA)


class Classifier:
    """Ordered, first-match-wins rule matching.

    Domain substrings are checked against the URL first; keywords against the
    name and URL together only when no domain matched.
    """

    def __init__(
        self,
        rules: Sequence[ClassificationRule],
        fallback: ClassificationRule = FALLBACK_RULE,
    ):
        self.rules = tuple(rules)
        self.fallback = fallback

    def classify(self, url: str, name: str) -> ClassificationRule:
        url_l = (url or "").lower()
        text_l = f"{name or ''} {url or ''}".lower()

        for rule in self.rules:
            if any(domain in url_l for domain in rule.domains):
                return rule

        for rule in self.rules:
            if any(keyword in text_l for keyword in rule.keywords):
                return rule

        return self.fallback
