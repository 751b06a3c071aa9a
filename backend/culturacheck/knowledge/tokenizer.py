"""
Query tokenizer for the lexical ranker.

Dictionary-free tokenization for mixed Chinese/English text:
- Latin letter runs (length >= 2) are kept whole, so transliterated terms
  such as "Wasta" or "Inshallah" survive intact.
- CJK ideograph runs (length >= 2) are expanded into every contiguous
  2-4 character window. Without a word segmenter the overlapping windows
  maximise recall for multi-character terms; the noise they add is
  tolerated because ranking and the downstream model filter it out.
- Stop words carry no topical signal and are dropped.

tokenize() is total: any string, including empty, punctuation-only, emoji or
very long input, yields a (possibly empty) set.
"""

import re
from typing import FrozenSet, Set


# CJK Unicode ranges (ideographs only, not punctuation)
CJK_RANGES = [
    (0x4E00, 0x9FFF),    # CJK Unified Ideographs
    (0x3400, 0x4DBF),    # CJK Unified Ideographs Extension A
    (0x20000, 0x2A6DF),  # CJK Unified Ideographs Extension B
    (0x2A700, 0x2B73F),  # CJK Unified Ideographs Extension C
    (0x2B740, 0x2B81F),  # CJK Unified Ideographs Extension D
    (0x2B820, 0x2CEAF),  # CJK Unified Ideographs Extension E
    (0xF900, 0xFAFF),    # CJK Compatibility Ideographs
    (0x2F800, 0x2FA1F),  # CJK Compatibility Ideographs Supplement
]

MIN_TOKEN_LENGTH = 2
MIN_NGRAM = 2
MAX_NGRAM = 4

_CJK_CLASS = "".join(f"{chr(start)}-{chr(end)}" for start, end in CJK_RANGES)
_CJK_RUN = re.compile(f"[{_CJK_CLASS}]{{{MIN_TOKEN_LENGTH},}}")
# ASCII letters plus Latin-1 Supplement / Latin Extended-A/B letters (skips × and ÷)
_LATIN_RUN = re.compile(
    "[A-Za-zÀ-ÖØ-öø-ɏ]{%d,}" % MIN_TOKEN_LENGTH
)
_WHITESPACE = re.compile(r"\s+")

CHINESE_STOP_WORDS: FrozenSet[str] = frozenset({
    "我们", "你们", "他们", "她们", "它们", "我的", "你的", "他的", "她的",
    "这个", "那个", "这些", "那些", "这样", "那样", "这里", "那里", "这种", "那种",
    "什么", "怎么", "怎样", "如何", "为什么", "哪些", "哪里", "是否",
    "一个", "一些", "一下", "一种", "没有", "不是", "就是", "还是", "或者", "以及",
    "因为", "所以", "但是", "而且", "如果", "虽然", "然后", "并且", "可以", "可能",
    "应该", "需要", "已经", "非常", "比较", "自己", "请问", "的话", "时候", "关于",
    "对于", "进行", "通过", "以下", "以上", "其中", "我想", "有没有", "是不是",
})

ENGLISH_STOP_WORDS: FrozenSet[str] = frozenset({
    "an", "and", "are", "as", "at", "be", "but", "by", "can", "do", "for",
    "from", "has", "have", "he", "her", "his", "how", "if", "in", "into", "is",
    "it", "its", "me", "my", "no", "not", "of", "on", "or", "our", "she",
    "so", "that", "the", "their", "them", "there", "these", "they", "this",
    "to", "us", "was", "we", "were", "what", "when", "which", "who", "will",
    "with", "you", "your",
})


def _normalize(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _latin_tokens(text: str) -> Set[str]:
    return {
        match.group(0)
        for match in _LATIN_RUN.finditer(text)
        if match.group(0).lower() not in ENGLISH_STOP_WORDS
    }


def _cjk_ngrams(run: str) -> Set[str]:
    """All contiguous windows of 2-4 characters from a CJK run."""
    grams: Set[str] = set()
    longest = min(MAX_NGRAM, len(run))
    for size in range(MIN_NGRAM, longest + 1):
        for start in range(len(run) - size + 1):
            grams.add(run[start:start + size])
    return grams


def _cjk_tokens(text: str) -> Set[str]:
    tokens: Set[str] = set()
    for match in _CJK_RUN.finditer(text):
        tokens.update(_cjk_ngrams(match.group(0)))
    return tokens - CHINESE_STOP_WORDS


def tokenize(text: str) -> Set[str]:
    """
    Convert free-form text into a set of candidate search terms.

    Args:
        text: Input text (Chinese, English or mixed)

    Returns:
        Set of distinct tokens; empty for empty or signal-free input

    Examples:
        >>> sorted(tokenize("Wasta 商务"))
        ['Wasta', '商务']
        >>> "斋月" in tokenize("斋月工作时间")
        True
    """
    if not text or not isinstance(text, str):
        return set()

    normalized = _normalize(text)
    if not normalized:
        return set()

    return _latin_tokens(normalized) | _cjk_tokens(normalized)
