"""
Transliteration drift rules.

When two segments are translated independently, the same name often comes
back in slightly different spellings: a different character for the same
syllable in Chinese, a dropped long-vowel mark in Japanese, ``-ck`` versus
``-k`` in a Latin-script language. The tables below describe those drifts
per target language so that a canonical rendering can be expanded into the
set of spellings that should be rewritten to it.

Each language has:
    suffix_rules: pairs swapped at the end of the rendering (both directions)
    prefix_rules: pairs swapped at the start of the rendering (both directions)
    char_groups: interchangeable characters, substituted one position at a time

The tables are a heuristic and deliberately small. A spelling they miss can
still be caught by registering it as an observed variant.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Set, Tuple

MIN_VARIANT_LENGTH = 2


@dataclass(frozen=True)
class VariantRules:
    suffix_rules: Tuple[Tuple[str, str], ...] = ()
    prefix_rules: Tuple[Tuple[str, str], ...] = ()
    char_groups: Tuple[str, ...] = ()
    _char_index: Dict[str, str] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        index = {}
        for group in self.char_groups:
            for char in group:
                index[char] = group
        object.__setattr__(self, '_char_index', index)

    def alternatives(self, char: str) -> str:
        """Characters interchangeable with ``char`` (excluding itself)"""
        return self._char_index.get(char, '').replace(char, '')


_CHINESE = VariantRules(
    # Consonant-cluster endings and Mc/Mac, Van/Von openings
    suffix_rules=(
        ('斯', '丝'), ('斯', '兹'), ('斯', ''),
        ('尔', '勒'), ('尔', '儿'),
        ('德', '特'), ('克', '格'),
        ('顿', '登'), ('森', '逊'),
    ),
    prefix_rules=(
        ('麦', '马'), ('范', '凡'), ('冯', '封'),
    ),
    char_groups=(
        '斯丝思司', '尔儿耳', '特德', '克可科', '姆母', '珀波泊帕普',
        '森逊生', '顿登敦', '里利莉丽', '娜纳', '伊依', '维威韦',
        '布卜', '夫弗', '妮尼', '琳林', '瑟塞', '汉翰', '蒂帝迪',
        '温文', '杰吉', '琼穹', '赫贺', '罗洛', '菲费',
    ),
)

_JAPANESE = VariantRules(
    suffix_rules=(
        ('ー', ''), ('ス', 'ズ'), ('ド', 'ト'), ('ッド', 'ド'), ('ック', 'ク'),
    ),
    prefix_rules=(
        ('ヴァ', 'バ'), ('ヴィ', 'ビ'), ('ヴェ', 'ベ'), ('ヴォ', 'ボ'), ('ウィ', 'ウイ'),
    ),
    char_groups=(
        'ヴブ', 'ティチ', 'ディジ',
    ),
)

_KOREAN = VariantRules(
    suffix_rules=(
        ('스', '즈'), ('드', '트'), ('크', '그'),
    ),
    char_groups=(
        '퍼파', '터타', '커카',
    ),
)

_LATIN = VariantRules(
    suffix_rules=(
        ('ck', 'k'), ('ph', 'f'), ('er', 're'), ('ey', 'y'), ('ie', 'y'),
        ('son', 'sen'), ('ff', 'f'), ('ll', 'l'), ('tt', 't'), ('ss', 's'),
        ('sch', 'sh'), ('th', 't'), ('e', ''),
    ),
    prefix_rules=(
        ('Mc', 'Mac'), ('Ph', 'F'), ('Wh', 'W'),
    ),
)

_RUSSIAN = VariantRules(
    suffix_rules=(
        ('ер', 'эр'), ('сс', 'с'), ('лл', 'л'), ('тт', 'т'), ('ий', 'и'), ('ей', 'и'),
    ),
    prefix_rules=(
        ('Уи', 'Ви'), ('Уа', 'Ва'), ('Мак', 'Мк'),
    ),
    char_groups=(
        'еэ', 'иы',
    ),
)

VARIANT_RULES: Dict[str, VariantRules] = {
    'zh': _CHINESE,
    'ja': _JAPANESE,
    'ko': _KOREAN,
    'en': _LATIN,
    'fr': _LATIN,
    'es': _LATIN,
    'de': _LATIN,
    'ru': _RUSSIAN,
}


def _swap_suffix(text: str, pairs: Iterable[Tuple[str, str]]) -> Set[str]:
    found = set()
    for a, b in pairs:
        for old, new in ((a, b), (b, a)):
            if old and text.endswith(old):
                found.add(text[:-len(old)] + new)
            elif not old:
                found.add(text + new)
    return found


def _swap_prefix(text: str, pairs: Iterable[Tuple[str, str]]) -> Set[str]:
    found = set()
    for a, b in pairs:
        for old, new in ((a, b), (b, a)):
            if old and text.startswith(old):
                found.add(new + text[len(old):])
    return found


def generate_variants(canonical: str, language: str) -> FrozenSet[str]:
    """
    Expand a canonical rendering into the spellings that drift towards it.

    Args:
        canonical: Canonical target-language rendering of a term
        language: Target language code

    Returns:
        Variant spellings, excluding the canonical form itself and any
        spelling shorter than MIN_VARIANT_LENGTH
    """
    rules = VARIANT_RULES.get(language)
    if rules is None or not canonical:
        return frozenset()

    variants: Set[str] = set()
    variants |= _swap_suffix(canonical, rules.suffix_rules)
    variants |= _swap_prefix(canonical, rules.prefix_rules)

    for position, char in enumerate(canonical):
        for alternative in rules.alternatives(char):
            variants.add(canonical[:position] + alternative + canonical[position + 1:])

    variants.discard(canonical)
    return frozenset(v for v in variants if len(v.strip()) >= MIN_VARIANT_LENGTH)
