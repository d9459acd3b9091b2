"""
Glossary consistency enforcement.

After a segment is translated, every glossary term found in its source text
must appear in the translation in its canonical form. When it does not, the
translation is searched for known variant spellings of that canonical form
and each occurrence is rewritten.
"""

import logging
import re
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from .variants import generate_variants

logger = logging.getLogger(__name__)

# Scripts written without spaces between words
_NO_SPACE_SCRIPT_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af\uf900-\ufaff]")


def _term_pattern(term: str) -> re.Pattern:
    """Case-insensitive whole-word pattern for a source term"""
    return re.compile(rf'(?<!\w){re.escape(term)}(?!\w)', re.IGNORECASE)


def _spelling_pattern(spelling: str) -> str:
    """Regex source for one rendering; whole words only outside CJK scripts"""
    if _NO_SPACE_SCRIPT_RE.search(spelling):
        return re.escape(spelling)
    return rf'(?<!\w){re.escape(spelling)}(?!\w)'


class ConsistencyEnforcer:
    """
    Rewrites non-canonical renderings of glossary terms.

    The enforcer keeps a compiled index of term -> variant spellings, built
    from the target language's drift rules plus variants registered at
    runtime (for example a rendering the glossary builder proposed for a
    term that already had a different canonical translation).
    """

    def __init__(self, target_language: str, glossary: Optional[Dict[str, str]] = None):
        self.target_language = target_language
        self._canonical: Dict[str, str] = {}
        self._patterns: Dict[str, re.Pattern] = {}
        self._rule_variants: Dict[str, FrozenSet[str]] = {}
        self._registered: Dict[str, Set[str]] = {}
        if glossary:
            self.load(glossary)

    def __len__(self) -> int:
        return len(self._canonical)

    @property
    def entries(self) -> Dict[str, str]:
        return dict(self._canonical)

    def load(self, glossary: Dict[str, str]) -> None:
        """Replace the glossary and recompile the variant index. Registered variants are kept."""
        self._canonical = {}
        self._patterns = {}
        self._rule_variants = {}
        for term, translation in glossary.items():
            self._index(term, translation)

    def _index(self, term: str, translation: str) -> None:
        if not term or not translation:
            return
        self._canonical[term] = translation
        self._patterns[term] = _term_pattern(term)
        self._rule_variants[term] = generate_variants(translation, self.target_language)

    def set_entry(self, term: str, translation: str) -> None:
        """
        Set a term's canonical translation (last write wins).

        A different previous translation becomes a registered variant, so
        segments translated before the change are rewritten by the final sweep.
        """
        previous = self._canonical.get(term)
        self._index(term, translation)
        if previous and previous != translation:
            self.register_variant(term, previous)

    def register_variant(self, term: str, variant: str) -> None:
        """Record an observed non-canonical rendering of ``term``"""
        if variant and variant != self._canonical.get(term):
            self._registered.setdefault(term, set()).add(variant)

    @property
    def registered_variants(self) -> Dict[str, Set[str]]:
        """Copy of the variants registered at runtime, by term"""
        return {term: set(variants) for term, variants in self._registered.items()}

    def variants_for(self, term: str) -> Set[str]:
        """Every known non-canonical spelling of a term's translation"""
        canonical = self._canonical.get(term)
        variants = set(self._rule_variants.get(term, ())) | self._registered.get(term, set())
        variants.discard(canonical)
        return variants

    def find_terms(self, source_text: str) -> List[str]:
        """Glossary terms present in the source, longest first"""
        found = [term for term, pattern in self._patterns.items() if pattern.search(source_text)]
        return sorted(found, key=len, reverse=True)

    def enforce(self, source_text: str, translated_text: str) -> str:
        """
        Rewrite variant spellings of every term found in ``source_text``.

        All terms are rewritten in a single left-to-right pass. Canonical
        forms are part of the same alternation and map to themselves, so text
        that is already canonical (or was just written) is never matched
        again by a shorter variant.

        Args:
            source_text: Original segment
            translated_text: Model output for that segment

        Returns:
            Translation with canonical renderings
        """
        if not self._canonical or not translated_text:
            return translated_text

        terms = self.find_terms(source_text)
        replacements: Dict[str, str] = {self._canonical[term]: self._canonical[term] for term in terms}
        for term in terms:
            for variant in self.variants_for(term):
                replacements.setdefault(variant, self._canonical[term])

        spellings = [s for s in replacements if s in translated_text]
        if not spellings or all(replacements[s] == s for s in spellings):
            return translated_text

        # Longest first; canonical before a variant of the same length
        spellings.sort(key=lambda s: (-len(s), replacements[s] != s))
        pattern = re.compile('|'.join(_spelling_pattern(s) for s in spellings))

        replaced = []

        def substitute(match: re.Match) -> str:
            found = match.group(0)
            canonical = replacements[found]
            if canonical != found:
                replaced.append((found, canonical))
            return canonical

        result = pattern.sub(substitute, translated_text)
        for variant, canonical in set(replaced):
            logger.debug(f"Replaced {replaced.count((variant, canonical))}x "
                         f"'{variant}' -> '{canonical}'")
        return result

    def sweep(self, pairs: Iterable[Tuple[str, str]]) -> Tuple[List[str], int]:
        """
        Enforce consistency over many (source, translation) pairs.

        Returns:
            Corrected translations in input order, and the number that changed
        """
        corrected = []
        changed = 0
        for source_text, translated_text in pairs:
            fixed = self.enforce(source_text, translated_text)
            if fixed != translated_text:
                changed += 1
            corrected.append(fixed)
        if changed:
            logger.info(f"Consistency sweep corrected {changed} segments")
        return corrected, changed
