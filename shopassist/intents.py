"""Intent classification and query expansion.

Intents are an ordered list of ``IntentRule`` data: the first rule with a
pattern matching the normalized query wins. Rules can be replaced from a
JSON file (``INTENT_RULES_PATH``) without touching the matching code:

    {"rules": [{"intent": "price", "patterns": ["cena"], "strategy": "word"}]}
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from feedsync.config import ConfigError
from feedsync.normalize import normalize_text

from shopassist.config import INTENT_RULES_PATH

__all__ = [
    "STRATEGIES",
    "FALLBACK_INTENT",
    "IntentRule",
    "DEFAULT_INTENT_RULES",
    "SYNONYMS",
    "STOP_WORDS",
    "load_intent_rules",
    "get_intent_rules",
    "match_intent",
    "classify_intent",
    "expand_query",
    "content_words",
]

logger = logging.getLogger(__name__)

# How the retrieval step finds products for an intent. "stats" answers
# from catalog statistics and lists products only on a direct word match.
STRATEGIES = ("word", "category", "brand", "discount", "random", "stats", "none")
MATCH_MODES = ("substring", "regex")


@dataclass
class IntentRule:
    """Patterns that select an intent and its retrieval strategy."""

    intent: str
    patterns: List[str] = field(default_factory=list)
    match: str = "substring"
    strategy: str = "word"

    def __post_init__(self) -> None:
        if self.match not in MATCH_MODES:
            raise ValueError(f"Unknown match mode {self.match!r} for intent {self.intent!r}")
        if self.strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy {self.strategy!r} for intent {self.intent!r}")
        self._compiled = [re.compile(p) for p in self.patterns] if self.match == "regex" else []

    def matches(self, normalized: str) -> bool:
        """Test already-normalized query text against this rule."""
        if self.match == "regex":
            return any(p.search(normalized) for p in self._compiled)
        return any(p in normalized for p in self.patterns)

    def to_dict(self) -> Dict[str, Union[str, List[str]]]:
        return {
            "intent": self.intent,
            "patterns": list(self.patterns),
            "match": self.match,
            "strategy": self.strategy,
        }


FALLBACK_INTENT = IntentRule(intent="general", strategy="word")

# Patterns are written in normalized form (lowercase, no diacritics)
DEFAULT_INTENT_RULES: List[IntentRule] = [
    IntentRule(
        "greeting",
        [r"^(ahoj|cau|caute|zdravim|dobry den|dobre rano|dobry vecer|hello|hi|hey)$"],
        match="regex",
        strategy="stats",
    ),
    IntentRule(
        "count",
        ["kolko mate", "kolko produktov", "pocet", "celkom", "vsetky", "vsetko", "vsetkych"],
        strategy="stats",
    ),
    IntentRule("price", ["kolko stoji", "za kolko", "cena", "ceny", "cennik", "price"]),
    IntentRule("availability", ["skladom", "na sklade", "dostupny", "dostupne", "dostupnost", "k dispozicii"]),
    IntentRule(
        "category",
        ["kategoria", "kategorie", "kategorii", "druhy", "typy", "sortiment", "ponuka"],
        strategy="category",
    ),
    IntentRule("discount", ["zlava", "zlavy", "akcia", "akcie", "zlacnene", "vypredaj", "promo"], strategy="discount"),
    IntentRule("recommendation", ["odporuc", "porad", "navrhni", "najlepsi", "najlepsie", "popularny", "co mi"]),
    IntentRule("gift", ["darcek", "darceky", "darovat", "prekvapenie", "gift"], strategy="random"),
    IntentRule("brand", ["znacka", "znacky", "znacku", "vyrobca", "brand"], strategy="brand"),
    IntentRule(
        "general-category",
        [
            "drogeria", "kozmetika", "makeup", "krem", "plet", "vlasy", "sampon",
            "cistenie", "upratovanie", "umyvanie", "dezinfekcia", "pranie",
            "zuby", "parfem", "parfum", "deti", "domacnost",
        ],
        strategy="category",
    ),
    IntentRule("specific-search", [r"\b\d+\s?(ml|l|g|kg|ks|cm|mm)\b"], match="regex"),
]

# Canonical shop term -> alternate surface forms (normalized)
SYNONYMS: Dict[str, List[str]] = {
    "cena": ["cenny", "ceny", "kolko", "stoji", "price", "eur", "euro", "cennik"],
    "produkt": ["tovar", "vyrobok", "artikl", "polozka", "item", "produkty", "sortiment"],
    "dostupny": ["skladom", "dispozicii", "sklade", "available", "mame", "dostupnost", "dostupne"],
    "zlava": ["akcia", "discount", "sale", "zlacnene", "promo", "kupon", "vypredaj"],
    "kupit": ["objednat", "nakupit", "buy", "purchase", "order", "kosik"],
    "hladat": ["najst", "vyhladat", "search", "find", "kde", "aky", "ktory", "odporucit", "poradit"],
    "velkost": ["size", "rozmer", "cislo", "velkosti", "sizes", "ml", "gram", "kg", "liter"],
    "farba": ["color", "colour", "odtien", "farby", "farebny"],
    "doprava": ["dorucenie", "shipping", "delivery", "postovne", "zasielka", "kurier"],
    "drogeria": ["kozmetika", "hygiena", "cistiace", "mydlo", "sampon", "krem", "drogerie"],
    "cistenie": ["cistit", "upratovanie", "upratovat", "cistiace", "dezinfekcia", "umyvanie"],
    "pranie": ["prat", "pracie", "prasok", "gel", "avivaz", "pradlo"],
    "kozmetika": ["makeup", "krem", "plet", "tvar", "oci", "pery", "ruz", "maskara"],
    "vlasy": ["sampon", "kondicioner", "lak", "gel", "farba", "farbenie"],
    "telo": ["sprchovy", "telove", "mlieko", "olej", "hydratacia", "starostlivost"],
    "zuby": ["zubna", "pasta", "kefka", "ustna", "voda", "nit"],
    "parfem": ["parfum", "vona", "deodorant", "antiperspirant", "toaletna"],
    "deti": ["detsky", "baby", "dieta", "kojenec", "plienky", "puder"],
    "domacnost": ["wc", "kuchyna", "podlaha", "okna", "sklo", "nabytok"],
}

STOP_WORDS = frozenset({
    "a", "je", "to", "na", "v", "sa", "so", "pre", "ako", "ze", "ma", "mi", "me", "si", "su", "som",
    "ale", "ani", "az", "ak", "bo", "by", "co", "ci", "do", "ho", "im", "ju", "ka", "ku",
    "ne", "ni", "no", "od", "po", "pri", "ta", "te", "ti", "tu", "ty", "uz", "vo", "za",
    "mate", "mam", "chcem", "potrebujem", "the", "and", "or", "is", "are", "this", "that",
})


def load_intent_rules(path: Union[str, Path]) -> List[IntentRule]:
    """Load an ordered rule list from JSON.

    Accepts either a list of rule objects or ``{"rules": [...]}``.

    Raises:
        ConfigError: If the file is missing or malformed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read intent rules from {path}: {e}") from e

    raw_rules = data.get("rules") if isinstance(data, dict) else data
    if not isinstance(raw_rules, list):
        raise ConfigError(f"Intent rules in {path} must be a list")

    try:
        return [
            IntentRule(
                intent=str(item["intent"]),
                patterns=[str(p) for p in item.get("patterns", [])],
                match=item.get("match", "substring"),
                strategy=item.get("strategy", "word"),
            )
            for item in raw_rules
        ]
    except (KeyError, TypeError, AttributeError, ValueError, re.error) as e:
        raise ConfigError(f"Invalid intent rule in {path}: {e}") from e


_configured_rules: Optional[List[IntentRule]] = None


def get_intent_rules() -> List[IntentRule]:
    """Rules from INTENT_RULES_PATH when set, otherwise the built-in ones."""
    global _configured_rules
    if _configured_rules is None:
        if INTENT_RULES_PATH:
            _configured_rules = load_intent_rules(INTENT_RULES_PATH)
            logger.info(f"Loaded {len(_configured_rules)} intent rules from {INTENT_RULES_PATH}")
        else:
            _configured_rules = DEFAULT_INTENT_RULES
    return _configured_rules


def match_intent(text: str, rules: Optional[Sequence[IntentRule]] = None) -> IntentRule:
    """The first rule matching ``text``, or the general fallback rule."""
    normalized = normalize_text(text)
    for rule in rules if rules is not None else get_intent_rules():
        if rule.matches(normalized):
            return rule
    return FALLBACK_INTENT


def classify_intent(text: str, rules: Optional[Sequence[IntentRule]] = None) -> str:
    """Intent label for ``text``; deterministic for a fixed rule list."""
    return match_intent(text, rules).intent


def content_words(terms: Sequence[str]) -> List[str]:
    """Query words that are not stop words, in order."""
    return [t for t in terms if t not in STOP_WORDS]


def expand_query(terms: Sequence[str], synonyms: Optional[Dict[str, List[str]]] = None) -> List[str]:
    """Synonym forms for ``terms`` that are not already among them.

    A canonical term brings in its alternate forms; an alternate form
    brings in its canonical term.
    """
    table = SYNONYMS if synonyms is None else synonyms
    present = set(terms)
    extra: Dict[str, None] = {}
    for term in terms:
        candidates = list(table.get(term, []))
        candidates.extend(canonical for canonical, forms in table.items() if term in forms)
        for candidate in candidates:
            if candidate not in present:
                extra[candidate] = None
    return list(extra)
