"""Tests for intent classification and synonym expansion."""

import json

import pytest

from feedsync.config import ConfigError

from shopassist.intents import (
    DEFAULT_INTENT_RULES,
    FALLBACK_INTENT,
    IntentRule,
    classify_intent,
    content_words,
    expand_query,
    load_intent_rules,
    match_intent,
)


class TestClassifyIntent:
    @pytest.mark.parametrize("text,intent", [
        ("Ahoj", "greeting"),
        ("Dobrý deň!", "greeting"),
        ("Koľko produktov máte?", "count"),
        ("Koľko stojí šampón Nivea?", "price"),
        ("Máte Nivea skladom?", "availability"),
        ("Aké kategórie máte?", "category"),
        ("Máte nejaké zľavy?", "discount"),
        ("Odporuč mi niečo", "recommendation"),
        ("Hľadám darček pre mamu", "gift"),
        ("Aké značky máte?", "brand"),
        ("Niečo na vlasy", "general-category"),
        ("Nivea 400 ml", "specific-search"),
        ("Nivea", "general"),
    ])
    def test_default_rules(self, text, intent):
        assert classify_intent(text, DEFAULT_INTENT_RULES) == intent

    def test_greeting_only_when_alone(self):
        """A greeting followed by a question is classified by the question."""
        assert classify_intent("Ahoj, koľko stojí šampón?", DEFAULT_INTENT_RULES) == "price"

    def test_first_matching_rule_wins(self):
        rules = [
            IntentRule("first", ["sampon"]),
            IntentRule("second", ["sampon"]),
        ]
        assert classify_intent("šampón", rules) == "first"

    def test_deterministic(self):
        results = {classify_intent("Máte zľavy na šampón?", DEFAULT_INTENT_RULES) for _ in range(5)}
        assert results == {"discount"}

    def test_fallback_rule(self):
        rule = match_intent("úplne neznáme", [])
        assert rule is FALLBACK_INTENT
        assert rule.strategy == "word"

    def test_rule_strategies(self):
        assert match_intent("Máte zľavy?", DEFAULT_INTENT_RULES).strategy == "discount"
        assert match_intent("Ahoj", DEFAULT_INTENT_RULES).strategy == "stats"


class TestIntentRule:
    def test_invalid_strategy(self):
        with pytest.raises(ValueError):
            IntentRule("x", ["y"], strategy="telepathy")

    def test_invalid_match_mode(self):
        with pytest.raises(ValueError):
            IntentRule("x", ["y"], match="fuzzy")

    def test_to_dict(self):
        rule = IntentRule("price", ["cena"])
        assert rule.to_dict() == {
            "intent": "price",
            "patterns": ["cena"],
            "match": "substring",
            "strategy": "word",
        }


class TestLoadIntentRules:
    def test_load_rules_object(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"rules": [
            {"intent": "shipping", "patterns": ["doprava", "dorucenie"], "strategy": "none"},
            {"intent": "volume", "patterns": ["\\d+ml"], "match": "regex"},
        ]}), encoding="utf-8")

        rules = load_intent_rules(path)
        assert [r.intent for r in rules] == ["shipping", "volume"]
        assert classify_intent("Aká je doprava?", rules) == "shipping"
        assert classify_intent("Krém 50ml", rules) == "volume"

    def test_load_rules_list(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps([{"intent": "price", "patterns": ["cena"]}]), encoding="utf-8")
        assert load_intent_rules(path)[0].strategy == "word"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_intent_rules(tmp_path / "missing.json")

    def test_invalid_rule(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps([{"patterns": ["cena"]}]), encoding="utf-8")
        with pytest.raises(ConfigError):
            load_intent_rules(path)

    def test_invalid_regex(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps([{"intent": "x", "patterns": ["("], "match": "regex"}]), encoding="utf-8")
        with pytest.raises(ConfigError):
            load_intent_rules(path)


class TestExpandQuery:
    def test_canonical_brings_forms(self):
        extra = expand_query(["zuby"])
        assert extra[:3] == ["zubna", "pasta", "kefka"]

    def test_form_brings_canonical(self):
        assert "zlava" in expand_query(["akcia"])

    def test_excludes_existing_terms(self):
        assert "zubna" not in expand_query(["zuby", "zubna"])

    def test_unknown_term(self):
        assert expand_query(["xyz"]) == []

    def test_custom_table(self):
        assert expand_query(["gel"], {"sprcha": ["gel"]}) == ["sprcha"]


def test_content_words_drop_stop_words():
    assert content_words(["mate", "sampon", "pre", "deti"]) == ["sampon", "deti"]
