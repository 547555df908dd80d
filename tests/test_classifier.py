"""Unit tests for EventClassifier."""
import json

import pytest

from classifier import DEFAULT_RULES, ClassifierConfig, EventClassifier, KeywordRule
from models import RawEvent, Verdict


def event(summary="", description="", location=""):
    return RawEvent(id="x", summary=summary, description=description, location=location)


@pytest.fixture
def classifier():
    return EventClassifier()


class TestCourtMarkers:
    """Explicit court names win over everything else."""

    @pytest.mark.parametrize("summary", ["Aula - Quadra 1", "QUADRA1 reservada", "Treino q1"])
    def test_court_one(self, classifier, summary):
        assert classifier.classify(event(summary)) == Verdict.known(1)

    @pytest.mark.parametrize("summary", ["Aula - Quadra 2", "quadra2", "Q2 beach"])
    def test_court_two(self, classifier, summary):
        assert classifier.classify(event(summary)) == Verdict.known(2)

    def test_marker_in_description_or_location(self, classifier):
        assert classifier.classify(event("Aula", description="local: quadra 2")) == Verdict.known(2)
        assert classifier.classify(event("Aula", location="Quadra 1")) == Verdict.known(1)

    def test_both_markers_block_venue(self, classifier):
        verdict = classifier.classify(event("Torneio Quadra 1 e Quadra 2"))
        assert verdict.courts == frozenset({1, 2})
        assert verdict.block_both is True

    def test_marker_beats_keyword(self, classifier):
        # "beach tennis" maps to court 2 but the explicit marker names court 1
        assert classifier.classify(event("Beach Tennis — Quadra 1")) == Verdict.known(1)


class TestKeywordRules:
    """Configured keyword rules apply when no court is named."""

    def test_default_rules(self, classifier):
        assert classifier.classify(event("Futevolei iniciantes")) == Verdict.known(1)
        assert classifier.classify(event("Aula de volei")) == Verdict.known(2)
        assert classifier.classify(event("Beach tennis kids")) == Verdict.known(2)
        assert classifier.classify(event("BT avançado")) == Verdict.known(2)

    def test_first_matching_rule_wins(self):
        config = ClassifierConfig(rules=(KeywordRule("aula", 2), KeywordRule("aula", 1)))
        assert EventClassifier(config).classify(event("Aula")) == Verdict.known(2)

    def test_invalid_pattern_is_skipped(self):
        config = ClassifierConfig(rules=(KeywordRule("([", 1), KeywordRule("treino", 2)))
        assert EventClassifier(config).classify(event("Treino")) == Verdict.known(2)

    def test_out_of_range_court_is_skipped(self):
        config = ClassifierConfig(rules=(KeywordRule("treino", 3),))
        assert EventClassifier(config).classify(event("Treino")) == Verdict.unknown_single()

    def test_injected_rules_replace_defaults(self):
        config = ClassifierConfig(rules=(KeywordRule("funcional", 1),))
        classifier = EventClassifier(config)
        assert classifier.classify(event("Funcional")) == Verdict.known(1)
        assert classifier.classify(event("Beach tennis")) == Verdict.unknown_single()


class TestFallback:
    """Events that name no court and match no rule."""

    def test_unknown_single(self, classifier):
        verdict = classifier.classify(event("Aula particular"))
        assert verdict == Verdict.unknown_single()
        assert verdict.is_known is False

    def test_block_both_policy(self):
        classifier = EventClassifier(ClassifierConfig(unknown_blocks_both=True))
        verdict = classifier.classify(event("Aula particular"))
        assert verdict.block_both is True
        assert verdict.courts == frozenset({1, 2})


class TestConfigFromJson:
    """Test cases for ClassifierConfig.from_json."""

    def test_none_keeps_defaults(self):
        assert ClassifierConfig.from_json(None).rules == DEFAULT_RULES

    def test_valid_list_replaces_defaults(self):
        raw = json.dumps([{"pattern": "funcional", "court": 1}, {"pattern": "yoga", "court": "2"}])
        config = ClassifierConfig.from_json(raw)
        assert config.rules == (KeywordRule("funcional", 1), KeywordRule("yoga", 2))

    def test_invalid_json_keeps_defaults(self):
        assert ClassifierConfig.from_json("{not json").rules == DEFAULT_RULES

    def test_empty_list_keeps_defaults(self):
        assert ClassifierConfig.from_json("[]").rules == DEFAULT_RULES

    def test_malformed_entries_dropped(self):
        raw = json.dumps([{"pattern": "yoga"}, {"court": 1}, {"pattern": "pilates", "court": 2}])
        assert ClassifierConfig.from_json(raw).rules == (KeywordRule("pilates", 2),)

    def test_policy_flag_carried(self):
        assert ClassifierConfig.from_json(None, unknown_blocks_both=True).unknown_blocks_both is True
