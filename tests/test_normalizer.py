"""Tests for text normalization."""

from mission_tracker.nlp.normalizer import expand_abbreviations, normalize, prepare, words


class TestNormalize:
    def test_lowercases_and_strips_punctuation(self):
        assert normalize("Create Progress-Visualization, Dashboard!") == "create progressvisualization dashboard"

    def test_collapses_whitespace(self):
        assert normalize("  design   the\tsystem \n") == "design the system"

    def test_empty_string(self):
        assert normalize("") == ""


class TestExpandAbbreviations:
    def test_expands_whole_words_case_insensitively(self):
        assert expand_abbreviations("finished the NLP part") == "finished the natural language processing part"
        assert expand_abbreviations("Ml and AI") == "machine learning and artificial intelligence"

    def test_leaves_partial_words_alone(self):
        assert expand_abbreviations("email and build") == "email and build"
        assert expand_abbreviations("apis") == "apis"

    def test_all_abbreviations(self):
        expanded = expand_abbreviations("ui ux api")
        assert expanded == "user interface user experience application programming interface"


class TestPrepare:
    def test_expands_before_normalizing(self):
        assert prepare("The NLP, part.") == "the natural language processing part"

    def test_words_drop_short_tokens(self):
        assert words("Add an AI to it") == ["add", "artificial", "intelligence"]
