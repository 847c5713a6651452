from grounding.rag.classifier import CategoryClassifier, suggests_category_search
from grounding.rag.registry import Category, SourceRegistry, build_default_registry


def test_classify_picks_science_for_quantum_query():
    classifier = CategoryClassifier(build_default_registry())

    assert classifier.classify("latest quantum computing breakthroughs") == ["science"]


def test_ties_keep_registry_order():
    classifier = CategoryClassifier(build_default_registry())

    scores = classifier.scores("machine learning startup funding")

    assert scores[:2] == [("technology", 4), ("startups", 4)]
    assert classifier.classify("machine learning startup funding") == ["technology", "startups"]


def test_short_keywords_score_one_point():
    registry = SourceRegistry(
        [Category(name="energy", description="", keywords=("ev", "battery"), sources=())]
    )
    classifier = CategoryClassifier(registry)

    assert classifier.scores("ev battery prices") == [("energy", 3)]


def test_unmatched_query_returns_no_categories():
    classifier = CategoryClassifier(build_default_registry())

    assert classifier.classify("what time is it") == []


def test_limit_caps_number_of_categories():
    classifier = CategoryClassifier(build_default_registry(), limit=1)

    assert classifier.classify("machine learning startup funding") == ["technology"]


def test_category_search_indicators():
    assert suggests_category_search("Recent research on CRISPR")
    assert not suggests_category_search("how do I boil an egg")


def test_machine_learning_research_query_includes_technology():
    classifier = CategoryClassifier(build_default_registry())

    assert "technology" in classifier.classify("latest machine learning research breakthroughs")
