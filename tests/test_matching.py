from movement_import.matching import (
    DEFAULT_STRATEGIES,
    ExactMatch,
    SimilarityMatch,
    SubstringMatch,
    levenshtein,
    similarity,
)


def test_levenshtein_basics():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("abc", "abc") == 0
    assert levenshtein("abc", "") == 3


def test_similarity_is_normalized_by_longer_string():
    assert similarity("abcde", "abcdx") == 0.8
    assert similarity("", "") == 1.0


def test_exact_match_only_hits_identical_keys():
    index = {"materiales": "m1"}
    assert ExactMatch().match("materiales", index) == "m1"
    assert ExactMatch().match("material", index) is None


def test_substring_match_returns_first_in_insertion_order():
    index = {"mano de obra": "a", "obra": "b"}
    assert SubstringMatch().match("pago mano de obra", index) == "a"
    assert SubstringMatch().match("obra", index) == "a"  # "obra" is inside "mano de obra"
    assert SubstringMatch().match("", index) is None


def test_similarity_threshold_is_strict():
    # distance 2 over length 5 -> exactly 0.6, which is rejected
    assert SimilarityMatch().match("abcxy", {"abcde": "x"}) is None
    assert SimilarityMatch().match("abcdx", {"abcde": "x"}) == "x"


def test_similarity_ignores_short_keys_and_inputs():
    assert SimilarityMatch().match("usd", {"usds": "u"}) is None
    assert SimilarityMatch().match("usds", {"usd": "u"}) is None


def test_similarity_tie_breaks_on_shortest_then_lexicographic():
    # Both candidates score 0.8 against the key; the shorter one wins.
    index = {"abcdefghxx": "long", "abcdefgh": "short"}
    assert SimilarityMatch().best("abcdefghij", index) == ("abcdefgh", 0.8)

    # Same score and length: lexicographic order decides.
    index = {"abcdxf": "x", "abcdeg": "g"}
    assert SimilarityMatch().match("abcdef", index) == "g"


def test_default_strategies_are_ordered_exact_substring_similarity():
    assert [s.name for s in DEFAULT_STRATEGIES] == ["exact", "substring", "similarity"]
