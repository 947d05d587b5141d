"""
Unit tests for Text Normalizer.

Pure rule-based cleaning, so no collaborator mocks are needed here.
"""

import pytest
from topic_reconciler.agents.normalization import (
    TextNormalizer,
    REJECT_CONTAINS_URL,
    REJECT_NO_ALPHABETIC,
    REJECT_NOT_A_STRING,
    REJECT_TOO_LONG,
    REJECT_TOO_SHORT,
)


@pytest.fixture
def normalizer():
    """Create normalizer with default length bounds."""
    return TextNormalizer(min_length=5, max_length=200)


@pytest.mark.parametrize("raw, expected", [
    ("1. Introduction to Python", "Introduction to Python"),
    ("2) Control flow", "Control flow"),
    ("1.2 Functions in Python", "Functions in Python"),
    ("- Variables and types", "Variables and types"),
    ("• Recursion basics", "Recursion basics"),
    ("a) Sorting algorithms", "Sorting algorithms"),
    ("(b) Searching algorithms", "Searching algorithms"),
    ("## Machine Learning", "Machine Learning"),
    ("**Data Structures** [1]", "Data Structures"),
    ("  Linear   regression\tmodels  ", "Linear regression models"),
])
def test_strips_markers(normalizer, raw, expected):
    """Test that list markers, markdown and citations are removed."""
    assert normalizer.normalize([raw]) == [expected]


def test_nested_markers_removed(normalizer):
    """Test that stacked markers are removed in one normalize() call."""
    assert normalizer.normalize(["1. - **Loops in Python**"]) == ["Loops in Python"]


def test_idempotence(normalizer):
    """Test normalize(normalize(X)) == normalize(X)."""
    raw = [
        "1. - **Loops in Python**",
        "## 3) Derivadas parciais [2]",
        "a) (b) Nested lettering",
        "   Produto   Escalar ",
        "Introdução a Vetores",
        "ok",
        "https://example.com/course",
    ]

    once = normalizer.normalize(raw)
    twice = normalizer.normalize(once)

    assert twice == once


def test_input_order_preserved(normalizer):
    """Test that kept topics keep their relative order."""
    raw = ["3. Gamma topic", "x", "1. Alpha topic", "2. Beta topic"]
    assert normalizer.normalize(raw) == ["Gamma topic", "Alpha topic", "Beta topic"]


@pytest.mark.parametrize("raw, reason", [
    ("Git", REJECT_TOO_SHORT),
    ("x" * 201, REJECT_TOO_LONG),
    ("12345 678", REJECT_NO_ALPHABETIC),
    ("--- !!! ...", REJECT_NO_ALPHABETIC),
    ("See https://example.com/python for details", REJECT_CONTAINS_URL),
    ("www.example.com tutorials", REJECT_CONTAINS_URL),
    (42, REJECT_NOT_A_STRING),
    (None, REJECT_NOT_A_STRING),
])
def test_rejection_reasons(normalizer, raw, reason):
    """Test each rejection rule."""
    assert normalizer.rejection_reason(raw) == reason
    assert normalizer.normalize([raw]) == []


def test_length_checked_after_cleaning(normalizer):
    """Test that markers don't count toward the minimum length."""
    assert normalizer.rejection_reason("1. Git") == REJECT_TOO_SHORT
    assert normalizer.rejection_reason("1. Git basics") is None


def test_normalize_with_rejections(normalizer):
    """Test that rejected items are reported with their reason."""
    kept, rejected = normalizer.normalize_with_rejections(
        ["1. Vector spaces", "abc", "http://x.org/lesson"]
    )

    assert kept == ["Vector spaces"]
    assert rejected == [("abc", REJECT_TOO_SHORT), ("http://x.org/lesson", REJECT_CONTAINS_URL)]


def test_normalize_one(normalizer):
    """Test single-item helper."""
    assert normalizer.normalize_one("- Matrix algebra") == "Matrix algebra"
    assert normalizer.normalize_one("abc") is None


def test_custom_length_bounds():
    """Test configurable length bounds."""
    normalizer = TextNormalizer(min_length=2, max_length=10)

    assert normalizer.normalize(["Git", "Version control systems"]) == ["Git"]


def test_empty_input(normalizer):
    """Test that an empty list normalizes to an empty list."""
    assert normalizer.normalize([]) == []


# Run tests if executed directly
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
