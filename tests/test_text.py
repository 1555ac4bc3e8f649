import pytest

from movement_analytics.text import includes, matches, normalize


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Pérez", "perez"),
        ("  CASA Ñandú ", "casa nandu"),
        ("Categoría", "categoria"),
        (None, ""),
        ("", ""),
    ],
)
def test_normalize_strips_accents_case_and_spaces(raw, expected) -> None:
    assert normalize(raw) == expected


def test_normalize_is_idempotent() -> None:
    once = normalize("  Jösé MARÍA ")
    assert normalize(once) == once


def test_matches_ignores_accents_and_case() -> None:
    assert matches("Juan Pérez", "juan perez")
    assert not matches("Juan Pérez", "Juan")


def test_includes_substring_after_normalization() -> None:
    assert includes("Casa Álamo - Etapa 2", "alamo")
    assert not includes("Casa Álamo", "roble")


def test_includes_empty_rules() -> None:
    """An empty needle matches anything; an empty haystack only an empty needle."""
    assert includes("anything", "")
    assert includes(None, None)
    assert includes("", "")
    assert not includes("", "x")
    assert not includes(None, "x")
