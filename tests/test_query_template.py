"""Tests for the Jinja2 query template collaborator."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from query_operations import QueryTemplate, QueryTemplateError, TemplateRenderer, sql_literal


@pytest.fixture
def template() -> QueryTemplate:
    return QueryTemplate()


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, "NULL"),
        (True, "TRUE"),
        (False, "FALSE"),
        (42, "42"),
        (1.5, "1.5"),
        (Decimal("9.99"), "9.99"),
        (float("nan"), "'NaN'::float8"),
        (float("inf"), "'Infinity'::float8"),
        (float("-inf"), "'-Infinity'::float8"),
        (Decimal("NaN"), "'NaN'::numeric"),
        (b"\x00\xffA", "'\\x00ff41'::bytea"),
        ("plain", "'plain'"),
        ("o'neil", "'o''neil'"),
        (date(2024, 1, 31), "'2024-01-31'"),
        ([1, "a"], "(1, 'a')"),
        ([], "(SELECT 1 WHERE 1=0)"),
        ({"k": "v"}, "'{\"k\": \"v\"}'"),
    ],
)
def test_sql_literal(value, expected: str) -> None:
    assert sql_literal(value) == expected


def test_render_substitutes_named_parameters(template: QueryTemplate) -> None:
    sql = template.render(
        "SELECT * FROM users WHERE email = {{ email }} AND id IN {{ ids }} LIMIT {{ limit }}",
        {"email": "a@example.com", "ids": (1, 2), "limit": 10},
    )

    assert sql == "SELECT * FROM users WHERE email = 'a@example.com' AND id IN (1, 2) LIMIT 10"


def test_render_neutralizes_injection(template: QueryTemplate) -> None:
    sql = template.render("SELECT * FROM t WHERE name = {{ name }}", {"name": "x'; DROP TABLE t; --"})

    assert sql == "SELECT * FROM t WHERE name = 'x''; DROP TABLE t; --'"


def test_filters_give_explicit_control(template: QueryTemplate) -> None:
    sql = template.render(
        "SELECT * FROM {{ table | ident }} WHERE name LIKE {{ prefix | like_start }} ORDER BY {{ order | raw }}",
        {"table": "public.users", "prefix": "50%_", "order": "id DESC"},
    )

    assert sql == (
        'SELECT * FROM "public"."users" WHERE name LIKE \'50\\%\\_%\' ORDER BY id DESC'
    )


def test_missing_parameter_raises(template: QueryTemplate) -> None:
    with pytest.raises(QueryTemplateError) as excinfo:
        template.render("SELECT {{ missing }}", {"present": 1})

    assert excinfo.value.query == "SELECT {{ missing }}"


def test_syntax_error_raises(template: QueryTemplate) -> None:
    with pytest.raises(QueryTemplateError):
        template.render("SELECT {{ broken", {})


def test_parameters_lists_referenced_names(template: QueryTemplate) -> None:
    assert template.parameters("SELECT {{ b }}, {{ a | raw }}, {{ b }}") == ["a", "b"]


def test_compiled_templates_are_cached_and_bounded() -> None:
    template = QueryTemplate(cache_size=2)

    for idx in range(3):
        template.render(f"SELECT {{{{ v }}}} + {idx}", {"v": 1})
    template.render("SELECT {{ v }} + 2", {"v": 1})

    assert len(template._cache) == 2


def test_query_template_satisfies_renderer_protocol(template: QueryTemplate) -> None:
    assert isinstance(template, TemplateRenderer)


def test_render_non_finite_and_binary_values(template: QueryTemplate) -> None:
    sql = template.render(
        "INSERT INTO samples (reading, payload) VALUES ({{ reading }}, {{ payload }})",
        {"reading": float("nan"), "payload": bytearray(b"\x01\x02")},
    )

    assert sql == "INSERT INTO samples (reading, payload) VALUES ('NaN'::float8, '\\x0102'::bytea)"
