"""Tests for template variable substitution and meta-query parsing."""

import pytest
from promboard.dashboards.models import TemplateVariable, VariableType
from promboard.dashboards.variables import (
    LabelValuesQuery,
    default_variable_values,
    parse_label_values_query,
    parse_query_result_query,
    substitute_variables,
)


class TestSubstituteVariables:

    def test_plain_placeholder(self):
        assert substitute_variables("rate($m[5m])", {"m": "cpu"}) == "rate(cpu[5m])"

    def test_braced_and_plain(self):
        assert substitute_variables("$m and ${m}x", {"m": "a"}) == "a and ax"

    def test_unknown_variable_left_as_is(self):
        assert substitute_variables("$unknown", {}) == "$unknown"

    def test_prefix_names_do_not_collide(self):
        values = {"m": "short", "mem": "long"}

        assert substitute_variables("$mem / $m", values) == "long / short"

    def test_plain_placeholder_needs_word_boundary(self):
        assert substitute_variables("$mx", {"m": "a"}) == "$mx"

    def test_all_occurrences_replaced(self):
        expr = 'up{job="$job"} + down{job="${job}"}'

        assert substitute_variables(expr, {"job": "node"}) == 'up{job="node"} + down{job="node"}'

    def test_value_with_backslashes_is_literal(self):
        assert substitute_variables('x{a=~"$re"}', {"re": r"\d+"}) == r'x{a=~"\d+"}'

    def test_name_with_regex_characters(self):
        assert substitute_variables("${a.b}", {"a.b": "v"}) == "v"


class TestParseLabelValuesQuery:

    def test_metric_and_label(self):
        assert parse_label_values_query("label_values(up, instance)") == LabelValuesQuery(
            metric="up", label="instance"
        )

    def test_label_only(self):
        assert parse_label_values_query("label_values(job)") == LabelValuesQuery(
            metric=None, label="job"
        )

    def test_metric_with_selector(self):
        parsed = parse_label_values_query('label_values(node_cpu{job="node", env="$env"}, cpu)')

        assert parsed.metric == 'node_cpu{job="node", env="$env"}'
        assert parsed.label == "cpu"

    def test_whitespace_tolerated(self):
        parsed = parse_label_values_query("  label_values (  up ,  instance  ) ")

        assert parsed == LabelValuesQuery(metric="up", label="instance")

    @pytest.mark.parametrize(
        "text",
        ["not_a_match(x)", "up", "label_values()", "query_result(up)", ""],
    )
    def test_not_label_values(self, text):
        assert parse_label_values_query(text) is None


class TestParseQueryResultQuery:

    def test_extracts_inner_expression(self):
        assert parse_query_result_query("query_result(topk(5, sum by (job) (up)))") == (
            "topk(5, sum by (job) (up))"
        )

    def test_no_match(self):
        assert parse_query_result_query("label_values(job)") is None


class TestDefaultVariableValues:

    def test_priority_order(self):
        variables = [
            TemplateVariable(name="a", type=VariableType.QUERY, current="cur", options=("o1",)),
            TemplateVariable(name="b", type=VariableType.CUSTOM, options=("first", "second")),
            TemplateVariable(name="c", type=VariableType.CONSTANT, query="constant-text"),
            TemplateVariable(name="d", type=VariableType.QUERY, query="label_values(job)"),
        ]

        assert default_variable_values(variables) == {
            "a": "cur",
            "b": "first",
            "c": "constant-text",
            "d": "",
        }

    def test_every_variable_gets_a_value(self):
        variables = [TemplateVariable(name=f"v{i}", type=VariableType.QUERY) for i in range(3)]

        assert set(default_variable_values(variables)) == {"v0", "v1", "v2"}
