"""
Template variable handling.

Substitution of $name / ${name} placeholders into query text and recognition
of the Grafana meta-queries used to populate variable options. Everything
here is stateless.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping

from promboard.dashboards.models import TemplateVariable, VariableType

# label_values(label) | label_values(metric, label) | label_values(metric{sel}, label)
LABEL_VALUES_PATTERN = re.compile(
    r"label_values\s*\(\s*"
    r"(?:(?P<metric>[^,{}()]*(?:\{[^}]*\})?)\s*,\s*)?"
    r"(?P<label>[^,(){}\s]+)\s*\)"
)
QUERY_RESULT_PATTERN = re.compile(r"query_result\s*\(\s*(?P<expr>.+)\s*\)", re.DOTALL)


@dataclass(frozen=True)
class LabelValuesQuery:
    """A parsed label_values() meta-query."""

    label: str
    metric: str | None = None


def substitute_variables(expr: str, values: Mapping[str, str]) -> str:
    """
    Replace variable placeholders in a PromQL expression.

    For each variable, every ${name} is replaced first, then every $name
    that ends at a word boundary, so $m never matches inside $mem. Names
    absent from ``values`` are left untouched.
    """
    result = expr
    for name, value in values.items():
        escaped = re.escape(name)
        result = re.sub(r"\$\{" + escaped + r"\}", lambda _m: value, result)
        result = re.sub(r"\$" + escaped + r"\b", lambda _m: value, result)
    return result


def parse_label_values_query(query: str) -> LabelValuesQuery | None:
    """
    Parse a label_values() variable query.

    Returns:
        LabelValuesQuery, or None when the text is not a label_values query
    """
    match = LABEL_VALUES_PATTERN.search(query)
    if not match:
        return None
    metric = (match.group("metric") or "").strip()
    return LabelValuesQuery(label=match.group("label").strip(), metric=metric or None)


def parse_query_result_query(query: str) -> str | None:
    """Extract the inner expression of query_result(expr), or None."""
    match = QUERY_RESULT_PATTERN.search(query)
    if not match:
        return None
    return match.group("expr").strip() or None


def default_variable_values(variables: Iterable[TemplateVariable]) -> dict[str, str]:
    """
    Initial value per variable.

    Priority: declared current value, first declared option, the query text
    of a constant variable, then the empty string.
    """
    values: dict[str, str] = {}
    for variable in variables:
        if variable.current:
            values[variable.name] = variable.current
        elif variable.options:
            values[variable.name] = variable.options[0]
        elif variable.type is VariableType.CONSTANT and variable.query:
            values[variable.name] = variable.query
        else:
            values[variable.name] = ""
    return values
