"""Tests for guard/condition evaluation."""

from flowbuilder.workflow.guards import evaluate_condition, evaluate_rule, evaluate_rules
from flowbuilder.workflow.models import ConditionData, ConditionRule


def test_includes_rule_with_and():
    """Test the single-rule AND case."""
    data = ConditionData(rules=[ConditionRule(operator="includes", value="test")], logic="AND")

    assert evaluate_condition(data, "test@example.com") is True
    assert evaluate_condition(data, "foo@example.com") is False


def test_or_with_one_match():
    """Test OR logic where exactly one rule matches."""
    rules = [
        ConditionRule(operator="starts_with", value="alice"),
        ConditionRule(operator="ends_with", value="@example.com"),
    ]

    assert evaluate_rules(rules, "bob@example.com", "OR") is True
    assert evaluate_rules(rules, "bob@example.com", "AND") is False


def test_logic_defaults_to_and():
    data = ConditionData(rules=[
        ConditionRule(operator="includes", value="bob"),
        ConditionRule(operator="includes", value="nope"),
    ])

    assert evaluate_condition(data, "bob@example.com") is False


def test_each_operator():
    """Test every supported operator."""
    subject = "Jane.Doe@Example.com"

    assert evaluate_rule(ConditionRule(operator="equals", value="jane.doe@example.com"), subject) is True
    assert evaluate_rule(ConditionRule(operator="equals", value="jane@example.com"), subject) is False
    assert evaluate_rule(ConditionRule(operator="not_equals", value="jane@example.com"), subject) is True
    assert evaluate_rule(ConditionRule(operator="not_equals", value="JANE.DOE@example.com"), subject) is False
    assert evaluate_rule(ConditionRule(operator="includes", value="DOE"), subject) is True
    assert evaluate_rule(ConditionRule(operator="starts_with", value="jane"), subject) is True
    assert evaluate_rule(ConditionRule(operator="starts_with", value="doe"), subject) is False
    assert evaluate_rule(ConditionRule(operator="ends_with", value=".COM"), subject) is True


def test_unknown_operator_never_matches():
    rule = ConditionRule(operator="matches", value=".*")

    assert evaluate_rule(rule, "anyone@example.com") is False
    assert evaluate_rules([rule], "anyone@example.com", "OR") is False
