from typing import Callable, Dict, Iterable, Optional

from .models import ConditionData, ConditionRule

_OPERATORS: Dict[str, Callable[[str, str], bool]] = {
    "equals": lambda subject, value: subject == value,
    "not_equals": lambda subject, value: subject != value,
    "includes": lambda subject, value: value in subject,
    "starts_with": lambda subject, value: subject.startswith(value),
    "ends_with": lambda subject, value: subject.endswith(value),
}


def evaluate_rule(rule: ConditionRule, subject: str) -> bool:
    """
    Compare the subject identity against one rule, ignoring case.
    Unknown operators never match.
    """
    compare = _OPERATORS.get(rule.operator or "")
    if compare is None:
        return False
    return compare(subject.lower(), (rule.value or "").lower())


def evaluate_rules(rules: Iterable[ConditionRule], subject: str, logic: Optional[str] = "AND") -> bool:
    """
    Combine rule results with AND (all true) or OR (any true).
    """
    results = [evaluate_rule(rule, subject) for rule in rules]
    if logic == "OR":
        return any(results)
    return all(results)


def evaluate_condition(data: ConditionData, subject: str) -> bool:
    return evaluate_rules(data.rules, subject, data.logic or "AND")
