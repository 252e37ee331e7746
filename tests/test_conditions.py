"""Tests for the policy condition language."""

from datetime import datetime, timezone

import pytest

from pbx_authz.core.exceptions import ConditionSyntaxError
from pbx_authz.features.policies.conditions import (
    ConditionEvaluator,
    ip_in_ranges,
    lint_condition,
    parse_condition,
    to_snake_case,
)
from pbx_authz.features.policies.conditions.nodes import And, Compare, Contains, HasRole, Literal, Not

from .conftest import AFTER_HOURS_NOW, BUSINESS_HOURS_NOW, make_context


@pytest.fixture
def evaluator():
    return ConditionEvaluator()


class TestConditionParser:
    """Test parsing into expression trees."""

    def test_empty_condition_is_true(self):
        assert parse_condition("") == Literal(True)
        assert parse_condition("   ") == Literal(True)

    def test_operator_aliases(self):
        tree = parse_condition("hasRole('admin') and not user.domainId === 'acme'")

        assert isinstance(tree, And)
        assert isinstance(tree.operands[0], HasRole)
        assert isinstance(tree.operands[1], Not)
        assert isinstance(tree.operands[1].operand, Compare)
        assert tree.operands[1].operand.op == "=="

    def test_includes_method(self):
        tree = parse_condition("user.roles.includes('operator')")

        assert isinstance(tree, Contains)
        assert tree.item == Literal("operator")

    def test_parsed_trees_are_cached(self):
        assert parse_condition("hasRole('viewer')") is parse_condition("hasRole('viewer')")

    @pytest.mark.parametrize("condition", [
        "user.role ==",
        "hasRole(",
        "eval('1+1')",
        "user.domainId == 'acme' &&",
        "timeBetween('25:00', '18:00')",
        "ipInRange('not-an-ip')",
        "dayOfWeek('someday')",
        "__import__('os')",
        "user.name; drop",
    ])
    def test_malformed_conditions_rejected(self, condition):
        with pytest.raises(ConditionSyntaxError):
            parse_condition(condition)

    def test_syntax_error_reports_position(self):
        with pytest.raises(ConditionSyntaxError) as exc_info:
            parse_condition("hasRole('a') && )")

        assert exc_info.value.position == 16


class TestConditionEvaluator:
    """Test evaluating expression trees against a context."""

    def test_role_functions(self, evaluator):
        context = make_context(roles=("operator", "viewer"))

        assert evaluator.evaluate("hasRole('viewer')", context)
        assert evaluator.evaluate("hasAnyRole('admin', 'operator')", context)
        assert not evaluator.evaluate("hasRole('admin')", context)

    def test_permission_function_honours_wildcards(self, evaluator):
        context = make_context(permissions=("users:manage",))

        assert evaluator.evaluate("hasPermission('users:delete')", context)
        assert not evaluator.evaluate("hasPermission('billing:read')", context)

    def test_camel_case_attribute_paths(self, evaluator):
        context = make_context(domain_id="acme", client_ip="10.1.2.3")

        assert evaluator.evaluate("user.domainId == 'acme'", context)
        assert evaluator.evaluate("environment.clientIp == '10.1.2.3'", context)
        assert evaluator.evaluate("resource.domain_id == user.domainId", context)

    def test_business_hours_flag(self, evaluator):
        assert evaluator.evaluate("environment.isBusinessHours == true", make_context(now=BUSINESS_HOURS_NOW))
        assert evaluator.evaluate("environment.isBusinessHours == false", make_context(now=AFTER_HOURS_NOW))

    def test_free_form_attributes(self, evaluator):
        context = make_context(user_attributes={"department": "support", "clearance": 3})

        assert evaluator.evaluate("user.department == 'support'", context)
        assert evaluator.evaluate("user.clearance >= 3", context)
        assert evaluator.evaluate("hasAttribute(user.department)", context)
        assert not evaluator.evaluate("hasAttribute(user.manager)", context)

    def test_missing_attribute_is_none(self, evaluator):
        context = make_context()

        assert evaluator.evaluate("user.manager == null", context)
        assert not evaluator.evaluate("user.manager > 3", context)

    def test_membership(self, evaluator):
        context = make_context(resource_type="cdr", action="read")

        assert evaluator.evaluate("action in ['read', 'update']", context)
        assert evaluator.evaluate("resource.type not in ['billing', 'security']", context)
        assert evaluator.evaluate("contains(user.roles, 'operator')", context)

    def test_enum_values_compare_as_strings(self, evaluator):
        context = make_context()

        assert evaluator.evaluate("resource.dataClassification == 'PUBLIC'", context)
        assert evaluator.evaluate("environment.deviceType == 'desktop'", context)

    def test_string_tests(self, evaluator):
        context = make_context()

        assert evaluator.evaluate("user.username.startsWith('al')", context)
        assert evaluator.evaluate("endsWith(user.username, 'ice')", context)

    def test_time_between(self, evaluator):
        morning = make_context(now=datetime(2024, 3, 6, 9, 0, tzinfo=timezone.utc))
        night = make_context(now=datetime(2024, 3, 6, 23, 30, tzinfo=timezone.utc))

        assert evaluator.evaluate("timeBetween('09:00', '18:00')", morning)
        assert not evaluator.evaluate("timeBetween('09:00', '18:00')", night)
        # Ranges wrap midnight when start is after end
        assert evaluator.evaluate("timeBetween('22:00', '06:00')", night)
        assert not evaluator.evaluate("timeBetween('22:00', '06:00')", morning)

    def test_day_of_week_sunday_is_zero(self, evaluator):
        sunday = make_context(now=datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc))
        wednesday = make_context(now=BUSINESS_HOURS_NOW)

        assert evaluator.evaluate("dayOfWeek(0, 6)", sunday)
        assert evaluator.evaluate("dayOfWeek('wed')", wednesday)
        assert not evaluator.evaluate("dayOfWeek('saturday', 'sunday')", wednesday)

    def test_ip_in_range(self, evaluator):
        context = make_context(client_ip="192.168.10.20")

        assert evaluator.evaluate("ipInRange('192.168.0.0/16')", context)
        assert evaluator.evaluate("ipInRange(['10.0.0.0/8', '192.168.10.20'])", context)
        assert not evaluator.evaluate("ipInRange('10.0.0.0/8')", context)

    def test_ip_in_range_from_attribute(self, evaluator):
        context = make_context(client_ip="10.2.0.1", user_attributes={"allowed_ip_ranges": ["10.2.0.0/24"]})

        assert evaluator.evaluate("ipInRange(user.allowedIpRanges)", context)

    def test_boolean_composition(self, evaluator):
        context = make_context(roles=("operator",), now=AFTER_HOURS_NOW)

        assert evaluator.evaluate(
            "hasRole('operator') && (environment.isBusinessHours || user.domainId == 'acme')", context
        )
        assert not evaluator.evaluate("!hasRole('operator') || environment.isBusinessHours", context)


class TestHelpers:
    """Test module-level helpers."""

    def test_to_snake_case(self):
        assert to_snake_case("domainId") == "domain_id"
        assert to_snake_case("clientIP") == "client_ip"
        assert to_snake_case("already_snake") == "already_snake"

    def test_ip_in_ranges_ipv6_and_invalid(self):
        assert ip_in_ranges("2001:db8::1", ["2001:db8::/32"])
        assert not ip_in_ranges("unknown", ["10.0.0.0/8"])
        assert not ip_in_ranges(None, ["10.0.0.0/8"])
        assert not ip_in_ranges("10.0.0.1", ["garbage"])


class TestLintCondition:
    """Test authoring feedback."""

    def test_clean_condition(self):
        assert lint_condition("hasRole('admin') && environment.isBusinessHours") == []

    def test_syntax_error_reported(self):
        problems = lint_condition("hasRole('admin') &&")

        assert len(problems) == 1
        assert problems[0].startswith("Syntax error")

    def test_constant_condition_reported(self):
        assert lint_condition("true") == ["Condition is constant and does not depend on the request"]

    def test_custom_attribute_reported(self):
        problems = lint_condition("user.department == 'support'")

        assert problems == [
            "'user.department' is not a built-in attribute and is looked up in user.attributes"
        ]
