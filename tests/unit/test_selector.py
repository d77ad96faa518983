"""Tests for cluster selection."""

from __future__ import annotations

import pytest

from pagerduty_operator.models import BindingConfigError, ClusterDeployment, IntegrationBinding, SecretReference
from pagerduty_operator.reconciler import is_in_scope, matches_selector, validate_selector


def make_binding(selector: dict) -> IntegrationBinding:
    return IntegrationBinding(
        name="osd",
        namespace="pagerduty-operator",
        escalation_policy="PESC123",
        resolve_timeout=0,
        acknowledge_timeout=0,
        service_prefix="osd",
        cluster_selector=selector,
        api_key_secret_ref=SecretReference("pagerduty-api-key", "pagerduty-operator"),
        target_secret_ref=SecretReference("pd-secret", "openshift-monitoring"),
    )


def make_cluster(labels: dict, installed: bool = True, deleting: bool = False) -> ClusterDeployment:
    return ClusterDeployment(
        name="test-cluster",
        namespace="uhc-test",
        cluster_name="test-cluster",
        labels=labels,
        installed=installed,
        deleting=deleting,
        finalizers=[],
    )


class TestMatchesSelector:
    """Test cases for label selector evaluation."""

    def test_empty_selector_matches_everything(self):
        """Test that an empty selector matches any labels."""
        assert matches_selector({}, {}) is True
        assert matches_selector({}, {"a": "b"}) is True

    def test_match_labels(self):
        """Test matchLabels equality."""
        selector = {"matchLabels": {"env": "prod", "tier": "gold"}}
        assert matches_selector(selector, {"env": "prod", "tier": "gold", "x": "y"}) is True
        assert matches_selector(selector, {"env": "prod"}) is False
        assert matches_selector(selector, {"env": "dev", "tier": "gold"}) is False

    @pytest.mark.parametrize(
        "operator,values,labels,expected",
        [
            ("In", ["a", "b"], {"k": "a"}, True),
            ("In", ["a", "b"], {"k": "c"}, False),
            ("In", ["a"], {}, False),
            ("NotIn", ["a"], {"k": "b"}, True),
            ("NotIn", ["a"], {"k": "a"}, False),
            ("NotIn", ["a"], {}, True),
            ("Exists", [], {"k": ""}, True),
            ("Exists", [], {}, False),
            ("DoesNotExist", [], {}, True),
            ("DoesNotExist", [], {"k": "a"}, False),
        ],
    )
    def test_match_expressions(self, operator, values, labels, expected):
        """Test each supported matchExpressions operator."""
        selector = {"matchExpressions": [{"key": "k", "operator": operator, "values": values}]}
        assert matches_selector(selector, labels) is expected

    def test_labels_and_expressions_are_anded(self):
        """Test that every requirement must hold."""
        selector = {
            "matchLabels": {"env": "prod"},
            "matchExpressions": [{"key": "legacy", "operator": "DoesNotExist"}],
        }
        assert matches_selector(selector, {"env": "prod"}) is True
        assert matches_selector(selector, {"env": "prod", "legacy": "true"}) is False


class TestValidateSelector:
    """Test cases for selector validation."""

    def test_valid_selector(self):
        """Test that a well-formed selector passes."""
        validate_selector({
            "matchLabels": {"env": "prod"},
            "matchExpressions": [
                {"key": "a", "operator": "In", "values": ["x"]},
                {"key": "b", "operator": "Exists"},
            ],
        })

    @pytest.mark.parametrize(
        "expression,message",
        [
            ({"operator": "Exists"}, "missing a key"),
            ({"key": "a", "operator": "Gt", "values": ["1"]}, "not supported"),
            ({"key": "a", "operator": "In"}, "requires values"),
            ({"key": "a", "operator": "Exists", "values": ["x"]}, "does not take values"),
        ],
    )
    def test_invalid_expressions(self, expression, message):
        """Test that malformed expressions are rejected."""
        with pytest.raises(BindingConfigError, match=message):
            validate_selector({"matchExpressions": [expression]})

    def test_match_labels_must_be_mapping(self):
        """Test that matchLabels must be a dictionary."""
        with pytest.raises(BindingConfigError, match="mapping"):
            validate_selector({"matchLabels": ["env=prod"]})


class TestIsInScope:
    """Test cases for cluster scope."""

    def test_selected_installed_cluster(self):
        """Test that a selected, installed cluster is in scope."""
        binding = make_binding({"matchLabels": {"managed": "true"}})
        assert is_in_scope(binding, make_cluster({"managed": "true"})) is True

    def test_not_installed(self):
        """Test that an uninstalled cluster is out of scope."""
        binding = make_binding({})
        assert is_in_scope(binding, make_cluster({}, installed=False)) is False

    def test_deleting(self):
        """Test that a deleting cluster is out of scope."""
        binding = make_binding({})
        assert is_in_scope(binding, make_cluster({}, deleting=True)) is False

    def test_noalerts_label(self):
        """Test that the noalerts label opts a cluster out regardless of its value."""
        binding = make_binding({})
        assert is_in_scope(binding, make_cluster({"api.openshift.com/noalerts": ""})) is False

    def test_selector_mismatch(self):
        """Test that an unselected cluster is out of scope."""
        binding = make_binding({"matchLabels": {"managed": "true"}})
        assert is_in_scope(binding, make_cluster({"managed": "false"})) is False
