"""Unit tests for install precondition validation."""

import pytest

from linkerd_install.errors import (
    ConflictError,
    GlobalResourcesExistError,
    ReachabilityError,
    TransportError,
)
from linkerd_install.healthcheck import (
    check_existing_config,
    check_no_stored_overrides,
    run_preconditions,
)
from linkerd_install.options import HealthCheckOptions


class TestRunPreconditions:
    """Test the reduced outcome of the precondition checks."""

    def test_clean_cluster_returns_none(self, fake_api) -> None:
        options = HealthCheckOptions(namespace="linkerd")

        assert run_preconditions(options, lambda _: fake_api) is None

    def test_existing_resources_return_conflict(self, fake_api) -> None:
        """Test that global resources of a previous install are reported."""
        fake_api.add_cluster_resource(
            "MutatingWebhookConfiguration",
            "linkerd-proxy-injector-webhook-config",
            "admissionregistration.k8s.io",
        )

        error = run_preconditions(HealthCheckOptions(namespace="linkerd"), lambda _: fake_api)

        assert isinstance(error, GlobalResourcesExistError)
        assert error.resources == [
            "mutatingwebhookconfiguration.admissionregistration.k8s.io/"
            "linkerd-proxy-injector-webhook-config"
        ]
        assert "kubectl delete -f -" in error.message

    def test_unreachable_cluster_returns_reachability_error(self, fake_api) -> None:
        fake_api.fail("Version", TransportError("i/o timeout"))
        fake_api.add_cluster_resource("ClusterRole", "linkerd-x", "rbac.authorization.k8s.io")

        error = run_preconditions(HealthCheckOptions(namespace="linkerd"), lambda _: fake_api)

        assert isinstance(error, ReachabilityError)
        assert "linkerd-x" not in error.message
        assert "i/o timeout" in error.message


class TestCheckExistingConfig:
    """Test detection of an existing control-plane configuration."""

    def test_everything_absent_passes(self, fake_api) -> None:
        check_existing_config(fake_api, "linkerd")

        assert fake_api.calls == [("Namespace", None, "linkerd")]

    def test_empty_namespace_passes(self, fake_api) -> None:
        """Test that a namespace without config objects passes."""
        fake_api.add("Namespace", "linkerd")

        check_existing_config(fake_api, "linkerd")

        assert [call[0] for call in fake_api.calls] == ["Namespace", "ConfigMap", "Secret"]

    def test_config_map_is_a_conflict(self, fake_api) -> None:
        fake_api.add("Namespace", "linkerd")
        fake_api.add("ConfigMap", "linkerd-config", "linkerd")

        with pytest.raises(ConflictError, match="'linkerd-config' config map already exists"):
            check_existing_config(fake_api, "linkerd")

    def test_overrides_secret_alone_is_a_conflict(self, fake_api) -> None:
        """Test that the override Secret is a conflict without the ConfigMap."""
        fake_api.add("Namespace", "linkerd")
        fake_api.add("Secret", "linkerd-config-overrides", "linkerd")

        with pytest.raises(ConflictError) as exc_info:
            check_existing_config(fake_api, "linkerd")

        assert exc_info.value.reason == "'linkerd-config-overrides' secret already exists"
        assert "--ignore-cluster" in exc_info.value.message
        assert "'linkerd' namespace" in exc_info.value.message

    @pytest.mark.parametrize("kind", ["Namespace", "ConfigMap", "Secret"])
    def test_other_errors_propagate_unchanged(self, fake_api, kind: str) -> None:
        """Test that failures other than not-found are not swallowed."""
        error = TransportError("forbidden")
        fake_api.add("Namespace", "linkerd")
        fake_api.fail(kind, error)

        with pytest.raises(TransportError) as exc_info:
            check_existing_config(fake_api, "linkerd")

        assert exc_info.value is error


class TestCheckNoStoredOverrides:
    def test_absent_secret_passes(self, fake_api) -> None:
        check_no_stored_overrides(fake_api, "linkerd")

    def test_present_secret_is_a_conflict(self, fake_api) -> None:
        fake_api.add("Secret", "linkerd-config-overrides", "mesh")

        with pytest.raises(ConflictError, match="'mesh' namespace"):
            check_no_stored_overrides(fake_api, "mesh")
