"""Unit tests for the install orchestrator."""

import io
from unittest.mock import MagicMock

import pytest

from linkerd_install.charts import Stage, decode_overrides
from linkerd_install.errors import (
    ConflictError,
    GlobalResourcesExistError,
    GlobalResourcesMissingError,
    ParseError,
    ReachabilityError,
    TransportError,
    ValidationError,
)
from linkerd_install.orchestrator import InstallMode, InstallOrchestrator, InstallState
from linkerd_install.options import InstallOptions
from linkerd_install.values import FlagGroup, Values

S = InstallState


def add_global_resources(fake_api) -> None:
    fake_api.add_cluster_resource(
        "ClusterRole", "linkerd-linkerd-identity", "rbac.authorization.k8s.io"
    )


@pytest.fixture
def client_factory(fake_api):
    return MagicMock(return_value=fake_api)


@pytest.fixture
def make_orchestrator(client_factory, fake_api, fake_credentials):
    """Build an orchestrator wired to the fake cluster."""

    def make(**options) -> InstallOrchestrator:
        return InstallOrchestrator(
            InstallOptions(**options),
            client_factory=client_factory,
            health_api_factory=lambda _: fake_api,
            credentials=fake_credentials,
        )

    return make


class TestInstallMode:
    """Test install mode properties."""

    @pytest.mark.parametrize(
        ("mode", "stage"),
        [
            (InstallMode.FULL, Stage.ALL),
            (InstallMode.CONFIG, Stage.CONFIG),
            (InstallMode.CONTROL_PLANE, Stage.CONTROL_PLANE),
        ],
    )
    def test_stage(self, mode: InstallMode, stage: Stage) -> None:
        assert mode.stage is stage

    def test_config_mode_accepts_all_stage_flags_only(self) -> None:
        assert InstallMode.CONFIG.flag_groups == (FlagGroup.ALL_STAGE,)
        assert "linkerd-namespace" in InstallMode.CONFIG.flags()
        assert "ha" not in InstallMode.CONFIG.flags()

    def test_other_modes_accept_every_flag(self) -> None:
        assert set(InstallMode.FULL.flag_groups) == set(FlagGroup)
        assert "proxy-log-level" in InstallMode.CONTROL_PLANE.flags()


class TestFullInstall:
    """Test the full install path."""

    def test_offline_install(self, defaults: Values, make_orchestrator, client_factory) -> None:
        """Test a full install with the cluster ignored."""
        orchestrator = make_orchestrator(ignore_cluster=True)
        out = io.BytesIO()

        manifest = orchestrator.run(defaults, [], InstallMode.FULL, out)

        assert orchestrator.history == [
            S.START,
            S.EXISTING_INSTALL_CHECK,
            S.CREDENTIAL_INIT,
            S.VALUE_VALIDATION,
            S.RENDER,
            S.DONE,
        ]
        assert orchestrator.state is S.DONE
        assert out.getvalue() == manifest
        client_factory.assert_not_called()

    def test_generated_credentials_are_rendered(
        self, defaults: Values, make_orchestrator, fake_generator
    ) -> None:
        """Test that the rendered manifest carries the issuer and configs."""
        manifest = make_orchestrator(ignore_cluster=True).run(
            defaults, [], InstallMode.FULL, io.BytesIO()
        )

        text = manifest.decode()
        assert "linkerd.io/identity-issuer-expiry: \"2027-10-18T12:00:00Z\"" in text
        assert '"linkerdNamespace": "linkerd"' in text
        overrides = decode_overrides(manifest)
        assert overrides["identity"]["issuer"]["tls"]["crtPEM"] == (
            fake_generator.material.issuer_crt_pem
        )
        assert "configs" not in overrides

    def test_cluster_install(
        self, defaults: Values, make_orchestrator, client_factory, fake_api
    ) -> None:
        """Test a full install against a clean cluster."""
        orchestrator = make_orchestrator()

        orchestrator.run(
            defaults, [("linkerd-namespace", "mesh")], InstallMode.FULL, io.BytesIO()
        )

        assert orchestrator.history == [
            S.START,
            S.CLUSTER_CHECK,
            S.EXISTING_INSTALL_CHECK,
            S.CREDENTIAL_INIT,
            S.VALUE_VALIDATION,
            S.RENDER,
            S.DONE,
        ]
        client_factory.assert_called_once_with(orchestrator.options, 30.0)
        assert ("Version", None, None) in fake_api.calls
        assert ("Secret", "mesh", "linkerd-config-overrides") in fake_api.calls

    def test_unreachable_cluster_aborts(
        self, defaults: Values, make_orchestrator, fake_api
    ) -> None:
        """Test that a failed version query is a reachability error."""
        fake_api.fail("Version", TransportError("connection refused"))
        orchestrator = make_orchestrator()
        out = io.BytesIO()

        with pytest.raises(ReachabilityError) as exc_info:
            orchestrator.run(defaults, [], InstallMode.FULL, out)

        assert "connection refused" in exc_info.value.message
        assert "--ignore-cluster" in exc_info.value.message
        assert orchestrator.history == [S.START, S.CLUSTER_CHECK, S.ABORTED]
        assert out.getvalue() == b""

    def test_client_construction_failure_is_a_reachability_error(
        self, defaults: Values, fake_credentials
    ) -> None:
        """Test that a client that cannot be built is reported as unreachable."""
        orchestrator = InstallOrchestrator(
            InstallOptions(),
            client_factory=MagicMock(side_effect=RuntimeError("no kubeconfig")),
            credentials=fake_credentials,
        )

        with pytest.raises(ReachabilityError) as exc_info:
            orchestrator.run(defaults, [], InstallMode.FULL, io.BytesIO())

        assert "no kubeconfig" in exc_info.value.message
        assert "--ignore-cluster" in exc_info.value.message
        assert orchestrator.history == [S.START, S.CLUSTER_CHECK, S.ABORTED]

    def test_stored_overrides_abort(
        self, defaults: Values, make_orchestrator, fake_api
    ) -> None:
        fake_api.add("Secret", "linkerd-config-overrides", "linkerd")
        orchestrator = make_orchestrator()

        with pytest.raises(ConflictError, match="linkerd-config-overrides"):
            orchestrator.run(defaults, [], InstallMode.FULL, io.BytesIO())

        assert orchestrator.history[-2:] == [S.EXISTING_INSTALL_CHECK, S.ABORTED]

    def test_unknown_setting_aborts_before_any_step(
        self, defaults: Values, make_orchestrator
    ) -> None:
        orchestrator = make_orchestrator(ignore_cluster=True)

        with pytest.raises(ParseError):
            orchestrator.run(defaults, [("no-such-flag", "1")], InstallMode.FULL, io.BytesIO())

        assert orchestrator.history == [S.START, S.ABORTED]

    def test_invalid_values_abort_during_validation(
        self, defaults: Values, make_orchestrator
    ) -> None:
        orchestrator = make_orchestrator(ignore_cluster=True)
        out = io.BytesIO()

        with pytest.raises(ValidationError):
            orchestrator.run(defaults, [("controller-replicas", "0")], InstallMode.FULL, out)

        assert orchestrator.history[-2:] == [S.VALUE_VALIDATION, S.ABORTED]
        assert out.getvalue() == b""

    def test_render_failure_writes_nothing(self, defaults: Values, fake_credentials) -> None:
        """Test that output is only written after a complete render."""
        engine = MagicMock()
        engine.render.side_effect = [b"---\nkind: Namespace\n", TransportError("late")]
        orchestrator = InstallOrchestrator(
            InstallOptions(ignore_cluster=True),
            credentials=fake_credentials,
            engine=engine,
        )
        out = io.BytesIO()

        with pytest.raises(TransportError):
            orchestrator.run(defaults, [], InstallMode.FULL, out)

        assert out.getvalue() == b""
        assert orchestrator.history[-2:] == [S.RENDER, S.ABORTED]


class TestConfigInstall:
    """Test the config-stage path."""

    def test_offline_config(self, defaults: Values, make_orchestrator, fake_credentials) -> None:
        orchestrator = make_orchestrator(ignore_cluster=True)

        manifest = orchestrator.run(defaults, [], InstallMode.CONFIG, io.BytesIO())

        assert orchestrator.history == [S.START, S.RENDER, S.DONE]
        assert b"linkerd2/templates/controller.yaml" not in manifest
        assert defaults.identity.issuer.tls.crt_pem == ""

    def test_clean_cluster(self, defaults: Values, make_orchestrator) -> None:
        orchestrator = make_orchestrator()

        orchestrator.run(defaults, [], InstallMode.CONFIG, io.BytesIO())

        assert orchestrator.history == [S.START, S.CLUSTER_CHECK, S.RENDER, S.DONE]

    def test_existing_global_resources_abort(
        self, defaults: Values, make_orchestrator, fake_api
    ) -> None:
        add_global_resources(fake_api)
        orchestrator = make_orchestrator()

        with pytest.raises(GlobalResourcesExistError):
            orchestrator.run(defaults, [], InstallMode.CONFIG, io.BytesIO())

        assert orchestrator.history == [S.START, S.CLUSTER_CHECK, S.ABORTED]

    def test_install_only_setting_is_rejected(
        self, defaults: Values, make_orchestrator
    ) -> None:
        orchestrator = make_orchestrator(ignore_cluster=True)

        with pytest.raises(ParseError, match="unknown setting 'ha'"):
            orchestrator.run(defaults, [("ha", "true")], InstallMode.CONFIG, io.BytesIO())


class TestControlPlaneInstall:
    """Test the control-plane-stage path."""

    def test_after_config_stage(
        self, defaults: Values, make_orchestrator, client_factory, fake_api, fake_generator
    ) -> None:
        """Test a control-plane install once the global resources exist."""
        add_global_resources(fake_api)
        fake_api.add("Namespace", "linkerd")
        orchestrator = make_orchestrator()

        manifest = orchestrator.run(defaults, [], InstallMode.CONTROL_PLANE, io.BytesIO())

        assert orchestrator.history == [
            S.START,
            S.EXISTING_INSTALL_CHECK,
            S.VALUE_VALIDATION,
            S.RENDER,
            S.DONE,
        ]
        client_factory.assert_called_once_with(orchestrator.options, None)
        assert fake_generator.trust_domains == []
        assert b"linkerd2/templates/psp.yaml" not in manifest
        assert b"linkerd2/templates/identity.yaml" in manifest

    def test_missing_global_resources_abort(
        self, defaults: Values, make_orchestrator
    ) -> None:
        orchestrator = make_orchestrator()

        with pytest.raises(GlobalResourcesMissingError, match="--skip-checks"):
            orchestrator.run(defaults, [], InstallMode.CONTROL_PLANE, io.BytesIO())

        assert orchestrator.history == [S.START, S.EXISTING_INSTALL_CHECK, S.ABORTED]

    def test_unreachable_cluster_aborts(
        self, defaults: Values, make_orchestrator, fake_api
    ) -> None:
        add_global_resources(fake_api)
        fake_api.fail("Version", TransportError("no route to host"))

        with pytest.raises(ReachabilityError):
            make_orchestrator().run(defaults, [], InstallMode.CONTROL_PLANE, io.BytesIO())

    def test_existing_config_aborts(
        self, defaults: Values, make_orchestrator, fake_api
    ) -> None:
        add_global_resources(fake_api)
        fake_api.add("Namespace", "linkerd")
        fake_api.add("ConfigMap", "linkerd-config", "linkerd")

        with pytest.raises(ConflictError, match="'linkerd-config' config map"):
            make_orchestrator().run(defaults, [], InstallMode.CONTROL_PLANE, io.BytesIO())

    def test_skip_checks_still_checks_existing_config(
        self, defaults: Values, make_orchestrator, fake_api, client_factory
    ) -> None:
        """Test that skipping checks bypasses only the global resource checks."""
        fake_api.add("Namespace", "linkerd")
        fake_api.add("Secret", "linkerd-config-overrides", "linkerd")

        with pytest.raises(ConflictError, match="linkerd-config-overrides"):
            make_orchestrator(skip_checks=True).run(
                defaults, [], InstallMode.CONTROL_PLANE, io.BytesIO()
            )

        assert ("Version", None, None) not in fake_api.calls
        client_factory.assert_called_once()

    def test_ignore_cluster_skips_every_check(
        self, defaults: Values, make_orchestrator, client_factory, fake_api
    ) -> None:
        orchestrator = make_orchestrator(ignore_cluster=True)

        orchestrator.run(defaults, [], InstallMode.CONTROL_PLANE, io.BytesIO())

        assert orchestrator.history[-1] is S.DONE
        client_factory.assert_not_called()
        assert fake_api.calls == []

    def test_missing_issuer_material_is_warned_about(
        self, defaults: Values, make_orchestrator, log_messages
    ) -> None:
        """Test the warning when no issuer certificate reaches the render."""
        orchestrator = make_orchestrator(ignore_cluster=True)

        orchestrator.run(defaults, [], InstallMode.CONTROL_PLANE, io.BytesIO())

        assert len(orchestrator.warnings) == 1
        assert "identity-issuer-certificate-file" in orchestrator.warnings[0]
        assert orchestrator.warnings[0] in log_messages

    def test_external_issuer_needs_no_issuer_material(
        self, defaults: Values, make_orchestrator
    ) -> None:
        orchestrator = make_orchestrator(ignore_cluster=True)

        orchestrator.run(
            defaults,
            [("identity-external-issuer", "true")],
            InstallMode.CONTROL_PLANE,
            io.BytesIO(),
        )

        assert orchestrator.warnings == []

    def test_full_install_does_not_warn(
        self, defaults: Values, make_orchestrator
    ) -> None:
        """Test that generated credentials satisfy the issuer."""
        orchestrator = make_orchestrator(ignore_cluster=True)

        orchestrator.run(defaults, [], InstallMode.FULL, io.BytesIO())

        assert orchestrator.warnings == []
