"""Unit tests for install settings."""

from pathlib import Path

import pytest

from linkerd_install.errors import ParseError
from linkerd_install.values import FlagGroup, Values, apply_overrides, flag_set, parse_setting
from linkerd_install.values.flags import EXTERNAL_ISSUER_SCHEME


class TestParseSetting:
    """Test parsing of name=value settings."""

    def test_splits_on_first_equals(self) -> None:
        """Test that only the first '=' separates name and value."""
        assert parse_setting("proxy-log-level=warn,linkerd=info") == (
            "proxy-log-level",
            "warn,linkerd=info",
        )

    def test_strips_leading_dashes(self) -> None:
        """Test that settings may be written like command line flags."""
        assert parse_setting("--ha=true") == ("ha", "true")

    def test_empty_value_is_allowed(self) -> None:
        """Test that an empty value is kept."""
        assert parse_setting("proxy-cpu-limit=") == ("proxy-cpu-limit", "")

    @pytest.mark.parametrize("text", ["ha", "=true", ""])
    def test_invalid_setting_raises(self, text: str) -> None:
        """Test that malformed settings raise ParseError."""
        with pytest.raises(ParseError):
            parse_setting(text)


class TestFlagSet:
    """Test flag group selection."""

    def test_all_stage_flags(self) -> None:
        """Test the flags shared by every install command."""
        assert set(flag_set(FlagGroup.ALL_STAGE)) == {
            "linkerd-namespace",
            "cluster-domain",
            "linkerd-cni-enabled",
            "restrict-dashboard-privileges",
        }

    def test_no_groups_selects_every_flag(self) -> None:
        """Test that every group is selected by default."""
        every = flag_set()

        for group in FlagGroup:
            assert set(flag_set(group)) <= set(every)
        assert "ha" in every
        assert "proxy-log-level" in every
        assert "identity-external-issuer" in every

    def test_flag_names_are_unique_across_groups(self) -> None:
        """Test that no flag is registered in two groups."""
        total = sum(len(flag_set(group)) for group in FlagGroup)

        assert total == len(flag_set())


class TestApplyOverrides:
    """Test applying settings onto values."""

    def test_path_flag_sets_nested_field(self, defaults: Values) -> None:
        """Test that a path flag writes its target field."""
        apply_overrides(defaults, [("linkerd-namespace", "mesh")])

        assert defaults.namespace == "mesh"

    def test_values_are_coerced(self, defaults: Values) -> None:
        """Test that string values are coerced to the field type."""
        apply_overrides(
            defaults,
            [
                ("controller-replicas", "2"),
                ("linkerd-cni-enabled", "true"),
                ("proxy-uid", "3000"),
            ],
        )

        assert defaults.controller_replicas == 2
        assert defaults.global_.cni_enabled is True
        assert defaults.global_.proxy.uid == 3000

    def test_settings_apply_in_order(self, defaults: Values) -> None:
        """Test that a later setting wins."""
        apply_overrides(
            defaults, [("proxy-log-level", "debug"), ("proxy-log-level", "trace")]
        )

        assert defaults.global_.proxy.log_level == "trace"

    def test_unknown_setting_raises(self, defaults: Values) -> None:
        """Test that an unregistered name raises ParseError."""
        with pytest.raises(ParseError, match="unknown setting 'no-such-flag'"):
            apply_overrides(defaults, [("no-such-flag", "x")])

    def test_setting_outside_active_flags_raises(self, defaults: Values) -> None:
        """Test that a restricted flag set rejects other groups."""
        with pytest.raises(ParseError, match="unknown setting 'ha'"):
            apply_overrides(defaults, [("ha", "true")], flag_set(FlagGroup.ALL_STAGE))

    def test_coercion_failure_raises(self, defaults: Values) -> None:
        """Test that an uncoercible value raises ParseError naming the flag."""
        with pytest.raises(ParseError, match="controller-replicas"):
            apply_overrides(defaults, [("controller-replicas", "many")])

    def test_ha_sets_replicas_affinity_and_policy(self, defaults: Values) -> None:
        """Test the HA applier."""
        apply_overrides(defaults, [("ha", "true")])

        assert defaults.controller_replicas == 3
        assert defaults.enable_pod_anti_affinity is True
        assert defaults.webhook_failure_policy == "Fail"

    def test_ha_false_changes_nothing(self, defaults: Values) -> None:
        """Test that disabling HA leaves the defaults."""
        apply_overrides(defaults, [("ha", "false")])

        assert defaults.controller_replicas == 1
        assert defaults.enable_pod_anti_affinity is False

    def test_external_issuer_sets_scheme(self, defaults: Values) -> None:
        """Test the external issuer applier."""
        apply_overrides(defaults, [("identity-external-issuer", "true")])

        assert defaults.identity.issuer.scheme == EXTERNAL_ISSUER_SCHEME

    def test_skip_ports_accept_lists(self, defaults: Values) -> None:
        """Test that port lists are joined with commas."""
        apply_overrides(
            defaults,
            [("skip-inbound-ports", [25, 587]), ("skip-outbound-ports", "3306,5432")],
        )

        assert defaults.global_.proxy_init.ignore_inbound_ports == "25,587"
        assert defaults.global_.proxy_init.ignore_outbound_ports == "3306,5432"

    def test_file_flag_reads_content(self, defaults: Values, tmp_path: Path) -> None:
        """Test that file flags store the file content."""
        anchors = tmp_path / "ca.crt"
        anchors.write_text("PEM")

        apply_overrides(defaults, [("identity-trust-anchors-file", str(anchors))])

        assert defaults.global_.identity_trust_anchors_pem == "PEM"

    def test_missing_file_raises(self, defaults: Values, tmp_path: Path) -> None:
        """Test that an unreadable file raises ParseError."""
        with pytest.raises(ParseError, match="identity-issuer-key-file"):
            apply_overrides(
                defaults,
                [("identity-issuer-key-file", str(tmp_path / "missing.key"))],
            )


class TestAddonConfig:
    """Test the add-on configuration setting."""

    def test_blocks_are_merged(self, defaults: Values, tmp_path: Path) -> None:
        """Test that add-on blocks merge over the current ones."""
        config = tmp_path / "addons.yaml"
        config.write_text(
            "tracing:\n  enabled: true\ngrafana:\n  image:\n    name: grafana/grafana\n"
        )

        apply_overrides(defaults, [("addon-config", str(config))])

        assert defaults.tracing == {"enabled": True}
        assert defaults.grafana == {
            "enabled": True,
            "image": {"name": "grafana/grafana"},
        }

    def test_unknown_addon_raises(self, defaults: Values, tmp_path: Path) -> None:
        """Test that an unknown add-on name raises ParseError."""
        config = tmp_path / "addons.yaml"
        config.write_text("prometheus:\n  enabled: true\n")

        with pytest.raises(ParseError, match="unknown add-on 'prometheus'"):
            apply_overrides(defaults, [("addon-config", str(config))])

    def test_non_mapping_document_raises(
        self, defaults: Values, tmp_path: Path
    ) -> None:
        """Test that a list document raises ParseError."""
        config = tmp_path / "addons.yaml"
        config.write_text("- grafana\n")

        with pytest.raises(ParseError, match="must be a mapping"):
            apply_overrides(defaults, [("addon-config", str(config))])
