"""Install commands.

``install`` renders the whole control plane. The installation can also be
split in two stages run by different users:

- ``install config``: cluster-wide resources (RBAC, CRDs, webhooks), which
  need cluster-admin privileges
- ``install control-plane``: the namespaced control-plane workloads, once
  the config stage has been applied

The manifest is written to stdout, ready to pipe into ``kubectl apply -f -``.
"""

from __future__ import annotations

import sys
from dataclasses import replace
from typing import Annotated

import typer

from ..orchestrator import InstallMode, InstallOrchestrator
from ..values import Setting, new_defaults, parse_setting
from .console import with_error_handling
from .context import CLIContext, build_cli_context, get_cli_context

install_app = typer.Typer(
    help="Output Kubernetes configs to install the Linkerd control plane",
    rich_markup_mode="rich",
)

_GROUP_SETTINGS = "linkerd_install.group_settings"


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

SetOption = Annotated[
    list[str] | None,
    typer.Option(
        "--set",
        "-s",
        help="Install setting as name=value, repeatable (e.g. proxy-log-level=debug)",
    ),
]
NamespaceOption = Annotated[
    str | None,
    typer.Option(
        "--linkerd-namespace",
        "-l",
        help="Namespace in which Linkerd is installed",
    ),
]
IgnoreClusterOption = Annotated[
    bool,
    typer.Option(
        "--ignore-cluster",
        help="Ignore the current Kubernetes cluster when checking for existing "
        "cluster configuration",
    ),
]


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------


def _settings(namespace: str | None, sets: list[str] | None) -> list[Setting]:
    settings: list[Setting] = []
    if namespace:
        settings.append(("linkerd-namespace", namespace))
    settings.extend(parse_setting(text) for text in sets or [])
    return settings


def _install(
    cli_context: CLIContext, mode: InstallMode, settings: list[Setting]
) -> None:
    orchestrator = InstallOrchestrator(cli_context.options)
    stdout = sys.stdout.buffer
    orchestrator.run(new_defaults(), settings, mode, stdout)
    stdout.flush()
    for warning in orchestrator.warnings:
        cli_context.console.warn(warning)


def _stage_context(
    ctx: typer.Context, ignore_cluster: bool, skip_checks: bool = False
) -> CLIContext:
    cli_context = get_cli_context(ctx)
    options = replace(
        cli_context.options,
        ignore_cluster=cli_context.options.ignore_cluster or ignore_cluster,
        skip_checks=skip_checks,
    )
    return replace(cli_context, options=options)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@install_app.callback(invoke_without_command=True)
@with_error_handling
def install(
    ctx: typer.Context,
    sets: SetOption = None,
    namespace: NamespaceOption = None,
    ignore_cluster: IgnoreClusterOption = False,
    kubeconfig: Annotated[
        str | None,
        typer.Option("--kubeconfig", help="Path to the kubeconfig file to use for CLI requests"),
    ] = None,
    kube_context: Annotated[
        str | None,
        typer.Option("--context", help="Name of the kubeconfig context to use"),
    ] = None,
    impersonate: Annotated[
        str | None,
        typer.Option("--as", help="Username to impersonate for Kubernetes operations"),
    ] = None,
    impersonate_group: Annotated[
        list[str] | None,
        typer.Option("--as-group", help="Group to impersonate for Kubernetes operations"),
    ] = None,
    api_addr: Annotated[
        str | None,
        typer.Option("--api-addr", help="Override kubeconfig and communicate directly with the control plane at host:port"),
    ] = None,
) -> None:
    """Output Kubernetes configs to install Linkerd.

    Without a subcommand the whole control plane is rendered: the cluster is
    checked for an existing installation, identity issuer credentials are
    generated (unless supplied) and the values are validated first.

    Examples:
        linkerd-install install | kubectl apply -f -
        linkerd-install install --ignore-cluster --set ha=true
        linkerd-install install config | kubectl apply -f -
        linkerd-install install control-plane | kubectl apply -f -
    """
    ctx.obj = build_cli_context(
        kubeconfig_path=kubeconfig,
        kube_context=kube_context,
        impersonate=impersonate,
        impersonate_group=tuple(impersonate_group) if impersonate_group else None,
        api_addr=api_addr,
        ignore_cluster=ignore_cluster,
    )
    settings = _settings(namespace, sets)

    if ctx.invoked_subcommand is None:
        _install(ctx.obj, InstallMode.FULL, settings)
    else:
        ctx.meta[_GROUP_SETTINGS] = settings


@install_app.command("config")
@with_error_handling
def install_config(
    ctx: typer.Context,
    sets: SetOption = None,
    namespace: NamespaceOption = None,
    ignore_cluster: IgnoreClusterOption = False,
) -> None:
    """Output Kubernetes cluster-wide resources to install Linkerd.

    Renders the resources that require cluster-level privileges: the
    namespace, RBAC, custom resource definitions and webhook configurations.
    Only settings shared by every stage are accepted.
    """
    settings = ctx.meta.get(_GROUP_SETTINGS, []) + _settings(namespace, sets)
    _install(_stage_context(ctx, ignore_cluster), InstallMode.CONFIG, settings)


@install_app.command("control-plane")
@with_error_handling
def install_control_plane(
    ctx: typer.Context,
    sets: SetOption = None,
    namespace: NamespaceOption = None,
    ignore_cluster: IgnoreClusterOption = False,
    skip_checks: Annotated[
        bool,
        typer.Option(
            "--skip-checks",
            help="Skip checks for namespace existence",
        ),
    ] = False,
) -> None:
    """Output Kubernetes control plane resources to install Linkerd.

    Requires the resources rendered by [bold]install config[/bold] to be
    applied first; use --skip-checks to bypass that check.
    """
    settings = ctx.meta.get(_GROUP_SETTINGS, []) + _settings(namespace, sets)
    _install(
        _stage_context(ctx, ignore_cluster, skip_checks),
        InstallMode.CONTROL_PLANE,
        settings,
    )
