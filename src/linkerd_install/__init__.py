"""Staged Linkerd control-plane installation.

The package turns a set of install settings into the Kubernetes manifests
for the Linkerd control plane:

- values: the chart value model, settings registry, diff engine and add-ons
- charts: stage template registry, Jinja2 template engine and render pipeline
- healthcheck: precondition checks and their error precedence
- infra.k8s: the cluster API client
- orchestrator: the install state machine tying it all together
"""

__version__ = "0.1.0"
