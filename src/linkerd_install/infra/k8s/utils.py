"""Helpers for driving the async Kubernetes API from synchronous code."""

from __future__ import annotations

import asyncio
import concurrent.futures
from collections.abc import Coroutine
from typing import Any, TypeVar

T = TypeVar("T")


def run_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine to completion from synchronous code.

    Each call gets its own event loop, so clients bound to a loop must be
    created inside the coroutine.

    Example:
        from linkerd_install.infra.k8s import Kr8sKubernetesAPI, run_sync

        api = Kr8sKubernetesAPI(kube_context="kind-linkerd")
        version = run_sync(api.get_version())
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    # A loop is already running in this thread
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()
