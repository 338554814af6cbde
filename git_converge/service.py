from __future__ import annotations

import asyncio
import logging
from typing import Any

from .config import Options, load_options
from .errors import ReconcileError
from .models import DesiredState, ResourceStatus, StatusResponse
from .reconciler import Reconciler

_LOGGER = logging.getLogger(__name__)


class ReconcileService:
    def __init__(self, options: Options | None = None, reconciler: Reconciler | None = None) -> None:
        self.options = options or load_options()
        self.reconciler = reconciler or Reconciler(
            git_binary=self.options.git_binary,
            network_timeout=self.options.network_timeout,
        )
        self.status = StatusResponse(
            healthy=True,
            resources=[ResourceStatus(path=item.path, healthy=True) for item in self.options.resources],
        )
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()

    async def run(self) -> None:
        while not self._stop.is_set():
            await self.trigger("scheduled")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.options.poll_interval)
            except asyncio.TimeoutError:
                continue

    async def trigger(self, reason: str, path: str | None = None) -> StatusResponse:
        targets = self._targets(path)
        async with self._lock:
            self.status = StatusResponse(
                healthy=self.status.healthy,
                pending_reason=reason,
                resources=self.status.resources,
            )
            updates = {}
            for desired in targets:
                updates[desired.path] = await asyncio.to_thread(self.reconcile_one, desired)
            resources = [updates.get(item.path, item) for item in self.status.resources]
            self.status = StatusResponse(
                healthy=all(item.healthy for item in resources),
                pending_reason=None,
                resources=resources,
            )
            return self.status

    def reconcile_all(self) -> list[ResourceStatus]:
        return [self.reconcile_one(desired) for desired in self.options.resources]

    def reconcile_one(self, desired: DesiredState) -> ResourceStatus:
        try:
            result = self.reconciler.reconcile(desired, noop=self.options.noop)
        except ReconcileError as exc:
            _LOGGER.error("Reconcile of %s failed: %s", desired.path, exc)
            return ResourceStatus(
                path=desired.path, healthy=False, error=str(exc), retryable=exc.retryable
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.exception("Unexpected failure reconciling %s", desired.path)
            return ResourceStatus(path=desired.path, healthy=False, error=str(exc))
        if result.changed:
            _LOGGER.info("%s changed: %s", desired.path, "; ".join(result.actions))
        else:
            _LOGGER.debug("%s already in desired state", desired.path)
        return ResourceStatus(path=desired.path, healthy=True, last_result=result)

    def _targets(self, path: str | None) -> list[DesiredState]:
        if path is None:
            return list(self.options.resources)
        desired = self.options.resource(path)
        if desired is None:
            raise KeyError(path)
        return [desired]

    def public_config(self) -> dict[str, Any]:
        data = self.options.model_dump(mode="json")
        for resource in data.get("resources", []):
            if resource.get("identity"):
                resource["identity"] = "***redacted***"
            resource["source"] = _redact_source(resource.get("source"))
        return data

    async def shutdown(self) -> None:
        self._stop.set()


def _redact_source(source: Any) -> Any:
    if isinstance(source, dict):
        return {name: _redact_url(url) for name, url in source.items()}
    if isinstance(source, str):
        return _redact_url(source)
    return source


def _redact_url(url: str) -> str:
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest.split("/", 1)[0]:
        return url
    credentials, _, host = rest.partition("@")
    if ":" not in credentials:
        return url
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"
