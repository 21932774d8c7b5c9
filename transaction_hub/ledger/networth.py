"""
Net-Worth Refresh Trigger

A single idempotent signal: "recompute aggregate net worth now".

The dispatcher fires it after a balance actually moved. Whether the
submission waits for the recompute is a setting; when it doesn't, the
pending refresh can still be awaited with drain().

A failed refresh never fails a submission - the ledger write and the
balance update already happened. It is logged and audited.
"""

import asyncio
from typing import Optional
from uuid import UUID

from transaction_hub.audit import AuditLogger
from transaction_hub.config import AppSettings, get_settings
from transaction_hub.services.storage import NetWorthInterface


class NetWorthRefreshTrigger:
    """Signals the net worth aggregate to recompute."""

    def __init__(
        self,
        service: NetWorthInterface,
        audit_logger: Optional[AuditLogger] = None,
        wait: Optional[bool] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._service = service
        self._audit_logger = audit_logger or AuditLogger()
        if wait is None:
            wait = (settings or get_settings().app).await_net_worth_refresh
        self._wait = wait
        self._pending: set[asyncio.Task] = set()

    async def _run(self, correlation_id: Optional[UUID]) -> bool:
        try:
            await self._service.refresh()
        except Exception as e:
            await self._audit_logger.log_net_worth_refresh_failed(str(e), correlation_id)
            return False
        await self._audit_logger.log_net_worth_refreshed(correlation_id)
        return True

    async def fire(self, correlation_id: Optional[UUID] = None) -> bool:
        """
        Signal a refresh.

        Returns:
            True if the refresh completed (or was scheduled, when not waiting)
        """
        if self._wait:
            return await self._run(correlation_id)

        task = asyncio.create_task(self._run(correlation_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def drain(self) -> None:
        """Wait for every scheduled refresh to finish."""
        if self._pending:
            await asyncio.gather(*self._pending)
