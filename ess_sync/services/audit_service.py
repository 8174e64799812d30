from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ess_sync.db.session import connection_scope


class AuditService:
    def __init__(self, db_path: Path | None = None, logger: logging.Logger | None = None) -> None:
        self.db_path = db_path
        self._logger = logger or logging.getLogger(__name__)

    def record_action(
        self,
        initiator: str | None,
        action: str,
        resource_type: str,
        resource_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        with connection_scope(self.db_path) as connection:
            connection.execute(
                """
                INSERT INTO audit_log (user_id, action, resource_type, resource_id, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    initiator,
                    action,
                    resource_type,
                    resource_id,
                    json.dumps(metadata, ensure_ascii=False, default=str) if metadata is not None else None,
                    datetime.now(tz=timezone.utc).isoformat(),
                ),
            )
        self._logger.info("Audit: %s %s %s/%s", initiator, action, resource_type, resource_id)

    def list_actions(self, limit: int = 100) -> list[dict[str, Any]]:
        with connection_scope(self.db_path) as connection:
            rows = connection.execute(
                """
                SELECT id, user_id, action, resource_type, resource_id, metadata, created_at
                FROM audit_log
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [
            {
                "id": r["id"],
                "userId": r["user_id"],
                "action": r["action"],
                "resourceType": r["resource_type"],
                "resourceId": r["resource_id"],
                "metadata": json.loads(r["metadata"]) if r["metadata"] else None,
                "createdAt": r["created_at"],
            }
            for r in rows
        ]
