"""
Export Service - bundles all stored sessions and their analytics into a
downloadable JSON document.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from ..core.exceptions import MissingIdentityError
from ..models import ExportSnapshot, Identity
from ..storage import SessionStore, StorageInterface
from .analytics import AnalyticsEngine

logger = logging.getLogger(__name__)

EXPORT_FILENAME_TEMPLATE = "shopmind-chat-data-{date}.json"


@dataclass
class ExportArtifact:
    """Serialized snapshot ready to hand to the caller."""
    filename: str
    content: bytes
    media_type: str = "application/json"


class ExportService:
    """Builds and writes export snapshots."""

    def __init__(
        self,
        store: SessionStore,
        storage: StorageInterface,
        engine: Optional[AnalyticsEngine] = None,
        exports_dir: str = "exports",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.storage = storage
        self.engine = engine or AnalyticsEngine(store)
        self.exports_dir = exports_dir
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def build_snapshot(self, identity: Optional[Identity]) -> ExportSnapshot:
        """Assemble export date, fresh analytics and every stored session."""
        if identity is None:
            raise MissingIdentityError("export")

        analytics = await self.engine.compute(identity)
        sessions = await self.store.load_all()
        return ExportSnapshot(export_date=self._clock(), analytics=analytics, sessions=sessions)

    async def export_snapshot(self, identity: Optional[Identity]) -> ExportArtifact:
        """
        Serialize a snapshot and keep a copy under ``exports/``.

        Args:
            identity: Requesting user; required

        Returns:
            ExportArtifact: Named after the snapshot's calendar date

        Raises:
            MissingIdentityError: If no user is known
        """
        snapshot = await self.build_snapshot(identity)
        filename = EXPORT_FILENAME_TEMPLATE.format(date=snapshot.export_date.date().isoformat())
        content = snapshot.model_dump_json(by_alias=True, exclude_none=True, indent=2).encode("utf-8")

        if not await self.storage.save(f"{self.exports_dir}/{filename}", content):
            logger.error(f"Could not keep a copy of export {filename}")

        logger.info(
            f"Exported {len(snapshot.sessions)} session(s) to {filename}",
            extra={"extra_fields": {"requested_by": str(identity.email), "bytes": len(content)}}
        )
        return ExportArtifact(filename=filename, content=content)
