"""
Persistence gateway between the editor session and the document store.

All operations are coroutines returning an ``OperationResult``; failures are
converted to user-facing messages here and never propagate to the caller.
Each await is a re-entrancy point: results that complete after the session
was detached are reported as stale and do not touch the model.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from mapnotes.client.protocols import AuthProvider, MapStoreClient
from mapnotes.domain.documents import DocumentSummary, Identity
from mapnotes.domain.shapes import GeometryModel
from mapnotes.errors import (
    AuthRequiredError,
    ForbiddenError,
    MalformedDocumentError,
    MapNotesError,
    TransportError,
    ValidationError,
)
from mapnotes.services.geojson_serializer import ImportResult, export_feature_collection, import_into

logger = logging.getLogger(__name__)

AUTOSAVE_INTERVAL = 2.0


class OperationStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    DROPPED = "dropped"
    CANCELLED = "cancelled"
    STALE = "stale"


@dataclass
class OperationResult:
    status: OperationStatus
    message: str = ""
    value: Any = None
    error: Optional[MapNotesError] = None

    @property
    def ok(self) -> bool:
        return self.status is OperationStatus.OK


def _decline(message: str) -> bool:
    return False


class PersistenceGateway:
    """
    Save, load, list and delete documents for one editor session.

    At most one save is in flight at a time; a save requested meanwhile is
    dropped, not queued. Deletions go through the ``confirm`` gate before any
    request is made; without a gate they are always declined.
    """

    def __init__(
        self,
        client: MapStoreClient,
        model: GeometryModel,
        auth: AuthProvider,
        confirm: Optional[Callable[[str], bool]] = None,
        notify: Optional[Callable[[str], None]] = None,
        on_loaded: Optional[Callable[[ImportResult], None]] = None,
    ) -> None:
        self._client = client
        self._model = model
        self._auth = auth
        self._confirm = confirm or _decline
        self._notify_callback = notify
        self._on_loaded = on_loaded
        self._save_in_flight = False
        self._epoch = 0
        self._file_names: List[str] = []
        self._files_loaded = False
        self._admin_summaries: List[DocumentSummary] = []

    @property
    def save_in_flight(self) -> bool:
        return self._save_in_flight

    @property
    def file_names(self) -> List[str]:
        return list(self._file_names)

    @property
    def files_loaded(self) -> bool:
        return self._files_loaded

    @property
    def admin_summaries(self) -> List[DocumentSummary]:
        """Cross-user listing from the last successful admin_list()."""
        return list(self._admin_summaries)

    def detach(self) -> None:
        """Mark every request still in flight as stale."""
        self._epoch += 1

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _notify(self, message: str) -> None:
        if self._notify_callback is not None:
            self._notify_callback(message)
        else:
            logger.info(message)

    def _fail(self, error: MapNotesError) -> OperationResult:
        message = error.user_message
        self._notify(message)
        return OperationResult(OperationStatus.FAILED, message=message, error=error)

    def _require_identity(self, admin: bool = False) -> Identity:
        identity = self._auth.current_identity()
        if identity is None:
            raise AuthRequiredError("Please log in first.")
        if admin and not identity.is_admin:
            raise ForbiddenError("Administrator rights are required.")
        return identity

    @staticmethod
    def _require_name(name: Optional[str], what: str = "file name") -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError(f"Enter a {what}.")
        return cleaned

    async def _call(self, description: str, request: Callable[[], Awaitable[Any]]) -> OperationResult:
        epoch = self._epoch
        try:
            value = await request()
        except MapNotesError as exc:
            if epoch != self._epoch:
                return self._stale(description)
            logger.warning(f"{description} failed: {exc}")
            return self._fail(exc)
        except Exception as exc:
            logger.error(f"{description} failed: {exc}", exc_info=True)
            if epoch != self._epoch:
                return self._stale(description)
            return self._fail(TransportError(f"{description} failed. Please try again."))

        if epoch != self._epoch:
            return self._stale(description)
        return OperationResult(OperationStatus.OK, value=value)

    @staticmethod
    def _stale(description: str) -> OperationResult:
        logger.info(f"Ignoring result of {description}: session no longer current")
        return OperationResult(OperationStatus.STALE)

    def _apply_document(self, raw: Any, label: str) -> OperationResult:
        try:
            imported = import_into(self._model, raw)
        except MalformedDocumentError as exc:
            return self._fail(exc)

        if self._on_loaded is not None:
            self._on_loaded(imported)

        message = f"Loaded file: {label}"
        if imported.skipped:
            message += f" ({len(imported.skipped)} unreadable object(s) skipped)"
        self._notify(message)
        return OperationResult(OperationStatus.OK, message=message, value=imported)

    # ------------------------------------------------------------------
    # user operations
    # ------------------------------------------------------------------

    async def save(self, name: Optional[str]) -> OperationResult:
        """Save the current model under ``name`` (last write wins)."""
        if self._save_in_flight:
            logger.warning(f"Save of {name!r} dropped: another save is in flight")
            return OperationResult(OperationStatus.DROPPED)

        try:
            self._require_identity()
            name = self._require_name(name)
            if len(self._model) == 0:
                raise ValidationError("There are no objects on the map to save.")
        except MapNotesError as exc:
            return self._fail(exc)

        document = export_feature_collection(self._model)
        self._save_in_flight = True
        try:
            result = await self._call(f"Save of {name!r}", lambda: self._client.save_document(name, document))
        finally:
            self._save_in_flight = False

        if not result.ok:
            return result

        result.message = f"Saved: {name}"
        self._notify(result.message)
        await self.refresh_file_list()
        return result

    async def load(self, name: Optional[str]) -> OperationResult:
        """
        Replace the model with a stored document.

        Callers must not start a second load before this one returns.
        """
        try:
            self._require_identity()
            name = self._require_name(name)
        except MapNotesError as exc:
            return self._fail(exc)

        result = await self._call(f"Load of {name!r}", lambda: self._client.load_document(name))
        if not result.ok:
            return result
        return self._apply_document(result.value, name)

    async def refresh_file_list(self) -> OperationResult:
        """Fetch the names of the current user's documents."""
        try:
            self._require_identity()
        except MapNotesError as exc:
            return self._fail(exc)

        result = await self._call("File list refresh", self._client.list_documents)
        if result.ok:
            self._file_names = list(result.value or [])
            self._files_loaded = True
        return result

    async def delete(self, name: Optional[str]) -> OperationResult:
        try:
            self._require_identity()
            name = self._require_name(name)
        except MapNotesError as exc:
            return self._fail(exc)

        if not self._confirm(f"Delete file '{name}'?"):
            return OperationResult(OperationStatus.CANCELLED)

        result = await self._call(f"Delete of {name!r}", lambda: self._client.delete_document(name))
        if result.ok:
            result.message = f"Deleted: {name}"
            self._notify(result.message)
            await self.refresh_file_list()
        return result

    async def delete_all(self) -> OperationResult:
        """Delete every document owned by the current user."""
        try:
            self._require_identity()
        except MapNotesError as exc:
            return self._fail(exc)

        if not self._confirm("Delete all of your saved files?"):
            return OperationResult(OperationStatus.CANCELLED)

        result = await self._call("Delete of all files", self._client.delete_all_documents)
        if result.ok:
            result.message = f"Deleted {result.value or 0} file(s)"
            self._notify(result.message)
            await self.refresh_file_list()
        return result

    # ------------------------------------------------------------------
    # administrator operations
    # ------------------------------------------------------------------

    async def admin_list(self) -> OperationResult:
        """List (owner, name, created-at) for every stored document."""
        try:
            self._require_identity(admin=True)
        except MapNotesError as exc:
            return self._fail(exc)
        result = await self._call("Admin file list", self._client.admin_list_documents)
        if result.ok:
            self._admin_summaries = list(result.value or [])
        return result

    async def admin_load(self, owner: Optional[str], name: Optional[str]) -> OperationResult:
        try:
            self._require_identity(admin=True)
            owner = self._require_name(owner, "file owner")
            name = self._require_name(name)
        except MapNotesError as exc:
            return self._fail(exc)

        result = await self._call(
            f"Load of {name!r} owned by {owner}",
            lambda: self._client.admin_load_document(owner, name),
        )
        if not result.ok:
            return result
        return self._apply_document(result.value, f"{owner}/{name}")

    async def admin_delete(self, owner: Optional[str], name: Optional[str]) -> OperationResult:
        try:
            self._require_identity(admin=True)
            owner = self._require_name(owner, "file owner")
            name = self._require_name(name)
        except MapNotesError as exc:
            return self._fail(exc)

        if not self._confirm(f"Delete file '{name}' of {owner}?"):
            return OperationResult(OperationStatus.CANCELLED)

        result = await self._call(
            f"Delete of {name!r} owned by {owner}",
            lambda: self._client.admin_delete_document(owner, name),
        )
        if result.ok:
            result.message = f"Deleted: {owner}/{name}"
            self._notify(result.message)
            await self.admin_list()
        return result

    async def admin_delete_all(self) -> OperationResult:
        """Delete every document of every user."""
        try:
            self._require_identity(admin=True)
        except MapNotesError as exc:
            return self._fail(exc)

        if not self._confirm("Delete ALL saved files of ALL users?"):
            return OperationResult(OperationStatus.CANCELLED)

        result = await self._call("Delete of all users' files", self._client.admin_delete_all_documents)
        if result.ok:
            result.message = f"Deleted {result.value or 0} file(s)"
            self._notify(result.message)
            await self.admin_list()
            await self.refresh_file_list()
        return result


class AutoSaver:
    """
    Debounced automatic save of the current document.

    A trigger saves at once unless the previous save started less than
    ``interval`` seconds ago; in that case a single save is (re)scheduled
    ``interval`` seconds later.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        document_name: Callable[[], Optional[str]],
        interval: float = AUTOSAVE_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self._document_name = document_name
        self._interval = interval
        self._clock = clock
        self._last_save: Optional[float] = None
        self._pending: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def trigger(self) -> None:
        if not self._document_name():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Auto-save skipped: no running event loop")
            return

        self.cancel()
        now = self._clock()
        if self._last_save is not None and now - self._last_save < self._interval:
            self._pending = loop.call_later(self._interval, self._fire)
            return
        self._fire()

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _fire(self) -> None:
        self._pending = None
        name = self._document_name()
        if not name:
            return
        self._last_save = self._clock()
        task = asyncio.get_running_loop().create_task(self._gateway.save(name))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait(self) -> None:
        """Wait for auto-saves already started."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

