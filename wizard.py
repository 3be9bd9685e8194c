"""Three-step wizard state machine: Upload -> Define Schema -> Results.

Each ``Wizard`` owns one session's transient state. The only guard against
concurrent extractions is the ``processing`` status; results that settle
after a reset are dropped by comparing the session epoch.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Callable

from config import settings
from models import (
    ExtractionStatus,
    FieldUpdate,
    FileInfo,
    SchemaField,
    SessionView,
    UploadedFile,
    default_fields,
)

logger = logging.getLogger(__name__)

UPLOAD_STEP = 1
SCHEMA_STEP = 2
RESULTS_STEP = 3

GENERIC_ERROR = "An unexpected error occurred during extraction."

Extractor = Callable[[UploadedFile | None, list[SchemaField]], dict[str, Any]]


class WizardError(Exception):
    """Base class for rejected wizard events."""


class InvalidTransition(WizardError):
    """The requested navigation is not allowed from the current state."""


class ExtractionInProgress(WizardError):
    """An extraction is already running for this session."""


class SessionNotFound(Exception):
    """No session exists with the given id."""


class Wizard:
    def __init__(self, session_id: str | None = None):
        self.id = session_id or uuid.uuid4().hex
        self.step = UPLOAD_STEP
        self.file: UploadedFile | None = None
        self.fields: list[SchemaField] = default_fields()
        self.status = ExtractionStatus.IDLE
        self.result: dict[str, Any] | None = None
        self.error: str | None = None
        self._epoch = 0

    # -- file -----------------------------------------------------------

    def set_file(self, file: UploadedFile) -> None:
        """Replace the active document. The step is unchanged."""
        self.file = file

    def clear_file(self) -> None:
        self.file = None

    # -- fields ---------------------------------------------------------

    def add_field(self) -> SchemaField:
        field = SchemaField()
        self.fields.append(field)
        return field

    def update_field(self, field_id: str, update: FieldUpdate) -> SchemaField:
        field = self._find_field(field_id)
        for name, value in update.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(field, name, value)
        return field

    def remove_field(self, field_id: str) -> None:
        field = self._find_field(field_id)
        self.fields.remove(field)

    def _find_field(self, field_id: str) -> SchemaField:
        for field in self.fields:
            if field.id == field_id:
                return field
        raise KeyError(field_id)

    # -- validity -------------------------------------------------------

    def can_proceed_from_input(self) -> bool:
        return self.file is not None

    def can_proceed_from_schema(self) -> bool:
        """Non-empty field list, every key non-blank, no key used twice."""
        if not self.fields:
            return False
        keys = [f.key.strip() for f in self.fields]
        if not all(keys):
            return False
        return len(set(keys)) == len(keys)

    # -- navigation -----------------------------------------------------

    def go_to_schema(self) -> None:
        if self.step != UPLOAD_STEP:
            raise InvalidTransition(f"Cannot continue to the schema step from step {self.step}")
        if not self.can_proceed_from_input():
            raise InvalidTransition("Upload a document before continuing")
        self.step = SCHEMA_STEP

    def go_to_results(self) -> None:
        """Return to the last result without re-running extraction."""
        if self.step != SCHEMA_STEP:
            raise InvalidTransition(f"Cannot continue to results from step {self.step}")
        if self.status is not ExtractionStatus.SUCCESS or self.result is None:
            raise InvalidTransition("No extraction result to show yet")
        self.step = RESULTS_STEP

    def advance(self) -> None:
        if self.step == UPLOAD_STEP:
            self.go_to_schema()
        else:
            self.go_to_results()

    def back(self) -> None:
        if self.step == UPLOAD_STEP:
            raise InvalidTransition("Already at the first step")
        self.step -= 1

    def reset(self) -> None:
        """Back to the initial state. The field list is kept as is."""
        self._epoch += 1
        self.step = UPLOAD_STEP
        self.file = None
        self.status = ExtractionStatus.IDLE
        self.result = None
        self.error = None

    # -- extraction -----------------------------------------------------

    async def run_extraction(self, extractor: Extractor) -> None:
        """Run one extraction for the current file and fields.

        The blocking ``extractor`` runs in a worker thread. On success the
        result is stored and the wizard moves to the results step; on failure
        the message is stored and the step stays put.
        """
        if self.status is ExtractionStatus.PROCESSING:
            raise ExtractionInProgress("An extraction is already running")
        if self.step != SCHEMA_STEP:
            raise InvalidTransition(f"Extraction is only available from the schema step, not step {self.step}")
        if not self.can_proceed_from_schema():
            raise InvalidTransition("Every field needs a unique, non-empty key")

        self.status = ExtractionStatus.PROCESSING
        self.error = None
        epoch = self._epoch
        file = self.file
        fields = [f.model_copy() for f in self.fields]

        logger.info("Session %s: extraction started (%d fields)", self.id, len(fields))
        try:
            result = await asyncio.to_thread(extractor, file, fields)
        except Exception as e:
            if epoch != self._epoch:
                logger.info("Session %s: discarding failed extraction after reset", self.id)
                return
            logger.error("Session %s: extraction failed: %s", self.id, e)
            self.error = str(e) or GENERIC_ERROR
            self.status = ExtractionStatus.ERROR
            return

        if epoch != self._epoch:
            logger.info("Session %s: discarding extraction result after reset", self.id)
            return

        self.result = result
        self.status = ExtractionStatus.SUCCESS
        self.step = RESULTS_STEP
        logger.info("Session %s: extraction succeeded", self.id)

    # -- view -----------------------------------------------------------

    def view(self) -> SessionView:
        file_info = None
        if self.file is not None:
            file_info = FileInfo(
                name=self.file.name,
                type=self.file.type,
                is_image=self.file.is_image,
                size=self.file.size,
            )

        if self.step == UPLOAD_STEP:
            can_continue = self.can_proceed_from_input()
        elif self.step == SCHEMA_STEP:
            can_continue = self.status is ExtractionStatus.SUCCESS and self.result is not None
        else:
            can_continue = False

        return SessionView(
            id=self.id,
            step=self.step,
            file=file_info,
            fields=list(self.fields),
            status=self.status,
            result=self.result,
            error=self.error,
            can_continue=can_continue,
            can_extract=(
                self.step == SCHEMA_STEP
                and self.status is not ExtractionStatus.PROCESSING
                and self.can_proceed_from_schema()
            ),
        )


class SessionStore:
    """In-memory map of session id -> Wizard. Nothing is persisted.

    Sessions idle for longer than ``ttl_seconds`` are evicted on the next
    store access. A session with an extraction in flight is never evicted.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.SESSION_TTL_SECONDS
        self._clock = clock
        self._sessions: dict[str, Wizard] = {}
        self._touched: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> Wizard:
        self.evict_idle()
        wizard = Wizard()
        self._sessions[wizard.id] = wizard
        self._touched[wizard.id] = self._clock()
        return wizard

    def get(self, session_id: str) -> Wizard:
        self.evict_idle()
        try:
            wizard = self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id) from None
        self._touched[session_id] = self._clock()
        return wizard

    def delete(self, session_id: str) -> None:
        self.evict_idle()
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFound(session_id)
        del self._touched[session_id]

    def evict_idle(self) -> int:
        """Drop idle sessions and return how many were removed."""
        cutoff = self._clock() - self._ttl
        expired = [
            session_id
            for session_id, touched in self._touched.items()
            if touched < cutoff
            and self._sessions[session_id].status is not ExtractionStatus.PROCESSING
        ]
        for session_id in expired:
            del self._sessions[session_id]
            del self._touched[session_id]

        if expired:
            logger.info("Evicted %d idle sessions", len(expired))
        return len(expired)
