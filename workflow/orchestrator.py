from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol, Set, Union

from render.templates import render_resume
from resume_parser.normalize import normalize_text
from schemas.errors import RenderError
from schemas.resume import HistoryEntry, ResumeData, StyleId

logger = logging.getLogger(__name__)

# Input caps for the tailoring call; they bound cost and latency only.
MAX_RESUME_CHARS = 25_000
MAX_JOB_DESCRIPTION_CHARS = 10_000

COVER_LETTER_FAILED = "Failed to generate."
MATCH_REPORT_FAILED = "Failed to analyze."


class Phase(str, Enum):
    IDLE = "idle"
    EXTRACTING_SOURCE = "extracting_source"
    AWAITING_AI_RESULT = "awaiting_ai_result"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class DerivedArtifacts:
    cover_letter: Optional[str] = None
    match_report: Optional[str] = None


@dataclass(frozen=True)
class GenerationSession:
    """Immutable snapshot of the pipeline state handed to subscribers."""

    raw_extracted_text: str = ""
    job_description_text: str = ""
    current_style: StyleId = StyleId.MODERN
    last_resume_data: Optional[ResumeData] = None
    rendered_document: Optional[str] = None
    derived_artifacts: DerivedArtifacts = field(default_factory=DerivedArtifacts)
    phase: Phase = Phase.IDLE
    error_message: Optional[str] = None

    @property
    def has_document(self) -> bool:
        return self.rendered_document is not None


class ResumeCapabilities(Protocol):
    def tailor_resume(self, resume_text: str, job_description: str) -> Optional[ResumeData]: ...

    def generate_cover_letter(self, resume: ResumeData, job_description: str) -> Optional[str]: ...

    def evaluate_resume(self, resume: ResumeData, job_description: str) -> Optional[str]: ...

    def extract_text_from_image(self, image: bytes) -> Optional[str]: ...


class HistoryBackend(Protocol):
    def persist(self, data: ResumeData) -> HistoryEntry: ...

    def list(self) -> List[HistoryEntry]: ...

    def load(self, entry: HistoryEntry) -> ResumeData: ...

    def delete(self, entry: HistoryEntry) -> None: ...


Listener = Callable[[GenerationSession], None]
Renderer = Callable[[ResumeData, StyleId], str]


async def _invoke(fn: Callable[..., Any], *args: Any) -> Any:
    """Await coroutine functions, push blocking callables onto a worker thread."""
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    return await asyncio.to_thread(fn, *args)


class GenerationOrchestrator:
    """
    Owns a GenerationSession and sequences extraction, tailoring and rendering.

    All state changes go through ``_update`` which swaps the frozen snapshot
    and notifies subscribers. Only ``tailor`` reaches the tailoring
    capability; style changes and manual edits re-render the cached
    ``last_resume_data`` synchronously.
    """

    def __init__(
        self,
        ai: ResumeCapabilities,
        extract_text: Callable[[Any], str],
        history: Optional[HistoryBackend] = None,
        *,
        style: Union[StyleId, str] = StyleId.MODERN,
        renderer: Renderer = render_resume,
    ):
        self._ai = ai
        self._extract_text = extract_text
        self._history = history
        self._render = renderer
        self._session = GenerationSession(current_style=StyleId(style))
        self._listeners: List[Listener] = []
        self._epoch = 0
        self._artifact_token = 0
        self._ai_busy = False
        self._background: Set[asyncio.Task] = set()

    @property
    def state(self) -> GenerationSession:
        return self._session

    @property
    def ai_busy(self) -> bool:
        """True while an AI request is suspended, including one a reset has orphaned."""
        return self._ai_busy

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        listener(self._session)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes: Any) -> None:
        self._session = dataclasses.replace(self._session, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._session)
            except Exception:
                logger.exception("Session listener failed")

    # --- source and inputs ---

    async def load_source(self, source: Any) -> None:
        """Read a new resume document. Anything tailored from the previous one is dropped."""
        self._epoch += 1
        self._artifact_token += 1
        epoch = self._epoch
        self._update(
            raw_extracted_text="",
            last_resume_data=None,
            rendered_document=None,
            derived_artifacts=DerivedArtifacts(),
            phase=Phase.EXTRACTING_SOURCE,
            error_message=None,
        )
        try:
            raw = await _invoke(self._extract_text, source)
        except Exception as exc:
            if epoch == self._epoch:
                logger.warning("Source extraction failed: %s", exc)
                self._update(phase=Phase.ERROR, error_message=f"Failed to read PDF: {exc}")
            return
        if epoch != self._epoch:
            logger.info("Discarding extracted text for a superseded source")
            return
        self._update(raw_extracted_text=normalize_text(raw or ""), phase=Phase.IDLE)

    def update_resume_text(self, text: str) -> None:
        self._update(raw_extracted_text=text)

    def update_job_description(self, text: str) -> None:
        self._update(job_description_text=text)

    async def load_job_description_from_image(self, image: bytes) -> bool:
        if self._ai_busy:
            logger.warning("AI request already in flight; ignoring image upload")
            return False
        epoch = self._epoch
        self._ai_busy = True
        self._update(phase=Phase.AWAITING_AI_RESULT, error_message=None)
        try:
            text = await _invoke(self._ai.extract_text_from_image, image)
        except Exception as exc:
            logger.warning("Image text extraction failed: %s", exc)
            if epoch == self._epoch:
                self._update(phase=Phase.ERROR, error_message=f"Image error: {exc}")
            return False
        finally:
            self._ai_busy = False

        if epoch != self._epoch:
            if text and text.strip():
                self._update(job_description_text=text)
            return bool(text and text.strip())
        if not text or not text.strip():
            self._update(phase=Phase.ERROR, error_message="Could not read text from image.")
            return False
        self._update(job_description_text=text, phase=self._settled_phase())
        return True

    # --- tailoring ---

    async def tailor(self) -> bool:
        """
        Run the tailoring capability on the current inputs.

        No-op when either input is blank or another AI request is in flight.
        A result that arrives after ``load_source`` reset the session is
        discarded. Returns True when a new document was produced.
        """
        resume_text = self._session.raw_extracted_text
        job_description = self._session.job_description_text
        if not resume_text.strip() or not job_description.strip():
            return False
        if self._ai_busy:
            logger.warning("Tailoring already in progress; ignoring request")
            return False

        epoch = self._epoch
        resume_text = resume_text[:MAX_RESUME_CHARS]
        job_description = job_description[:MAX_JOB_DESCRIPTION_CHARS]
        self._ai_busy = True
        self._update(phase=Phase.AWAITING_AI_RESULT, error_message=None)
        try:
            data = await _invoke(self._ai.tailor_resume, resume_text, job_description)
        except Exception as exc:
            logger.warning("Tailoring failed: %s", exc)
            if epoch == self._epoch:
                self._update(phase=Phase.ERROR, error_message=f"Error: {exc}")
            return False
        finally:
            self._ai_busy = False

        if epoch != self._epoch:
            logger.info("Discarding AI result for a session that was reset")
            return False
        if data is None:
            self._update(phase=Phase.ERROR, error_message="AI returned empty result.")
            return False
        try:
            document = self._render(data, self._session.current_style)
        except RenderError as exc:
            self._update(phase=Phase.ERROR, error_message=f"Error: {exc}")
            return False

        self._update(last_resume_data=data, rendered_document=document, phase=Phase.READY)
        self._persist(data)
        self._refresh_artifacts(data, job_description)
        return True

    # --- local re-rendering ---

    def change_style(self, style: Union[StyleId, str]) -> None:
        style = StyleId(style)
        data = self._session.last_resume_data
        if data is None:
            self._update(current_style=style)
            return
        if style is self._session.current_style and self._session.has_document:
            return
        self._update(current_style=style, rendered_document=self._render(data, style))

    def edit_fields(
        self,
        *,
        name: Optional[str] = None,
        contact_info: Optional[str] = None,
        summary: Optional[str] = None,
        skills: Optional[Union[str, List[str]]] = None,
    ) -> bool:
        """Apply manual corrections and re-render. Derived artifacts are left as they are."""
        data = self._patched(name=name, contact_info=contact_info, summary=summary, skills=skills)
        if data is None:
            return False
        document = self._render(data, self._session.current_style)
        self._update(last_resume_data=data, rendered_document=document)
        return True

    def preview_fields(
        self,
        *,
        name: Optional[str] = None,
        contact_info: Optional[str] = None,
        summary: Optional[str] = None,
        skills: Optional[Union[str, List[str]]] = None,
    ) -> Optional[str]:
        data = self._patched(name=name, contact_info=contact_info, summary=summary, skills=skills)
        if data is None:
            return None
        return self._render(data, self._session.current_style)

    def _patched(self, **changes: Any) -> Optional[ResumeData]:
        current = self._session.last_resume_data
        if current is None:
            logger.info("No tailored resume to edit")
            return None
        return current.with_changes(**changes)

    # --- history ---

    async def load_from_history(self, entry: HistoryEntry) -> bool:
        """
        Show a saved snapshot. Rejected while an AI request is in flight; a
        snapshot read that finishes after ``load_source`` is discarded.
        """
        if self._ai_busy:
            logger.warning("AI request in flight; ignoring history load")
            return False
        epoch = self._epoch
        try:
            if self._history is not None:
                data = await _invoke(self._history.load, entry)
            else:
                data = entry.resume_data
            if epoch != self._epoch:
                logger.info("Discarding saved resume loaded for a superseded source")
                return False
            document = self._render(data, self._session.current_style)
        except Exception as exc:
            logger.warning("Failed to load history entry %s: %s", entry.path, exc)
            if epoch == self._epoch:
                self._update(phase=Phase.ERROR, error_message="Failed to load saved resume.")
            return False
        if self._ai_busy:
            logger.warning("AI request started during history load; discarding snapshot")
            return False

        self._update(
            last_resume_data=data,
            rendered_document=document,
            phase=Phase.READY,
            error_message=None,
        )
        self._refresh_artifacts(data, self._session.job_description_text[:MAX_JOB_DESCRIPTION_CHARS])
        return True

    def list_history(self) -> List[HistoryEntry]:
        if self._history is None:
            return []
        return self._history.list()

    def delete_history(self, entry: HistoryEntry) -> None:
        if self._history is not None:
            self._history.delete(entry)

    def dismiss_error(self) -> None:
        if self._session.phase is Phase.ERROR:
            self._update(phase=Phase.IDLE, error_message=None)

    async def wait_for_background(self) -> None:
        """Wait for history writes and derived-artifact requests to settle."""
        while True:
            pending = [task for task in self._background if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # --- background work ---

    def _settled_phase(self) -> Phase:
        return Phase.READY if self._session.has_document else Phase.IDLE

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _persist(self, data: ResumeData) -> None:
        if self._history is not None:
            self._spawn(self._persist_snapshot(data))

    async def _persist_snapshot(self, data: ResumeData) -> None:
        try:
            await _invoke(self._history.persist, data)
        except Exception:
            logger.exception("Failed to save resume to history")

    def _refresh_artifacts(self, data: ResumeData, job_description: str) -> None:
        self._artifact_token += 1
        token = self._artifact_token
        self._update(derived_artifacts=DerivedArtifacts())
        self._spawn(
            self._fetch_artifact(
                "cover_letter", self._ai.generate_cover_letter, data, job_description,
                COVER_LETTER_FAILED, token,
            )
        )
        self._spawn(
            self._fetch_artifact(
                "match_report", self._ai.evaluate_resume, data, job_description,
                MATCH_REPORT_FAILED, token,
            )
        )

    async def _fetch_artifact(
        self,
        field_name: str,
        request: Callable[[ResumeData, str], Optional[str]],
        data: ResumeData,
        job_description: str,
        placeholder: str,
        token: int,
    ) -> None:
        try:
            text = await _invoke(request, data, job_description)
        except Exception as exc:
            logger.warning("%s request failed: %s", field_name, exc)
            text = None
        if token != self._artifact_token:
            logger.info("Dropping stale %s", field_name)
            return
        artifacts = dataclasses.replace(
            self._session.derived_artifacts, **{field_name: text or placeholder}
        )
        self._update(derived_artifacts=artifacts)
