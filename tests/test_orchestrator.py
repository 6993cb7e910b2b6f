import asyncio
from datetime import datetime, timezone
from pathlib import Path

from render.templates import render_resume
from schemas.errors import ExtractionError, TailorError
from schemas.resume import Education, HistoryEntry, Project, ResumeData, StyleId, WorkHistory
from storage.history import HistoryStore
from workflow.orchestrator import (
    COVER_LETTER_FAILED,
    MATCH_REPORT_FAILED,
    MAX_JOB_DESCRIPTION_CHARS,
    MAX_RESUME_CHARS,
    DerivedArtifacts,
    GenerationOrchestrator,
    Phase,
)

RESUME = ResumeData(
    name="Alex Applicant",
    contact_info="alex@example.com | 555-0100",
    summary="Backend engineer.",
    experience=[
        WorkHistory(company="Acme", role="Engineer", duration="2020 - Now", bullet_points=["Built APIs"])
    ],
    projects=[Project(title="Queue", technologies="Go", bullet_points=["Wrote it"])],
    education=[Education(school="State University", degree="BSc", year="2016")],
    skills=["Languages: Go, Kotlin", "Docker"],
)


class FakeAI:
    def __init__(self, result=RESUME, cover_letter="Dear hiring team", report="Score: 90/100"):
        self.result = result
        self.cover_letter = cover_letter
        self.report = report
        self.error = None
        self.image_text = "Senior engineer wanted"
        self.tailor_calls = []
        self.cover_letter_calls = 0
        self.report_calls = 0

    def tailor_resume(self, resume_text, job_description):
        self.tailor_calls.append((resume_text, job_description))
        if self.error is not None:
            raise self.error
        return self.result

    def generate_cover_letter(self, resume, job_description):
        self.cover_letter_calls += 1
        if isinstance(self.cover_letter, Exception):
            raise self.cover_letter
        return self.cover_letter

    def evaluate_resume(self, resume, job_description):
        self.report_calls += 1
        if isinstance(self.report, Exception):
            raise self.report
        return self.report

    def extract_text_from_image(self, image):
        return self.image_text


class BlockingAI(FakeAI):
    """Tailoring suspends until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def tailor_resume(self, resume_text, job_description):
        self.tailor_calls.append((resume_text, job_description))
        await self.release.wait()
        return self.result


class CountingRenderer:
    def __init__(self):
        self.calls = []

    def __call__(self, data, style):
        self.calls.append(style)
        return render_resume(data, style)


class BrokenHistory:
    def persist(self, data):
        raise OSError("disk full")

    def list(self):
        return []

    def load(self, entry):
        raise OSError("gone")

    def delete(self, entry):
        pass


class SlowHistory(BrokenHistory):
    """Snapshot reads suspend until ``release`` is set."""

    def __init__(self):
        self.release = asyncio.Event()

    async def load(self, entry):
        await self.release.wait()
        return entry.resume_data


def _extract(source):
    if source == b"corrupt":
        raise ExtractionError("file is damaged")
    return source.decode("utf-8")


def _orchestrator(ai=None, history=None, renderer=None):
    kwargs = {}
    if renderer is not None:
        kwargs["renderer"] = renderer
    return GenerationOrchestrator(ai or FakeAI(), _extract, history, **kwargs)


async def _tailored(orchestrator, job_description="Kotlin backend role"):
    await orchestrator.load_source(b"Alex Applicant resume text")
    orchestrator.update_job_description(job_description)
    assert await orchestrator.tailor()
    await orchestrator.wait_for_background()


def test_tailor_renders_persists_and_fetches_artifacts(tmp_path):
    async def scenario():
        ai = FakeAI()
        store = HistoryStore(tmp_path)
        orchestrator = _orchestrator(ai, store)
        await _tailored(orchestrator)
        return orchestrator, store

    orchestrator, store = asyncio.run(scenario())
    state = orchestrator.state
    assert state.phase is Phase.READY
    assert state.has_document
    assert state.last_resume_data == RESUME
    assert state.rendered_document == render_resume(RESUME, StyleId.MODERN)
    assert state.derived_artifacts == DerivedArtifacts(
        cover_letter="Dear hiring team", match_report="Score: 90/100"
    )
    assert [entry.resume_data for entry in store.list()] == [RESUME]


def test_style_changes_rerender_without_ai_calls():
    async def scenario():
        ai = FakeAI()
        renderer = CountingRenderer()
        orchestrator = _orchestrator(ai, renderer=renderer)
        await _tailored(orchestrator)
        others = [s for s in StyleId if s is not StyleId.MODERN]
        for style in others:
            orchestrator.change_style(style)
            assert orchestrator.state.rendered_document == render_resume(RESUME, style)
        return ai, renderer, others

    ai, renderer, others = asyncio.run(scenario())
    assert len(ai.tailor_calls) == 1
    assert renderer.calls == [StyleId.MODERN] + others


def test_style_change_without_data_only_records_the_style():
    renderer = CountingRenderer()
    orchestrator = _orchestrator(renderer=renderer)
    orchestrator.change_style("classic")
    assert orchestrator.state.current_style is StyleId.CLASSIC
    assert orchestrator.state.rendered_document is None
    assert renderer.calls == []


def test_inputs_are_truncated_before_tailoring():
    async def scenario():
        ai = FakeAI()
        orchestrator = _orchestrator(ai)
        orchestrator.update_resume_text("r" * 30_000)
        orchestrator.update_job_description("j" * 12_000)
        await orchestrator.tailor()
        await orchestrator.wait_for_background()
        return ai

    ai = asyncio.run(scenario())
    resume_text, job_description = ai.tailor_calls[0]
    assert len(resume_text) == MAX_RESUME_CHARS == 25_000
    assert len(job_description) == MAX_JOB_DESCRIPTION_CHARS == 10_000


def test_tailor_is_a_noop_without_both_inputs():
    async def scenario():
        ai = FakeAI()
        orchestrator = _orchestrator(ai)
        orchestrator.update_resume_text("resume")
        orchestrator.update_job_description("   ")
        result = await orchestrator.tailor()
        return ai, orchestrator, result

    ai, orchestrator, result = asyncio.run(scenario())
    assert result is False
    assert ai.tailor_calls == []
    assert orchestrator.state.phase is Phase.IDLE


def test_loading_a_new_source_clears_tailored_state():
    async def scenario():
        orchestrator = _orchestrator()
        await _tailored(orchestrator)
        await orchestrator.load_source(b"Another  resume")
        return orchestrator

    state = asyncio.run(scenario()).state
    assert state.last_resume_data is None
    assert state.rendered_document is None
    assert state.derived_artifacts == DerivedArtifacts()
    assert state.raw_extracted_text == "Another\nresume"
    assert state.job_description_text == "Kotlin backend role"
    assert state.phase is Phase.IDLE


def test_extraction_failure_enters_error_and_dismiss_returns_to_idle():
    async def scenario():
        orchestrator = _orchestrator()
        await orchestrator.load_source(b"corrupt")
        return orchestrator

    orchestrator = asyncio.run(scenario())
    assert orchestrator.state.phase is Phase.ERROR
    assert orchestrator.state.error_message == "Failed to read PDF: file is damaged"
    orchestrator.dismiss_error()
    assert orchestrator.state.phase is Phase.IDLE
    assert orchestrator.state.error_message is None


def test_ai_failure_keeps_previous_document():
    async def scenario():
        ai = FakeAI()
        orchestrator = _orchestrator(ai)
        await _tailored(orchestrator)
        document = orchestrator.state.rendered_document
        ai.error = TailorError("quota exceeded")
        result = await orchestrator.tailor()
        return orchestrator, document, result

    orchestrator, document, result = asyncio.run(scenario())
    assert result is False
    assert orchestrator.state.phase is Phase.ERROR
    assert orchestrator.state.error_message == "Error: quota exceeded"
    assert orchestrator.state.rendered_document == document
    assert orchestrator.state.last_resume_data == RESUME


def test_empty_ai_result_is_an_error():
    async def scenario():
        orchestrator = _orchestrator(FakeAI(result=None))
        await orchestrator.load_source(b"resume")
        orchestrator.update_job_description("jd")
        await orchestrator.tailor()
        return orchestrator

    state = asyncio.run(scenario()).state
    assert state.phase is Phase.ERROR
    assert state.error_message == "AI returned empty result."
    assert state.rendered_document is None


def test_artifact_failures_are_isolated():
    async def scenario():
        ai = FakeAI(cover_letter=TailorError("boom"), report="Score: 70/100")
        orchestrator = _orchestrator(ai)
        await _tailored(orchestrator)
        return orchestrator

    state = asyncio.run(scenario()).state
    assert state.phase is Phase.READY
    assert state.derived_artifacts.cover_letter == COVER_LETTER_FAILED
    assert state.derived_artifacts.match_report == "Score: 70/100"


def test_absent_artifacts_become_placeholders():
    async def scenario():
        orchestrator = _orchestrator(FakeAI(cover_letter=None, report=None))
        await _tailored(orchestrator)
        return orchestrator

    artifacts = asyncio.run(scenario()).state.derived_artifacts
    assert artifacts == DerivedArtifacts(
        cover_letter=COVER_LETTER_FAILED, match_report=MATCH_REPORT_FAILED
    )


def test_second_tailor_while_in_flight_is_rejected():
    async def scenario():
        ai = BlockingAI()
        orchestrator = _orchestrator(ai)
        await orchestrator.load_source(b"resume")
        orchestrator.update_job_description("jd")
        first = asyncio.create_task(orchestrator.tailor())
        await asyncio.sleep(0)
        assert orchestrator.state.phase is Phase.AWAITING_AI_RESULT
        second = await orchestrator.tailor()
        ai.release.set()
        result = await first
        await orchestrator.wait_for_background()
        return ai, orchestrator, result, second

    ai, orchestrator, first, second = asyncio.run(scenario())
    assert second is False
    assert first is True
    assert len(ai.tailor_calls) == 1
    assert orchestrator.state.phase is Phase.READY


def test_result_arriving_after_reset_is_discarded():
    async def scenario():
        ai = BlockingAI()
        orchestrator = _orchestrator(ai)
        await orchestrator.load_source(b"first resume")
        orchestrator.update_job_description("jd")
        pending = asyncio.create_task(orchestrator.tailor())
        await asyncio.sleep(0)
        await orchestrator.load_source(b"second resume")
        ai.release.set()
        result = await pending
        await orchestrator.wait_for_background()
        return ai, orchestrator, result

    ai, orchestrator, result = asyncio.run(scenario())
    state = orchestrator.state
    assert result is False
    assert ai.cover_letter_calls == 0
    assert state.last_resume_data is None
    assert state.rendered_document is None
    assert state.raw_extracted_text == "second resume"
    assert state.phase is Phase.IDLE


def test_edit_fields_rerenders_without_ai_or_artifact_refresh():
    async def scenario():
        ai = FakeAI()
        orchestrator = _orchestrator(ai)
        await _tailored(orchestrator)
        orchestrator.change_style(StyleId.COMPACT)
        artifacts = orchestrator.state.derived_artifacts
        assert orchestrator.edit_fields(name="Sam Applicant", skills="Go\n\nRust\n")
        return ai, orchestrator, artifacts

    ai, orchestrator, artifacts = asyncio.run(scenario())
    state = orchestrator.state
    assert state.last_resume_data.name == "Sam Applicant"
    assert state.last_resume_data.skills == ["Go", "Rust"]
    assert state.last_resume_data.summary == RESUME.summary
    assert state.rendered_document == render_resume(state.last_resume_data, StyleId.COMPACT)
    assert state.derived_artifacts is artifacts
    assert len(ai.tailor_calls) == 1
    assert ai.cover_letter_calls == 1


def test_edit_fields_without_data_is_rejected():
    orchestrator = _orchestrator()
    assert orchestrator.edit_fields(name="Sam") is False
    assert orchestrator.preview_fields(name="Sam") is None
    assert orchestrator.state.last_resume_data is None


def test_preview_does_not_commit():
    async def scenario():
        orchestrator = _orchestrator()
        await _tailored(orchestrator)
        return orchestrator

    orchestrator = asyncio.run(scenario())
    before = orchestrator.state
    preview = orchestrator.preview_fields(summary="Draft summary")
    assert "Draft summary" in preview
    assert orchestrator.state is before


def test_load_from_history_rerenders_and_refreshes_artifacts(tmp_path):
    store = HistoryStore(tmp_path)
    entry = store.persist(RESUME)

    async def scenario():
        ai = FakeAI()
        orchestrator = _orchestrator(ai, store)
        orchestrator.change_style(StyleId.CREATIVE)
        orchestrator.update_job_description("Kotlin role")
        assert await orchestrator.load_from_history(entry)
        await orchestrator.wait_for_background()
        return ai, orchestrator

    ai, orchestrator = asyncio.run(scenario())
    state = orchestrator.state
    assert ai.tailor_calls == []
    assert ai.cover_letter_calls == 1
    assert ai.report_calls == 1
    assert state.phase is Phase.READY
    assert state.last_resume_data == RESUME
    assert state.rendered_document == render_resume(RESUME, StyleId.CREATIVE)
    assert state.derived_artifacts.cover_letter == "Dear hiring team"


def test_history_read_failure_is_reported():
    entry = HistoryEntry(
        resume_data=RESUME,
        created_at=datetime.now(timezone.utc),
        path=Path("/nonexistent/resume_1.json"),
    )

    async def scenario():
        orchestrator = _orchestrator(history=BrokenHistory())
        await orchestrator.load_from_history(entry)
        return orchestrator

    state = asyncio.run(scenario()).state
    assert state.phase is Phase.ERROR
    assert state.error_message == "Failed to load saved resume."


def test_history_write_failure_does_not_block_render():
    async def scenario():
        orchestrator = _orchestrator(history=BrokenHistory())
        await _tailored(orchestrator)
        return orchestrator

    state = asyncio.run(scenario()).state
    assert state.phase is Phase.READY
    assert state.rendered_document == render_resume(RESUME, StyleId.MODERN)


def test_history_listing_and_deletion(tmp_path):
    store = HistoryStore(tmp_path)
    orchestrator = _orchestrator(history=store)
    older = store.persist(RESUME)
    newer = store.persist(RESUME.with_changes(name="Sam"))
    assert [e.path for e in orchestrator.list_history()] == [newer.path, older.path]
    orchestrator.delete_history(newer)
    assert [e.path for e in orchestrator.list_history()] == [older.path]
    assert _orchestrator().list_history() == []


def test_subscribers_receive_snapshots_until_unsubscribed():
    orchestrator = _orchestrator()
    seen = []
    unsubscribe = orchestrator.subscribe(seen.append)
    orchestrator.update_job_description("jd")
    unsubscribe()
    orchestrator.update_job_description("ignored")
    assert [s.job_description_text for s in seen] == ["", "jd"]


def test_job_description_from_image():
    async def scenario():
        ai = FakeAI()
        orchestrator = _orchestrator(ai)
        ok = await orchestrator.load_job_description_from_image(b"png")
        text = orchestrator.state.job_description_text
        ai.image_text = None
        failed = await orchestrator.load_job_description_from_image(b"png")
        return orchestrator, ok, text, failed

    orchestrator, ok, text, failed = asyncio.run(scenario())
    assert ok is True
    assert text == "Senior engineer wanted"
    assert failed is False
    assert orchestrator.state.phase is Phase.ERROR
    assert orchestrator.state.error_message == "Could not read text from image."
    assert orchestrator.state.job_description_text == "Senior engineer wanted"


def _saved_entry(data=RESUME):
    return HistoryEntry(resume_data=data, created_at=datetime.now(timezone.utc), path=None)


def test_history_load_is_rejected_while_tailoring():
    async def scenario():
        ai = BlockingAI()
        orchestrator = _orchestrator(ai)
        await orchestrator.load_source(b"resume")
        orchestrator.update_job_description("jd")
        pending = asyncio.create_task(orchestrator.tailor())
        await asyncio.sleep(0)
        loaded = await orchestrator.load_from_history(_saved_entry(RESUME.with_changes(name="Old")))
        phase = orchestrator.state.phase
        ai.release.set()
        await pending
        await orchestrator.wait_for_background()
        return orchestrator, loaded, phase

    orchestrator, loaded, phase = asyncio.run(scenario())
    assert loaded is False
    assert phase is Phase.AWAITING_AI_RESULT
    assert orchestrator.state.last_resume_data == RESUME
    assert orchestrator.state.phase is Phase.READY


def test_busy_flag_outlives_a_reset_until_the_call_returns():
    async def scenario():
        ai = BlockingAI()
        orchestrator = _orchestrator(ai)
        await orchestrator.load_source(b"first resume")
        orchestrator.update_job_description("jd")
        pending = asyncio.create_task(orchestrator.tailor())
        await asyncio.sleep(0)
        await orchestrator.load_source(b"second resume")
        busy_after_reset = orchestrator.ai_busy
        retried = await orchestrator.tailor()
        ai.release.set()
        await pending
        return orchestrator, busy_after_reset, retried

    orchestrator, busy_after_reset, retried = asyncio.run(scenario())
    assert busy_after_reset is True
    assert retried is False
    assert orchestrator.ai_busy is False


def test_history_read_finishing_after_new_source_is_discarded():
    async def scenario():
        history = SlowHistory()
        orchestrator = _orchestrator(history=history)
        pending = asyncio.create_task(orchestrator.load_from_history(_saved_entry()))
        await asyncio.sleep(0)
        await orchestrator.load_source(b"fresh resume")
        history.release.set()
        loaded = await pending
        await orchestrator.wait_for_background()
        return orchestrator, loaded

    orchestrator, loaded = asyncio.run(scenario())
    state = orchestrator.state
    assert loaded is False
    assert state.last_resume_data is None
    assert state.rendered_document is None
    assert state.raw_extracted_text == "fresh resume"
    assert state.phase is Phase.IDLE
