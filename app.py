import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

import gradio as gr

from llm.client import build_client
from llm.pipeline import ResumeAI
from resume_parser.parser import extract_text, read_image_bytes
from schemas.resume import StyleId
from storage.history import HistoryStore
from workflow.orchestrator import GenerationOrchestrator, Phase

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("tailored_resume_studio")

APP_TITLE = "Tailored Resume Studio"
LOCAL_KEY_PATH = Path.home() / ".tailored_resume_studio_key"
HISTORY_DIR = Path(
    os.getenv("RESUME_STUDIO_HISTORY_DIR", str(Path.home() / ".tailored_resume_studio" / "history"))
)
DEFAULT_MODEL = os.getenv("RESUME_STUDIO_MODEL", "gpt-4o-mini")
OPENAI_MODELS = [DEFAULT_MODEL] + [m for m in ["gpt-4o-mini", "gpt-4o", "gpt-4.1-mini"] if m != DEFAULT_MODEL]
HF_MODELS = [
    "meta-llama/Llama-3.1-8B-Instruct",
    "HuggingFaceH4/zephyr-7b-beta",
]
HF_PROVIDER_LABEL = "Hugging Face (Inference API)"
BUSY_MESSAGE = "Previous AI request is still finishing. Try again in a moment."
STYLE_CHOICES = [(style.label, style.value) for style in StyleId]


def _provider_defaults(provider: str) -> Tuple[list[str], str, str]:
    if provider == HF_PROVIDER_LABEL:
        return HF_MODELS, HF_MODELS[0], "Hugging Face Token"
    return OPENAI_MODELS, OPENAI_MODELS[0], "OpenAI API Key"


def load_api_key() -> Optional[str]:
    env_key = os.getenv("OPENAI_API_KEY")
    if env_key:
        return env_key
    try:
        import keyring  # type: ignore

        return keyring.get_password(APP_TITLE, "api_key")
    except Exception:
        if LOCAL_KEY_PATH.exists():
            try:
                return LOCAL_KEY_PATH.read_text().strip()
            except OSError:
                return None
    return None


def save_api_key(key: str) -> None:
    try:
        import keyring  # type: ignore

        keyring.set_password(APP_TITLE, "api_key", key)
        return
    except Exception:
        LOCAL_KEY_PATH.write_text(key)


def clear_api_key() -> str:
    try:
        import keyring  # type: ignore

        keyring.delete_password(APP_TITLE, "api_key")
    except Exception as exc:
        logger.info("No keyring entry removed: %s", exc)
    if LOCAL_KEY_PATH.exists():
        LOCAL_KEY_PATH.unlink()
    return ""


def build_orchestrator(history_dir: Path = HISTORY_DIR) -> Tuple[GenerationOrchestrator, ResumeAI]:
    ai = ResumeAI()
    orchestrator = GenerationOrchestrator(ai, extract_text, HistoryStore(history_dir))
    return orchestrator, ai


def _export_html(document: Optional[str]) -> Optional[str]:
    if not document:
        return None
    with tempfile.NamedTemporaryFile(delete=False, suffix=".html") as tmp:
        tmp.write(document.encode("utf-8"))
        return tmp.name


def build_ui():
    stored_key = load_api_key() or ""
    orchestrator, ai = build_orchestrator()

    def _status() -> str:
        state = orchestrator.state
        if state.phase is Phase.ERROR:
            message = state.error_message or "Unknown error."
            orchestrator.dismiss_error()
            return message
        if state.phase is Phase.READY:
            return "Resume ready."
        return ""

    def _document_outputs():
        document = orchestrator.state.rendered_document
        return document or "", _export_html(document)

    def _history_choices() -> List[Tuple[str, str]]:
        return [(entry.label, str(entry.path)) for entry in orchestrator.list_history()]

    def _find_history(path: Optional[str]):
        for entry in orchestrator.list_history():
            if str(entry.path) == path:
                return entry
        return None

    async def on_upload(pdf_file):
        if pdf_file is None:
            return orchestrator.state.raw_extracted_text, ""
        await orchestrator.load_source(pdf_file)
        return orchestrator.state.raw_extracted_text, _status()

    async def on_jd_image(image_file, current_jd: str):
        if image_file is None:
            return current_jd, ""
        orchestrator.update_job_description(current_jd)
        if orchestrator.ai_busy:
            return current_jd, BUSY_MESSAGE
        await orchestrator.load_job_description_from_image(read_image_bytes(image_file))
        return orchestrator.state.job_description_text, _status()

    async def on_generate(
        resume_text: str,
        job_description: str,
        api_key: str,
        provider: str,
        model: str,
        save_key: bool,
    ):
        if not api_key:
            return "", None, "API key/token required."
        if save_key:
            save_api_key(api_key)
        try:
            ai.configure(build_client(provider, api_key, model))
        except (ValueError, RuntimeError) as exc:
            return "", None, str(exc)
        orchestrator.update_resume_text(resume_text)
        orchestrator.update_job_description(job_description)
        if not resume_text.strip() or not job_description.strip():
            return (*_document_outputs(), "Resume text and job description are both required.")
        if not await orchestrator.tailor() and orchestrator.ai_busy:
            return (*_document_outputs(), BUSY_MESSAGE)
        return (*_document_outputs(), _status())

    async def on_artifacts():
        await orchestrator.wait_for_background()
        artifacts = orchestrator.state.derived_artifacts
        return (
            artifacts.cover_letter or "",
            artifacts.match_report or "",
            gr.update(choices=_history_choices(), value=None),
        )

    def on_style(style_value: str):
        orchestrator.change_style(style_value)
        return _document_outputs()

    def on_edit_open():
        data = orchestrator.state.last_resume_data
        if data is None:
            return "", "", "", ""
        return data.name, data.contact_info, data.summary, "\n".join(data.skills)

    def on_edit_preview(name: str, contact: str, summary: str, skills: str):
        return orchestrator.preview_fields(
            name=name, contact_info=contact, summary=summary, skills=skills
        ) or ""

    def on_edit_save(name: str, contact: str, summary: str, skills: str):
        if not orchestrator.edit_fields(name=name, contact_info=contact, summary=summary, skills=skills):
            return (*_document_outputs(), "Generate a resume before editing.")
        return (*_document_outputs(), "Edits applied.")

    async def on_history_load(path: Optional[str]):
        entry = _find_history(path)
        if entry is None:
            return (*_document_outputs(), "Select a saved resume first.")
        if orchestrator.ai_busy:
            return (*_document_outputs(), BUSY_MESSAGE)
        await orchestrator.load_from_history(entry)
        return (*_document_outputs(), _status())

    def on_history_delete(path: Optional[str]):
        entry = _find_history(path)
        if entry is not None:
            orchestrator.delete_history(entry)
        return gr.update(choices=_history_choices(), value=None)

    with gr.Blocks(title=APP_TITLE) as demo:
        gr.Markdown(f"# {APP_TITLE}\nTailor a resume to a job description and restyle it without extra AI calls.")
        with gr.Row():
            with gr.Column():
                pdf = gr.File(label="Upload Resume PDF", file_types=[".pdf"], type="binary")
                resume_text = gr.Textbox(label="Extracted resume text", lines=12)
                jd = gr.Textbox(label="Job Description", lines=12, placeholder="Paste JD here")
                jd_image = gr.File(label="Job description screenshot", file_types=["image"], type="binary")
            with gr.Column():
                provider = gr.Dropdown(
                    label="Provider",
                    choices=["OpenAI", HF_PROVIDER_LABEL],
                    value="OpenAI",
                )
                api = gr.Textbox(label="OpenAI API Key", type="password", value=stored_key)
                save_key = gr.Checkbox(label="Save key locally (keyring preferred)", value=bool(stored_key))
                model = gr.Dropdown(
                    label="Model name",
                    choices=OPENAI_MODELS,
                    value=OPENAI_MODELS[0],
                    allow_custom_value=True,
                )
                style = gr.Dropdown(
                    label="Style", choices=STYLE_CHOICES, value=orchestrator.state.current_style.value
                )
                clear_btn = gr.Button("Clear stored key")
                status = gr.Textbox(label="Status", interactive=False)

        generate_btn = gr.Button("Generate Tailored Resume")
        preview = gr.HTML(label="Resume preview")
        html_download = gr.File(label="Export .html")

        with gr.Accordion("Cover letter and match report", open=False):
            cover_letter = gr.Textbox(label="Cover letter", lines=12)
            match_report = gr.Textbox(label="ATS match report", lines=6)

        with gr.Accordion("Edit details", open=False):
            edit_load_btn = gr.Button("Load current details")
            edit_name = gr.Textbox(label="Name")
            edit_contact = gr.Textbox(label="Contact (separate with |)")
            edit_summary = gr.Textbox(label="Summary", lines=4)
            edit_skills = gr.Textbox(label="Skills (one per line)", lines=6)
            live_preview = gr.HTML(label="Live preview")
            edit_save_btn = gr.Button("Save edits")

        with gr.Accordion("Saved resumes", open=False):
            history = gr.Dropdown(label="History", choices=_history_choices(), value=None)
            history_load_btn = gr.Button("Open")
            history_delete_btn = gr.Button("Delete")

        pdf.upload(fn=on_upload, inputs=pdf, outputs=[resume_text, status])
        jd_image.upload(fn=on_jd_image, inputs=[jd_image, jd], outputs=[jd, status])
        generate_btn.click(
            fn=on_generate,
            inputs=[resume_text, jd, api, provider, model, save_key],
            outputs=[preview, html_download, status],
        ).then(fn=on_artifacts, inputs=None, outputs=[cover_letter, match_report, history])
        style.change(fn=on_style, inputs=style, outputs=[preview, html_download])

        edit_fields = [edit_name, edit_contact, edit_summary, edit_skills]
        edit_load_btn.click(fn=on_edit_open, inputs=None, outputs=edit_fields)
        for box in edit_fields:
            box.change(fn=on_edit_preview, inputs=edit_fields, outputs=live_preview, trigger_mode="always_last")
        edit_save_btn.click(fn=on_edit_save, inputs=edit_fields, outputs=[preview, html_download, status])

        history_load_btn.click(
            fn=on_history_load, inputs=history, outputs=[preview, html_download, status]
        ).then(fn=on_artifacts, inputs=None, outputs=[cover_letter, match_report, history])
        history_delete_btn.click(fn=on_history_delete, inputs=history, outputs=history)

        def _update_provider_fields(selected: str):
            choices, value, key_label = _provider_defaults(selected)
            return (
                gr.update(choices=choices, value=value),
                gr.update(label=key_label),
            )

        provider.change(
            fn=_update_provider_fields,
            inputs=provider,
            outputs=[model, api],
        )

        clear_btn.click(fn=clear_api_key, inputs=None, outputs=api)

    return demo


if __name__ == "__main__":
    app = build_ui()
    app.launch(
        server_name="0.0.0.0",
        server_port=int(os.getenv("PORT", "7860")),
    )
