class ResumeStudioError(Exception):
    """Base class for pipeline failures surfaced to the session."""


class ExtractionError(ResumeStudioError):
    """Source document could not be read or yielded no text."""


class TailorError(ResumeStudioError):
    """AI provider failed or its reply did not match the resume schema."""


class RenderError(ResumeStudioError):
    """Template engine failure. Not expected for valid resume data."""
