from __future__ import annotations


class RenderPipelineError(RuntimeError):
    """Root of every error raised by the rendering pipeline."""


class ExtractionError(RenderPipelineError):
    """Source file is unreadable or not a Word document. Fatal for the pipeline."""


class PrimaryRenderError(RenderPipelineError):
    """Styled-markup rendering failed. The coordinator recovers with the fallback renderer."""


class FallbackRenderError(RenderPipelineError):
    """The last-resort renderer failed. Fatal."""


class ResourceCleanupError(RenderPipelineError):
    """The rendering engine could not be shut down. Logged, never propagated."""
