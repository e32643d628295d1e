from __future__ import annotations

from abc import ABC, abstractmethod

from controldoc.types import ControlCopyInfo, DocumentMetadata, RenderDocument, RenderEngine


class DocumentRenderer(ABC):
    """One way of turning extracted content plus metadata into controlled PDF bytes."""

    engine: RenderEngine

    @abstractmethod
    def render(
        self,
        document: RenderDocument,
        metadata: DocumentMetadata,
        control_copy: ControlCopyInfo | None = None,
    ) -> bytes:
        """Return the finished PDF. Errors propagate to the caller."""
