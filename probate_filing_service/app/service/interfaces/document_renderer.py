from abc import ABC, abstractmethod
from typing import Any, Dict

from probate_filing_service.app.domain.document import RenderedDocument


class AbstractDocumentRenderer(ABC):
    @abstractmethod
    async def render(self, template_id: str, data: Dict[str, Any]) -> RenderedDocument:
        """
        Renders a court form from a template and stores the result.

        Args:
            template_id: Identifier of the form template (the FormType value).
            data: Merge fields for the template.

        Returns:
            The storage reference, checksum and size of the rendered file.

        Raises:
            DocumentRenderingError: if the rendering service fails.
        """
        pass
