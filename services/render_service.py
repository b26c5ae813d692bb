import base64
import io
import logging
from typing import Optional

import requests
from PIL import Image

from core.settings import settings


class RenderError(RuntimeError):
    """The diagram server could not render the Mermaid text."""


class MermaidRenderer:
    """
    Renders Mermaid text to a Pillow image through a mermaid.ink-compatible server.

    Call ``initialize()`` once before the first render; calling it again is a no-op.
    """

    def __init__(self, server_url: Optional[str] = None, timeout: Optional[float] = None):
        self.server_url = server_url or settings.MERMAID_INK_URL
        self.timeout = timeout if timeout is not None else settings.RENDER_TIMEOUT
        self._session: Optional[requests.Session] = None

    @property
    def initialized(self) -> bool:
        return self._session is not None

    def initialize(self) -> None:
        if self._session is not None:
            return
        if not self.server_url.endswith("/"):
            self.server_url += "/"
        self._session = requests.Session()
        logging.info(f"🖼️ Mermaid renderer ready ({self.server_url})")

    def render(self, diagram_text: str) -> Image.Image:
        if not self.initialized:
            raise RenderError("Renderer not initialized; call initialize() first")
        if not diagram_text or not diagram_text.strip():
            raise RenderError("Nothing to render")

        encoded = base64.urlsafe_b64encode(diagram_text.encode("utf-8")).decode("ascii")
        url = f"{self.server_url}{encoded}?type=png"

        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return Image.open(io.BytesIO(response.content))
        except (requests.RequestException, OSError) as e:
            logging.error(f"Mermaid render error: {e}")
            raise RenderError(f"Diagram render failed: {e}") from e

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
