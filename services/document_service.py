"""
Document Service
Saves generated diagrams and renders PlantUML previews.
"""

import io
import logging
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError
from plantuml import PlantUML, PlantUMLError

from core.exceptions import PersistenceError
from core.settings import Settings
from services.diagram_formatters import get_formatter
from services.sequence_model import SequenceModel

logger = logging.getLogger(__name__)


class DocumentService:
    """Writes diagram markup to disk; the model itself is never touched."""

    def __init__(self, settings: Optional[Settings] = None, plantuml_client: Optional[PlantUML] = None):
        self.settings = settings or Settings()
        self._plantuml_client = plantuml_client

    @property
    def plantuml_client(self) -> PlantUML:
        if self._plantuml_client is None:
            self._plantuml_client = PlantUML(url=self.settings.plantuml_server_url)
        return self._plantuml_client

    def default_file_name(self, model: SequenceModel) -> str:
        extension = get_formatter(self.settings.diagram_format, self.settings).file_extension
        return model.suggested_file_name(extension)

    def save(
        self,
        model: SequenceModel,
        contents: str,
        directory: Optional[str] = None,
        path: Optional[str] = None
    ) -> Path:
        """
        Write `contents` to `path`, or under the default name in `directory`.

        Raises:
            PersistenceError: if the file cannot be written
        """
        if path:
            target = Path(path)
        else:
            target = Path(directory or ".") / self.default_file_name(model)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(contents, encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Cannot save diagram to {target}: {e}") from e

        logger.info(f"✓ Diagram saved: {target}")
        return target

    def render_preview(self, contents: str, target: Path) -> Path:
        """
        Render PlantUML markup to a PNG beside `target`.

        Raises:
            PersistenceError: if the format is not PlantUML, or rendering
                or writing the image fails
        """
        if self.settings.diagram_format != "plantuml":
            raise PersistenceError("Previews can only be rendered for PlantUML diagrams")

        image_path = Path(target).with_suffix(".png")
        try:
            image_bytes = self.plantuml_client.processes(contents)
            image = Image.open(io.BytesIO(image_bytes))
            image.save(image_path, format="PNG")
        except (PlantUMLError, UnidentifiedImageError, OSError) as e:
            logger.error(f"PlantUML render error: {e}")
            raise PersistenceError(f"Cannot render preview of {target}: {e}") from e

        logger.info(f"✓ Preview rendered: {image_path}")
        return image_path
