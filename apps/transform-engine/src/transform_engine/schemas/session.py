"""Session response and media reference documents."""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class DocumentModel(BaseModel):
    """Base for stored documents: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        """Serialize to the stored/wire representation."""
        return self.model_dump(by_alias=True, mode="json")


class MediaReference(DocumentModel):
    """Pointer to a previously uploaded asset in the object store."""

    media_asset_id: str
    url: Optional[str] = None
    file_path: str
    display_name: str = "Untitled"
    mime_type: str = "image/jpeg"


class OverlayReference(MediaReference):
    """Overlay image resolved at job creation."""

    mime_type: str = "image/png"


class MultiSelectOption(DocumentModel):
    value: str
    prompt_fragment: Optional[str] = None


ResponseData = Union[str, List[MediaReference], List[MultiSelectOption], None]


class SessionResponse(DocumentModel):
    """One guest answer or capture, keyed by step."""

    step_id: str
    step_name: str
    step_type: str
    data: ResponseData = None

    @property
    def is_capture(self) -> bool:
        return self.step_type.startswith("capture.")

    @property
    def media(self) -> List[MediaReference]:
        """Captured media in this response, if any."""
        if isinstance(self.data, list):
            return [item for item in self.data if isinstance(item, MediaReference)]
        return []
