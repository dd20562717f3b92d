"""Prompt mention resolution.

Prompts reference session data with two kinds of mention:

- ``@{step:Step Name}`` is replaced by that step's answer. Text answers are
  inserted as-is, multi-select answers as a comma separated list, and captured
  media as an ``[IMAGE: Step Name]`` placeholder (the media is collected so it
  can be sent along with the prompt).
- ``@{ref:Display Name}`` points at one of the configured reference images and
  becomes ``[IMAGE: Display Name]``.

Mentions that match nothing resolve to an empty string.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Sequence

from transform_engine.schemas.session import MediaReference, MultiSelectOption, SessionResponse

logger = logging.getLogger(__name__)

STEP_MENTION = re.compile(r"@\{step:([^}]+)\}")
REF_MENTION = re.compile(r"@\{ref:([^}]+)\}")


@dataclass
class ResolvedPrompt:
    text: str
    media_refs: List[MediaReference] = field(default_factory=list)


def resolve_prompt_mentions(
    prompt: str,
    responses: Sequence[SessionResponse],
    reference_media: Sequence[MediaReference] = (),
) -> ResolvedPrompt:
    media_refs: List[MediaReference] = []
    seen = set()

    def collect(ref: MediaReference) -> None:
        if ref.media_asset_id not in seen:
            seen.add(ref.media_asset_id)
            media_refs.append(ref)

    responses_by_name = {r.step_name: r for r in responses}
    refs_by_name = {r.display_name: r for r in reference_media}

    def replace_step(match: re.Match) -> str:
        step_name = match.group(1)
        response = responses_by_name.get(step_name)
        if response is None:
            logger.warning("Prompt mentions unknown step %r, substituting empty value", step_name)
            return ""
        return _response_text(response, collect)

    def replace_ref(match: re.Match) -> str:
        display_name = match.group(1)
        ref = refs_by_name.get(display_name)
        if ref is None:
            logger.warning("Prompt mentions unknown reference %r, substituting empty value", display_name)
            return ""
        collect(ref)
        return f"[IMAGE: {display_name}]"

    text = STEP_MENTION.sub(replace_step, prompt)
    text = REF_MENTION.sub(replace_ref, text)
    return ResolvedPrompt(text=text.strip(), media_refs=media_refs)


def _response_text(response: SessionResponse, collect) -> str:
    data = response.data
    if data is None:
        return ""
    if isinstance(data, str):
        return data
    if not data:
        # Capture steps keep their placeholder even without media
        return f"[IMAGE: {response.step_name}]" if response.is_capture else ""

    first = data[0]
    if isinstance(first, MultiSelectOption):
        return ", ".join(option.value for option in data)
    if isinstance(first, MediaReference):
        for ref in data:
            collect(ref)
        return f"[IMAGE: {response.step_name}]"

    logger.warning("Unsupported answer data for step %r", response.step_name)
    return ""
