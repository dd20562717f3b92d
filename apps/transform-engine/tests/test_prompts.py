"""Tests for prompt mention resolution."""

from transform_engine.schemas.session import MediaReference, SessionResponse
from transform_engine.services.transform.prompts import resolve_prompt_mentions


def _responses():
    return [
        SessionResponse.model_validate({
            "stepId": "s-photo",
            "stepName": "Selfie",
            "stepType": "capture.photo",
            "data": [{"mediaAssetId": "a1", "filePath": "uploads/a1.jpg", "displayName": "Selfie"}],
        }),
        SessionResponse.model_validate({
            "stepId": "s-mood",
            "stepName": "Mood",
            "stepType": "input.shortText",
            "data": "dreamy",
        }),
        SessionResponse.model_validate({
            "stepId": "s-style",
            "stepName": "Style",
            "stepType": "input.multiSelect",
            "data": [{"value": "neon"}, {"value": "retro", "promptFragment": "80s retro"}],
        }),
    ]


class TestResolvePromptMentions:
    """Tests for @{step:...} and @{ref:...} substitution."""

    def setup_method(self):
        self.responses = _responses()
        self.logo = MediaReference(media_asset_id="logo", file_path="media/logo.png", display_name="Logo")

    def test_plain_prompt_unchanged(self):
        resolved = resolve_prompt_mentions("  a cat in space  ", self.responses)

        assert resolved.text == "a cat in space"
        assert resolved.media_refs == []

    def test_text_answer_inlined(self):
        resolved = resolve_prompt_mentions("make it @{step:Mood}", self.responses)

        assert resolved.text == "make it dreamy"

    def test_multi_select_joined(self):
        resolved = resolve_prompt_mentions("style: @{step:Style}", self.responses)

        assert resolved.text == "style: neon, retro"

    def test_capture_becomes_image_placeholder(self):
        resolved = resolve_prompt_mentions("put @{step:Selfie} on the moon", self.responses)

        assert resolved.text == "put [IMAGE: Selfie] on the moon"
        assert [ref.media_asset_id for ref in resolved.media_refs] == ["a1"]

    def test_reference_mention_collects_media(self):
        resolved = resolve_prompt_mentions("add @{ref:Logo} in the corner", self.responses, [self.logo])

        assert resolved.text == "add [IMAGE: Logo] in the corner"
        assert resolved.media_refs == [self.logo]

    def test_unknown_mentions_become_empty(self):
        resolved = resolve_prompt_mentions("a @{step:Missing}cat@{ref:Nope}", self.responses)

        assert resolved.text == "a cat"
        assert resolved.media_refs == []

    def test_repeated_mentions_collect_media_once(self):
        resolved = resolve_prompt_mentions("@{step:Selfie} and @{step:Selfie}", self.responses)

        assert len(resolved.media_refs) == 1

    def test_prompt_of_only_unknown_mentions_is_empty(self):
        resolved = resolve_prompt_mentions("@{step:Ghost}", self.responses)

        assert resolved.text == ""
