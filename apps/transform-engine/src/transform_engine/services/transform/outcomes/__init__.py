from transform_engine.services.transform.outcomes.ai_image import ai_image_outcome
from transform_engine.services.transform.outcomes.ai_video import ai_video_outcome
from transform_engine.services.transform.outcomes.gif import gif_outcome
from transform_engine.services.transform.outcomes.photo import photo_outcome

__all__ = ["ai_image_outcome", "ai_video_outcome", "gif_outcome", "photo_outcome"]
