from transform_engine.tasks.transform_pipeline import JobNotFoundError, TransformTaskHandler, build_task_handler

__all__ = ["JobNotFoundError", "TransformTaskHandler", "build_task_handler"]
