"""Workflow definitions module."""

from workflows.post_batch_workflow import PostBatchWorkflow, PostBatchInput, TASK_QUEUE

__all__ = ["PostBatchWorkflow", "PostBatchInput", "TASK_QUEUE"]
