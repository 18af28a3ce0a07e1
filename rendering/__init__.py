"""Rendering: the pass pipeline, GL surface format and output window."""

from .pipeline_renderer import FrameContext, PipelineRenderer, PipelineState

__all__ = ['FrameContext', 'PipelineRenderer', 'PipelineState']
