"""
Content pipeline: matcher hints, provider-chain classification, category
resolution and action dispatch for captured content items.
"""

from .config import PipelineConfig, StoreConfig
from .runner import ContentPipeline, PipelineResult, PipelineState

__all__ = [
    "ContentPipeline",
    "PipelineConfig",
    "PipelineResult",
    "PipelineState",
    "StoreConfig",
]
