"""Models for gba."""

from .config import ProjectConfig
from .feature import (
    CostInfo,
    ExecutionStats,
    FeatureState,
    ResumeContext,
    TaskKind,
    TaskState,
    WorktreeInfo,
)

__all__ = [
    'ProjectConfig',
    'CostInfo',
    'ExecutionStats',
    'FeatureState',
    'ResumeContext',
    'TaskKind',
    'TaskState',
    'WorktreeInfo',
]
