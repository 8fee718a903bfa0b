"""
Pipeline orchestration and job loading.
"""

from .loader import JobConfig, JobConfigLoader, build_engine
from .pipeline import TransformEngine

__all__ = ["JobConfig", "JobConfigLoader", "TransformEngine", "build_engine"]
