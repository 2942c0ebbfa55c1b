"""
Scheduled and on-demand jobs.
"""
from newsroom.jobs.refresh import NewsRefreshJob, build_default_pipelines, build_source_descriptors

__all__ = ["NewsRefreshJob", "build_default_pipelines", "build_source_descriptors"]
