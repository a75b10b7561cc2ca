"""Service layer for fetching, generating and orchestrating transformations."""

from .cleaner import CleanedText, clean_text_for_llm
from .fetcher import ContentFetcher
from .generator import GenerationRequest, GenerationResponse, Generator
from .jobs import JobRecord, JobRunner, JobStage, JobStatus, JobStore, JobSubmission, generate_job_id
from .parser import ContentParser, ParsedContent
from .pipeline import TransformationPipeline, create_transformation_pipeline
from .usage import InMemoryUsageTracker, UsageTracker

__all__ = [
    "CleanedText",
    "ContentFetcher",
    "ContentParser",
    "GenerationRequest",
    "GenerationResponse",
    "Generator",
    "InMemoryUsageTracker",
    "JobRecord",
    "JobRunner",
    "JobStage",
    "JobStatus",
    "JobStore",
    "JobSubmission",
    "ParsedContent",
    "TransformationPipeline",
    "UsageTracker",
    "clean_text_for_llm",
    "create_transformation_pipeline",
    "generate_job_id",
]
