"""
Ingestion

Evaluation intake and processing.

Modules:
    queue: Durable evaluation queue and task codec
    extraction: SkillExtractor (AI skill extraction)
    synthesis: ProfileSynthesizer (bilingual profile upsert)
    vectorizer: BatchVectorGenerator (one embedding call per run)
    pipeline: EvaluationPipeline (extract -> synthesize -> vectorize)
    worker: PipelineWorker (scheduled / manual batch consumer)
    realtime: RealtimeProcessor (single submission with progress)
    progress: TaskProgressTracker
    tagging: TagService (contributor tags)
"""

from dendrite.ingestion.extraction import SkillExtractor
from dendrite.ingestion.pipeline import EvaluationPipeline
from dendrite.ingestion.progress import TaskProgressTracker
from dendrite.ingestion.queue import EvaluationQueue, decode_task, encode_task
from dendrite.ingestion.realtime import RealtimeProcessor
from dendrite.ingestion.synthesis import ProfileSynthesizer
from dendrite.ingestion.tagging import TagService
from dendrite.ingestion.vectorizer import BatchVectorGenerator
from dendrite.ingestion.worker import PipelineWorker, WorkerState

__all__ = [
    "BatchVectorGenerator",
    "EvaluationPipeline",
    "EvaluationQueue",
    "PipelineWorker",
    "ProfileSynthesizer",
    "RealtimeProcessor",
    "SkillExtractor",
    "TagService",
    "TaskProgressTracker",
    "WorkerState",
    "decode_task",
    "encode_task",
]
