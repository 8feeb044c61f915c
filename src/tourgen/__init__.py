"""Generate narrative code tours from flattened repositories with an LLM."""

from .errors import TotalChunkFailure, TourGenerationCancelled, TourGenerationError
from .pipeline import TourPipeline, generate_tour
from .snapshot import FileRecord, RepositorySnapshot, load_snapshot
from .steps import RawStep, ValidatedStep
from .tour import Tour, TourGenerationOptions

__all__ = [
    "FileRecord",
    "RawStep",
    "RepositorySnapshot",
    "TotalChunkFailure",
    "Tour",
    "TourGenerationCancelled",
    "TourGenerationError",
    "TourGenerationOptions",
    "TourPipeline",
    "ValidatedStep",
    "generate_tour",
    "load_snapshot",
]

__version__ = "0.1.0"
