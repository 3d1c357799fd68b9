"""Table building, recombination and consolidation stages."""

from .level_builder import ChunkResult, LevelInput, LevelTableBuilder, ParentCellUpdate
from .recombiner import ChunkRecombiner, LevelResult
from .consolidator import Consolidator

__all__ = [
    "ChunkResult",
    "LevelInput",
    "LevelTableBuilder",
    "ParentCellUpdate",
    "ChunkRecombiner",
    "LevelResult",
    "Consolidator",
]
