"""
Generation package.

LLM-backed stages (planning, batch generation, marrow extraction and
generation, assignment suggestion) and the GenerationWorkers bundle the
pipeline calls them through.
"""

from quizforge.services.generation.workers import GenerationWorkers

__all__ = ["GenerationWorkers"]
