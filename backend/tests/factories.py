"""Builders for staged items and batch outputs used across tests."""

from typing import Any

from quizforge.models.content import StagedFlashcard, StagedMCQ
from quizforge.models.job import BatchOutput

SAMPLE_TEXT = """
Neonatal jaundice is a yellowish discoloration of the skin and sclera of a
newborn caused by high bilirubin levels. Physiological jaundice appears after
24 hours of life and resolves within two weeks.

Pathological jaundice appears within the first 24 hours, rises faster than
5 mg/dL per day, or persists beyond two weeks. Causes include hemolysis from
ABO or Rh incompatibility, G6PD deficiency and sepsis.

Phototherapy converts unconjugated bilirubin into water-soluble isomers.
Exchange transfusion is reserved for levels approaching the risk of
kernicterus, a bilirubin encephalopathy affecting the basal ganglia.
""".strip()


def make_mcq(n: int = 0, **overrides: Any) -> StagedMCQ:
    data = {
        "question": f"Question {n} about neonatal jaundice?",
        "options": ["A. Phototherapy", "B. Observation", "C. Exchange transfusion", "D. IVIG"],
        "answer": "A",
        "explanation": f"Explanation {n}",
        "difficulty": "medium",
        "tags": ["neonatology"],
    }
    data.update(overrides)
    return StagedMCQ(**data)


def make_flashcard(n: int = 0, **overrides: Any) -> StagedFlashcard:
    data = {"front": f"Front {n}", "back": f"Back {n}", "tags": ["neonatology"]}
    data.update(overrides)
    return StagedFlashcard(**data)


def make_batch_output(mcq_count: int, flashcard_count: int, offset: int = 0) -> BatchOutput:
    return BatchOutput(
        mcqs=[make_mcq(offset + i) for i in range(mcq_count)],
        flashcards=[make_flashcard(offset + i) for i in range(flashcard_count)],
    )
