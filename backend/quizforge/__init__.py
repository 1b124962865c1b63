"""quizforge: staged AI generation of quiz content with human approval gates."""

__version__ = "0.1.0"
