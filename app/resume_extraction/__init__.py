"""
Resume Extraction Backend Application.

A FastAPI service that turns uploaded resume PDFs into structured profile
data using local PDF parsing and OpenAI (gpt-4o / gpt-4o-mini).
"""

__version__ = "1.0.0"
