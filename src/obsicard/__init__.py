"""
ObsiCard: turn Markdown notes into Anki flashcards with Groq.
"""

__version__ = "0.1.0"
