"""CV Optimizer: AI-assisted resume rewriting with PDF/DOCX export."""

__version__ = "1.0.0"
