"""Static package data: base templates for the generated artifacts."""

from pathlib import Path

DATA_DIR = Path(__file__).parent
TEMPLATES_DIR = DATA_DIR / "templates"
