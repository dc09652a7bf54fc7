"""
Dialogue export formats
"""

from .exporter import DialogueExporter

__all__ = ["DialogueExporter"]
