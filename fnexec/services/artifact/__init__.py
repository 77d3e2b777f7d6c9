"""Artifact rendering."""

from .renderer import Artifact, ArtifactRenderer

__all__ = ["Artifact", "ArtifactRenderer"]
