"""
Matching Package for the Face Template Registry

Components:
    - interfaces: FaceRecognition capability interface and a stub implementation
    - engine: MatchEngine, the threshold-based decision logic of a registry

Usage:
    from template_registry.matching import MatchEngine, StubFaceRecognition
"""

from template_registry.matching.interfaces import (
    FaceRecognition,
    StubFaceRecognition,
)
from template_registry.matching.engine import MatchEngine

__all__ = [
    # Recognition capability
    "FaceRecognition",
    "StubFaceRecognition",
    # Decision logic
    "MatchEngine",
]
