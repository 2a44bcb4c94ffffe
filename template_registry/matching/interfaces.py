"""
Recognition Interfaces Module

This module defines the interface of the face recognition capability consumed
by the registries. The registry never extracts or compares templates itself;
it delegates both to a FaceRecognition implementation of a single template
version.

Contract:
1. create_face_recognition_templates - one template per input face, in order
2. compare_face_recognition_templates - one score per pooled template, in order,
   higher = more similar
3. close - release resources held by the capability

A stub implementation is provided for tests and for wiring up an application
before a real recognition backend is available.

Usage:
    from template_registry.matching.interfaces import StubFaceRecognition
    from template_registry.face_template import TemplateVersion

    recognition = StubFaceRecognition(TemplateVersion(1, "stub"))
    templates = recognition.create_face_recognition_templates([face], image)
"""

from abc import ABC, abstractmethod
from typing import Any, List, Sequence

from template_registry.face_template import Face, FaceTemplate, TemplateVersion


class FaceRecognition(ABC):
    """
    Abstract base class for a face recognition capability.

    Implementations produce and compare templates of exactly one
    TemplateVersion. Scores are only meaningful between templates of that
    version; no range is assumed beyond being orderable against the
    registry thresholds.
    """

    @property
    @abstractmethod
    def version(self) -> TemplateVersion:
        """Version of the templates produced by this capability."""

    @abstractmethod
    def create_face_recognition_templates(
        self, faces: Sequence[Face], image: Any
    ) -> List[FaceTemplate]:
        """
        Extract face templates from detected faces.

        Args:
            faces: Faces detected in the image.
            image: Image in which the faces were detected.

        Returns:
            List of face templates, positionally aligned with ``faces``.
        """

    @abstractmethod
    def compare_face_recognition_templates(
        self, face_templates: Sequence[FaceTemplate], template: FaceTemplate
    ) -> Sequence[float]:
        """
        Compare a challenge template against a pool of templates.

        Args:
            face_templates: Pool of templates to compare against.
            template: Challenge template.

        Returns:
            Scores positionally aligned with ``face_templates``.
        """

    def close(self) -> None:
        """Release resources held by the capability."""


class StubFaceRecognition(FaceRecognition):
    """
    Placeholder recognition that maps a face to a single scalar.

    The template value is the left edge of the face bounding box and the
    score between two templates is ``1 - |a - b|``, clipped at 0.
    Use this for testing registry behaviour without a recognition model.
    """

    def __init__(self, version: TemplateVersion):
        """
        Initialize stub recognition.

        Args:
            version: Version to tag produced templates with.
        """
        self._version = version
        self.closed = False

    @property
    def version(self) -> TemplateVersion:
        return self._version

    def create_face_recognition_templates(
        self, faces: Sequence[Face], image: Any
    ) -> List[FaceTemplate]:
        """Return one template per face holding ``face.bbox[0]``."""
        return [FaceTemplate(self._version, float(face.bbox[0])) for face in faces]

    def compare_face_recognition_templates(
        self, face_templates: Sequence[FaceTemplate], template: FaceTemplate
    ) -> List[float]:
        """Score each template by its distance to the challenge value."""
        scores = []
        for face_template in face_templates:
            diff = abs(face_template.data - template.data)
            scores.append(0.0 if diff > 1.0 else 1.0 - diff)
        return scores

    def close(self) -> None:
        self.closed = True
