"""
Match Engine: threshold-based decisions over a pool of tagged templates.

The engine holds no template state. Each call receives a snapshot of a
registry's tagged templates and a challenge template, scores them with the
registry's recognition capability and applies the registry thresholds:

- check_registration: reject a new face that looks like someone else
- identify: 1:N search, best match per identifier, sorted by score
- authenticate: 1:1 verification against one identifier's templates
"""

import logging
from typing import Dict, List, Sequence

import numpy as np

from template_registry.config import RegistryConfiguration
from template_registry.exceptions import (
    FaceDoesNotMatchExistingError,
    IdentifierNotRegisteredError,
    SimilarFaceAlreadyRegisteredError,
)
from template_registry.face_template import (
    AuthenticationResult,
    FaceTemplate,
    IdentificationResult,
    TaggedFaceTemplate,
)
from template_registry.matching.interfaces import FaceRecognition

logger = logging.getLogger(__name__)


class MatchEngine:
    """
    Match decisions for a single template version.

    Args:
        face_recognition: Capability used to score templates.
        configuration: Thresholds applied to the scores.
    """

    def __init__(
        self,
        face_recognition: FaceRecognition,
        configuration: RegistryConfiguration,
    ):
        self.face_recognition = face_recognition
        self.configuration = configuration

    def compare(
        self, pool: Sequence[FaceTemplate], candidate: FaceTemplate
    ) -> np.ndarray:
        """
        Score a challenge template against a pool of templates.

        Args:
            pool: Templates to compare against.
            candidate: Challenge template.

        Returns:
            (len(pool),) float array, positionally aligned with ``pool``.

        Raises:
            ValueError: If the capability returns the wrong number of scores.
        """
        if len(pool) == 0:
            return np.empty(0, dtype=np.float64)

        scores = np.asarray(
            self.face_recognition.compare_face_recognition_templates(list(pool), candidate),
            dtype=np.float64,
        ).ravel()

        if scores.shape[0] != len(pool):
            raise ValueError(
                f"Recognition returned {scores.shape[0]} scores for {len(pool)} templates"
            )
        return scores

    def check_registration(
        self,
        tagged_templates: Sequence[TaggedFaceTemplate],
        candidate: FaceTemplate,
        identifier: str,
    ) -> None:
        """
        Verify that a new template may be registered under ``identifier``.

        A template registered under another identifier that scores at or above
        the authentication threshold is a conflict. The first conflicting
        template in store order names the conflicting identifier.

        Raises:
            SimilarFaceAlreadyRegisteredError: If the face resembles another user.
            FaceDoesNotMatchExistingError: If ``verify_existing_identifier`` is
                enabled and the face matches none of the identifier's templates.
        """
        if not tagged_templates:
            return

        scores = self.compare([t.face_template for t in tagged_templates], candidate)
        threshold = self.configuration.authentication_threshold

        own_scores = []
        for score, tagged in zip(scores, tagged_templates):
            if tagged.identifier == identifier:
                own_scores.append(score)
            elif score >= threshold:
                logger.warning(
                    f"Registration of '{identifier}' rejected: similar to "
                    f"'{tagged.identifier}' (score={score:.3f})"
                )
                raise SimilarFaceAlreadyRegisteredError(tagged.identifier)

        if self.configuration.verify_existing_identifier and own_scores:
            max_score = float(max(own_scores))
            if max_score < threshold:
                logger.warning(
                    f"Registration of '{identifier}' rejected: does not match "
                    f"existing faces (max score={max_score:.3f})"
                )
                raise FaceDoesNotMatchExistingError(max_score)

    def identify(
        self,
        tagged_templates: Sequence[TaggedFaceTemplate],
        candidate: FaceTemplate,
    ) -> List[IdentificationResult]:
        """
        Identify a challenge template among registered templates.

        Templates scoring below the identification threshold are dropped. Each
        identifier appears at most once, represented by its best scoring
        template, and results are ordered by descending score.

        Returns:
            List of identification results, best match first. Empty if nothing
            reaches the threshold.
        """
        if not tagged_templates:
            return []

        scores = self.compare([t.face_template for t in tagged_templates], candidate)
        passing = np.flatnonzero(scores >= self.configuration.identification_threshold)

        best: Dict[str, IdentificationResult] = {}
        for index in passing:
            tagged = tagged_templates[index]
            score = float(scores[index])
            current = best.get(tagged.identifier)
            if current is None or score > current.score:
                best[tagged.identifier] = IdentificationResult(tagged, score)

        results = sorted(best.values(), key=lambda r: r.score, reverse=True)
        logger.debug(
            f"Identification: {len(passing)}/{len(tagged_templates)} templates passed, "
            f"{len(results)} identifiers"
        )
        return results

    def authenticate(
        self,
        tagged_templates: Sequence[TaggedFaceTemplate],
        candidate: FaceTemplate,
        identifier: str,
    ) -> AuthenticationResult:
        """
        Authenticate a challenge template against one identifier.

        Raises:
            IdentifierNotRegisteredError: If the identifier owns no templates.
        """
        templates = [t.face_template for t in tagged_templates if t.identifier == identifier]
        if not templates:
            raise IdentifierNotRegisteredError(identifier)

        scores = self.compare(templates, candidate)
        max_index = int(np.argmax(scores))
        max_score = float(scores[max_index])

        authenticated = max_score >= self.configuration.authentication_threshold
        logger.debug(
            f"Authentication of '{identifier}': score={max_score:.3f}, "
            f"authenticated={authenticated}"
        )
        return AuthenticationResult(
            authenticated=authenticated,
            challenge_face_template=candidate,
            matched_face_template=templates[max_index],
            score=max_score,
        )
