"""
Face Template Registry Module

In-memory registry of face templates produced by one recognition algorithm.

The registry is seeded with an initial list of tagged templates (typically
loaded by its owner at startup) and provides:
- register_face: extract a template and enrol it under an identifier
- identify_face: 1:N search over all registered templates
- authenticate_face: 1:1 verification against one identifier
- get_face_templates / get_identifiers / get_face_templates_by_identifier
- close: clear the registry and release the recognition capability

All reads return copies. The registry is safe to share between threads: the
template list and the closed flag are guarded by the store lock, which is
never held while the recognition capability runs.

Usage:
    from template_registry import FaceTemplateRegistry, RegistryConfiguration

    with FaceTemplateRegistry(recognition, templates) as registry:
        registry.register_face(face, image, "Alice")
        results = registry.identify_face(face, image)
"""

import logging
from typing import Any, Iterable, List, Optional, Set

from template_registry.config import RegistryConfiguration, get_registry_config
from template_registry.exceptions import RegistryClosedError
from template_registry.face_template import (
    AuthenticationResult,
    Face,
    FaceTemplate,
    IdentificationResult,
    TaggedFaceTemplate,
    TemplateVersion,
)
from template_registry.matching.engine import MatchEngine
from template_registry.matching.interfaces import FaceRecognition
from template_registry.template_store import TemplateStore

logger = logging.getLogger(__name__)


class FaceTemplateRegistry:
    """
    Registry of face templates of a single version.

    Attributes:
        face_recognition: Capability that creates and compares the templates.
        configuration: Registry thresholds.

    Args:
        face_recognition: Recognition capability of the registry's version.
        face_templates: Initial tagged templates. Must be of the capability's version.
        configuration: Thresholds. Defaults to RegistryConfiguration().

    Raises:
        ValueError: If an initial template has a different version.
    """

    def __init__(
        self,
        face_recognition: FaceRecognition,
        face_templates: Optional[Iterable[TaggedFaceTemplate]] = None,
        configuration: Optional[RegistryConfiguration] = None,
    ):
        self.face_recognition = face_recognition
        self.configuration = configuration or RegistryConfiguration()

        face_templates = list(face_templates or [])
        for tagged in face_templates:
            if tagged.version != face_recognition.version:
                raise ValueError(
                    f"Template of '{tagged.identifier}' has version {tagged.version}, "
                    f"registry expects {face_recognition.version}"
                )

        self._store = TemplateStore(face_templates)
        self._engine = MatchEngine(face_recognition, self.configuration)
        self._closed = False

        logger.info(
            f"FaceTemplateRegistry initialized: version={self.version}, "
            f"templates={len(face_templates)}"
        )

    @classmethod
    def from_config(
        cls,
        face_recognition: FaceRecognition,
        face_templates: Optional[Iterable[TaggedFaceTemplate]] = None,
        config_path: Optional[str] = None,
    ) -> "FaceTemplateRegistry":
        """
        Create a registry using the thresholds of the ``registry`` config section.

        Args:
            face_recognition: Recognition capability of the registry's version.
            face_templates: Initial tagged templates.
            config_path: Config file to read. Defaults to the project config.yaml.
        """
        return cls(face_recognition, face_templates, get_registry_config(config_path))

    @property
    def version(self) -> TemplateVersion:
        """Version of the templates held by this registry."""
        return self.face_recognition.version

    @property
    def is_closed(self) -> bool:
        return self._closed

    def get_face_templates(self) -> List[TaggedFaceTemplate]:
        """
        Get all registered face templates.

        Returns:
            Copy of the tagged template list, in registration order.
        """
        self._ensure_not_closed()
        return self._store.snapshot()

    def get_identifiers(self) -> Set[str]:
        """
        Get all registered identifiers.

        Returns:
            Set of identifiers owning at least one template.
        """
        self._ensure_not_closed()
        return self._store.identifiers()

    def get_face_templates_by_identifier(self, identifier: str) -> List[FaceTemplate]:
        """
        Get face templates tagged as the given identifier.

        Args:
            identifier: Identifier for which to get face templates.

        Returns:
            List of face templates (empty if the identifier is unknown).
        """
        self._ensure_not_closed()
        return self._store.by_identifier(identifier)

    def register_face(
        self,
        face: Face,
        image: Any,
        identifier: str,
        force_enrolment: bool = False,
    ) -> FaceTemplate:
        """
        Register a face template from face and image.

        Args:
            face: Face to register a template for.
            image: Image in which the face was detected.
            identifier: Identifier of the user to whom the face belongs.
            force_enrolment: If True, the face is enrolled even if a similar
                             face is registered under another identifier.

        Returns:
            The registered face template.

        Raises:
            RegistryClosedError: If the registry is closed.
            SimilarFaceAlreadyRegisteredError: If the face resembles another
                identifier's face and enrolment is not forced.
            FaceDoesNotMatchExistingError: If existing-identifier verification
                is enabled and the face does not match the identifier's faces.
        """
        self._ensure_not_closed()
        template = self._create_template(face, image)

        if not force_enrolment:
            self._engine.check_registration(self._store.snapshot(), template, identifier)

        tagged = TaggedFaceTemplate(template, identifier)
        with self._store.locked() as store:
            # close() may have run while the capability was busy
            self._ensure_not_closed()
            store.append_unlocked(tagged)

        logger.info(
            f"Registered face for '{identifier}' (version={self.version}, "
            f"forced={force_enrolment})"
        )
        return template

    def identify_face(self, face: Face, image: Any) -> List[IdentificationResult]:
        """
        Identify a face.

        Args:
            face: Face to identify.
            image: Image in which the face was detected.

        Returns:
            Identification results ordered by best match first. Each identifier
            appears at most once, with its best matching template.
        """
        self._ensure_not_closed()
        face_templates = self._store.snapshot()
        template = self._create_template(face, image)
        return self._engine.identify(face_templates, template)

    def authenticate_face(
        self, face: Face, image: Any, identifier: str
    ) -> AuthenticationResult:
        """
        Authenticate a face against a specific identifier.

        Args:
            face: Face to authenticate.
            image: Image in which the face was detected.
            identifier: Identifier to authenticate against.

        Returns:
            Authentication result with the best score among the identifier's templates.

        Raises:
            IdentifierNotRegisteredError: If no templates are registered for the identifier.
        """
        self._ensure_not_closed()
        face_templates = self._store.snapshot()
        template = self._create_template(face, image)
        return self._engine.authenticate(face_templates, template, identifier)

    def close(self) -> None:
        """
        Close the registry.

        Clears the registered templates and closes the recognition capability.
        Subsequent calls to the registry raise RegistryClosedError. Calling
        close more than once has no effect.
        """
        with self._store.locked() as store:
            if self._closed:
                return
            self._closed = True
            store.clear_unlocked()

        self.face_recognition.close()
        logger.info(f"FaceTemplateRegistry closed (version={self.version})")

    def __enter__(self) -> "FaceTemplateRegistry":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __len__(self) -> int:
        self._ensure_not_closed()
        return len(self._store)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"FaceTemplateRegistry(version={self.version}, {state})"

    def _create_template(self, face: Face, image: Any) -> FaceTemplate:
        templates = self.face_recognition.create_face_recognition_templates([face], image)
        if len(templates) != 1:
            raise ValueError(
                f"Recognition returned {len(templates)} templates for one face"
            )
        return templates[0]

    def _ensure_not_closed(self) -> None:
        if self._closed:
            raise RegistryClosedError("FaceTemplateRegistry")
