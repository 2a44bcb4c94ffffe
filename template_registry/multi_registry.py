"""
Face Template Multi-Registry Module

Coordinates several FaceTemplateRegistry instances whose templates come from
different recognition algorithms (versions). Templates of different versions
cannot be compared, so the multi-registry:

- registers every new face in all registries
- identifies against one registry that knows every identifier (safe mode), or
  against the first registry that yields a match (unsafe mode)
- authenticates against the registries in order until one accepts the face
- auto-enrols faces into registries that do not know the user yet, which
  migrates users to a new algorithm as they are recognised

There is no transaction spanning the registries. A fan-out that fails in one
registry does not undo the registries where it succeeded.

Usage:
    from template_registry import FaceTemplateMultiRegistry

    with FaceTemplateMultiRegistry(new_registry, legacy_registry) as multi:
        results = multi.identify_face(face, image)
        if results:
            print(results[0].identifier, results[0].auto_enrolled_face_templates)
"""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import replace
from typing import Any, Callable, List, Optional, Set, Tuple, TypeVar

from template_registry.config import get_multi_registry_config
from template_registry.exceptions import (
    FaceTemplateRegistryError,
    IdentifierNotRegisteredError,
    IncompatibleFaceTemplatesError,
    RegistryClosedError,
)
from template_registry.face_template import (
    AuthenticationResult,
    Face,
    FaceTemplate,
    IdentificationResult,
    TaggedFaceTemplate,
)
from template_registry.registry import FaceTemplateRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MultiRegistryDelegate(ABC):
    """
    Receives notifications when face templates are added to any registry,
    either by registration or by auto-enrolment.

    The callback runs on a dedicated notification thread of the multi-registry,
    after the triggering call has returned or while it is returning. It may
    call back into the multi-registry. Exceptions raised by the callback are
    logged and otherwise ignored.
    """

    @abstractmethod
    def on_face_templates_added(self, face_templates: List[TaggedFaceTemplate]) -> None:
        """Called with the templates that were added."""


class FaceTemplateMultiRegistry:
    """
    Handles multiple face template registries.

    Attributes:
        delegate: Optional receiver of template-added notifications.
        max_workers: Fan-out worker pool size (None for the ThreadPoolExecutor default).

    Args:
        registry: First registry. Registry order sets the precedence used by
                  identification and authentication.
        *other_registries: Other registries to handle.
        ensure_face_template_compatibility: Set to False to accept registries
            whose identifiers cannot all be compared in one registry. For
            example registries with users [user1, user2] and [user1, user3].
        delegate: Optional MultiRegistryDelegate.
        max_workers: Worker pool size (ThreadPoolExecutor default if None).

    Raises:
        IncompatibleFaceTemplatesError: If the compatibility check is enabled
            and no registry holds every identifier.
    """

    def __init__(
        self,
        registry: FaceTemplateRegistry,
        *other_registries: FaceTemplateRegistry,
        ensure_face_template_compatibility: bool = True,
        delegate: Optional[MultiRegistryDelegate] = None,
        max_workers: Optional[int] = None,
    ):
        self._registries: Tuple[FaceTemplateRegistry, ...] = (registry,) + tuple(other_registries)
        self.delegate = delegate
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="multi-registry"
        )
        # Delegate callbacks may re-enter the coordinator; they must not hold a fan-out worker
        self._delegate_executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="multi-registry-delegate"
        )
        self._lock = threading.Lock()
        self._closed = False

        if ensure_face_template_compatibility:
            try:
                self._check_for_incompatible_face_templates()
            except Exception:
                self._closed = True
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._delegate_executor.shutdown(wait=False)
                raise

        logger.info(
            f"FaceTemplateMultiRegistry initialized with {len(self._registries)} registries: "
            f"{[str(r.version) for r in self._registries]}"
        )

    @classmethod
    def from_config(
        cls,
        registry: FaceTemplateRegistry,
        *other_registries: FaceTemplateRegistry,
        delegate: Optional[MultiRegistryDelegate] = None,
        config_path: Optional[str] = None,
    ) -> "FaceTemplateMultiRegistry":
        """
        Create a multi-registry using the ``multi_registry`` config section.

        Args:
            registry: First registry.
            *other_registries: Other registries to handle.
            delegate: Optional MultiRegistryDelegate.
            config_path: Config file to read. Defaults to the project config.yaml.
        """
        config = get_multi_registry_config(config_path)
        return cls(
            registry,
            *other_registries,
            ensure_face_template_compatibility=config.get(
                "ensure_face_template_compatibility", True
            ),
            delegate=delegate,
            max_workers=config.get("max_workers"),
        )

    @property
    def registries(self) -> Tuple[FaceTemplateRegistry, ...]:
        """Registries handled by the multi-registry, in precedence order."""
        return self._registries

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ============================================================
    # Registration
    # ============================================================

    def register_face(
        self,
        face: Face,
        image: Any,
        identifier: str,
        force_enrolment: bool = False,
    ) -> List[FaceTemplate]:
        """
        Register a face in all registries.

        Args:
            face: Face to register.
            image: Image in which the face was detected.
            identifier: Identifier of the user to whom the face belongs.
            force_enrolment: Set to True to enrol even if a similar face is
                             registered as another user.

        Returns:
            Registered face templates, one per registry, in registry order.

        Raises:
            FaceTemplateRegistryError: If registration fails in any registry.
                Registries in which it already succeeded keep the new template.
        """
        self._ensure_not_closed()
        face_templates = self._fan_out(
            lambda registry: registry.register_face(face, image, identifier, force_enrolment),
            operation=f"register '{identifier}'",
        )
        tagged = [TaggedFaceTemplate(t, identifier) for t in face_templates]
        self._notify_delegate(tagged)
        return face_templates

    # ============================================================
    # Identification
    # ============================================================

    def identify_face(
        self,
        face: Face,
        image: Any,
        auto_enrol: bool = True,
        safe: bool = True,
    ) -> List[IdentificationResult]:
        """
        Identify a face.

        Args:
            face: Face to identify.
            image: Image in which the face was detected.
            auto_enrol: Enrol the face in registries where the identified user
                        does not exist yet. The enrolled templates are attached
                        to the first result.
            safe: If True, identify only in a registry that holds every known
                  identifier. If False, iterate over the registries and return
                  the first non-empty result. This may miss a better match in a
                  later registry but works while users are being migrated to a
                  new algorithm.

        Returns:
            Identification results ordered by best match first.

        Raises:
            IncompatibleFaceTemplatesError: In safe mode, if no registry holds
                every identifier.
        """
        self._ensure_not_closed()

        if safe:
            registry = self._find_anchor_registry()
            if registry is None:
                raise IncompatibleFaceTemplatesError()
            results = registry.identify_face(face, image)
        else:
            registry, results = None, []
            for candidate in self._registries:
                results = candidate.identify_face(face, image)
                if results:
                    registry = candidate
                    break

        if results and auto_enrol:
            results[0] = self._auto_enrol_from_results(registry, results[0], face, image)
        return results

    def _auto_enrol_from_results(
        self,
        registry: FaceTemplateRegistry,
        top_result: IdentificationResult,
        face: Face,
        image: Any,
    ) -> IdentificationResult:
        if top_result.score < registry.configuration.auto_enrolment_threshold:
            return top_result
        enrolled = self._auto_enrol_face(face, image, top_result.identifier)
        return replace(top_result, auto_enrolled_face_templates=enrolled)

    def _find_anchor_registry(self) -> Optional[FaceTemplateRegistry]:
        identifier_sets = self._fan_out(
            lambda registry: registry.get_identifiers(), operation="get identifiers"
        )
        all_identifiers = set().union(*identifier_sets)
        for registry, identifiers in zip(self._registries, identifier_sets):
            if identifiers >= all_identifiers:
                return registry
        logger.warning(
            f"No registry holds all {len(all_identifiers)} identifiers"
        )
        return None

    # ============================================================
    # Authentication
    # ============================================================

    def authenticate_face(
        self,
        face: Face,
        image: Any,
        identifier: str,
        auto_enrol: bool = True,
    ) -> AuthenticationResult:
        """
        Authenticate a face.

        Registries are tried in order until one authenticates the face. The
        result with the highest score is returned.

        Args:
            face: Face to authenticate.
            image: Image in which the face was detected.
            identifier: Identifier to authenticate against.
            auto_enrol: Enrol the face in registries where the user does not
                        exist yet, if authentication succeeds with a score at
                        or above the auto-enrolment threshold.

        Returns:
            Authentication result.

        Raises:
            IdentifierNotRegisteredError: If the identifier is not registered
                in any of the registries.
        """
        self._ensure_not_closed()

        best_result: Optional[AuthenticationResult] = None
        best_registry: Optional[FaceTemplateRegistry] = None
        error: Optional[IdentifierNotRegisteredError] = None

        for registry in self._registries:
            try:
                result = registry.authenticate_face(face, image, identifier)
            except IdentifierNotRegisteredError as e:
                error = e
                continue
            if best_result is None or result.score > best_result.score:
                best_result, best_registry = result, registry
            if result.authenticated:
                break

        if best_result is None:
            raise error

        if (
            auto_enrol
            and best_result.authenticated
            and best_result.score >= best_registry.configuration.auto_enrolment_threshold
        ):
            enrolled = self._auto_enrol_face(face, image, identifier)
            best_result = replace(
                best_result,
                auto_enrolled_face_templates=best_result.auto_enrolled_face_templates + enrolled,
            )
        return best_result

    # ============================================================
    # Retrieval
    # ============================================================

    def get_face_templates(self) -> List[TaggedFaceTemplate]:
        """Get face templates in all registries."""
        self._ensure_not_closed()
        template_lists = self._fan_out(
            lambda registry: registry.get_face_templates(), operation="get face templates"
        )
        return [t for templates in template_lists for t in templates]

    def get_identifiers(self) -> Set[str]:
        """Get identifiers of face templates in all registries."""
        self._ensure_not_closed()
        identifier_sets = self._fan_out(
            lambda registry: registry.get_identifiers(), operation="get identifiers"
        )
        return set().union(*identifier_sets)

    def get_face_templates_by_identifier(self, identifier: str) -> List[FaceTemplate]:
        """Get face templates tagged as the given identifier in all registries."""
        self._ensure_not_closed()
        template_lists = self._fan_out(
            lambda registry: registry.get_face_templates_by_identifier(identifier),
            operation=f"get templates of '{identifier}'",
        )
        return [t for templates in template_lists for t in templates]

    # ============================================================
    # Lifecycle
    # ============================================================

    def close(self) -> None:
        """
        Close the multi-registry and every registry it handles.

        Queued fan-out work is cancelled; running work and pending delegate
        notifications are allowed to finish. Subsequent calls raise RegistryClosedError. Calling close more
        than once has no effect.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self._executor.shutdown(wait=False, cancel_futures=True)
        self._delegate_executor.shutdown(wait=False)
        for registry in self._registries:
            registry.close()
        logger.info("FaceTemplateMultiRegistry closed")

    def __enter__(self) -> "FaceTemplateMultiRegistry":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ============================================================
    # Internals
    # ============================================================

    def _check_for_incompatible_face_templates(self) -> None:
        if self._find_anchor_registry() is None:
            raise IncompatibleFaceTemplatesError()

    def _auto_enrol_face(self, face: Face, image: Any, identifier: str) -> List[FaceTemplate]:
        """
        Register the face in every registry that does not know ``identifier``.

        A registry that rejects the face is skipped and the others keep their
        new templates.
        """

        def enrol(registry: FaceTemplateRegistry) -> Optional[FaceTemplate]:
            if identifier in registry.get_identifiers():
                return None
            try:
                return registry.register_face(face, image, identifier)
            except FaceTemplateRegistryError as e:
                logger.warning(
                    f"Auto-enrolment of '{identifier}' skipped in registry "
                    f"{registry.version}: {e}"
                )
                return None

        enrolled = [t for t in self._fan_out(enrol, operation=f"auto-enrol '{identifier}'") if t]
        if enrolled:
            logger.info(f"Auto-enrolled '{identifier}' in {len(enrolled)} registries")
            self._notify_delegate([TaggedFaceTemplate(t, identifier) for t in enrolled])
        return enrolled

    def _fan_out(
        self,
        func: Callable[[FaceTemplateRegistry], T],
        operation: str = "operation",
    ) -> List[T]:
        """
        Run ``func`` on every registry concurrently and wait for all of them.

        A failure in one registry does not cancel the others. Once all calls
        have finished, the first error in registry order is raised.

        Returns:
            Results in registry order.
        """
        try:
            futures: List[Future] = [self._executor.submit(func, r) for r in self._registries]
        except RuntimeError as e:
            # Executor was shut down by close()
            raise RegistryClosedError("FaceTemplateMultiRegistry") from e

        wait(futures)

        failed = [f for f in futures if f.cancelled() or f.exception() is not None]
        if failed:
            logger.warning(
                f"Failed to {operation} in {len(failed)} of {len(futures)} registries"
            )
            for future in futures:
                if future.cancelled():
                    raise RegistryClosedError("FaceTemplateMultiRegistry")
                if future.exception() is not None:
                    raise future.exception()

        return [f.result() for f in futures]

    def _notify_delegate(self, face_templates: List[TaggedFaceTemplate]) -> None:
        """Call the delegate on a worker thread without waiting for it."""
        delegate = self.delegate
        if delegate is None or not face_templates:
            return
        try:
            self._delegate_executor.submit(self._call_delegate, delegate, list(face_templates))
        except RuntimeError:
            logger.warning(
                f"Delegate not notified of {len(face_templates)} templates: registry closed"
            )

    @staticmethod
    def _call_delegate(
        delegate: MultiRegistryDelegate, face_templates: List[TaggedFaceTemplate]
    ) -> None:
        try:
            delegate.on_face_templates_added(face_templates)
        except Exception:
            logger.exception(
                f"Delegate failed to handle {len(face_templates)} added templates"
            )

    def _ensure_not_closed(self) -> None:
        if self._closed:
            raise RegistryClosedError("FaceTemplateMultiRegistry")
