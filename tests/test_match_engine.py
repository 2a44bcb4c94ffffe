"""
Tests for the Match Engine

These tests verify that:
1. compare delegates to the recognition and validates the score count
2. check_registration rejects faces resembling another identifier
3. identify keeps one result per identifier, sorted by descending score
4. authenticate uses the best template of the identifier

The StubFaceRecognition scores templates as 1 - |a - b| (0 beyond 1 apart).
"""

import os
import sys
from unittest.mock import MagicMock

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from template_registry.config import RegistryConfiguration
from template_registry.exceptions import (
    FaceDoesNotMatchExistingError,
    IdentifierNotRegisteredError,
    SimilarFaceAlreadyRegisteredError,
)
from template_registry.face_template import FaceTemplate, TaggedFaceTemplate, TemplateVersion
from template_registry.matching.engine import MatchEngine
from template_registry.matching.interfaces import StubFaceRecognition


VERSION = TemplateVersion(1, "stub")


# ============================================================
# Test Fixtures
# ============================================================

def template(value):
    return FaceTemplate(VERSION, float(value))


@pytest.fixture
def engine():
    """Engine with the default thresholds."""
    return MatchEngine(StubFaceRecognition(VERSION), RegistryConfiguration())


@pytest.fixture
def ten_users():
    """Templates at values 0-9 tagged "User 0" ... "User 9"."""
    return [TaggedFaceTemplate(template(i), f"User {i}") for i in range(10)]


# ============================================================
# compare
# ============================================================

class TestCompare:
    """Tests for MatchEngine.compare."""

    def test_scores_align_with_pool(self, engine):
        """Test that scores are aligned with the pool."""
        scores = engine.compare([template(0), template(5), template(5.5)], template(5))
        assert isinstance(scores, np.ndarray)
        np.testing.assert_allclose(scores, [0.0, 1.0, 0.5])

    def test_empty_pool_skips_recognition(self):
        """Test that an empty pool is not sent to the recognition."""
        recognition = MagicMock()
        engine = MatchEngine(recognition, RegistryConfiguration())
        assert engine.compare([], template(1)).shape == (0,)
        recognition.compare_face_recognition_templates.assert_not_called()

    def test_wrong_score_count_raises(self):
        """Test that a wrong number of scores raises ValueError."""
        recognition = MagicMock()
        recognition.compare_face_recognition_templates.return_value = [0.5]
        engine = MatchEngine(recognition, RegistryConfiguration())
        with pytest.raises(ValueError, match="1 scores for 2 templates"):
            engine.compare([template(0), template(1)], template(0))


# ============================================================
# check_registration
# ============================================================

class TestCheckRegistration:
    """Tests for MatchEngine.check_registration."""

    def test_similar_face_as_new_identifier_rejected(self, engine, ten_users):
        """Test that a face resembling another identifier is rejected."""
        with pytest.raises(SimilarFaceAlreadyRegisteredError) as exc_info:
            engine.check_registration(ten_users, template(5.1), "New user")
        assert exc_info.value.registered_identifier == "User 5"

    def test_similar_face_as_same_identifier_accepted(self, engine, ten_users):
        """Test that a face resembling its own identifier is accepted."""
        engine.check_registration(ten_users, template(5.1), "User 5")

    def test_uses_authentication_threshold(self, ten_users):
        """A score between the two thresholds is not a conflict."""
        configuration = RegistryConfiguration(
            authentication_threshold=0.95, identification_threshold=0.5
        )
        engine = MatchEngine(StubFaceRecognition(VERSION), configuration)
        engine.check_registration(ten_users, template(5.1), "New user")

    def test_empty_registry_accepts(self, engine):
        """Test that any face is accepted by an empty registry."""
        engine.check_registration([], template(1), "User 1")

    def test_existing_identifier_not_verified_by_default(self, engine, ten_users):
        """Test that existing identifiers are not verified by default."""
        engine.check_registration(ten_users, template(11.0), "User 1")

    def test_existing_identifier_verified_when_enabled(self, ten_users):
        """Test that a mismatching face is rejected when verification is on."""
        configuration = RegistryConfiguration(verify_existing_identifier=True)
        engine = MatchEngine(StubFaceRecognition(VERSION), configuration)
        with pytest.raises(FaceDoesNotMatchExistingError) as exc_info:
            engine.check_registration(ten_users, template(11.0), "User 1")
        assert exc_info.value.max_score < configuration.authentication_threshold


# ============================================================
# identify
# ============================================================

class TestIdentify:
    """Tests for MatchEngine.identify."""

    def test_identify_single_match(self, engine, ten_users):
        """Test identifying a face with a single match."""
        results = engine.identify(ten_users, template(5.1))
        assert len(results) == 1
        assert results[0].identifier == "User 5"
        assert results[0].score == pytest.approx(0.9)

    def test_empty_registry_returns_empty_list(self, engine):
        """Test identification against an empty pool."""
        assert engine.identify([], template(5.1)) == []

    def test_no_match_returns_empty_list(self, engine, ten_users):
        """Test identification of an unknown face."""
        assert engine.identify(ten_users, template(50)) == []

    def test_one_result_per_identifier(self, engine):
        """The best template represents an identifier owning several matches."""
        pool = [
            TaggedFaceTemplate(template(5.0), "User 5"),
            TaggedFaceTemplate(template(5.08), "User 5"),
            TaggedFaceTemplate(template(5.3), "User 6"),
        ]
        results = engine.identify(pool, template(5.1))
        identifiers = [r.identifier for r in results]
        assert identifiers == ["User 5", "User 6"]
        assert results[0].score == pytest.approx(0.98)
        assert results[0].tagged_face_template.face_template == template(5.08)

    def test_results_sorted_descending(self, ten_users):
        """Test that results are sorted by descending score."""
        configuration = RegistryConfiguration(identification_threshold=0.3)
        engine = MatchEngine(StubFaceRecognition(VERSION), configuration)
        results = engine.identify(ten_users, template(5.4))
        assert [r.identifier for r in results] == ["User 5", "User 6"]
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)


# ============================================================
# authenticate
# ============================================================

class TestAuthenticate:
    """Tests for MatchEngine.authenticate."""

    def test_authenticate_match(self, engine, ten_users):
        """Test authenticating a matching face."""
        result = engine.authenticate(ten_users, template(5.1), "User 5")
        assert result.authenticated is True
        assert result.score == pytest.approx(0.9)
        assert result.challenge_face_template == template(5.1)
        assert result.matched_face_template == template(5)

    def test_authenticate_mismatch(self, engine, ten_users):
        """Test authenticating a non-matching face."""
        result = engine.authenticate(ten_users, template(50.1), "User 5")
        assert result.authenticated is False
        assert result.score == 0.0

    def test_only_identifier_templates_considered(self, engine, ten_users):
        """A close template of another identifier does not authenticate."""
        result = engine.authenticate(ten_users, template(5.1), "User 1")
        assert result.authenticated is False

    def test_best_template_of_identifier_used(self, engine):
        """Test that the best template of the identifier is used."""
        pool = [
            TaggedFaceTemplate(template(3.0), "User 3"),
            TaggedFaceTemplate(template(5.0), "User 3"),
        ]
        result = engine.authenticate(pool, template(4.9), "User 3")
        assert result.matched_face_template == template(5.0)
        assert result.score == pytest.approx(0.9)

    def test_unknown_identifier_raises(self, engine, ten_users):
        """Test that an unknown identifier raises IdentifierNotRegisteredError."""
        with pytest.raises(IdentifierNotRegisteredError) as exc_info:
            engine.authenticate(ten_users, template(5.1), "User 42")
        assert exc_info.value.identifier == "User 42"
