"""
Tests for planted-tree photo verification.

The vision model is a mocked LLMClient; the tree rows, the rate limiter
and the status transition run against SQLite.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.core.api_errors import TreeNotFoundError, VerificationUnavailableError
from app.core.llm_client import LLMResponse
from app.core.models import PlantedTree, TreeStatus
from app.core.rate_limiter import IPRateLimiter, RateLimitExceeded
from app.trees.verifier import (
    OPENROUTER_HEADERS,
    PARSE_FAILURE,
    VERIFICATION_PROMPT,
    PhotoVerificationJob,
    build_vision_client,
    decide_status,
    normalize_confidence,
    parse_assessment,
    run_photo_verification,
)


def _vision_returning(content: str) -> MagicMock:
    vision = MagicMock()
    vision.complete = AsyncMock(return_value=LLMResponse(
        content=content,
        input_tokens=900,
        output_tokens=40,
        total_tokens=940,
        model="google/gemini-2.0-flash-001",
        cost_usd=0.0,
    ))
    return vision


@pytest.fixture
def vision_settings(make_settings):
    return make_settings(openrouter_api_key="or-key")


def _stored(db, tree_id) -> PlantedTree:
    db.expire_all()
    return db.get(PlantedTree, tree_id)


@pytest.mark.unit
class TestDecision:

    @pytest.mark.parametrize("is_tree,confidence,expected", [
        (True, 0.80, TreeStatus.VERIFIED),
        (True, 0.95, TreeStatus.VERIFIED),
        (True, 0.79, TreeStatus.REJECTED),
        (False, 0.99, TreeStatus.REJECTED),
    ])
    def test_threshold(self, is_tree, confidence, expected):
        assert decide_status(is_tree, confidence) == expected

    @pytest.mark.parametrize("raw,expected", [
        (85, 0.85),
        ("92", 0.92),
        (0.7, 0.7),
        (1, 1.0),
        (1.5, 0.015),
        (150, 1.0),
        (-3, 0.0),
        (None, 0.0),
        ("high", 0.0),
        (True, 0.0),
        (float("nan"), 0.0),
    ])
    def test_normalize_confidence(self, raw, expected):
        assert normalize_confidence(raw) == pytest.approx(expected)

    def test_fractional_value_above_one_is_a_percentage(self):
        assessment = parse_assessment({"is_tree": True, "confidence": 1.5})
        assert assessment.confidence == pytest.approx(0.015)
        assert decide_status(assessment.is_tree, assessment.confidence) == TreeStatus.REJECTED

    def test_parse_assessment_defaults(self):
        assessment = parse_assessment({"is_tree": True, "confidence": 90})
        assert assessment.is_tree is True
        assert assessment.confidence == pytest.approx(0.9)
        assert assessment.tree_type == "Tree"

    def test_truthy_string_is_not_a_tree(self):
        assert parse_assessment({"is_tree": "yes", "confidence": 95}).is_tree is False

    def test_unparseable_output(self):
        assert parse_assessment(None) == PARSE_FAILURE

    def test_build_vision_client(self, vision_settings):
        client = build_vision_client(vision_settings)
        assert client.model == "google/gemini-2.0-flash-001"
        assert client.base_url == "https://openrouter.ai/api/v1"
        assert client.default_headers == OPENROUTER_HEADERS


@pytest.mark.unit
class TestPhotoVerificationJob:

    @pytest.mark.asyncio
    async def test_verifies_tree(self, vision_settings, test_db, pending_tree):
        vision = _vision_returning(
            '{"is_tree": true, "confidence": 85, "tree_type": "Neem", "details": "sapling"}'
        )

        result = await PhotoVerificationJob(vision_settings, test_db, vision).run(pending_tree.id)

        assert result == {
            "success": True,
            "status": "verified",
            "confidence": pytest.approx(0.85),
            "tree_type": "Neem",
        }
        vision.complete.assert_awaited_once_with(
            prompt=VERIFICATION_PROMPT, image_url=pending_tree.photo_url
        )
        tree = _stored(test_db, pending_tree.id)
        assert tree.status == TreeStatus.VERIFIED
        assert tree.ai_confidence == pytest.approx(0.85)
        assert tree.tree_type == "Neem"

    @pytest.mark.asyncio
    async def test_low_confidence_rejected(self, vision_settings, test_db, pending_tree):
        vision = _vision_returning('{"is_tree": true, "confidence": 79, "tree_type": "Mango"}')

        result = await PhotoVerificationJob(vision_settings, test_db, vision).run(pending_tree.id)

        assert result["status"] == "rejected"
        assert _stored(test_db, pending_tree.id).status == TreeStatus.REJECTED

    @pytest.mark.asyncio
    async def test_not_a_tree_rejected(self, vision_settings, test_db, pending_tree):
        vision = _vision_returning('{"is_tree": false, "confidence": 0.97, "tree_type": "Car"}')

        result = await PhotoVerificationJob(vision_settings, test_db, vision).run(pending_tree.id)

        assert result["status"] == "rejected"
        assert result["confidence"] == pytest.approx(0.97)

    @pytest.mark.asyncio
    async def test_fenced_json_accepted(self, vision_settings, test_db, pending_tree):
        vision = _vision_returning(
            '```json\n{"is_tree": true, "confidence": 0.9, "tree_type": "Peepal"}\n```'
        )

        result = await PhotoVerificationJob(vision_settings, test_db, vision).run(pending_tree.id)

        assert result["status"] == "verified"
        assert result["tree_type"] == "Peepal"

    @pytest.mark.asyncio
    async def test_unparseable_output_rejected(self, vision_settings, test_db, pending_tree):
        vision = _vision_returning("I think this is a tree.")

        result = await PhotoVerificationJob(vision_settings, test_db, vision).run(pending_tree.id)

        assert result == {
            "success": True,
            "status": "rejected",
            "confidence": 0.0,
            "tree_type": "Unknown",
        }

    @pytest.mark.asyncio
    async def test_no_photo_rejected_without_model_call(
        self, vision_settings, test_db, tree_without_photo
    ):
        vision = _vision_returning("{}")

        result = await PhotoVerificationJob(vision_settings, test_db, vision).run(
            tree_without_photo.id
        )

        assert result == {"status": "rejected", "reason": "No photo"}
        vision.complete.assert_not_called()
        tree = _stored(test_db, tree_without_photo.id)
        assert tree.status == TreeStatus.REJECTED
        assert tree.ai_confidence == 0.0
        assert tree.tree_type == "No photo provided"

    @pytest.mark.asyncio
    async def test_no_photo_needs_no_api_key(self, settings, test_db, tree_without_photo):
        result = await PhotoVerificationJob(settings, test_db).run(tree_without_photo.id)
        assert result["reason"] == "No photo"

    @pytest.mark.asyncio
    async def test_missing_api_key(self, settings, test_db, pending_tree):
        with pytest.raises(VerificationUnavailableError) as exc_info:
            await PhotoVerificationJob(settings, test_db).run(pending_tree.id)

        assert exc_info.value.message == "Server misconfiguration: AI Verification unavailable"
        assert _stored(test_db, pending_tree.id).status == TreeStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_tree(self, vision_settings, test_db):
        with pytest.raises(TreeNotFoundError) as exc_info:
            await PhotoVerificationJob(vision_settings, test_db, _vision_returning("{}")).run("nope")
        assert exc_info.value.message == "Tree not found"

    @pytest.mark.asyncio
    async def test_missing_tree_id(self, vision_settings, test_db):
        with pytest.raises(TreeNotFoundError) as exc_info:
            await PhotoVerificationJob(vision_settings, test_db, _vision_returning("{}")).run(None)
        assert exc_info.value.message == "Missing tree_id"

    @pytest.mark.asyncio
    async def test_decided_tree_returns_stored_verdict(self, vision_settings, test_db, pending_tree):
        first = _vision_returning('{"is_tree": true, "confidence": 88, "tree_type": "Neem"}')
        await PhotoVerificationJob(vision_settings, test_db, first).run(pending_tree.id)

        second = _vision_returning('{"is_tree": false, "confidence": 99, "tree_type": "Rock"}')
        result = await PhotoVerificationJob(vision_settings, test_db, second).run(pending_tree.id)

        second.complete.assert_not_called()
        assert result["status"] == "verified"
        assert result["tree_type"] == "Neem"
        assert result["confidence"] == pytest.approx(0.88)

    @pytest.mark.asyncio
    async def test_model_error_propagates_and_tree_stays_pending(
        self, vision_settings, test_db, pending_tree
    ):
        vision = MagicMock()
        vision.complete = AsyncMock(side_effect=RuntimeError("upstream 502"))

        with pytest.raises(RuntimeError, match="upstream 502"):
            await PhotoVerificationJob(vision_settings, test_db, vision).run(pending_tree.id)

        assert _stored(test_db, pending_tree.id).status == TreeStatus.PENDING


@pytest.mark.unit
class TestVerificationRateLimit:

    @pytest.mark.asyncio
    async def test_rejected_over_limit(self, vision_settings, test_db, tree_without_photo):
        limiter = IPRateLimiter(test_db, max_requests=2)
        job = PhotoVerificationJob(vision_settings, test_db, rate_limiter=limiter)

        await job.run(tree_without_photo.id, client_ip="203.0.113.7")
        await job.run(tree_without_photo.id, client_ip="203.0.113.7")
        with pytest.raises(RateLimitExceeded):
            await job.run(tree_without_photo.id, client_ip="203.0.113.7")

    @pytest.mark.asyncio
    async def test_limit_checked_before_tree_lookup(self, vision_settings, test_db):
        limiter = IPRateLimiter(test_db, max_requests=1)
        job = PhotoVerificationJob(vision_settings, test_db, rate_limiter=limiter)

        with pytest.raises(TreeNotFoundError):
            await job.run("nope", client_ip="203.0.113.7")
        with pytest.raises(RateLimitExceeded):
            await job.run("nope", client_ip="203.0.113.7")

    @pytest.mark.asyncio
    async def test_unknown_ip_not_limited(self, vision_settings, test_db, tree_without_photo):
        limiter = IPRateLimiter(test_db, max_requests=1)
        job = PhotoVerificationJob(vision_settings, test_db, rate_limiter=limiter)

        for _ in range(3):
            await job.run(tree_without_photo.id, client_ip=None)


@pytest.mark.unit
class TestVisionClientLifecycle:

    @pytest.mark.asyncio
    async def test_built_client_closed_after_run(self, vision_settings, test_db, pending_tree):
        vision = _vision_returning('{"is_tree": true, "confidence": 90, "tree_type": "Peepal"}')
        vision.close = AsyncMock()

        with patch("app.trees.verifier.build_vision_client", return_value=vision):
            result = await run_photo_verification(vision_settings, test_db, pending_tree.id)

        assert result["status"] == "verified"
        vision.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_built_client_closed_when_model_fails(
        self, vision_settings, test_db, pending_tree
    ):
        vision = MagicMock()
        vision.complete = AsyncMock(side_effect=RuntimeError("upstream 502"))
        vision.close = AsyncMock()

        with patch("app.trees.verifier.build_vision_client", return_value=vision):
            with pytest.raises(RuntimeError, match="upstream 502"):
                await run_photo_verification(vision_settings, test_db, pending_tree.id)

        vision.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_injected_client_left_open(self, vision_settings, test_db, pending_tree):
        vision = _vision_returning('{"is_tree": true, "confidence": 90}')
        vision.close = AsyncMock()
        job = PhotoVerificationJob(vision_settings, test_db, vision)

        await job.run(pending_tree.id)
        await job.close()

        vision.close.assert_not_called()
