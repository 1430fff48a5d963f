"""
AI photo verification for citizen tree-planting submissions.

Flow for one request:
1. Count the request against the caller's IP (when known)
2. Load the submission; a missing photo is rejected without a model call
3. Ask a vision model whether the photo shows a newly planted tree
4. Verified only if the model says is_tree and confidence >= 0.80

A submission moves out of pending exactly once. Repeated calls for a
submission that already has a verdict return that verdict.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.api_errors import (
    ConfigurationError,
    TreeNotFoundError,
    VerificationUnavailableError,
)
from app.core.config import Settings
from app.core.llm_client import LLMClient
from app.core.models import PlantedTree, TreeStatus
from app.core.rate_limiter import IPRateLimiter
from app.core.store import ForestStore

logger = logging.getLogger(__name__)

VERIFICATION_THRESHOLD = 0.80

NO_PHOTO_TREE_TYPE = "No photo provided"

VERIFICATION_PROMPT = (
    "Analyze this image carefully. Is this a photo of a newly planted tree, "
    "sapling, or valid reforestation effort?\n"
    "Strictly evaluate:\n"
    "1. Is there a real plant/tree visible?\n"
    "2. Does it look like a planting activity (soil disturbed, sapling, etc.)?\n"
    "3. Is it NOT a random photo of something else?\n\n"
    "Return a valid JSON object ONLY, with no markdown formatting:\n"
    "{\n"
    '  "is_tree": boolean,\n'
    '  "confidence": number, // 0 to 100\n'
    '  "tree_type": "string guess of species or type",\n'
    '  "details": "short reason"\n'
    "}"
)

OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://whereismyforest.app",
    "X-Title": "WhereIsMyForest",
}


@dataclass
class VisionAssessment:
    is_tree: bool
    confidence: float
    tree_type: str
    details: str


PARSE_FAILURE = VisionAssessment(
    is_tree=False, confidence=0.0, tree_type="Unknown", details="Parse Error"
)


def normalize_confidence(value: Any) -> float:
    """
    Map a model confidence onto [0, 1].

    Values above 1 are read as percentages (85 -> 0.85, 1.5 -> 0.015). Anything
    non-numeric is 0.
    """
    if isinstance(value, bool):
        return 0.0
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(confidence):
        return 0.0
    if confidence > 1:
        confidence = confidence / 100
    return max(0.0, min(1.0, confidence))


def decide_status(is_tree: bool, confidence: float) -> TreeStatus:
    if is_tree is True and confidence >= VERIFICATION_THRESHOLD:
        return TreeStatus.VERIFIED
    return TreeStatus.REJECTED


def parse_assessment(data: Optional[Dict[str, Any]]) -> VisionAssessment:
    """Model JSON -> VisionAssessment; None (unparseable output) is a parse failure."""
    if data is None:
        return PARSE_FAILURE
    return VisionAssessment(
        is_tree=data.get("is_tree") is True,
        confidence=normalize_confidence(data.get("confidence")),
        tree_type=str(data.get("tree_type") or "Tree"),
        details=str(data.get("details") or ""),
    )


def build_vision_client(settings: Settings) -> LLMClient:
    """OpenRouter vision client from settings."""
    return LLMClient(
        api_key=settings.openrouter_api_key,
        model=settings.ai_model_name,
        base_url=settings.openrouter_base_url,
        max_tokens=300,
        temperature=0.1,
        max_retries=2,
        default_headers=OPENROUTER_HEADERS,
    )


class PhotoVerificationJob:
    """
    Verifies one planted-tree photo per run.

    Args:
        settings: Application settings
        db: Database session
        vision_client: Vision model client; built from settings when None
        rate_limiter: Per-IP limiter; None disables limiting
    """

    def __init__(
        self,
        settings: Settings,
        db: Session,
        vision_client: Optional[LLMClient] = None,
        rate_limiter: Optional[IPRateLimiter] = None,
    ):
        self.settings = settings
        self.db = db
        self.store = ForestStore(db)
        self.vision_client = vision_client
        self.rate_limiter = rate_limiter
        self._owns_vision_client = False

    async def run(self, tree_id: Optional[str], client_ip: Optional[str] = None) -> Dict[str, Any]:
        """
        Verify the photo of one submission.

        Returns:
            {"success", "status", "confidence", "tree_type"}, or
            {"status": "rejected", "reason": "No photo"} for a submission
            without a photo

        Raises:
            RateLimitExceeded: Caller has used up its requests for the window
            TreeNotFoundError: tree_id missing or unknown
            VerificationUnavailableError: Vision model not configured
        """
        if client_ip and self.rate_limiter is not None:
            self.rate_limiter.hit(client_ip)

        if not tree_id:
            raise TreeNotFoundError(None)
        tree = self.store.get_tree(tree_id)
        if tree is None:
            raise TreeNotFoundError(tree_id)

        if tree.status != TreeStatus.PENDING:
            logger.info(f"Tree {tree_id} already {tree.status.value}, returning stored verdict")
            return self._stored_verdict(tree)

        if not tree.photo_url:
            self.store.update_tree_verification(
                tree_id, TreeStatus.REJECTED, 0.0, NO_PHOTO_TREE_TYPE
            )
            logger.info(f"Tree {tree_id} rejected: no photo")
            return {"status": TreeStatus.REJECTED.value, "reason": "No photo"}

        vision = self._vision_client()
        response = await vision.complete(prompt=VERIFICATION_PROMPT, image_url=tree.photo_url)
        assessment = parse_assessment(response.parse_json())
        status = decide_status(assessment.is_tree, assessment.confidence)

        if not self.store.update_tree_verification(
            tree_id, status, assessment.confidence, assessment.tree_type
        ):
            # A concurrent request recorded a verdict first
            self.db.refresh(tree)
            return self._stored_verdict(tree)

        logger.info(
            f"Tree {tree_id} {status.value}: is_tree={assessment.is_tree}, "
            f"confidence={assessment.confidence:.2f}, type={assessment.tree_type!r}"
        )
        return {
            "success": True,
            "status": status.value,
            "confidence": assessment.confidence,
            "tree_type": assessment.tree_type,
        }

    def _vision_client(self) -> LLMClient:
        try:
            self.settings.require_openrouter_api_key()
        except ConfigurationError as e:
            logger.error(f"Photo verification unavailable: {e}")
            raise VerificationUnavailableError() from e
        if self.vision_client is None:
            self.vision_client = build_vision_client(self.settings)
            self._owns_vision_client = True
        return self.vision_client

    async def close(self) -> None:
        """Close the vision client if this job built it; injected clients belong to the caller."""
        if self._owns_vision_client and self.vision_client is not None:
            await self.vision_client.close()
            self.vision_client = None
            self._owns_vision_client = False

    @staticmethod
    def _stored_verdict(tree: PlantedTree) -> Dict[str, Any]:
        return {
            "success": True,
            "status": tree.status.value,
            "confidence": tree.ai_confidence or 0.0,
            "tree_type": tree.tree_type,
        }


async def run_photo_verification(
    settings: Settings,
    db: Session,
    tree_id: Optional[str],
    client_ip: Optional[str] = None,
    rate_limiter: Optional[IPRateLimiter] = None,
) -> Dict[str, Any]:
    """Verify one submission and release the vision client afterwards."""
    job = PhotoVerificationJob(settings, db, rate_limiter=rate_limiter)
    try:
        return await job.run(tree_id, client_ip=client_ip)
    finally:
        await job.close()
