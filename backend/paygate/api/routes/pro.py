from fastapi import APIRouter, Depends

from paygate.core.auth import require_paid
from paygate.core.tokens import IdentityClaim

router = APIRouter()


@router.get("/feature")
async def pro_feature(claim: IdentityClaim = Depends(require_paid)):
    """Example paid-only endpoint."""
    return {"ok": True, "message": "Premium content unlocked."}
