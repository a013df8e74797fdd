"""Share listings addressed to the caller.

    GET /api/shares/my-shares    - company shares granted to the caller
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import Principal, require_auth
from ..database import get_db
from ..schemas.share import ShareResponse
from ..services.share_service import ShareService

router = APIRouter(prefix="/api/shares", tags=["shares"])


@router.get("/my-shares", response_model=List[ShareResponse])
def list_my_shares(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_auth),
):
    """Live company shares held by the caller, newest first."""
    shares = ShareService(db).list_my_company_shares(principal)
    return [ShareResponse.from_row(s) for s in shares]
