"""
Upgrade prompts shown to employers after their free job's first application.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fieldjobs.core.auth_dependency import get_db, require_employer
from fieldjobs.db.models.profile import Profile
from fieldjobs.schemas.entitlement import UpgradePromptAck, UpgradePromptResponse
from fieldjobs.services import application_service

router = APIRouter(prefix="/upgrade-prompts", tags=["Upgrade Prompts"])


@router.get("", response_model=List[UpgradePromptResponse])
def list_prompts(
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    """Prompts not yet shown."""
    prompts = application_service.list_upgrade_prompts(db, employer)
    return [UpgradePromptResponse.model_validate(p) for p in prompts]


@router.post("/{prompt_id}/ack", response_model=UpgradePromptResponse)
def acknowledge_prompt(
    prompt_id: int,
    data: Optional[UpgradePromptAck] = None,
    employer: Profile = Depends(require_employer),
    db: Session = Depends(get_db),
):
    prompt = application_service.acknowledge_upgrade_prompt(db, prompt_id, employer, data.action_taken if data else None)
    return UpgradePromptResponse.model_validate(prompt)
