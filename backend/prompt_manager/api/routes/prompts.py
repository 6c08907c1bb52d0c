"""API routes for the user's prompt collection."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prompt_manager.api.dependencies import get_current_user_id, get_db_session
from prompt_manager.models.schemas import PromptCreate, PromptRead, PromptUpdate
from prompt_manager.models.tables import Prompt
from prompt_manager.services.billing_service import BillingService


router = APIRouter(prefix="/prompts", tags=["prompts"])


async def _get_owned_prompt(db: AsyncSession, prompt_id: int, user_id: str) -> Prompt:
    prompt = await db.get(Prompt, prompt_id)
    if not prompt or prompt.user_id != user_id:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return prompt


@router.get("", response_model=List[PromptRead])
async def list_prompts(
    db: AsyncSession = Depends(get_db_session),
    user_id: str = Depends(get_current_user_id),
) -> List[PromptRead]:
    """List the current user's prompts, newest first."""
    result = await db.execute(
        select(Prompt).where(Prompt.user_id == user_id).order_by(Prompt.created_at.desc(), Prompt.id.desc())
    )
    return [PromptRead.model_validate(p) for p in result.scalars().all()]


@router.post("", response_model=PromptRead, status_code=status.HTTP_201_CREATED)
async def create_prompt(
    payload: PromptCreate,
    db: AsyncSession = Depends(get_db_session),
    user_id: str = Depends(get_current_user_id),
) -> PromptRead:
    """Create a prompt; free members are capped at ``FREE_PROMPT_LIMIT``."""
    await BillingService().enforce_prompt_quota(db, user_id)
    prompt = Prompt(
        user_id=user_id,
        name=payload.name,
        description=payload.description,
        content=payload.content,
    )
    db.add(prompt)
    await db.commit()
    await db.refresh(prompt)
    return PromptRead.model_validate(prompt)


@router.get("/{prompt_id}", response_model=PromptRead)
async def get_prompt(
    prompt_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: str = Depends(get_current_user_id),
) -> PromptRead:
    prompt = await _get_owned_prompt(db, prompt_id, user_id)
    return PromptRead.model_validate(prompt)


@router.put("/{prompt_id}", response_model=PromptRead)
async def update_prompt(
    prompt_id: int,
    payload: PromptUpdate,
    db: AsyncSession = Depends(get_db_session),
    user_id: str = Depends(get_current_user_id),
) -> PromptRead:
    """Update an existing prompt owned by the current user."""
    prompt = await _get_owned_prompt(db, prompt_id, user_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(prompt, field, value)
    await db.commit()
    await db.refresh(prompt)
    return PromptRead.model_validate(prompt)


@router.delete("/{prompt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_prompt(
    prompt_id: int,
    db: AsyncSession = Depends(get_db_session),
    user_id: str = Depends(get_current_user_id),
):
    """Delete a prompt owned by the current user."""
    prompt = await _get_owned_prompt(db, prompt_id, user_id)
    await db.delete(prompt)
    await db.commit()
