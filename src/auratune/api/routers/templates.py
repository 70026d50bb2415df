"""Curated template endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from auratune.api.dependencies import get_template_repository
from auratune.api.schemas.playlists import TemplateResponse
from auratune.infrastructure.persistence import CuratedTemplateRepository

router = APIRouter()


@router.get("", response_model=list[TemplateResponse])
async def list_templates(
    repository: CuratedTemplateRepository = Depends(get_template_repository),
) -> list[TemplateResponse]:
    """List active curated templates ordered by name."""
    return [TemplateResponse.from_entity(t) for t in await repository.list_active()]


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: str,
    repository: CuratedTemplateRepository = Depends(get_template_repository),
) -> TemplateResponse:
    template = await repository.get(template_id)
    if template is None or not template.is_active:
        raise HTTPException(status_code=404, detail=f'Template with ID "{template_id}" not found.')
    return TemplateResponse.from_entity(template)
