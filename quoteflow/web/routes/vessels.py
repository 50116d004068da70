"""Vessel reference data routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from quoteflow.models import Vessel, VesselDraft
from quoteflow.vessels import VesselService
from quoteflow.web.dependencies import get_vessel_service
from quoteflow.web.models import VesselUpdateRequest

router = APIRouter(prefix="/api/vessels", tags=["vessels"])


@router.get("", response_model=list[Vessel])
async def list_vessels(service: VesselService = Depends(get_vessel_service)):
    return await service.list_vessels()


@router.post("", response_model=Vessel, status_code=201)
async def create_vessel(
    draft: VesselDraft,
    service: VesselService = Depends(get_vessel_service),
):
    """Create a vessel; the code is derived from name and number when omitted."""
    return await service.create(draft)


@router.get("/{vessel_id}", response_model=Vessel)
async def get_vessel(vessel_id: str, service: VesselService = Depends(get_vessel_service)):
    return await service.get(vessel_id)


@router.patch("/{vessel_id}", response_model=Vessel)
async def update_vessel(
    vessel_id: str,
    request: VesselUpdateRequest,
    service: VesselService = Depends(get_vessel_service),
):
    return await service.update(vessel_id, **request.model_dump(exclude_unset=True))


@router.delete("/{vessel_id}", status_code=204)
async def delete_vessel(vessel_id: str, service: VesselService = Depends(get_vessel_service)):
    await service.delete(vessel_id)
    return Response(status_code=204)
