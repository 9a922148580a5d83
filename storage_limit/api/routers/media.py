from typing import Any
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from storage_limit.api import deps
from storage_limit.services.container import Services

router = APIRouter()


class RegisterMediaRequest(BaseModel):
    object_key: str
    mime_type: str = "application/octet-stream"
    metadata: dict[str, Any] | None = None


class MetadataRequest(BaseModel):
    metadata: dict[str, Any]


class MediaObjectResponse(BaseModel):
    id: str
    object_key: str
    mime_type: str


class RemoveMediaResponse(BaseModel):
    ok: bool = True
    size_bytes: int | None


@router.post("", response_model=MediaObjectResponse, status_code=status.HTTP_201_CREATED)
def register_media(payload: RegisterMediaRequest, services: Services = Depends(deps.get_services)):
    return services.lifecycle.register(payload.object_key, payload.mime_type, payload.metadata)


@router.put("/{object_id}/metadata", response_model=MediaObjectResponse)
def update_metadata(object_id: str, payload: MetadataRequest, services: Services = Depends(deps.get_services)):
    return services.lifecycle.update_metadata(object_id, payload.metadata)


@router.delete("/{object_id}", response_model=RemoveMediaResponse)
def remove_media(object_id: str, services: Services = Depends(deps.get_services)):
    size = services.lifecycle.remove(object_id)
    return RemoveMediaResponse(size_bytes=size)
