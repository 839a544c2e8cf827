import base64
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from loguru import logger
from pydantic import BaseModel, Field

from agent_knowledge_core.errors import (
    DuplicateIdError,
    SnapshotImportError,
    UnknownJobError,
    ValidationError,
)
from agent_knowledge_core.models import KnowledgeKind
from agent_knowledge_core.server import ControllerPool, KnowledgeController
from agent_knowledge_core.utils.file_utils import detect_content_type, get_supported_file_types, is_image

router = APIRouter()

# Inline previews only for small images
MAX_PREVIEW_BYTES = 64 * 1024


class SubmitRequest(BaseModel):
    entries: List[Dict[str, Any]] = Field(default_factory=list)


class ImportRequest(BaseModel):
    source_id: str


def get_pool(request: Request) -> ControllerPool:
    return request.app.state.pool


async def get_controller(agent_id: str, pool: ControllerPool = Depends(get_pool)) -> KnowledgeController:
    return await pool.get(agent_id)


async def get_client_ip(request: Request):
    """Extract client IP from request headers"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()
    else:
        client_ip = request.client.host if request.client else None
    return client_ip


# Get supported file types - RESTful: GET /v1/knowledge/types
@router.get("/knowledge/types")
async def get_supported_types(pool: ControllerPool = Depends(get_pool)):
    """Get supported knowledge kinds and file types"""
    settings = pool.settings
    return {
        "status": "success",
        "message": "Supported knowledge types retrieved",
        "data": {
            "kinds": [kind.value for kind in KnowledgeKind],
            "file_types": get_supported_file_types(
                settings.supported_document_types, settings.supported_image_types
            ),
        },
    }


# Current knowledge - RESTful: GET /v1/agents/{agent_id}/knowledge
@router.get("/agents/{agent_id}/knowledge")
async def get_knowledge(agent_id: str, controller: KnowledgeController = Depends(get_controller)):
    """Get the agent's knowledge snapshot"""
    snapshot = controller.snapshot()
    return {
        "status": "success",
        "message": "Knowledge retrieved",
        "data": {
            "snapshot": snapshot.to_dict(),
            "stats": controller.stats(),
        },
    }


# Upload files - RESTful: POST /v1/agents/{agent_id}/knowledge/files
@router.post("/agents/{agent_id}/knowledge/files")
async def upload_files(
    agent_id: str,
    request: Request,
    files: List[UploadFile] = File(...),
    controller: KnowledgeController = Depends(get_controller),
):
    """Upload documents and images; each group becomes its own batch"""
    client_ip = await get_client_ip(request)
    logger.info(f"File upload request - agent_id: {agent_id} - client_ip: {client_ip} - files: {len(files)}")

    documents: List[Dict[str, Any]] = []
    images: List[Dict[str, Any]] = []
    for upload in files:
        content = await upload.read()
        filename = upload.filename or ""
        content_type = upload.content_type
        if not content_type or content_type == "application/octet-stream":
            content_type = detect_content_type(filename)
        entry: Dict[str, Any] = {"filename": filename, "size": len(content), "content_type": content_type}
        if is_image(filename, content_type):
            if len(content) <= MAX_PREVIEW_BYTES:
                entry["preview"] = f"data:{content_type};base64,{base64.b64encode(content).decode('utf-8')}"
            images.append(entry)
        else:
            documents.append(entry)

    groups = [(KnowledgeKind.DOCUMENT, documents), (KnowledgeKind.IMAGE, images)]
    try:
        # Validate every group first so a bad image does not leave documents submitted
        for kind, entries in groups:
            if entries:
                controller.validator.validate(kind, entries, controller.registry.items())
        batch_ids = [controller.submit(kind, entries) for kind, entries in groups if entries]
    except ValidationError as e:
        logger.error(f"Validation error during file upload: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)

    return {
        "status": "success",
        "message": "Files accepted for processing",
        "data": {"agent_id": agent_id, "batch_ids": batch_ids},
    }


# Import knowledge - RESTful: POST /v1/agents/{agent_id}/knowledge/import
@router.post("/agents/{agent_id}/knowledge/import")
async def import_knowledge(
    agent_id: str,
    body: ImportRequest,
    pool: ControllerPool = Depends(get_pool),
    controller: KnowledgeController = Depends(get_controller),
):
    """Copy another agent's knowledge"""
    # The source snapshot must reach the store before it is read
    await pool.flush(body.source_id)
    try:
        imported = await controller.import_from(body.source_id)
    except SnapshotImportError as e:
        logger.error(f"Import error for {agent_id}: {e.message}")
        raise HTTPException(status_code=409, detail=e.message)

    return {
        "status": "success",
        "message": "Knowledge imported successfully",
        "data": {"agent_id": agent_id, "source_id": body.source_id, "imported": imported},
    }


# Submit entries - RESTful: POST /v1/agents/{agent_id}/knowledge/{kind}
@router.post("/agents/{agent_id}/knowledge/{kind}")
async def submit_knowledge(
    agent_id: str,
    kind: str,
    body: SubmitRequest,
    controller: KnowledgeController = Depends(get_controller),
):
    """Submit web pages, text snippets, Q&A pairs or file metadata"""
    try:
        batch_id = controller.submit(kind, body.entries)
    except ValidationError as e:
        logger.error(f"Validation error for {agent_id}/{kind}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)
    except DuplicateIdError as e:
        raise HTTPException(status_code=409, detail=e.message)

    return {
        "status": "success",
        "message": "Entries accepted for processing",
        "data": {"agent_id": agent_id, "kind": kind, "batch_id": batch_id},
    }


# Batch status - RESTful: GET /v1/agents/{agent_id}/knowledge/batches/{batch_id}
@router.get("/agents/{agent_id}/knowledge/batches/{batch_id}")
async def get_batch(
    agent_id: str,
    batch_id: str,
    controller: KnowledgeController = Depends(get_controller),
):
    """Get the progress of one submission"""
    try:
        batch = controller.describe_batch(batch_id)
    except UnknownJobError:
        raise HTTPException(status_code=404, detail=f"Unknown batch: {batch_id}")

    return {
        "status": "success",
        "message": "Batch retrieved",
        "data": batch,
    }


# Delete item - RESTful: DELETE /v1/agents/{agent_id}/knowledge/{item_id}
@router.delete("/agents/{agent_id}/knowledge/{item_id}")
async def delete_item(
    agent_id: str,
    item_id: str,
    controller: KnowledgeController = Depends(get_controller),
):
    """Delete a knowledge item"""
    if not await controller.remove(item_id):
        raise HTTPException(status_code=404, detail=f"Unknown item: {item_id}")

    return {
        "status": "success",
        "message": "Item deleted successfully",
        "data": {"agent_id": agent_id, "item_id": item_id, "saved": controller.coalescer.last_error is None},
    }
