"""Sync and index-maintenance endpoints.

Routes
------
POST   /api/embeddings/process-all                 Start a full sync in the background
POST   /api/embeddings/process-space/{space_key}   Start a one-space sync in the background
POST   /api/embeddings/pages/{page_id}             Re-fetch and upsert one page (synchronous)
DELETE /api/embeddings/pages/{page_id}             Remove one page from index and store
GET    /api/embeddings/status                      Document count + latest sync task
GET    /api/embeddings/status/{space_key}          Document count and pages for one space
GET    /api/embeddings/tasks/{task_id}             Snapshot of one sync task

Background runs go through the process-wide :class:`~wikirag.rag.jobs.SyncJobs`
pool; a trigger while a run is in flight returns that run's handle.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from wikirag.rag.jobs import SyncTask
from wikirag.services import Services

router = APIRouter()


def _services(request: Request) -> Services:
    return request.app.state.services


def _started(task: SyncTask, created: bool, what: str) -> dict[str, Any]:
    if created:
        return {
            "status": "started",
            "taskId": task.id,
            "message": f"{what} started in background",
        }
    return {
        "status": "already_running",
        "taskId": task.id,
        "message": "A sync run is already in progress",
    }


# ---------------------------------------------------------------------------
# Sync triggers
# ---------------------------------------------------------------------------

@router.post("/process-all")
def process_all(request: Request) -> dict[str, Any]:
    """Fire-and-forget sync of every configured space (or all pages)."""
    svc = _services(request)
    task, created = svc.jobs.submit("process-all", svc.worker.sync_all)
    return _started(task, created, "Page processing")


@router.post("/process-space/{space_key}")
def process_space(space_key: str, request: Request) -> dict[str, Any]:
    """Fire-and-forget sync of the pages of a single space."""
    svc = _services(request)
    task, created = svc.jobs.submit(
        f"process-space:{space_key}", svc.worker.sync_space, space_key
    )
    return _started(task, created, f"Page processing for space {space_key}")


# ---------------------------------------------------------------------------
# Single page
# ---------------------------------------------------------------------------

@router.post("/pages/{page_id}")
def refresh_page(page_id: str, request: Request) -> dict[str, Any]:
    """Re-fetch one page from the wiki and upsert it."""
    svc = _services(request)
    try:
        stored = svc.orchestrator.sync_page(page_id)
    except Exception as exc:
        raise HTTPException(
            status_code=502, detail=f"Failed to process page {page_id}: {exc}"
        ) from exc
    if not stored:
        raise HTTPException(
            status_code=404,
            detail=f"Page '{page_id}' could not be fetched or has no content.",
        )
    return {"status": "success", "pageId": page_id}


@router.delete("/pages/{page_id}")
def delete_page(page_id: str, request: Request) -> dict[str, Any]:
    """Remove one page from the vector index and the document store."""
    svc = _services(request)
    if not svc.orchestrator.is_known(page_id):
        raise HTTPException(status_code=404, detail=f"Page '{page_id}' not found.")
    try:
        svc.orchestrator.delete_page(page_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"status": "success", "pageId": page_id}


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

@router.get("/status")
def status(request: Request) -> dict[str, Any]:
    """Total document count plus the most recent sync task, if any."""
    svc = _services(request)
    latest = svc.jobs.latest
    return {
        "status": "success",
        "totalDocuments": svc.orchestrator.document_count(),
        "task": latest.to_dict() if latest else None,
        "message": "Current embedding status retrieved successfully",
    }


@router.get("/status/{space_key}")
def space_status(space_key: str, request: Request) -> dict[str, Any]:
    """Document count and stored pages for one space."""
    svc = _services(request)
    documents = svc.orchestrator.documents_in_space(space_key)
    return {
        "status": "success",
        "spaceKey": space_key,
        "totalDocuments": len(documents),
        "documents": [
            {"pageId": d.page_id, "title": d.title, "updatedAt": d.updated_at}
            for d in documents
        ],
    }


@router.get("/tasks/{task_id}")
def get_task(task_id: str, request: Request) -> dict[str, Any]:
    task = _services(request).jobs.get(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task '{task_id}' not found.")
    return task.to_dict()
