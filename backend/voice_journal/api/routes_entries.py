"""Entry, tag and category routes."""

from __future__ import annotations

import sqlite3

from fastapi import APIRouter, Depends, HTTPException, Query

from voice_journal.api.dependencies import get_coordinator, get_repository
from voice_journal.api.results import http_error, raise_for_result, to_workflow_response
from voice_journal.core.errors import EntryNotFound
from voice_journal.db.entries import EntryRepository, parse_tag_string
from voice_journal.models.dto import (
    CategoryCreateRequest,
    CategoryRequest,
    CategoryResponse,
    CategoryStatsResponse,
    CategoryUpdateRequest,
    DeleteResponse,
    EntryResponse,
    TagMergeRequest,
    TagMergeResponse,
    TagResponse,
    TagsRequest,
    TagsResponse,
    TagStatsResponse,
    WorkflowResponse,
)
from voice_journal.workflow import WorkflowCoordinator

router = APIRouter()


@router.get("/entries", response_model=list[EntryResponse], summary="List entries, newest first")
async def list_entries(
    category_id: str | None = Query(default=None, description="Only entries in this category"),
    tag: str | None = Query(default=None, description="Only entries carrying this tag label"),
    uncategorized: bool = Query(default=False, description="Only entries without a category"),
    repository: EntryRepository = Depends(get_repository),
) -> list[EntryResponse]:
    if category_id is None and tag is None and not uncategorized:
        entries = repository.fetch_all()
    else:
        entries = repository.fetch_entries(category_id=category_id, tag=tag, uncategorized=uncategorized)
    return [EntryResponse.from_entry(entry) for entry in entries]


@router.get("/entries/{entry_id}", response_model=EntryResponse, summary="Fetch one entry")
async def get_entry(entry_id: str, repository: EntryRepository = Depends(get_repository)) -> EntryResponse:
    entry = repository.get_entry(entry_id)
    if entry is None:
        raise http_error(EntryNotFound(entry_id=entry_id))
    return EntryResponse.from_entry(entry)


@router.delete("/entries/{entry_id}", response_model=DeleteResponse, summary="Delete an entry and its recording")
def delete_entry(entry_id: str, coordinator: WorkflowCoordinator = Depends(get_coordinator)) -> DeleteResponse:
    raise_for_result(coordinator.delete_entry(entry_id))
    return DeleteResponse(status="ok", deleted=1)


@router.post(
    "/entries/{entry_id}/enrich",
    response_model=WorkflowResponse,
    summary="Transcribe and summarize an entry in the background",
)
def enrich_entry(entry_id: str, coordinator: WorkflowCoordinator = Depends(get_coordinator)) -> WorkflowResponse:
    result = raise_for_result(coordinator.enrich_entry(entry_id))
    return to_workflow_response(result)


@router.put("/entries/{entry_id}/tags", response_model=TagsResponse, summary="Replace an entry's tags")
async def set_tags(
    entry_id: str,
    request: TagsRequest,
    repository: EntryRepository = Depends(get_repository),
) -> TagsResponse:
    if repository.get_entry(entry_id) is None:
        raise http_error(EntryNotFound(entry_id=entry_id))
    labels = list(request.tags or [])
    if request.text:
        labels.extend(parse_tag_string(request.text))
    tags = repository.set_tags(entry_id, labels)
    return TagsResponse(entry_id=entry_id, tags=list(tags))


@router.put("/entries/{entry_id}/category", response_model=EntryResponse, summary="Assign or clear a category")
async def set_category(
    entry_id: str,
    request: CategoryRequest,
    repository: EntryRepository = Depends(get_repository),
) -> EntryResponse:
    if repository.get_entry(entry_id) is None:
        raise http_error(EntryNotFound(entry_id=entry_id))
    if not repository.assign_category(entry_id, request.category_id):
        raise HTTPException(status_code=422, detail="Unknown category")
    return EntryResponse.from_entry(repository.get_entry(entry_id))


# Categories -------------------------------------------------------------


@router.get("/categories", response_model=list[CategoryResponse], summary="List categories")
async def list_categories(repository: EntryRepository = Depends(get_repository)) -> list[CategoryResponse]:
    return [CategoryResponse.from_category(category) for category in repository.list_categories()]


@router.get(
    "/categories/stats",
    response_model=list[CategoryStatsResponse],
    summary="Entry counts and recorded time per category",
)
async def category_stats(repository: EntryRepository = Depends(get_repository)) -> list[CategoryStatsResponse]:
    return [CategoryStatsResponse.from_stats(stats) for stats in repository.category_statistics()]


@router.post("/categories", response_model=CategoryResponse, status_code=201, summary="Create a custom category")
async def create_category(
    request: CategoryCreateRequest,
    repository: EntryRepository = Depends(get_repository),
) -> CategoryResponse:
    try:
        category = repository.create_category(request.name, color=request.color, icon=request.icon)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail=f"Category '{request.name}' already exists")
    return CategoryResponse.from_category(category)


@router.put("/categories/{category_id}", response_model=CategoryResponse, summary="Rename or restyle a category")
async def update_category(
    category_id: str,
    request: CategoryUpdateRequest,
    repository: EntryRepository = Depends(get_repository),
) -> CategoryResponse:
    try:
        category = repository.update_category(category_id, name=request.name, color=request.color, icon=request.icon)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail=f"Category '{request.name}' already exists")
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return CategoryResponse.from_category(category)


@router.delete("/categories/{category_id}", response_model=DeleteResponse, summary="Delete a custom category")
async def delete_category(category_id: str, repository: EntryRepository = Depends(get_repository)) -> DeleteResponse:
    category = repository.get_category(category_id)
    if category is None:
        raise HTTPException(status_code=404, detail="Category not found")
    if not category.is_custom:
        raise HTTPException(status_code=409, detail="Predefined categories cannot be deleted")
    repository.delete_category(category_id)
    return DeleteResponse(status="ok", deleted=1)


# Tags -------------------------------------------------------------------


@router.get("/tags", response_model=list[TagResponse], summary="List tags or search them by substring")
async def list_tags(
    q: str | None = Query(default=None, description="Case-insensitive substring"),
    limit: int = Query(default=10, ge=1, le=100),
    repository: EntryRepository = Depends(get_repository),
) -> list[TagResponse]:
    tags = repository.search_tags(q, limit=limit) if q else repository.list_tags()
    return [TagResponse.from_tag(tag) for tag in tags]


@router.get("/tags/stats", response_model=list[TagStatsResponse], summary="Usage per tag, most used first")
async def tag_stats(repository: EntryRepository = Depends(get_repository)) -> list[TagStatsResponse]:
    return [TagStatsResponse.from_stats(stats) for stats in repository.tag_statistics()]


@router.post("/tags/merge", response_model=TagMergeResponse, summary="Fold source tags into a target tag")
async def merge_tags(request: TagMergeRequest, repository: EntryRepository = Depends(get_repository)) -> TagMergeResponse:
    moved = repository.merge_tags(request.sources, request.target)
    return TagMergeResponse(target=request.target.strip(), entries_moved=moved)


__all__ = ["router"]
