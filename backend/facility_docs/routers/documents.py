"""Document routes for a facility's main tree and for each category tree.

Both route families are built by ``build_router``; the scope dependency picks
``MainDocuments`` or the category adapter.
"""

import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from facility_docs.categories import Area
from facility_docs.database import get_db
from facility_docs.dependencies import get_category_documents, get_current_user, get_facility, get_main_documents
from facility_docs.errors import DocumentError
from facility_docs.middleware.rate_limit import download_limiter, folder_limiter, upload_limiter
from facility_docs.models import Facility, User
from facility_docs.schemas.category import CategoryInfo
from facility_docs.schemas.file import FileRename, FileResponse, UploadResponse
from facility_docs.schemas.folder import FolderCreate, FolderProperties, FolderRename, FolderResponse, FolderTreeNode, MoveRequest
from facility_docs.schemas.listing import (
    FileTypeCount,
    FolderContents,
    FolderWindow,
    ItemType,
    SearchResults,
    SortBy,
    SortDirection,
    SubtreeStats,
    ViewMode,
    WindowOptions,
)
from facility_docs.services import downloads, policy, preferences
from facility_docs.services.categories import CategoryDocuments, MainDocuments, available_categories
from facility_docs.services.documents import UploadSource, file_response

logger = logging.getLogger(__name__)


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def build_router(
    name: str, prefix: str, get_scope: Callable[..., MainDocuments], category_routes: bool = False
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[name])

    bucket = name.replace("-", "_")

    def limited(decorator):
        # slowapi keys limits by function name; keep each route family separate
        def wrap(func):
            func.__name__ = f"{bucket}_{func.__name__}"
            return decorator(func)
        return wrap

    # === Listing ===

    @router.get("", response_model=FolderContents)
    async def list_documents(
        folder_id: int | None = Query(None, description="Folder to list; omitted means the tree root"),
        sort_by: SortBy | None = None,
        sort_direction: SortDirection | None = None,
        view_mode: ViewMode | None = None,
        filter_type: str | None = Query(None, description="File extension, or 'all'"),
        search: str | None = Query(None, max_length=255),
        page: int = Query(1, ge=1),
        per_page: int | None = Query(None, ge=1),
        load_stats: bool = True,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> FolderContents:
        policy.ensure_can_view(user, facility.id)
        stored = await preferences.get_preferences(db, user, facility.id)
        options = preferences.resolve_listing_options(
            stored,
            {
                "sort_by": sort_by,
                "sort_direction": sort_direction,
                "view_mode": view_mode,
                "filter_type": filter_type,
                "search": search,
                "page": page,
                "per_page": per_page,
                "load_stats": load_stats,
            },
        )
        return await scope.get_contents(db, facility.id, folder_id, options)

    @router.get("/window", response_model=FolderWindow)
    async def list_window(
        folder_id: int | None = None,
        offset: int = Query(0, ge=0),
        limit: int | None = Query(None, ge=1),
        sort_by: SortBy = "name",
        sort_direction: SortDirection = "asc",
        filter_type: str | None = None,
        search: str | None = Query(None, max_length=255),
        item_type: ItemType = "all",
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> FolderWindow:
        """Folders and files as one sorted list, for virtual scrolling."""
        policy.ensure_can_view(user, facility.id)
        values = {
            "offset": offset,
            "sort_by": sort_by,
            "sort_direction": sort_direction,
            "filter_type": filter_type,
            "search": search,
            "item_type": item_type,
        }
        if limit is not None:
            values["limit"] = limit
        return await scope.get_window(db, facility.id, folder_id, WindowOptions(**values))

    @router.get("/tree", response_model=list[FolderTreeNode])
    async def folder_tree(
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> list[FolderTreeNode]:
        policy.ensure_can_view(user, facility.id)
        return await scope.get_tree(db, facility.id)

    @router.get("/file-types", response_model=list[FileTypeCount])
    async def file_types(
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> list[FileTypeCount]:
        policy.ensure_can_view(user, facility.id)
        return await scope.get_file_types(db, facility.id)

    if category_routes:

        @router.get("/stats", response_model=SubtreeStats)
        async def category_stats(
            user: User = Depends(get_current_user),
            facility: Facility = Depends(get_facility),
            scope: CategoryDocuments = Depends(get_scope),
            db: AsyncSession = Depends(get_db),
        ) -> SubtreeStats:
            policy.ensure_can_view(user, facility.id)
            return await scope.get_stats(db, facility.id)

        @router.get("/search", response_model=SearchResults)
        async def category_search(
            query: str = Query(..., min_length=1, max_length=255),
            page: int = Query(1, ge=1),
            per_page: int | None = Query(None, ge=1, description="Capped at the listing maximum"),
            user: User = Depends(get_current_user),
            facility: Facility = Depends(get_facility),
            scope: CategoryDocuments = Depends(get_scope),
            db: AsyncSession = Depends(get_db),
        ) -> SearchResults:
            policy.ensure_can_view(user, facility.id)
            return await scope.search(db, facility.id, query, page, per_page)

    # === Folders ===

    @router.post("/folders", response_model=FolderResponse, status_code=201)
    @limited(folder_limiter)
    async def create_folder(
        request: Request,
        data: FolderCreate,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> FolderResponse:
        policy.ensure_can_edit(user, facility.id)
        folder = await scope.create_folder(db, facility.id, data.name, user, data.parent_id)
        return FolderResponse.model_validate(folder)

    @router.get("/folders/{folder_id}", response_model=FolderProperties)
    async def folder_properties(
        folder_id: int,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> FolderProperties:
        policy.ensure_can_view(user, facility.id)
        return await scope.get_folder_properties(db, facility.id, folder_id)

    @router.patch("/folders/{folder_id}", response_model=FolderResponse)
    @limited(folder_limiter)
    async def rename_folder(
        request: Request,
        folder_id: int,
        data: FolderRename,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> FolderResponse:
        policy.ensure_can_edit(user, facility.id)
        folder = await scope.rename_folder(db, facility.id, folder_id, data.name, user)
        return FolderResponse.model_validate(folder)

    @router.post("/folders/{folder_id}/move", response_model=FolderResponse)
    @limited(folder_limiter)
    async def move_folder(
        request: Request,
        folder_id: int,
        data: MoveRequest,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> FolderResponse:
        policy.ensure_can_edit(user, facility.id)
        folder = await scope.move_folder(db, facility.id, folder_id, data.target_folder_id, user)
        return FolderResponse.model_validate(folder)

    @router.delete("/folders/{folder_id}", status_code=204)
    @limited(folder_limiter)
    async def delete_folder(
        request: Request,
        folder_id: int,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> None:
        policy.ensure_can_edit(user, facility.id)
        await scope.delete_folder(db, facility.id, folder_id, user)

    # === Files ===

    @router.post("/files", response_model=UploadResponse, status_code=201)
    @limited(upload_limiter)
    async def upload_files(
        request: Request,
        files: list[UploadFile] | None = File(None),
        folder_id: int | None = Form(None),
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> UploadResponse:
        policy.ensure_can_edit(user, facility.id)
        uploads = [
            UploadSource(filename=f.filename or "", stream=f.file, content_type=f.content_type, size=f.size)
            for f in files or []
        ]
        stored = await scope.upload_files(db, facility.id, uploads, user, folder_id)
        return UploadResponse(
            message=f"{len(stored)} file(s) uploaded",
            files=[file_response(f) for f in stored],
        )

    @router.get("/files/{file_id}", response_model=FileResponse)
    async def get_file(
        file_id: int,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> FileResponse:
        policy.ensure_can_view(user, facility.id)
        return file_response(await scope.get_file(db, facility.id, file_id))

    @router.patch("/files/{file_id}", response_model=FileResponse)
    async def rename_file(
        file_id: int,
        data: FileRename,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> FileResponse:
        policy.ensure_can_edit(user, facility.id)
        return file_response(await scope.rename_file(db, facility.id, file_id, data.name, user))

    @router.post("/files/{file_id}/move", response_model=FileResponse)
    async def move_file(
        file_id: int,
        data: MoveRequest,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> FileResponse:
        policy.ensure_can_edit(user, facility.id)
        return file_response(await scope.move_file(db, facility.id, file_id, data.target_folder_id, user))

    @router.delete("/files/{file_id}", status_code=204)
    async def delete_file(
        file_id: int,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> None:
        policy.ensure_can_edit(user, facility.id)
        await scope.delete_file(db, facility.id, file_id, user)

    async def _serve(
        request: Request, facility: Facility, scope: MainDocuments, db: AsyncSession, user: User, file_id: int, inline: bool
    ) -> StreamingResponse:
        client_ip = _client_ip(request)
        try:
            policy.ensure_can_view(user, facility.id)
            file = await scope.get_file(db, facility.id, file_id)
        except DocumentError as e:
            context = {
                "file_id": file_id,
                "facility_id": facility.id,
                "user_id": user.id,
                "ip_address": client_ip,
                "inline": inline,
            }
            downloads.log_refusal(e, context)
            raise
        prepared = downloads.prepare_download(file, user, client_ip, inline=inline)
        return StreamingResponse(prepared.iter_chunks(), media_type=prepared.media_type, headers=prepared.headers)

    @router.get("/files/{file_id}/download")
    @limited(download_limiter)
    async def download_file(
        request: Request,
        file_id: int,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> StreamingResponse:
        return await _serve(request, facility, scope, db, user, file_id, inline=False)

    @router.get("/files/{file_id}/preview")
    @limited(download_limiter)
    async def preview_file(
        request: Request,
        file_id: int,
        user: User = Depends(get_current_user),
        facility: Facility = Depends(get_facility),
        scope: MainDocuments = Depends(get_scope),
        db: AsyncSession = Depends(get_db),
    ) -> StreamingResponse:
        return await _serve(request, facility, scope, db, user, file_id, inline=True)

    return router


router = build_router("documents", "/facilities/{facility_id}/documents", get_main_documents)
category_router = build_router(
    "category-documents",
    "/facilities/{facility_id}/categories/{category}/documents",
    get_category_documents,
    category_routes=True,
)

categories_router = APIRouter(prefix="/categories", tags=["categories"])


@categories_router.get("", response_model=list[CategoryInfo])
async def list_categories(area: Area | None = None, user: User = Depends(get_current_user)) -> list[CategoryInfo]:
    return available_categories(area)
