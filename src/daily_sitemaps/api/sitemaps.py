"""Sitemap XML delivery and stored sitemap maintenance routes."""

from __future__ import annotations

import re

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from daily_sitemaps.api.generation import operation_response, raise_unavailable
from daily_sitemaps.schemas.generation import OperationResultResponse
from daily_sitemaps.schemas.sitemap import (
    SitemapExportRequest,
    SitemapExportResponse,
    SitemapRecountResponse,
    SitemapScopeRequest,
    SitemapValidationResponse,
)
from daily_sitemaps.services.sitemap_cleanup import SitemapCleanupService
from daily_sitemaps.services.sitemap_errors import (
    InvalidDateQueryError,
    SitemapRepositoryUnavailableError,
    SitemapValidationError,
)
from daily_sitemaps.services.sitemap_export import SitemapExportService
from daily_sitemaps.services.sitemap_index import SitemapIndexService
from daily_sitemaps.services.sitemap_repository import SitemapRepository
from daily_sitemaps.services.sitemap_validation import SitemapValidationService

router = APIRouter(tags=["sitemaps"])

XML_MEDIA_TYPE = "application/xml"
_DOCUMENT_NAME_PATTERN = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})(?:-(?P<shard>\d+))?$"
)


def _get_sitemap_repository(request: Request) -> SitemapRepository:
    repository = getattr(request.app.state, "sitemap_repository", None)
    if repository is not None:
        return repository

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Sitemap repository is unavailable",
    )


def _get_index_service(request: Request) -> SitemapIndexService:
    index_service = getattr(request.app.state, "sitemap_index_service", None)
    if isinstance(index_service, SitemapIndexService):
        return index_service

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Sitemap index service is unavailable",
    )


def _get_validation_service(request: Request) -> SitemapValidationService:
    validation_service = getattr(request.app.state, "validation_service", None)
    if isinstance(validation_service, SitemapValidationService):
        return validation_service

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Sitemap validation service is unavailable",
    )


def _get_cleanup_service(request: Request) -> SitemapCleanupService:
    cleanup_service = getattr(request.app.state, "cleanup_service", None)
    if isinstance(cleanup_service, SitemapCleanupService):
        return cleanup_service

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Sitemap cleanup service is unavailable",
    )


def _get_export_service(request: Request) -> SitemapExportService:
    export_service = getattr(request.app.state, "export_service", None)
    if isinstance(export_service, SitemapExportService):
        return export_service

    raise HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Sitemap export service is unavailable",
    )


def _not_found(name: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Sitemap {name}.xml not found",
    )


@router.get("/sitemap.xml", response_class=Response)
async def get_sitemap_index(
    index_service: SitemapIndexService = Depends(_get_index_service),
) -> Response:
    try:
        xml = await index_service.render()
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)
    return Response(content=xml, media_type=XML_MEDIA_TYPE)


@router.get("/sitemaps/{name}.xml", response_class=Response)
async def get_sitemap_document(
    name: str,
    repository: SitemapRepository = Depends(_get_sitemap_repository),
) -> Response:
    match = _DOCUMENT_NAME_PATTERN.match(name)
    if match is None:
        raise _not_found(name)

    shard = int(match.group("shard") or 1)
    if shard < 1:
        raise _not_found(name)

    try:
        xml = await repository.get_document(match.group("date"), shard)
    except SitemapValidationError as error:
        raise _not_found(name) from error
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)

    if xml is None:
        raise _not_found(name)
    return Response(content=xml, media_type=XML_MEDIA_TYPE)


@router.post("/api/sitemaps/validate", response_model=SitemapValidationResponse)
async def validate_sitemaps(
    payload: SitemapScopeRequest | None = None,
    validation_service: SitemapValidationService = Depends(_get_validation_service),
) -> SitemapValidationResponse:
    date_queries = payload.date_queries if payload is not None else []
    try:
        summary = await validation_service.validate_sitemaps(date_queries or None)
    except InvalidDateQueryError as error:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(error),
        ) from error
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)
    return SitemapValidationResponse(**summary.to_dict())


@router.post("/api/sitemaps/recount", response_model=SitemapRecountResponse)
async def recount_sitemaps(
    payload: SitemapScopeRequest | None = None,
    validation_service: SitemapValidationService = Depends(_get_validation_service),
) -> SitemapRecountResponse:
    date_queries = payload.date_queries if payload is not None else []
    try:
        summary = await validation_service.recount(date_queries or None)
    except InvalidDateQueryError as error:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(error),
        ) from error
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)
    return SitemapRecountResponse(**summary.to_dict())


@router.post("/api/sitemaps/cleanup", response_model=OperationResultResponse)
async def cleanup_sitemaps(
    cleanup_service: SitemapCleanupService = Depends(_get_cleanup_service),
) -> OperationResultResponse:
    return operation_response(await cleanup_service.cleanup_orphaned_sitemaps())


@router.post("/api/sitemaps/export", response_model=SitemapExportResponse)
async def export_sitemaps(
    payload: SitemapExportRequest | None = None,
    export_service: SitemapExportService = Depends(_get_export_service),
) -> SitemapExportResponse:
    payload = payload or SitemapExportRequest()
    output_dir = export_service.export_root
    if payload.subdirectory:
        output_dir = output_dir / payload.subdirectory
    try:
        result = await export_service.export_sitemaps(
            output_dir, payload.date_queries or None, pretty=payload.pretty
        )
    except InvalidDateQueryError as error:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(error),
        ) from error
    except SitemapRepositoryUnavailableError as error:
        raise_unavailable(error)
    except OSError as error:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create export directory: {error}",
        ) from error
    return SitemapExportResponse(
        count=result.count,
        output_dir=str(result.output_dir),
        files=result.files,
        errors=result.errors,
        message=result.message,
    )


__all__ = ["router"]
