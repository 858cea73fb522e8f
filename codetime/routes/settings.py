"""
CODETIME — Settings Router.

Alias and language mapping rules, language back-fill and account deletion.
"""

from fastapi import APIRouter, Depends

from codetime.api_deps import get_engine
from codetime.engine import CodetimeEngine
from codetime.models import (
    AliasRequest,
    AliasResponse,
    BackfillRequest,
    BackfillResponse,
    LanguageMappingRequest,
    LanguageMappingResponse,
)
from codetime.timing.models import Alias, LanguageMapping

router = APIRouter(tags=["settings"])


def _alias_response(alias: Alias) -> AliasResponse:
    return AliasResponse(id=alias.id, type=alias.type.label, key=alias.key, value=alias.value)


def _mapping_response(mapping: LanguageMapping) -> LanguageMappingResponse:
    return LanguageMappingResponse(
        id=mapping.id, extension=mapping.extension, language=mapping.language
    )


@router.get("/v1/users/{user}/aliases", response_model=list[AliasResponse])
async def list_aliases(user: str, engine: CodetimeEngine = Depends(get_engine)):
    return [_alias_response(a) for a in await engine.list_aliases(user)]


@router.post("/v1/users/{user}/aliases", status_code=201, response_model=AliasResponse)
async def add_alias(
    user: str, req: AliasRequest, engine: CodetimeEngine = Depends(get_engine)
) -> AliasResponse:
    return _alias_response(await engine.add_alias(user, req.type, req.key, req.value))


@router.delete("/v1/users/{user}/aliases/{type_}/{value}")
async def delete_alias(
    user: str, type_: str, value: str, engine: CodetimeEngine = Depends(get_engine)
) -> dict:
    return {"deleted": await engine.delete_alias(user, type_, value)}


@router.get("/v1/users/{user}/language-mappings", response_model=list[LanguageMappingResponse])
async def list_language_mappings(user: str, engine: CodetimeEngine = Depends(get_engine)):
    return [_mapping_response(m) for m in await engine.list_language_mappings(user)]


@router.post(
    "/v1/users/{user}/language-mappings",
    status_code=201,
    response_model=LanguageMappingResponse,
)
async def add_language_mapping(
    user: str, req: LanguageMappingRequest, engine: CodetimeEngine = Depends(get_engine)
) -> LanguageMappingResponse:
    mapping = await engine.add_language_mapping(
        user, req.extension, req.language, backfill=req.backfill
    )
    return _mapping_response(mapping)


@router.delete("/v1/users/{user}/language-mappings/{extension}")
async def delete_language_mapping(
    user: str, extension: str, engine: CodetimeEngine = Depends(get_engine)
) -> dict:
    return {"deleted": await engine.delete_language_mapping(user, extension)}


@router.post("/v1/users/{user}/language-mappings/backfill", response_model=BackfillResponse)
async def backfill_language(
    user: str, req: BackfillRequest, engine: CodetimeEngine = Depends(get_engine)
) -> BackfillResponse:
    """Apply a mapping to stored heartbeats without a language. Rerunnable."""
    rows = await engine.backfill_language(LanguageMapping(user, req.extension, req.language))
    return BackfillResponse(rows_affected=rows)


@router.delete("/v1/users/{user}", status_code=204)
async def delete_user(user: str, engine: CodetimeEngine = Depends(get_engine)) -> None:
    await engine.delete_user(user)
