"""Generic CRUD handlers for schemaless document collections.

Every resource prefix (``/person``, ``/organization``...) is served by a
router built here, bound to the collection of the same name:

- ``GET /``: paginated list (``limit``, ``skip``, ``sort``)
- ``POST /``: create, answers 201
- ``GET /{_id}``: fetch
- ``PATCH /{_id}``: merge fields into the document
- ``PUT /{_id}``: replace the document's payload
- ``DELETE /{_id}``: delete, answers 204
"""

from typing import Annotated, Any

import orjson
from fastapi import APIRouter, Depends, Request, Response, status

from src.api.dependencies import DatabaseHandle
from src.api.pagination import PageParams
from src.api.schemas.results import ResultPage
from src.core.exceptions import ValidationError


async def json_object_body(request: Request) -> dict[str, Any]:
    """Read the request body as a JSON object.

    Raises:
        ValidationError: If the body is not valid JSON or not an object.
    """
    raw = await request.body()
    if not raw:
        raise ValidationError("Request body must be a JSON object")

    try:
        payload = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise ValidationError(f"Malformed JSON body: {e}", cause=e) from e

    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    return payload


JsonObject = Annotated[dict[str, Any], Depends(json_object_body)]


def build_resource_router(collection: str) -> APIRouter:
    """Build the CRUD router of one collection.

    Args:
        collection: Collection name, e.g. ``"person"``.

    Returns:
        APIRouter: Router to mount under the collection's prefix.
    """
    router = APIRouter(tags=[collection])

    @router.get("")
    async def list_documents(
        database: DatabaseHandle, pagination: PageParams
    ) -> ResultPage:
        repository = database.model(collection)
        items = await repository.find(
            skip=pagination.skip, limit=pagination.limit, sort=pagination.sort
        )
        return ResultPage(
            items=items,
            total=await repository.count(),
            limit=pagination.limit,
            skip=pagination.skip,
        )

    @router.post("", status_code=status.HTTP_201_CREATED)
    async def create_document(
        database: DatabaseHandle, payload: JsonObject
    ) -> dict[str, Any]:
        return await database.model(collection).create(payload)

    @router.get("/{document_id}")
    async def get_document(
        database: DatabaseHandle, document_id: str
    ) -> dict[str, Any]:
        return await database.model(collection).get(document_id)

    @router.patch("/{document_id}")
    async def update_document(
        database: DatabaseHandle, document_id: str, payload: JsonObject
    ) -> dict[str, Any]:
        return await database.model(collection).update(document_id, payload)

    @router.put("/{document_id}")
    async def replace_document(
        database: DatabaseHandle, document_id: str, payload: JsonObject
    ) -> dict[str, Any]:
        return await database.model(collection).replace(document_id, payload)

    @router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_document(database: DatabaseHandle, document_id: str) -> Response:
        await database.model(collection).delete(document_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router
