"""Elasticsearch index backend built on the official async client."""

from __future__ import annotations

import logging
from typing import Any

from elasticsearch import ApiError, AsyncElasticsearch, NotFoundError, TransportError

from ..exceptions import IndexBootstrapError
from ..model import BulkResult, DocumentBody, IndexRequest
from ..ports import IIndexBackend

logger = logging.getLogger(__name__)

TIMESTAMP_FIELD = "@timestamp"
TYPE_FIELD = "@type"
_MAX_TIMESTAMP_AGG = "timestamp_stats"

EVENT_TIME_PROPERTIES: dict[str, Any] = {
    TIMESTAMP_FIELD: {"type": "date", "format": "epoch_millis"},
    TYPE_FIELD: {"type": "keyword"},
}


def _error_type(error: ApiError) -> str:
    body = error.body
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("type", ""))
    return str(error.message)


def resolve_id_field(body: DocumentBody, id_field: str) -> str | None:
    """Look up ``id_field`` in a family/qualifier body.

    ``"family.qualifier"`` addresses one value directly; a bare qualifier name
    matches the first family that holds it.
    """
    family, _, qualifier = id_field.partition(".")
    if qualifier:
        return body.get(family, {}).get(qualifier)
    for values in body.values():
        if id_field in values:
            return values[id_field]
    return None


class ElasticsearchIndexBackend(IIndexBackend):
    """Writes river documents into Elasticsearch.

    Every document gets two bookkeeping fields next to its families: the
    pass event time in ``@timestamp`` and the logical type in ``@type``. The
    watermark is the ``max`` aggregation over ``@timestamp`` for that type.
    """

    def __init__(
        self,
        client: AsyncElasticsearch,
        *,
        id_field: str | None = None,
        refresh: bool = False,
    ) -> None:
        self._client = client
        self._default_id_field = id_field
        self._id_fields: dict[tuple[str, str], str | None] = {}
        self._refresh = refresh

    @classmethod
    def from_url(cls, hosts: str | list[str], **kwargs: Any) -> ElasticsearchIndexBackend:
        return cls(AsyncElasticsearch(hosts), **kwargs)

    async def close(self) -> None:
        await self._client.close()

    async def ensure_index(
        self, index: str, doc_type: str, id_field: str | None = None
    ) -> None:
        """Create ``index`` with the event-time mapping, tolerating existing ones.

        Raises:
            IndexBootstrapError: the cluster could not be reached.
        """
        self._id_fields[(index, doc_type)] = id_field
        try:
            await self._client.indices.create(
                index=index, mappings={"properties": EVENT_TIME_PROPERTIES}
            )
            logger.info("Created index %s with event-time mapping for %s", index, doc_type)
        except ApiError as e:
            if _error_type(e) == "resource_already_exists_exception":
                logger.debug("Not creating index %s as it already exists", index)
            else:
                logger.debug(
                    "Mapping %s.%s already exists and will not be created: %s",
                    index,
                    doc_type,
                    e,
                )
        except (TransportError, OSError) as e:
            raise IndexBootstrapError(f"Failed to create index {index}: {e}") from e

        try:
            await self._client.indices.put_mapping(
                index=index, properties=EVENT_TIME_PROPERTIES
            )
        except ApiError:
            logger.debug(
                "Mapping already exists for index %s and type %s", index, doc_type
            )
        except (TransportError, OSError) as e:
            raise IndexBootstrapError(f"Failed to put mapping on {index}: {e}") from e

    async def max_event_timestamp(self, index: str, doc_type: str) -> int | None:
        try:
            response = await self._client.search(
                index=index,
                size=0,
                query={"bool": {"filter": [{"term": {TYPE_FIELD: doc_type}}]}},
                aggs={_MAX_TIMESTAMP_AGG: {"max": {"field": TIMESTAMP_FIELD}}},
            )
        except NotFoundError:
            return None
        value = (
            (response.get("aggregations") or {})
            .get(_MAX_TIMESTAMP_AGG, {})
            .get("value")
        )
        return None if value is None else int(value)

    async def submit_batch(self, requests: list[IndexRequest]) -> BulkResult:
        operations: list[dict[str, Any]] = []
        for request in requests:
            action: dict[str, Any] = {"_index": request.index}
            doc_id = self._document_id(request)
            if doc_id is not None:
                action["_id"] = doc_id
            operations.append({"index": action})
            operations.append(
                {
                    **request.body,
                    TIMESTAMP_FIELD: request.event_timestamp,
                    TYPE_FIELD: request.doc_type,
                }
            )

        response = await self._client.bulk(
            operations=operations, refresh=self._refresh
        )
        items = response.get("items", [])
        errors = [
            item_result
            for item in items
            for item_result in item.values()
            if item_result.get("error") is not None
        ]
        return BulkResult(
            succeeded_count=len(items) - len(errors),
            has_failures=bool(response.get("errors")) or bool(errors),
            item_count=len(items),
            errors=errors,
        )

    def _document_id(self, request: IndexRequest) -> str | None:
        if request.identifier is not None:
            return request.identifier
        id_field = self._id_fields.get(
            (request.index, request.doc_type), self._default_id_field
        )
        if id_field is None:
            return None
        return resolve_id_field(request.body, id_field)
