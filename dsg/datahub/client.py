"""
DataHub catalog client

Talks to the GMS OpenAPI v3 entity endpoints: posting entities one by one
and walking the dataset listing with scroll cursors.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

import httpx
from pydantic import BaseModel, Field, ValidationError
from pydantic.config import ConfigDict

from dsg.errors import (
    BatchPostError,
    DecodeError,
    MalformedPayloadError,
    RemoteError,
    TransportError,
)
from .models import Dataset, dump_entity

logger = logging.getLogger("dsg.datahub")

DEFAULT_URL = "http://localhost:8080"
DEFAULT_TIMEOUT = 30.0
DEFAULT_PAGE_SIZE = 100

# Aspects side-loaded with every dataset listing page
LIST_ASPECTS = ("schemaMetadata", "glossaryTerms", "editableSchemaMetadata")


class ScrollMetadata(BaseModel):
    total: Optional[int] = None

    model_config = ConfigDict(extra="ignore")


class ScrollPage(BaseModel):
    """Envelope returned by the entity listing endpoint."""

    entities: List[Dataset] = Field(default_factory=list)
    scroll_id: Optional[str] = Field(default=None, alias="scrollId")
    metadata: Optional[ScrollMetadata] = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CatalogClient:
    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the catalog client

        Args:
            url: GMS base URL. Defaults to http://localhost:8080 when empty.
            token: Static bearer token; no Authorization header when unset.
            timeout: Transport timeout in seconds.
            http_client: Pre-built httpx client (tests inject a MockTransport).
        """
        self.url = (url or DEFAULT_URL).rstrip("/")
        self.token = token
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "CatalogClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _headers(self) -> dict:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, params, content: Optional[str] = None):
        url = f"{self.url}{path}"
        try:
            resp = self._http.request(
                method, url, params=params, content=content, headers=self._headers()
            )
        except httpx.TransportError as e:
            raise TransportError(f"error sending {method} {url}: {e}") from e

        if not resp.is_success:
            body = resp.text[:500]
            raise RemoteError(
                f"{method} {path} failed with status code: {resp.status_code}",
                status_code=resp.status_code,
                body=body,
            )
        return resp

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def post_entities(self, resource_type: str, payload: str, allow_single: bool = False) -> int:
        """
        Post every element of a JSON array as its own request.

        Args:
            resource_type: Entity type path segment (dataset, glossaryTerm, tag...).
            payload: JSON text holding an array of entity objects.
            allow_single: Treat a bare JSON object as a one-element batch instead
                of rejecting it.

        Returns:
            Number of entities posted.

        Raises:
            DecodeError: payload is not valid JSON.
            MalformedPayloadError: payload is not an array (and allow_single is off).
            BatchPostError: an element failed; earlier elements stay posted.
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise DecodeError(f"error parsing {resource_type} payload: {e}") from e

        if isinstance(data, dict) and allow_single:
            data = [data]
        if not isinstance(data, list):
            raise MalformedPayloadError(
                f"expected a JSON array of {resource_type} entities, got {type(data).__name__}"
            )

        for i, entity in enumerate(data):
            try:
                self._post_single(resource_type, entity)
            except (TransportError, RemoteError) as e:
                raise BatchPostError(index=i, posted=i, cause=e) from e
            logger.debug("Posted %s %d/%d", resource_type, i + 1, len(data))

        return len(data)

    def post_models(self, resource_type: str, entities: Sequence[BaseModel]) -> int:
        """Post already-decoded entity models."""
        payload = json.dumps([dump_entity(e) for e in entities])
        return self.post_entities(resource_type, payload)

    def _post_single(self, resource_type: str, entity: Any) -> None:
        self._request(
            "POST",
            f"/openapi/v3/entity/{resource_type}",
            params={"async": "false", "systemMetadata": "false"},
            content=json.dumps([entity]),
        )

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def _list_params(self, page_size: int, scroll_id: Optional[str]) -> List[Tuple[str, Any]]:
        params: List[Tuple[str, Any]] = [("systemMetadata", "false")]
        params += [("aspects", aspect) for aspect in LIST_ASPECTS]
        params.append(("count", page_size))
        if scroll_id:
            params.append(("scrollId", scroll_id))
        else:
            params += [("sort", "urn"), ("sortOrder", "ASCENDING"), ("query", "*")]
        return params

    def _fetch_page(self, page_size: int, scroll_id: Optional[str]) -> ScrollPage:
        resp = self._request(
            "GET", "/openapi/v3/entity/dataset", params=self._list_params(page_size, scroll_id)
        )
        try:
            return ScrollPage.model_validate_json(resp.content)
        except ValidationError as e:
            raise DecodeError(f"error decoding dataset page: {e}") from e

    def iter_dataset_pages(self, page_size: int = DEFAULT_PAGE_SIZE) -> Iterator[List[Dataset]]:
        """
        Yield pages of datasets sorted by URN.

        Stops on an empty page or after a page without a scroll cursor. Each
        call starts again from the first page.
        """
        scroll_id: Optional[str] = None
        page_no = 0
        while True:
            page = self._fetch_page(page_size, scroll_id)
            page_no += 1
            if not page.entities:
                logger.debug("Dataset page %d is empty, done", page_no)
                return
            total = page.metadata.total if page.metadata else None
            logger.debug(
                "Dataset page %d: %d entities (total=%s)", page_no, len(page.entities), total
            )
            yield page.entities
            if not page.scroll_id:
                return
            scroll_id = page.scroll_id

    def list_datasets(
        self, page_size: int, on_page: Callable[[List[Dataset]], None]
    ) -> None:
        """Call on_page for every page; an exception from on_page stops the walk."""
        for entities in self.iter_dataset_pages(page_size):
            on_page(entities)
