"""Remote document store contract and its Firestore REST implementation."""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple, Protocol

import httpx

from simplefit_mcp.simplefit.auth import FirebaseAuth
from simplefit_mcp.simplefit.exceptions import APIError, AuthenticationError

logger = logging.getLogger(__name__)

FIRESTORE_ROOT = "https://firestore.googleapis.com/v1"

USERS = "users"
EXERCISES = "exercises"
ROUTINES = "routines"
WORKOUTS = "workouts"


class Filter(NamedTuple):
    """A single query condition. `op` is one of ==, <, <=, >, >=, array-contains."""
    field: str
    op: str
    value: Any


class Write(NamedTuple):
    collection: str
    doc_id: str
    data: dict


class DocumentStore(Protocol):
    """Flat key -> document collections with a secondary query capability.

    Documents are plain dicts. Reads return them with their key under "id".
    """

    async def get(self, collection: str, doc_id: str) -> dict | None:
        ...

    async def query(
        self,
        collection: str,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        ...

    async def add(self, collection: str, data: dict) -> str:
        ...

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        """Merge `fields` into the document. Keys may be dotted paths."""
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    async def increment(self, collection: str, doc_id: str, field: str, amount: float) -> None:
        ...

    async def increment_fields(self, collection: str, doc_id: str, amounts: dict[str, float]) -> None:
        """Add to several numeric fields in one atomic write."""
        ...

    async def batch_write(self, writes: list[Write]) -> None:
        ...


_OPERATORS = {
    "==": "EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "array-contains": "ARRAY_CONTAINS",
}


def encode_value(value: Any) -> dict:
    if value is None:
        return {"nullValue": None}
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        return {"timestampValue": value.isoformat()}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


def encode_fields(data: dict) -> dict:
    return {k: encode_value(v) for k, v in data.items()}


def decode_value(val: dict):
    if "stringValue" in val:
        return val["stringValue"]
    if "integerValue" in val:
        return int(val["integerValue"])
    if "doubleValue" in val:
        return val["doubleValue"]
    if "booleanValue" in val:
        return val["booleanValue"]
    if "timestampValue" in val:
        return val["timestampValue"]
    if "arrayValue" in val:
        items = val["arrayValue"].get("values", [])
        return [decode_value(v) for v in items]
    if "mapValue" in val:
        fields = val["mapValue"].get("fields", {})
        return {k: decode_value(v) for k, v in fields.items()}
    if "nullValue" in val:
        return None
    if "referenceValue" in val:
        return val["referenceValue"]
    return None


def decode_document(doc: dict) -> dict:
    data = {k: decode_value(v) for k, v in doc.get("fields", {}).items()}
    data["id"] = doc["name"].split("/")[-1]
    return data


def nest_dotted(fields: dict) -> dict:
    """{"stats.total_workouts": 1} -> {"stats": {"total_workouts": 1}}"""
    nested: dict = {}
    for path, value in fields.items():
        target = nested
        *parents, leaf = path.split(".")
        for part in parents:
            target = target.setdefault(part, {})
        target[leaf] = value
    return nested


class FirestoreStore:
    """DocumentStore backed by the Firestore REST API."""

    def __init__(
        self,
        auth: FirebaseAuth,
        project_id: str,
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._auth = auth
        self._project_id = project_id
        self._timeout = timeout
        self._transport = transport

    @property
    def _database(self) -> str:
        return f"projects/{self._project_id}/databases/(default)"

    @property
    def _base(self) -> str:
        return f"{FIRESTORE_ROOT}/{self._database}/documents"

    def _doc_name(self, collection: str, doc_id: str) -> str:
        return f"{self._database}/documents/{collection}/{doc_id}"

    async def _ensure_authenticated(self) -> None:
        if not self._auth.is_authenticated:
            raise AuthenticationError()
        if self._auth.is_token_expired:
            await self._auth.refresh()

    async def _request(self, method: str, url: str, allow_404: bool = False, **kwargs) -> dict | None:
        await self._ensure_authenticated()

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.request(
                    method, url, headers=self._auth.get_auth_header(), **kwargs,
                )

                if response.status_code == 401:
                    await self._auth.refresh()
                    response = await client.request(
                        method, url, headers=self._auth.get_auth_header(), **kwargs,
                    )
            except httpx.HTTPError as e:
                logger.error("Firestore %s %s failed: %s", method, url, e)
                raise APIError(f"API request failed: {e}") from e

            if allow_404 and response.status_code == 404:
                return None

            if response.status_code >= 400:
                logger.error("Firestore %s %s returned %s", method, url, response.status_code)
                raise APIError(
                    f"API request failed: {response.text}",
                    status_code=response.status_code,
                )

            return response.json() if response.content else {}

    async def get(self, collection: str, doc_id: str) -> dict | None:
        doc = await self._request("GET", f"{self._base}/{collection}/{doc_id}", allow_404=True)
        return decode_document(doc) if doc else None

    async def query(
        self,
        collection: str,
        filters: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        structured: dict = {"from": [{"collectionId": collection}]}

        field_filters = [
            {
                "fieldFilter": {
                    "field": {"fieldPath": f.field},
                    "op": _OPERATORS[f.op],
                    "value": encode_value(f.value),
                }
            }
            for f in filters or []
        ]
        if len(field_filters) == 1:
            structured["where"] = field_filters[0]
        elif field_filters:
            structured["where"] = {"compositeFilter": {"op": "AND", "filters": field_filters}}

        if order_by:
            structured["orderBy"] = [{
                "field": {"fieldPath": order_by},
                "direction": "DESCENDING" if descending else "ASCENDING",
            }]
        if limit is not None:
            structured["limit"] = limit

        rows = await self._request("POST", f"{self._base}:runQuery", json={"structuredQuery": structured})
        return [decode_document(row["document"]) for row in rows or [] if "document" in row]

    async def add(self, collection: str, data: dict) -> str:
        doc = await self._request("POST", f"{self._base}/{collection}", json={"fields": encode_fields(data)})
        return doc["name"].split("/")[-1]

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        await self._request(
            "PATCH", f"{self._base}/{collection}/{doc_id}", json={"fields": encode_fields(data)},
        )

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        await self._request(
            "PATCH",
            f"{self._base}/{collection}/{doc_id}",
            params={"updateMask.fieldPaths": list(fields), "currentDocument.exists": "true"},
            json={"fields": encode_fields(nest_dotted(fields))},
        )

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._request("DELETE", f"{self._base}/{collection}/{doc_id}")

    async def increment(self, collection: str, doc_id: str, field: str, amount: float) -> None:
        await self.increment_fields(collection, doc_id, {field: amount})

    async def increment_fields(self, collection: str, doc_id: str, amounts: dict[str, float]) -> None:
        transform = {
            "transform": {
                "document": self._doc_name(collection, doc_id),
                "fieldTransforms": [
                    {"fieldPath": field, "increment": encode_value(amount)}
                    for field, amount in amounts.items()
                ],
            }
        }
        await self._request("POST", f"{self._base}:commit", json={"writes": [transform]})

    async def batch_write(self, writes: list[Write]) -> None:
        body = {
            "writes": [
                {"update": {"name": self._doc_name(w.collection, w.doc_id), "fields": encode_fields(w.data)}}
                for w in writes
            ]
        }
        await self._request("POST", f"{self._base}:commit", json=body)
