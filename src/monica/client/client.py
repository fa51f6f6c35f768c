"""
Async client for the Monica REST API.

All requests go to {base_url}/api/... with a bearer token. Responses are
unwrapped from Monica's {"data": ...} envelope and validated into the wire
models in monica.models.api. Every failure surfaces as a MonicaAPIError
subclass (see monica.client.errors); there is no automatic retry.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
import pydantic

from monica.client.cache import ResponseCache
from monica.client.errors import (
    DecodingError,
    ForbiddenError,
    InvalidCredentialsError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    ValidationError,
)
from monica.config import get_settings
from monica.models.api import (
    Activity,
    CallLog,
    Contact,
    Conversation,
    DayEntry,
    Debt,
    Note,
    Page,
    PageMeta,
    Relationship,
    RelationshipType,
    RelationshipTypeGroup,
    Task,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=pydantic.BaseModel)

# Resource path -> wire model returned by create/update on that resource
RESOURCE_MODELS: Dict[str, Type[pydantic.BaseModel]] = {
    "calls": CallLog,
    "debts": Debt,
    "conversations": Conversation,
    "relationships": Relationship,
    "days": DayEntry,
}


class MonicaClient:
    """
    Thin async wrapper over one httpx.AsyncClient.

    Use as an async context manager, or call aclose() when done.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        *,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        cache: Optional[ResponseCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Instance root, e.g. "https://app.monicahq.com".
            api_token: Personal access token (sent as a bearer token).
            timeout: Request timeout in seconds; defaults to settings.
            user_agent: User-Agent header; defaults to settings.
            cache: Optional ResponseCache for contact list pages.
            transport: httpx transport override (tests use MockTransport).
        """
        settings = get_settings()
        self.base_url = base_url.strip().rstrip("/")
        self.per_page = settings.per_page
        self.max_per_page = settings.max_per_page
        self._cache = cache
        self._http = httpx.AsyncClient(
            base_url=f"{self.base_url}/api",
            headers={
                "Authorization": f"Bearer {api_token}",
                "Accept": "application/json",
                "User-Agent": user_agent or settings.user_agent,
            },
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "MonicaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Transport ─────────────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (None if empty)."""
        logger.debug("%s %s", method, path)
        try:
            response = await self._http.request(method, path, params=params, json=json)
        except httpx.TransportError as exc:
            raise NetworkError(exc) from exc

        # only contact pages are cached
        if method != "GET" and self._cache is not None:
            self._cache.invalidate("/contacts")

        self._raise_for_status(method, path, response)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise DecodingError(f"invalid JSON: {exc}") from exc

    @staticmethod
    def _raise_for_status(method: str, path: str, response: httpx.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        logger.warning("%s %s -> HTTP %d", method, path, status)
        if status == 401:
            raise InvalidCredentialsError()
        if status == 403:
            raise ForbiddenError()
        if status == 404:
            raise NotFoundError()
        if status == 429:
            raise RateLimitedError()
        if 400 <= status < 500:
            raise ValidationError(_error_detail(response))
        raise ServerError(status)

    async def _get_cached(self, path: str, params: Dict[str, Any]) -> Any:
        if self._cache is None:
            return await self._request("GET", path, params=params)
        key = ResponseCache.key(path, params)
        body = self._cache.get(key)
        if body is None:
            body = await self._request("GET", path, params=params)
            self._cache.put(key, body)
        return body

    # ── Decoding ──────────────────────────────────────────────────────────────

    @staticmethod
    def _decode(model: Type[M], raw: Any) -> M:
        try:
            return model.model_validate(raw)
        except pydantic.ValidationError as exc:
            raise DecodingError(str(exc)) from exc

    def _unwrap_one(self, model: Type[M], body: Any) -> M:
        if not isinstance(body, dict) or "data" not in body:
            raise DecodingError("response has no data envelope")
        return self._decode(model, body["data"])

    def _unwrap_page(self, model: Type[M], body: Any, page: int, per_page: int) -> Page:
        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            raise DecodingError("response has no data list")
        items = [self._decode(model, raw) for raw in body["data"]]
        meta = self._decode(PageMeta, body.get("meta") or {})
        return Page(
            items=items,
            page=meta.current_page or page,
            per_page=per_page,
            last_page=meta.last_page,
        )

    async def _list_all(
        self, model: Type[M], path: str, params: Optional[Dict[str, Any]] = None
    ) -> List[M]:
        """GET every page of a listing until the server says there are no more."""
        items: List[M] = []
        page = 1
        while True:
            query = {"limit": self.max_per_page, **(params or {}), "page": page}
            body = await self._request("GET", path, params=query)
            result = self._unwrap_page(model, body, page, query["limit"])
            items.extend(result.items)
            if not result.items or not result.has_more_pages:
                return items
            page += 1

    # ── Auth ──────────────────────────────────────────────────────────────────

    async def test_connection(self) -> None:
        """Raises InvalidCredentialsError if the token is rejected."""
        await self._request("GET", "/me")

    # ── Contacts ──────────────────────────────────────────────────────────────

    async def list_contacts(
        self,
        page: int = 1,
        per_page: Optional[int] = None,
        query: Optional[str] = None,
    ) -> Page:
        per_page = per_page or self.per_page
        params: Dict[str, Any] = {"page": page, "limit": per_page}
        if query and query.strip():
            params["query"] = query.strip()
            body = await self._request("GET", "/contacts", params=params)
        else:
            body = await self._get_cached("/contacts", params)
        return self._unwrap_page(Contact, body, page, per_page)

    async def list_all_contacts(self) -> List[Contact]:
        """Walk every contact page until the server says there are no more."""
        contacts: List[Contact] = []
        page = 1
        while True:
            result = await self.list_contacts(page=page, per_page=self.max_per_page)
            contacts.extend(result.items)
            logger.info("Contacts page %d: %d (total %d)", page, len(result.items), len(contacts))
            if not result.items or not result.has_more_pages:
                return contacts
            page += 1

    async def search_contacts(self, query: str, limit: int = 50) -> List[Contact]:
        result = await self.list_contacts(page=1, per_page=limit, query=query)
        return result.items

    async def get_contact(self, contact_id: int) -> Contact:
        body = await self._request("GET", f"/contacts/{contact_id}")
        return self._unwrap_one(Contact, body)

    async def _list_contact_page(
        self, model: Type[M], contact_id: int, sub: str, page: int, per_page: Optional[int]
    ) -> Page:
        per_page = per_page or self.per_page
        body = await self._request(
            "GET", f"/contacts/{contact_id}/{sub}", params={"page": page, "limit": per_page}
        )
        return self._unwrap_page(model, body, page, per_page)

    async def list_activities(self, contact_id: int, page: int = 1, per_page: Optional[int] = None) -> Page:
        return await self._list_contact_page(Activity, contact_id, "activities", page, per_page)

    async def list_notes(self, contact_id: int, page: int = 1, per_page: Optional[int] = None) -> Page:
        return await self._list_contact_page(Note, contact_id, "notes", page, per_page)

    async def list_tasks(self, contact_id: int, page: int = 1, per_page: Optional[int] = None) -> Page:
        return await self._list_contact_page(Task, contact_id, "tasks", page, per_page)

    # ── Generic writes (used by the sync engine) ──────────────────────────────

    async def create(self, resource: str, payload: Dict[str, Any]) -> pydantic.BaseModel:
        body = await self._request("POST", f"/{resource}", json=payload)
        return self._unwrap_one(RESOURCE_MODELS[resource], body)

    async def update(self, resource: str, remote_id: int, payload: Dict[str, Any]) -> pydantic.BaseModel:
        body = await self._request("PUT", f"/{resource}/{remote_id}", json=payload)
        return self._unwrap_one(RESOURCE_MODELS[resource], body)

    async def delete(self, resource: str, remote_id: int) -> None:
        await self._request("DELETE", f"/{resource}/{remote_id}")

    # ── Call logs ─────────────────────────────────────────────────────────────

    async def list_call_logs(self, contact_id: int) -> List[CallLog]:
        return await self._list_all(CallLog, f"/contacts/{contact_id}/calls")

    async def create_call_log(self, payload: Dict[str, Any]) -> CallLog:
        return await self.create("calls", payload)

    async def update_call_log(self, call_id: int, payload: Dict[str, Any]) -> CallLog:
        return await self.update("calls", call_id, payload)

    async def delete_call_log(self, call_id: int) -> None:
        await self.delete("calls", call_id)

    # ── Debts ─────────────────────────────────────────────────────────────────

    async def list_debts(self, contact_id: int) -> List[Debt]:
        return await self._list_all(Debt, f"/contacts/{contact_id}/debts")

    async def list_all_debts(self, limit: int = 100) -> List[Debt]:
        return await self._list_all(Debt, "/debts", params={"limit": limit})

    async def create_debt(self, payload: Dict[str, Any]) -> Debt:
        return await self.create("debts", payload)

    async def update_debt(self, debt_id: int, payload: Dict[str, Any]) -> Debt:
        return await self.update("debts", debt_id, payload)

    async def delete_debt(self, debt_id: int) -> None:
        await self.delete("debts", debt_id)

    # ── Conversations ─────────────────────────────────────────────────────────

    async def list_conversations(self, contact_id: int) -> List[Conversation]:
        return await self._list_all(Conversation, f"/contacts/{contact_id}/conversations")

    async def create_conversation(self, payload: Dict[str, Any]) -> Conversation:
        return await self.create("conversations", payload)

    async def update_conversation(self, conversation_id: int, payload: Dict[str, Any]) -> Conversation:
        return await self.update("conversations", conversation_id, payload)

    async def delete_conversation(self, conversation_id: int) -> None:
        await self.delete("conversations", conversation_id)

    async def add_conversation_message(
        self,
        conversation_id: int,
        contact_id: int,
        content: str,
        written_by_me: bool = True,
        written_at: Optional[date] = None,
    ) -> None:
        """Append a message; the server only accepts written_by_me (not writtenByMe)."""
        written_at = written_at or date.today()
        if isinstance(written_at, datetime):
            written_at = written_at.date()
        await self._request(
            "POST",
            f"/conversations/{conversation_id}/messages",
            json={
                "contact_id": contact_id,
                "written_at": written_at.isoformat(),
                "written_by_me": written_by_me,
                "content": content,
            },
        )

    # ── Relationships ─────────────────────────────────────────────────────────

    async def list_relationships(self, contact_id: int) -> List[Relationship]:
        return await self._list_all(Relationship, f"/contacts/{contact_id}/relationships")

    async def create_relationship(
        self, contact_is: int, of_contact: int, relationship_type_id: int
    ) -> Relationship:
        return await self.create(
            "relationships",
            {
                "contact_is": contact_is,
                "of_contact": of_contact,
                "relationship_type_id": relationship_type_id,
            },
        )

    async def update_relationship(self, relationship_id: int, relationship_type_id: int) -> Relationship:
        return await self.update(
            "relationships", relationship_id, {"relationship_type_id": relationship_type_id}
        )

    async def delete_relationship(self, relationship_id: int) -> None:
        await self.delete("relationships", relationship_id)

    async def list_relationship_types(self) -> List[RelationshipType]:
        return await self._list_all(RelationshipType, "/relationshiptypes")

    async def list_relationship_type_groups(self) -> List[RelationshipTypeGroup]:
        return await self._list_all(RelationshipTypeGroup, "/relationshiptypegroups")

    # ── Day entries (mood) ────────────────────────────────────────────────────

    async def list_day_entries(self) -> List[DayEntry]:
        return await self._list_all(DayEntry, "/days")

    async def create_day_entry(self, entry_date: date, rate: int, comment: Optional[str] = None) -> DayEntry:
        return await self.create(
            "days", {"date": entry_date.isoformat(), "rate": rate, "comment": comment}
        )

    async def update_day_entry(self, entry_id: int, rate: int, comment: Optional[str] = None) -> DayEntry:
        return await self.update("days", entry_id, {"rate": rate, "comment": comment})

    async def delete_day_entry(self, entry_id: int) -> None:
        await self.delete("days", entry_id)


def _error_detail(response: httpx.Response) -> str:
    """Pull a readable message out of a 4xx body ({"message"} or {"error": {"message"}})."""
    try:
        body = response.json()
    except ValueError:
        return "Bad request"
    if not isinstance(body, dict):
        return "Bad request"
    detail = body.get("message") or body.get("error")
    if isinstance(detail, dict):
        detail = detail.get("message")
    if isinstance(detail, list):
        detail = "; ".join(str(d) for d in detail)
    return str(detail) if detail else "Bad request"
