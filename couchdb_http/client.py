from __future__ import annotations

"""CouchDB HTTP API client.

Every public method builds a path, optional query parameters and a body,
performs one round trip through ``httpx`` and returns the decoded JSON reply.
Failures are translated into ``couchdb_http.errors`` exceptions in one place
(``_send``).
"""

from collections.abc import Mapping, Sequence
import logging
from typing import Any
from urllib.parse import quote

import httpx

from .config import AUTH_BASIC, AUTH_COOKIE, ClientConfig, Settings, get_settings, merge_headers
from .errors import (
    CouchDBConnectionError,
    CouchDBError,
    CouchDBNotImplementedError,
    CouchDBRuntimeError,
    ErrorKind,
    error_for_status,
)

logger = logging.getLogger(__name__)

DEFAULT_HEADERS: dict[str, str] = {"Content-Type": "application/json"}
DEFAULT_TIMEOUT_SECONDS = 30.0
SESSION_PATH = "/_session"

Params = Mapping[str, Any] | None


def _redact(url: httpx.URL) -> str:
    """Render a URL with the password masked."""

    text = str(url)
    userinfo = url.userinfo.decode("ascii")
    if ":" not in userinfo:
        return text
    username = userinfo.split(":", 1)[0]
    return text.replace(f"{userinfo}@", f"{username}:***@", 1)


def _send(
    http: httpx.Client,
    method: str,
    path: str,
    *,
    params: Params = None,
    json: Any = None,
    content: bytes | str | None = None,
    headers: Mapping[str, str] | None = None,
) -> httpx.Response:
    """Perform one request and translate every failure into a ``CouchDBError``."""

    logger.debug("CouchDB request %s %s", method, path)
    try:
        response = http.request(
            method,
            path,
            params=dict(params) if params else None,
            json=json,
            content=content,
            headers=headers,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        if 400 <= status < 500:
            label = "Client"
        elif status >= 500:
            label = "Server"
        else:
            label = "Unexpected"
        message = (
            f"{label} error: `{method} {_redact(exc.request.url)}` resulted in a "
            f"`{status} {exc.response.reason_phrase}` response"
        )
        error = error_for_status(status, message, exc.response.content)
        # A missing resource is routine for existence checks.
        level = logging.DEBUG if status == 404 else logging.WARNING
        logger.log(level, "CouchDB %s %s failed with %s (%s)", method, path, status, error.kind.value)
        raise error from exc
    except httpx.TransportError as exc:
        logger.warning("CouchDB %s %s could not connect: %s", method, path, exc)
        raise CouchDBConnectionError(str(exc)) from exc
    return response


def _decode(response: httpx.Response) -> Any:
    """Decode a JSON reply; an empty body becomes an empty dict."""

    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as exc:
        raise CouchDBRuntimeError(
            f"Response to `{response.request.method} {response.request.url.path}` is not valid JSON",
            response.status_code,
        ) from exc


class CouchDBClient:
    """Thin binding over the CouchDB HTTP API.

    ``auth="basic"`` embeds the credentials in the base URL. ``auth="cookie"``
    logs in once through ``POST /_session`` and sends the returned cookie with
    every later request; an expired cookie is not renewed.

    ``config`` may carry ``headers`` (merged over the defaults, caller wins)
    and any other ``httpx.Client`` keyword argument such as ``transport`` or
    ``timeout``. Redirects are followed unless ``follow_redirects`` is given.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        auth: str = AUTH_BASIC,
        config: Mapping[str, Any] | None = None,
    ) -> None:
        if auth not in (AUTH_BASIC, AUTH_COOKIE):
            raise ValueError(f"Unsupported auth mode {auth!r}. Use 'basic' or 'cookie'.")

        options = dict(config or {})
        headers = merge_headers(DEFAULT_HEADERS, options.pop("headers", None))
        options.setdefault("timeout", DEFAULT_TIMEOUT_SECONDS)
        options.setdefault("follow_redirects", True)

        if auth == AUTH_BASIC:
            base_url = f"http://{quote(username, safe='')}:{quote(password, safe='')}@{host}:{port}"
        else:
            base_url = f"http://{host}:{port}"
            cookie = self._open_session(base_url, headers, options, username, password)
            headers = merge_headers(headers, {"Cookie": cookie})

        self.auth = auth
        self.config = ClientConfig(base_url=base_url, headers=tuple(headers.items()))
        self._client = httpx.Client(base_url=base_url, headers=headers, **options)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        config: Mapping[str, Any] | None = None,
    ) -> CouchDBClient:
        """Create a client from environment-backed ``Settings``."""

        settings = settings or get_settings()
        options = {"timeout": settings.couchdb_timeout_seconds}
        options.update(config or {})
        return cls(
            settings.couchdb_host,
            settings.couchdb_port,
            settings.couchdb_user,
            settings.couchdb_password,
            settings.couchdb_auth,
            options,
        )

    @staticmethod
    def _open_session(
        base_url: str,
        headers: dict[str, str],
        options: dict[str, Any],
        username: str,
        password: str,
    ) -> str:
        """Log in via ``/_session`` and return the ``Set-Cookie`` value verbatim."""

        session = httpx.Client(base_url=base_url, headers=headers, **options)
        try:
            response = _send(
                session,
                "POST",
                SESSION_PATH,
                json={"name": username, "password": password},
            )
        finally:
            # A caller-supplied transport is shared with the final client.
            if "transport" not in options:
                session.close()
        cookie = response.headers.get("set-cookie")
        if not cookie:
            raise CouchDBRuntimeError(
                "Session login succeeded but no Set-Cookie header was returned",
                response.status_code,
            )
        logger.info("Opened CouchDB cookie session at %s", base_url)
        return cookie

    @property
    def base_url(self) -> str:
        return self.config.base_url

    @property
    def headers(self) -> dict[str, str]:
        """Default headers sent with every request."""

        return self.config.header_map()

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""

        self._client.close()

    def __enter__(self) -> CouchDBClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Params = None,
        json: Any = None,
        content: bytes | str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        response = _send(
            self._client,
            method,
            path,
            params=params,
            json=json,
            content=content,
            headers=headers,
        )
        return _decode(response)

    def _exists(self, path: str, params: Params = None) -> bool:
        """HEAD ``path``; only a not-found error turns into ``False``."""

        try:
            self._request("HEAD", path, params=params)
        except CouchDBError as exc:
            if exc.kind is ErrorKind.NOT_FOUND:
                return False
            raise
        return True

    # Server

    def get_all_databases(self) -> list[str]:
        """List every database name on the server (``GET /_all_dbs``)."""

        return self._request("GET", "/_all_dbs")

    # Databases

    def database_exists(self, db: str) -> bool:
        return self._exists(f"/{db}")

    def get_database(self, db: str) -> dict[str, Any]:
        return self._request("GET", f"/{db}")

    def create_database(self, db: str, params: Params = None) -> dict[str, Any]:
        """Create a database; ``params`` carries options such as ``q``/``n``."""

        return self._request("PUT", f"/{db}", params=params)

    def delete_database(self, db: str) -> dict[str, Any]:
        return self._request("DELETE", f"/{db}")

    def get_all_documents(self, db: str, params: Params = None) -> dict[str, Any]:
        return self._request("GET", f"/{db}/_all_docs", params=params)

    def get_all_documents_by_keys(
        self,
        db: str,
        keys: Sequence[Any],
        params: Params = None,
    ) -> dict[str, Any]:
        """Fetch selected rows of ``_all_docs`` by key."""

        return self._request("POST", f"/{db}/_all_docs", params=params, json={"keys": list(keys)})

    def get_design_documents(self, db: str, params: Params = None) -> dict[str, Any]:
        raise CouchDBNotImplementedError("Listing design documents is not supported")

    def get_design_documents_by_keys(
        self,
        db: str,
        keys: Sequence[Any],
        params: Params = None,
    ) -> dict[str, Any]:
        raise CouchDBNotImplementedError("Fetching design documents by keys is not supported")

    def get_bulk_documents(
        self,
        db: str,
        docs: Sequence[Mapping[str, Any]],
        params: Params = None,
    ) -> dict[str, Any]:
        raise CouchDBNotImplementedError("Bulk document retrieval is not supported")

    def bulk_documents(
        self,
        db: str,
        docs: Sequence[Mapping[str, Any]],
        new_edits: bool = True,
    ) -> list[dict[str, Any]]:
        """Insert or update many documents in one request.

        The per-document result list is returned untouched. ``new_edits`` is
        only sent when ``False`` (replication-style writes that keep the given
        revisions).
        """

        body: dict[str, Any] = {"docs": list(docs)}
        if not new_edits:
            body["new_edits"] = False
        return self._request("POST", f"/{db}/_bulk_docs", json=body)

    # Mango queries and indexes

    def find_documents(self, db: str, query: Mapping[str, Any]) -> dict[str, Any]:
        """Execute a Mango ``_find`` query."""

        return self._request("POST", f"/{db}/_find", json=query)

    def create_index(self, db: str, index: Mapping[str, Any]) -> dict[str, Any]:
        return self._request("POST", f"/{db}/_index", json=index)

    def get_indexes(self, db: str) -> dict[str, Any]:
        return self._request("GET", f"/{db}/_index")

    def delete_index(self, db: str, ddoc: str, index: str) -> dict[str, Any]:
        return self._request("DELETE", f"/{db}/_index/{ddoc}/json/{index}")

    def explain(self, db: str, query: Mapping[str, Any]) -> dict[str, Any]:
        """Show which index a Mango query would use."""

        return self._request("POST", f"/{db}/_explain", json=query)

    # Shards

    def get_database_shards(self, db: str) -> dict[str, Any]:
        return self._request("GET", f"/{db}/_shards")

    def get_document_shards(self, db: str, docid: str) -> dict[str, Any]:
        return self._request("GET", f"/{db}/_shards/{docid}")

    # Changes feed

    def get_database_changes(self, db: str, params: Params = None) -> dict[str, Any]:
        return self._request("GET", f"/{db}/_changes", params=params)

    def get_database_changes_by_criteria(
        self,
        db: str,
        criteria: Mapping[str, Any],
        params: Params = None,
    ) -> dict[str, Any]:
        """Changes feed with a JSON body, typically ``{"doc_ids": [...]}``
        together with ``filter=_doc_ids``."""

        return self._request("POST", f"/{db}/_changes", params=params, json=criteria)

    # Maintenance

    def compact_database(self, db: str) -> dict[str, Any]:
        return self._request("POST", f"/{db}/_compact")

    def compact_design_document(self, db: str, ddoc: str) -> dict[str, Any]:
        return self._request("POST", f"/{db}/_compact/{ddoc}")

    def ensure_full_commit(self, db: str) -> dict[str, Any]:
        return self._request("POST", f"/{db}/_ensure_full_commit")

    def cleanup_views(self, db: str) -> dict[str, Any]:
        """Remove view index files no design document needs anymore."""

        return self._request("POST", f"/{db}/_view_cleanup")

    # Security

    def get_security(self, db: str) -> dict[str, Any]:
        return self._request("GET", f"/{db}/_security")

    def set_security(self, db: str, security: Mapping[str, Any]) -> dict[str, Any]:
        return self._request("PUT", f"/{db}/_security", json=security)

    # Purge and revisions

    def purge(self, db: str, revs: Mapping[str, Sequence[str]]) -> dict[str, Any]:
        """Permanently remove the given ``{docid: [rev, ...]}`` revisions."""

        return self._request("POST", f"/{db}/_purge", json=revs)

    def get_purged_infos_limit(self, db: str) -> int:
        return int(self._request("GET", f"/{db}/_purged_infos_limit"))

    def set_purged_infos_limit(self, db: str, limit: int) -> dict[str, Any]:
        return self._request("PUT", f"/{db}/_purged_infos_limit", content=str(int(limit)))

    def get_missing_revisions(self, db: str, revs: Mapping[str, Sequence[str]]) -> dict[str, Any]:
        return self._request("POST", f"/{db}/_missing_revs", json=revs)

    def get_revisions_diff(self, db: str, revs: Mapping[str, Sequence[str]]) -> dict[str, Any]:
        return self._request("POST", f"/{db}/_revs_diff", json=revs)

    def get_revisions_limit(self, db: str) -> int:
        return int(self._request("GET", f"/{db}/_revs_limit"))

    def set_revisions_limit(self, db: str, limit: int) -> dict[str, Any]:
        return self._request("PUT", f"/{db}/_revs_limit", content=str(int(limit)))

    # Documents

    def document_exists(self, db: str, docid: str) -> bool:
        return self._exists(f"/{db}/{docid}")

    def get_document(self, db: str, docid: str, params: Params = None) -> dict[str, Any]:
        return self._request("GET", f"/{db}/{docid}", params=params)

    def create_document(
        self,
        db: str,
        doc: Mapping[str, Any],
        params: Params = None,
    ) -> dict[str, Any]:
        """Create a document with a server-generated id (``POST /{db}``)."""

        return self._request("POST", f"/{db}", params=params, json=doc)

    def update_document(
        self,
        db: str,
        docid: str,
        doc: Mapping[str, Any],
        params: Params = None,
    ) -> dict[str, Any]:
        """Create a named document or a new revision of an existing one."""

        return self._request("PUT", f"/{db}/{docid}", params=params, json=doc)

    def delete_document(
        self,
        db: str,
        docid: str,
        rev: str,
        params: Params = None,
    ) -> dict[str, Any]:
        query = {**(params or {}), "rev": rev}
        return self._request("DELETE", f"/{db}/{docid}", params=query)

    def copy_document(
        self,
        db: str,
        docid: str,
        destination: str,
        params: Params = None,
    ) -> dict[str, Any]:
        """Copy a document within the database (``COPY`` with ``Destination``)."""

        return self._request(
            "COPY",
            f"/{db}/{docid}",
            params=params,
            headers={"Destination": destination},
        )

    # Attachments

    def attachment_exists(
        self,
        db: str,
        docid: str,
        attname: str,
        rev: str | None = None,
    ) -> bool:
        return self._exists(f"/{db}/{docid}/{attname}", params={"rev": rev} if rev else None)

    def get_attachment(
        self,
        db: str,
        docid: str,
        attname: str,
        rev: str | None = None,
    ) -> bytes:
        """Download an attachment as raw bytes."""

        response = _send(
            self._client,
            "GET",
            f"/{db}/{docid}/{attname}",
            params={"rev": rev} if rev else None,
        )
        return response.content

    def put_attachment(
        self,
        db: str,
        docid: str,
        attname: str,
        rev: str,
        content: Any,
        content_type: str | None = None,
    ) -> dict[str, Any]:
        """Upload an attachment.

        ``bytes``/``str`` content is sent as-is with ``content_type``
        (``application/octet-stream`` by default); anything else is sent as JSON.
        """

        path = f"/{db}/{docid}/{attname}"
        query = {"rev": rev}
        if isinstance(content, (bytes, str)):
            return self._request(
                "PUT",
                path,
                params=query,
                content=content,
                headers={"Content-Type": content_type or "application/octet-stream"},
            )
        return self._request("PUT", path, params=query, json=content)

    def delete_attachment(
        self,
        db: str,
        docid: str,
        attname: str,
        rev: str,
        params: Params = None,
    ) -> dict[str, Any]:
        query = {**(params or {}), "rev": rev}
        return self._request("DELETE", f"/{db}/{docid}/{attname}", params=query)
