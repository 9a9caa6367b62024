"""Admin GraphQL client for Shopify Files: only the calls the asset sync needs"""
from __future__ import annotations

import time, logging, requests
from dataclasses import dataclass
from typing import Any, Optional
from requests import Timeout, RequestException

from asset_sync.core.config import settings
from asset_sync.integrations.shopify.errors import (
    ShopifyError, ShopifyRateLimitError, ShopifyTransportError, ShopifyUserError,
)
from asset_sync.integrations.shopify.graphql_queries import (
    FILES_BY_QUERY,
    STAGED_UPLOADS_CREATE,
    FILE_CREATE,
    FILE_UPDATE,
    METAFIELDS_SET,
    SHOP_PING,
    escape_search_value,
)
from asset_sync.integrations.shopify.file_template import BINDING_SEPARATOR
from asset_sync.integrations.shopify.metafields import (
    NAMESPACE, BoundAsset, build_metafields_input, from_destination_metadata,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManagedFile:
    id: str
    file_type: str = ""
    status: Optional[str] = None
    url: Optional[str] = None
    alt: Optional[str] = None
    binding: Optional[BoundAsset] = None


class ShopifyClient:

    def __init__(
        self,
        shop_domain: Optional[str] = None,
        access_token: Optional[str] = None,
        *,
        api_version: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.shop_domain = shop_domain or settings.SHOPIFY_SHOP
        if not self.shop_domain:
            raise ValueError("Shopify shop domain is not configured")
        token = access_token
        if token is None and settings.SHOPIFY_ADMIN_TOKEN is not None:
            token = settings.SHOPIFY_ADMIN_TOKEN.get_secret_value()
        if not token:
            raise ValueError(f"Shopify access token missing for {self.shop_domain}")
        self._token = token
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self._session = session or requests.Session()


    # ---------------- endpoint & auth ----------------
    def _graphql_endpoint(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}/graphql.json"

    def _auth_headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self._token,
            "User-Agent": "DAMAssetSync/ShopifyClient (+python)",
        }


    '''
    Shared GraphQL POST (logging + retries):
        1) HTTP 5xx / network errors: exponential backoff retry, ShopifyTransportError when exhausted
        2) HTTP 429: honour Retry-After, ShopifyRateLimitError when exhausted
        3) other 4xx: no retry, ShopifyError
        4) top-level GraphQL errors: THROTTLED is retried, anything else is ShopifyUserError
    Returns the full response JSON; callers pick data[...] themselves.
    '''
    def _post_graphql(
        self,
        query: str,
        variables: Optional[dict] = None,
        *,
        timeout: Optional[int] = None,
        op_name: str = "",
    ) -> dict:

        timeout = timeout or settings.SHOPIFY_HTTP_TIMEOUT
        max_retries = max(0, int(settings.SHOPIFY_HTTP_RETRIES))
        backoff_s = max(50, int(settings.SHOPIFY_HTTP_BACKOFF_MS)) / 1000.0

        payload = {"query": query, "variables": variables or {}}
        safe_vars_keys = list(payload["variables"].keys())

        for attempt in range(max_retries + 1):
            start = time.perf_counter()
            try:
                resp = self._session.post(
                    self._graphql_endpoint(),
                    headers=self._auth_headers(),
                    json=payload,
                    timeout=timeout,
                )
            except Timeout as e:
                logger.warning("shopify.graphql.timeout op=%s attempt=%s/%s", op_name, attempt, max_retries)
                if attempt == max_retries:
                    raise ShopifyTransportError(f"{op_name}: timeout after {attempt + 1} attempts") from e
                time.sleep(backoff_s * (2 ** attempt))
                continue
            except RequestException as e:
                logger.warning("shopify.graphql.request_exception op=%s attempt=%s/%s err=%s",
                               op_name, attempt, max_retries, type(e).__name__)
                if attempt == max_retries:
                    raise ShopifyTransportError(f"{op_name}: network error {type(e).__name__}: {e}") from e
                time.sleep(backoff_s * (2 ** attempt))
                continue

            latency_ms = int((time.perf_counter() - start) * 1000)
            status = resp.status_code

            if status == 429:
                if attempt == max_retries:
                    raise ShopifyRateLimitError(f"{op_name}: 429 throttled after {attempt + 1} attempts")
                retry_after = resp.headers.get("Retry-After")
                try:
                    sleep_s = max(0.1, float(retry_after))
                except (TypeError, ValueError):
                    sleep_s = backoff_s * (2 ** attempt)
                logger.warning(
                    "shopify.graphql.429_throttled op=%s latency_ms=%s attempt=%s/%s retry_after=%s",
                    op_name, latency_ms, attempt, max_retries, retry_after)
                time.sleep(sleep_s)
                continue

            if status >= 500:
                logger.warning("shopify.graphql.http_error op=%s status=%s attempt=%s/%s",
                               op_name, status, attempt, max_retries)
                if attempt == max_retries:
                    raise ShopifyTransportError(f"{op_name}: HTTP {status} after {attempt + 1} attempts")
                time.sleep(backoff_s * (2 ** attempt))
                continue

            if status >= 400:
                raise ShopifyError(f"{op_name}: HTTP {status}: {(resp.text or '')[:300]}")

            try:
                data = resp.json()
            except ValueError as e:
                if attempt < max_retries:
                    logger.warning("shopify.graphql.non_json op=%s attempt=%s/%s", op_name, attempt, max_retries)
                    time.sleep(backoff_s * (2 ** attempt))
                    continue
                raise ShopifyTransportError(f"{op_name}: response is not JSON (status={status})") from e

            errors = data.get("errors")
            if errors:
                if _is_throttled(errors) and attempt < max_retries:
                    logger.warning("shopify.graphql.throttled op=%s attempt=%s/%s", op_name, attempt, max_retries)
                    time.sleep(backoff_s * (2 ** attempt))
                    continue
                logger.error("shopify.graphql.gql_errors op=%s latency_ms=%s errors=%s", op_name, latency_ms, errors)
                if _is_throttled(errors):
                    raise ShopifyRateLimitError(f"{op_name}: THROTTLED after {attempt + 1} attempts")
                raise ShopifyUserError(op_name, errors)

            logger.debug("shopify.graphql.ok op=%s latency_ms=%s attempt=%s vars=%s",
                         op_name, latency_ms, attempt, safe_vars_keys)
            return data

        raise ShopifyTransportError(f"{op_name}: retries exhausted")


    def ping(self) -> dict:
        return self._post_graphql(SHOP_PING, op_name="shop.ping")


    # ---------- lookup ----------
    def find_file_by_asset_id(self, asset_id: str) -> Optional[ManagedFile]:
        """
        The file whose $app:dam.asset_id metafield equals asset_id, or None.
        A file carrying the "<assetId>__" name but no binding (metafieldsSet failed
        after fileCreate) is returned with binding=None so the caller rebinds it.
        """
        key = asset_id + BINDING_SEPARATOR
        query = f"filename:{escape_search_value(key)}*"
        data = self._post_graphql(
            FILES_BY_QUERY,
            {"first": 10, "query": query, "namespace": NAMESPACE},
            op_name="files.byAssetId",
        )
        edges = (((data.get("data") or {}).get("files") or {}).get("edges")) or []
        matches = []
        unbound = []
        for edge in edges:
            f = _to_managed_file((edge or {}).get("node") or {})
            if f is None:
                continue
            if f.binding is not None:
                if f.binding.asset_id == asset_id:
                    matches.append(f)
            elif _named_for(f, key):
                unbound.append(f)

        if matches:
            if len(matches) > 1:
                logger.warning("shopify.files.duplicate_binding asset_id=%s ids=%s", asset_id, [m.id for m in matches])
            return matches[0]
        if unbound:
            logger.warning("shopify.files.unbound_match asset_id=%s ids=%s", asset_id, [u.id for u in unbound])
            return unbound[0]
        return None


    # ---------- writes ----------
    def create_file(
        self,
        *,
        content: bytes,
        content_type: str,
        filename: str,
        bound: BoundAsset,
        alt: Optional[str] = None,
    ) -> ManagedFile:
        """staged upload -> fileCreate -> metafieldsSet"""
        resource_url = self._staged_upload(content, content_type, filename)

        data = self._post_graphql(
            FILE_CREATE,
            {"files": [{
                "originalSource": resource_url,
                "contentType": _file_content_type(content_type),
                "filename": filename,
                "alt": alt or "",
            }]},
            op_name="fileCreate",
        )
        payload = (data.get("data") or {}).get("fileCreate") or {}
        _raise_user_errors("fileCreate", payload)
        files = payload.get("files") or []
        if not files or not files[0].get("id"):
            raise ShopifyError("fileCreate returned no file")

        file_id = files[0]["id"]
        self.set_asset_metafields(file_id, bound)
        return ManagedFile(
            id=file_id,
            file_type=files[0].get("__typename") or "",
            status=files[0].get("fileStatus"),
            alt=files[0].get("alt"),
            binding=bound,
        )


    def update_file(
        self,
        file_id: str,
        *,
        bound: BoundAsset,
        content: Optional[bytes] = None,
        content_type: Optional[str] = None,
        filename: Optional[str] = None,
        alt: Optional[str] = None,
    ) -> ManagedFile:
        """Replace content (when given) via fileUpdate, then rewrite the binding metafields."""
        file_input: dict[str, Any] = {"id": file_id}
        if content is not None:
            file_input["originalSource"] = self._staged_upload(
                content, content_type or "application/octet-stream", filename or file_id.rsplit("/", 1)[-1]
            )
        if alt is not None:
            file_input["alt"] = alt

        status = None
        file_type = ""
        if len(file_input) > 1:
            data = self._post_graphql(FILE_UPDATE, {"files": [file_input]}, op_name="fileUpdate")
            payload = (data.get("data") or {}).get("fileUpdate") or {}
            _raise_user_errors("fileUpdate", payload)
            files = payload.get("files") or []
            if files:
                status = files[0].get("fileStatus")
                file_type = files[0].get("__typename") or ""

        self.set_asset_metafields(file_id, bound)
        return ManagedFile(id=file_id, file_type=file_type, status=status, alt=alt, binding=bound)


    def set_asset_metafields(self, file_id: str, bound: BoundAsset) -> None:
        data = self._post_graphql(
            METAFIELDS_SET,
            {"metafields": build_metafields_input(file_id, bound)},
            op_name="metafieldsSet",
        )
        _raise_user_errors("metafieldsSet", (data.get("data") or {}).get("metafieldsSet") or {})


    # ---------- staged upload ----------
    def _staged_upload(self, content: bytes, content_type: str, filename: str) -> str:
        """stagedUploadsCreate + multipart POST to the target; returns resourceUrl for fileCreate/fileUpdate."""
        data = self._post_graphql(
            STAGED_UPLOADS_CREATE,
            {"input": [{
                "resource": "IMAGE" if content_type.startswith("image/") else "FILE",
                "filename": filename,
                "mimeType": content_type,
                "httpMethod": "POST",
                "fileSize": str(len(content)),
            }]},
            op_name="stagedUploadsCreate",
        )
        payload = (data.get("data") or {}).get("stagedUploadsCreate") or {}
        _raise_user_errors("stagedUploadsCreate", payload)
        targets = payload.get("stagedTargets") or []
        if not targets:
            raise ShopifyError("stagedUploadsCreate returned no target")
        target = targets[0]

        form = {p["name"]: p["value"] for p in (target.get("parameters") or [])}
        try:
            resp = self._session.post(
                target["url"],
                data=form,
                files={"file": (filename, content, content_type)},
                timeout=settings.SHOPIFY_UPLOAD_TIMEOUT,
            )
        except RequestException as e:
            raise ShopifyTransportError(f"staged upload failed: {type(e).__name__}: {e}") from e
        if resp.status_code >= 500:
            raise ShopifyTransportError(f"staged upload HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise ShopifyError(f"staged upload rejected HTTP {resp.status_code}: {(resp.text or '')[:300]}")
        return target["resourceUrl"]


# ---------- helpers ----------
def _raise_user_errors(op_name: str, payload: dict) -> None:
    user_errors = payload.get("userErrors") or []
    if user_errors:
        if any(str(e.get("code") or "").upper() == "THROTTLED" for e in user_errors):
            raise ShopifyRateLimitError(f"{op_name}: THROTTLED {user_errors}")
        raise ShopifyUserError(op_name, user_errors)


def _is_throttled(errors: Any) -> bool:
    if not isinstance(errors, list):
        return False
    for err in errors:
        code = ((err or {}).get("extensions") or {}).get("code")
        if str(code or "").upper() == "THROTTLED":
            return True
    return False


def _file_content_type(mime: str) -> str:
    if mime.startswith("image/"):
        return "IMAGE"
    if mime.startswith("video/"):
        return "VIDEO"
    return "FILE"


def _named_for(f: ManagedFile, key: str) -> bool:
    # the search already matched the name; the CDN url keeps it when present
    if not f.url:
        return True
    basename = f.url.split("?", 1)[0].rsplit("/", 1)[-1]
    return basename.startswith(key)


def _to_managed_file(node: dict) -> Optional[ManagedFile]:
    file_id = node.get("id")
    if not file_id:
        return None
    url = ((node.get("image") or {}).get("url")) or node.get("url")
    return ManagedFile(
        id=file_id,
        file_type=node.get("__typename") or "",
        status=node.get("fileStatus"),
        url=url,
        alt=node.get("alt"),
        binding=from_destination_metadata(node.get("metafields")),
    )
