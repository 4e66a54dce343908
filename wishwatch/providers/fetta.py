"""fetta.app wishlist provider implementation."""
import asyncio
import json
import logging
import random
import re
import httpx
from bs4 import BeautifulSoup
from typing import List, Optional, Tuple
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)
from wishwatch.providers import CatalogProvider, ProviderError, RateLimitError
from wishwatch.providers.models import CatalogItem, FetchResult, StreamerProfile
from wishwatch.core.config import settings


logger = logging.getLogger(__name__)

UUID_RE = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"

# Keys under which the page embeds the wishlist owner id, most specific first
OWNER_KEYS = ["wishlistOwnerId", "userId", "targetUserId", "ownerId", "uid"]

# Upper bound on UUIDs probed against the products endpoint per profile
MAX_OWNER_CANDIDATES = 10

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "ru-RU,ru;q=0.9,en;q=0.8",
}


def extract_owner_candidates(html: str) -> List[str]:
    """
    Collect possible wishlist owner UUIDs from a profile page.

    Ids under known owner keys come first (escaped RSC payload, then plain
    JSON), followed by every other UUID on the page in order of appearance.
    """
    candidates: List[str] = []

    def add(uid: str):
        if uid not in candidates:
            candidates.append(uid)

    for key in OWNER_KEYS:
        escaped = re.search(rf'\\"{key}\\":\\"({UUID_RE})\\"', html, re.IGNORECASE)
        if escaped:
            add(escaped.group(1))
    for key in OWNER_KEYS:
        plain = re.search(rf'"{key}"\s*:\s*"({UUID_RE})"', html, re.IGNORECASE)
        if plain:
            add(plain.group(1))
    for match in re.finditer(UUID_RE, html, re.IGNORECASE):
        add(match.group(0))

    return candidates


def extract_owner_id(html: str) -> Optional[str]:
    """Most likely wishlist owner UUID on a profile page, unverified."""
    candidates = extract_owner_candidates(html)
    return candidates[0] if candidates else None


def parse_profile(html: str, base_url: str) -> StreamerProfile:
    """Extract display name, avatar and bio from a profile page."""
    soup = BeautifulSoup(html, "html.parser")
    profile = StreamerProfile()

    avatar = soup.find("img", alt="Profile picture")
    if avatar and avatar.get("src"):
        src = avatar["src"]
        profile.avatar = src if src.startswith("http") else f"{base_url}{src}"

    heading = soup.find("h2")
    if heading:
        profile.name = heading.get_text(strip=True) or None

    for span in soup.find_all("span"):
        text = span.get_text(strip=True)
        classes = " ".join(span.get("class") or [])
        if (
            len(text) > 5
            and "text-tertiary" in classes
            and "text-tertiary/50" not in classes
            and not text.startswith("@")
            and span.find_parent("footer") is None
        ):
            profile.description = text
            break

    return profile


def parse_product(product: dict) -> Optional[CatalogItem]:
    """Convert a raw API product into a CatalogItem."""
    product_id = product.get("id")
    if not product_id:
        logger.debug(f"Skipping product without id: {product.get('name')}")
        return None

    external_id = product.get("externalId")
    price = product.get("price") or 0

    return CatalogItem(
        product_id=str(product_id),
        external_id=str(external_id) if external_id else None,
        name=product.get("name") or "Untitled",
        price=f"{price} ₽" if price else "",
        image=product.get("imageUrl") or "",
        product_url=product.get("url") or product.get("productUrl") or ""
    )


class FettaProvider(CatalogProvider):
    """fetta.app implementation of the catalog provider."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        max_pages: Optional[int] = None,
        page_delay: Optional[tuple] = None
    ):
        self.base_url = (base_url or settings.fetta_base_url).rstrip("/")
        self.api_url = f"{self.base_url}/api"
        self.max_pages = max_pages or settings.catalog_max_pages
        self.page_delay = page_delay or (
            settings.catalog_page_delay_min,
            settings.catalog_page_delay_max
        )
        self.client = httpx.AsyncClient(timeout=settings.http_timeout, headers=DEFAULT_HEADERS)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        before_sleep=before_sleep_log(logger, logging.WARNING)
    )
    async def _make_request(self, url: str, params: Optional[dict] = None) -> httpx.Response:
        """Make HTTP request with retry logic for transient failures.

        Does NOT retry HTTP errors (4xx, 5xx); a 429 is surfaced to the
        scheduler, which owns the rate-limit backoff.
        """
        response = await self.client.get(url, params=params)
        response.raise_for_status()
        return response

    async def get_wishlist(self, nickname: str) -> FetchResult:
        """Fetch all wishlist pages and the profile of a streamer."""
        try:
            page = await self._make_request(f"{self.base_url}/u/{nickname}")
            candidates = extract_owner_candidates(page.text)

            if not candidates:
                logger.warning(f"Could not find wishlist owner id for {nickname}")
                return FetchResult(success=False, error="owner id not found")

            uid, first_page = await self._resolve_owner(candidates[:MAX_OWNER_CANDIDATES])
            if uid is None:
                logger.warning(
                    f"None of {len(candidates)} owner id candidate(s) for {nickname} "
                    f"accepted by the products endpoint"
                )
                return FetchResult(success=False, error="owner id not verified")

            products = await self._fetch_products(uid, first_page)
            items = [item for item in (parse_product(p) for p in products) if item]

            return FetchResult(
                success=True,
                items=items,
                profile=parse_profile(page.text, self.base_url)
            )

        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                raise RateLimitError(f"fetta.app rate limit exceeded (429) for {nickname}")
            if e.response.status_code == 404:
                return FetchResult(success=False, error="streamer not found")
            raise ProviderError(f"fetta.app API error: {str(e)}")
        except httpx.TimeoutException as e:
            raise ProviderError(f"fetta.app timeout after retries: {str(e)}")
        except httpx.HTTPError as e:
            raise ProviderError(f"fetta.app connection error: {str(e)}")
        except json.JSONDecodeError as e:
            raise ProviderError(f"fetta.app returned invalid JSON: {str(e)}")

    async def _fetch_page(self, uid: str, page: int) -> Optional[List[dict]]:
        """
        Fetch one products page.

        Returns:
            Products on the page, or None if the reply carries no products
            list (unknown uid or an error payload)
        """
        response = await self._make_request(
            f"{self.api_url}/product/products/public/get",
            params={"uid": uid, "p": page}
        )
        data = response.json()
        if not isinstance(data, dict) or "products" not in data:
            return None
        return data["products"] or []

    async def _resolve_owner(self, candidates: List[str]) -> Tuple[Optional[str], List[dict]]:
        """
        Pick the first candidate uid the products endpoint accepts.

        Returns:
            (uid, first page of products), or (None, []) if none is accepted
        """
        for uid in candidates:
            try:
                first_page = await self._fetch_page(uid, 0)
            except httpx.HTTPStatusError as e:
                # Unknown uids may be rejected outright; rate limits and
                # server errors still abort the fetch
                if e.response.status_code == 429 or e.response.status_code >= 500:
                    raise
                first_page = None

            if first_page is not None:
                return uid, first_page
            logger.debug(f"Owner id candidate {uid} rejected by products endpoint")

        return None, []

    async def _fetch_products(self, uid: str, first_page: List[dict]) -> List[dict]:
        """Walk the paged products endpoint until a page adds nothing new."""
        products: List[dict] = []
        seen_ids = set()
        batch = first_page

        for page in range(self.max_pages):
            if page > 0:
                await asyncio.sleep(random.uniform(*self.page_delay))
                batch = await self._fetch_page(uid, page)
                if batch is None:
                    # A truncated listing would read as removed items
                    raise ProviderError(f"fetta.app returned no products list for page {page}")

            new_products = [p for p in batch if p.get("id") not in seen_ids]
            logger.debug(f"Page p={page}: {len(batch)} products ({len(new_products)} new)")

            if not new_products:
                break

            for product in new_products:
                seen_ids.add(product.get("id"))
                products.append(product)

        logger.info(f"Loaded {len(products)} unique products for uid {uid}")
        return products

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
