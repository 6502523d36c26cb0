"""
Alchemy NFT API ownership source (getOwnersForContract).

One paged HTTP listing replaces a per-token ownerOf call for every token.
Block height, token IDs and the collection name still come from the JSON-RPC
collection; tokens the listing does not cover are resolved with ownerOf at the
snapshot block. If the listing itself fails the whole enumeration falls back to
ownerOf, which keeps the all-or-nothing failure rule.

The listing reports ownership as indexed by Alchemy at request time, not at the
pinned block; tokens that move between the block and the listing are reported
with their newer owner.
"""

from __future__ import annotations

from typing import Any, Iterable
from urllib.parse import urlsplit

import httpx

from backend_seeds.chain.collection import NftCollection
from backend_seeds.config.env import mask_rpc_url
from backend_seeds.core.exceptions import RpcError
from backend_seeds.seeds_logging import get_logger

logger = get_logger(__name__)

ALCHEMY_HOSTS = ("alchemy.com", "alchemyapi.io")
MAX_PAGES = 1000


def is_alchemy_url(url: str | None) -> bool:
    host = (urlsplit((url or "").strip()).hostname or "").lower()
    return any(host == h or host.endswith("." + h) for h in ALCHEMY_HOSTS)


def nft_api_base_url(rpc_url: str) -> str:
    """https://<network>.g.alchemy.com/v2/KEY -> https://<network>.g.alchemy.com/nft/v3/KEY"""
    parts = urlsplit(rpc_url.strip())
    key = parts.path.rstrip("/").rsplit("/", 1)[-1]
    if not key or key == "v2":
        raise ValueError("Alchemy RPC URL carries no API key")
    return f"{parts.scheme or 'https'}://{parts.netloc}/nft/v3/{key}"


def parse_token_id(raw: Any) -> int:
    """
    Token IDs arrive as decimal strings ("628") or 0x-prefixed hex ("0x274").

    A bare decimal string is never read as hex: "628" is 628, not 0x628.
    """
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    text = str(raw).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text, 10)


class AlchemyOwnershipSource:
    """OwnershipSource backed by the Alchemy NFT API, with NftCollection as fallback."""

    def __init__(
        self,
        collection: NftCollection,
        rpc_url: str,
        *,
        timeout_sec: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._collection = collection
        self.address = collection.address
        self._base_url = nft_api_base_url(rpc_url)
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_sec))

    def close(self) -> None:
        self._client.close()

    def resolve_block(self, block: int | str | None) -> int:
        return self._collection.resolve_block(block)

    def total_supply(self, block: int) -> int:
        return self._collection.total_supply(block)

    def token_ids(self, block: int) -> list[int]:
        return self._collection.token_ids(block)

    def name(self) -> str:
        return self._collection.name()

    def _fetch_page(self, page_key: str | None) -> dict[str, Any]:
        params = {"contractAddress": self.address, "withTokenBalances": "true"}
        if page_key:
            params["pageKey"] = page_key
        try:
            resp = self._client.get(f"{self._base_url}/getOwnersForContract", params=params)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RpcError(f"Alchemy NFT API request failed: {e}", method="getOwnersForContract") from e
        if not isinstance(data, dict):
            raise RpcError("Alchemy NFT API returned a non-object body", method="getOwnersForContract")
        return data

    def list_owners(self) -> dict[int, str]:
        """
        Every (token_id -> owner) pair the API reports for the collection.

        Raises:
            RpcError: a page failed, an entry was malformed, or a token was
                reported under two owners.
        """
        owners: dict[int, str] = {}
        page_key: str | None = None
        for page in range(MAX_PAGES):
            data = self._fetch_page(page_key)
            for entry in data.get("owners") or []:
                try:
                    owner = str(entry["ownerAddress"]).lower()
                    token_ids = [parse_token_id(t["tokenId"]) for t in entry.get("tokenBalances") or []]
                except (KeyError, TypeError, ValueError) as e:
                    raise RpcError(f"malformed owner entry: {e}", method="getOwnersForContract") from e
                for token_id in token_ids:
                    if owners.setdefault(token_id, owner) != owner:
                        raise RpcError(
                            f"token {token_id} reported for two owners",
                            method="getOwnersForContract",
                        )
            page_key = data.get("pageKey") or None
            logger.debug("alchemy_owners_page", page=page + 1, tokens=len(owners))
            if page_key is None:
                return owners
        raise RpcError(f"owner listing exceeded {MAX_PAGES} pages", method="getOwnersForContract")

    def owners(self, token_ids: Iterable[int], block: int) -> dict[int, str]:
        """
        Resolve owners for all token_ids.

        Raises:
            OwnershipLookupFailed: ownerOf failed for a token the listing did not cover
                (or for any token, after the listing failed).
        """
        ids = list(token_ids)
        try:
            listed = self.list_owners()
        except RpcError as e:
            logger.warning(
                "alchemy_owners_fallback",
                contract=self.address,
                api=mask_rpc_url(self._base_url),
                error=str(e),
            )
            return self._collection.owners(ids, block)

        owners = {t: listed[t] for t in ids if t in listed}
        missing = [t for t in ids if t not in listed]
        if missing:
            owners.update(self._collection.owners(missing, block))
        logger.info(
            "alchemy_owners_resolved",
            contract=self.address,
            block_number=block,
            listed=len(owners) - len(missing),
            via_owner_of=len(missing),
        )
        return owners
