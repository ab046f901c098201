"""
Logseq HTTP API client for Inkbridge.

This module talks to the Logseq desktop app through its HTTP API server
(Settings > Advanced > Developer mode > Enable HTTP APIs server). Every call
is a POST of {"method": ..., "args": [...]} to <host>/api.
"""

import httpx
import logging
from typing import Any, Dict, List, Optional

from ..canonical import property_lines, strip_property_lines
from ..config import config
from ..errors import NoteDatabaseError
from ..models import BlockProperties, TranscriptBlock


SECTION_HEADING = "## Transcribed Content"
SECTION_CONTENT = f"{SECTION_HEADING} #Display_No_Properties"


def parse_property_lines(content: str) -> Dict[str, str]:
    """Read 'key:: value' lines of a block's content into a dictionary."""
    properties = {}
    for line in property_lines(content):
        key, _, value = line.partition("::")
        properties[key.strip()] = value.strip()
    return properties


def to_transcript_block(block: Dict[str, Any]) -> TranscriptBlock:
    """
    Convert a block entity returned by the Logseq API into a TranscriptBlock.

    Properties are read from both the API's property map and the block's
    'key:: value' lines, so a block is understood even when the API omits its
    property map.
    """
    raw_content = block.get("content") or ""
    properties = parse_property_lines(raw_content)
    properties.update(block.get("properties") or {})

    return TranscriptBlock(
        uuid=str(block.get("uuid")),
        content=strip_property_lines(raw_content),
        raw_content=raw_content,
        properties=BlockProperties.from_logseq(properties),
    )


class LogseqClient:
    """
    Asynchronous client for the Logseq HTTP API.
    """

    def __init__(self, host: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the Logseq client.

        Args:
            host: The Logseq API server URL (defaults to config value)
            token: Optional authorization token (defaults to config value)
            timeout: Per-request timeout in seconds (defaults to config value)
            transport: Optional httpx transport, used to substitute the server in tests
        """
        self.host = (host or config.logseq_host).rstrip('/')
        self.token = config.logseq_token if token is None else token
        self.client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else config.logseq_timeout,
            transport=transport
        )

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()

    async def aclose(self):
        await self.client.aclose()

    async def request(self, method: str, args: Optional[List[Any]] = None) -> Any:
        """
        Make a request to the Logseq API.

        Args:
            method: API method name (e.g. "logseq.Editor.getPage")
            args: Positional arguments for the method

        Returns:
            The decoded JSON result (None when Logseq returns null)

        Raises:
            NoteDatabaseError: If the request fails or the response is not JSON
        """
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = await self.client.post(
                f"{self.host}/api",
                json={"method": method, "args": args or []},
                headers=headers
            )
            response.raise_for_status()

        except httpx.TimeoutException as e:
            raise NoteDatabaseError(f"Logseq request {method} timed out: {e}") from e
        except httpx.RequestError as e:
            raise NoteDatabaseError(f"Cannot connect to Logseq. Is the HTTP API enabled? ({e})") from e
        except httpx.HTTPStatusError as e:
            raise NoteDatabaseError(
                f"Logseq request {method} failed: HTTP {e.response.status_code}"
            ) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise NoteDatabaseError(f"Logseq returned invalid JSON for {method}") from e

    async def test_connection(self) -> Optional[Dict[str, Any]]:
        """
        Check that Logseq is reachable.

        Returns:
            The current graph description, or None if no graph is open
        """
        graph = await self.request("logseq.App.getCurrentGraph")
        logging.info(f"Logseq graph: {graph.get('name') if graph else None}")
        return graph

    async def get_page(self, page_name: str) -> Optional[Dict[str, Any]]:
        return await self.request("logseq.Editor.getPage", [page_name])

    async def get_or_create_page(self, page_name: str,
                                 properties: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Get a page by name, creating it if it doesn't exist.
        """
        page = await self.get_page(page_name)
        if page:
            return page

        page = await self.request("logseq.Editor.createPage", [
            page_name,
            properties or {},
            {"redirect": False, "createFirstBlock": False}
        ])
        if not page:
            raise NoteDatabaseError(f"Logseq did not create page {page_name}")

        logging.info(f"Created Logseq page: {page_name}")
        return page

    async def get_page_blocks_tree(self, page_name: str) -> List[Dict[str, Any]]:
        return await self.request("logseq.Editor.getPageBlocksTree", [page_name]) or []

    async def get_block(self, uuid: str) -> Optional[Dict[str, Any]]:
        return await self.request("logseq.Editor.getBlock", [uuid, {"includeChildren": False}])

    async def find_transcript_section(self, page_name: str) -> Optional[Dict[str, Any]]:
        """
        Find the top-level block that holds the page's transcript.

        Returns:
            The section block (with its children), or None if the page has none
        """
        for block in await self.get_page_blocks_tree(page_name):
            if SECTION_HEADING in (block.get("content") or ""):
                return block
        return None

    async def get_or_create_transcript_section(self, page_name: str) -> str:
        """
        Get the UUID of the transcript section, creating the section if needed.

        The section must exist before any transcript block is created under it.

        Raises:
            NoteDatabaseError: If the section cannot be created
        """
        section = await self.find_transcript_section(page_name)
        if section:
            return section["uuid"]

        created = await self.request("logseq.Editor.appendBlockInPage", [
            page_name,
            SECTION_CONTENT,
            {}
        ])
        if not created or not created.get("uuid"):
            raise NoteDatabaseError(f"Logseq did not create the transcript section on {page_name}")

        logging.info(f"Created transcript section on {page_name}")
        return created["uuid"]

    async def get_transcript_blocks(self, page_name: str) -> List[TranscriptBlock]:
        """
        Read the transcript blocks of a page.

        Every block directly under the transcript section is returned. Deeper
        blocks are returned only when they carry Y-bounds, i.e. when they are
        transcribed lines nested under their parent line; the user's own child
        blocks are left out.

        Args:
            page_name: Logseq page name

        Returns:
            Transcript blocks in page order, parents before their children;
            empty if the section doesn't exist yet
        """
        section = await self.find_transcript_section(page_name)
        if not section:
            return []

        blocks: List[TranscriptBlock] = []
        await self._collect_blocks(section.get("children") or [], 0, blocks)
        return blocks

    async def _collect_blocks(self, children: List[Any], depth: int,
                              blocks: List[TranscriptBlock]):
        for child in children:
            if not isinstance(child, dict):
                # Collapsed children come back as ["uuid", "<uuid>"] references
                child = await self.get_block(child[1])
                if not child:
                    continue
            block = to_transcript_block(child).model_copy(update={"depth": depth})
            if depth > 0 and block.properties.y_bounds is None:
                continue
            blocks.append(block)
            await self._collect_blocks(child.get("children") or [], depth + 1, blocks)

    async def insert_block(self, target_uuid: str, content: str, *,
                           sibling: bool = False, before: bool = False,
                           properties: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Insert a block relative to an existing one.

        Args:
            target_uuid: Block to insert relative to
            content: Block text
            sibling: Insert next to the target instead of as its last child
            before: With sibling, insert above the target instead of below
            properties: Block properties to set on creation

        Returns:
            The created block entity
        """
        options: Dict[str, Any] = {"sibling": sibling, "before": before}
        if properties:
            options["properties"] = properties

        block = await self.request("logseq.Editor.insertBlock", [target_uuid, content, options])
        if not block or not block.get("uuid"):
            raise NoteDatabaseError(f"Logseq did not create a block under {target_uuid}")
        return block

    async def update_block(self, uuid: str, content: str) -> None:
        await self.request("logseq.Editor.updateBlock", [uuid, content])

    async def upsert_block_property(self, uuid: str, key: str, value: Any) -> None:
        await self.request("logseq.Editor.upsertBlockProperty", [uuid, key, value])
