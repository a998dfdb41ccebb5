import logging

from fastmcp import FastMCP

from realty_cache.server import get_metadata

logger = logging.getLogger(__name__)


def register_metadata_tools(mcp: FastMCP) -> None:
    """Register cached metadata lookup tools on the MCP server."""

    @mcp.tool
    async def list_offering_types() -> str:
        """List the offering types (for sale, for rent, off-plan, ...).

        Returns:
            One offering type per line with its slug.
        """
        offerings = await get_metadata().offering_types()
        if not offerings:
            return "No offering types found."
        return "\n".join(f"{o.name} ({o.slug})" for o in offerings)

    @mcp.tool
    async def list_communities(luxe_only: bool = False) -> str:
        """List communities, optionally only those on the luxury sub-site.

        Args:
            luxe_only: Only return communities flagged as luxury.

        Returns:
            One community per line with its city.
        """
        communities = await get_metadata().communities(luxe_only=luxe_only)
        if not communities:
            return "No communities found."
        lines = []
        for c in communities:
            marker = " [luxe]" if c.is_luxe else ""
            lines.append(f"{c.name}, {c.city}{marker}")
        return "\n".join(lines)

    @mcp.tool
    async def get_page_meta(path: str) -> str:
        """Look up SEO metadata for a site path such as "/communities".

        Args:
            path: The page path.

        Returns:
            Title, meta title, description and keywords for the page.
        """
        meta = await get_metadata().page_meta(path)
        if meta is None:
            return f"No metadata for '{path}'."
        lines = [f"Title: {meta.title}"]
        if meta.meta_title:
            lines.append(f"Meta title: {meta.meta_title}")
        if meta.meta_description:
            lines.append(f"Description: {meta.meta_description}")
        if meta.keywords:
            lines.append(f"Keywords: {', '.join(meta.keywords)}")
        return "\n".join(lines)
