"""Import of offer links from a shared spreadsheet."""

import re
from typing import List, Optional

import httpx
from loguru import logger

from ..errors import SheetFetchError

SHEET_ID_PATTERN = re.compile(r"/d/([a-zA-Z0-9-_]+)")


def convert_to_export_url(url: str) -> str:
    """Turn a Google Sheets link into its CSV export URL; other URLs pass through"""
    match = SHEET_ID_PATTERN.search(url)
    if match:
        return f"https://docs.google.com/spreadsheets/d/{match.group(1)}/export?format=csv"
    return url


def parse_links(csv_text: str) -> List[str]:
    """Links from the first column of a CSV export.

    Header rows and anything not starting with ``http`` are skipped.
    """
    links = []
    for line in csv_text.splitlines():
        first = line.split(",", 1)[0].strip().strip('"').strip()
        if first.startswith("http"):
            links.append(first)
    return links


async def fetch_product_links(
    sheet_url: str, client: Optional[httpx.AsyncClient] = None
) -> List[str]:
    """Download a spreadsheet and return the product links it lists.

    Args:
        sheet_url: Sheet share link or direct CSV URL
        client: Optional HTTP client

    Raises:
        SheetFetchError: Sheet unreachable or answered with an error status
    """
    export_url = convert_to_export_url(sheet_url)

    try:
        if client is not None:
            response = await client.get(export_url, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=30.0) as own_client:
                response = await own_client.get(export_url, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(f"Error fetching sheet: HTTP {e.response.status_code}")
        raise SheetFetchError(
            f"Falha ao baixar a planilha: HTTP {e.response.status_code}"
        ) from e
    except httpx.HTTPError as e:
        logger.error(f"Error fetching sheet: {e}")
        raise SheetFetchError("Falha ao baixar a planilha.") from e

    links = parse_links(response.text)
    logger.info(f"Found {len(links)} links in sheet")
    return links
