"""Storage for crawl results.

A domain's pages are always replaced as a whole: every crawl run deletes the
previous set and inserts the new one inside a single transaction.
"""

from __future__ import annotations

import json
import sqlite3
from time import time

from smma.db.models import CrawledPage, Heading


def _row_to_page(row: sqlite3.Row) -> CrawledPage:
    return CrawledPage(
        id=row["id"],
        url=row["url"],
        title=row["title"],
        headings=[Heading(**h) for h in json.loads(row["headings"] or "[]")],
        body_text=row["body_text"],
        internal_links=json.loads(row["internal_links"] or "[]"),
        page_type=row["page_type"],
    )


def store_crawled_pages(
    conn: sqlite3.Connection,
    domain_id: str,
    pages: list[CrawledPage],
) -> None:
    """Replace every stored page of *domain_id* with *pages* (in crawl order)."""
    now = int(time())
    with conn:
        conn.execute("DELETE FROM crawled_pages WHERE domain_id = ?", (domain_id,))
        conn.executemany(
            """
            INSERT INTO crawled_pages (id, domain_id, position, url, title, headings,
                                       body_text, internal_links, page_type, crawled_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    page.id,
                    domain_id,
                    position,
                    page.url,
                    page.title,
                    json.dumps([{"tag": h.tag, "text": h.text} for h in page.headings]),
                    page.body_text,
                    json.dumps(page.internal_links),
                    page.page_type,
                    now,
                )
                for position, page in enumerate(pages)
            ],
        )


def get_crawled_pages(conn: sqlite3.Connection, domain_id: str) -> list[CrawledPage]:
    """Return the stored pages of *domain_id* in the order they were crawled."""
    rows = conn.execute(
        "SELECT * FROM crawled_pages WHERE domain_id = ? ORDER BY position",
        (domain_id,),
    ).fetchall()
    return [_row_to_page(r) for r in rows]


def count_crawled_pages(conn: sqlite3.Connection, domain_id: str) -> int:
    row = conn.execute(
        "SELECT COUNT(*) FROM crawled_pages WHERE domain_id = ?", (domain_id,)
    ).fetchone()
    return row[0] if row else 0
