"""
Sample data script for the markup engine.

Writes a deterministic rules document (markups + quantity tiers) and a
pseudo-random product catalogue CSV, and optionally loads the rules into
Postgres so the `postgres` rule source has something to read.
"""

from __future__ import annotations

import csv
import json
import random
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List

import psycopg
import typer

from markup_engine.config import build_dsn

app = typer.Typer(help="Generate sample pricing rules and a product catalogue.")

CATEGORIES = ["Flower", "Edibles", "Cartridges", "Concentrates", "Accessories"]

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS markups (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    target_id TEXT,
    markup_type TEXT NOT NULL,
    markup_value DOUBLE PRECISION NOT NULL,
    is_active BOOLEAN DEFAULT TRUE,
    priority INTEGER DEFAULT 0,
    start_date TEXT,
    end_date TEXT,
    compound_strategy TEXT NOT NULL DEFAULT 'replace',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS markup_tiers (
    id INTEGER PRIMARY KEY,
    markup_id INTEGER NOT NULL REFERENCES markups(id),
    min_quantity INTEGER NOT NULL,
    max_quantity INTEGER,
    markup_value DOUBLE PRECISION NOT NULL,
    created_at TEXT NOT NULL
);
"""


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def _sample_document(reference: datetime) -> Dict[str, List[Dict[str, Any]]]:
    """A fixed rule set covering every scope, value kind and combine mode."""
    created = datetime(2024, 1, 15, 10, 0, tzinfo=UTC)
    markups = [
        {"id": 1, "name": "Site-wide Margin", "type": "site_wide", "targetId": None,
         "markupType": "percentage", "markupValue": 15, "priority": 0,
         "compoundStrategy": "replace"},
        {"id": 2, "name": "Flower Premium", "type": "category", "targetId": "Flower",
         "markupType": "percentage", "markupValue": 10, "priority": 5,
         "compoundStrategy": "add"},
        {"id": 3, "name": "Edibles Handling", "type": "category", "targetId": "Edibles",
         "markupType": "fixed_amount", "markupValue": 2.5, "priority": 5,
         "compoundStrategy": "add"},
        {"id": 4, "name": "Clearance 1001", "type": "product", "targetId": "1001",
         "markupType": "percentage", "markupValue": -20, "priority": 10,
         "compoundStrategy": "multiply"},
        {"id": 5, "name": "Expired Promo", "type": "category", "targetId": "Flower",
         "markupType": "percentage", "markupValue": -30, "priority": 20,
         "compoundStrategy": "add",
         "endDate": _iso(reference - timedelta(days=30))},
        {"id": 6, "name": "Tier-Based Markup for Cartridges", "type": "category",
         "targetId": "Cartridges", "markupType": "percentage", "markupValue": 20,
         "priority": 3, "compoundStrategy": "add"},
        {"id": 7, "name": "Product Specific Markup", "type": "product", "targetId": "1002",
         "markupType": "fixed_amount", "markupValue": 5.99, "priority": 8,
         "compoundStrategy": "add"},
        {"id": 8, "name": "Future Promo for Flower", "type": "category", "targetId": "Flower",
         "markupType": "percentage", "markupValue": 25, "priority": 2,
         "compoundStrategy": "add",
         "startDate": _iso(reference + timedelta(days=30))},
    ]
    for offset, markup in enumerate(markups):
        markup.setdefault("isActive", True)
        markup["createdAt"] = _iso(created + timedelta(days=offset))

    tier_rows = [
        (6, 1, 10, 20), (6, 11, 49, 14), (6, 50, None, 10),
        (8, 1, 5, 25), (8, 6, 20, 20), (8, 21, None, 15),
        (7, 1, 10, 5.99), (7, 11, 50, 4.99), (7, 51, 100, 3.99), (7, 101, None, 2.99),
    ]
    tiers = [
        {"id": index, "markupId": markup_id, "minQuantity": low, "maxQuantity": high,
         "markupValue": value, "createdAt": _iso(created)}
        for index, (markup_id, low, high, value) in enumerate(tier_rows, start=1)
    ]
    return {"markups": markups, "markupTiers": tiers}


def _generate_catalog_csv(csv_path: Path, products: int, seed: int) -> None:
    rng = random.Random(seed)
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["product_id", "category_name", "base_price"])
        for product_id in range(1000, 1000 + products):
            writer.writerow(
                [product_id, rng.choice(CATEGORIES), f"{rng.uniform(5, 250):.2f}"]
            )


def _load_into_db(dsn: str, document: Dict[str, List[Dict[str, Any]]]) -> None:
    now = _iso(datetime.now(UTC))
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
            cur.execute("TRUNCATE TABLE markup_tiers, markups;")
            cur.executemany(
                """
                INSERT INTO markups (id, name, type, target_id, markup_type, markup_value,
                    is_active, priority, start_date, end_date, compound_strategy,
                    created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                [
                    (
                        m["id"], m["name"], m["type"], m["targetId"], m["markupType"],
                        m["markupValue"], m["isActive"], m["priority"], m.get("startDate"),
                        m.get("endDate"), m["compoundStrategy"], m["createdAt"], now,
                    )
                    for m in document["markups"]
                ],
            )
            cur.executemany(
                """
                INSERT INTO markup_tiers (id, markup_id, min_quantity, max_quantity,
                    markup_value, created_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                [
                    (t["id"], t["markupId"], t["minQuantity"], t["maxQuantity"],
                     t["markupValue"], t["createdAt"])
                    for t in document["markupTiers"]
                ],
            )
        conn.commit()


@app.command()
def main(
    rules_output: Path = typer.Option(
        Path("rules.json"), "--rules-output", "-o", help="Where to write the rules document."
    ),
    catalog_output: Path | None = typer.Option(
        None, "--catalog-output", "-c", help="Optional product catalogue CSV path."
    ),
    products: int = typer.Option(1_000, "--products", "-p", help="Catalogue size."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    load: bool = typer.Option(False, "--load", help="Also load the rules into Postgres."),
    dsn: str | None = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
) -> None:
    """
    Write sample rules (and optionally a catalogue), optionally loading into Postgres.
    """
    document = _sample_document(datetime.now(UTC))
    rules_output.parent.mkdir(parents=True, exist_ok=True)
    with rules_output.open("w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)
    typer.echo(
        f"Wrote {len(document['markups'])} markups / {len(document['markupTiers'])} tiers "
        f"-> {rules_output}"
    )

    if catalog_output:
        catalog_output.parent.mkdir(parents=True, exist_ok=True)
        _generate_catalog_csv(catalog_output, products=products, seed=seed)
        typer.echo(f"Wrote {products:,} products -> {catalog_output}")

    if load:
        _load_into_db(dsn or build_dsn(), document)
        typer.echo("Loaded rules into Postgres.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
