from __future__ import annotations

import csv
import json
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import typer

from markup_engine import reporter
from markup_engine.config import get_settings
from markup_engine.domain.errors import InvalidInputError, PricingError
from markup_engine.domain.validation import check_snapshot
from markup_engine.repository import (
    JsonFileRuleRepository,
    RuleRepository,
    available_repositories,
    build_repository,
)
from markup_engine.service import PricingService
from markup_engine.utils.logging import configure_logging

app = typer.Typer(help="Markup engine CLI: evaluate marketplace pricing rules.")

RulesOption = typer.Option(
    None, "--rules", "-r", help="Rules JSON file (shortcut for --source json)."
)
SourceOption = typer.Option(
    None,
    "--source",
    help="Rule source name (json, postgres). Defaults to RULES_SOURCE.",
)
NowOption = typer.Option(
    None, "--now", help="Evaluation instant as ISO-8601 (default: current UTC time)."
)
JsonOption = typer.Option(False, "--json", help="Emit machine-readable JSON.")


def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _repository(rules: Optional[Path], source: Optional[str]) -> RuleRepository:
    if rules is not None:
        return JsonFileRuleRepository(rules)
    try:
        return build_repository(source)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--source") from exc


def _parse_now(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise typer.BadParameter(f"not an ISO-8601 timestamp: {value}", param_hint="--now") from exc


@contextmanager
def _pricing_errors() -> Generator[None, None, None]:
    try:
        yield
    except PricingError as exc:
        typer.secho(f"[{exc.code}] {exc.message}", fg=typer.colors.RED, err=True)
        for key, value in exc.details.items():
            typer.secho(f"  {key}: {value}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc


def _load_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise InvalidInputError(f"Cannot read {path}: {exc}", details={"path": str(path)}) from exc


def _load_catalog(path: Path) -> List[Dict[str, Any]]:
    if path.suffix.lower() == ".csv":
        with path.open("r", newline="", encoding="utf-8") as f:
            return list(csv.DictReader(f))
    document = _load_json(path)
    if isinstance(document, dict):
        document = document.get("products", [])
    return list(document)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"source={settings.rules_source} rules_path={settings.rules_path} | "
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"log_level={settings.log_level} json_logs={settings.log_json}"
    )
    typer.echo("Available sources: " + ", ".join(available_repositories()))


@app.command()
def quote(
    product_id: str = typer.Argument(..., help="Product identifier."),
    category: str = typer.Argument(..., help="Product category name (exact match)."),
    base_price: str = typer.Argument(..., help="Base price before markups."),
    quantity: Optional[int] = typer.Option(None, "--quantity", "-q", help="Purchase quantity."),
    rules: Optional[Path] = RulesOption,
    source: Optional[str] = SourceOption,
    now: Optional[str] = NowOption,
    as_json: bool = JsonOption,
) -> None:
    """
    Compute the final price of one product and show the applied trace.
    """
    _setup()
    qty = quantity if quantity is not None else get_settings().default_quantity
    with _pricing_errors():
        service = PricingService(_repository(rules, source))
        result = service.quote(product_id, category, base_price, qty, now=_parse_now(now))
    if as_json:
        typer.echo(json.dumps(result.to_payload(), indent=2))
        return
    reporter.print_evaluation(result, title=f"Product {product_id} ({category})")


@app.command()
def breaks(
    product_id: str = typer.Argument(..., help="Product identifier."),
    category: str = typer.Argument(..., help="Product category name (exact match)."),
    base_price: str = typer.Argument(..., help="Base price before markups."),
    rules: Optional[Path] = RulesOption,
    source: Optional[str] = SourceOption,
    now: Optional[str] = NowOption,
    as_json: bool = JsonOption,
) -> None:
    """
    Show the unit price at every quantity break for one product.
    """
    _setup()
    with _pricing_errors():
        service = PricingService(_repository(rules, source))
        table = service.quantity_breaks(product_id, category, base_price, now=_parse_now(now))
    if as_json:
        payload = [
            {
                "quantity": entry.label,
                "minQuantity": entry.min_quantity,
                "maxQuantity": entry.max_quantity,
                "unitPrice": float(entry.unit_price),
            }
            for entry in table
        ]
        typer.echo(json.dumps(payload, indent=2))
        return
    reporter.print_breaks(table)


@app.command()
def cart(
    cart_file: Path = typer.Argument(..., help="JSON file: a list of cart lines or {'lines': [...]}."),
    rules: Optional[Path] = RulesOption,
    source: Optional[str] = SourceOption,
    now: Optional[str] = NowOption,
    as_json: bool = JsonOption,
) -> None:
    """
    Price a cart with each line at its purchase quantity.
    """
    _setup()
    with _pricing_errors():
        document = _load_json(cart_file)
        lines = document.get("lines", []) if isinstance(document, dict) else document
        service = PricingService(_repository(rules, source))
        quote_ = service.price_cart(lines, now=_parse_now(now))
    if as_json:
        payload = {
            "lines": [
                {
                    "productId": line.product_id,
                    "quantity": line.quantity,
                    "unitPrice": float(line.unit_price),
                    "lineTotal": float(line.line_total),
                    "appliedMarkups": line.evaluation.to_payload()["appliedMarkups"],
                }
                for line in quote_.lines
            ],
            "subtotal": float(quote_.subtotal),
        }
        typer.echo(json.dumps(payload, indent=2))
        return
    reporter.print_cart(quote_)


@app.command()
def catalog(
    catalog_file: Path = typer.Argument(..., help="CSV or JSON catalogue of products."),
    quantity: int = typer.Option(1, "--quantity", "-q", help="Quantity to price every product at."),
    limit: int = typer.Option(20, "--limit", "-n", help="Rows to display."),
    rules: Optional[Path] = RulesOption,
    source: Optional[str] = SourceOption,
    now: Optional[str] = NowOption,
    as_json: bool = JsonOption,
) -> None:
    """
    Batch-price a catalogue and report throughput.
    """
    _setup()
    with _pricing_errors():
        items = _load_catalog(catalog_file)
        service = PricingService(_repository(rules, source))
        run = service.price_catalog(items, quantity=quantity, now=_parse_now(now))
    if as_json:
        payload = {
            "stats": run.stats,
            "products": [
                {"productId": entry.product_id, **entry.result.to_payload()}
                if entry.result is not None
                else {"productId": entry.product_id, **(entry.error or {})}
                for entry in run.entries
            ],
        }
        typer.echo(json.dumps(payload, indent=2))
        return
    reporter.print_catalog(run, limit=limit)


@app.command()
def check(
    rules: Optional[Path] = RulesOption,
    source: Optional[str] = SourceOption,
    as_json: bool = JsonOption,
) -> None:
    """
    Report rule data that the write boundary should have rejected.

    Exits with status 2 when any issue is found.
    """
    _setup()
    with _pricing_errors():
        snapshot = _repository(rules, source).fetch_snapshot()
    issues = check_snapshot(snapshot)
    if as_json:
        typer.echo(json.dumps([issue.model_dump() for issue in issues], indent=2))
    else:
        reporter.print_issues(issues)
    if issues:
        raise typer.Exit(code=2)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
