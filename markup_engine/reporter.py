from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from markup_engine.domain.models import PriceEvaluationResult, ValueKind
from markup_engine.domain.validation import RuleIssue
from markup_engine.service import CartQuote, CatalogRun, QuantityBreak


def _money(value: Decimal) -> str:
    return f"${value:,.2f}"


def _value(kind: ValueKind, value: Decimal) -> str:
    if kind is ValueKind.PERCENTAGE:
        return f"{value:+}%"
    sign = "-" if value < 0 else "+"
    return f"{sign}${abs(value):,.2f}"


def print_evaluation(
    result: PriceEvaluationResult,
    title: Optional[str] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Render one evaluation as a trace table.

    One row per applied rule, in application order, followed by any rules
    skipped for bad data.
    """
    console = console or Console()

    heading = title or "Price Evaluation"
    summary = (
        f"{_money(result.base_price)} -> [bold]{_money(result.final_price)}[/bold]"
        f"  (qty {result.quantity})"
    )
    table = Table(
        title=f"{heading}\n[dim]{summary}[/dim]",
        box=box.ROUNDED,
        caption="Applied in priority order",
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Rule", style="cyan", no_wrap=True)
    table.add_column("Scope", style="magenta")
    table.add_column("Mode", style="blue")
    table.add_column("Priority", justify="right")
    table.add_column("Value", justify="right", style="yellow")
    table.add_column("Tier", justify="center")
    table.add_column("Before", justify="right", style="green")
    table.add_column("After", justify="right", style="bold green")

    for position, step in enumerate(result.applied_markups, start=1):
        value = _value(step.value_kind, step.effective_value)
        if step.used_tier:
            value = f"{value} [dim](was {_value(step.value_kind, step.original_value)})[/dim]"
        tier = "-"
        if step.tier is not None:
            upper = step.tier.max_quantity if step.tier.max_quantity is not None else "∞"
            tier = f"{step.tier.min_quantity}-{upper}"
        table.add_row(
            str(position),
            f"{step.name} [dim]#{step.id}[/dim]",
            step.scope.value,
            step.combine_mode.value,
            str(step.priority),
            value,
            tier,
            _money(step.price_before_markup),
            _money(step.price_after_markup),
        )

    if not result.applied_markups:
        console.print(f"[yellow]No markups apply.[/yellow] {summary}")
    else:
        console.print(table)

    for skipped in result.skipped_rules:
        line = f"[red]Skipped[/red] {skipped.name or 'rule'} #{skipped.id}: {skipped.reason}"
        if skipped.value is not None:
            line += f" (value {skipped.value})"
        console.print(line)


def print_breaks(breaks: Sequence[QuantityBreak], console: Optional[Console] = None) -> None:
    """Render the quantity break table shown on product detail pages."""
    console = console or Console()
    if not breaks:
        console.print("[yellow]No quantity breaks.[/yellow]")
        return

    base_unit = breaks[0].unit_price
    table = Table(title="Quantity Pricing", box=box.ROUNDED)
    table.add_column("Quantity", style="cyan")
    table.add_column("Unit Price", justify="right", style="bold green")
    table.add_column("vs. Single", justify="right", style="yellow")

    for entry in breaks:
        diff = entry.unit_price - base_unit
        diff_str = "-" if diff == 0 else f"{diff:+,.2f}"
        table.add_row(entry.label, _money(entry.unit_price), diff_str)

    console.print(table)


def print_cart(cart: CartQuote, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title="Cart", box=box.ROUNDED, show_footer=True)
    table.add_column("Product", style="cyan", footer="Subtotal")
    table.add_column("Qty", justify="right", footer=str(cart.item_count))
    table.add_column("Base", justify="right", style="dim")
    table.add_column("Unit", justify="right", style="green")
    table.add_column(
        "Line Total", justify="right", style="bold green", footer=_money(cart.subtotal)
    )

    for line in cart.lines:
        table.add_row(
            line.product_id,
            str(line.quantity),
            _money(line.evaluation.base_price),
            _money(line.unit_price),
            _money(line.line_total),
        )

    console.print(table)


def print_catalog(run: CatalogRun, limit: int = 20, console: Optional[Console] = None) -> None:
    """Render the first `limit` catalogue entries and the run statistics."""
    console = console or Console()
    stats = run.stats
    rss = stats.get("peak_rss_bytes")
    cpu = stats.get("cpu_percent")
    resource_parts: List[str] = [
        f"{stats.get('items', 0):,} items",
        f"{stats.get('duration_seconds', 0.0):.3f}s",
        f"{stats.get('items_per_sec', 0.0):,.0f} items/s",
    ]
    if rss:
        resource_parts.append(f"peak {rss / (1024 * 1024):.1f} MB")
    if cpu is not None:
        resource_parts.append(f"CPU {cpu:.1f}%")

    table = Table(
        title=f"Catalog Pricing\n[dim]{' │ '.join(resource_parts)}[/dim]",
        box=box.ROUNDED,
        caption=f"Showing {min(limit, len(run.entries))} of {len(run.entries)}",
    )
    table.add_column("Product", style="cyan", no_wrap=True)
    table.add_column("Base", justify="right", style="dim")
    table.add_column("Final", justify="right", style="bold green")
    table.add_column("Rules", justify="right", style="magenta")
    table.add_column("Error", style="red")

    for entry in run.entries[:limit]:
        if entry.result is None:
            error = entry.error or {}
            table.add_row(entry.product_id, "-", "-", "-", str(error.get("code", "ERROR")))
            continue
        table.add_row(
            entry.product_id,
            _money(entry.result.base_price),
            _money(entry.result.final_price),
            str(len(entry.result.applied_markups)),
            "",
        )

    console.print(table)


def print_issues(issues: Sequence[RuleIssue], console: Optional[Console] = None) -> None:
    console = console or Console()
    if not issues:
        console.print("[green]No rule data issues found.[/green]")
        return

    table = Table(title="Rule Data Issues", box=box.ROUNDED)
    table.add_column("Code", style="red", no_wrap=True)
    table.add_column("Rule", justify="right", style="cyan")
    table.add_column("Tier", justify="right", style="dim")
    table.add_column("Message")

    for issue in issues:
        table.add_row(
            issue.code,
            str(issue.rule_id) if issue.rule_id is not None else "-",
            str(issue.tier_id) if issue.tier_id is not None else "-",
            issue.message,
        )

    console.print(table)
