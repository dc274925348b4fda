from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Literal, Optional, Sequence

from shop.models import LineItem, Order

CENT = Decimal("0.01")


def format_price(amount: Decimal) -> str:
    """Render a money amount as ``$12.34``."""
    return f"${amount.quantize(CENT, rounding=ROUND_HALF_UP)}"


def parse_price(text: str) -> Optional[Decimal]:
    """Parse user input like ``12.5`` or ``$12.50``; None if not a valid amount."""
    cleaned = text.strip().lstrip("$").strip()
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned)
    except ArithmeticError:
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: Sequence[Sequence[object]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: Rows of cells; cells are converted with str().
        aligns: 'l', 'c' or 'r' per column. Defaults to all center.

    Returns:
        str: Markdown formatted table, or "" when there are no rows.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = list(rows[0]), rows[1:]

    header_cells = [str(h) for h in headers]
    body = [[str(cell) for cell in row] for row in rows]

    if aligns is None:
        aligns = ["c"] * len(header_cells)
    elif len(aligns) != len(header_cells):
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {"l": ":---", "c": ":---:", "r": "---:"}

    lines = [
        "| " + " | ".join(header_cells) + " |",
        "| " + " | ".join(align_map[a] for a in aligns) + " |",
    ]
    lines.extend("| " + " | ".join(row) + " |" for row in body)
    return "\n".join(lines)


def line_items_markdown(items: Iterable[LineItem], total: Decimal) -> str:
    """Order/cart summary table followed by the grand total."""
    rows = [
        [
            item.name,
            format_price(item.unit_price),
            item.quantity,
            format_price(item.line_total),
        ]
        for item in items
    ]
    table = generate_markdown_table(
        ["Product", "Unit Price", "Qty", "Line Total"], rows, ["l", "r", "r", "r"]
    )
    return f"{table}\n\n**Total:** {format_price(total)}"


def order_markdown(order: Order, pending: bool = False) -> str:
    status = order.status.value + (" (awaiting confirmation)" if pending else "")
    header = (
        f"### Order {order.oid}\n"
        f"Placed: {order.created_at:%Y-%m-%d %H:%M}  \n"
        f"Customer: {order.user_ref}  \n"
        f"Status: **{status}**\n\n"
    )
    return header + line_items_markdown(order.items, order.total_price)
