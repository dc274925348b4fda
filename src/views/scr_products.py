from typing import Dict, Optional

from textual import on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Markdown

from shop.models import Product
from utils.messages import CartChangedMessage
from utils.pure import format_price, generate_markdown_table
from views.base_screen import BaseScreen


class ProductsScreen(BaseScreen):
    """
    Catalog browser. Highlight a row for details, enter or "Add to Cart"
    to put one more of it in the cart. Works without logging in.
    """

    SUB_TITLE = "Products"

    def __init__(self) -> None:
        super().__init__()
        self._products: Dict[str, Product] = {}
        self._selected: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-products")
            yield Markdown(id="md-prod-detail")
            with Horizontal(id="hort-buttons"):
                yield Button("Refresh", id="btn-refresh")
                yield Button("Remove One", id="btn-remove")
                yield Button("Add to Cart", id="btn-add", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_column("ID", key="pid")
        table.add_column("Name", key="name")
        table.add_column("Price", key="price")
        table.add_column("In Cart", key="qty")

    async def reload_content(self) -> None:
        products = await self.app.state.gateway.list_products()
        self._products = {p.pid: p for p in products}
        await self._render_table()

    async def _render_table(self) -> None:
        cart = self.app.state.cart
        table = self.query_one(DataTable)
        table.clear()
        for p in self._products.values():
            table.add_row(
                p.pid, p.name, format_price(p.price), cart.quantity_of(p.pid), key=p.pid
            )

        if not self._products:
            await self.query_one(Markdown).update(
                "No products found. Please add some to the catalog."
            )
            return
        if self._selected in self._products:
            table.move_cursor(row=table.get_row_index(self._selected))
        await self._render_detail()

    async def _render_detail(self) -> None:
        prod = self._products.get(self._selected) if self._selected else None
        if prod is None:
            await self.query_one(Markdown).update("### Select a product to view it.")
            return
        rows = [
            ["Price", format_price(prod.price)],
            ["In your cart", self.app.state.cart.quantity_of(prod.pid)],
            ["Image", prod.image_url or "-"],
        ]
        await self.query_one(Markdown).update(
            f"### {prod.name}\n\n{prod.descr}\n\n"
            + generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
        )

    @on(DataTable.RowHighlighted)
    async def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        self._selected = event.row_key.value
        await self._render_detail()

    @on(DataTable.RowSelected)
    @on(Button.Pressed, "#btn-add")
    async def handle_add(self) -> None:
        prod = self._products.get(self._selected) if self._selected else None
        if prod is None:
            self.notify("Select a product first.", severity="warning")
            return
        self.app.state.cart.add(prod)
        self.notify(f"{prod.name} added to cart!")
        await self._after_cart_change()

    @on(Button.Pressed, "#btn-remove")
    async def handle_remove(self) -> None:
        prod = self._products.get(self._selected) if self._selected else None
        if prod is None or not self.app.state.cart.quantity_of(prod.pid):
            self.notify("That product is not in your cart.", severity="warning")
            return
        self.app.state.cart.remove(prod)
        await self._after_cart_change()

    @on(Button.Pressed, "#btn-refresh")
    def handle_refresh(self) -> None:
        self.reload()

    async def _after_cart_change(self) -> None:
        table = self.query_one(DataTable)
        if self._selected in self._products:
            table.update_cell(
                self._selected, "qty", self.app.state.cart.quantity_of(self._selected)
            )
        await self._render_detail()
        self.post_message(CartChangedMessage())
