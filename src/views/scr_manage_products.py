from __future__ import annotations

from typing import Dict, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Input, Label

from shop.errors import Forbidden, StoreError
from shop.models import Product
from shop.roles import Action
from utils.pure import format_price, parse_price
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal


class ManageProductsScreen(BaseScreen):
    """
    Product admins can add, edit and delete catalog entries.
    """

    SUB_TITLE = "Manage Products"

    def __init__(self) -> None:
        super().__init__()
        self._products: Dict[str, Product] = {}
        self.current_pid: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-manage")
            with Horizontal(id="hort-controls"):
                with Vertical():
                    yield Label("Name:")
                    yield Input(placeholder="Product name", id="input-name")
                with Vertical():
                    yield Label("Price ($):")
                    yield Input(placeholder="0.00", id="input-price")
            yield Label("Image URL:")
            yield Input(placeholder="https://...", id="input-image")
            yield Label("Description:")
            yield Input(placeholder="Short description", id="input-descr")
            with Horizontal(id="div-button"):
                yield Button("New", id="btn-new")
                yield Button("Delete", id="btn-delete", variant="error")
                yield Button("Save", id="btn-save", variant="success")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Price")

    async def reload_content(self) -> None:
        if not self.app.state.can(Action.MANAGE_PRODUCTS):
            raise Forbidden("Only product admins can manage the catalog.")
        products = await self.app.state.gateway.list_products()
        self._products = {p.pid: p for p in products}

        table = self.query_one(DataTable)
        table.clear()
        for p in products:
            table.add_row(p.pid, p.name, format_price(p.price), key=p.pid)
        if self.current_pid in self._products:
            table.move_cursor(row=table.get_row_index(self.current_pid))
        else:
            self._fill_form(None)

    def _fill_form(self, prod: Optional[Product]) -> None:
        """Prefill inputs with the product's values, or blank for a new one."""
        self.current_pid = prod.pid if prod else None
        self.query_one("#input-name", Input).value = prod.name if prod else ""
        self.query_one("#input-price", Input).value = f"{prod.price}" if prod else ""
        self.query_one("#input-image", Input).value = prod.image_url if prod else ""
        self.query_one("#input-descr", Input).value = prod.descr if prod else ""
        self.query_one("#btn-delete", Button).disabled = prod is None
        for field in self.query(Input):
            field.remove_class("-invalid")

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        self._fill_form(self._products.get(event.row_key.value))

    @on(Button.Pressed, "#btn-new")
    def handle_new(self) -> None:
        self._fill_form(None)
        self.query_one("#input-name", Input).focus()

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True, group="manage")
    async def handle_save(self) -> None:
        name_input = self.query_one("#input-name", Input)
        price_input = self.query_one("#input-price", Input)

        name = name_input.value.strip()
        if not name:
            name_input.focus()
            name_input.add_class("-invalid")
            return

        price = parse_price(price_input.value)
        if price is None:
            price_input.focus()
            price_input.add_class("-invalid")
            self.notify("Enter a valid, non-negative price.", severity="error")
            return

        state = self.app.state
        draft = Product(
            pid=self.current_pid or "",
            name=name,
            price=price,
            descr=self.query_one("#input-descr", Input).value.strip(),
            image_url=self.query_one("#input-image", Input).value.strip(),
        )
        try:
            saved = await state.gateway.save_product(draft, state.session.auth_token)
        except StoreError as e:
            self.report_error(e)
            return

        self.notify(f"{saved.name} saved.")
        self.current_pid = saved.pid
        self.reload()

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True, group="manage")
    async def handle_delete(self) -> None:
        prod = self._products.get(self.current_pid) if self.current_pid else None
        if prod is None:
            return

        if not await self.app.push_screen_wait(
            DialogModal(
                f"Delete {prod.name} from the catalog?",
                primary_text="Delete",
                secondary_text="Keep",
                tone="error",
            )
        ):
            return

        state = self.app.state
        try:
            await state.gateway.delete_product(prod.pid, state.session.auth_token)
        except StoreError as e:
            self.report_error(e)
            return

        self.notify(f"{prod.name} deleted.")
        self.current_pid = None
        self.reload()
