from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Label, Rule

from shop.errors import NotAuthenticated, StoreError
from shop.models import LineItem, Product
from utils.messages import CartChangedMessage, LoginRequestedMessage
from utils.pure import format_price
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal


def _as_product(item: LineItem) -> Product:
    return Product(
        pid=item.pid, name=item.name, price=item.unit_price, image_url=item.image_url
    )


class CartScreen(BaseScreen):
    """
    Cart lines with quantity controls, clear, and checkout.
    """

    SUB_TITLE = "Cart"

    def __init__(self) -> None:
        super().__init__()
        self._selected: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-cart")
            yield Label("Total: $0.00", id="label-cart-total")
            yield Rule(line_style="dashed")
            with Horizontal(id="hort-buttons"):
                yield Button("-", id="btn-remove-one")
                yield Button("+", id="btn-add-one")
                yield Button("Clear Cart", id="btn-clear-cart", variant="warning")
                yield Button("Checkout", id="btn-checkout", variant="primary")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Product", "Unit Price", "Qty", "Line Total")

    async def reload_content(self) -> None:
        self._render_cart()

    def _render_cart(self) -> None:
        cart = self.app.state.cart
        table = self.query_one(DataTable)
        table.clear()
        for item in cart.items:
            table.add_row(
                item.name,
                format_price(item.unit_price),
                item.quantity,
                format_price(item.line_total),
                key=item.pid,
            )
        if cart.is_empty:
            self._selected = None
        elif self._selected and cart.quantity_of(self._selected):
            table.move_cursor(row=table.get_row_index(self._selected))

        self.query_one("#label-cart-total", Label).update(
            "Your cart is empty." if cart.is_empty else f"Total: {format_price(cart.total)}"
        )
        for btn_id in ("#btn-remove-one", "#btn-add-one", "#btn-clear-cart", "#btn-checkout"):
            self.query_one(btn_id, Button).disabled = cart.is_empty

    def _selected_item(self) -> Optional[LineItem]:
        for item in self.app.state.cart.items:
            if item.pid == self._selected:
                return item
        return None

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        self._selected = event.row_key.value

    @on(CartChangedMessage)
    def handle_cart_change(self) -> None:
        self._render_cart()

    @on(Button.Pressed, "#btn-remove-one")
    def handle_remove_one(self) -> None:
        item = self._selected_item()
        if item:
            self.app.state.cart.remove(_as_product(item))
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-add-one")
    def handle_add_one(self) -> None:
        item = self._selected_item()
        if item:
            self.app.state.cart.add(_as_product(item))
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-clear-cart")
    @work(exclusive=True, group="cart")
    async def handle_clear_cart(self) -> None:
        if self.app.state.cart.is_empty:
            self.notify("Cart is empty.", severity="warning")
            return

        if await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            self.app.state.cart.clear()
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work(group="checkout")
    async def handle_checkout(self) -> None:
        """
        Submit the cart, then hand over to the payment modal.
        The button stays disabled until the payment outcome is known.
        """
        state = self.app.state
        checkout_btn = self.query_one("#btn-checkout", Button)
        checkout_btn.disabled = True
        try:
            receipt = await state.workflow.checkout(state.cart, state.session)
        except NotAuthenticated as e:
            self.report_error(e)
            self.post_message(LoginRequestedMessage())
        except StoreError as e:
            self.report_error(e)
        else:
            self.notify(
                f"Order placed successfully! Order {receipt.order_id}, "
                f"{format_price(receipt.total)}."
            )
        finally:
            self.post_message(CartChangedMessage())
