import asyncio
from typing import Dict, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, MarkdownViewer

from shop.errors import StoreError, Unknown
from shop.models import Order, OrderScope
from shop.roles import Action, available_actions
from utils.pure import format_price, order_markdown
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal

# button id -> action it performs
ACTION_BUTTONS: Dict[str, Action] = {
    "btn-cancel": Action.CANCEL,
    "btn-progress": Action.PROGRESS,
    "btn-delivered": Action.MARK_DELIVERED,
    "btn-returned": Action.MARK_RETURNED,
}


class OrdersScreen(BaseScreen):
    """
    Customers see their own orders and may cancel them.
    Staff see every order; delivery admins move orders along.

    Layout:
    - Markdown detail view at the top, showing the highlighted order.
    - Orders table below, newest first.
    - Action buttons, enabled only for what the order's status and the
      user's roles allow.
    """

    def __init__(self) -> None:
        super().__init__()
        self._selected: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("Cancel Order", id="btn-cancel", variant="error")
            yield Button("Start Processing", id="btn-progress", variant="primary")
            yield Button("Mark Delivered", id="btn-delivered", variant="success")
            yield Button("Mark Returned", id="btn-returned", variant="warning")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_column("Order", key="oid")
        table.add_column("Date", key="date")
        table.add_column("Customer", key="user")
        table.add_column("Total", key="total")
        table.add_column("Status", key="status")

    @property
    def scope(self) -> OrderScope:
        if self.app.state.can(Action.VIEW_ALL_ORDERS):
            return OrderScope.ALL
        return OrderScope.MINE

    async def reload_content(self) -> None:
        state = self.app.state
        self.sub_title = "All Orders" if self.scope is OrderScope.ALL else "My Orders"
        if not state.is_logged_in:
            self.query_one(DataTable).clear()
            self._selected = None
            await self._render_detail()
            return
        await state.workflow.refresh(state.session, self.scope)
        await self._render_table()

    async def _render_table(self) -> None:
        workflow = self.app.state.workflow
        table = self.query_one(DataTable)
        table.clear()
        for o in workflow.orders:
            table.add_row(
                o.oid,
                f"{o.created_at:%Y-%m-%d %H:%M}",
                o.user_ref,
                format_price(o.total_price),
                self._status_text(o),
                key=o.oid,
            )

        if self._selected and workflow.get(self._selected):
            table.move_cursor(row=table.get_row_index(self._selected))
        elif table.row_count:
            table.move_cursor(row=0)
            self._selected = table.coordinate_to_cell_key((0, 0)).row_key.value
        else:
            self._selected = None
        await self._render_detail()

    def _status_text(self, order: Order) -> str:
        if self.app.state.workflow.is_pending_confirmation(order.oid):
            return f"{order.status.value}..."
        return order.status.value

    def _selected_order(self) -> Optional[Order]:
        if self._selected is None:
            return None
        return self.app.state.workflow.get(self._selected)

    async def _render_detail(self) -> None:
        viewer = self.query_one("#md-order-detail", MarkdownViewer)
        order = self._selected_order()
        if order is None:
            if not self.app.state.is_logged_in:
                md = "### Log in to see your orders."
            else:
                md = "### Select an order to view its details."
        else:
            md = order_markdown(
                order, self.app.state.workflow.is_pending_confirmation(order.oid)
            )
        await viewer.document.update(md)
        self._refresh_buttons()

    def _refresh_buttons(self) -> None:
        state = self.app.state
        order = self._selected_order()
        allowed = frozenset()
        if order is not None and not state.workflow.is_pending_confirmation(order.oid):
            allowed = available_actions(state.session, order)
        for btn_id, action in ACTION_BUTTONS.items():
            btn = self.query_one(f"#{btn_id}", Button)
            btn.disabled = action not in allowed
        # staff-only buttons stay out of a customer's way
        for btn_id in ("btn-progress", "btn-delivered", "btn-returned"):
            self.query_one(f"#{btn_id}", Button).display = state.can(
                ACTION_BUTTONS[btn_id]
            )

    async def _refresh_row(self, oid: str) -> None:
        order = self.app.state.workflow.get(oid)
        table = self.query_one(DataTable)
        if order is not None and oid in table.rows:
            table.update_cell(oid, "status", self._status_text(order))
        if oid == self._selected:
            await self._render_detail()

    @on(DataTable.RowHighlighted)
    async def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        self._selected = event.row_key.value
        await self._render_detail()

    @on(Button.Pressed, "#btn-refresh")
    def handle_refresh(self) -> None:
        self.reload()

    @on(Button.Pressed, "#btn-cancel")
    @work()
    async def handle_cancel(self) -> None:
        order = self._selected_order()
        if order is None:
            return
        if await self.app.push_screen_wait(
            DialogModal(
                f"Cancel order {order.oid}?",
                primary_text="Yes, cancel it",
                secondary_text="No",
                tone="error",
            )
        ):
            await self._run_action(order.oid, Action.CANCEL)

    @on(Button.Pressed, "#btn-progress")
    @work()
    async def handle_progress(self) -> None:
        if self._selected:
            await self._run_action(self._selected, Action.PROGRESS)

    @on(Button.Pressed, "#btn-delivered")
    @work()
    async def handle_delivered(self) -> None:
        if self._selected:
            await self._run_action(self._selected, Action.MARK_DELIVERED)

    @on(Button.Pressed, "#btn-returned")
    @work()
    async def handle_returned(self) -> None:
        if self._selected:
            await self._run_action(self._selected, Action.MARK_RETURNED)

    async def _run_action(self, oid: str, action: Action) -> None:
        """
        Ask the backend for the transition. The row shows the old status with
        a marker until the backend answers.
        """
        state = self.app.state
        handlers = {
            Action.CANCEL: state.workflow.cancel,
            Action.PROGRESS: state.workflow.progress,
            Action.MARK_DELIVERED: state.workflow.mark_delivered,
            Action.MARK_RETURNED: state.workflow.mark_returned,
        }
        request = asyncio.ensure_future(handlers[action](oid, state.session))
        # one loop turn lets the request claim the order before we redraw
        await asyncio.sleep(0)
        await self._refresh_row(oid)
        try:
            updated = await request
        except StoreError as e:
            self.report_error(e)
            if isinstance(e, Unknown):
                self.reload()
            else:
                await self._refresh_row(oid)
            return

        self.notify(f"Order {updated.oid} is now {updated.status.value}.")
        await self._refresh_row(oid)
