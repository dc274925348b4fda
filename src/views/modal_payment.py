from typing import Optional

from textual import events, on
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, Markdown

from shop.models import PaymentIntent
from shop.payment import PaymentOutcome
from utils.pure import format_price, generate_markdown_table


class PaymentModal(ModalScreen[bool]):
    """
    Stand-in for the hosted payment widget.
    Returns True when the user pays, False when the widget is dismissed.
    """

    def __init__(self, intent: PaymentIntent):
        super().__init__()
        self.intent = intent

    def compose(self) -> ComposeResult:
        with Vertical(id="div-payment"):
            yield Markdown("", id="md-payment")
            yield Label("Your card is charged when you press Pay.")
            with Horizontal():
                yield Button("Cancel", id="btn-dismiss")
                yield Button(
                    f"Pay {format_price(self.intent.amount)}",
                    id="btn-pay",
                    variant="success",
                )

    async def on_mount(self):
        rows = [
            ["Payment", self.intent.intent_id],
            ["Amount", format_price(self.intent.amount)],
        ]
        await self.query_one(Markdown).update(
            "### Complete your payment\n\n"
            + generate_markdown_table(["", ""], rows, ["l", "r"])
        )
        self.query_one("#btn-pay").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-pay")
    def handle_pay(self):
        self.dismiss(True)

    @on(Button.Pressed, "#btn-dismiss")
    def handle_dismiss(self):
        self.dismiss(False)


class TuiPaymentProvider:
    """PaymentProvider that shows ``PaymentModal`` on top of the running app."""

    def __init__(self, app: App) -> None:
        self._app = app

    def open(self, intent: PaymentIntent, outcome: PaymentOutcome) -> None:
        def report(paid: Optional[bool]) -> None:
            if paid:
                outcome.on_success()
            else:
                outcome.on_dismiss()

        self._app.push_screen(PaymentModal(intent), callback=report)
