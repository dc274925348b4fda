from typing import Dict, Optional

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from shop.roles import Action
from utils.config import Settings, make_gateway
from utils.logger import configure_logging, get_logger
from utils.messages import LoginRequestedMessage, QuitRequestedMessage, UserLogoutMessage
from utils.state import GlobalState
from views.modal_payment import TuiPaymentProvider
from views.scr_cart import CartScreen
from views.scr_login import LoginScreen
from views.scr_manage_products import ManageProductsScreen
from views.scr_orders import OrdersScreen
from views.scr_products import ProductsScreen

_logger = get_logger(__name__)


class StorefrontApp(App):
    TITLE = "Storefront"

    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "products": ProductsScreen,
        "cart": CartScreen,
        "orders": OrdersScreen,
        "manage": ManageProductsScreen,
    }

    MODE_TITLES = {
        "products": "Products",
        "cart": "Cart",
        "orders": "Orders",
        "manage": "Manage Products",
    }

    CSS = """
    Sidebar {
        dock: left;
        width: 32;
        padding: 0 1;
        border-right: solid $primary;
    }
    #hort-buttons, #hort-table-control, #div-button, #div-login-btns, #dialog {
        height: auto;
    }
    #hort-controls {
        height: auto;
    }
    DialogModal, PaymentModal {
        align: center middle;
    }
    #div-dialog, #div-payment {
        width: 60;
        height: auto;
        border: thick $primary;
        padding: 1 2;
        background: $surface;
    }
    """

    state: GlobalState

    def __init__(self, settings: Optional[Settings] = None):
        super().__init__()
        self.settings = settings or Settings.from_env()
        configure_logging(self.settings.debug)
        self.state = GlobalState(
            gateway=make_gateway(self.settings),
            payments=TuiPaymentProvider(self),
        )

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        _logger.info(f"Starting with the {self.settings.backend} backend")
        await self.switch_mode("products")

    def available_modes(self) -> Dict[str, str]:
        """Menu entries the current session may open, in display order."""
        modes = dict(self.MODE_TITLES)
        if not self.state.is_logged_in:
            del modes["orders"]
        if not self.state.can(Action.MANAGE_PRODUCTS):
            del modes["manage"]
        return modes

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    def _reload_current(self) -> None:
        reload = getattr(self.screen, "reload", None)
        if reload is not None:
            reload()

    @on(LoginRequestedMessage)
    @work(exclusive=True, group="login")
    async def handle_login_requested(self):
        if await self.push_screen_wait(LoginScreen()):
            _logger.debug(f"Session started for {self.state.session.user_ref}")
        self._reload_current()

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        await self.state.logout()
        self.notify("Logout successful.")
        if self.current_mode != "products":
            await self.switch_mode("products")
        self._reload_current()

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        await self.state.logout()
        await self.state.gateway.aclose()
        self.exit()


def run() -> None:
    StorefrontApp().run()


if __name__ == "__main__":
    run()
