from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from shop.errors import StoreError
from shop.models import Session
from utils.messages import CartChangedMessage, LoginRequestedMessage, UserLogoutMessage
from utils.pure import format_price, generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal


def role_label(session: Session) -> str:
    if not session.is_authenticated:
        return "Guest"
    flags = session.role_flags
    roles = []
    if flags.is_product_admin:
        roles.append("Product Admin")
    if flags.is_delivery_admin:
        roles.append("Delivery Admin")
    return ", ".join(roles) or "Customer"


class Sidebar(Container):
    def compose(self) -> ComposeResult:
        yield Label("User Info", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log in", id="btn-auth", variant="primary")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def reload(self) -> None:
        """Re-render user info, cart badge and the role-dependent menu."""
        await self.reload_info()

        list_menu = self.query_one("#list-menu", ListView)
        await list_menu.clear()
        await list_menu.extend(
            [
                ListItem(Label(title), name=mode)
                for mode, title in self.app.available_modes().items()
            ]
        )
        self.highlight_item(self.app.current_mode)

    async def reload_info(self) -> None:
        state = self.app.state
        session = state.session

        table_rows = [
            ["User", session.display_name or session.user_ref or "Guest"],
            ["Role", role_label(session)],
            ["Cart", f"{state.cart.count} item(s), {format_price(state.cart.total)}"],
        ]
        await self.query_one(Markdown).update(
            generate_markdown_table(None, table_rows, ["l", "l"])
        )

        auth_btn = self.query_one("#btn-auth", Button)
        auth_btn.label = "Log out" if session.is_authenticated else "Log in"
        auth_btn.variant = "error" if session.is_authenticated else "primary"

    def highlight_item(self, mode: str) -> None:
        for item in self.query_one("#list-menu", ListView).children:
            item.highlighted = item.name == mode

    async def on_list_view_selected(self, event: ListView.Selected) -> None:
        selected_mode = event.item.name
        if self.app.current_mode != selected_mode:
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-auth")
    @work()
    async def handle_auth(self) -> None:
        if not self.app.state.is_logged_in:
            self.post_message(LoginRequestedMessage())
            return

        if await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to log out?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            self.post_message(UserLogoutMessage())


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.

    Subclasses put their own loading in ``reload_content``; it runs on
    every resume so screens pick up login/logout and cart changes made
    elsewhere.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    show_sidebar = True

    def compose(self) -> ComposeResult:
        if self.show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @on(ScreenResume)
    def handle_resume(self) -> None:
        self.reload()

    @on(CartChangedMessage)
    async def handle_cart_changed(self) -> None:
        await self.reload_sidebar_info()

    @work(exclusive=True, group="reload")
    async def reload(self) -> None:
        await self.reload_sidebar()
        try:
            await self.reload_content()
        except StoreError as e:
            self.report_error(e)

    async def reload_sidebar(self) -> None:
        if self.show_sidebar:
            await self.query_one(Sidebar).reload()

    async def reload_sidebar_info(self) -> None:
        if self.show_sidebar:
            await self.query_one(Sidebar).reload_info()

    async def reload_content(self) -> None:
        pass

    def report_error(self, error: StoreError) -> None:
        """Show an error kind's message; payment dismissals are only a warning."""
        severity = "warning" if error.kind == "PaymentCanceled" else "error"
        message = error.user_message
        if error.detail:
            message += f"\n{error.detail}"
        self.notify(message, severity=severity)

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
