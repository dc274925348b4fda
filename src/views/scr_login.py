from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, TabbedContent, TabPane

from shop.errors import StoreError
from views.base_screen import BaseScreen


class LoginScreen(BaseScreen):
    """
    Login or sign up. Dismisses with True once a session is established,
    False if the user backs out and keeps browsing as a guest.
    """

    SUB_TITLE = "Login"
    show_sidebar = False

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Login", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-login-email")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-login-pwd"
                    )
                    with Horizontal(id="div-login-btns"):
                        yield Button("Back", id="btn-back")
                        yield Button("Login", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Name")
                    yield Input(placeholder="Jane Doe", id="input-reg-name")
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-reg-pwd"
                    )
                    with Container(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "escape":
            self.dismiss(False)
        if event.key == "enter" and self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()
        if event.key == "enter" and self.focused == self.query_one("#input-reg-pwd"):
            self.handle_registration_submit()

    def _flag_invalid(self, input_id: str) -> None:
        field = self.query_one(input_id, Input)
        field.add_class("-invalid")
        field.focus()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value

        if not email or not pwd:
            self.notify("Email or password cannot be empty!", severity="error")
            return

        try:
            session = await self.app.state.login(email, pwd)
        except StoreError as e:
            self.report_error(e)
            self.query_one("#input-login-pwd", Input).value = ""
            self._flag_invalid("#input-login-pwd")
            return

        self.notify(f"Hello {session.display_name or email}!")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        name = self.query_one("#input-reg-name", Input).value.strip()
        email = self.query_one("#input-reg-email", Input).value.strip()
        pwd = self.query_one("#input-reg-pwd", Input).value

        if not name or not email or not pwd:
            self.notify("Make sure all inputs are filled.", severity="error")
            return

        try:
            session = await self.app.state.register(name, email, pwd)
        except StoreError as e:
            self.report_error(e)
            self._flag_invalid("#input-reg-email")
            return

        self.notify(f"Registration successful. Welcome {session.display_name}!")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-back")
    def handle_back(self) -> None:
        self.dismiss(False)
