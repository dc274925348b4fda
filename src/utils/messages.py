from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class LoginRequestedMessage(Message):
    """
    Posted when a screen needs a signed-in session, e.g. the sidebar's
    login button or a checkout attempted as a guest. Handled by the app.
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    posted by the sidebar when the user confirms logging out
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired after any CartStore mutation made from a screen; the screen
    refreshes its sidebar badge and any cart-derived widgets.
    """

    bubble = True
