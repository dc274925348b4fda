from __future__ import annotations

from dataclasses import dataclass, field

from backend.gateway import BackendGateway
from shop.cart import CartStore
from shop.errors import StoreError
from shop.models import Session
from shop.payment import PaymentProvider
from shop.roles import Action, permitted_actions
from shop.workflow import OrderWorkflow
from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - gateway: backend the client talks to
      - session: current Session value, anonymous until login
      - cart: the active session's cart
      - workflow: order submission and status changes
    """

    gateway: BackendGateway
    payments: PaymentProvider
    session: Session = field(default_factory=Session)
    cart: CartStore = field(default_factory=CartStore)
    workflow: OrderWorkflow = field(init=False)

    def __post_init__(self) -> None:
        self.workflow = OrderWorkflow(self.gateway, self.payments)

    @property
    def is_logged_in(self) -> bool:
        return self.session.is_authenticated

    def can(self, action: Action) -> bool:
        return action in permitted_actions(self.session)

    async def login(self, email: str, password: str) -> Session:
        """Sign in; the cart built while browsing anonymously is kept."""
        self.session = await self.gateway.login(email, password)
        _logger.info(f"Logged in as {self.session.user_ref}")
        return self.session

    async def register(self, name: str, email: str, password: str) -> Session:
        self.session = await self.gateway.register(name, email, password)
        _logger.info(f"Registered and logged in as {self.session.user_ref}")
        return self.session

    async def logout(self) -> None:
        """
        End the current session if one exists.
        The cart and loaded orders belong to the session and go with it.
        """
        if not self.session.is_authenticated:
            return
        token = self.session.auth_token
        self.session = Session()
        self.cart.clear()
        self.workflow.reset()
        try:
            await self.gateway.logout(token)
        except StoreError as e:
            _logger.warning(f"Token revocation failed ({e.kind}): {e}")
