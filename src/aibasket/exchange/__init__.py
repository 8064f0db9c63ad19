"""Exchange package — adapter pattern for swap venues."""

from aibasket.exchange.base import ExchangeAdapter  # noqa: F401
from aibasket.exchange.http_router import HttpRouterExchange  # noqa: F401
from aibasket.exchange.paper import PaperExchange  # noqa: F401
