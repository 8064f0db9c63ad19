"""Oracle package — one price feed per token, read through a validating adapter."""

from aibasket.oracle.adapter import OracleAdapter  # noqa: F401
from aibasket.oracle.base import PriceFeed  # noqa: F401
from aibasket.oracle.http_feed import HttpPriceFeed  # noqa: F401
from aibasket.oracle.static_feed import StaticPriceFeed  # noqa: F401
