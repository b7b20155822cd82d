"""
Bonding curve pricing.

Pure functions over a PoolState snapshot: quotes for buys and sells, the
price impact of a trade, and the slippage-adjusted bounds that end up in the
on-chain instruction. Arithmetic on amounts is done in Decimal so floors are
exact for the decimal values callers pass in.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, localcontext
from typing import Any, Dict, Optional, Union

from .exceptions import APIError, InvalidPoolStateError
from .validators import require_positive_amount, require_slippage

LAMPORTS_PER_SOL = 1_000_000_000

Number = Union[int, float, Decimal]

_PRECISION = 60


@dataclass(frozen=True)
class PoolState:
    """
    Reserve snapshot for one bonding curve, as reported by the data source.

    Attributes:
        mint: Token mint address
        bonding_curve: Bonding curve account address
        associated_bonding_curve: Curve's token account address
        virtual_sol_reserves: Virtual SOL reserves (lamports)
        virtual_token_reserves: Virtual token reserves (raw units)
        price_sol: Reference price reported by the data source
        liquidity_sol: Liquidity used for price impact (None if not reported)
    """
    mint: str
    bonding_curve: str
    associated_bonding_curve: str
    virtual_sol_reserves: int
    virtual_token_reserves: int
    price_sol: float
    liquidity_sol: Optional[float] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "PoolState":
        liquidity = data.get("liquidity_sol") if isinstance(data, dict) else None
        try:
            return cls(
                mint=str(data["mint"]),
                bonding_curve=str(data.get("bonding_curve") or ""),
                associated_bonding_curve=str(data.get("associated_bonding_curve") or ""),
                virtual_sol_reserves=int(data["virtual_sol_reserves"]),
                virtual_token_reserves=int(data["virtual_token_reserves"]),
                price_sol=float(data.get("price_sol") or 0.0),
                liquidity_sol=None if liquidity is None else float(liquidity),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise APIError(
                f"Malformed pool data: {e}",
                context={"mint": data.get("mint") if isinstance(data, dict) else None},
            ) from e


@dataclass(frozen=True)
class Quote:
    input_amount: Number
    expected_output_amount: Number
    price: float
    price_impact: Optional[float]


def _dec(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    return Decimal(str(value))


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def _check_pool(pool: PoolState) -> None:
    if pool.virtual_sol_reserves <= 0 or pool.virtual_token_reserves <= 0:
        raise InvalidPoolStateError(
            "Pool has non-positive virtual reserves",
            mint=pool.mint,
            context={
                "virtual_sol_reserves": pool.virtual_sol_reserves,
                "virtual_token_reserves": pool.virtual_token_reserves,
            },
        )


def _price_impact(pool: PoolState, amount: Number) -> Optional[float]:
    if pool.liquidity_sol is None or not pool.liquidity_sol > 0:
        return None
    return float(amount) / pool.liquidity_sol


def sol_to_lamports(sol: Number) -> int:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return _floor(_dec(sol) * LAMPORTS_PER_SOL)


def quote_buy(pool: PoolState, sol_in: Number) -> Quote:
    """Tokens received for ``sol_in``: floor(sol_in * token_reserves / sol_reserves)."""
    require_positive_amount(sol_in, "sol_in")
    _check_pool(pool)

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        token_out = _floor(
            _dec(sol_in) * pool.virtual_token_reserves / pool.virtual_sol_reserves
        )

    return Quote(
        input_amount=sol_in,
        expected_output_amount=token_out,
        price=pool.price_sol,
        price_impact=_price_impact(pool, sol_in),
    )


def quote_sell(pool: PoolState, token_in: Number) -> Quote:
    """
    SOL received for ``token_in``.

    Advisory value, left unfloored. The enforced on-chain minimum comes from
    ``min_sol_output``.
    """
    require_positive_amount(token_in, "token_in")
    _check_pool(pool)

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        sol_out = float(
            _dec(token_in) * pool.virtual_sol_reserves / pool.virtual_token_reserves
        )

    return Quote(
        input_amount=token_in,
        expected_output_amount=sol_out,
        price=pool.price_sol,
        price_impact=_price_impact(pool, sol_out),
    )


def max_sol_cost(sol_in: Number, slippage: Number) -> int:
    """Most lamports a buy may spend: floor(sol_in * (1 + slippage) * LAMPORTS_PER_SOL)."""
    require_positive_amount(sol_in, "sol_in")
    require_slippage(slippage)

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return _floor(_dec(sol_in) * (1 + _dec(slippage)) * LAMPORTS_PER_SOL)


def min_sol_output(pool: PoolState, token_in: Number, slippage: Number) -> int:
    """Least SOL a sell may return: floor(token_in * (1 - slippage) * sol_reserves / token_reserves)."""
    require_positive_amount(token_in, "token_in")
    require_slippage(slippage)
    _check_pool(pool)

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return _floor(
            _dec(token_in)
            * (1 - _dec(slippage))
            * pool.virtual_sol_reserves
            / pool.virtual_token_reserves
        )


__all__ = [
    "LAMPORTS_PER_SOL",
    "PoolState",
    "Quote",
    "sol_to_lamports",
    "quote_buy",
    "quote_sell",
    "max_sol_cost",
    "min_sol_output",
]
