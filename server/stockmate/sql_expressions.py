from sqlalchemy import case, func

from stockmate.models import TXN_OUT, StockTransaction


def signed_qty():
    """Ledger quantity with OUT-direction rows negated."""
    return case(
        (StockTransaction.direction == TXN_OUT, -StockTransaction.qty),
        else_=StockTransaction.qty,
    )


def stock_balance():
    return func.coalesce(func.sum(signed_qty()), 0)
