"""
股票行情路由
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.v1.schemas import StandardResponse
from app.core.container import get_quote_client
from app.services.market import AlphaVantageClient

router = APIRouter(prefix="/stocks", tags=["股票行情"])


def _normalize(symbol: str) -> str:
    symbol = symbol.strip().upper()
    if not symbol or len(symbol) > 10:
        raise HTTPException(status_code=400, detail="Invalid stock symbol")
    return symbol


@router.get("/{symbol}", response_model=StandardResponse, summary="最新报价")
async def get_stock_price(
    symbol: str,
    quote_client: AlphaVantageClient = Depends(get_quote_client),
):
    symbol = _normalize(symbol)
    price = await quote_client.fetch_stock_price(symbol)
    if price is None:
        raise HTTPException(status_code=404, detail="Stock not found")
    return StandardResponse(success=True, message="OK", data={"symbol": symbol, "price": price})


@router.get("/{symbol}/history", response_model=StandardResponse, summary="日线历史")
async def get_stock_history(
    symbol: str,
    limit: int = Query(100, ge=1, le=1000, description="返回的最近交易日数量"),
    quote_client: AlphaVantageClient = Depends(get_quote_client),
):
    """获取最近若干个交易日的日线数据（按日期升序）"""
    symbol = _normalize(symbol)
    bars = await quote_client.fetch_daily_history(symbol, limit=limit)
    return StandardResponse(
        success=True,
        message="OK",
        data={"symbol": symbol, "count": len(bars), "bars": bars},
    )
