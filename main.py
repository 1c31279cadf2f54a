from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional, List
import asyncio
import logging

from config import settings
from auth import get_current_user, require_admin
from models import (
    Voucher, CreateVoucherModel, UpdateVoucherModel, UserVouchersResponse,
    WheelResponse, SpinResponse, PricingQuoteRequest, PricingQuoteResponse,
    ShippingFeeResponse, SuccessResponse
)
from vouchers import (
    list_vouchers, get_voucher_by_id, create_voucher, update_voucher, delete_voucher
)
from user_vouchers import get_owned_vouchers, get_user_voucher_details, grant_voucher
from lucky_wheel import get_wheel, spin_for_user
from location_service import get_shipping_fee_for_address, resolve_coordinates
from pricing import calculate_subtotal, quote_order
from scheduler import expire_vouchers_job
from wards import get_districts_info

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the voucher expiry job with the app and cancel it on shutdown"""
    app.state.expiry_task = None
    if settings.ENABLE_BACKGROUND_JOBS:
        app.state.expiry_task = asyncio.create_task(expire_vouchers_job())
        logger.info("Voucher expiry job started")

    yield

    task = app.state.expiry_task
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Voucher expiry job stopped")


# Initialize FastAPI app
app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================
# PUBLIC ENDPOINTS
# ============================================

@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "status": "ok",
        "message": "GreenMart Rewards & Pricing API",
        "version": settings.API_VERSION,
        "features": [
            "Voucher Catalog",
            "Lucky Wheel",
            "Owned Vouchers",
            "Shipping Fees",
            "Order Pricing"
        ]
    }


@app.get("/addresses/districts")
async def get_districts_endpoint():
    """Districts and wards with coordinates, for the address picker"""
    districts = get_districts_info()
    return {
        "districts": districts,
        "total": len(districts)
    }


# ============================================
# AUTHENTICATION ENDPOINTS
# ============================================

@app.get("/auth/me")
async def get_current_user_endpoint(current_user: dict = Depends(get_current_user)):
    """Get current authenticated user information"""
    return {
        "uid": current_user["uid"],
        "email": current_user["email"],
        "is_admin": current_user.get("is_admin", False),
        "message": "User authenticated successfully"
    }


# ============================================
# VOUCHER CATALOG ENDPOINTS
# ============================================

@app.get("/vouchers", response_model=List[Voucher])
async def list_vouchers_endpoint(
    include_ineligible: bool = Query(False, description="Also return inactive, used up and expired vouchers")
):
    """
    Get the voucher catalog

    By default only vouchers that can currently be won or used are returned.
    """
    try:
        vouchers = await list_vouchers()
        if not include_ineligible:
            vouchers = [v for v in vouchers if v.is_eligible()]
        return vouchers
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/vouchers/{voucher_id}", response_model=Voucher)
async def get_voucher_endpoint(voucher_id: str):
    """Get one voucher"""
    voucher = await get_voucher_by_id(voucher_id)

    if not voucher:
        raise HTTPException(status_code=404, detail="Voucher not found")

    return voucher


@app.post("/vouchers", response_model=Voucher, status_code=201)
async def create_voucher_endpoint(
    voucher_data: CreateVoucherModel,
    current_user: dict = Depends(require_admin)
):
    """Create a voucher (admin only)"""
    try:
        return await create_voucher(voucher_data.model_dump())
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.put("/vouchers/{voucher_id}", response_model=Voucher)
async def update_voucher_endpoint(
    voucher_id: str,
    voucher_data: UpdateVoucherModel,
    current_user: dict = Depends(require_admin)
):
    """Update a voucher (admin only). Only provided fields change."""
    update_dict = voucher_data.model_dump(exclude_unset=True)

    if not update_dict:
        raise HTTPException(status_code=400, detail="No data to update")

    try:
        return await update_voucher(voucher_id, update_dict)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete("/vouchers/{voucher_id}", response_model=SuccessResponse)
async def delete_voucher_endpoint(
    voucher_id: str,
    current_user: dict = Depends(require_admin)
):
    """Delete a voucher (admin only)"""
    try:
        await delete_voucher(voucher_id)
        return {
            "success": True,
            "message": "Voucher deleted successfully"
        }
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))


# ============================================
# OWNED VOUCHER ENDPOINTS
# ============================================

@app.get("/user/vouchers", response_model=UserVouchersResponse)
async def get_my_vouchers_endpoint(
    current_user: dict = Depends(get_current_user)
):
    """Get the vouchers the current user holds"""
    try:
        return await get_user_voucher_details(current_user["uid"])
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/users/{user_uid}/vouchers/{voucher_id}", response_model=SuccessResponse)
async def grant_voucher_endpoint(
    user_uid: str,
    voucher_id: str,
    current_user: dict = Depends(require_admin)
):
    """Grant one copy of a voucher to a user (admin only)"""
    try:
        owned = await grant_voucher(user_uid, voucher_id)
        return {
            "success": True,
            "message": "Voucher granted successfully",
            "data": {
                "vouchers": owned
            }
        }
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))


# ============================================
# LUCKY WHEEL ENDPOINTS
# ============================================

@app.get("/lucky-wheel/prizes", response_model=WheelResponse)
async def get_wheel_endpoint(
    current_user: dict = Depends(get_current_user)
):
    """Get the slots currently on the wheel"""
    try:
        return await get_wheel(current_user["uid"])
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/lucky-wheel/spin", response_model=SpinResponse)
async def spin_endpoint(
    current_user: dict = Depends(get_current_user)
):
    """
    Spin the lucky wheel

    One spin per user per day. The prize is chosen when the spin starts and a
    won voucher is added to the user's vouchers before the response is sent.
    """
    try:
        return await spin_for_user(current_user["uid"])
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))


# ============================================
# PRICING ENDPOINTS
# ============================================

@app.get("/pricing/shipping-fee", response_model=ShippingFeeResponse)
async def get_shipping_fee_endpoint(
    district: str = Query(..., description="District name"),
    ward: str = Query(..., description="Ward name"),
    default_fee: Optional[float] = Query(None, ge=0, description="Fee when the ward is unknown")
):
    """Shipping fee for a district/ward address"""
    return get_shipping_fee_for_address(district, ward, default_fee)


@app.post("/pricing/quote", response_model=PricingQuoteResponse)
async def quote_endpoint(
    quote_data: PricingQuoteRequest,
    current_user: dict = Depends(get_current_user)
):
    """
    Price an order: shipping fee, voucher discount and total

    The voucher must be held by the user, eligible, and the subtotal must
    reach its minimum order; otherwise it is left out of the total and the
    reason is returned in `voucher_rejected_reason`.
    """
    try:
        if quote_data.items is not None:
            subtotal = calculate_subtotal(quote_data.items)
        else:
            subtotal = quote_data.subtotal

        coordinates = quote_data.coordinates
        if coordinates is None and quote_data.address is not None:
            coordinates = resolve_coordinates(
                quote_data.address.district,
                quote_data.address.ward
            )

        voucher = None
        owned_ids = None
        if quote_data.voucher_id:
            voucher = await get_voucher_by_id(quote_data.voucher_id)
            if voucher is None:
                raise HTTPException(status_code=404, detail="Voucher not found")
            owned = await get_owned_vouchers(current_user["uid"])
            owned_ids = {vid for vid, qty in owned.items() if qty > 0}

        default_fee = quote_data.default_shipping_fee
        if default_fee is None:
            default_fee = settings.DEFAULT_SHIPPING_FEE

        return quote_order(
            subtotal=subtotal,
            voucher=voucher,
            coordinates=coordinates,
            default_shipping_fee=default_fee,
            owned_ids=owned_ids
        )
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=400, detail=str(e))


# ============================================
# RUN SERVER
# ============================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=False
    )
