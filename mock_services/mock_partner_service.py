"""
mock_partner_service.py — Mock Implementation of the Partner Loyalty API (REST)

This module provides a simulated partner API for local end-to-end runs of the
redemption service. It exposes a FastAPI application that mimics the partner's
membership coupon endpoint.

Simulation Scenarios:
    • Code accepted
    • Rejected code (HTTP 422) for codes starting with "Z"
    • Server error (HTTP 503) for codes ending in "0000"
    • Slow response for codes ending in "9999" (exceeds the client timeout)

Endpoints:
    POST /cs2/api/membership/save_membership_coupon.php — Stores a membership code.
    GET  /codes                                         — Lists received codes.

Port:
    Default: 8001 (HTTP)
"""

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
import logging
import time

app = FastAPI(title="Mock Partner Loyalty API")
logging.basicConfig(level=logging.INFO)

RECEIVED_CODES = []


class MembershipCoupon(BaseModel):
    """
    Represents the partner's coupon payload.

    Attributes:
        membership_code (str): The code issued for a Shopify order.
    """
    membership_code: str


@app.post("/cs2/api/membership/save_membership_coupon.php")
def save_membership_coupon(request: MembershipCoupon):
    """
    Stores a membership code.

    The outcome is chosen from the code itself:
        - Starts with "Z"      → rejected (HTTP 422)
        - Ends with "0000"     → unavailable (HTTP 503)
        - Ends with "9999"     → answers after 15 seconds
        - Anything else        → accepted

    Returns:
        dict: {"status": "success", "membership_code": ...} on success.
    """
    code = request.membership_code
    logging.info(f"[Partner] Code received: {code}")

    if code.startswith("Z"):
        logging.warning(f"[Partner] Code {code} rejected.")
        raise HTTPException(status_code=422, detail={"status": "error", "message": "Invalid code"})

    if code.endswith("0000"):
        logging.error(f"[Partner] Simulating outage for {code}.")
        raise HTTPException(status_code=503, detail="Service unavailable")

    if code.endswith("9999"):
        logging.info(f"[Partner] Simulating slow response for {code}...")
        time.sleep(15)

    RECEIVED_CODES.append(code)
    return {"status": "success", "membership_code": code}


@app.get("/codes")
def list_codes():
    return {"codes": RECEIVED_CODES}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
