"""
mock_shopify_admin.py — Mock Implementation of the Shopify Admin API

This module simulates the two Admin API calls the redemption service makes,
so the full webhook flow can be exercised locally (point SHOP_DOMAIN at this
server through a TLS-terminating proxy, or use it from tests).

Simulation Scenarios:
    • Successful orderUpdate (note echoed back)
    • userErrors for order IDs starting with "404"
    • Response without a note for order IDs starting with "204"
    • Missing/invalid access token (HTTP 401)

Endpoints:
    POST /admin/api/{version}/graphql.json — orderUpdate mutation
    GET  /admin/api/{version}/orders.json  — order lookup by name

Port:
    Default: 8002 (HTTP)
"""

from typing import Optional

from fastapi import FastAPI, Header, HTTPException, Query
from pydantic import BaseModel
import logging

app = FastAPI(title="Mock Shopify Admin API")
logging.basicConfig(level=logging.INFO)

ACCESS_TOKEN = "shpat_mock"

# Order ID → current note
ORDER_NOTES = {}


class GraphQLRequest(BaseModel):
    query: str
    variables: dict = {}


def _check_token(token: Optional[str]):
    if token != ACCESS_TOKEN:
        raise HTTPException(status_code=401, detail={"errors": "Invalid API key or access token"})


@app.post("/admin/api/{version}/graphql.json")
def graphql(request: GraphQLRequest, version: str,
            access_token: Optional[str] = Header(None, alias="X-Shopify-Access-Token")):
    """
    Handles the orderUpdate mutation and stores the note per order.

    Returns:
        dict: GraphQL response with `data.orderUpdate.order` and `userErrors`.
    """
    _check_token(access_token)
    order_input = request.variables.get("input", {})
    gid = order_input.get("id", "")
    order_id = gid.rsplit("/", 1)[-1]
    logging.info(f"[Shopify {version}] orderUpdate for {gid}")

    if order_id.startswith("404"):
        return {"data": {"orderUpdate": {"order": None,
                                         "userErrors": [{"field": ["id"], "message": "Order does not exist"}]}}}

    if order_id.startswith("204"):
        return {"data": {"orderUpdate": {"order": {"id": gid, "note": None}, "userErrors": []}}}

    ORDER_NOTES[order_id] = order_input.get("note")
    return {"data": {"orderUpdate": {"order": {"id": gid, "note": ORDER_NOTES[order_id]}, "userErrors": []}}}


@app.get("/admin/api/{version}/orders.json")
def orders(version: str, name: str = Query(...), status: str = Query("open"),
           access_token: Optional[str] = Header(None, alias="X-Shopify-Access-Token")):
    """Returns a single fake order for every name, with the note stored so far."""
    _check_token(access_token)
    order_id = "".join(ch for ch in name if ch.isdigit()) or "1"
    return {"orders": [{"id": int(order_id), "name": name, "note": ORDER_NOTES.get(order_id)}]}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8002)
