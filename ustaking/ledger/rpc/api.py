# MIT License
# Copyright (c) 2025 Hashborn

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from typing import Optional, Dict, Any
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from ...protocol.types.call import Call
from ...protocol.types.common import ProtocolError
from ...protocol.types.stake import StakeRecord
from ..core.node import StakingNode
from ..observability.metrics import metrics_registry, update_metrics
import logging

logger = logging.getLogger(__name__)

app = FastAPI(title="uStaking Node RPC")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Injected by the node CLI (or tests)
node: Optional[StakingNode] = None


class CallResponse(BaseModel):
    call_hash: str
    status: str
    result: Dict[str, Any] = {}


def _require_node() -> StakingNode:
    if not node:
        raise HTTPException(status_code=503, detail="Node not initialized")
    return node


def _stake_view(n: StakingNode, record: StakeRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "owner": record.owner,
        "stake_type": record.stake_type,
        "principal_amount": str(record.principal_amount),
        "created_at": record.created_at,
        "unlocks_at": n.staking.unlocks_at(record.id),
        "cash_back_claimed": record.cash_back_claimed,
        "withdrawn": record.withdrawn,
        "accrued_claimed": str(record.accrued_claimed),
        "pending_rewards": str(n.staking.pending_rewards(record.id)),
    }


@app.get("/status")
async def get_status():
    n = _require_node()
    return {
        "network": n.config.network_id,
        "token": {
            "name": n.token.name,
            "symbol": n.token.symbol,
            "decimals": n.token.decimals,
            "total_supply": str(n.token.total_supply),
            "max_supply": str(n.token.max_supply),
        },
        "staking_address": n.staking.address,
        "ref_wallet": n.staking.ref_wallet,
        "stake_count": n.staking.stake_count(),
        "total_staked": str(n.staking.total_staked()),
        "time": n.clock.now(),
    }


@app.get("/balance/{address}")
async def get_balance(address: str):
    n = _require_node()
    return {
        "address": address,
        "balance": str(n.token.balance_of(address)),
        "nonce": n.get_nonce(address),
    }


@app.get("/allowance/{owner}/{spender}")
async def get_allowance(owner: str, spender: str):
    n = _require_node()
    return {
        "owner": owner,
        "spender": spender,
        "allowance": str(n.token.allowance(owner, spender)),
    }


@app.get("/stakes/{address}")
async def get_stakes(address: str):
    n = _require_node()
    return {
        "address": address,
        "count": n.staking.stake_count_for(address),
        "ids": n.staking.all_stake_ids_for(address),
        "stakes": [_stake_view(n, r) for r in n.staking.get_records(address)],
    }


@app.get("/stake/{stake_id}")
async def get_stake(stake_id: int):
    n = _require_node()
    record = n.staking.get_stake(stake_id)
    if not record:
        raise HTTPException(status_code=404, detail="Stake not found")
    return _stake_view(n, record)


@app.get("/pending/{stake_id}")
async def get_pending_rewards(stake_id: int):
    n = _require_node()
    return {"stake_id": stake_id, "pending_rewards": str(n.staking.pending_rewards(stake_id))}


@app.get("/ref_wallet")
async def get_ref_wallet():
    n = _require_node()
    return {"ref_wallet": n.staking.ref_wallet}


@app.post("/call/send", response_model=CallResponse)
async def send_call(call: Call):
    n = _require_node()
    try:
        result = n.apply_call(call)
    except ProtocolError as e:
        return JSONResponse(
            status_code=400,
            content={
                "call_hash": call.hash_hex,
                "status": "rejected",
                "code": getattr(e, "code", "PROTOCOL_ERROR"),
                "message": str(e),
            },
        )
    return CallResponse(call_hash=call.hash_hex, status="applied", result=result)


@app.get("/metrics")
async def get_metrics():
    """Prometheus metrics endpoint."""
    n = _require_node()
    update_metrics(n)
    return Response(
        content=generate_latest(metrics_registry),
        media_type=CONTENT_TYPE_LATEST
    )
