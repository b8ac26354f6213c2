# backend/yugi/routes/v1/providers.py
"""
Provider ledger routes - API v1

Endpoints:
    GET /{provider_id}/ledger                          → Ledger summary
    GET /{provider_id}/ledger/pending-releases         → Held funds and release times
    GET /{provider_id}/withdrawals                     → Withdrawal history
    POST /{provider_id}/withdrawals                    → Request a withdrawal
    GET /{provider_id}/bank-accounts                   → List payout accounts
    POST /{provider_id}/bank-accounts                  → Add a payout account
    POST /{provider_id}/bank-accounts/{id}/default     → Make an account the default
    DELETE /{provider_id}/bank-accounts/{id}           → Remove an account
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, Response, status

from ...api.dependencies import get_settlement_ledger
from ...core.exceptions import DomainException
from ...schemas.ledger import (
    BankAccountCreate,
    BankAccountResponse,
    LedgerSummaryResponse,
    PendingReleaseResponse,
    PendingReleasesResponse,
    WithdrawalCreate,
    WithdrawalResponse,
)
from ...services.settlement_service import SettlementLedger
from .bookings import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["providers-v1"])


@router.get("/{provider_id}/ledger", response_model=LedgerSummaryResponse)
async def get_ledger_summary(
    provider_id: str,
    ledger: SettlementLedger = Depends(get_settlement_ledger),
) -> LedgerSummaryResponse:
    summary = await asyncio.to_thread(ledger.ledger_summary, provider_id)
    return LedgerSummaryResponse.from_domain(summary)


@router.get("/{provider_id}/ledger/pending-releases", response_model=PendingReleasesResponse)
async def get_pending_releases(
    provider_id: str,
    ledger: SettlementLedger = Depends(get_settlement_ledger),
) -> PendingReleasesResponse:
    releases = await asyncio.to_thread(ledger.pending_releases, provider_id)
    return PendingReleasesResponse(
        provider_id=provider_id,
        releases=[PendingReleaseResponse.from_domain(r) for r in releases],
    )


@router.get("/{provider_id}/withdrawals", response_model=List[WithdrawalResponse])
async def list_withdrawals(
    provider_id: str,
    ledger: SettlementLedger = Depends(get_settlement_ledger),
) -> List[WithdrawalResponse]:
    records = await asyncio.to_thread(ledger.list_withdrawals, provider_id)
    return [WithdrawalResponse.from_domain(r) for r in records]


@router.post(
    "/{provider_id}/withdrawals",
    response_model=WithdrawalResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"description": "Bank account not found or no default account"},
        422: {"description": "Amount exceeds available balance"},
    },
)
async def request_withdrawal(
    provider_id: str,
    payload: WithdrawalCreate,
    ledger: SettlementLedger = Depends(get_settlement_ledger),
) -> WithdrawalResponse:
    """Withdraw from the available balance. Omitting the account uses the default."""
    try:
        record = await asyncio.to_thread(
            ledger.request_withdrawal, provider_id, payload.bank_account_id, payload.amount
        )
        return WithdrawalResponse.from_domain(record)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{provider_id}/bank-accounts", response_model=List[BankAccountResponse])
async def list_bank_accounts(
    provider_id: str,
    ledger: SettlementLedger = Depends(get_settlement_ledger),
) -> List[BankAccountResponse]:
    accounts = await asyncio.to_thread(ledger.list_accounts, provider_id)
    return [BankAccountResponse.from_domain(a) for a in accounts]


@router.post(
    "/{provider_id}/bank-accounts",
    response_model=BankAccountResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_bank_account(
    provider_id: str,
    payload: BankAccountCreate,
    ledger: SettlementLedger = Depends(get_settlement_ledger),
) -> BankAccountResponse:
    try:
        account = await asyncio.to_thread(
            ledger.add_account,
            provider_id,
            payload.account_name,
            payload.account_number,
            payload.sort_code,
            payload.bank_name,
            payload.make_default,
        )
        return BankAccountResponse.from_domain(account)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{provider_id}/bank-accounts/{account_id}/default",
    response_model=BankAccountResponse,
    responses={404: {"description": "Bank account not found"}},
)
async def set_default_bank_account(
    provider_id: str,
    account_id: str,
    ledger: SettlementLedger = Depends(get_settlement_ledger),
) -> BankAccountResponse:
    try:
        account = await asyncio.to_thread(ledger.set_default, provider_id, account_id)
        return BankAccountResponse.from_domain(account)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete(
    "/{provider_id}/bank-accounts/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        404: {"description": "Bank account not found"},
        409: {"description": "A pending withdrawal targets this account"},
    },
)
async def remove_bank_account(
    provider_id: str,
    account_id: str,
    ledger: SettlementLedger = Depends(get_settlement_ledger),
) -> Response:
    try:
        await asyncio.to_thread(ledger.remove_account, provider_id, account_id)
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
