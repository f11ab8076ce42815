"""
Escrow wallet lifecycle, signature checks and compliance.

Guards against:
1. Wallets below the contract minimum reaching the database
2. Releases authorized by keys that are not wallet signatories
3. Duplicate signer keys counting twice toward the threshold
"""
import json
import uuid

import httpx
import pytest
from pydantic import ValidationError
from solders.keypair import Keypair

from app.connectors.solana_rpc import SolanaRPCConnector
from app.exceptions import (
    InsufficientSignaturesError,
    WalletError,
    WalletNotFoundError,
    WalletStateError,
)
from app.models.escrow import EscrowWallet
from app.services.escrow_wallet_service import (
    EscrowWalletService,
    assess_compliance,
    keypair_from_base58,
    keypair_to_base58,
)
from conftest import _run


class StubRPC:
    def __init__(self, balance=0.0, transactions=None):
        self.balance = balance
        self.transactions = transactions or []

    async def get_balance(self, address):
        return self.balance

    async def get_recent_transactions(self, address, limit=20):
        return list(self.transactions)


class DownRPC:
    async def get_balance(self, address):
        raise httpx.ConnectError("rpc unreachable")

    async def get_recent_transactions(self, address, limit=20):
        raise httpx.ConnectError("rpc unreachable")


def _params(signers, **overrides):
    params = {
        "client_id": f"client-{uuid.uuid4().hex[:8]}",
        "contract_value": 250_000,
        "currency": "USDC",
        "signatories": [str(kp.pubkey()) for kp in signers],
        "required_signatures": 2,
    }
    params.update(overrides)
    return params


@pytest.fixture
def signers():
    return [Keypair(), Keypair(), Keypair()]


@pytest.fixture
def service():
    return EscrowWalletService(rpc=StubRPC(balance=1.5), service_keypair=Keypair())


# ---------------------------------------------------------------------------
# Creation and validation
# ---------------------------------------------------------------------------

def test_contract_below_minimum_fails_before_persisting(db, service, signers):
    before = db.query(EscrowWallet).count()
    with pytest.raises(ValidationError):
        service.create_escrow_wallet(db, _params(signers, contract_value=199_999))
    assert db.query(EscrowWallet).count() == before


def test_invalid_signatory_address_rejected(db, service, signers):
    params = _params(signers)
    params["signatories"][0] = "not-a-solana-address"
    with pytest.raises(ValidationError):
        service.create_escrow_wallet(db, params)


def test_duplicate_signatories_rejected(db, service, signers):
    params = _params(signers)
    params["signatories"] = [params["signatories"][0]] * 2
    with pytest.raises(ValidationError):
        service.create_escrow_wallet(db, params)


def test_threshold_cannot_exceed_signatories_plus_service(db, service, signers):
    with pytest.raises(ValidationError):
        service.create_escrow_wallet(db, _params(signers[:2], required_signatures=4))


def test_create_persists_wallet_and_audit_entry(db, service, signers):
    wallet = service.create_escrow_wallet(db, _params(signers, compliance_level="enhanced"))

    assert wallet.id.startswith("ESC-")
    assert wallet.status == "active"
    assert wallet.service_address == service.service_address
    assert wallet.compliance_level == "enhanced"
    assert [e.action for e in wallet.audit_trail] == ["WALLET_CREATED"]


def test_same_client_can_create_twice(db, service, signers, monkeypatch):
    monkeypatch.setattr("app.services.escrow_wallet_service.now_ms", lambda: 1_700_000_000_000)
    params = _params(signers)

    first = service.create_escrow_wallet(db, params)
    second = service.create_escrow_wallet(db, params)

    assert first.id != second.id
    assert first.id.startswith(f"ESC-1700000000000-{params['client_id']}-")


def test_wallet_info_includes_chain_data(db, service, signers):
    wallet = service.create_escrow_wallet(db, _params(signers))

    info = _run(service.get_wallet_info(db, wallet.id))

    assert info["balance"] == 1.5
    assert info["chain_error"] is None
    assert info["metadata"]["contract_value"] == 250_000.0


def test_wallet_info_degrades_when_rpc_down(db, signers):
    service = EscrowWalletService(rpc=DownRPC(), service_keypair=Keypair())
    wallet = service.create_escrow_wallet(db, _params(signers))

    info = _run(service.get_wallet_info(db, wallet.id))

    assert info["balance"] == 0.0
    assert info["transactions"] == []
    assert "unreachable" in info["chain_error"]


@pytest.mark.parametrize("response", [
    httpx.Response(200, text="<html>gateway</html>"),
    httpx.Response(200, json=[1, 2]),
])
def test_wallet_info_degrades_on_unusable_rpc_body(db, signers, response):
    rpc = SolanaRPCConnector(rpc_url="http://rpc.test", transport=httpx.MockTransport(lambda request: response))
    service = EscrowWalletService(rpc=rpc, service_keypair=Keypair())
    wallet = service.create_escrow_wallet(db, _params(signers))

    info = _run(service.get_wallet_info(db, wallet.id))

    assert info["balance"] == 0.0
    assert info["transactions"] == []
    assert info["chain_error"].startswith("getBalance returned")


def test_unknown_wallet(db, service):
    with pytest.raises(WalletNotFoundError):
        service.get_wallet(db, "ESC-0-nobody")


# ---------------------------------------------------------------------------
# Release
# ---------------------------------------------------------------------------

def test_key_roundtrip_through_base58():
    kp = Keypair()
    assert keypair_from_base58(keypair_to_base58(kp)).pubkey() == kp.pubkey()


def test_garbage_key_is_wallet_error():
    with pytest.raises(WalletError):
        keypair_from_base58("0OIl")


def test_release_with_enough_signatures(db, service, signers):
    wallet = service.create_escrow_wallet(db, _params(signers))
    keys = [keypair_to_base58(signers[0]), keypair_to_base58(service.service_keypair)]

    reference = service.release_escrow_funds(db, wallet.id, str(Keypair().pubkey()), 1000, keys)

    db.refresh(wallet)
    assert len(reference) == 64
    assert wallet.status == "released"
    release = wallet.audit_trail[-1]
    assert release.action == "FUNDS_RELEASED"
    assert release.transaction_hash == reference
    assert float(release.amount) == 1000.0


def test_duplicate_and_foreign_keys_do_not_count(db, service, signers):
    wallet = service.create_escrow_wallet(db, _params(signers))
    same_key = keypair_to_base58(signers[0])
    outsider = keypair_to_base58(Keypair())

    with pytest.raises(InsufficientSignaturesError) as exc:
        service.release_escrow_funds(
            db, wallet.id, str(Keypair().pubkey()), 10, [same_key, same_key, outsider]
        )
    assert exc.value.required == 2
    assert exc.value.provided == 1


def test_release_requires_active_wallet(db, service, signers):
    wallet = service.create_escrow_wallet(db, _params(signers))
    service.lock_wallet(db, wallet.id, "ops", "investigation")
    keys = [keypair_to_base58(signers[0]), keypair_to_base58(signers[1])]

    with pytest.raises(WalletStateError):
        service.release_escrow_funds(db, wallet.id, str(Keypair().pubkey()), 10, keys)


# ---------------------------------------------------------------------------
# Lock / dispute
# ---------------------------------------------------------------------------

def test_lock_then_dispute(db, service, signers):
    wallet = service.create_escrow_wallet(db, _params(signers))

    service.lock_wallet(db, wallet.id, "ops", "suspicious activity")
    wallet = service.open_dispute(db, wallet.id, "client", "delivery incomplete")

    assert wallet.status == "disputed"
    assert [e.action for e in wallet.audit_trail] == ["WALLET_CREATED", "WALLET_LOCKED", "DISPUTE_OPENED"]
    assert wallet.audit_trail[1].actor == "ops"


def test_cannot_lock_twice(db, service, signers):
    wallet = service.create_escrow_wallet(db, _params(signers))
    service.lock_wallet(db, wallet.id, "ops")
    with pytest.raises(WalletStateError):
        service.lock_wallet(db, wallet.id, "ops")


# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("value, level, volume, status", [
    (2_000_000, "standard", 0, "non_compliant"),
    (2_000_000, "bank-level", 0, "compliant"),
    (500_000, "standard", 560_000, "requires_review"),
    (500_000, "enhanced", 550_000, "compliant"),
])
def test_assess_compliance(value, level, volume, status):
    assert assess_compliance(value, level, volume) == status


def test_compliance_report_counts_releases(db, signers):
    service = EscrowWalletService(
        rpc=StubRPC(transactions=[{"signature": "s1", "amount": -0.5}]), service_keypair=Keypair()
    )
    wallet = service.create_escrow_wallet(db, _params(signers, contract_value=200_000))
    keys = [keypair_to_base58(signers[0]), keypair_to_base58(signers[2])]
    service.release_escrow_funds(db, wallet.id, str(Keypair().pubkey()), 250_000, keys)

    report = _run(service.generate_compliance_report(db, wallet.id))

    assert report["total_transactions"] == 1
    assert report["total_volume"] == pytest.approx(250_000.5)
    assert report["compliance_status"] == "requires_review"
    assert report["status"] == "released"


# ---------------------------------------------------------------------------
# Solana RPC connector
# ---------------------------------------------------------------------------

def test_rpc_balance_in_sol():
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"value": 2_500_000_000}})

    rpc = SolanaRPCConnector(rpc_url="http://rpc.test", transport=httpx.MockTransport(handler))
    assert _run(rpc.get_balance(str(Keypair().pubkey()))) == 2.5


def test_rpc_recent_transactions_use_fee_payer_delta():
    def handler(request):
        method = json.loads(request.content)["method"]
        if method == "getSignaturesForAddress":
            result = [{"signature": "sig1", "blockTime": 100, "err": None}]
        else:
            result = {"meta": {"preBalances": [3_000_000_000], "postBalances": [1_000_000_000]}}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})

    rpc = SolanaRPCConnector(rpc_url="http://rpc.test", transport=httpx.MockTransport(handler))
    txs = _run(rpc.get_recent_transactions("addr"))

    assert txs == [{"signature": "sig1", "block_time": 100, "amount": 2.0, "status": "success"}]


def test_rpc_signature_without_id_is_described():
    def handler(request):
        method = json.loads(request.content)["method"]
        if method == "getSignaturesForAddress":
            result = [{"blockTime": 100, "err": {"InstructionError": []}}]
        else:
            result = None
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})

    rpc = SolanaRPCConnector(rpc_url="http://rpc.test", transport=httpx.MockTransport(handler))
    txs = _run(rpc.get_recent_transactions("addr"))

    assert txs == [{"signature": None, "block_time": 100, "amount": 0.0, "status": "failed"}]
