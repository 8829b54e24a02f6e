"""
Django Stampman - Loyalty card ledger.

Usage:
    from stampman import LedgerService, LedgerError
    from stampman.gates import Gates, GateError, GateResult

    ledger = LedgerService()
    card = ledger.enroll("CAFE-CLUB", customer_id="cus_123")
    ledger.issue_stamps(card.uuid, 1, store_id="sto_01")

    # Gates validation
    Gates.balance_replay(card)
    Gates.qr_code_integrity(card)
"""


def __getattr__(name):
    if name == "LedgerService":
        from stampman.service import LedgerService

        return LedgerService
    if name == "LedgerError":
        from stampman.exceptions import LedgerError

        return LedgerError
    if name == "Gates":
        from stampman.gates import Gates

        return Gates
    if name == "GateError":
        from stampman.gates import GateError

        return GateError
    if name == "GateResult":
        from stampman.gates import GateResult

        return GateResult
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["LedgerService", "LedgerError", "Gates", "GateError", "GateResult"]
__version__ = "0.1.0"
