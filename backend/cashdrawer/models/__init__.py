from .shifts import ShiftRecord, CashMovementRecord, SalePostingRecord, ShiftAuditEvent

__all__ = [
    'ShiftRecord', 'CashMovementRecord', 'SalePostingRecord', 'ShiftAuditEvent',
]
