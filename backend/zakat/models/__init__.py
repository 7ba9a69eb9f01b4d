from .auth import User, SessionToken
from .regions import Group, Subdivision
from .zakat import MasterZakatRate, Payer, PayerName, Donation
from .distribution import Beneficiary, Disbursement, AllocationLock

__all__ = [
    'User', 'SessionToken',
    'Group', 'Subdivision',
    'MasterZakatRate', 'Payer', 'PayerName', 'Donation',
    'Beneficiary', 'Disbursement', 'AllocationLock',
]
