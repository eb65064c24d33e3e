from .network import Station, FuelType, Tank, Nozzle, Price, PaymentMethod, Client
from .auth import User
from .shifts import Shift
from .sales import Sale, SalePayment
from .cash import CashRegister, PaymentDetail
from .debts import PompisteDebt, DebtPayment

__all__ = [
    'Station', 'FuelType', 'Tank', 'Nozzle', 'Price', 'PaymentMethod', 'Client',
    'User',
    'Shift',
    'Sale', 'SalePayment',
    'CashRegister', 'PaymentDetail',
    'PompisteDebt', 'DebtPayment',
]
