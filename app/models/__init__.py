"""
Database models package
"""

from .organizer import Organizer
from .event import Event, EventMessage
from .table import Table, TableAvailability, TableProduct
from .reservation import TableReservation
from .code import Code, CodeBatch, CODE_TYPES
from .person import Person
from .promoter import Promoter
from .staff import Staff, StaffRole
from .ticket import Ticket
from .payment import Payment, PaymentWebhookEvent
from .settings import BrandSettings, LayoutSettings
from .process_log import ProcessLog
from .scan_log import ScanLog

__all__ = [
    "Organizer",
    "Event",
    "EventMessage",
    "Table",
    "TableAvailability",
    "TableProduct",
    "TableReservation",
    "Code",
    "CodeBatch",
    "CODE_TYPES",
    "Person",
    "Promoter",
    "Staff",
    "StaffRole",
    "Ticket",
    "Payment",
    "PaymentWebhookEvent",
    "BrandSettings",
    "LayoutSettings",
    "ProcessLog",
    "ScanLog",
]
