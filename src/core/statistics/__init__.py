"""
Statistics over tickets and payments (read only).
"""

from .aggregators import (
    TicketStatistics,
    TicketStatusStats,
    PaymentStatistics,
    summarize_tickets,
    summarize_payments,
    is_emi_defaulter,
    find_emi_defaulters,
)
from .services import (
    StatisticsQueryDTO,
    EMIDefaulterDTO,
    TicketStatisticsService,
    PaymentStatisticsService,
    EMIDefaultersService,
)

__all__ = [
    "TicketStatistics",
    "TicketStatusStats",
    "PaymentStatistics",
    "summarize_tickets",
    "summarize_payments",
    "is_emi_defaulter",
    "find_emi_defaulters",
    "StatisticsQueryDTO",
    "EMIDefaulterDTO",
    "TicketStatisticsService",
    "PaymentStatisticsService",
    "EMIDefaultersService",
]
