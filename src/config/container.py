"""
Dependency injection container.

Wires repositories, the unit of work and the use cases with
dependency-injector.

Patterns:
- Singleton: one instance per process (repositories, publisher, renderer)
- Factory: new instance per call (services, unit of work)

Adapter classes are imported lazily so the container module can be
imported before Django is set up (Celery workers, tests).
"""

import importlib
from typing import Any, Callable, Dict, Optional

from dependency_injector import containers, providers

from src.core.payments.gateway import HmacSignatureVerifier
from src.core.payments.ports import InMemoryInvoiceRenderer, InMemoryPaymentRepository, StaticPartyDirectory
from src.core.payments import use_cases as payment_use_cases
from src.core.shared.interfaces import InMemorySequenceGenerator
from src.core.statistics import services as statistics_services
from src.core.tickets import use_cases as ticket_use_cases
from src.core.tickets.ports import InMemoryTicketRepository
from src.core.tickets.sla import SLAPolicy

ADAPTERS = 'src.adapters.django_app'


def _lazy(module: str, name: str) -> Callable[..., Any]:
    """Callable that imports ``module.name`` on first use and calls it."""

    def build(*args, **kwargs):
        return getattr(importlib.import_module(f'{ADAPTERS}.{module}'), name)(*args, **kwargs)

    build.__name__ = name
    return build


DEFAULT_CONFIG: Dict[str, Any] = {
    'sla_hours': {},
    'emi_grace_days': 7,
    'ticket_number_prefix': 'TKT',
    'receipt_number_prefix': 'REC',
    'payment_gateway_provider': 'razorpay',
    'razorpay_key_secret': '',
    'razorpay_webhook_secret': '',
    'invoice_directory': 'invoices',
    'event_publisher_mode': 'logging',
}


def settings_config() -> Dict[str, Any]:
    """Container configuration read from Django settings, with defaults."""
    from django.conf import settings

    return {key: getattr(settings, key.upper(), default) for key, default in DEFAULT_CONFIG.items()}


class Container(containers.DeclarativeContainer):
    """
    Production container.

    Example:
        container = get_container()
        service = container.create_ticket_service()
        output = service.execute(actor, input_dto)
    """

    config = providers.Configuration()

    # =========================================================================
    # Infrastructure
    # =========================================================================

    event_publisher = providers.Singleton(
        _lazy('events.publishers', 'get_event_publisher'),
        mode=config.event_publisher_mode,
    )

    sequence_generator = providers.Singleton(_lazy('sequences.generator', 'DjangoSequenceGenerator'))

    sla_policy = providers.Singleton(SLAPolicy.from_mapping, config.sla_hours)

    signature_verifier = providers.Singleton(
        HmacSignatureVerifier,
        key_secret=config.razorpay_key_secret,
        webhook_secret=config.razorpay_webhook_secret,
    )

    invoice_renderer = providers.Singleton(
        _lazy('payments.invoices', 'HtmlInvoiceRenderer'),
        directory=config.invoice_directory,
    )

    party_directory = providers.Singleton(_lazy('payments.invoices', 'DjangoPartyDirectory'))

    # =========================================================================
    # Repositories
    # =========================================================================

    ticket_repository = providers.Singleton(_lazy('tickets.repositories', 'DjangoTicketRepository'))

    payment_repository = providers.Singleton(_lazy('payments.repositories', 'DjangoPaymentRepository'))

    # =========================================================================
    # Unit of Work (new instance per use case)
    # =========================================================================

    unit_of_work = providers.Factory(
        _lazy('shared.unit_of_work', 'DjangoUnitOfWork'),
        event_publisher=event_publisher,
    )

    # =========================================================================
    # Ticket use cases
    # =========================================================================

    create_ticket_service = providers.Factory(
        ticket_use_cases.CreateTicketService,
        ticket_repo=ticket_repository,
        sequence=sequence_generator,
        uow=unit_of_work,
        sla_policy=sla_policy,
        number_prefix=config.ticket_number_prefix,
    )

    add_comment_service = providers.Factory(
        ticket_use_cases.AddCommentService, ticket_repo=ticket_repository, uow=unit_of_work,
    )

    assign_ticket_service = providers.Factory(
        ticket_use_cases.AssignTicketService, ticket_repo=ticket_repository, uow=unit_of_work,
    )

    request_customer_info_service = providers.Factory(
        ticket_use_cases.RequestCustomerInfoService, ticket_repo=ticket_repository, uow=unit_of_work,
    )

    resolve_ticket_service = providers.Factory(
        ticket_use_cases.ResolveTicketService, ticket_repo=ticket_repository, uow=unit_of_work,
    )

    close_ticket_service = providers.Factory(
        ticket_use_cases.CloseTicketService, ticket_repo=ticket_repository, uow=unit_of_work,
    )

    reopen_ticket_service = providers.Factory(
        ticket_use_cases.ReopenTicketService, ticket_repo=ticket_repository, uow=unit_of_work,
    )

    rate_ticket_service = providers.Factory(
        ticket_use_cases.RateTicketService, ticket_repo=ticket_repository, uow=unit_of_work,
    )

    delete_ticket_service = providers.Factory(
        ticket_use_cases.DeleteTicketService, ticket_repo=ticket_repository, uow=unit_of_work,
    )

    sweep_sla_breaches_service = providers.Factory(
        ticket_use_cases.SweepSLABreachesService, ticket_repo=ticket_repository, uow=unit_of_work,
    )

    # Read only, no UoW
    get_ticket_service = providers.Factory(ticket_use_cases.GetTicketService, ticket_repo=ticket_repository)

    list_tickets_service = providers.Factory(ticket_use_cases.ListTicketsService, ticket_repo=ticket_repository)

    # =========================================================================
    # Payment use cases
    # =========================================================================

    generate_invoice_service = providers.Factory(
        payment_use_cases.GenerateInvoiceService,
        payment_repo=payment_repository,
        uow=unit_of_work,
        renderer=invoice_renderer,
        directory=party_directory,
    )

    initiate_payment_service = providers.Factory(
        payment_use_cases.InitiatePaymentService,
        payment_repo=payment_repository,
        uow=unit_of_work,
        gateway_provider=config.payment_gateway_provider,
    )

    verify_payment_service = providers.Factory(
        payment_use_cases.VerifyPaymentService,
        payment_repo=payment_repository,
        sequence=sequence_generator,
        uow=unit_of_work,
        verifier=signature_verifier,
        invoices=generate_invoice_service,
        receipt_prefix=config.receipt_number_prefix,
    )

    update_payment_status_service = providers.Factory(
        payment_use_cases.UpdatePaymentStatusService,
        payment_repo=payment_repository,
        sequence=sequence_generator,
        uow=unit_of_work,
        invoices=generate_invoice_service,
        receipt_prefix=config.receipt_number_prefix,
    )

    initiate_refund_service = providers.Factory(
        payment_use_cases.InitiateRefundService, payment_repo=payment_repository, uow=unit_of_work,
    )

    update_refund_status_service = providers.Factory(
        payment_use_cases.UpdateRefundStatusService, payment_repo=payment_repository, uow=unit_of_work,
    )

    process_webhook_service = providers.Factory(
        payment_use_cases.ProcessGatewayWebhookService,
        payment_repo=payment_repository,
        sequence=sequence_generator,
        uow=unit_of_work,
        verifier=signature_verifier,
        invoices=generate_invoice_service,
        receipt_prefix=config.receipt_number_prefix,
    )

    get_payment_service = providers.Factory(payment_use_cases.GetPaymentService, payment_repo=payment_repository)

    list_payments_service = providers.Factory(payment_use_cases.ListPaymentsService, payment_repo=payment_repository)

    # =========================================================================
    # Statistics
    # =========================================================================

    ticket_statistics_service = providers.Factory(
        statistics_services.TicketStatisticsService, ticket_repo=ticket_repository,
    )

    payment_statistics_service = providers.Factory(
        statistics_services.PaymentStatisticsService, payment_repo=payment_repository,
    )

    emi_defaulters_service = providers.Factory(
        statistics_services.EMIDefaultersService,
        payment_repo=payment_repository,
        grace_days=config.emi_grace_days,
    )


class TestingContainer(containers.DeclarativeContainer):
    """
    In-memory infrastructure. Overrides the providers of the same name
    on a Container, so every use case runs without a database.

    Example:
        container = get_testing_container()
        container.create_ticket_service().execute(actor, input_dto)
        container.event_publisher().get_events_by_type("TicketCreatedEvent")
    """

    event_publisher = providers.Singleton(_lazy('events.publishers', 'InMemoryEventPublisher'))

    sequence_generator = providers.Singleton(InMemorySequenceGenerator)

    invoice_renderer = providers.Singleton(InMemoryInvoiceRenderer)

    party_directory = providers.Singleton(StaticPartyDirectory)

    ticket_repository = providers.Singleton(InMemoryTicketRepository)

    payment_repository = providers.Singleton(InMemoryPaymentRepository)

    unit_of_work = providers.Factory(
        _lazy('shared.unit_of_work', 'InMemoryUnitOfWork'),
        event_publisher=event_publisher,
    )


# =============================================================================
# Global container
# =============================================================================

_container: Optional[Container] = None


def get_container() -> Container:
    """
    Process wide container, configured from Django settings on first use.
    """
    global _container

    if _container is None:
        _container = Container()
        _container.config.from_dict(settings_config())

    return _container


def get_testing_container(config: Optional[Dict[str, Any]] = None) -> Container:
    """A fresh Container with the in-memory infrastructure swapped in."""
    container = Container()
    container.config.from_dict({**DEFAULT_CONFIG, **(config or {})})
    container.override(TestingContainer())
    return container


def reset_container() -> None:
    """Drop the global container (tests)."""
    global _container
    _container = None
