"""Order service layer (Use Cases).

Orchestrates order creation, the status machine, driver assignment,
payment updates, invoicing and the admin dashboard figures.  Each
command runs in one database transaction; the service defines the
unit-of-work boundary.

Failure semantics:
- stock failures while creating an order are fatal and compensated
  (see ``OrderAggregateBuilder``);
- stock restoration on cancellation is best-effort: a failure is
  logged as ``CompensationFailure`` and the status change still lands;
- notifications are best-effort: they go through the outbox and a
  failure to enqueue one never fails the status change.
"""

from __future__ import annotations

from datetime import timedelta, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import structlog
from django.db import transaction
from django.utils import timezone

from modules.appsettings.services import AppSettingsService
from modules.notifications.dispatcher import DispatchResult, NotificationDispatcher
from modules.notifications.models import NotificationType
from modules.orders.builder import OrderAggregateBuilder
from modules.orders.constants import DEFAULT_CANCEL_REASON, OrderStatus, PaymentStatus
from modules.orders.dtos import (
    DailyOrdersDTO,
    DashboardSummaryDTO,
    HourlyOrdersDTO,
    InvoiceDTO,
    OrderOutputDTO,
    OrderQueryParams,
    StatusCountDTO,
    TopProductDTO,
)
from modules.orders.exceptions import InvalidOrderStatus, OrderNotFound
from modules.products.ledger import StockItem, StockLedger
from modules.users.exceptions import UserNotFound
from modules.users.models import UserRole
from shared.domain.exceptions import CompensationFailure

if TYPE_CHECKING:
    from modules.orders.dtos import CreateOrderDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository
    from modules.users.models import AppUser
    from modules.users.repositories.interfaces import IUserRepository

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


class OrderService:
    """Application service for Order use-cases.

    Receives repositories and collaborators via constructor injection.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        user_repository: IUserRepository,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings_service: Optional[AppSettingsService] = None,
        ledger: Optional[StockLedger] = None,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._user_repo = user_repository
        self._ledger = ledger or StockLedger(product_repository)
        self._builder = OrderAggregateBuilder(order_repository, self._ledger)
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._settings = settings_service or AppSettingsService()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Reserve stock and persist the order with its items.

        Raises:
            UserNotFound: ``user_id`` is set but does not resolve.
            ProductNotFound: a product does not exist.
            InsufficientStock: not enough stock for a line.
            PersistenceError: the header or the items could not be stored.
        """
        if dto.user_id is not None and not self._user_repo.get_by_id(str(dto.user_id)):
            raise UserNotFound(f"User {dto.user_id} not found.")
        return self._builder.build(dto)

    def create_guest_order(self, dto: CreateOrderDTO) -> Order:
        return self.create_order(dto.as_guest())

    # ------------------------------------------------------------------
    # Status machine
    # ------------------------------------------------------------------

    @transaction.atomic
    def update_order_status(self, order_id: str, new_status: str) -> Order:
        """Move an order to *new_status*.

        Cancelling restores stock (best-effort).  Completing an order that
        has a driver notifies the customer and every active admin.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: transition is not allowed.
        """
        order = self._lock_order(order_id)
        log = logger.bind(
            order_id=str(order.id),
            current_status=order.status,
            new_status=new_status,
        )

        if order.status == new_status:
            log.info("order.status_unchanged")
            return order

        if not order.can_transition_to(new_status):
            log.warning("order.invalid_transition")
            raise InvalidOrderStatus(
                f"Cannot transition from {order.status} to {new_status}."
            )

        if new_status == OrderStatus.CANCELLED:
            self._restore_stock(order)

        self._order_repo.update(order, {"status": new_status})
        log.info("order.status_updated")

        order = self._reload(order)
        if new_status == OrderStatus.COMPLETED and order.assigned_driver_id:
            self._best_effort(self._notify_completion, order)
        return order

    @transaction.atomic
    def cancel_order(self, order_id: str, reason: Optional[str] = None) -> Order:
        """Cancel an order and give its stock back.

        Idempotent: an already-cancelled order is returned unchanged and
        its stock is not restored a second time.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: the order is already completed.
        """
        order = self._lock_order(order_id)
        log = logger.bind(order_id=str(order.id), current_status=order.status)

        if order.status == OrderStatus.CANCELLED:
            log.info("order.already_cancelled")
            return order

        if not order.can_transition_to(OrderStatus.CANCELLED):
            log.warning("order.cancel_not_allowed")
            raise InvalidOrderStatus(f"Cannot cancel order in status {order.status}.")

        self._restore_stock(order)

        order.append_note(f"Cancelled: {reason or DEFAULT_CANCEL_REASON}")
        self._order_repo.update(
            order, {"status": OrderStatus.CANCELLED, "notes": order.notes}
        )
        log.info("order.cancelled", reason=reason or DEFAULT_CANCEL_REASON)
        return self._reload(order)

    @transaction.atomic
    def assign_driver_to_order(
        self,
        order_id: str,
        driver_id: str,
        admin_id: Optional[str] = None,
    ) -> Order:
        """Assign a driver and notify them.

        Raises:
            OrderNotFound: order does not exist.
            UserNotFound: *driver_id* is not a user with the driver role.
            InvalidOrderStatus: the order is completed or cancelled.
        """
        order = self._lock_order(order_id)
        if order.is_terminal:
            raise InvalidOrderStatus(
                f"Cannot assign a driver to an order in status {order.status}."
            )

        driver = self._user_repo.get_driver(str(driver_id))
        if driver is None:
            raise UserNotFound(f"Driver {driver_id} not found.")

        self._order_repo.update(order, {"assigned_driver": driver})
        logger.info(
            "order.driver_assigned", order_id=str(order.id), driver_id=str(driver.id)
        )

        order = self._reload(order)
        self._best_effort(self._notify_driver, order, driver, admin_id)
        return order

    @transaction.atomic
    def update_payment_status(self, order_id: str, payment_status: str) -> Order:
        """Raises ``ValueError`` for an unknown payment status."""
        if payment_status not in PaymentStatus.values:
            raise ValueError(
                f"Unknown payment status '{payment_status}'. "
                f"Allowed: {', '.join(PaymentStatus.values)}."
            )
        order = self._lock_order(order_id)
        self._order_repo.update(order, {"payment_status": payment_status})
        logger.info(
            "order.payment_status_updated",
            order_id=str(order.id),
            payment_status=payment_status,
        )
        return self._reload(order)

    @transaction.atomic
    def delete_order(self, order_id: str) -> None:
        """Hard-delete an order and its items (admin path).

        Raises:
            OrderNotFound: order does not exist.
        """
        if not self._order_repo.delete(order_id):
            raise OrderNotFound(f"Order {order_id} not found.")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order_by_id(self, order_id: str) -> Order:
        """Raises ``OrderNotFound`` if the order does not exist."""
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def get_all_orders(self, params: Optional[OrderQueryParams] = None) -> Dict[str, Any]:
        params = params or OrderQueryParams()
        orders, count = self._order_repo.list(params)
        return {
            "orders": orders,
            "count": count,
            "limit": params.limit,
            "offset": params.offset,
        }

    def get_user_orders(self, user_id: str) -> List[Order]:
        orders, _ = self._order_repo.list(
            OrderQueryParams(user_id=user_id, limit=100)
        )
        return orders

    def get_driver_orders(self, driver_id: str) -> List[Order]:
        orders, _ = self._order_repo.list(
            OrderQueryParams(assigned_driver_id=driver_id, limit=100)
        )
        return orders

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def get_order_counts_by_status(self) -> List[StatusCountDTO]:
        """One entry per status, zero-filled, in status-machine order."""
        counts = self._order_repo.count_by_status()
        return [
            StatusCountDTO(status=value, count=counts.get(value, 0))
            for value in OrderStatus.values
        ]

    def get_orders_history(self, days: int = 30) -> List[DailyOrdersDTO]:
        """Orders per day over the last *days* days, today included.

        Days without orders are reported with zero count and total.
        """
        today = timezone.localdate()
        first = today - timedelta(days=days - 1)
        rows = {row["day"]: row for row in self._order_repo.daily_totals(first)}
        history = []
        for offset in range(days):
            day = first + timedelta(days=offset)
            row = rows.get(day, {})
            history.append(
                DailyOrdersDTO(
                    day=day,
                    count=row.get("count", 0),
                    total=(row.get("total") or Decimal("0")).quantize(CENT),
                )
            )
        return history

    def get_top_selling_products(self, limit: int = 5) -> List[TopProductDTO]:
        return [
            TopProductDTO(**row)
            for row in self._order_repo.top_selling_products(limit)
        ]

    def get_dashboard_summary(self) -> DashboardSummaryDTO:
        total_orders, revenue = self._order_repo.completed_totals()
        return DashboardSummaryDTO(
            total_orders=total_orders,
            total_revenue=revenue.quantize(CENT),
            total_customers=self._user_repo.count_by_role(UserRole.CUSTOMER),
            total_products=self._product_repo.count(),
        )

    def get_todays_orders(self, tz: tzinfo) -> List[HourlyOrdersDTO]:
        """24 hourly buckets for the current calendar day in *tz*."""
        start = timezone.localtime(timezone=tz).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        end = start + timedelta(days=1)
        rows = {
            row["hour"]: row
            for row in self._order_repo.hourly_totals(start, end, tz)
        }
        return [
            HourlyOrdersDTO(
                hour=hour,
                count=rows.get(hour, {}).get("count", 0),
                revenue=(rows.get(hour, {}).get("total") or Decimal("0")).quantize(
                    CENT
                ),
            )
            for hour in range(24)
        ]

    # ------------------------------------------------------------------
    # Invoicing
    # ------------------------------------------------------------------

    def generate_invoice(self, order_id: str) -> InvoiceDTO:
        order = self.get_order_by_id(order_id)
        branding = self._settings.branding(include_vat=True)

        subtotal = order.total_amount
        vat_percentage = branding.vat_percentage or Decimal("0")
        vat_amount = (subtotal * vat_percentage / Decimal("100")).quantize(
            CENT, rounding=ROUND_HALF_UP
        )
        invoice = InvoiceDTO(
            order_id=order.id,
            order_date=order.order_date,
            customer_email=order.user.email if order.user else None,
            company_name=branding.company_name,
            currency=branding.currency,
            subtotal=subtotal,
            vat_percentage=vat_percentage,
            vat_amount=vat_amount,
            total=subtotal + vat_amount,
            download_url=f"/api/invoices/{order.id}",
        )
        logger.info(
            "order.invoice_generated",
            order_id=str(order.id),
            vat_amount=str(vat_amount),
            total=str(invoice.total),
            currency=invoice.currency,
        )
        return invoice

    def send_invoice_email(
        self, order_id: str, email: Optional[str] = None
    ) -> DispatchResult:
        """Queue the invoice e-mail to *email* or the customer's address.

        Raises:
            OrderNotFound: order does not exist.
            ValueError: no recipient could be determined.
        """
        order = self.get_order_by_id(order_id)
        recipient = email or (order.user.email if order.user else "")
        if not recipient:
            raise ValueError("Order has no customer e-mail; provide a recipient.")

        message = {
            "type": NotificationType.INVOICE,
            "order_id": str(order.id),
            "to": recipient,
            "order_data": OrderOutputDTO.from_entity(order).to_payload(),
            "app_settings": self._settings.branding(include_vat=True),
        }
        return self._dispatcher.dispatch_many([message])

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_order(self, order_id: str) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _reload(self, order: Order) -> Order:
        return self._order_repo.get_by_id(str(order.id)) or order

    def _best_effort(
        self, notify: Callable[..., None], order: Order, *args: Any
    ) -> None:
        try:
            notify(order, *args)
        except Exception:
            logger.exception(
                "order.notification_failed",
                order_id=str(order.id),
                step=notify.__name__,
            )

    def _restore_stock(self, order: Order) -> None:
        """Give the order's stock back; failures are logged, never raised."""
        items = StockItem.from_order_items(order.items.all())
        try:
            with transaction.atomic():
                self._ledger.batch_increase_stock(items)
        except Exception as exc:
            failure = CompensationFailure(
                f"Stock restoration failed for order {order.id}: {exc}", items=items
            )
            logger.error(
                "order.stock_restoration_failed",
                order_id=str(order.id),
                error=str(failure),
                unrestored=[
                    {"product_id": str(i.product_id), "quantity": i.quantity}
                    for i in failure.items
                ],
                exc_info=exc,
            )
            return
        logger.info(
            "order.stock_restored", order_id=str(order.id), item_count=len(items)
        )

    def _notify_completion(self, order: Order) -> None:
        order_data = OrderOutputDTO.from_entity(order).to_payload()
        branding = self._settings.branding()
        driver_data = order.assigned_driver.to_contact() if order.assigned_driver else None

        messages: List[Dict[str, Any]] = []
        customer = order.user
        if customer is not None and customer.email:
            messages.append(
                {
                    "type": NotificationType.ORDER_COMPLETION_CUSTOMER,
                    "order_id": str(order.id),
                    "to": customer.email,
                    "order_data": order_data,
                    "driver_data": driver_data,
                    "app_settings": branding,
                }
            )

        for admin in self._user_repo.list_active_by_role(UserRole.ADMIN):
            if not admin.email:
                continue
            messages.append(
                {
                    "type": NotificationType.ORDER_COMPLETION_ADMIN,
                    "order_id": str(order.id),
                    "to": admin.email,
                    "order_data": order_data,
                    "driver_data": driver_data,
                    "admin_data": admin.to_contact(),
                    "app_settings": branding,
                }
            )

        # Each recipient is validated and enqueued on its own.
        result = self._dispatcher.dispatch_many(messages)
        logger.info(
            "order.completion_notified",
            order_id=str(order.id),
            sent=result.sent,
            failed=result.failed,
        )

    def _notify_driver(
        self, order: Order, driver: AppUser, admin_id: Optional[str]
    ) -> None:
        if not driver.email:
            logger.warning(
                "order.driver_email_missing",
                order_id=str(order.id),
                driver_id=str(driver.id),
            )
            return

        admin = self._user_repo.get_by_id(str(admin_id)) if admin_id else None
        message = {
            "type": NotificationType.DRIVER_ASSIGNMENT,
            "order_id": str(order.id),
            "to": driver.email,
            "order_data": OrderOutputDTO.from_entity(order).to_payload(),
            "driver_data": driver.to_contact(),
            "admin_data": admin.to_contact() if admin else None,
            "app_settings": self._settings.branding(),
        }
        result = self._dispatcher.dispatch_many([message])
        if not result.ok:
            logger.warning(
                "order.driver_notification_failed",
                order_id=str(order.id),
                driver_id=str(driver.id),
            )
