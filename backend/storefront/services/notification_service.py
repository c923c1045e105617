"""
Domain events -> emails.

Each method reads what it needs from the (already loaded) models up front
and queues the send on FastAPI's BackgroundTasks, so mail delivery runs
after the response and never touches the request's session.
"""
from typing import Iterable, Optional

from fastapi import BackgroundTasks

from storefront.core.logging_config import logger
from storefront.models import Claim, Order, Product, User, Warranty
from storefront.services.email_service import email_service


class NotificationService:

    def welcome(self, tasks: BackgroundTasks, user: User) -> None:
        tasks.add_task(email_service.send_welcome_email, user.email, user.name)

    def password_reset(self, tasks: BackgroundTasks, user: User, token: str) -> None:
        tasks.add_task(email_service.send_password_reset_email, user.email, user.name, token)

    def password_reset_done(self, tasks: BackgroundTasks, user: User) -> None:
        tasks.add_task(email_service.send_password_reset_confirmation, user.email, user.name)

    def order_placed(self, tasks: BackgroundTasks, user: User, order: Order) -> None:
        items = [(item.product.name, item.quantity, item.price_at_purchase) for item in order.items]
        tasks.add_task(
            email_service.send_order_confirmation,
            user.email, user.name, order.id, order.total_price, items,
        )
        logger.info(f"[Notify] Order confirmation queued for {order.id}")

    def order_status_changed(self, tasks: BackgroundTasks, order: Order) -> None:
        tasks.add_task(
            email_service.send_order_status_update,
            order.user.email, order.user.name, order.id,
            order.order_status.value, order.tracking_number,
        )
        logger.info(f"[Notify] Status update ({order.order_status.value}) queued for {order.id}")

    def warranties_registered(self, tasks: BackgroundTasks, user: User, warranties: Iterable[Warranty]) -> None:
        # One mail per product, even when several units were registered
        seen = set()
        for warranty in warranties:
            if warranty.product_id in seen:
                continue
            seen.add(warranty.product_id)
            tasks.add_task(
                email_service.send_warranty_registration,
                user.email, user.name, warranty.product.name,
                warranty.expiry_date, warranty.serial_number,
            )

    def claim_created(self, tasks: BackgroundTasks, user: User, claim: Claim, product: Product) -> None:
        tasks.add_task(
            email_service.send_admin_alert,
            "New warranty claim",
            f"{user.name} ({user.email}) raised a claim for {product.name}.",
            {
                "Claim ID": claim.id,
                "Warranty ID": claim.warranty_id,
                "Issue": claim.issue_description,
            },
        )
        logger.info(f"[Notify] Admin alerted about claim {claim.id}")

    def claim_updated(self, tasks: BackgroundTasks, user: User, claim: Claim, product: Product) -> None:
        tasks.add_task(
            email_service.send_claim_status_update,
            user.email, user.name, claim.id, product.name,
            claim.status.value, claim.admin_notes,
        )

    def admin_alert(self, tasks: BackgroundTasks, subject: str, message: str, details: Optional[dict] = None) -> None:
        tasks.add_task(email_service.send_admin_alert, subject, message, details)


notification_service = NotificationService()
