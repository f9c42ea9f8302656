import logging

logger = logging.getLogger(__name__)


class VendorNotifier:
    """Outbound vendor notifications.

    Delivery (push, email, SMS) lives outside this service; this default
    only records the intent in the log. Implementations may raise, and
    callers treat any failure as best-effort.
    """

    def notify_vendor_assignment(self, vendor_id: str, claim) -> None:
        logger.info(
            "Vendor %s assigned to warranty claim %s (%s)",
            vendor_id, claim.id, claim.service_category.value,
        )
