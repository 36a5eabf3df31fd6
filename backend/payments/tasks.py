from __future__ import annotations

import logging

from celery import shared_task

from payments.models import OwnerPayoutAccount
from payments.stripe_api import (
    StripeConfigurationError,
    StripePaymentError,
    StripeTransientError,
    refresh_payout_account,
)

logger = logging.getLogger(__name__)


@shared_task(name="payments.sync_owner_payout_accounts")
def sync_owner_payout_accounts():
    """
    Refresh every owner's Connect account from Stripe.
    Safe to run repeatedly; one failing account does not stop the sweep.
    """
    accounts = list(OwnerPayoutAccount.objects.select_related("user").order_by("pk"))
    synced = 0
    for payout_account in accounts:
        try:
            refresh_payout_account(payout_account)
            synced += 1
        except StripeConfigurationError:
            logger.warning("payout account sync aborted: Stripe is not configured")
            break
        except (StripePaymentError, StripeTransientError) as exc:
            logger.warning(
                "payout account sync failed for %s: %s",
                payout_account.stripe_account_id,
                exc,
                exc_info=True,
            )
    return {"synced": synced, "checked": len(accounts)}
