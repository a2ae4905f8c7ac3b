from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler

from settlement.jobs.balance_reconciler import reconcile_balances
from settlement.jobs.completion_runner import complete_delivered_orders

scheduler = BackgroundScheduler()


def _in_app_context(app, fn, **kwargs):
    def run():
        with app.app_context():
            result = fn(**kwargs)
            app.logger.info("job %s finished: %s", fn.__name__, result)

    return run


def start_scheduler(app) -> BackgroundScheduler:
    """Run the order completion sweep and balance reconciliation in-process."""
    scheduler.add_job(
        _in_app_context(app, complete_delivered_orders),
        "interval",
        minutes=15,
        id="complete_delivered_orders",
        replace_existing=True,
    )
    scheduler.add_job(
        _in_app_context(app, reconcile_balances),
        "cron",
        hour=3,
        id="reconcile_balances",
        replace_existing=True,
    )
    if not scheduler.running:
        scheduler.start()
    return scheduler
