from dataclasses import dataclass

from flask import current_app

from ledger.approval import ApprovalWorkflow
from ledger.commission import CommissionEngine
from ledger.config import LedgerConfig
from ledger.ledger_store import LedgerStore
from ledger.mining import MiningService


@dataclass
class LedgerServices:
    config: LedgerConfig
    store: LedgerStore
    commissions: CommissionEngine
    approvals: ApprovalWorkflow
    mining: MiningService


def init_ledger(app):
    """Build the ledger services from app.config and attach them to the app."""
    config = LedgerConfig.from_mapping(app.config)
    store = LedgerStore(config)
    commissions = CommissionEngine(store, config)
    app.extensions["ledger"] = LedgerServices(
        config=config,
        store=store,
        commissions=commissions,
        approvals=ApprovalWorkflow(store, commissions, config),
        mining=MiningService(store, commissions, config),
    )
    app.logger.info(
        f"Ledger ready: deposit rate {config.deposit_rate}, "
        f"commissions {config.level_one_rate}/{config.level_two_rate}, min deposit {config.min_deposit}"
    )
    return app.extensions["ledger"]


def services() -> LedgerServices:
    return current_app.extensions["ledger"]
