#======================================================================================================
#
#   DEPOSIT / WITHDRAWAL REQUESTS (USER SIDE)
#
#===========================================================================================================
from flask import Blueprint, jsonify, current_app, g
import logging

from blueprints.request_helpers import json_payload
from ledger import services
from ledger.credentials import require_authenticated, require_self_or_admin


bp = Blueprint("payments", __name__, url_prefix="/api")
logger = logging.getLogger(__name__)


#=============================================================================================
#      DEPOSIT SUBMISSION
#============================================================================================
@bp.route("/deposits/request", methods=["POST"])
@require_authenticated
def request_deposit():
    """
    Record a manual deposit for admin verification.
    Expected JSON: {"amount": 20, "transactionId": "", "screenshotUrl": "", "method": "easypaisa"}
    The local currency amount is always computed here, never taken from the client.
    """
    data = json_payload()
    principal = g.principal

    deposit = services().approvals.submit_deposit(principal.user_id, data)
    current_app.logger.info(f"Deposit {deposit.id} submitted by user {principal.user_id}")
    return jsonify(deposit.to_dict()), 201


@bp.route("/deposits/<int:user_id>", methods=["GET"])
@require_authenticated
def list_deposits(user_id):
    require_self_or_admin(user_id)
    deposits = services().approvals.list_deposits(user_id)
    return jsonify([d.to_dict() for d in deposits]), 200


#=============================================================================================
#      WITHDRAWAL SUBMISSION
#============================================================================================
@bp.route("/withdrawals/request", methods=["POST"])
@require_authenticated
def request_withdrawal():
    """
    Reserve funds and queue a withdrawal for admin payout.
    Expected JSON: {"amount": 10, "method": "jazzcash", "accountNumber": "", "accountName": ""}
    """
    data = json_payload()
    principal = g.principal

    withdrawal = services().approvals.submit_withdrawal(principal.user_id, data)
    user = services().store.get_user(principal.user_id)

    logger.info(f"Withdrawal {withdrawal.id} submitted by user {principal.user_id}")
    body = withdrawal.to_dict()
    body["balance"] = float(user.balance)
    return jsonify(body), 201


@bp.route("/withdrawals/<int:user_id>", methods=["GET"])
@require_authenticated
def list_withdrawals(user_id):
    require_self_or_admin(user_id)
    withdrawals = services().approvals.list_withdrawals(user_id)
    return jsonify([w.to_dict() for w in withdrawals]), 200
