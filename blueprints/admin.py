#======================================================================================
#
# ADMIN API: manual verification of deposits and payouts
#
#=======================================================================================
from flask import jsonify, request, Blueprint, g
from sqlalchemy import or_
import logging

from blueprints.request_helpers import int_field, json_payload
from ledger import services
from ledger.credentials import require_admin
from models import User

logger = logging.getLogger(__name__)


admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


@admin_bp.route("/deposits", methods=["GET"])
@require_admin
def pending_deposits():
    status = request.args.get("status", "pending")
    deposits = services().approvals.deposits_by_status(status)
    return jsonify([d.to_dict() for d in deposits]), 200


@admin_bp.route("/deposits/decision", methods=["POST"])
@require_admin
def decide_deposit():
    """
    Approve or reject a deposit.
    Expected JSON: {"requestId": 1, "decision": "approve" | "reject"}
    """
    data = json_payload()
    request_id = int_field(data, "requestId")

    deposit = services().approvals.decide_deposit(request_id, data.get("decision"), g.principal)
    logger.info(f"Admin {g.principal.user_id} set deposit {request_id} to {deposit.status}")
    return jsonify(deposit.to_dict()), 200


@admin_bp.route("/withdrawals", methods=["GET"])
@require_admin
def pending_withdrawals():
    status = request.args.get("status", "pending")
    withdrawals = services().approvals.withdrawals_by_status(status)
    return jsonify([w.to_dict() for w in withdrawals]), 200


@admin_bp.route("/withdrawals/decision", methods=["POST"])
@require_admin
def decide_withdrawal():
    """
    Approve (funds already reserved) or reject (refund) a withdrawal.
    Expected JSON: {"requestId": 1, "decision": "approve" | "reject"}
    """
    data = json_payload()
    request_id = int_field(data, "requestId")

    withdrawal = services().approvals.decide_withdrawal(request_id, data.get("decision"), g.principal)
    logger.info(f"Admin {g.principal.user_id} set withdrawal {request_id} to {withdrawal.status}")
    return jsonify(withdrawal.to_dict()), 200


#============================================================================================================
#     ----------------------------ADMIN USER SEARCH-------------------------------------------
#============================================================================================================
@admin_bp.route('/users', methods=['GET'])
@require_admin
def admin_users():
    """List users, optionally filtered by username, phone, referral code or ID"""
    query = request.args.get('q', '').strip()
    users = User.query
    if query:
        filters = [
            User.username.ilike(f'%{query}%'),
            User.phone_number.ilike(f'%{query}%'),
            User.referral_code.ilike(f'%{query}%'),
        ]
        if query.isdigit():
            filters.append(User.id == int(query))
        users = users.filter(or_(*filters))

    return jsonify([u.to_dict() for u in users.order_by(User.id).limit(50).all()]), 200
