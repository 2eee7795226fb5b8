from flask import Blueprint, jsonify, current_app, g

from blueprints.request_helpers import json_payload
from ledger import services
from ledger.credentials import require_authenticated, require_self_or_admin
from ledger.referral_tree import ReferralTreeHelper
from ledger.tiers import WEEKLY_BONUS_TIERS


bp = Blueprint('profile', __name__, url_prefix="/api")

# ----------------------------------------------------------------------------------
# USER DATA
# ----------------------------------------------------------------------------------
@bp.route("/users/<int:user_id>", methods=["GET"])
@require_authenticated
def get_user(user_id):
    require_self_or_admin(user_id)
    user = services().store.get_user(user_id)
    return jsonify(user.to_dict()), 200


#==========================================================================
# MINING CLAIMS
#==========================================================================
@bp.route("/mining/claim", methods=["POST"])
@require_authenticated
def claim_mining_reward():
    """
    Collect the periodic mining reward for the caller.
    Expected JSON: {"amount": 12.5, "machinesClaimed": 2}
    """
    data = json_payload()
    principal = g.principal

    ledger = services()
    claim = ledger.mining.claim(principal.user_id, data.get("amount"), data.get("machinesClaimed"))
    user = ledger.store.get_user(principal.user_id)

    current_app.logger.info(f"User {principal.user_id} claimed {claim.amount} from {claim.machines_claimed} machine(s)")
    return jsonify({
        "claim": claim.to_dict(),
        "balance": float(user.balance),
    }), 201


@bp.route("/mining/claims/<int:user_id>", methods=["GET"])
@require_authenticated
def list_mining_claims(user_id):
    require_self_or_admin(user_id)
    claims = services().store.list_mining_claims(user_id)
    return jsonify([c.to_dict() for c in claims]), 200


#=======================================================================================
#      REFERRAL NETWORK
#=======================================================================================
@bp.route("/referrals/<int:user_id>", methods=["GET"])
@require_authenticated
def get_referrals(user_id):
    """Level 1 and level 2 downline with what each member earned the caller."""
    require_self_or_admin(user_id)
    return jsonify(ReferralTreeHelper.team_summary(user_id)), 200


@bp.route("/referrals/<int:user_id>/commissions", methods=["GET"])
@require_authenticated
def get_commissions(user_id):
    require_self_or_admin(user_id)
    entries = services().store.list_commissions(user_id)
    return jsonify([e.to_dict() for e in entries]), 200


@bp.route("/bonus/tiers", methods=["GET"])
def bonus_tiers():
    return jsonify([tier.to_dict() for tier in WEEKLY_BONUS_TIERS]), 200
