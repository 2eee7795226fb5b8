# models.py - Flask-SQLAlchemy models for the CloudFire ledger
from decimal import Decimal
import enum
from sqlalchemy import UniqueConstraint, Index, CheckConstraint, text
from extensions import db

# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class RequestStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(enum.Enum):
    EASYPAISA = "easypaisa"
    JAZZCASH = "jazzcash"
    CRYPTO = "crypto"
    BANK = "bank"


class CommissionSource(enum.Enum):
    DAILY_CLAIM = "daily_claim"
    DEPOSIT = "deposit"


def _money(value):
    return float(value) if value is not None else 0.0


def _iso(value):
    return value.isoformat() if value else None


# ===========================================================
# BASE MIXIN FOR COMMON FIELDS
# ===========================================================

class BaseMixin:
    """Provides created_at and updated_at timestamps to inheriting models."""
    created_at = db.Column(db.DateTime(timezone=True), default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=db.func.now(),
                           onupdate=db.func.now())

# ===========================================================
# USER MODEL
# ===========================================================

class User(db.Model, BaseMixin):
    """Core user entity: one balance row plus the referral parent pointer."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    phone_number = db.Column(db.String(20), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)

    referral_code = db.Column(db.String(20), unique=True, nullable=False)  # User's own referral code
    referred_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)  # upline
    referral_code_used = db.Column(db.String(20), nullable=True)  # The referral code used during signup

    balance = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))
    total_referral_earnings = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0.00"), server_default=text("0.00"))
    total_miners = db.Column(db.Integer, nullable=False, default=0, server_default=text("0"))

    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint('balance >= 0', name='chk_user_balance_non_negative'),
        CheckConstraint('referred_by IS NULL OR referred_by <> id', name='chk_user_not_self_referred'),
        Index('idx_user_referral_code', 'referral_code'),
    )

    # Flask-Login protocol
    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    def get_id(self):
        return str(self.id)

    def to_dict(self):
        """Serialize user for JSON responses."""
        return {
            "id": self.id,
            "username": self.username,
            "phoneNumber": self.phone_number,
            "referralCode": self.referral_code,
            "referredBy": self.referred_by,
            "balance": _money(self.balance),
            "totalReferralEarnings": _money(self.total_referral_earnings),
            "totalMiners": self.total_miners or 0,
            "isAdmin": bool(self.is_admin),
            "isActive": bool(self.is_active),
            "memberSince": _iso(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.id} {self.username}>'

# ===========================================================
# DEPOSITS & WITHDRAWALS
# ===========================================================

class DepositRequest(db.Model, BaseMixin):
    __tablename__ = 'deposit_requests'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(18, 2), nullable=False)          # USD
    local_amount = db.Column(db.Numeric(18, 2), nullable=False)    # amount x DEPOSIT_RATE
    method = db.Column(db.String(20), nullable=False)
    transaction_id = db.Column(db.String(120), nullable=False)
    screenshot_url = db.Column(db.String(500), nullable=True)      # opaque upload handle
    status = db.Column(db.String(20), nullable=False, default=RequestStatus.PENDING.value, index=True)
    processed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship('User', foreign_keys=[user_id], backref=db.backref('deposits', lazy='dynamic'))

    __table_args__ = (
        CheckConstraint('amount > 0', name='chk_deposit_amount_positive'),
        Index('idx_deposit_user_status', 'user_id', 'status'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "amount": _money(self.amount),
            "localAmount": _money(self.local_amount),
            "method": self.method,
            "transactionId": self.transaction_id,
            "screenshotUrl": self.screenshot_url,
            "status": self.status,
            "processedBy": self.processed_by,
            "processedAt": _iso(self.processed_at),
            "createdAt": _iso(self.created_at),
        }


class WithdrawalRequest(db.Model, BaseMixin):
    __tablename__ = 'withdrawal_requests'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    method = db.Column(db.String(20), nullable=False)
    account_number = db.Column(db.String(120), nullable=False)  # wallet number, address or IBAN
    account_name = db.Column(db.String(120), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=RequestStatus.PENDING.value, index=True)
    processed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship('User', foreign_keys=[user_id], backref=db.backref('withdrawals', lazy='dynamic'))

    __table_args__ = (
        CheckConstraint('amount > 0', name='chk_withdrawal_amount_positive'),
        Index('idx_withdrawal_user_status', 'user_id', 'status'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "amount": _money(self.amount),
            "method": self.method,
            "accountNumber": self.account_number,
            "accountName": self.account_name,
            "status": self.status,
            "processedBy": self.processed_by,
            "processedAt": _iso(self.processed_at),
            "createdAt": _iso(self.created_at),
        }

# ===========================================================
# MINING CLAIMS & COMMISSIONS (append-only)
# ===========================================================

class MiningClaim(db.Model):
    __tablename__ = 'mining_claims'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    machines_claimed = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), default=db.func.now())

    __table_args__ = (
        CheckConstraint('amount > 0', name='chk_claim_amount_positive'),
        CheckConstraint('machines_claimed > 0', name='chk_claim_machines_positive'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "amount": _money(self.amount),
            "machinesClaimed": self.machines_claimed,
            "createdAt": _iso(self.created_at),
        }


class CommissionEntry(db.Model):
    __tablename__ = 'commission_entries'

    id = db.Column(db.Integer, primary_key=True)
    beneficiary_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    source_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    level = db.Column(db.Integer, nullable=False)  # 1 or 2
    source_type = db.Column(db.String(20), nullable=False)  # daily_claim, deposit
    source_ref = db.Column(db.String(64), nullable=False)  # e.g. "deposit:12", "claim:40"
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=db.func.now())

    beneficiary = db.relationship('User', foreign_keys=[beneficiary_id], backref='commission_earnings')
    source_user = db.relationship('User', foreign_keys=[source_user_id])

    __table_args__ = (
        UniqueConstraint('beneficiary_id', 'source_ref', 'level', name='uq_commission_event_level'),
        CheckConstraint('level IN (1, 2)', name='chk_commission_level'),
        CheckConstraint('amount > 0', name='chk_commission_amount_positive'),
        Index('idx_commission_beneficiary_source', 'beneficiary_id', 'source_user_id'),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "beneficiaryId": self.beneficiary_id,
            "sourceUserId": self.source_user_id,
            "sourceUsername": self.source_user.username if self.source_user else None,
            "level": self.level,
            "sourceType": self.source_type,
            "amount": _money(self.amount),
            "createdAt": _iso(self.created_at),
        }
