"""String constants stored in the status and type columns."""


class MembershipStatus:
    AWAITING_PAYMENT = "awaiting_payment"
    PENDING = "pending"
    ACTIVE = "active"
    GRACE_PERIOD = "grace_period"
    EXPIRED = "expired"
    REJECTED = "rejected"

    ALL = (AWAITING_PAYMENT, PENDING, ACTIVE, GRACE_PERIOD, EXPIRED, REJECTED)


class PaymentStatus:
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class PaymentPurpose:
    INITIAL_PURCHASE = "initial_purchase"
    MEMBERSHIP_RENEWAL = "membership_renewal"
    TRAINER_RENEWAL = "trainer_renewal"


class PlanType:
    ONLINE = "online"
    IN_GYM = "in_gym"


class AddonType:
    IN_GYM = "in_gym"
    PERSONAL_TRAINER = "personal_trainer"


class AddonStatus:
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"


class AssignmentType:
    PLAN_INCLUDED = "plan_included"
    ADDON = "addon"


class AssignmentStatus:
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
    EXPIRED = "expired"
