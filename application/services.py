from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from domain.errors import (
    AlreadyBound,
    AlreadyPaidThisMonth,
    MalformedAmount,
    UnknownDriver,
    UnknownRider,
)
from domain.models import Adjustment, Payment, Role, User, month_key
from domain.repositories import (
    AdjustmentRepository,
    PaymentRepository,
    UserRepository,
)


@dataclass
class ExternalContext:
    """
    Information about the caller from a particular channel (LINE, Telegram).

    The application layer never depends on concrete SDK types; it only sees
    this small context object.
    """

    provider: str
    provider_user_id: str
    display_name: str


@dataclass
class FareStep:
    """One line of the reconciliation fold: `previous_total +delta = new_total`."""

    previous_total: int
    delta: int
    new_total: int
    note: str


@dataclass
class FareStatement:
    """Result of folding a rider's base payment with this month's adjustments."""

    payment: Optional[Payment] = None
    steps: List[FareStep] = field(default_factory=list)

    @property
    def net_adjustment(self) -> int:
        return sum(step.delta for step in self.steps)

    @property
    def final_total(self) -> Optional[int]:
        if self.payment is None:
            return None
        if not self.steps:
            return self.payment.amount
        return self.steps[-1].new_total


@dataclass
class RiderIncome:
    rider: User
    paid: int
    adjustment_total: int
    has_record: bool


@dataclass
class IncomeReport:
    rows: List[RiderIncome] = field(default_factory=list)

    @property
    def total(self) -> int:
        # Adjustments settle against the rider's balance, not the driver's
        # collected income.
        return sum(row.paid for row in self.rows if row.has_record)


def _in_month(day: date, today: date) -> bool:
    return month_key(day) == month_key(today)


def register_user(
    external_ctx: ExternalContext,
    role: Role,
    user_repo: UserRepository,
) -> User:
    """Create the user row for a first-time sender choosing `role`."""

    user = User(
        external_id=external_ctx.provider_user_id,
        display_name=external_ctx.display_name,
        role=role,
    )
    user_repo.add_user(user)
    return user


def list_drivers(user_repo: UserRepository) -> List[User]:
    return user_repo.list_drivers()


def list_riders(driver: User, user_repo: UserRepository) -> List[User]:
    return user_repo.list_riders_of(driver.external_id)


def bind_driver(rider: User, driver_id: str, user_repo: UserRepository) -> User:
    """
    Bind `rider` to the driver with `driver_id`.

    Binding is one-time and one-directional; there is no unbind.
    Returns the driver the rider is now bound to.
    """

    if rider.bound_driver_id:
        raise AlreadyBound(rider.bound_driver_id)

    driver = user_repo.get_user(driver_id)
    if driver is None or not driver.is_driver:
        raise UnknownDriver(driver_id)

    if not user_repo.bind_driver(rider.external_id, driver.external_id):
        # Someone else won the race; report what is stored now.
        stored = user_repo.get_user(rider.external_id)
        raise AlreadyBound(stored.bound_driver_id if stored else driver.external_id)

    rider.bound_driver_id = driver.external_id
    return driver


def transfer_fare(
    rider: User,
    amount: int,
    payment_repo: PaymentRepository,
    today: date,
) -> Payment:
    """
    Record the rider's monthly fare transfer.

    This is a monthly debounce, not a running ledger: if the rider's most
    recent payment falls in the current month the new one is rejected,
    never merged.
    """

    if amount <= 0:
        raise MalformedAmount(str(amount))

    latest = payment_repo.find_nearest_payment(rider.external_id)
    if latest is not None and _in_month(latest.recorded_at, today):
        raise AlreadyPaidThisMonth(latest.amount)

    payment = Payment(rider_id=rider.external_id, amount=amount, recorded_at=today)
    if not payment_repo.insert_payment(payment):
        existing = payment_repo.find_nearest_payment(rider.external_id)
        raise AlreadyPaidThisMonth(existing.amount if existing else amount)

    return payment


def fare_search(
    rider: User,
    payment_repo: PaymentRepository,
    adjustment_repo: AdjustmentRepository,
    today: date,
) -> FareStatement:
    """
    Reconcile the rider's base payment with this month's adjustments.

    The fold is a strict left-to-right scan in recording order so each
    step can show the running total before its adjustment was applied.
    """

    payment = payment_repo.find_nearest_payment(rider.external_id)
    if payment is None:
        return FareStatement()

    statement = FareStatement(payment=payment)
    running = payment.amount
    for adjustment in adjustment_repo.list_adjustments_this_month(rider.external_id, today):
        new_total = running + adjustment.delta
        statement.steps.append(
            FareStep(
                previous_total=running,
                delta=adjustment.delta,
                new_total=new_total,
                note=adjustment.note,
            )
        )
        running = new_total

    return statement


def fare_income(
    driver: User,
    user_repo: UserRepository,
    payment_repo: PaymentRepository,
    adjustment_repo: AdjustmentRepository,
    today: date,
) -> IncomeReport:
    """
    Summarise this month's fares across every rider bound to `driver`.

    Riders with neither a payment nor an adjustment this month are flagged
    and left out of the total.
    """

    report = IncomeReport()
    for rider in user_repo.list_riders_of(driver.external_id):
        payment = payment_repo.find_nearest_payment(rider.external_id)
        paid = payment.amount if payment and _in_month(payment.recorded_at, today) else 0
        adjustments = adjustment_repo.list_adjustments_this_month(rider.external_id, today)
        report.rows.append(
            RiderIncome(
                rider=rider,
                paid=paid,
                adjustment_total=sum(a.delta for a in adjustments),
                has_record=bool(paid or adjustments),
            )
        )
    return report


def record_adjustment(
    driver: User,
    rider_id: str,
    delta: int,
    note: str,
    user_repo: UserRepository,
    adjustment_repo: AdjustmentRepository,
    today: date,
) -> tuple[User, Adjustment]:
    """
    Record a signed correction to one of the driver's riders.

    Only riders currently bound to `driver` may be adjusted.
    """

    riders = {r.external_id: r for r in user_repo.list_riders_of(driver.external_id)}
    rider = riders.get(rider_id)
    if rider is None:
        raise UnknownRider(rider_id)

    adjustment = Adjustment(rider_id=rider_id, delta=delta, note=note, recorded_at=today)
    adjustment_repo.insert_adjustment(adjustment)
    return rider, adjustment
