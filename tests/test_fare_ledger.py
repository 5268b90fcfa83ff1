import unittest
from datetime import date

from application import messages
from application.services import (
    ExternalContext,
    bind_driver,
    fare_income,
    fare_search,
    record_adjustment,
    register_user,
    transfer_fare,
)
from domain.errors import (
    AlreadyBound,
    AlreadyPaidThisMonth,
    UnknownDriver,
    UnknownRider,
)
from domain.models import Adjustment, Payment, Role

from in_memory import in_memory_store

TODAY = date(2026, 10, 19)


class FareLedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = in_memory_store()
        self.driver = register_user(
            ExternalContext("line", "D1", "Bob"), Role.DRIVER, self.store.users
        )
        self.rider = register_user(
            ExternalContext("line", "R1", "Amy"), Role.RIDER, self.store.users
        )
        bind_driver(self.rider, "D1", self.store.users)

    def test_transfer_fare_is_debounced_per_month(self):
        payment = transfer_fare(self.rider, 1200, self.store.payments, TODAY)
        self.assertEqual(payment, Payment("R1", 1200, TODAY))

        with self.assertRaises(AlreadyPaidThisMonth) as ctx:
            transfer_fare(self.rider, 1500, self.store.payments, date(2026, 10, 30))
        self.assertEqual(ctx.exception.amount, 1200)
        self.assertEqual(len(self.store.payments.payments), 1)
        self.assertIn("NT$1200", messages.rejection(ctx.exception))

    def test_transfer_fare_allowed_again_next_month(self):
        transfer_fare(self.rider, 1200, self.store.payments, date(2026, 9, 28))
        transfer_fare(self.rider, 1300, self.store.payments, TODAY)
        self.assertEqual(len(self.store.payments.payments), 2)

    def test_lost_insert_race_is_reported_as_already_paid(self):
        class RacingPayments(type(self.store.payments)):
            def find_nearest_payment(inner, rider_id):
                # The first lookup misses the concurrent insert.
                if not inner.seen:
                    inner.seen = True
                    return None
                return super().find_nearest_payment(rider_id)

        payments = RacingPayments()
        payments.seen = False
        payments.payments.append(Payment("R1", 900, TODAY))

        with self.assertRaises(AlreadyPaidThisMonth) as ctx:
            transfer_fare(self.rider, 1200, payments, TODAY)
        self.assertEqual(ctx.exception.amount, 900)
        self.assertEqual(len(payments.payments), 1)

    def test_fare_search_without_payment(self):
        statement = fare_search(self.rider, self.store.payments, self.store.adjustments, TODAY)
        self.assertIsNone(statement.payment)
        self.assertEqual(messages.fare_statement(statement), "查無車費紀錄。")

    def test_fare_search_with_bare_payment(self):
        transfer_fare(self.rider, 1000, self.store.payments, date(2026, 10, 2))
        statement = fare_search(self.rider, self.store.payments, self.store.adjustments, TODAY)
        self.assertEqual(statement.steps, [])
        self.assertEqual(statement.final_total, 1000)
        self.assertIn("NT$1000", messages.fare_statement(statement))
        self.assertIn("2026-10-02", messages.fare_statement(statement))

    def test_fare_search_folds_adjustments_in_order(self):
        transfer_fare(self.rider, 1000, self.store.payments, date(2026, 10, 1))
        self.store.adjustments.insert_adjustment(Adjustment("R1", 100, "多搭一趟", date(2026, 10, 5)))
        self.store.adjustments.insert_adjustment(Adjustment("R1", -30, "少搭一段", date(2026, 10, 9)))
        # Last month's correction is not part of this month's fold.
        self.store.adjustments.insert_adjustment(Adjustment("R1", 500, "舊帳", date(2026, 9, 9)))

        statement = fare_search(self.rider, self.store.payments, self.store.adjustments, TODAY)

        self.assertEqual(
            [(s.previous_total, s.delta, s.new_total) for s in statement.steps],
            [(1000, 100, 1100), (1100, -30, 1070)],
        )
        self.assertEqual(statement.net_adjustment, 70)

        text = messages.fare_statement(statement)
        self.assertIn("1000 +100 = 1100，原因：多搭一趟", text)
        self.assertIn("1100 -30 = 1070，原因：少搭一段", text)
        self.assertIn("下個月需補繳 NT$70", text)

    def test_fare_search_reports_credit_for_negative_net(self):
        transfer_fare(self.rider, 1000, self.store.payments, date(2026, 10, 1))
        self.store.adjustments.insert_adjustment(Adjustment("R1", -200, "請假", date(2026, 10, 3)))

        statement = fare_search(self.rider, self.store.payments, self.store.adjustments, TODAY)
        self.assertIn("下個月可折抵 NT$200", messages.fare_statement(statement))

    def test_fare_income_sums_payments_only(self):
        other = register_user(ExternalContext("line", "R2", "Cat"), Role.RIDER, self.store.users)
        bind_driver(other, "D1", self.store.users)
        idle = register_user(ExternalContext("line", "R3", "Dan"), Role.RIDER, self.store.users)
        bind_driver(idle, "D1", self.store.users)

        transfer_fare(self.rider, 1000, self.store.payments, date(2026, 10, 1))
        self.store.adjustments.insert_adjustment(Adjustment("R1", 100, "多搭", date(2026, 10, 4)))
        transfer_fare(other, 800, self.store.payments, date(2026, 10, 2))
        # R3 paid last month only.
        transfer_fare(idle, 700, self.store.payments, date(2026, 9, 2))

        report = fare_income(
            self.driver, self.store.users, self.store.payments, self.store.adjustments, TODAY
        )

        rows = {row.rider.external_id: row for row in report.rows}
        self.assertEqual((rows["R1"].paid, rows["R1"].adjustment_total), (1000, 100))
        self.assertEqual((rows["R2"].paid, rows["R2"].adjustment_total), (800, 0))
        self.assertFalse(rows["R3"].has_record)
        self.assertEqual(report.total, 1800)

        text = messages.income_report(report)
        self.assertIn("本月無紀錄", text)
        self.assertIn("總收入：NT$1800", text)

    def test_record_adjustment_requires_bound_rider(self):
        stranger = register_user(ExternalContext("line", "R9", "Eve"), Role.RIDER, self.store.users)
        with self.assertRaises(UnknownRider):
            record_adjustment(
                self.driver, stranger.external_id, 50, "x",
                self.store.users, self.store.adjustments, TODAY,
            )
        self.assertEqual(self.store.adjustments.adjustments, [])

        rider, adjustment = record_adjustment(
            self.driver, "R1", -40, "提早下車",
            self.store.users, self.store.adjustments, TODAY,
        )
        self.assertEqual(rider.external_id, "R1")
        self.assertEqual(adjustment, Adjustment("R1", -40, "提早下車", TODAY))

    def test_bind_driver_is_one_time(self):
        with self.assertRaises(AlreadyBound):
            bind_driver(self.rider, "D1", self.store.users)

    def test_bind_driver_rejects_unknown_or_non_driver(self):
        rider = register_user(ExternalContext("line", "R5", "Fay"), Role.RIDER, self.store.users)
        with self.assertRaises(UnknownDriver):
            bind_driver(rider, "NOPE", self.store.users)
        with self.assertRaises(UnknownDriver):
            bind_driver(rider, "R1", self.store.users)


if __name__ == "__main__":
    unittest.main()
