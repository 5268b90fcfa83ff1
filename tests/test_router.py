import os
import tempfile
import unittest
from datetime import date

from application import messages
from application.router import dispatch
from application.services import ExternalContext
from domain.errors import StoreFailure
from domain.models import Adjustment, Role, User
from domain.repositories import LedgerStore
from infrastructure.db.adjustment_repository_sqlite import SqliteAdjustmentRepository
from infrastructure.db.availability_repository_sqlite import SqliteAvailabilityRepository
from infrastructure.db.payment_repository_sqlite import SqlitePaymentRepository
from infrastructure.db.user_repository_sqlite import SqliteUserRepository

from in_memory import FailingUserRepository, in_memory_store

TODAY = date(2026, 10, 19)


class RouterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = in_memory_store()
        self.store.users.add_user(User("D1", "Bob", Role.DRIVER))
        self.rider_ctx = ExternalContext("line", "R1", "Amy")
        self.driver_ctx = ExternalContext("line", "D1", "Bob")

    def send(self, ctx, text):
        return dispatch(ctx, text, self.store, TODAY)

    def make_bound_rider(self, rider_id="R1", name="Amy"):
        self.store.users.add_user(User(rider_id, name, Role.RIDER, bound_driver_id="D1"))
        return ExternalContext("line", rider_id, name)

    def test_rider_end_to_end(self):
        reply = self.send(self.rider_ctx, "我是乘客")
        self.assertIs(self.store.users.get_user("R1").role, Role.RIDER)
        self.assertIn("設定為乘客", reply)
        self.assertIn("D1", reply)

        reply = self.send(self.rider_ctx, "車費匯款:1200")
        self.assertIn("綁定司機", reply)
        self.assertIn("D1", reply)
        self.assertEqual(self.store.payments.payments, [])

        reply = self.send(self.rider_ctx, "綁定司機:D1")
        self.assertEqual(self.store.users.get_user("R1").bound_driver_id, "D1")
        self.assertIn("綁定成功", reply)

        reply = self.send(self.rider_ctx, "車費匯款:1200")
        self.assertIn("NT$1200", reply)
        self.assertEqual(len(self.store.payments.payments), 1)

        reply = self.send(self.rider_ctx, "車費匯款:1200")
        self.assertIn("本月已經匯款過了", reply)
        self.assertIn("NT$1200", reply)
        self.assertEqual(len(self.store.payments.payments), 1)

    def test_new_driver(self):
        reply = self.send(ExternalContext("line", "D2", "Cy"), "我是司機")
        self.assertIs(self.store.users.get_user("D2").role, Role.DRIVER)
        self.assertIn("設定為司機", reply)

    def test_unrecognized_sender(self):
        self.assertEqual(self.send(self.rider_ctx, "hi"), messages.UNRECOGNIZED)
        self.assertIsNone(self.store.users.get_user("R1"))

    def test_role_mismatch_changes_nothing(self):
        self.assertEqual(self.send(self.driver_ctx, "我是乘客"), messages.ROLE_MISMATCH)
        self.assertIs(self.store.users.get_user("D1").role, Role.DRIVER)

    def test_support_request_overrides_bind_gate(self):
        self.store.users.add_user(User("R1", "Amy", Role.RIDER))
        self.assertEqual(self.send(self.rider_ctx, "77"), messages.SUPPORT)

    def test_bind_gate_applies_to_help(self):
        self.store.users.add_user(User("R1", "Amy", Role.RIDER))
        reply = self.send(self.rider_ctx, "help")
        self.assertIn(messages.bind_instructions(), reply)

    def test_bind_unknown_driver(self):
        self.store.users.add_user(User("R1", "Amy", Role.RIDER))
        reply = self.send(self.rider_ctx, "綁定司機:NOPE")
        self.assertIn("找不到司機 NOPE", reply)
        self.assertIsNone(self.store.users.get_user("R1").bound_driver_id)

    def test_loose_keyword_routes_to_strict_parser(self):
        ctx = self.make_bound_rider()
        reply = self.send(ctx, "車費匯款:12a")
        self.assertIn("格式錯誤", reply)
        self.assertIn("車費匯款:1200", reply)

    def test_rider_help_and_fallback(self):
        ctx = self.make_bound_rider()
        self.assertEqual(self.send(ctx, "help"), messages.RIDER_HELP)
        reply = self.send(ctx, "早安")
        self.assertIn("歡迎回來", reply)
        self.assertIn("早安", reply)

    def test_driver_commands_are_invisible_to_riders(self):
        ctx = self.make_bound_rider()
        reply = self.send(ctx, "乘客列表")
        self.assertIn("歡迎回來", reply)

    def test_rider_commands_are_invisible_to_drivers(self):
        reply = self.send(self.driver_ctx, "車費匯款:1200")
        self.assertIn("歡迎回來", reply)
        self.assertEqual(self.store.payments.payments, [])

    def test_rider_fare_search(self):
        ctx = self.make_bound_rider()
        self.send(ctx, "車費匯款:1000")
        self.store.adjustments.insert_adjustment(Adjustment("R1", 100, "多搭一趟", TODAY))
        reply = self.send(ctx, "查詢車費")
        self.assertIn("1000 +100 = 1100", reply)

    def test_driver_adjustment_flow(self):
        self.make_bound_rider()
        reply = self.send(self.driver_ctx, "R1:+100 備註:多搭一趟")
        self.assertIn("+100", reply)
        self.assertIn("Amy", reply)
        self.assertEqual(len(self.store.adjustments.adjustments), 1)

        reply = self.send(self.driver_ctx, "R7:+100 備註:多搭一趟")
        self.assertIn("不是您綁定的乘客", reply)
        self.assertEqual(len(self.store.adjustments.adjustments), 1)

    def test_driver_adjustment_format_error_via_keyword(self):
        reply = self.send(self.driver_ctx, "R1 100 備註 多搭一趟")
        self.assertIn("格式錯誤", reply)
        self.assertIn("<乘客ID>:+100", reply)

    def test_driver_lists_riders_and_income(self):
        self.make_bound_rider()
        self.make_bound_rider("R2", "Cat")
        self.assertIn("Cat", self.send(self.driver_ctx, "乘客列表"))

        self.send(ExternalContext("line", "R1", "Amy"), "車費匯款:1000")
        reply = self.send(self.driver_ctx, "查詢車費")
        self.assertIn("總收入：NT$1000", reply)
        self.assertIn("本月無紀錄", reply)

    def test_driver_availability(self):
        reply = self.send(self.driver_ctx, "2026-11-01~2026-11-05:開車 備註:早班 乘客數量:3")
        self.assertIn("乘客數量 3", reply)

        reply = self.send(self.driver_ctx, "2026-11-10~2026-11-12:不開車 備註:出國")
        self.assertIn("已覆蓋", reply)
        self.assertFalse(self.store.availability.find_availability("D1", "2026-11").is_open)

        reply = self.send(self.driver_ctx, "2026-10-01~2026-10-05:開車 備註:x 乘客數量:2")
        self.assertIn("已經過去", reply)

        reply = self.send(self.driver_ctx, "2026-11-01~2026-11-05:開車 備註:早班")
        self.assertIn("乘客數量", reply)

    def test_availability_format_error_via_keyword(self):
        reply = self.send(self.driver_ctx, "2026-11-01~2026-11-40:開車 備註:早班 乘客數量:3")
        self.assertIn("格式錯誤", reply)

    def test_adjustment_remark_mentioning_driving_gets_adjustment_example(self):
        reply = self.send(self.driver_ctx, "R1:100 備註:多開車一趟")
        self.assertIn("格式錯誤", reply)
        self.assertIn("<乘客ID>:+100", reply)
        self.assertEqual(self.store.adjustments.adjustments, [])

    def test_oversized_driver_numbers_get_format_examples(self):
        self.make_bound_rider()
        reply = self.send(self.driver_ctx, "R1:+99999999999999999999 備註:多搭一趟")
        self.assertIn("<乘客ID>:+100", reply)
        self.assertEqual(self.store.adjustments.adjustments, [])

        reply = self.send(self.driver_ctx, "2026-11-01~2026-11-05:開車 備註:早班 乘客數量:99999999999")
        self.assertIn("乘客數量:3", reply)
        self.assertIsNone(self.store.availability.find_availability("D1", "2026-11"))

    def test_store_failure_propagates(self):
        self.store = in_memory_store(users=FailingUserRepository("R1"))
        with self.assertRaises(StoreFailure):
            self.send(self.rider_ctx, "我是乘客")


class SqliteRouterTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        db_path = os.path.join(self._tmp.name, "ledger.db")
        self.store = LedgerStore(
            users=SqliteUserRepository(db_path),
            payments=SqlitePaymentRepository(db_path),
            adjustments=SqliteAdjustmentRepository(db_path),
            availability=SqliteAvailabilityRepository(db_path),
        )
        self.store.users.add_user(User("D1", "Bob", Role.DRIVER))
        self.store.users.add_user(User("R1", "Amy", Role.RIDER, bound_driver_id="D1"))
        self.rider_ctx = ExternalContext("line", "R1", "Amy")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_oversized_fare_is_a_format_error(self):
        reply = dispatch(self.rider_ctx, "車費匯款:99999999999999999999", self.store, TODAY)
        self.assertIn("格式錯誤", reply)
        self.assertIn("車費匯款:1200", reply)
        self.assertIsNone(self.store.payments.find_nearest_payment("R1"))

        reply = dispatch(self.rider_ctx, "車費匯款:2147483647", self.store, TODAY)
        self.assertIn("NT$2147483647", reply)
        self.assertEqual(self.store.payments.find_nearest_payment("R1").amount, 2147483647)


if __name__ == "__main__":
    unittest.main()
