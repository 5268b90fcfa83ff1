from __future__ import annotations

from typing import List, Optional

from domain.errors import (
    AlreadyBound,
    AlreadyPaidThisMonth,
    CrossMonthRange,
    InvertedRange,
    LedgerError,
    MissingCapacity,
    ParseError,
    PastDate,
    RemarkTooLong,
    UnknownDriver,
    UnknownRider,
)
from domain.models import Adjustment, Payment, Role, User

from .availability import AvailabilityResult
from .services import FareStatement, IncomeReport

BUSY = "伺服器忙碌中，請稍後重試"
UNRECOGNIZED = "您好！請先告訴我您的身分，輸入「我是乘客」或「我是司機」"
ROLE_MISMATCH = "如需切換乘客或司機身分，請聯繫客服人員協助處理"
SUPPORT = "已收到您的客服需求，客服人員將盡快與您聯繫"

RIDER_HELP = (
    "乘客可用指令：\n"
    "綁定司機:<司機ID>  - 綁定您的司機（僅能綁定一次）\n"
    "車費匯款:<金額>    - 登記本月車費匯款\n"
    "查詢車費           - 查詢本月車費與調整明細\n"
    "司機列表           - 列出所有司機\n"
    "77                 - 聯繫客服"
)

DRIVER_HELP = (
    "司機可用指令：\n"
    "乘客列表                               - 列出已綁定的乘客\n"
    "查詢車費                               - 查詢本月車費收入\n"
    "<乘客ID>:<+/-金額> 備註:<原因>         - 調整乘客車費\n"
    "<開始日期>~<結束日期>:<開車|不開車> 備註:<說明> 乘客數量:<人數>\n"
    "                                       - 設定當月開車時段\n"
    "77                                     - 聯繫客服"
)


def help_text(role: Role) -> str:
    if role is Role.RIDER:
        return RIDER_HELP
    if role is Role.DRIVER:
        return DRIVER_HELP
    return UNRECOGNIZED


def welcome_back(user: User, text: str) -> str:
    return (
        f"嗨~ {user.display_name}，歡迎回來！我重複一次你的訊息：{text}\n"
        "輸入「help」查看可用指令"
    )


def driver_list(drivers: List[User], bound_driver_id: Optional[str] = None) -> str:
    if not drivers:
        return "目前還沒有司機註冊。"
    lines = ["目前的司機："]
    for driver in drivers:
        marker = "（已綁定）" if driver.external_id == bound_driver_id else ""
        lines.append(f"{driver.display_name}  ID: {driver.external_id}{marker}")
    return "\n".join(lines)


def rider_list(riders: List[User]) -> str:
    if not riders:
        return "目前沒有綁定您的乘客。"
    lines = ["已綁定的乘客："]
    lines.extend(f"{r.display_name}  ID: {r.external_id}" for r in riders)
    return "\n".join(lines)


def bind_instructions() -> str:
    return "請先輸入「綁定司機:<司機ID>」綁定您的司機，才能使用其他功能。"


def new_rider(user: User, drivers: List[User]) -> str:
    return "\n".join(
        [
            f"{user.display_name}，我已經將您設定為乘客",
            driver_list(drivers),
            bind_instructions(),
        ]
    )


def new_driver(user: User) -> str:
    return f"{user.display_name}，我已經將您設定為司機\n輸入「help」查看可用指令"


def bind_gate(drivers: List[User]) -> str:
    return f"{driver_list(drivers)}\n{bind_instructions()}"


def bound(driver: User) -> str:
    return f"綁定成功！您的司機是 {driver.display_name}"


def payment_recorded(payment: Payment) -> str:
    return f"已登記本月車費匯款 NT${payment.amount}（{payment.recorded_at.isoformat()}）"


def _signed(value: int) -> str:
    return f"+{value}" if value >= 0 else str(value)


def fare_statement(statement: FareStatement) -> str:
    payment = statement.payment
    if payment is None:
        return "查無車費紀錄。"

    header = f"車費匯款 NT${payment.amount}（{payment.recorded_at.isoformat()}）"
    if not statement.steps:
        return header

    lines = [header]
    for step in statement.steps:
        lines.append(
            f"{step.previous_total} {_signed(step.delta)} = {step.new_total}，原因：{step.note}"
        )

    net = statement.net_adjustment
    if net > 0:
        lines.append(f"下個月需補繳 NT${abs(net)}")
    elif net < 0:
        lines.append(f"下個月可折抵 NT${abs(net)}")
    else:
        lines.append("本月調整後無差額")
    return "\n".join(lines)


def income_report(report: IncomeReport) -> str:
    if not report.rows:
        return "目前沒有綁定您的乘客。"

    lines = ["本月車費收入："]
    for row in report.rows:
        name = f"{row.rider.display_name}（{row.rider.external_id}）"
        if not row.has_record:
            lines.append(f"{name}：本月無紀錄")
            continue
        line = f"{name}：匯款 NT${row.paid}"
        if row.adjustment_total:
            line += f"，調整 {_signed(row.adjustment_total)}"
        lines.append(line)
    lines.append(f"總收入：NT${report.total}")
    return "\n".join(lines)


def adjustment_recorded(rider: User, adjustment: Adjustment) -> str:
    return (
        f"已為 {rider.display_name} 記錄車費調整 {_signed(adjustment.delta)}，"
        f"備註：{adjustment.note}"
    )


def availability_saved(result: AvailabilityResult) -> str:
    window = result.window
    span = f"{window.start_date.isoformat()} ~ {window.end_date.isoformat()}"
    if window.is_open:
        text = f"已設定 {span} 開車，乘客數量 {window.capacity}，備註：{window.note}"
    else:
        text = f"已設定 {span} 不開車，備註：{window.note}"
    if result.replaced is not None:
        text += "\n（已覆蓋本月原本的設定）"
    return text


def parse_error(exc: ParseError) -> str:
    if isinstance(exc, RemarkTooLong):
        return f"備註最多 {exc.limit} 個字，請縮短後再試一次"
    return f"格式錯誤，請依照以下格式輸入：\n{exc.example}"


def rejection(exc: LedgerError) -> str:
    """Explain a domain rejection or lookup failure to the user."""

    if isinstance(exc, AlreadyPaidThisMonth):
        return f"本月已經匯款過了，金額 NT${exc.amount}"
    if isinstance(exc, AlreadyBound):
        return f"您已經綁定司機（{exc.driver_id}），如需更換請聯繫客服"
    if isinstance(exc, UnknownDriver):
        return f"找不到司機 {exc.driver_id}，請輸入「司機列表」確認司機ID"
    if isinstance(exc, UnknownRider):
        return f"乘客 {exc.rider_id} 不是您綁定的乘客，請輸入「乘客列表」確認"
    if isinstance(exc, PastDate):
        return f"日期 {exc.day.isoformat()} 已經過去，請輸入今天以後的日期"
    if isinstance(exc, CrossMonthRange):
        return "開始與結束日期必須在同一個月份"
    if isinstance(exc, InvertedRange):
        return "結束日期不能早於開始日期"
    if isinstance(exc, MissingCapacity):
        return "開車時段請填寫乘客數量，例如：乘客數量:3"
    return str(exc)
