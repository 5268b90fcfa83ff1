from __future__ import annotations

from datetime import date


class LedgerError(Exception):
    """Base class for every error the bot knows how to talk about."""


class ParseError(LedgerError):
    """
    Malformed command text.

    Always user-correctable: the reply carries a format example so the
    user can try again. Never logged as a system fault.
    """

    example = ""

    def __init__(self, text: str = "") -> None:
        super().__init__(text)
        self.text = text


class MalformedAmount(ParseError):
    example = "車費匯款:1200"


class MalformedBind(ParseError):
    example = "綁定司機:<司機ID>"


class MalformedAdjustment(ParseError):
    example = "<乘客ID>:+100 備註:多搭一趟"


class RemarkTooLong(MalformedAdjustment):
    def __init__(self, text: str = "", limit: int = 30) -> None:
        super().__init__(text)
        self.limit = limit


class MalformedAvailability(ParseError):
    example = "2026-11-01~2026-11-05:開車 備註:早班 乘客數量:3"


class DomainRejection(LedgerError):
    """Valid syntax, but a business rule says no."""


class AlreadyPaidThisMonth(DomainRejection):
    def __init__(self, amount: int) -> None:
        super().__init__(f"already paid this month, amount={amount}")
        self.amount = amount


class AlreadyBound(DomainRejection):
    def __init__(self, driver_id: str) -> None:
        super().__init__(f"already bound to driver {driver_id}")
        self.driver_id = driver_id


class UnknownRider(DomainRejection):
    def __init__(self, rider_id: str) -> None:
        super().__init__(f"rider {rider_id} is not bound to this driver")
        self.rider_id = rider_id


class PastDate(DomainRejection):
    def __init__(self, day: date) -> None:
        super().__init__(f"{day.isoformat()} is in the past")
        self.day = day


class CrossMonthRange(DomainRejection):
    def __init__(self, start: date, end: date) -> None:
        super().__init__(f"{start.isoformat()}~{end.isoformat()} spans two months")
        self.start = start
        self.end = end


class InvertedRange(DomainRejection):
    def __init__(self, start: date, end: date) -> None:
        super().__init__(f"{end.isoformat()} is before {start.isoformat()}")
        self.start = start
        self.end = end


class MissingCapacity(DomainRejection):
    def __init__(self) -> None:
        super().__init__("open windows need a passenger capacity")


class LookupFailure(LedgerError):
    """A referenced entity does not exist. Answered, never retried."""


class UnknownDriver(LookupFailure):
    def __init__(self, driver_id: str) -> None:
        super().__init__(f"no driver with id {driver_id}")
        self.driver_id = driver_id


class StoreFailure(LedgerError):
    """
    Any ledger store I/O error.

    Not retried. Propagates up to the event batch handler, which replies
    once with the busy message and reports a server error.
    """
