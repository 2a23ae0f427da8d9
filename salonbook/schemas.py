import datetime as dt
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from salonbook.logic.payroll import DayType
from salonbook.logic.recurrence import Cadence, Weekday


class BookingStatus(str, Enum):
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"
    no_show = "no_show"


class ShiftStatus(str, Enum):
    active = "active"
    completed = "completed"
    paid = "paid"


# ---------------- AVAILABILITY ----------------

class TimeRange(BaseModel):
    start: time
    end: time

    @model_validator(mode="after")
    def check_order(self):
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class AvailabilityCreate(BaseModel):
    team_member_id: int
    shop_id: int
    date: date
    start_time: time
    end_time: time
    is_available: bool = True
    notes: Optional[str] = None


class AvailabilityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    team_member_id: int
    shop_id: int
    date: date
    start_time: time
    end_time: time
    is_available: bool
    notes: Optional[str] = None


class RegularShiftsRequest(BaseModel):
    team_member_id: int
    shop_id: int
    schedule_type: Cadence = Cadence.every_week
    start_date: date
    end_date: Optional[date] = None
    # a weekday is enabled iff its list is non-empty
    schedules: Dict[Weekday, List[TimeRange]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class RegularShiftsResponse(BaseModel):
    success: bool = True
    created_count: int
    start_date: date
    end_date: date
    message: str


class DateRange(BaseModel):
    start: date
    end: date


class BatchAvailabilityRequest(BaseModel):
    shop_id: int
    team_member_ids: List[int] = Field(min_length=1)
    date_range: DateRange
    time_slots: List[TimeRange] = Field(min_length=1)
    days_of_week: List[Weekday] = Field(min_length=1)


class AvailabilityValidateRequest(BaseModel):
    team_member_id: int
    shop_id: int
    date: date
    start_time: time
    end_time: time
    exclude_id: Optional[int] = None


class WeeklyPatternsResponse(BaseModel):
    team_member_id: int
    shop_id: int
    schedule_type: Cadence
    schedules: Dict[Weekday, List[TimeRange]]
    message: str


# ---------------- PUBLIC BOOKING ----------------

class SlotOut(BaseModel):
    time: str
    display_time: str
    end_time: str
    display_end_time: str
    team_member_id: int
    shop_id: Optional[int] = None
    slot_id: Optional[str] = None
    is_available: bool = True


class AvailabilityResponse(BaseModel):
    date: date
    service_duration: Optional[int] = None
    available_slots: List[SlotOut] = []
    total_slots: int = 0
    team_member_id: Optional[str] = None
    service_id: Optional[int] = None
    message: Optional[str] = None


class ReserveRequest(BaseModel):
    team_member_id: int
    shop_id: int
    service_id: int
    date: date
    start_time: time
    duration: int = Field(gt=0)
    session_id: str = Field(min_length=1)


class ReserveResponse(BaseModel):
    reservation_id: int
    expires_at: datetime
    message: str


class BookingCreateRequest(BaseModel):
    client_id: int
    team_member_id: int
    shop_id: int
    service_id: int
    booking_date: date
    start_time: time
    duration: Optional[int] = Field(default=None, gt=0)
    price: Optional[Decimal] = Field(default=None, ge=0)
    variant_id: Optional[int] = None
    client_note: Optional[str] = None
    session_id: Optional[str] = None
    idempotency_key: Optional[str] = None

    @field_validator("client_note")
    @classmethod
    def strip_note(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None


class BookingOut(BaseModel):
    id: int
    booking_number: str
    client_id: int
    team_member_id: int
    shop_id: int
    service_id: int
    variant_id: Optional[int] = None
    starts_at: datetime
    ends_at: datetime
    booking_date: date
    start_time: time
    end_time: time
    duration: int
    price: float
    status: BookingStatus
    booking_note: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    no_show_at: Optional[datetime] = None
    client_first_name: Optional[str] = None
    client_last_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    team_member_first_name: Optional[str] = None
    team_member_last_name: Optional[str] = None
    team_member_photo: Optional[str] = None
    shop_name: Optional[str] = None
    shop_timezone: Optional[str] = None
    service_name: Optional[str] = None


class BookingListResponse(BaseModel):
    data: List[BookingOut]
    count: int


# ---------------- ADMIN CALENDAR ----------------

class RescheduleRequest(BaseModel):
    date: date
    start_time: time
    end_time: time
    team_member_id: Optional[int] = None
    duration: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def check_order(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[str] = None


# ---------------- SHIFTS / PAYROLL ----------------

class BreakOut(BaseModel):
    start: datetime
    end: Optional[datetime] = None
    duration_minutes: int = 0


class ShiftOut(BaseModel):
    id: int
    team_member_id: int
    team_member_name: Optional[str] = None
    date: date
    shift_start: datetime
    shift_end: Optional[datetime] = None
    breaks: List[BreakOut] = []
    status: ShiftStatus
    notes: Optional[str] = None
    gross_hours: float
    net_hours: float
    total_break_minutes: int
    paid_break_minutes: int
    unpaid_break_minutes: int
    day_type: DayType
    hourly_rate: float
    total_pay: float


class ClockInRequest(BaseModel):
    team_member_id: int
    shift_start: Optional[datetime] = None
    date: Optional[dt.date] = None


class ShiftAction(str, Enum):
    clock_out = "clock_out"


class ShiftUpdateRequest(BaseModel):
    action: Optional[ShiftAction] = None
    shift_start: Optional[datetime] = None
    shift_end: Optional[datetime] = None
    date: Optional[dt.date] = None
    notes: Optional[str] = None


class BreakAction(str, Enum):
    start = "start"
    end = "end"


class BreakRequest(BaseModel):
    action: BreakAction


class MarkPaidRequest(BaseModel):
    shift_ids: List[int] = Field(min_length=1)


class MarkPaidResponse(BaseModel):
    updated_count: int
    skipped_count: int
    shift_ids: List[int]
    message: str


class TimesheetSummary(BaseModel):
    total_hours: float = 0
    total_pay: float = 0
    days_worked: int = 0
    total_breaks: int = 0


class TimesheetMember(BaseModel):
    team_member_id: int
    team_member_name: Optional[str] = None
    shifts: List[ShiftOut]
    summary: TimesheetSummary


class TimesheetPeriod(BaseModel):
    start_date: date
    end_date: date


class TimesheetResponse(BaseModel):
    # grouped by member, or a single member's shifts when filtered
    data: Optional[List[TimesheetMember]] = None
    overall_summary: Optional[TimesheetSummary] = None
    shifts: Optional[List[ShiftOut]] = None
    summary: Optional[TimesheetSummary] = None
    period: TimesheetPeriod


class HourlyRateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    day_type: DayType
    rate: float
    is_active: bool


class HourlyRateUpdate(BaseModel):
    day_type: DayType
    rate: Decimal = Field(ge=0)


class HourlyRatesUpdateRequest(BaseModel):
    rates: List[HourlyRateUpdate] = Field(min_length=1)


class PublicHolidayCreate(BaseModel):
    name: str = Field(min_length=1)
    date: date
    description: Optional[str] = None


class PublicHolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    date: date
    description: Optional[str] = None
    is_active: bool
