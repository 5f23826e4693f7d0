from datetime import date, datetime

import pytest

from storeflow.extensions import db
from storeflow.models import AttendanceLog, BreakLog
from storeflow.services import timekeeping_service
from storeflow.services.timekeeping_service import TimekeepingError


class TestAttendance:

    def test_button(self, salesperson):
        log = timekeeping_service.record_attendance(salesperson)
        assert log.method == "button"
        assert log.selfie_image_path is None

    def test_selfie_needs_path(self, salesperson):
        with pytest.raises(TimekeepingError):
            timekeeping_service.record_attendance(salesperson, method="selfie")

        log = timekeeping_service.record_attendance(salesperson, "selfie", " selfies/sam.jpg ")
        assert log.selfie_image_path == "selfies/sam.jpg"

    def test_invalid_method(self, salesperson):
        with pytest.raises(TimekeepingError, match="Invalid attendance method"):
            timekeeping_service.record_attendance(salesperson, method="fingerprint")


class TestBreaks:

    def test_start_and_end(self, cashier):
        brk = timekeeping_service.start_break(cashier)
        assert timekeeping_service.get_current_status(cashier.id)["on_break"] is True

        ended = timekeeping_service.end_break(cashier)
        assert ended.id == brk.id
        assert ended.end_time is not None
        assert ended.duration_ms >= 0
        assert timekeeping_service.get_current_status(cashier.id)["on_break"] is False

    def test_one_open_break(self, cashier):
        timekeeping_service.start_break(cashier)
        with pytest.raises(TimekeepingError, match="already in progress"):
            timekeeping_service.start_break(cashier)
        assert db.session.query(BreakLog).count() == 1

    def test_end_without_start(self, cashier):
        with pytest.raises(TimekeepingError, match="No break in progress"):
            timekeeping_service.end_break(cashier)


class TestListing:

    def test_filters(self, salesperson, cashier):
        db.session.add_all([
            AttendanceLog(user_id=salesperson.id, timestamp=datetime(2024, 1, 4, 8, 0), method="button"),
            AttendanceLog(user_id=salesperson.id, timestamp=datetime(2024, 1, 5, 8, 0), method="button"),
            AttendanceLog(user_id=cashier.id, timestamp=datetime(2024, 1, 5, 8, 5), method="button"),
        ])
        db.session.commit()

        logs = timekeeping_service.list_attendance(user_id=salesperson.id, start_date=date(2024, 1, 5))
        assert [log.timestamp for log in logs] == [datetime(2024, 1, 5, 8, 0)]
        assert len(timekeeping_service.list_attendance(end_date=date(2024, 1, 5))) == 3

    def test_api_own_logs_only(self, api, salesperson, salesperson_headers, cashier):
        db.session.add(AttendanceLog(user_id=cashier.id, timestamp=datetime(2024, 1, 5, 8, 5), method="button"))
        db.session.commit()

        resp = api.post("/api/timekeeping/attendance", json={}, headers=salesperson_headers)
        assert resp.status_code == 201

        resp = api.get(f"/api/timekeeping/attendance?user_id={cashier.id}", headers=salesperson_headers)
        assert resp.status_code == 200
        assert {row["user_id"] for row in resp.json()["attendance"]} == {salesperson.id}

    def test_api_admin_sees_everyone(self, api, admin_headers, salesperson, cashier):
        db.session.add_all([
            AttendanceLog(user_id=salesperson.id, timestamp=datetime(2024, 1, 5, 8, 0), method="button"),
            AttendanceLog(user_id=cashier.id, timestamp=datetime(2024, 1, 5, 8, 5), method="button"),
        ])
        db.session.commit()

        resp = api.get("/api/timekeeping/attendance", headers=admin_headers)
        assert resp.json()["count"] == 2

    def test_api_bad_date(self, api, salesperson_headers):
        resp = api.get("/api/timekeeping/breaks?start_date=05/01/2024", headers=salesperson_headers)
        assert resp.status_code == 400

    def test_api_break_errors_are_400(self, api, cashier_headers):
        assert api.post("/api/timekeeping/break/end", headers=cashier_headers).status_code == 400
        assert api.post("/api/timekeeping/break/start", headers=cashier_headers).status_code == 201
        assert api.post("/api/timekeeping/break/start", headers=cashier_headers).status_code == 400
