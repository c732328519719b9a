from datetime import datetime
import struct

from conftest import make_record
from protocol.records import (
    RECORD_SIZE, AttendanceRecord, decode_attendance, decode_device_time, decode_identifier, decode_record,
    decode_time,
)


def test_timestamp_decode():
    raw = bytes([0xE8, 0x07, 6, 15, 8, 30, 0])  # 2024 low byte first
    assert decode_time(raw) == "2024-06-15 08:30:00"


def test_date_only_timestamp_is_midnight():
    assert decode_time(bytes([0xE8, 0x07, 12, 1])) == "2024-12-01 00:00:00"


def test_identifier_decode():
    assert decode_identifier(b"123\x00\x00\x00\x00\x00\x00") == "123"
    assert decode_identifier(b" 42 \x00\x00\x00\x00\x00") == "42"


def test_identifier_reencodes_to_trimmed_text():
    for uid in (b'1', b'123456789', b'00042'):
        rec = decode_record(make_record(uid=uid))
        assert rec.employee_identifier.encode('ascii') == uid


def test_record_fields():
    rec = decode_record(make_record(uid=b'77', status=4, punch=1))
    assert rec == AttendanceRecord('77', datetime(2024, 6, 15, 8, 30, 0), 4, 1, "2024-06-15 08:30:00")
    assert rec.as_dict()['timestamp'] == "2024-06-15 08:30:00"


def test_decoding_is_idempotent():
    data = make_record(uid=b'1') + make_record(uid=b'2', minute=45)
    assert decode_attendance(data) == decode_attendance(data)


def test_record_count_is_floor_of_size():
    data = make_record(uid=b'1') + make_record(uid=b'2') + make_record(uid=b'3')
    for size in (0, 39, 40, 79, 80, 119, 120):
        assert len(decode_attendance(data + b'\x00' * 10, size)) == size // RECORD_SIZE


def test_trailing_partial_record_dropped():
    records = decode_attendance(make_record(uid=b'9') + b'\x01' * 25)
    assert [r.employee_identifier for r in records] == ['9']


def test_zero_size_yields_nothing():
    assert decode_attendance(b'') == []


def test_invalid_date_keeps_record_count():
    data = bytes(80) + make_record(uid=b'5')
    records = decode_attendance(data, 120)
    assert len(records) == 3
    assert [r.timestamp for r in records[:2]] == [None, None]
    assert records[0].raw_timestamp == "0000-00-00 00:00:00"
    assert records[0].as_dict()['timestamp'] == "0000-00-00 00:00:00"
    assert records[2].employee_identifier == '5'


def test_month_zero_has_no_timestamp():
    rec = decode_record(make_record(uid=b'1', month=0))
    assert rec.employee_identifier == '1'
    assert rec.timestamp is None
    assert rec.raw_timestamp == "2024-00-15 08:30:00"


def test_device_clock_decode():
    when = datetime(2024, 6, 15, 8, 30, 5)
    t = ((when.year - 2000) * 12 * 31 + (when.month - 1) * 31 + when.day - 1) * 86400 \
        + (when.hour * 60 + when.minute) * 60 + when.second
    assert decode_device_time(struct.pack('<I', t)) == when
