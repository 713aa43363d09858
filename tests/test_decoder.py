"""
Tests for decoding fetched messages into records

Tests cover:
- Sender, subject and recipient headers (including RFC 2047)
- Date parsing and the batch fallback time
- Read flag detection
- Lazy body extraction
- Malformed input never raising
"""
from datetime import datetime, timezone

import pytest

from rutt.core.mail.decoder import (
    NO_BODY,
    NO_SUBJECT,
    UNKNOWN_SENDER,
    MessageDecoder,
    decode,
    decode_header_value,
)
from rutt.core.models import LazyBody, RawMessage

from .test_helpers import MessageTestHelper

FETCHED_AT = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def decoder():
    return MessageDecoder(fetched_at=FETCHED_AT)


class TestHeaderDecoding:
    """Tests for sender, subject and recipients"""

    def test_plain_headers(self, decoder):
        """Test a well-formed message decodes field by field"""
        record = decoder.decode(MessageTestHelper.raw_message(1))

        assert record.sender == "Alice <alice@example.com>"
        assert record.subject == "Test Subject"
        assert record.to == "bob@example.com"
        assert record.cc is None

    def test_encoded_subject(self, decoder):
        """Test RFC 2047 encoded subjects are decoded"""
        raw = MessageTestHelper.raw_message(1, subject="=?utf-8?q?H=C3=A9llo?=")
        assert decoder.decode(raw).subject == "Héllo"

    def test_encoded_sender_name(self, decoder):
        """Test RFC 2047 encoded display names are decoded"""
        raw = MessageTestHelper.raw_message(
            1, sender="=?utf-8?q?Ren=C3=A9?= <rene@example.com>"
        )
        assert decoder.decode(raw).sender == "René <rene@example.com>"

    def test_bare_address_sender(self, decoder):
        """Test a sender without display name is shown as the address"""
        raw = MessageTestHelper.raw_message(1, sender="carol@example.com")
        assert decoder.decode(raw).sender == "carol@example.com"

    def test_missing_sender_placeholder(self, decoder):
        """Test a message without From gets the sender placeholder"""
        raw = MessageTestHelper.raw_message(1, sender=None)
        assert decoder.decode(raw).sender == UNKNOWN_SENDER

    def test_missing_subject_placeholder(self, decoder):
        """Test a message without Subject gets the subject placeholder"""
        raw = MessageTestHelper.raw_message(1, subject=None)
        assert decoder.decode(raw).subject == NO_SUBJECT

    def test_blank_subject_placeholder(self, decoder):
        """Test a blank Subject is treated as missing"""
        raw = MessageTestHelper.raw_message(1, subject="   ")
        assert decoder.decode(raw).subject == NO_SUBJECT

    def test_unknown_charset_does_not_fail(self, decoder):
        """Test an unknown charset falls back to lenient decoding"""
        raw = MessageTestHelper.raw_message(1, subject="=?x-unknown?q?abc?=")
        assert decoder.decode(raw).subject == "abc"

    def test_recipient_lists(self, decoder):
        """Test To and Cc keep every address"""
        raw = MessageTestHelper.raw_message(
            1,
            to="bob@example.com, Carol <carol@example.com>",
            cc="dave@example.com",
        )
        record = decoder.decode(raw)
        assert record.to == "bob@example.com, Carol <carol@example.com>"
        assert record.cc == "dave@example.com"

    def test_bcc_decoded(self, decoder):
        """Test a Bcc header is kept when the server returns one"""
        raw = MessageTestHelper.raw_message(
            1, bcc="=?utf-8?q?Ren=C3=A9?= <rene@example.com>"
        )
        record = decoder.decode(raw)
        assert record.bcc == "René <rene@example.com>"
        assert decoder.decode(MessageTestHelper.raw_message(2)).bcc is None

    def test_raw_latin1_subject(self, decoder):
        """Test undeclared 8-bit header bytes that are not UTF-8 read as Latin-1"""
        raw = RawMessage(seq=1, raw=b"From: a@example.com\r\nSubject: caf\xe9\r\n\r\nbody")
        assert decoder.decode(raw).subject == "caf\u00e9"

    def test_raw_utf8_subject(self, decoder):
        """Test undeclared 8-bit header bytes are tried as UTF-8 first"""
        raw = RawMessage(
            seq=1, raw="From: a@example.com\r\nSubject: café\r\n\r\nbody".encode("utf-8")
        )
        assert decoder.decode(raw).subject == "café"

    def test_decode_header_value_folds_whitespace(self):
        """Test folded header lines collapse to single spaces"""
        assert decode_header_value("Hello\r\n  world") == "Hello world"
        assert decode_header_value(None) == ""


class TestTimestamps:
    """Tests for Date header handling"""

    def test_date_parsed(self, decoder):
        """Test a valid Date header becomes an aware datetime"""
        record = decoder.decode(MessageTestHelper.raw_message(1))
        assert record.timestamp == datetime(2024, 6, 10, 8, 0, tzinfo=timezone.utc)

    def test_date_with_offset(self, decoder):
        """Test timezone offsets are kept"""
        raw = MessageTestHelper.raw_message(1, date="Mon, 10 Jun 2024 10:00:00 +0200")
        assert decoder.decode(raw).timestamp == datetime(
            2024, 6, 10, 8, 0, tzinfo=timezone.utc
        )

    def test_unknown_zone_read_as_utc(self, decoder):
        """Test a -0000 date (no zone info) is read as UTC"""
        raw = MessageTestHelper.raw_message(1, date="Mon, 10 Jun 2024 08:00:00 -0000")
        timestamp = decoder.decode(raw).timestamp
        assert timestamp.tzinfo is not None
        assert timestamp == datetime(2024, 6, 10, 8, 0, tzinfo=timezone.utc)

    def test_missing_date_uses_fetch_time(self, decoder):
        """Test a message without Date gets the batch reference time"""
        raw = MessageTestHelper.raw_message(1, date=None)
        assert decoder.decode(raw).timestamp == FETCHED_AT

    def test_unparseable_date_uses_fetch_time(self, decoder):
        """Test a garbage Date gets the batch reference time"""
        raw = MessageTestHelper.raw_message(1, date="not a date")
        assert decoder.decode(raw).timestamp == FETCHED_AT

    def test_batch_shares_one_reference_time(self, decoder):
        """Test every undated message in a batch gets the same time"""
        raws = [MessageTestHelper.raw_message(seq, date=None) for seq in (1, 2, 3)]
        timestamps = {record.timestamp for record in decoder.decode_all(raws)}
        assert timestamps == {FETCHED_AT}

    def test_naive_fetched_at_made_aware(self):
        """Test a naive reference time is read as UTC"""
        decoder = MessageDecoder(fetched_at=datetime(2024, 6, 10, 12, 0))
        assert decoder.fetched_at == FETCHED_AT


class TestReadFlag:
    """Tests for the \\Seen flag"""

    @pytest.mark.parametrize(
        "flags,expected",
        [
            ((), False),
            (("\\Seen",), True),
            (("\\seen",), True),
            (("\\Flagged",), False),
            (("\\Answered", "\\Seen"), True),
        ],
    )
    def test_is_read(self, decoder, flags, expected):
        """Test read status follows the \\Seen flag"""
        raw = MessageTestHelper.raw_message(1, flags=flags)
        assert decoder.decode(raw).is_read is expected


class TestBody:
    """Tests for lazy body extraction"""

    def test_body_decoded_on_access(self, decoder):
        """Test the body stays pending until first read"""
        record = decoder.decode(MessageTestHelper.raw_message(1, body="Hello there"))

        assert not record.body_source.is_decoded
        assert record.body == "Hello there"
        assert record.body_source.is_decoded

    def test_body_decoded_once(self):
        """Test the decode function runs at most once"""
        calls = []

        def count(raw):
            calls.append(raw)
            return "text"

        body = LazyBody(b"raw", count)
        assert body.get() == "text"
        assert body.get() == "text"
        assert calls == [b"raw"]

    def test_html_only_body(self, decoder):
        """Test HTML bodies are reduced to text"""
        raw = (
            b"From: alice@example.com\r\n"
            b"Subject: Html\r\n"
            b"Content-Type: text/html; charset=utf-8\r\n\r\n"
            b"<p>Hi &amp; bye</p>"
        )
        record = decoder.decode(RawMessage(seq=1, raw=raw))
        assert record.body == "Hi & bye"

    def test_multipart_prefers_plain(self, decoder):
        """Test the first text/plain part wins over HTML"""
        raw = (
            b"From: alice@example.com\r\n"
            b"Subject: Mixed\r\n"
            b"MIME-Version: 1.0\r\n"
            b'Content-Type: multipart/alternative; boundary="XX"\r\n\r\n'
            b"--XX\r\n"
            b"Content-Type: text/html; charset=utf-8\r\n\r\n"
            b"<b>rich</b>\r\n"
            b"--XX\r\n"
            b"Content-Type: text/plain; charset=utf-8\r\n\r\n"
            b"plain text\r\n"
            b"--XX--\r\n"
        )
        record = decoder.decode(RawMessage(seq=1, raw=raw))
        assert record.body.strip() == "plain text"

    def test_empty_body_placeholder(self, decoder):
        """Test an empty body gets the body placeholder"""
        record = decoder.decode(MessageTestHelper.raw_message(1, body=""))
        assert record.body == NO_BODY


class TestMalformedInput:
    """Tests for messages that are not valid RFC 822"""

    def test_empty_message(self, decoder):
        """Test an empty message decodes to placeholders"""
        record = decoder.decode(RawMessage(seq=7, raw=b""))

        assert record.sender == UNKNOWN_SENDER
        assert record.subject == NO_SUBJECT
        assert record.timestamp == FETCHED_AT
        assert record.body == NO_BODY
        assert record.seq == 7

    def test_binary_garbage(self, decoder):
        """Test binary garbage never raises"""
        record = decoder.decode(RawMessage(seq=1, raw=b"\x00\xff\xfe garbage \x80"))
        assert record.sender == UNKNOWN_SENDER
        assert isinstance(record.body, str)

    def test_decode_all_keeps_order_and_ids(self, decoder, raw_messages):
        """Test batch decoding preserves input order, UIDs and sequence numbers"""
        records = decoder.decode_all(raw_messages)

        assert [r.subject for r in records] == ["Third", "First", "Second"]
        assert [r.seq for r in records] == [3, 1, 2]
        assert [r.uid for r in records] == [103, 101, 102]

    def test_module_decode(self):
        """Test the module-level helper decodes one message"""
        record = decode(MessageTestHelper.raw_message(1), fetched_at=FETCHED_AT)
        assert record.subject == "Test Subject"
