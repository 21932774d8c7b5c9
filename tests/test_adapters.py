"""
Tests for the extraction adapters and the inference services behind them.

Gemini and Mindee are never called: agents get a stubbed _generate,
the Mindee service is fed a prediction-shaped object.
"""

import base64
from io import BytesIO
from types import SimpleNamespace

import pytest
from openpyxl import Workbook

from conftest import (
    FakeReceiptService,
    FakeSmsService,
    FakeStatementService,
    candidate,
    run,
)

from transaction_hub.agents import SmsParsingAgent, StatementParsingAgent, extract_json_object
from transaction_hub.config import AppSettings, GeminiSettings, MindeeSettings
from transaction_hub.exceptions import (
    ExtractionError,
    ExtractionTimeoutError,
    TransactionValidationError,
)
from transaction_hub.extraction import (
    ReceiptAdapter,
    SmsAdapter,
    StatementAdapter,
    file_extension,
)
from transaction_hub.models.transaction import (
    AssetType,
    StatementExtraction,
    TransactionSource,
    TransactionType,
)
from transaction_hub.services.ocr import (
    ExtractionFailedError,
    MindeeReceiptService,
    ReceiptRejectedError,
    split_data_uri,
)


@pytest.fixture
def fast_timeout() -> AppSettings:
    return AppSettings(extraction_timeout_seconds=0.05)


def field(value, confidence=0.9):
    return SimpleNamespace(value=value, confidence=confidence)


class TestFileExtension:

    def test_extension(self):
        assert file_extension("March.PDF") == "pdf"
        assert file_extension("archive.tar.gz") == "gz"
        assert file_extension("noextension") == ""


class TestSmsAdapter:

    def test_blank_text_rejected_without_call(self, settings):
        service = FakeSmsService()
        with pytest.raises(TransactionValidationError):
            run(SmsAdapter(service, settings).extract("   "))
        assert service.calls == []

    def test_stamps_sms_source(self, settings):
        service = FakeSmsService(candidate(amount="85.5", type="EXPENSE"))
        result = run(SmsAdapter(service, settings).extract(" Spent AED 85.50 "))
        assert result.source == TransactionSource.SMS
        assert service.calls == ["Spent AED 85.50"]

    def test_timeout_raises(self, fast_timeout):
        service = FakeSmsService(candidate(amount="1", type="EXPENSE"), delay=1.0)
        with pytest.raises(ExtractionTimeoutError):
            run(SmsAdapter(service, fast_timeout).extract("Spent AED 1"))

    def test_unexpected_service_error_becomes_extraction_error(self, settings):
        service = FakeSmsService(error=RuntimeError("quota exceeded"))
        with pytest.raises(ExtractionError) as exc_info:
            run(SmsAdapter(service, settings).extract("Spent AED 1"))
        assert "quota exceeded" in str(exc_info.value)


class TestReceiptAdapter:

    def test_forces_expense(self, settings, png_bytes):
        service = FakeReceiptService(candidate(
            amount="42", type="INCOME", asset_type=AssetType.GOLD,
        ))
        result = run(ReceiptAdapter(service, settings).extract(png_bytes, "receipt.png"))

        assert result.asset_type == AssetType.EXPENSE
        assert result.type == TransactionType.EXPENSE
        assert result.source == TransactionSource.RECEIPT

    def test_sends_base64_data_uri(self, settings, png_bytes):
        service = FakeReceiptService(candidate(amount="42"))
        run(ReceiptAdapter(service, settings).extract(png_bytes, "receipt.PNG"))

        data_uri = service.calls[0]
        assert data_uri.startswith("data:image/png;base64,")
        assert base64.b64decode(data_uri.split(",", 1)[1]) == png_bytes

    def test_unsupported_format_rejected_without_call(self, settings, png_bytes):
        service = FakeReceiptService()
        with pytest.raises(TransactionValidationError) as exc_info:
            run(ReceiptAdapter(service, settings).extract(png_bytes, "receipt.gif"))
        assert exc_info.value.issues[0].issue_type == "unsupported_format"
        assert service.calls == []

    def test_not_an_image_rejected(self, settings):
        service = FakeReceiptService()
        with pytest.raises(TransactionValidationError):
            run(ReceiptAdapter(service, settings).extract(b"%PDF-1.4 not an image", "receipt.jpg"))
        assert service.calls == []

    def test_too_large_rejected(self):
        adapter = ReceiptAdapter(FakeReceiptService(), AppSettings(max_upload_size_mb=1))
        with pytest.raises(TransactionValidationError) as exc_info:
            adapter.validate_image(b"x" * (1024 * 1024 + 1), "big.jpg")
        assert exc_info.value.issues[0].issue_type == "too_large"

    def test_timeout_raises(self, fast_timeout, png_bytes):
        service = FakeReceiptService(candidate(amount="1"), delay=1.0)
        with pytest.raises(ExtractionTimeoutError):
            run(ReceiptAdapter(service, fast_timeout).extract(png_bytes, "receipt.png"))


class TestStatementAdapter:

    def test_missing_account_rejected_without_call(self, settings):
        service = FakeStatementService()
        with pytest.raises(TransactionValidationError) as exc_info:
            run(StatementAdapter(service, settings).extract(b"a,b", "march.csv", None))
        assert exc_info.value.fields == ["account_id"]
        assert service.calls == []

    def test_xls_not_supported(self, settings):
        with pytest.raises(TransactionValidationError):
            run(StatementAdapter(FakeStatementService(), settings).extract(b"data", "march.xls", "acc-1"))

    def test_candidates_tied_to_account(self, settings):
        envelope = StatementExtraction(
            success=True,
            candidates=[candidate(amount="10", type="EXPENSE"), candidate(amount="5", type="INCOME")],
        )
        service = FakeStatementService(envelope)
        result = run(StatementAdapter(service, settings).extract(b"a,b", "march.csv", " cc_9 "))

        assert service.calls == [("march.csv", "cc_9")]
        assert all(c.account_selection == "cc_9" for c in result.candidates)
        assert all(c.source == TransactionSource.STATEMENT for c in result.candidates)

    def test_service_failure_returned_verbatim(self, settings):
        envelope = StatementExtraction(success=False, message="Password-protected PDF")
        result = run(StatementAdapter(FakeStatementService(envelope), settings).extract(
            b"%PDF", "march.pdf", "acc-1"
        ))
        assert result.success is False
        assert result.message == "Password-protected PDF"

    def test_timeout_becomes_failure_envelope(self, fast_timeout):
        service = FakeStatementService(StatementExtraction(success=True), delay=1.0)
        result = run(StatementAdapter(service, fast_timeout).extract(b"a,b", "march.csv", "acc-1"))
        assert result.success is False
        assert "timed out" in result.message


class TestExtractJson:

    def test_finds_object_inside_prose(self):
        text = 'Sure! ```json\n{"amount": 10, "type": "EXPENSE"}\n``` Hope that helps.'
        assert extract_json_object(text) == {"amount": 10, "type": "EXPENSE"}

    @pytest.mark.parametrize("text", ["no json here", "{not valid}", "[1, 2]"])
    def test_returns_none_when_unusable(self, text):
        assert extract_json_object(text) is None


class TestSmsParsingAgent:

    @pytest.fixture
    def agent(self):
        return SmsParsingAgent(GeminiSettings(api_key="test-key"))

    def stub(self, agent, text):
        async def _generate(contents):
            return text
        agent._generate = _generate

    def test_parses_transaction(self, agent):
        self.stub(agent, '{"amount": "AED 85.50", "type": "expense", "merchant": "Carrefour", "date": "2024-03-01"}')
        result = run(agent.parse("Your card was used for AED 85.50 at CARREFOUR"))

        assert result.source == TransactionSource.SMS
        assert str(result.amount) == "85.50"
        assert result.type == TransactionType.EXPENSE
        assert result.merchant == "Carrefour"

    def test_not_a_transaction_raises(self, agent):
        self.stub(agent, '{"error": "not a transaction"}')
        with pytest.raises(ExtractionError):
            run(agent.parse("Your OTP is 123456"))

    def test_garbage_raises(self, agent):
        self.stub(agent, "I could not read that.")
        with pytest.raises(ExtractionError):
            run(agent.parse("???"))


class TestStatementParsingAgent:

    @pytest.fixture
    def agent(self):
        return StatementParsingAgent(GeminiSettings(api_key="test-key"))

    def stub(self, agent, text):
        sent = []

        async def _generate(contents):
            sent.append(contents)
            return text
        agent._generate = _generate
        return sent

    def test_bad_lines_go_to_rejected_items(self, agent):
        self.stub(agent, """{
            "success": true,
            "transactions": [
                {"amount": 120.5, "type": "EXPENSE", "date": "2024-03-01", "description": "Fuel"},
                {"amount": 3000, "type": "INCOME", "date": "2024-03-02", "description": "Salary"},
                {"amount": 10, "type": "TRANSFER", "description": "Mystery"},
                "garbage"
            ]
        }""")
        result = run(agent.parse("march.csv", b"date,amount\n", "acc-1"))

        assert result.success is True
        assert len(result.candidates) == 2
        assert len(result.rejected_items) == 2
        assert "Mystery" in result.rejected_items[0]

    def test_reported_failure_kept_verbatim(self, agent):
        self.stub(agent, '{"success": false, "message": "This is a utility bill, not a statement", "transactions": []}')
        result = run(agent.parse("bill.pdf", b"%PDF", "acc-1"))
        assert result.success is False
        assert result.message == "This is a utility bill, not a statement"

    def test_pdf_sent_inline(self, agent):
        sent = self.stub(agent, '{"success": true, "transactions": []}')
        run(agent.parse("march.pdf", b"%PDF-1.4", "acc-1"))
        prompt, document = sent[0]
        assert "acc-1" in prompt
        assert document == {"mime_type": "application/pdf", "data": b"%PDF-1.4"}

    def test_csv_rendered_as_rows(self, agent):
        text = agent._render_csv(b"Date,Amount\n2024-03-01, 10.00\n\n")
        assert text == "Date | Amount\n2024-03-01 | 10.00"

    def test_xlsx_rendered_as_rows(self, agent):
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "March"
        sheet.append(["Date", "Amount"])
        sheet.append(["2024-03-01", 10.5])
        buffer = BytesIO()
        workbook.save(buffer)

        text = agent._render_xlsx(buffer.getvalue())
        assert text.splitlines() == ["# Sheet: March", "Date | Amount", "2024-03-01 | 10.5"]


class TestMindeeReceiptService:

    @pytest.fixture
    def service(self, settings):
        return MindeeReceiptService(MindeeSettings(api_key="test-key"), settings)

    def test_prediction_to_candidate(self, service):
        prediction = SimpleNamespace(
            total_amount=field(42.5, 0.99),
            date=field("2024-03-01", 0.9),
            supplier_name=field("Carrefour", 0.8),
            category=field("food", 0.7),
        )
        result = service.to_candidate(prediction)

        assert str(result.amount) == "42.50"
        assert result.date.isoformat() == "2024-03-01"
        assert result.merchant == "Carrefour"
        assert result.asset_type == AssetType.EXPENSE
        assert 0.8 <= result.confidence <= 0.99

    def test_missing_total_rejected(self, service):
        prediction = SimpleNamespace(total_amount=field(None), supplier_name=field("Shop"))
        with pytest.raises(ReceiptRejectedError):
            service.to_candidate(prediction)

    def test_low_confidence_total_rejected(self, service):
        prediction = SimpleNamespace(total_amount=field(10.0, 0.1))
        with pytest.raises(ReceiptRejectedError) as exc_info:
            service.to_candidate(prediction)
        assert exc_info.value.confidence == 0.1

    def test_split_data_uri(self):
        mime_type, payload = split_data_uri("data:image/png;base64,aGVsbG8=")
        assert mime_type == "image/png"
        assert payload == "aGVsbG8="

    @pytest.mark.parametrize("uri", ["https://example.com/r.png", "data:image/png,raw", "data:image/png;base64,@@@"])
    def test_split_data_uri_rejects(self, uri):
        with pytest.raises(ExtractionFailedError):
            split_data_uri(uri)
