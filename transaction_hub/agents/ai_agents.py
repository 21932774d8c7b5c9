"""
AI Agents for Transaction Hub

DESIGN DECISION: We use Gemini for the free-form modalities because:
1. Bank SMS formats differ per bank and change without notice
2. Statements arrive as PDF, CSV or spreadsheets with no common layout
3. The model returns structured JSON we can validate with Pydantic

CRITICAL BOUNDARIES:

1. SMS PARSING AGENT:
   - CAN: Read amount, direction, date and merchant from the text
   - CANNOT: Guess a value that isn't in the text
   - CANNOT: Fall back to anything when it fails (it raises)

2. STATEMENT PARSING AGENT:
   - CAN: List every transaction line in a statement
   - CAN: Report that the file isn't a statement (success=false)
   - CANNOT: Drop a line silently - unusable lines are reported back

The LLM is a TRANSLATOR, not an ORACLE.
It converts documents into candidates. It NEVER makes up financial data,
and nothing it returns is persisted before the normalizer has checked it.
"""

import csv
import json
from io import BytesIO, StringIO
from typing import Optional

import google.generativeai as genai
import structlog
from openpyxl import load_workbook
from pydantic import ValidationError

from transaction_hub.config import GeminiSettings, get_settings
from transaction_hub.exceptions import ExtractionError
from transaction_hub.extraction.adapters import file_extension
from transaction_hub.extraction.interface import (
    SmsExtractionService,
    StatementExtractionService,
)
from transaction_hub.models.transaction import (
    StatementExtraction,
    TransactionCandidate,
    TransactionSource,
)


logger = structlog.get_logger(__name__)


# Keys the model may fill; anything else in its answer is ignored
CANDIDATE_KEYS = (
    "amount",
    "type",
    "date",
    "description",
    "merchant",
    "category",
    "asset_type",
)


def extract_json_object(text: str) -> Optional[dict]:
    """Find the outermost JSON object in a model response."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        return None
    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def candidate_fields(data: dict) -> dict:
    return {key: data[key] for key in CANDIDATE_KEYS if data.get(key) not in (None, "")}


class _GeminiAgent:
    """Shared Gemini model setup."""

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def _generate(self, contents) -> str:
        try:
            response = await self._model.generate_content_async(contents)
            return response.text.strip()
        except Exception as e:
            logger.error("gemini_request_failed", error=str(e))
            raise ExtractionError(f"Gemini request failed: {e}", service="gemini")


class SmsParsingAgent(_GeminiAgent, SmsExtractionService):
    """
    Turns a bank notification SMS into a candidate.

    BOUNDARIES:
    - Only reads what the SMS says
    - Leaves a field empty rather than guessing it
    - NEVER returns a partial result on failure
    """

    async def parse(self, text: str) -> TransactionCandidate:
        prompt = f"""You are reading a bank notification SMS for a personal finance app.

SMS:
\"\"\"{text}\"\"\"

Extract the transaction as a JSON object with these fields:
- amount: the transaction amount as a number, without currency
- type: "EXPENSE" for debits, purchases and withdrawals; "INCOME" for credits, refunds and salary
- date: the transaction date as YYYY-MM-DD, or null if not stated
- merchant: the merchant or counterparty, or null
- description: a short description, e.g. "Card purchase at Carrefour"
- category: a spending category if obvious (groceries, fuel, dining, ...), or null

If the SMS is not about a transaction (OTP, promotion, balance alert), respond with:
{{"error": "not a transaction"}}

Respond with ONLY the JSON object, no explanation."""

        data = extract_json_object(await self._generate(prompt))
        if data is None:
            raise ExtractionError("Could not read a transaction from this SMS", service="gemini")
        if data.get("error"):
            raise ExtractionError(f"SMS was not understood: {data['error']}", service="gemini")

        try:
            return TransactionCandidate(source=TransactionSource.SMS, **candidate_fields(data))
        except ValidationError as e:
            raise ExtractionError(f"SMS produced an unusable transaction: {e}", service="gemini")


class StatementParsingAgent(_GeminiAgent, StatementExtractionService):
    """
    Turns a bank or credit card statement into a batch of candidates.

    PDFs go to Gemini as-is. CSV and spreadsheets are rendered to text
    first so the model sees rows, not bytes.
    """

    MAX_ROWS = 2000

    def _render_csv(self, content: bytes) -> str:
        text = content.decode("utf-8-sig", errors="replace")
        rows = list(csv.reader(StringIO(text)))[: self.MAX_ROWS]
        return "\n".join(" | ".join(cell.strip() for cell in row) for row in rows if any(row))

    def _render_xlsx(self, content: bytes) -> str:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
        lines = []
        try:
            for sheet in workbook.worksheets:
                lines.append(f"# Sheet: {sheet.title}")
                for row in sheet.iter_rows(values_only=True):
                    if len(lines) > self.MAX_ROWS:
                        break
                    cells = ["" if value is None else str(value).strip() for value in row]
                    if any(cells):
                        lines.append(" | ".join(cells))
        finally:
            workbook.close()
        return "\n".join(lines)

    def _document_part(self, filename: str, content: bytes):
        extension = file_extension(filename)
        if extension == "pdf":
            return {"mime_type": "application/pdf", "data": content}
        if extension == "csv":
            return self._render_csv(content)
        if extension == "xlsx":
            return self._render_xlsx(content)
        raise ExtractionError(f"Unsupported statement format: .{extension}", service="gemini")

    def _build_prompt(self, account_id: Optional[str]) -> str:
        return f"""You are reading a bank or credit card statement for a personal finance app.
The statement belongs to account "{account_id or 'unknown'}".

List EVERY transaction line in the statement. Respond with ONLY a JSON object:
{{
  "success": true,
  "message": null,
  "transactions": [
    {{"amount": 120.50, "type": "EXPENSE", "date": "2024-03-01", "description": "...", "merchant": "...", "category": null}}
  ]
}}

Rules:
- amount is always positive; use type "EXPENSE" for debits and "INCOME" for credits
- date is YYYY-MM-DD
- skip opening/closing balance lines and totals, they are not transactions
- do NOT invent lines that are not in the document

If the document is not a statement, or you cannot read it, respond with:
{{"success": false, "message": "<short reason for the user>", "transactions": []}}"""

    async def parse(
        self,
        filename: str,
        content: bytes,
        account_id: Optional[str],
    ) -> StatementExtraction:
        try:
            document = self._document_part(filename, content)
        except ExtractionError:
            raise
        except Exception as e:
            return StatementExtraction(success=False, message=f"Could not read {filename}: {e}")

        text = await self._generate([self._build_prompt(account_id), document])

        data = extract_json_object(text)
        if data is None:
            return StatementExtraction(
                success=False,
                message="Could not read any transactions from this statement.",
            )
        if not data.get("success", True):
            return StatementExtraction(
                success=False,
                message=data.get("message") or "This doesn't look like a statement.",
            )

        candidates = []
        rejected = []
        items = data.get("transactions") or []
        for index, item in enumerate(items, start=1):
            if not isinstance(item, dict):
                rejected.append(f"Line {index}: not a transaction")
                continue
            try:
                candidates.append(TransactionCandidate(
                    source=TransactionSource.STATEMENT,
                    **candidate_fields(item),
                ))
            except ValidationError as e:
                reason = "; ".join(err["msg"] for err in e.errors())
                rejected.append(f"Line {index} ({item.get('description') or 'no description'}): {reason}")

        logger.info(
            "statement_parsed",
            filename=filename,
            candidates=len(candidates),
            rejected=len(rejected),
        )
        return StatementExtraction(
            success=True,
            candidates=candidates,
            message=data.get("message"),
            rejected_items=rejected,
        )
