"""
Spending Analysis Agent ("Mèo Mập")

Asks Gemini for a short, playful comment on the period's spending.

CRITICAL BOUNDARIES:
- CAN: Comment on the category breakdown and total it is given
- CANNOT: See individual transactions (only labels and sums are sent)
- CANNOT: Leave the caller without a result. Missing API key, network
  failure and unparseable responses all resolve to a fixed fallback
  with mood "neutral".

The agent is stateless per call and safe to re-enter. Preventing
overlapping requests is the caller's job (see AnalysisFlow).
"""

import json
from collections.abc import Sequence
from decimal import Decimal
from typing import Any, Optional

import google.generativeai as genai
from pydantic import ValidationError

from expense_ledger.audit import AuditLogger
from expense_ledger.config import GeminiSettings, get_settings
from expense_ledger.models.audit import AuditEventBuilder
from expense_ledger.models.ledger import Expense, Mood, SpendingAnalysis
from expense_ledger.queries import label_breakdown, total_spent


NO_KEY_FALLBACK = SpendingAnalysis(
    message=(
        "Vui lòng nhập API Key để Mèo Mập có thể tư vấn nha! "
        "(Giả lập: Bạn đang tiêu xài khá ổn đó!)"
    ),
    mood=Mood.NEUTRAL,
)

OFFLINE_FALLBACK = SpendingAnalysis(
    message="Meow... Mạng đang chập chờn, mình chưa phân tích được. Thử lại sau nhé!",
    mood=Mood.NEUTRAL,
)

EMPTY_FALLBACK = SpendingAnalysis(
    message="Chưa có khoản chi nào để Mèo Mập xem. Thêm chi tiêu rồi hỏi lại nhé!",
    mood=Mood.NEUTRAL,
)


class AnalysisResponseError(Exception):
    """The model's reply is not a {message, mood} object."""
    pass


def format_vnd(amount: Decimal) -> str:
    """Format like vi-VN locale: '.' groups thousands, ',' marks decimals."""
    text = f"{amount:,.2f}".rstrip("0").rstrip(".")
    return text.replace(",", "\0").replace(".", ",").replace("\0", ".")


def _json_number(amount: Decimal) -> Any:
    return int(amount) if amount == amount.to_integral_value() else float(amount)


class SpendingAnalysisAgent:
    """
    Gemini-backed spending commentary.

    Args:
        settings: Gemini settings (defaults to the environment)
        model: Anything with an async `generate_content_async(prompt)`
               returning an object with `.text`. Injected in tests.
        audit_logger: Optional audit trail
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._audit_logger = audit_logger
        self._model = model
        if self._model is None and self._settings.is_configured:
            self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            },
        )

    @property
    def is_available(self) -> bool:
        return self._model is not None

    @staticmethod
    def build_prompt(expenses: Sequence[Expense], total: Decimal) -> str:
        breakdown = {
            label: _json_number(amount)
            for label, amount in label_breakdown(expenses).items()
        }

        return f"""Bạn là một trợ lý tài chính tên là "Mèo Mập". Tính cách: Dễ thương, hài hước, đôi khi hơi đanh đá nếu tiêu xài hoang phí, nhưng luôn quan tâm.

Hãy phân tích dữ liệu chi tiêu sau đây trong tháng này:
- Tổng chi: {format_vnd(total)} VND
- Chi tiết: {json.dumps(breakdown, ensure_ascii=False)}

Yêu cầu:
1. Đưa ra một nhận xét ngắn gọn (tối đa 2 câu) bằng tiếng Việt.
2. Xác định tâm trạng của bạn dựa trên cách chi tiêu (happy, concerned, neutral).
3. Trả về định dạng JSON thuần không có markdown block.

Ví dụ output:
{{"message": "Meow! Tháng này bạn uống trà sữa hơi nhiều nha, coi chừng béo đó!", "mood": "concerned"}}"""

    @staticmethod
    def parse_response(text: Optional[str]) -> SpendingAnalysis:
        """
        Extract the {message, mood} object from the model's reply.

        Raises:
            AnalysisResponseError: If no valid object can be found
        """
        if not text:
            raise AnalysisResponseError("Empty response")

        # Tolerate markdown fences or chatter around the object
        start = text.find("{")
        end = text.rfind("}") + 1
        if start < 0 or end <= start:
            raise AnalysisResponseError("No JSON object in response")

        try:
            data = json.loads(text[start:end])
            return SpendingAnalysis.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise AnalysisResponseError(f"Malformed analysis: {e}")

    async def analyze(
        self,
        expenses: Sequence[Expense],
        total: Optional[Decimal] = None,
    ) -> SpendingAnalysis:
        """
        Comment on a period's spending. Never raises.

        Args:
            expenses: The period's expenses
            total: Precomputed total (recomputed when omitted)
        """
        if not self.is_available:
            return NO_KEY_FALLBACK
        if not expenses:
            return EMPTY_FALLBACK

        if total is None:
            total = total_spent(expenses)

        try:
            response = await self._model.generate_content_async(
                self.build_prompt(expenses, total)
            )
            analysis = self.parse_response(response.text)
        except Exception as e:
            if self._audit_logger:
                self._audit_logger.log(AuditEventBuilder.analysis_failed(str(e)))
            return OFFLINE_FALLBACK

        if self._audit_logger:
            self._audit_logger.log(
                AuditEventBuilder.analysis_completed(analysis.mood.value, len(expenses))
            )
        return analysis
