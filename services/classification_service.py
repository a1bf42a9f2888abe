"""
Compliance classification service.

Classifies products into regulatory families with Claude and validates
certificates of analysis (COAs). Neither path raises to its caller:

- classify() falls back to the keyword taxonomy on any failure
- validate_coa() reports failures as is_valid=False with an error list
"""

import base64
import io
import json
import re
from typing import Optional

import anthropic
import pdfplumber
import structlog
from pdf2image import convert_from_bytes

from exceptions import COAExtractionError
from models.classification import (
    BulkClassifyResult,
    Classification,
    ClassificationSource,
    COAValidation,
    ComplianceCategory,
)
from models.product import ProductResponse
from services.compliance_taxonomy import fallback_classification

logger = structlog.get_logger(__name__)


def parse_json_response(response_text: str) -> dict:
    """
    Decode a JSON answer, tolerating markdown code fences.

    Raises:
        ValueError: If the text is not a JSON object
    """
    cleaned = response_text.strip()
    if cleaned.startswith("```"):
        # Remove ```json and ``` markers
        cleaned = re.sub(r'^```(?:json)?\s*', '', cleaned)
        cleaned = re.sub(r'\s*```$', '', cleaned)

    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data


def _media_type(document: bytes) -> Optional[str]:
    if document.startswith(b"%PDF"):
        return "application/pdf"
    if document.startswith(b"\x89PNG"):
        return "image/png"
    if document.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if document.startswith(b"GIF8"):
        return "image/gif"
    if document[:4] == b"RIFF" and document[8:12] == b"WEBP":
        return "image/webp"
    return None


class ClassificationService:
    """
    Product compliance classification using Claude.

    Usage:
        service = ClassificationService.from_settings(settings, products=product_service)
        classification = service.classify("Delta 8 Gummies", "25mg per piece")
    """

    # Below this much extracted text the PDF is treated as scanned
    MIN_TEXT_LENGTH = 50

    # COA text sent for analysis is cut at this length
    MAX_COA_TEXT = 20000

    SYSTEM_PROMPT = """You are a cannabis and hemp product compliance expert. Analyze products and classify them into compliance categories: THCA, Kratom, 7-Hydroxy, Nicotine, CBD, Hemp, or Standard.

Consider these factors:
- Product names containing "THCA", "Delta", "Kratom", "7-OH", "Hydroxy", "Nicotine", "Vape"
- Descriptions mentioning psychoactive effects, lab testing, batch numbers
- Any mention of age restrictions or state restrictions

Risk levels:
- critical: THCA, 7-Hydroxy
- high: Kratom, Nicotine
- medium: CBD
- low: Hemp, Standard

IMPORTANT: Return ONLY valid JSON, no markdown, no explanation.

{
  "category": "THCA|Kratom|7-Hydroxy|Nicotine|CBD|Hemp|Standard",
  "substanceType": "detailed substance description",
  "confidence": 0.0-1.0,
  "riskLevel": "low|medium|high|critical",
  "requiredCompliance": ["age_verification", "state_restrictions", "lab_testing", "quantity_limits", "adult_signature"],
  "reasoning": "short explanation"
}"""

    COA_SYSTEM_PROMPT = """You are a cannabis testing lab expert. Analyze Certificate of Analysis (COA) documents and extract key information.

Extract and validate:
1. Cannabinoid profile (THC, CBD, Delta-8, Delta-9, THCA, CBG, CBN percentages)
2. Contaminant testing results (pesticides, heavy metals, microbials, residual solvents)
3. Lab information (name, test date, batch number, expiration date)
4. Pass/fail status for each test
5. Any warnings or compliance notes

IMPORTANT: Return ONLY valid JSON, no markdown, no explanation.

{
  "isValid": true,
  "cannabinoidProfile": {"thc": 0.0, "cbd": 0.0, "delta8": 0.0, "delta9": 0.0, "thca": 0.0, "cbg": 0.0, "cbn": 0.0},
  "contaminants": {"pesticides": true, "heavyMetals": true, "microbials": true, "residualSolvents": true},
  "testDate": "YYYY-MM-DD",
  "labName": "string",
  "batchNumber": "string",
  "expirationDate": "YYYY-MM-DD",
  "errors": ["critical issues"],
  "warnings": ["concerns that are not failures"]
}"""

    TRANSCRIBE_PROMPT = (
        "Extract all text content from this Certificate of Analysis document. "
        "Focus on test results, cannabinoid profiles, contaminant testing, "
        "lab information, and batch details."
    )

    def __init__(
        self,
        client=None,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 2048,
        products=None,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.products = products

    @classmethod
    def from_settings(cls, settings, products=None) -> "ClassificationService":
        return cls(
            client=anthropic.Anthropic(api_key=settings.anthropic_api_key),
            model=settings.claude_model,
            max_tokens=settings.claude_max_tokens,
            products=products,
        )

    def _ask(self, system: str, content: list[dict]) -> str:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system,
            messages=[{"role": "user", "content": content}]
        )
        return response.content[0].text

    # ===================
    # CLASSIFICATION
    # ===================

    @staticmethod
    def _build_prompt(product_name: str, description: str, image_count: int) -> str:
        prompt = f'Product Name: "{product_name}"\nDescription: "{description}"\n'
        if image_count:
            prompt += f"Images Available: {image_count} product images\n"
        prompt += "\nClassify this product into the appropriate compliance category."
        return prompt

    @staticmethod
    def _to_classification(data: dict) -> Classification:
        return Classification(
            category=ComplianceCategory(data.get("category") or "Standard"),
            substance_type=data.get("substanceType") or "Unknown",
            confidence=float(data.get("confidence") or 0.5),
            risk_level=data.get("riskLevel") or "low",
            required_compliance=data.get("requiredCompliance") or [],
            reasoning=data.get("reasoning") or "Automated classification",
            source=ClassificationSource.LLM,
        )

    def classify(self, product_name: str, description: str = "", image_count: int = 0) -> Classification:
        """
        Classify a product.

        Returns:
            Classification from Claude, or the keyword fallback if the call,
            the JSON or its validation fails
        """
        try:
            if self.client is None:
                raise RuntimeError("Anthropic client not configured")

            response_text = self._ask(
                self.SYSTEM_PROMPT,
                [{"type": "text", "text": self._build_prompt(product_name, description or "", image_count)}]
            )
            classification = self._to_classification(parse_json_response(response_text))

        except Exception as e:
            logger.warning(
                "classification_fallback",
                product_name=product_name,
                error=str(e),
                error_type=type(e).__name__
            )
            return fallback_classification(product_name, description)

        logger.info(
            "product_classified",
            product_name=product_name,
            category=classification.category.value,
            confidence=classification.confidence
        )
        return classification

    def classify_product(self, product_id: str) -> tuple[ProductResponse, Classification]:
        """
        Classify a stored product and persist the result.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        product = self.products.get_by_id(product_id)
        classification = self.classify(
            product.name,
            product.description or "",
            image_count=len(product.image_urls or [])
        )
        updated = self.products.update_compliance(product_id, classification)
        return updated, classification

    def bulk_classify(self, product_ids: Optional[list[str]] = None) -> BulkClassifyResult:
        """
        Re-classify products (all products when no ids are given).

        Failures to load or save a product are counted; the run continues.
        """
        result = BulkClassifyResult()

        if product_ids is None:
            product_ids = [row["id"] for row in self.products.list_for_matching()]

        logger.info("bulk_classification_started", count=len(product_ids))

        for product_id in product_ids:
            try:
                _, classification = self.classify_product(product_id)
            except Exception as e:
                logger.warning("bulk_classification_item_failed", product_id=product_id, error=str(e))
                result.errors.append(f"Product {product_id}: {e}")
                continue

            result.processed += 1
            if classification.category != ComplianceCategory.STANDARD:
                result.classified += 1

        logger.info(
            "bulk_classification_completed",
            processed=result.processed,
            classified=result.classified,
            errors=len(result.errors)
        )
        return result

    # ===================
    # COA VALIDATION
    # ===================

    def _extract_with_pdfplumber(self, document: bytes) -> str:
        with pdfplumber.open(io.BytesIO(document)) as pdf:
            return "\n".join(page.extract_text() or "" for page in pdf.pages)

    def _vision_blocks(self, document: bytes) -> list[dict]:
        """
        Content blocks for Claude vision.

        PDFs are rendered to PNG pages when poppler is available and sent
        as a document block otherwise.
        """
        media_type = _media_type(document)

        if media_type == "application/pdf":
            try:
                pages = convert_from_bytes(document, dpi=150, first_page=1, last_page=3)
            except Exception as e:
                logger.warning("pdf_to_image_conversion_failed", error=str(e))
                pages = []

            if pages:
                blocks = []
                for page in pages:
                    buffer = io.BytesIO()
                    page.save(buffer, format="PNG")
                    blocks.append({
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": "image/png",
                            "data": base64.b64encode(buffer.getvalue()).decode("utf-8")
                        }
                    })
                return blocks

            return [{
                "type": "document",
                "source": {
                    "type": "base64",
                    "media_type": "application/pdf",
                    "data": base64.b64encode(document).decode("utf-8")
                }
            }]

        if media_type is None:
            raise COAExtractionError("Unsupported COA document format")

        return [{
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": media_type,
                "data": base64.b64encode(document).decode("utf-8")
            }
        }]

    def extract_coa_text(self, document: bytes) -> str:
        """
        Text of a COA: pdfplumber first, Claude vision transcription when
        the document is scanned or not a PDF.

        Raises:
            COAExtractionError: If no text could be obtained
        """
        text = ""
        if _media_type(document) == "application/pdf":
            try:
                text = self._extract_with_pdfplumber(document)
            except Exception as e:
                logger.info("coa_pdf_parse_failed", error=str(e))

        if len(text.strip()) >= self.MIN_TEXT_LENGTH:
            return text

        logger.info("coa_vision_transcription", pdf_text_length=len(text.strip()))

        try:
            blocks = self._vision_blocks(document)
            text = self._ask(
                "You transcribe laboratory documents.",
                blocks + [{"type": "text", "text": self.TRANSCRIBE_PROMPT}]
            )
        except COAExtractionError:
            raise
        except Exception as e:
            raise COAExtractionError("Vision transcription failed", details={"error": str(e)}) from e

        if not text.strip():
            raise COAExtractionError("No text found in COA document")
        return text

    def validate_coa(self, document: bytes, product_name: str) -> COAValidation:
        """
        Validate a certificate of analysis.

        Returns:
            COAValidation; is_valid=False with errors on any failure
        """
        if self.client is None:
            return COAValidation.failed("COA validation unavailable: Anthropic client not configured")

        try:
            text = self.extract_coa_text(document)
        except COAExtractionError as e:
            logger.warning("coa_text_extraction_failed", product_name=product_name, error=e.message)
            return COAValidation.failed("Unable to extract text from COA document")

        try:
            response_text = self._ask(
                self.COA_SYSTEM_PROMPT,
                [{
                    "type": "text",
                    "text": f"Product: {product_name}\n\nCOA Content:\n{text[:self.MAX_COA_TEXT]}"
                }]
            )
            data = parse_json_response(response_text)
            data["isValid"] = bool(data.get("isValid", False))
            data["errors"] = data.get("errors") or []
            data["warnings"] = data.get("warnings") or []
            validation = COAValidation.model_validate(data)

        except Exception as e:
            logger.error(
                "coa_validation_failed",
                product_name=product_name,
                error=str(e),
                error_type=type(e).__name__
            )
            return COAValidation.failed("COA validation failed due to processing error")

        logger.info(
            "coa_validated",
            product_name=product_name,
            is_valid=validation.is_valid,
            lab_name=validation.lab_name,
            errors=len(validation.errors)
        )
        return validation
