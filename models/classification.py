"""
Compliance classification and COA schemas.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from enum import Enum


class ComplianceCategory(str, Enum):
    THCA = "THCA"
    KRATOM = "Kratom"
    SEVEN_HYDROXY = "7-Hydroxy"
    NICOTINE = "Nicotine"
    CBD = "CBD"
    HEMP = "Hemp"
    STANDARD = "Standard"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ClassificationSource(str, Enum):
    LLM = "llm"
    FALLBACK = "fallback"


class Classification(BaseModel):
    """
    Compliance classification of a product.

    Derived data: regenerable at any time and never authoritative.
    """

    category: ComplianceCategory
    substance_type: str
    confidence: float = Field(..., ge=0, le=1)
    risk_level: RiskLevel
    required_compliance: list[str] = Field(default_factory=list)
    reasoning: str = ""
    source: ClassificationSource = ClassificationSource.LLM

    @property
    def age_restricted(self) -> bool:
        return "age_verification" in self.required_compliance


class ClassifyRequest(BaseModel):
    product_name: str = Field(..., min_length=1)
    description: str = ""
    image_count: int = Field(0, ge=0)


class BulkClassifyRequest(BaseModel):
    product_ids: Optional[list[str]] = None


class BulkClassifyResult(BaseModel):
    processed: int = 0
    classified: int = 0
    errors: list[str] = Field(default_factory=list)


# ===================
# COA
# ===================

class CamelSchema(BaseModel):
    """Lab values are exchanged in camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CannabinoidProfile(CamelSchema):
    """Percentages by weight as reported on the certificate."""
    thc: Optional[float] = None
    cbd: Optional[float] = None
    delta8: Optional[float] = None
    delta9: Optional[float] = None
    thca: Optional[float] = None
    cbg: Optional[float] = None
    cbn: Optional[float] = None


class Contaminants(CamelSchema):
    """True means the panel passed."""
    pesticides: Optional[bool] = None
    heavy_metals: Optional[bool] = None
    microbials: Optional[bool] = None
    residual_solvents: Optional[bool] = None


class COAValidation(CamelSchema):
    """
    Result of validating a certificate of analysis.

    Failures are reported through is_valid and errors, never raised.
    """

    is_valid: bool = False
    cannabinoid_profile: Optional[CannabinoidProfile] = None
    contaminants: Optional[Contaminants] = None
    test_date: Optional[str] = None
    lab_name: Optional[str] = None
    batch_number: Optional[str] = None
    expiration_date: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def failed(cls, *errors: str) -> "COAValidation":
        return cls(is_valid=False, errors=list(errors))
