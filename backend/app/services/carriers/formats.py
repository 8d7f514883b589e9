"""
Carrier Format Definitions

One tagged record per carrier describing how its commission report is laid
out. Records are validated when the registry loads them, so a required column
that is not mapped to a logical field fails at start-up, not mid-ingestion.
"""
from __future__ import annotations
from typing import Annotated, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...models.ssot import FileType


class ColumnMapping(BaseModel):
    """Logical field -> source column header for one carrier."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Always present
    writing_agent_number: str
    client_name: str
    policy_number: str
    commissionable_premium: str
    commission_amount: str

    # Optional, carrier-dependent
    writing_agent_name: Optional[str] = None
    product: Optional[str] = None
    effective_date: Optional[str] = None
    app_date: Optional[str] = None
    premium_due_date: Optional[str] = None
    commission_paid_date: Optional[str] = None
    replacement_policy_effective_date: Optional[str] = None
    company: Optional[str] = None
    commission_type: Optional[str] = None
    commission_category: Optional[str] = None
    state: Optional[str] = None
    split_percentage: Optional[str] = None
    commission_rate: Optional[str] = None
    months_advanced: Optional[str] = None
    payment_mode: Optional[str] = None
    long_description: Optional[str] = None

    def mapped(self) -> Dict[str, str]:
        """Logical fields that have a source column."""
        return {k: v for k, v in self.model_dump().items() if v}


DATE_FIELDS = frozenset({
    "effective_date",
    "app_date",
    "premium_due_date",
    "commission_paid_date",
    "replacement_policy_effective_date",
})

CURRENCY_FIELDS = frozenset({"commissionable_premium", "commission_amount"})


class _CarrierFormatBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    column_mapping: ColumnMapping
    required_columns: Tuple[str, ...] = Field(min_length=1)
    currency_symbol: str = "$"

    # Accepted file extensions, set by each concrete format
    extensions: ClassVar[Tuple[str, ...]]

    @field_validator("required_columns")
    @classmethod
    def _no_blank_columns(cls, columns: Tuple[str, ...]) -> Tuple[str, ...]:
        if any(not c.strip() for c in columns):
            raise ValueError("required column names must not be blank")
        return columns

    @model_validator(mode="after")
    def _required_columns_are_mapped(self):
        mapped_columns = set(self.column_mapping.mapped().values())
        unmapped = [c for c in self.required_columns if c not in mapped_columns]
        if unmapped:
            raise ValueError(
                f"{self.name}: required columns {unmapped} are not mapped to any field"
            )
        return self

    @property
    def kind(self) -> FileType:
        return FileType(self.file_type)


class CsvCarrierFormat(_CarrierFormatBase):
    """Carrier that sends delimited text."""
    file_type: Literal["csv"] = "csv"

    extensions: ClassVar[Tuple[str, ...]] = ("csv",)


class SpreadsheetCarrierFormat(_CarrierFormatBase):
    """Carrier that sends a workbook; rows come from one named sheet."""
    file_type: Literal["excel"] = "excel"
    sheet_name: str = Field(min_length=1)

    extensions: ClassVar[Tuple[str, ...]] = ("xlsx", "xls")


CarrierFormatConfig = Annotated[
    Union[CsvCarrierFormat, SpreadsheetCarrierFormat],
    Field(discriminator="file_type"),
]


# =============================================================================
# BUILT-IN CARRIER FORMATS
# =============================================================================
# Adding a carrier means adding one entry here (or to CARRIER_FORMATS_FILE).

BUILTIN_CARRIER_FORMATS: List[dict] = [
    {
        "name": "Aetna",
        "file_type": "excel",
        "sheet_name": "Commission Details",
        "column_mapping": {
            "company": "COMPANY",
            "commission_type": "COMMISSIONTYPE",
            "writing_agent_number": "WRITINGAGENTNUMBER",
            "writing_agent_name": "WRITINGAGENTNAME",
            "client_name": "CLIENT",
            "policy_number": "POLICYNUMBER",
            "commission_category": "COMMISSIONCATEGORY",
            "app_date": "APPDATE",
            "state": "STATE",
            "product": "PRODUCT",
            "effective_date": "EFFECTIVEDATE",
            "premium_due_date": "PREMIUMDUEDATE",
            "commissionable_premium": "COMMISSIONABLEPREMIUM",
            "split_percentage": "SPLIT%",
            "commission_rate": "RATE%",
            "months_advanced": "MONTHSADVANCED",
            "commission_amount": "COMMISSIONAMOUNT",
            "payment_mode": "MODE",
            "replacement_policy_effective_date": "REPLPOLEFFDATE",
            "commission_paid_date": "COMMISSIONPAIDDATE",
            "long_description": "LONGDESCRIPTION",
        },
        "required_columns": ["WRITINGAGENTNUMBER", "COMMISSIONABLEPREMIUM", "CLIENT", "POLICYNUMBER"],
    },
    {
        "name": "Aflac",
        "file_type": "csv",
        "column_mapping": {
            "writing_agent_number": "AGENT_NUMBER",
            "writing_agent_name": "AGENT_NAME",
            "client_name": "POLICY_HOLDER",
            "policy_number": "POLICY_NUM",
            "commissionable_premium": "PREMIUM_AMOUNT",
            "commission_amount": "COMMISSION_AMT",
            "effective_date": "EFFECTIVE_DT",
            "commission_paid_date": "PAID_DATE",
            "product": "PRODUCT_NAME",
        },
        "required_columns": ["AGENT_NUMBER", "PREMIUM_AMOUNT", "POLICY_HOLDER", "POLICY_NUM"],
    },
    {
        "name": "American Amicable / Occidental",
        "file_type": "csv",
        "column_mapping": {
            "writing_agent_number": "WritingAgentID",
            "writing_agent_name": "AgentName",
            "client_name": "ClientName",
            "policy_number": "PolicyNumber",
            "commissionable_premium": "Premium",
            "commission_amount": "CommissionPaid",
            "effective_date": "PolicyEffectiveDate",
            "commission_paid_date": "CommissionDate",
            "product": "ProductName",
            "commission_category": "CommissionType",
        },
        "required_columns": ["WritingAgentID", "Premium", "ClientName", "PolicyNumber"],
    },
    {
        "name": "Foresters Financial",
        "file_type": "csv",
        "column_mapping": {
            "writing_agent_number": "Agent_Code",
            "writing_agent_name": "Agent_Full_Name",
            "client_name": "Insured_Name",
            "policy_number": "Certificate_Number",
            "commissionable_premium": "Annual_Premium",
            "commission_amount": "Commission_Amount",
            "effective_date": "Issue_Date",
            "commission_paid_date": "Payment_Date",
            "product": "Plan_Name",
        },
        "required_columns": ["Agent_Code", "Annual_Premium", "Insured_Name", "Certificate_Number"],
    },
    {
        "name": "Baltimore Life",
        "file_type": "csv",
        "column_mapping": {
            "writing_agent_number": "AGENT_NO",
            "writing_agent_name": "AGENT_NAME",
            "client_name": "INSURED_NAME",
            "policy_number": "POLICY_NO",
            "commissionable_premium": "PREMIUM",
            "commission_amount": "COMM_AMT",
            "effective_date": "EFF_DATE",
            "commission_paid_date": "COMM_DATE",
            "product": "PLAN_CODE",
        },
        "required_columns": ["AGENT_NO", "PREMIUM", "INSURED_NAME", "POLICY_NO"],
    },
    {
        "name": "Guarantee Trust Life (GTL)",
        "file_type": "csv",
        "column_mapping": {
            "writing_agent_number": "AgentNumber",
            "writing_agent_name": "AgentName",
            "client_name": "PolicyholderName",
            "policy_number": "PolicyNumber",
            "commissionable_premium": "AnnualPremium",
            "commission_amount": "CommissionAmount",
            "effective_date": "EffectiveDate",
            "commission_paid_date": "CommissionDate",
            "product": "ProductCode",
        },
        "required_columns": ["AgentNumber", "AnnualPremium", "PolicyholderName", "PolicyNumber"],
    },
    {
        "name": "Royal Neighbors of America (RNA)",
        "file_type": "csv",
        "column_mapping": {
            "writing_agent_number": "Rep_Number",
            "writing_agent_name": "Rep_Name",
            "client_name": "Member_Name",
            "policy_number": "Certificate_No",
            "commissionable_premium": "Premium_Amount",
            "commission_amount": "Commission_Paid",
            "effective_date": "Certificate_Date",
            "commission_paid_date": "Paid_Date",
            "product": "Product_Description",
        },
        "required_columns": ["Rep_Number", "Premium_Amount", "Member_Name", "Certificate_No"],
    },
    {
        "name": "Liberty Bankers Life (LBL)",
        "file_type": "csv",
        "column_mapping": {
            "writing_agent_number": "AGENT_CODE",
            "writing_agent_name": "AGENT_NAME",
            "client_name": "OWNER_NAME",
            "policy_number": "POLICY_NUMBER",
            "commissionable_premium": "PREMIUM_AMT",
            "commission_amount": "COMMISSION_AMT",
            "effective_date": "ISSUE_DATE",
            "commission_paid_date": "COMM_PAID_DATE",
            "product": "PRODUCT_NAME",
        },
        "required_columns": ["AGENT_CODE", "PREMIUM_AMT", "OWNER_NAME", "POLICY_NUMBER"],
    },
]
