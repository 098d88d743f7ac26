
from pydantic import BaseModel, Field
from typing import Annotated, Literal, Optional, Union, Dict, List
from datetime import datetime

Side = Literal["Buy","Sell"]
EquityStatus = Literal["Confirmed","Pending","Failed","Settled"]
FXStatus = Literal["Confirmed","Pending","Disputed"]
FXTradeStatus = Literal["Booked","Confirmed","Settled","Cancelled"]
ProductType = Literal["Spot","Forward","Swap"]
ConfirmationMethod = Literal["SWIFT","Email","Electronic","Manual"]

RiskLevel = Literal["Low","Medium","High","Critical"]
BreakType = Literal["Economic","Non-Economic"]
PendingWith = Literal["Legal","Middle Office","Client","Front Office","Trading Sales"]
QueueStatus = Literal["Drafting","Matching","Pending Approval","CCNR"]

BREAK_STATUSES = ("Failed", "Disputed")

DOCUMENT_TYPES = (
    "trade_confirmation",
    "client_agreement",
    "risk_disclosure",
    "compliance_checklist",
    "front_office_sales_approval",
    "trading_sales_approval",
)


class Enrichment(BaseModel):
    risk_level: Optional[RiskLevel] = None
    break_type: Optional[BreakType] = None
    pending_with: Optional[PendingWith] = None
    next_action_owner: Optional[str] = None
    break_classification: Optional[str] = None
    queue_status: Optional[QueueStatus] = None
    failure_reason: Optional[str] = None
    sent_to_settlements: bool = False
    settlements_sent_at: Optional[datetime] = None

    @property
    def has_break(self) -> bool:
        return self.confirmation_status in BREAK_STATUSES


class EquityTrade(Enrichment):
    kind: Literal["equity"] = "equity"
    trade_id: str
    order_id: str = ""
    client_id: str = ""
    trade_type: Side = "Buy"
    quantity: int = 0
    price: float = 0.0
    trade_value: float = 0.0
    currency: str = "USD"
    trade_date: str
    settlement_date: str = ""
    counterparty: str = ""
    trading_venue: str = ""
    trader_name: str = ""
    confirmation_status: EquityStatus = "Pending"
    country_of_trade: str = ""
    ops_team_notes: str = ""

    @property
    def trader(self) -> str:
        return self.trader_name

    @property
    def currencies(self) -> List[str]:
        return [self.currency]


class FXTrade(Enrichment):
    kind: Literal["fx"] = "fx"
    trade_id: str
    trade_date: str
    value_date: str = ""
    trade_time: str = ""
    trader_id: str = ""
    counterparty: str = ""
    currency_pair: str = ""
    buy_sell: Side = "Buy"
    dealt_currency: str = ""
    base_currency: str = ""
    term_currency: str = ""
    trade_status: FXTradeStatus = "Booked"
    product_type: ProductType = "Spot"
    maturity_date: str = ""
    confirmation_timestamp: str = ""
    settlement_date: str = ""
    amendment_flag: Literal["Yes","No"] = "No"
    confirmation_method: ConfirmationMethod = "Manual"
    confirmation_status: FXStatus = "Pending"

    @property
    def trader(self) -> str:
        return self.trader_id

    @property
    def currencies(self) -> List[str]:
        return [self.base_currency, self.term_currency]


Trade = Union[EquityTrade, FXTrade]
TradeIn = Annotated[Union[EquityTrade, FXTrade], Field(discriminator="kind")]


class FailureAnalysis(BaseModel):
    trade_id: str
    failure_type: Literal["Economic Break","Non-Economic Break"]
    break_type: BreakType
    reason: str
    impact: RiskLevel
    suggested_solution: str
    estimated_resolution_time: str
    assigned_to: str
    pending_with: PendingWith
    next_action_owner: str
    break_classification: str
    action_fields: Dict[str, str] = Field(default_factory=dict)
    status: Literal["Open","In Progress","Resolved","Escalated"] = "Open"
    created_at: datetime
    resolved_at: Optional[datetime] = None


class DocumentInfo(BaseModel):
    submitted: bool = False
    client_signed: bool = False
    bank_signed: bool = False
    timestamp: Optional[datetime] = None
    document_url: Optional[str] = None
    version: int = 1
    maker_status: Literal["Pending","Created","Approved"] = "Pending"
    checker_status: Literal["Pending","Reviewed","Approved"] = "Pending"
    qa_status: Literal["Pending","In Review","Approved","Rejected"] = "Pending"
    sent_to_client: bool = False
    signature_type: Literal["Single","Double"] = "Single"

    @property
    def is_complete(self) -> bool:
        return self.submitted and self.client_signed and self.bank_signed and self.qa_status == "Approved"


class DocumentStatus(BaseModel):
    trade_confirmation: DocumentInfo
    client_agreement: DocumentInfo
    risk_disclosure: DocumentInfo
    compliance_checklist: DocumentInfo
    front_office_sales_approval: DocumentInfo
    trading_sales_approval: DocumentInfo

    def documents(self) -> List[DocumentInfo]:
        return [getattr(self, k) for k in DOCUMENT_TYPES]


class DocumentUpdate(BaseModel):
    submitted: Optional[bool] = None
    client_signed: Optional[bool] = None
    bank_signed: Optional[bool] = None
    maker_status: Optional[Literal["Pending","Created","Approved"]] = None
    checker_status: Optional[Literal["Pending","Reviewed","Approved"]] = None
    qa_status: Optional[Literal["Pending","In Review","Approved","Rejected"]] = None
    sent_to_client: Optional[bool] = None
    signature_type: Optional[Literal["Single","Double"]] = None


StepStatus = Literal["pending","in-progress","completed","failed","requires-action"]


class WorkflowStep(BaseModel):
    id: str
    name: str
    status: StepStatus
    timestamp: Optional[str] = None
    assigned_to: Optional[str] = None
    notes: Optional[str] = None


class TradeWorkflow(BaseModel):
    trade_id: str
    current_step: str
    steps: List[WorkflowStep]
    created_at: str
    updated_at: datetime
    priority: Literal["low","medium","high","urgent"] = "medium"


class WorkflowAction(BaseModel):
    id: str
    type: Literal["amendment","affirmation","break-resolution","drafting","dispatch","execution"]
    description: str
    required_by: Optional[str] = None
    due_date: datetime
    status: Literal["pending","completed","overdue"] = "pending"


class TradeFilters(BaseModel):
    trade_type: Literal["all","equity","fx"] = "all"
    status: str = ""
    counterparty: str = ""
    date_from: str = ""
    date_to: str = ""
    currency: str = ""
    trader: str = ""
    risk_level: str = ""
    document_status: str = ""
    break_type: str = ""
    pending_with: str = ""
    queue_status: str = ""


class QueueMetrics(BaseModel):
    drafting: int = 0
    matching: int = 0
    pending_approvals: int = 0
    ccnr: int = 0
    pending_single_sign: int = 0
    pending_double_sign: int = 0
    documents_not_sent: int = 0


class Facets(BaseModel):
    counterparties: List[str]
    currencies: List[str]
    traders: List[str]
