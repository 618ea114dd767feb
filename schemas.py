"""
Database Schemas for Trade Navigator

Each Pydantic model represents a MongoDB collection. Fields are snake_case in
Python and camelCase in storage and on the wire (except trade_data rows,
which keep the CSV column names).
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

UserType = Literal["Indian", "Foreigner"]
Role = Literal["Buyer", "Seller"]
Sector = Literal["Seafood", "Textile", "Both", "Not specified"]
PostCategory = Literal["Market Updates", "Success Stories", "Q&A", "General Discussion"]
ContactStatus = Literal["Not Contacted", "Contacted", "Replied", "Negotiating", "Deal Closed"]
ImpactEventType = Literal["pitch_sent", "po_received", "shipment_completed", "market_entered"]
ApplicationStatus = Literal["Applied", "Under Review", "Approved", "Rejected"]
RequirementName = Literal["labeling", "traceability", "coldChain", "labReports", "certifications"]

POST_CATEGORIES = list(PostCategory.__args__)
REQUIREMENT_NAMES = list(RequirementName.__args__)

# Written by the buyer-contact flow, never accepted from clients
DEAL_CLOSED = "deal_closed"


class Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


class BusinessProfile(Document):
    company_size: Optional[str] = None
    annual_turnover: Optional[str] = None
    established_year: Optional[int] = None
    business_description: Optional[str] = None
    website: Optional[str] = None
    primary_products: List[str] = []
    certifications: List[str] = []
    target_markets: List[str] = []
    current_markets: List[str] = []
    # Buyer-specific
    sourcing_budget: Optional[str] = None
    order_frequency: Optional[str] = None
    preferred_supplier_location: Optional[str] = None
    quality_requirements: Optional[str] = None
    # Seller-specific
    production_capacity: Optional[str] = None
    export_experience: Optional[str] = None
    lead_time: Optional[str] = None
    minimum_order_quantity: Optional[str] = None
    payment_terms: Optional[str] = None
    special_requirements: Optional[str] = None
    business_goals: List[str] = []


class User(BusinessProfile):
    email: EmailStr
    company_name: str
    contact_person: str
    user_type: UserType
    role: Role
    is_admin: bool = False
    sector: Sector = "Not specified"
    hs_code: str = ""
    target_countries: List[str] = []
    password: str  # bcrypt hash
    is_verified: bool = False
    is_active: bool = True
    profile_completed: bool = False
    total_revenue: float = 0
    orders_secured: int = 0
    markets_entered: int = 0
    jobs_retained: int = 0


class Post(Document):
    user_id: ObjectId
    title: str
    content: str
    category: PostCategory
    tags: List[str] = []
    likes: int = 0
    liked_by: List[ObjectId] = []
    comments_count: int = 0
    is_answered: bool = False
    is_pinned: bool = False
    is_featured: bool = False
    is_hidden: bool = False


class Comment(Document):
    post_id: ObjectId
    user_id: ObjectId
    parent_comment_id: Optional[ObjectId] = None
    content: str
    likes: int = 0
    liked_by: List[ObjectId] = []
    is_mentor_reply: bool = False
    is_accepted_answer: bool = False
    is_hidden: bool = False


class Buyer(Document):
    name: str
    country: str
    city: Optional[str] = None
    product_categories: List[str] = []
    certifications_required: List[str] = []
    import_volume: Optional[float] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    rating: Optional[float] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    preferred_incoterms: List[str] = []
    payment_terms: Optional[str] = None
    is_verified: bool = True


class UserBuyerInteraction(Document):
    user_id: ObjectId
    buyer_id: ObjectId
    status: ContactStatus = "Not Contacted"
    notes: str = ""
    deal_value: Optional[float] = None
    last_contact_at: Optional[datetime] = None


class RequirementStatus(Document):
    completed: bool = False
    uploaded_at: Optional[datetime] = None
    file_url: Optional[str] = None


class ComplianceChecklist(Document):
    user_id: ObjectId
    target_country: str = "EU"
    requirements: Dict[str, RequirementStatus] = Field(
        default_factory=lambda: {name: RequirementStatus() for name in REQUIREMENT_NAMES}
    )
    completion_percentage: int = 0


class EligibilityCriteria(Document):
    sectors: List[str] = ["All"]
    min_turnover: Optional[float] = None
    max_turnover: Optional[float] = None
    notes: Optional[str] = None


class ReliefScheme(Document):
    name: str
    authority: str
    benefit_amount: float
    benefit_type: str
    deadline: datetime
    eligibility_criteria: EligibilityCriteria = Field(default_factory=EligibilityCriteria)
    application_process: Optional[str] = None
    documents_required: List[str] = []
    description: Optional[str] = None
    is_active: bool = True


class UserReliefApplication(Document):
    user_id: ObjectId
    scheme_id: ObjectId
    status: ApplicationStatus = "Applied"
    applied_at: datetime
    benefit_calculated: float = 0
    documents_uploaded: List[str] = []
    review_notes: str = ""


class ImpactLog(Document):
    user_id: ObjectId
    event_type: str
    buyer_id: Optional[ObjectId] = None
    revenue_amount: Optional[float] = None
    quantity_kg: Optional[float] = None
    price_per_kg: Optional[float] = None
    target_country: str
    product_category: Optional[str] = None
    event_date: datetime


class TradeData(BaseModel):
    reporter_name: str
    reporter_code: str = ""
    year: int
    classification: str = ""
    classification_version: str = ""
    product_code: str = ""
    mtn_categories: str = ""
    partner_code: str = ""
    partner_name: str
    value: float = 0
    uploadedAt: Optional[datetime] = None
    isActive: bool = True


class MarketIntelligence(Document):
    hs_code: str
    country: str
    tariff_rate: float
    import_volume: float = 0
    avg_price_per_kg: float = 0
    competitiveness_score: float = 0
    demand_growth: float = 0
    last_updated: Optional[datetime] = None


class FileUpload(Document):
    user_id: ObjectId
    file_name: str
    original_name: str
    file_type: str
    file_size: int
    file_url: str
    upload_purpose: str = "general"
    related_id: Optional[ObjectId] = None


class Payload(BaseModel):
    """Base for request bodies: camelCase on the wire, unknown keys ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
